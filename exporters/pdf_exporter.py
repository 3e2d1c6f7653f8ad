"""Per-page export workflow: drive Confluence's "Export to PDF" to a saved file."""

import logging
import os
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Union

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from discovery.base_discovery import is_login_url, site_base_url
from errors import (
    AuthenticationError,
    DownloadTimeoutError,
    ExportStepError,
    FilesystemError,
    NavigationError,
    ProcessingTimeoutError
)
from models import ExportOutcome, ExportState, extract_page_id
from .paths import artifact_name, build_relative_dir, name_from_suggested, strip_branding
from .selectors import SelectorChain, by_css, by_label, by_role, by_test_id, by_text

TITLE_SELECTORS = (
    'h1[data-test-id="page-title"]',
    '[data-testid="title-text"]',
    '#title-text',
)
BREADCRUMB_SELECTOR = 'nav[aria-label="Breadcrumbs"] ol li a'
DIRECT_EXPORT_PATH = '/spaces/flyingpdf/pdfpageexport.action?pageId={page_id}'

MORE_ACTIONS = SelectorChain('more actions', [
    by_label('More actions'),
    by_role('button', re.compile(r'^more actions$', re.IGNORECASE)),
    by_test_id('more-actions-trigger'),
    by_css('#more-actions-trigger'),
])

EXPORT_MENU = SelectorChain('export menu', [
    by_css('[aria-label="Export"]'),
    by_role('menuitem', re.compile(r'^export$', re.IGNORECASE)),
    by_css('[data-testid="undefined-button"]', has_text=re.compile(r'^\s*export\s*$', re.IGNORECASE)),
    by_css('button:has-text("Export")'),
])

EXPORT_TO_PDF = SelectorChain('export to pdf', [
    by_css('a[role="menuitem"][data-vc="link-item"]', has_text=re.compile(r'export to pdf', re.IGNORECASE)),
    by_role('menuitem', re.compile(r'export to pdf', re.IGNORECASE)),
    by_role('link', re.compile(r'export to pdf', re.IGNORECASE)),
    by_text(re.compile(r'export to pdf', re.IGNORECASE)),
])

# Either the "download ready" link or a confirmation that starts the download
DOWNLOAD_READY = SelectorChain('download ready', [
    by_css('#downloadableLink_dynamic'),
    by_role('link', re.compile(r'download pdf', re.IGNORECASE)),
    by_css('[role="dialog"] button', has_text=re.compile(r'^\s*(export|download)\s*$', re.IGNORECASE)),
])


@dataclass
class _ExportJob:
    """Working state of one attempt."""

    page_url: str
    destination_dir: Path
    page_id: Optional[str] = None
    title: Optional[str] = None
    breadcrumbs: List[str] = field(default_factory=list)
    output_path: Optional[Path] = None
    ready_control: Any = None
    download: Any = None
    skipped: bool = False

    @property
    def target_dir(self) -> Path:
        return self.destination_dir / build_relative_dir(self.breadcrumbs)


class PdfExporter:
    """Exports single pages to PDF through the Confluence UI.

    Each state of ``ExportState`` has one ``_state_<name>`` handler returning
    the next state. A recoverable failure anywhere restarts the sequence from
    ``NAVIGATE`` until the attempt budget is spent.
    """

    def __init__(self, page, settings, logger: Optional[logging.Logger] = None):
        """
        Initialize the exporter.

        Args:
            page: Playwright Page owned by this exporter for the run
            settings: ExportSettings instance
            logger: Optional logger instance
        """
        self.page = page
        self.settings = settings
        self.logger = logger or logging.getLogger('confluence_pdf_exporter.exporters.pdf')
        self.state = ExportState.NAVIGATE

    def export_page(self, page_url: str, destination_dir: Union[str, Path]) -> ExportOutcome:
        """
        Export one page, retrying the whole sequence on recoverable errors.

        Args:
            page_url: Confluence page URL
            destination_dir: Space directory under which breadcrumbs nest

        Returns:
            ExportOutcome describing the result

        Raises:
            AuthenticationError: If the session was rejected mid-run
        """
        destination_dir = Path(destination_dir)
        max_attempts = self.settings.max_attempts
        last_error: Optional[ExportStepError] = None
        job = _ExportJob(page_url=page_url, destination_dir=destination_dir)

        self.logger.info(f"Processing: {page_url}")

        for attempt in range(1, max_attempts + 1):
            job = _ExportJob(
                page_url=page_url,
                destination_dir=destination_dir,
                page_id=extract_page_id(page_url)
            )
            try:
                self._run(job)
            except ExportStepError as e:
                last_error = e
                self.logger.warning(
                    f"Attempt {attempt}/{max_attempts} failed at '{self.state.value}': {e}"
                )
                self._reset_page()
                if attempt < max_attempts:
                    time.sleep(self.settings.retry_delay)
                continue
            except FilesystemError as e:
                self.logger.error(f"Could not write artifact for {page_url}: {e}")
                return ExportOutcome(
                    success=False,
                    error=e.kind,
                    error_message=str(e),
                    attempts=attempt
                )
            except AuthenticationError:
                self._capture_diagnostics(job)
                raise

            return ExportOutcome(
                success=True,
                output_path=job.output_path,
                attempts=attempt,
                skipped=job.skipped
            )

        self.logger.error(f"Giving up on {page_url} after {max_attempts} attempts: {last_error}")
        self._capture_diagnostics(job)
        return ExportOutcome(
            success=False,
            error=last_error.kind,
            error_message=str(last_error),
            attempts=max_attempts
        )

    def _run(self, job: _ExportJob) -> None:
        state = ExportState.NAVIGATE
        while state is not ExportState.DONE:
            self.state = state
            self.logger.debug(f"State: {state.value}")
            handler = getattr(self, f"_state_{state.value}")
            try:
                state = handler(job)
            except PlaywrightError as e:
                raise NavigationError(f"Unexpected browser error during '{state.value}': {e}") from e
        self.state = ExportState.DONE

    def _state_navigate(self, job: _ExportJob) -> ExportState:
        self.page.goto(job.page_url, wait_until='domcontentloaded', timeout=self.settings.timeout)
        if is_login_url(self.page.url or ''):
            raise AuthenticationError(
                f"Redirected to a login page while opening {job.page_url}; the session has expired"
            )
        self.page.wait_for_timeout(int(self.settings.settle_delay * 1000))
        return ExportState.RESOLVE_TITLE

    def _state_resolve_title(self, job: _ExportJob) -> ExportState:
        job.title = self._read_heading() or strip_branding(self.page.title())
        job.breadcrumbs = self._read_breadcrumbs()

        name = artifact_name(job.title, job.page_id)
        job.output_path = job.target_dir / name if name else None

        self.logger.debug(f"Title: {job.title!r}, path: {job.target_dir}")
        return ExportState.CHECK_EXISTING

    def _state_check_existing(self, job: _ExportJob) -> ExportState:
        if job.output_path is not None and job.output_path.exists():
            self.logger.info(f"File exists, skipping: {job.output_path}")
            job.skipped = True
            return ExportState.DONE

        if self._use_direct_flow(job):
            return ExportState.TRIGGER_EXPORT_TO_PDF
        return ExportState.OPEN_ACTIONS_MENU

    def _state_open_actions_menu(self, job: _ExportJob) -> ExportState:
        self.logger.debug("Clicking 'More actions'")
        MORE_ACTIONS.resolve(self.page, self.settings.selector_timeout).click()
        return ExportState.OPEN_EXPORT_SUBMENU

    def _state_open_export_submenu(self, job: _ExportJob) -> ExportState:
        self.logger.debug("Clicking 'Export'")
        EXPORT_MENU.resolve(self.page, self.settings.selector_timeout).click()
        return ExportState.TRIGGER_EXPORT_TO_PDF

    def _state_trigger_export_to_pdf(self, job: _ExportJob) -> ExportState:
        if self._use_direct_flow(job):
            export_url = direct_export_url(job.page_url, job.page_id, self.settings.base_url)
            self.logger.debug(f"Opening export endpoint: {export_url}")
            self.page.goto(export_url, wait_until='domcontentloaded', timeout=self.settings.timeout)
        else:
            self.logger.debug("Clicking 'Export to PDF'")
            EXPORT_TO_PDF.resolve(self.page, self.settings.selector_timeout).click()
        return ExportState.AWAIT_SERVER_PROCESSING

    def _state_await_server_processing(self, job: _ExportJob) -> ExportState:
        self.logger.debug("Waiting for export processing")
        ready = DOWNLOAD_READY.any_of(self.page)
        try:
            ready.wait_for(state='visible', timeout=self.settings.processing_timeout)
        except PlaywrightTimeoutError as e:
            raise ProcessingTimeoutError(
                f"PDF was not ready after {self.settings.processing_timeout}ms"
            ) from e
        job.ready_control = ready
        return ExportState.CAPTURE_DOWNLOAD

    def _state_capture_download(self, job: _ExportJob) -> ExportState:
        self.logger.debug("PDF ready, downloading")
        try:
            # Listener must be armed before the click that starts streaming
            with self.page.expect_download(timeout=self.settings.timeout) as download_info:
                job.ready_control.click()
            job.download = download_info.value
        except PlaywrightTimeoutError as e:
            raise DownloadTimeoutError(f"No download started within {self.settings.timeout}ms") from e
        return ExportState.PERSIST_ARTIFACT

    def _state_persist_artifact(self, job: _ExportJob) -> ExportState:
        if job.output_path is None:
            name = name_from_suggested(job.download.suggested_filename) or f"export_{int(time.time())}.pdf"
            job.output_path = job.target_dir / name

        target = job.output_path
        if target.exists():
            self.logger.info(f"File appeared during export, keeping existing: {target}")
            job.skipped = True
            return ExportState.DONE

        partial = target.with_name(target.name + '.part')
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            job.download.save_as(str(partial))
            os.replace(partial, target)
        except OSError as e:
            raise FilesystemError(target, f"Failed to save PDF ({e})") from e

        self.logger.info(f"Download complete: {target}")
        return ExportState.DONE

    def _use_direct_flow(self, job: _ExportJob) -> bool:
        return self.settings.export_flow == 'direct' and bool(job.page_id)

    def _read_heading(self) -> Optional[str]:
        for selector in TITLE_SELECTORS:
            heading = self.page.locator(selector).first
            if heading.count() > 0 and heading.is_visible():
                text = (heading.text_content() or '').strip()
                if text:
                    return text
        return None

    def _read_breadcrumbs(self) -> List[str]:
        try:
            texts = self.page.locator(BREADCRUMB_SELECTOR).all_text_contents()
        except PlaywrightError as e:
            self.logger.warning(f"Could not determine breadcrumbs, using root ({e})")
            return []
        return [text.strip() for text in texts if text and text.strip()]

    def _reset_page(self) -> None:
        """Close any open menu or dialog before the next attempt."""
        try:
            self.page.keyboard.press('Escape')
        except PlaywrightError as e:
            self.logger.debug(f"Could not reset page state: {e}")

    def _capture_diagnostics(self, job: _ExportJob) -> Optional[Path]:
        """Best-effort screenshot of the page's current state."""
        suffix = job.page_id or str(int(time.time() * 1000))
        screenshot_path = job.destination_dir / f"error_{suffix}.png"
        try:
            job.destination_dir.mkdir(parents=True, exist_ok=True)
            self.page.screenshot(path=str(screenshot_path), full_page=True)
        except (PlaywrightError, OSError) as e:
            self.logger.debug(f"Diagnostic screenshot failed: {e}")
            return None
        self.logger.info(f"Saved diagnostic screenshot: {screenshot_path}")
        return screenshot_path


def direct_export_url(page_url: str, page_id: str, base_url: Optional[str] = None) -> str:
    """Confluence's server-side PDF export endpoint for a page."""
    base = (base_url or site_base_url(page_url)).rstrip('/')
    return base + DIRECT_EXPORT_PATH.format(page_id=page_id)


__all__ = ['PdfExporter', 'direct_export_url']
