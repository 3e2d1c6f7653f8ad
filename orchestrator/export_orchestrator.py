"""
Export orchestrator for coordinating a complete space export.

Sequences the run: Prepare → Discover → Export pending pages → Report. Pages
already recorded in the export history are skipped, so an interrupted run is
resumed by starting it again.
"""

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from tqdm import tqdm

from discovery import DiscoveryFactory
from errors import FilesystemError
from exporters import PdfExporter
from exporters.paths import is_ambiguous, sanitize_filename
from history_store import HistoryStore
from logger import ProgressTracker, log_section
from models import DiscoveryResult, ExportOutcome, PageRecord
from orchestrator.export_report import ExportReport

LISTING_FILENAME = 'pages-list.json'


class ExportOrchestrator:
    """Central coordinator sequencing discovery, per-page export and reporting."""

    def __init__(
        self,
        settings,
        session_provider,
        logger: Optional[logging.Logger] = None,
        history: Optional[HistoryStore] = None
    ):
        """
        Initialize export orchestrator.

        Args:
            settings: ExportSettings instance
            session_provider: Object whose ``open()`` context manager yields a Playwright Page
            logger: Optional logger instance
            history: Optional history store (defaults to the one under the output directory)
        """
        self.settings = settings
        self.session_provider = session_provider
        self.logger = logger or logging.getLogger('confluence_pdf_exporter.orchestrator')
        self.history = history or HistoryStore(settings.history_path)

    def run(self, space_reference: Optional[str] = None) -> Dict[str, Any]:
        """
        Export every page of a space that is not yet in the history.

        Args:
            space_reference: Space URL or key (defaults to the configured space)

        Returns:
            Run report dictionary

        Raises:
            FilesystemError: If the output directory cannot be created
            AuthenticationError: If the session is missing or rejected
            SpaceKeyResolutionError: If the space key cannot be determined
            DiscoveryError: If listing the space's pages fails
        """
        start_time = time.time()

        log_section("Preparing Export")
        root = Path(self.settings.output_dir)
        try:
            root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(root, f"Cannot create output directory ({e})") from e

        self.history.load()

        outcomes: List[Tuple[PageRecord, ExportOutcome]] = []

        with self.session_provider.open() as page:
            log_section("Discovering Pages")
            discovery = DiscoveryFactory.create_discovery(self.settings, page, logger=self.logger)
            result = discovery.discover(space_reference)

            space_dir = root / self._space_dirname(result)
            self._write_listing(space_dir, result)

            pending = self.history.pending(result.pages)
            self.logger.info(
                f"{len(result.pages)} pages discovered, "
                f"{len(result.pages) - len(pending)} already exported, {len(pending)} to export"
            )

            if not pending:
                self.logger.info("All pages already exported, nothing to do")
            else:
                log_section(f"Exporting Space: {result.space_name}")
                outcomes = self._export_pages(page, pending, space_dir)

        duration = time.time() - start_time
        report_generator = ExportReport(self.logger)
        report = report_generator.generate_report(
            result.space, len(result.pages), len(pending), outcomes, duration
        )
        report_generator.export_json_report(report, self.settings.report_path)

        self.logger.info(f"Export run complete in {duration:.2f}s")
        return report

    def _export_pages(
        self,
        page,
        pending: List[PageRecord],
        space_dir: Path
    ) -> List[Tuple[PageRecord, ExportOutcome]]:
        exporter = PdfExporter(page, self.settings, logger=self.logger)
        outcomes = []

        with ProgressTracker(total_items=len(pending), item_type='pages') as tracker:
            for record in tqdm(pending, desc="Exporting", unit="page"):
                outcome = exporter.export_page(record.url, space_dir)

                if outcome.success:
                    outcome = self._record_success(record, outcome)
                else:
                    self.logger.error(f"Failed: {record.title} ({record.url})")

                outcomes.append((record, outcome))
                tracker.increment(success=outcome.success)

                time.sleep(self.settings.page_delay)

        return outcomes

    def _record_success(self, record: PageRecord, outcome: ExportOutcome) -> ExportOutcome:
        try:
            self.history.mark_done(record.url)
        except FilesystemError as e:
            self.logger.error(f"Exported {record.url} but could not record it in history: {e}")
            return ExportOutcome(
                success=False,
                output_path=outcome.output_path,
                error=e.kind,
                error_message=str(e),
                attempts=outcome.attempts
            )
        return outcome

    def _space_dirname(self, result: DiscoveryResult) -> str:
        name = sanitize_filename(result.space_name)
        if is_ambiguous(name):
            name = sanitize_filename(result.space.key)
        return name

    def _write_listing(self, space_dir: Path, result: DiscoveryResult) -> None:
        """Write the discovered pages for inspection. Failures are only logged."""
        listing_path = space_dir / LISTING_FILENAME
        try:
            space_dir.mkdir(parents=True, exist_ok=True)
            with open(listing_path, 'w', encoding='utf-8') as f:
                json.dump(result.to_listing(), f, indent=2, ensure_ascii=False)
        except OSError as e:
            self.logger.warning(f"Could not write page listing {listing_path}: {e}")
            return
        self.logger.debug(f"Page listing written to {listing_path}")


__all__ = ['ExportOrchestrator']
