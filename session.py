"""
Browser session provider backed by a Playwright storage-state file.

The session file is produced once with ``--login`` (a headed browser where the
user signs in manually) and reused by every later run.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from config_loader import is_space_url
from errors import AuthenticationError, BrowserLaunchError

logger = logging.getLogger('confluence_pdf_exporter.session')


class BrowserSession:
    """Owns the single browser, context and page used for a whole run."""

    def __init__(self, settings, logger: Optional[logging.Logger] = None):
        """
        Initialize the session provider.

        Args:
            settings: ExportSettings instance
            logger: Optional logger instance
        """
        self.settings = settings
        self.logger = logger or logging.getLogger('confluence_pdf_exporter.session')

    @property
    def session_file(self) -> Path:
        return Path(self.settings.session_file)

    @contextmanager
    def open(self) -> Iterator:
        """
        Yield an authenticated Playwright Page.

        The browser is closed when the block exits, including on errors.

        Raises:
            AuthenticationError: If the session file is missing or unreadable
            BrowserLaunchError: If the browser cannot be started
        """
        if not self.session_file.is_file():
            raise AuthenticationError(
                f"Session file not found: {self.session_file}. "
                f"Run with --login to sign in and create it."
            )

        with sync_playwright() as playwright:
            try:
                browser = playwright.chromium.launch(headless=self.settings.headless)
            except PlaywrightError as e:
                raise BrowserLaunchError(f"Could not launch browser: {e}") from e

            try:
                try:
                    context = browser.new_context(
                        storage_state=str(self.session_file),
                        accept_downloads=True
                    )
                except (ValueError, PlaywrightError) as e:
                    raise AuthenticationError(
                        f"Session file {self.session_file} is unreadable ({e}). "
                        f"Run with --login to sign in again."
                    ) from e
                page = context.new_page()
                page.set_default_timeout(self.settings.timeout)
                self.logger.info(f"Browser session opened from {self.session_file}")
                yield page
            finally:
                browser.close()
                self.logger.debug("Browser session closed")

    def bootstrap_login(self, prompt: Callable[[str], str] = input) -> Path:
        """
        Open a headed browser for manual sign-in and save the session file.

        Args:
            prompt: Blocks until the user confirms sign-in is complete

        Returns:
            Path of the saved session file
        """
        login_url = self._login_url()

        with sync_playwright() as playwright:
            browser = playwright.chromium.launch(headless=False)
            try:
                context = browser.new_context()
                page = context.new_page()
                page.goto(login_url, wait_until='domcontentloaded')

                self.logger.info("Please log in to Confluence in the opened browser window")
                prompt("Press ENTER after you have logged in and can see the space... ")

                self.session_file.parent.mkdir(parents=True, exist_ok=True)
                context.storage_state(path=str(self.session_file))
            finally:
                browser.close()

        self.logger.info(f"Session saved to {self.session_file}")
        return self.session_file

    def _login_url(self) -> str:
        reference = self.settings.space_reference
        if reference and is_space_url(reference):
            return reference
        if self.settings.base_url:
            return self.settings.base_url
        raise ValueError("Set confluence.space to a URL or confluence.base_url before logging in")


__all__ = ['BrowserSession']
