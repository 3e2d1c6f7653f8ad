"""Discovery by scrolling the space's page list and scraping its links."""

import logging
import re
from typing import List, Optional
from urllib.parse import urldefrag, urljoin

from bs4 import BeautifulSoup
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from errors import DiscoveryError, NavigationError
from models import DiscoveryResult, PageRecord, SpaceMetadata
from .base_discovery import BaseDiscovery

logger = logging.getLogger('confluence_pdf_exporter.discovery.scroll')

PAGE_DETAIL_PATTERN = re.compile(r'/pages/\d+')
HEIGHT_SCRIPT = "document.body.scrollHeight"
SCROLL_SCRIPT = "window.scrollTo(0, document.body.scrollHeight)"


class ScrollDiscovery(BaseDiscovery):
    """Loads the full page list in the UI and harvests page links from it.

    Does not depend on the REST API, at the cost of relying on the page
    list's markup and lazy loading behaviour.
    """

    def discover(self, space_reference: Optional[str] = None) -> DiscoveryResult:
        space_url = self._resolve_space_url(space_reference)
        self._open_space(space_url)

        space_key = self._resolve_space_key(space_url)
        space_name = self._resolve_space_name(space_key)

        listing_url = pages_view_url(space_url)
        self.logger.info(f"Going to pages view: {listing_url}")
        try:
            self.page.goto(listing_url, wait_until='domcontentloaded', timeout=self.settings.timeout)
        except PlaywrightError as e:
            raise NavigationError(f"Could not open page list {listing_url}: {e}") from e
        self._wait_for_network_idle()
        self._ensure_authenticated()

        self._open_all_pages_view()
        try:
            scrolls = self._scroll_to_end()
            self.logger.debug(f"Page list settled after {scrolls} scrolls")
            html = self.page.content()
        except PlaywrightError as e:
            raise DiscoveryError(listing_url, message=f"page list could not be read ({e})") from e

        pages = collect_page_links(html, self.page.url or listing_url)
        self.logger.info(f"Found {len(pages)} pages in space '{space_name}' ({space_key})")

        return DiscoveryResult(space=SpaceMetadata(key=space_key, name=space_name), pages=pages)

    def _wait_for_network_idle(self) -> None:
        try:
            self.page.wait_for_load_state('networkidle', timeout=self.settings.timeout)
        except PlaywrightTimeoutError:
            self.logger.debug("Network did not go idle; continuing")

    def _open_all_pages_view(self) -> None:
        """Switch from 'recently updated' to the full list when offered."""
        link = self.page.get_by_role('link', name=re.compile(r'all pages', re.IGNORECASE))
        try:
            if link.count() > 0 and link.first.is_visible():
                link.first.click()
                self.page.wait_for_load_state('domcontentloaded')
        except PlaywrightError as e:
            self.logger.info(f"Could not click 'All pages', proceeding with current view ({e})")

    def _scroll_to_end(self) -> int:
        """
        Scroll and press 'Load more' until the list stops growing.

        Bounded by ``max_scrolls`` so a broken infinite scroll still ends.

        Returns:
            Number of scroll iterations performed
        """
        delay_ms = int(self.settings.scroll_delay * 1000)
        iterations = 0

        for _ in range(self.settings.max_scrolls):
            iterations += 1
            previous_height = self.page.evaluate(HEIGHT_SCRIPT)
            self.page.evaluate(SCROLL_SCRIPT)
            self.page.wait_for_timeout(delay_ms)
            new_height = self.page.evaluate(HEIGHT_SCRIPT)

            if new_height != previous_height:
                continue

            if not self._click_load_more():
                self.logger.info("Reached bottom of page list")
                break
            self.page.wait_for_timeout(delay_ms)
        else:
            self.logger.warning(
                f"Stopped scrolling after {self.settings.max_scrolls} iterations; the list may be incomplete"
            )

        return iterations

    def _click_load_more(self) -> bool:
        button = self.page.get_by_role('button', name=re.compile(r'load more', re.IGNORECASE))
        try:
            if button.count() > 0 and button.first.is_visible():
                button.first.click()
                return True
        except PlaywrightError as e:
            self.logger.debug(f"'Load more' click failed: {e}")
        return False


def pages_view_url(space_url: str) -> str:
    """Map a space URL to its page-list view."""
    url = space_url.rstrip('/')
    if url.endswith('/overview'):
        return url[:-len('/overview')] + '/pages'
    if url.endswith('/pages'):
        return url
    return url + '/pages'


def collect_page_links(html: str, base_url: str) -> List[PageRecord]:
    """
    Extract page-detail links from rendered HTML.

    Args:
        html: Page HTML
        base_url: URL the HTML was loaded from, for relative links

    Returns:
        Pages deduplicated by URL, first occurrence wins
    """
    soup = BeautifulSoup(html or '', 'html.parser')
    pages: List[PageRecord] = []
    seen = set()

    for anchor in soup.find_all('a', href=True):
        url, _ = urldefrag(urljoin(base_url, anchor['href'].strip()))
        if not PAGE_DETAIL_PATTERN.search(url):
            continue
        if '/pages/edit' in url or '?' in url:
            continue

        title = anchor.get_text(strip=True)
        if not title or url in seen:
            continue

        seen.add(url)
        pages.append(PageRecord(title=title, url=url))

    return pages


__all__ = ['ScrollDiscovery', 'collect_page_links', 'pages_view_url']
