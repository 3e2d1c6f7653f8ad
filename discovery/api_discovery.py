"""Discovery via the Confluence REST content listing."""

import logging
from typing import Any, Dict, List, Optional

from confluence_client import ConfluenceClient
from errors import DiscoveryError
from models import DiscoveryResult, PageRecord, SpaceMetadata
from .base_discovery import BaseDiscovery, absolute_page_url

logger = logging.getLogger('confluence_pdf_exporter.discovery.api')


class ApiDiscovery(BaseDiscovery):
    """Lists a space's pages by paging through ``/rest/api/content``."""

    def __init__(self, settings, page, client: Optional[ConfluenceClient] = None, logger=None):
        """
        Initialize API discovery.

        Args:
            settings: ExportSettings instance
            page: Playwright Page (provides navigation and session cookies)
            client: Optional pre-built ConfluenceClient
            logger: Logger instance (optional)
        """
        super().__init__(settings, page, logger)
        self.client = client
        self.page_size = settings.page_size
        self.requests_made = 0

    def discover(self, space_reference: Optional[str] = None) -> DiscoveryResult:
        space_url = self._resolve_space_url(space_reference)
        self._open_space(space_url)

        space_key = self._resolve_space_key(space_url)
        base_url = self._base_url(space_url)

        owns_client = self.client is None
        if owns_client:
            self.client = ConfluenceClient.from_settings(
                self.settings, base_url, cookies=self.page.context.cookies()
            )

        try:
            space_name = self._resolve_space_name(space_key)
            self.logger.info(f"Listing pages of space '{space_name}' ({space_key}) via REST API")

            pages = self._list_pages(space_key, base_url)
        finally:
            if owns_client:
                self.client.close()
                self.client = None

        self.logger.info(f"Discovered {len(pages)} pages in {self.requests_made} listing requests")

        return DiscoveryResult(space=SpaceMetadata(key=space_key, name=space_name), pages=pages)

    def _lookup_space_name(self, space_key: str) -> Optional[str]:
        try:
            return self.client.get_space(space_key).get('name')
        except DiscoveryError as e:
            self.logger.debug(f"Space name lookup failed: {e}")
            return None

    def _list_pages(self, space_key: str, base_url: str) -> List[PageRecord]:
        """
        Page through the listing until a short or empty page comes back.

        Args:
            space_key: Confluence space key
            base_url: Site base URL used to absolutize links

        Returns:
            Deduplicated pages in listing order
        """
        pages: List[PageRecord] = []
        seen = set()
        start = 0
        self.requests_made = 0

        while True:
            results = self.client.get_content_page(space_key, start=start, limit=self.page_size)
            self.requests_made += 1

            for entry in results:
                record = self._to_record(entry, base_url)
                if record is None or record.url in seen:
                    continue
                seen.add(record.url)
                pages.append(record)

            self.logger.debug(f"Listing offset {start}: {len(results)} results ({len(pages)} total)")

            if len(results) < self.page_size:
                break
            start += self.page_size

        return pages

    def _to_record(self, entry: Dict[str, Any], base_url: str) -> Optional[PageRecord]:
        links = entry.get('_links') or {}
        link = links.get('webui')
        page_id = entry.get('id')

        if not link and page_id:
            link = f"/pages/viewpage.action?pageId={page_id}"
        if not link:
            self.logger.debug(f"Skipping listing entry without a link: {entry.get('title')!r}")
            return None

        url = absolute_page_url(base_url, link)
        title = (entry.get('title') or '').strip() or (f"page_{page_id}" if page_id else url)
        return PageRecord(title=title, url=url)


__all__ = ['ApiDiscovery']
