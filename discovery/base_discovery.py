"""Abstract discovery interface and the space resolution shared by all strategies."""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional
from urllib.parse import unquote, urljoin, urlparse

from bs4 import BeautifulSoup
from playwright.sync_api import Error as PlaywrightError

from config_loader import is_space_url
from errors import AuthenticationError, NavigationError, SpaceKeyResolutionError
from models import DiscoveryResult

LOGIN_HOSTS = ('id.atlassian.com',)
SPACE_NAME_SELECTORS = ('[data-testid="space-name"]', '.space-name', '#space-name')
BRANDING_SUFFIX = 'Confluence'

# Space key exposed by the Confluence front end at runtime
SPACE_KEY_SCRIPT = """() => {
    try {
        if (window.AJS) {
            if (AJS.params && AJS.params.spaceKey) { return AJS.params.spaceKey; }
            if (AJS.Meta && AJS.Meta.get) { return AJS.Meta.get('space-key') || null; }
        }
    } catch (e) {}
    return null;
}"""


class BaseDiscovery(ABC):
    """Enumerates every page of a space using a shared browser page."""

    def __init__(self, settings, page, logger=None):
        """
        Initialize discovery with run settings and the session's page.

        Args:
            settings: ExportSettings instance
            page: Playwright Page from the session provider
            logger: Logger instance (optional, uses module logger if not provided)
        """
        self.settings = settings
        self.page = page
        self.logger = logger or logging.getLogger('confluence_pdf_exporter.discovery')

    @abstractmethod
    def discover(self, space_reference: Optional[str] = None) -> DiscoveryResult:
        """
        Enumerate all pages in a space.

        Args:
            space_reference: Space URL or key (defaults to the configured space)

        Returns:
            DiscoveryResult with space metadata and deduplicated pages

        Raises:
            SpaceKeyResolutionError: If no space key can be found
            AuthenticationError: If the session is not accepted
        """
        pass

    def _resolve_space_url(self, space_reference: Optional[str]) -> str:
        reference = (space_reference or self.settings.space_reference or '').strip()
        if not reference:
            raise SpaceKeyResolutionError("No space reference configured")

        if is_space_url(reference):
            return reference

        if not self.settings.base_url:
            raise SpaceKeyResolutionError(
                f"Space reference '{reference}' is a bare key but confluence.base_url is not set"
            )
        return f"{self.settings.base_url.rstrip('/')}/spaces/{reference}/overview"

    def _open_space(self, space_url: str) -> None:
        self.logger.info(f"Navigating to space: {space_url}")
        try:
            self.page.goto(space_url, wait_until='domcontentloaded', timeout=self.settings.timeout)
        except PlaywrightError as e:
            raise NavigationError(f"Could not open space {space_url}: {e}") from e
        self._ensure_authenticated()

    def _ensure_authenticated(self) -> None:
        current_url = self.page.url or ''
        if is_login_url(current_url):
            raise AuthenticationError(
                f"Redirected to a login page ({current_url}); the saved session is no longer valid"
            )

    def _base_url(self, space_url: str) -> str:
        if self.settings.base_url:
            return self.settings.base_url.rstrip('/')
        return site_base_url(space_url)

    def _resolve_space_key(self, space_url: str) -> str:
        """Resolve the space key: URL segment, then meta attribute, then runtime variable."""
        space_key = space_key_from_url(space_url) or space_key_from_url(self.page.url or '')
        if space_key:
            self.logger.debug(f"Space key from URL: {space_key}")
            return space_key

        meta = self._soup().find('meta', attrs={'name': 'ajs-space-key'})
        if meta and meta.get('content', '').strip():
            space_key = meta['content'].strip()
            self.logger.debug(f"Space key from page metadata: {space_key}")
            return space_key

        try:
            space_key = self.page.evaluate(SPACE_KEY_SCRIPT)
        except PlaywrightError as e:
            self.logger.debug(f"Runtime space key lookup failed: {e}")
            space_key = None
        if isinstance(space_key, str) and space_key.strip():
            self.logger.debug(f"Space key from runtime: {space_key}")
            return space_key.strip()

        raise SpaceKeyResolutionError(f"Could not resolve a space key for {space_url}")

    def _resolve_space_name(self, space_key: str) -> str:
        """Best-effort display name; falls back to the space key."""
        soup = self._soup()
        for selector in SPACE_NAME_SELECTORS:
            element = soup.select_one(selector)
            if element and element.get_text(strip=True):
                return element.get_text(strip=True)

        try:
            title = self.page.title()
        except PlaywrightError:
            title = ''
        name = space_name_from_title(title)
        if name:
            return name

        name = self._lookup_space_name(space_key)
        if name:
            return name

        self.logger.warning(f"Could not resolve a name for space '{space_key}', using the key")
        return space_key

    def _lookup_space_name(self, space_key: str) -> Optional[str]:
        """Strategy-specific name lookup; none by default."""
        return None

    def _soup(self) -> BeautifulSoup:
        try:
            html = self.page.content()
        except PlaywrightError as e:
            self.logger.debug(f"Could not read page content: {e}")
            html = ''
        return BeautifulSoup(html or '', 'html.parser')


def is_login_url(url: str) -> bool:
    """True for the identity host, ``login.action`` or a bare ``/login`` path outside page routes."""
    parsed = urlparse(url or '')
    if parsed.hostname in LOGIN_HOSTS:
        return True

    path = parsed.path.rstrip('/')
    if path.endswith('login.action'):
        return True

    parts = [part for part in path.split('/') if part]
    return bool(parts) and parts[-1] == 'login' and 'pages' not in parts


def space_key_from_url(url: str) -> Optional[str]:
    """Extract the space key from ``/spaces/KEY/...`` or ``/display/KEY/...``."""
    parts: List[str] = [part for part in urlparse(url).path.split('/') if part]
    for marker in ('spaces', 'display'):
        if marker in parts:
            index = parts.index(marker)
            if len(parts) > index + 1:
                candidate = unquote(parts[index + 1])
                # /spaces/flyingpdf/... and /spaces/viewspace.action are not keys
                if '.' not in candidate and candidate != 'flyingpdf':
                    return candidate
    return None


def space_name_from_title(title: str) -> Optional[str]:
    """Parse ``"<Page> - <Space Name> - Confluence"`` style document titles."""
    parts = [part.strip() for part in (title or '').split(' - ') if part.strip()]
    if parts and parts[-1] == BRANDING_SUFFIX:
        parts = parts[:-1]
    else:
        return None
    return parts[-1] if parts else None


def site_base_url(url: str) -> str:
    """Origin plus the ``/wiki`` context path when the site uses one."""
    parsed = urlparse(url)
    origin = f"{parsed.scheme}://{parsed.netloc}"
    if parsed.path == '/wiki' or parsed.path.startswith('/wiki/'):
        return origin + '/wiki'
    return origin


def absolute_page_url(base_url: str, link: str) -> str:
    """Make a listing link absolute without doubling the context path."""
    if urlparse(link).scheme:
        return link

    parsed = urlparse(base_url)
    origin = f"{parsed.scheme}://{parsed.netloc}"
    context_path = parsed.path.rstrip('/')
    path = '/' + link.lstrip('/')

    if context_path and not (path == context_path or path.startswith(context_path + '/')):
        path = context_path + path

    while context_path and path.startswith(context_path + context_path + '/'):
        path = path[len(context_path):]

    return urljoin(origin, path)


__all__ = [
    'BaseDiscovery',
    'absolute_page_url',
    'is_login_url',
    'site_base_url',
    'space_key_from_url',
    'space_name_from_title'
]
