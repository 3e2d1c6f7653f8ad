"""Confluence REST API client authenticated with the browser session's cookies."""

import logging
import os
import time
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urljoin

import requests
import urllib3
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from errors import AuthenticationError, DiscoveryError

logger = logging.getLogger('confluence_pdf_exporter.client')

# Optional: Use system CA certificates if requested
if os.getenv('USE_SYSTEM_CA') in ('1', 'true', 'True', 'TRUE'):
    try:
        import truststore
        truststore.inject_into_ssl()
        logger.info("Using system CA certificate store")
    except ImportError:
        logger.warning("truststore not installed. Install with: pip install truststore")

AUTH_FAILURE_STATUSES = (401, 403)


class ConfluenceClient:
    """Confluence REST API client with cookie authentication, retry logic and error mapping."""

    def __init__(
        self,
        base_url: str,
        cookies: Optional[Iterable[Dict[str, Any]]] = None,
        verify_ssl: bool = True,
        timeout: float = 30,
        max_retries: int = 3,
        retry_backoff_factor: float = 2.0
    ):
        """
        Initialize Confluence client.

        Args:
            base_url: Confluence base URL including the context path
                (e.g., "https://your-domain.atlassian.net/wiki")
            cookies: Browser cookies (Playwright ``context.cookies()`` format)
            verify_ssl: Whether to verify SSL certificates
            timeout: HTTP request timeout in seconds
            max_retries: Maximum retry attempts for transient errors
            retry_backoff_factor: Exponential backoff factor
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.max_retries = max_retries

        self.session = requests.Session()
        self.session.headers['Accept'] = 'application/json'

        cookie_count = 0
        for cookie in cookies or []:
            self.session.cookies.set(
                cookie.get('name'),
                cookie.get('value'),
                domain=cookie.get('domain', ''),
                path=cookie.get('path', '/')
            )
            cookie_count += 1
        logger.debug(f"Loaded {cookie_count} session cookies for {self.base_url}")

        self.session.verify = verify_ssl
        if not verify_ssl:
            logger.warning("SSL verification disabled - this is insecure!")
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

        # Transient statuses only; 401/403 must surface immediately
        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=retry_backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["HEAD", "GET", "OPTIONS"],
            raise_on_status=False
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        logger.debug(f"Client configured with timeout={timeout}s, max_retries={max_retries}, "
                     f"backoff_factor={retry_backoff_factor}")

    def _make_request(self, method: str, endpoint: str, **kwargs) -> requests.Response:
        """
        Make HTTP request to the Confluence API and map failures.

        Args:
            method: HTTP method
            endpoint: API endpoint path (e.g., "/rest/api/content")
            **kwargs: Additional arguments for requests

        Returns:
            Successful response object

        Raises:
            AuthenticationError: For 401/403 responses
            DiscoveryError: For any other failure
        """
        url = urljoin(self.base_url + '/', endpoint.lstrip('/'))

        start_time = time.time()
        logger.debug(f"API Request: {method} {url} params={kwargs.get('params')}")

        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout:
            logger.error(f"Request timeout after {self.timeout}s: {method} {url}")
            raise DiscoveryError(url, message=f"timeout after {self.timeout}s")
        except requests.exceptions.RequestException as e:
            logger.error(f"Request error: {method} {url} - {str(e)}")
            raise DiscoveryError(url, message=str(e))

        elapsed = time.time() - start_time
        logger.debug(f"API Response: {response.status_code} {url} ({elapsed:.3f}s)")

        if response.status_code in AUTH_FAILURE_STATUSES:
            logger.error(f"Authentication rejected (HTTP {response.status_code}): {method} {url}")
            raise AuthenticationError(
                f"Confluence rejected the session (HTTP {response.status_code}) for {url}. "
                "The saved session has probably expired; log in again to refresh it."
            )

        if not response.ok:
            logger.error(f"HTTP Error {response.status_code}: {method} {url}")
            logger.debug(f"Error response: {response.text[:500]}")
            raise DiscoveryError(url, status=response.status_code)

        return response

    def _get_json(self, endpoint: str, **kwargs) -> Dict[str, Any]:
        response = self._make_request('GET', endpoint, **kwargs)
        try:
            return response.json()
        except ValueError:
            # Login interstitials come back as HTML with a 200
            raise AuthenticationError(
                f"Expected JSON from {response.url} but received "
                f"{response.headers.get('Content-Type', 'unknown content')}; "
                "the session is probably no longer valid."
            )

    def get_space(self, space_key: str) -> Dict[str, Any]:
        """
        Fetch space metadata.

        Args:
            space_key: Confluence space key

        Returns:
            Space dictionary (``key``, ``name``, ...)
        """
        return self._get_json(f'/rest/api/space/{space_key}')

    def get_content_page(self, space_key: str, start: int = 0, limit: int = 50) -> List[Dict[str, Any]]:
        """
        Fetch one page of the space's content listing.

        Args:
            space_key: Confluence space key
            start: Offset of the first result
            limit: Number of results per request

        Returns:
            List of content dictionaries (``title``, ``_links.webui``, ...)
        """
        params = {
            'spaceKey': space_key,
            'type': 'page',
            'limit': limit,
            'start': start
        }
        data = self._get_json('/rest/api/content', params=params)
        return data.get('results') or []

    def close(self) -> None:
        self.session.close()

    @classmethod
    def from_settings(cls, settings, base_url: str, cookies: Optional[Iterable[Dict[str, Any]]] = None) -> 'ConfluenceClient':
        """
        Initialize Confluence client from run settings.

        Args:
            settings: ExportSettings instance
            base_url: Confluence base URL including context path
            cookies: Browser cookies

        Returns:
            ConfluenceClient instance
        """
        return cls(
            base_url=base_url,
            cookies=cookies,
            verify_ssl=settings.verify_ssl,
            timeout=settings.request_timeout,
            max_retries=settings.request_max_retries,
            retry_backoff_factor=settings.retry_backoff_factor
        )


__all__ = ['ConfluenceClient']
