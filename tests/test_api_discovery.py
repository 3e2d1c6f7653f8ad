"""Tests for REST API discovery and space resolution."""

from unittest.mock import MagicMock, patch

import pytest

from discovery import ApiDiscovery, DiscoveryFactory, ScrollDiscovery
from discovery.base_discovery import (
    absolute_page_url,
    is_login_url,
    site_base_url,
    space_key_from_url,
    space_name_from_title
)
from errors import AuthenticationError, DiscoveryError, SpaceKeyResolutionError

SPACE_URL = 'https://example.atlassian.net/wiki/spaces/ENG/overview'


class FakeClient:
    """Serves a fixed listing in slices, recording requested offsets."""

    def __init__(self, entries):
        self.entries = entries
        self.offsets = []

    def get_content_page(self, space_key, start=0, limit=50):
        self.offsets.append(start)
        return self.entries[start:start + limit]

    def get_space(self, space_key):
        return {'key': space_key, 'name': 'Engineering (API)'}


def _entries(count):
    return [
        {'id': str(1000 + i), 'title': f'Page {i}', '_links': {'webui': f'/spaces/ENG/pages/{1000 + i}/Page+{i}'}}
        for i in range(count)
    ]


def _page(url=SPACE_URL, title='Overview - Engineering - Confluence', html='<html></html>'):
    page = MagicMock(name='page')
    page.url = url
    page.title.return_value = title
    page.content.return_value = html
    return page


class TestPagination:
    def test_three_requests_for_120_items(self, make_settings):
        client = FakeClient(_entries(120))

        result = ApiDiscovery(make_settings(), _page(), client=client).discover()

        assert client.offsets == [0, 50, 100]
        assert len(result.pages) == 120
        assert result.pages[0].title == 'Page 0'
        assert result.pages[-1].title == 'Page 119'

    def test_exact_page_size_needs_empty_follow_up(self, make_settings):
        client = FakeClient(_entries(50))

        result = ApiDiscovery(make_settings(), _page(), client=client).discover()

        assert client.offsets == [0, 50]
        assert len(result.pages) == 50

    def test_empty_space(self, make_settings):
        client = FakeClient([])

        result = ApiDiscovery(make_settings(), _page(), client=client).discover()

        assert client.offsets == [0]
        assert result.pages == []

    def test_duplicates_are_dropped_keeping_first(self, make_settings):
        entries = _entries(3)
        entries.append(dict(entries[0], title='Renamed duplicate'))
        client = FakeClient(entries)

        result = ApiDiscovery(make_settings(), _page(), client=client).discover()

        assert [p.title for p in result.pages] == ['Page 0', 'Page 1', 'Page 2']

    def test_links_are_absolute_under_context_path(self, make_settings):
        client = FakeClient(_entries(1))

        result = ApiDiscovery(make_settings(), _page(), client=client).discover()

        assert result.pages[0].url == 'https://example.atlassian.net/wiki/spaces/ENG/pages/1000/Page+0'
        assert result.pages[0].page_id == '1000'

    def test_entry_without_link_uses_page_id(self, make_settings):
        client = FakeClient([{'id': '77', 'title': 'Bare'}])

        result = ApiDiscovery(make_settings(), _page(), client=client).discover()

        assert result.pages[0].url == 'https://example.atlassian.net/wiki/pages/viewpage.action?pageId=77'



class TestClientLifecycle:
    def test_built_client_is_closed(self, make_settings):
        client = MagicMock()
        client.get_content_page.return_value = []

        with patch('discovery.api_discovery.ConfluenceClient.from_settings', return_value=client):
            discovery = ApiDiscovery(make_settings(), _page())
            discovery.discover()

        client.close.assert_called_once()
        assert discovery.client is None

    def test_built_client_is_closed_when_listing_fails(self, make_settings):
        client = MagicMock()
        client.get_content_page.side_effect = DiscoveryError('https://x/rest/api/content', 500)

        with patch('discovery.api_discovery.ConfluenceClient.from_settings', return_value=client):
            with pytest.raises(DiscoveryError):
                ApiDiscovery(make_settings(), _page()).discover()

        client.close.assert_called_once()

    def test_injected_client_is_left_open(self, make_settings):
        client = MagicMock()
        client.get_content_page.return_value = []

        ApiDiscovery(make_settings(), _page(), client=client).discover()

        client.close.assert_not_called()


class TestSpaceResolution:
    def test_space_name_from_document_title(self, make_settings):
        result = ApiDiscovery(make_settings(), _page(), client=FakeClient([])).discover()

        assert result.space.key == 'ENG'
        assert result.space_name == 'Engineering'

    def test_space_name_falls_back_to_api(self, make_settings):
        result = ApiDiscovery(make_settings(), _page(title='Loading...'), client=FakeClient([])).discover()

        assert result.space_name == 'Engineering (API)'

    def test_space_name_from_header(self, make_settings):
        html = '<div data-testid="space-name">Platform Team</div>'

        result = ApiDiscovery(make_settings(), _page(html=html), client=FakeClient([])).discover()

        assert result.space_name == 'Platform Team'

    def test_space_key_from_page_metadata(self, make_settings):
        url = 'https://example.atlassian.net/wiki/x/AbCdEf'
        html = '<html><head><meta name="ajs-space-key" content="OPS"></head></html>'
        settings = make_settings(space_reference=url)

        result = ApiDiscovery(settings, _page(url=url, html=html), client=FakeClient([])).discover()

        assert result.space.key == 'OPS'

    def test_unresolvable_space_key(self, make_settings):
        url = 'https://example.atlassian.net/wiki/x/AbCdEf'
        page = _page(url=url)
        page.evaluate.return_value = None

        with pytest.raises(SpaceKeyResolutionError):
            ApiDiscovery(make_settings(space_reference=url), page, client=FakeClient([])).discover()

    def test_bare_key_requires_base_url(self, make_settings):
        with pytest.raises(SpaceKeyResolutionError):
            ApiDiscovery(make_settings(space_reference='ENG'), _page(), client=FakeClient([])).discover()

    def test_bare_key_with_base_url(self, make_settings):
        settings = make_settings(space_reference='ENG', base_url='https://example.atlassian.net/wiki')
        page = _page()

        ApiDiscovery(settings, page, client=FakeClient([])).discover()

        assert page.goto.call_args.args[0] == 'https://example.atlassian.net/wiki/spaces/ENG/overview'

    def test_login_redirect_is_authentication_error(self, make_settings):
        page = _page(url='https://id.atlassian.com/login?continue=https%3A%2F%2Fexample.atlassian.net')
        client = FakeClient(_entries(3))

        with pytest.raises(AuthenticationError):
            ApiDiscovery(make_settings(), page, client=client).discover()

        assert client.offsets == []


class TestUrlHelpers:
    def test_space_key_from_url(self):
        assert space_key_from_url('https://x.atlassian.net/wiki/spaces/ENG/pages/1/Title') == 'ENG'
        assert space_key_from_url('https://confluence.example.com/display/OPS/Home') == 'OPS'
        assert space_key_from_url('https://x.atlassian.net/wiki/spaces/flyingpdf/pdfpageexport.action') is None
        assert space_key_from_url('https://x.atlassian.net/wiki/home') is None

    def test_space_name_from_title(self):
        assert space_name_from_title('Overview - Engineering - Confluence') == 'Engineering'
        assert space_name_from_title('Engineering - Confluence') == 'Engineering'
        assert space_name_from_title('Some page') is None

    def test_site_base_url(self):
        assert site_base_url('https://x.atlassian.net/wiki/spaces/ENG/overview') == 'https://x.atlassian.net/wiki'
        assert site_base_url('https://confluence.example.com/display/OPS/Home') == 'https://confluence.example.com'

    def test_absolute_page_url_does_not_double_context_path(self):
        base = 'https://x.atlassian.net/wiki'
        assert absolute_page_url(base, '/wiki/spaces/ENG/pages/1/A') == 'https://x.atlassian.net/wiki/spaces/ENG/pages/1/A'
        assert absolute_page_url(base, '/spaces/ENG/pages/1/A') == 'https://x.atlassian.net/wiki/spaces/ENG/pages/1/A'
        assert absolute_page_url(base, 'https://other/p') == 'https://other/p'

    @pytest.mark.parametrize('url', [
        'https://id.atlassian.com/login?continue=https%3A%2F%2Fx.atlassian.net',
        'https://x.atlassian.net/login?continue=%2Fwiki',
        'https://x.atlassian.net/wiki/login',
        'https://confluence.example.com/login.action?os_destination=%2Fdisplay%2FOPS',
    ])
    def test_login_pages(self, url):
        assert is_login_url(url)

    @pytest.mark.parametrize('url', [
        'https://x.atlassian.net/wiki/spaces/ENG/pages/777/login+troubleshooting',
        'https://x.atlassian.net/wiki/spaces/ENG/pages/778/login',
        'https://x.atlassian.net/wiki/spaces/ENG/overview',
        '',
    ])
    def test_pages_named_after_login_are_not_login_pages(self, url):
        assert not is_login_url(url)


class TestDiscoveryFactory:
    def test_creates_configured_strategy(self, make_settings):
        assert isinstance(DiscoveryFactory.create_discovery(make_settings(), _page()), ApiDiscovery)
        assert isinstance(
            DiscoveryFactory.create_discovery(make_settings(discovery_strategy='scroll'), _page()),
            ScrollDiscovery
        )

    def test_unknown_strategy(self, make_settings):
        with pytest.raises(ValueError):
            DiscoveryFactory.create_discovery(make_settings(discovery_strategy='sitemap'), _page())
