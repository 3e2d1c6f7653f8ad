"""Tests for scroll-based discovery."""

from itertools import count
from unittest.mock import MagicMock

import pytest
from playwright.sync_api import Error as PlaywrightError

from discovery.scroll_discovery import (
    HEIGHT_SCRIPT,
    ScrollDiscovery,
    collect_page_links,
    pages_view_url
)
from errors import DiscoveryError

BASE = 'https://example.atlassian.net/wiki/spaces/ENG/pages'

LISTING_HTML = """
<ul>
  <li><a href="/wiki/spaces/ENG/pages/101/Alpha">Alpha</a></li>
  <li><a href="/wiki/spaces/ENG/pages/101/Alpha#comments">Alpha again</a></li>
  <li><a href="/wiki/spaces/ENG/pages/edit-v2/102">Edit</a></li>
  <li><a href="/wiki/spaces/ENG/pages/103/Beta?focusedCommentId=9">Beta comment</a></li>
  <li><a href="/wiki/spaces/ENG/overview">Overview</a></li>
  <li><a href="/wiki/spaces/ENG/pages/104/Icon"><img src="icon.png"></a></li>
  <li><a href="https://example.atlassian.net/wiki/spaces/ENG/pages/105/Gamma"> Gamma </a></li>
</ul>
"""


class TestCollectPageLinks:
    def test_keeps_only_page_detail_links(self):
        pages = collect_page_links(LISTING_HTML, BASE)

        assert [(p.title, p.url) for p in pages] == [
            ('Alpha', 'https://example.atlassian.net/wiki/spaces/ENG/pages/101/Alpha'),
            ('Gamma', 'https://example.atlassian.net/wiki/spaces/ENG/pages/105/Gamma'),
        ]

    def test_empty_html(self):
        assert collect_page_links('', BASE) == []


class TestPagesViewUrl:
    def test_overview_maps_to_pages(self):
        assert pages_view_url('https://x/wiki/spaces/ENG/overview') == 'https://x/wiki/spaces/ENG/pages'

    def test_pages_url_unchanged(self):
        assert pages_view_url('https://x/wiki/spaces/ENG/pages/') == 'https://x/wiki/spaces/ENG/pages'

    def test_other_urls_get_pages_suffix(self):
        assert pages_view_url('https://x/wiki/spaces/ENG') == 'https://x/wiki/spaces/ENG/pages'


def _growing_page():
    """Page whose height grows on every measurement."""
    heights = count(1000, 500)
    page = MagicMock(name='page')
    page.evaluate.side_effect = lambda script: next(heights) if script == HEIGHT_SCRIPT else None
    return page


def _static_page(load_more_counts=(0,)):
    page = MagicMock(name='page')
    page.evaluate.side_effect = lambda script: 2000 if script == HEIGHT_SCRIPT else None
    button = page.get_by_role.return_value
    button.count.side_effect = list(load_more_counts)
    button.first.is_visible.return_value = True
    return page


class TestScrollToEnd:
    def test_stops_at_max_scrolls(self, make_settings):
        page = _growing_page()
        discovery = ScrollDiscovery(make_settings(max_scrolls=5), page)

        assert discovery._scroll_to_end() == 5

    def test_stops_when_height_settles(self, make_settings):
        page = _static_page(load_more_counts=(0,))
        discovery = ScrollDiscovery(make_settings(), page)

        assert discovery._scroll_to_end() == 1
        page.get_by_role.return_value.first.click.assert_not_called()

    def test_clicks_load_more_before_stopping(self, make_settings):
        page = _static_page(load_more_counts=(1, 0))
        discovery = ScrollDiscovery(make_settings(), page)

        assert discovery._scroll_to_end() == 2
        page.get_by_role.return_value.first.click.assert_called_once()


class TestDiscover:
    def test_discover_collects_links_from_page_list(self, make_settings):
        page = _static_page(load_more_counts=(0, 0))
        page.url = 'https://example.atlassian.net/wiki/spaces/ENG/overview'
        page.title.return_value = 'Overview - Engineering - Confluence'
        page.content.return_value = LISTING_HTML

        result = ScrollDiscovery(make_settings(), page).discover()

        assert result.space.key == 'ENG'
        assert result.space_name == 'Engineering'
        assert [p.title for p in result.pages] == ['Alpha', 'Gamma']
        visited = [call.args[0] for call in page.goto.call_args_list]
        assert visited[-1] == 'https://example.atlassian.net/wiki/spaces/ENG/pages'

    def test_browser_failure_while_scrolling_is_discovery_error(self, make_settings):
        page = _static_page(load_more_counts=(0,))
        page.url = 'https://example.atlassian.net/wiki/spaces/ENG/overview'
        page.title.return_value = 'Overview - Engineering - Confluence'
        page.content.return_value = LISTING_HTML
        page.evaluate.side_effect = PlaywrightError('Execution context was destroyed')

        with pytest.raises(DiscoveryError, match='Execution context was destroyed'):
            ScrollDiscovery(make_settings(), page).discover()
