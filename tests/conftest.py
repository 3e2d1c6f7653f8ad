"""Shared fixtures for exporter tests."""

from dataclasses import replace

import pytest

from config_loader import ExportSettings

SPACE_URL = 'https://example.atlassian.net/wiki/spaces/ENG/overview'


@pytest.fixture
def make_settings(tmp_path):
    """Build ExportSettings with zero delays, writing under tmp_path."""
    base = ExportSettings(
        space_reference=SPACE_URL,
        output_dir=str(tmp_path / 'output'),
        session_file=str(tmp_path / 'auth.json'),
        settle_delay=0,
        page_delay=0,
        retry_delay=0,
        scroll_delay=0
    )

    def _make(**overrides):
        return replace(base, **overrides)

    return _make
