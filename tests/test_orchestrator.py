"""Tests for run orchestration: resume, failure accounting and teardown."""

import json
from contextlib import contextmanager
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from errors import AuthenticationError, DiscoveryError, FilesystemError
from history_store import HistoryStore
from models import DiscoveryResult, ErrorKind, ExportOutcome, PageRecord, SpaceMetadata
from orchestrator import ExportOrchestrator

PAGES = [
    PageRecord(title='Alpha', url='https://example.atlassian.net/wiki/spaces/ENG/pages/1/Alpha'),
    PageRecord(title='Beta', url='https://example.atlassian.net/wiki/spaces/ENG/pages/2/Beta'),
    PageRecord(title='Gamma', url='https://example.atlassian.net/wiki/spaces/ENG/pages/3/Gamma'),
]


class FakeSession:
    """Session provider that records whether the browser was torn down."""

    def __init__(self):
        self.page = MagicMock(name='page')
        self.opened = 0
        self.closed = 0

    @contextmanager
    def open(self):
        self.opened += 1
        try:
            yield self.page
        finally:
            self.closed += 1


class FakeExporter:
    """Stands in for PdfExporter; fails the URLs it is told to."""

    instances = []
    failing_urls = set()

    def __init__(self, page, settings, logger=None):
        self.exported = []
        FakeExporter.instances.append(self)

    def export_page(self, page_url, destination_dir):
        self.exported.append((page_url, Path(destination_dir)))
        if page_url in FakeExporter.failing_urls:
            return ExportOutcome(success=False, error=ErrorKind.PROCESSING_TIMEOUT,
                                 error_message='not ready', attempts=4)
        return ExportOutcome(success=True, output_path=Path(destination_dir) / 'x.pdf', attempts=1)


@pytest.fixture
def discovery():
    fake = MagicMock(name='discovery')
    fake.discover.return_value = DiscoveryResult(
        space=SpaceMetadata(key='ENG', name='Engineering Docs'), pages=list(PAGES)
    )
    with patch('orchestrator.export_orchestrator.DiscoveryFactory.create_discovery', return_value=fake):
        yield fake


@pytest.fixture
def exporter():
    FakeExporter.instances = []
    FakeExporter.failing_urls = set()
    with patch('orchestrator.export_orchestrator.PdfExporter', FakeExporter), \
            patch('orchestrator.export_orchestrator.time.sleep') as sleep:
        FakeExporter.sleep = sleep
        yield FakeExporter


def _exported_urls(exporter_cls):
    return [url for instance in exporter_cls.instances for url, _ in instance.exported]


@pytest.mark.usefixtures('discovery')
class TestExportRun:
    def test_first_run_exports_and_records_every_page(self, make_settings, exporter):
        settings = make_settings()
        session = FakeSession()

        report = ExportOrchestrator(settings, session).run()

        assert _exported_urls(exporter) == [p.url for p in PAGES]
        history = json.loads(Path(settings.history_path).read_text(encoding='utf-8'))
        assert history == {p.url: True for p in PAGES}
        assert report['summary']['successful'] == 3
        assert report['summary']['failed'] == 0
        assert session.closed == 1

    def test_second_run_exports_nothing(self, make_settings, exporter):
        settings = make_settings()
        ExportOrchestrator(settings, FakeSession()).run()
        exporter.instances = []

        report = ExportOrchestrator(settings, FakeSession()).run()

        assert _exported_urls(exporter) == []
        assert report['summary']['already_done'] == 3
        assert report['summary']['attempted'] == 0

    def test_pages_exported_into_space_directory(self, make_settings, exporter):
        settings = make_settings()

        ExportOrchestrator(settings, FakeSession()).run()

        space_dir = Path(settings.output_dir) / 'engineering_docs'
        destinations = {dest for instance in exporter.instances for _, dest in instance.exported}
        assert destinations == {space_dir}
        listing = json.loads((space_dir / 'pages-list.json').read_text(encoding='utf-8'))
        assert listing[0] == {'title': 'Alpha', 'url': PAGES[0].url}

    def test_failed_pages_are_not_recorded(self, make_settings, exporter):
        settings = make_settings()
        exporter.failing_urls = {PAGES[1].url}

        report = ExportOrchestrator(settings, FakeSession()).run()

        history = json.loads(Path(settings.history_path).read_text(encoding='utf-8'))
        assert PAGES[1].url not in history
        assert report['summary']['failed'] == 1
        assert report['summary']['successful'] == 2
        assert report['failures'][0]['url'] == PAGES[1].url
        assert report['failures'][0]['error'] == 'processing_timeout'

    def test_failed_pages_are_retried_on_next_run(self, make_settings, exporter):
        settings = make_settings()
        exporter.failing_urls = {PAGES[1].url}
        ExportOrchestrator(settings, FakeSession()).run()
        exporter.instances = []
        exporter.failing_urls = set()

        ExportOrchestrator(settings, FakeSession()).run()

        assert _exported_urls(exporter) == [PAGES[1].url]

    def test_ledger_write_failure_counts_as_failed(self, make_settings, exporter):
        settings = make_settings()
        failure = FilesystemError(settings.history_path, 'Failed to write export history')

        with patch.object(HistoryStore, 'mark_done', side_effect=failure):
            report = ExportOrchestrator(settings, FakeSession()).run()

        assert report['summary']['failed'] == 3
        assert report['failures'][0]['error'] == 'filesystem'

    def test_page_delay_after_every_page(self, make_settings, exporter):
        ExportOrchestrator(make_settings(page_delay=2.0), FakeSession()).run()

        assert exporter.sleep.call_count == 3
        exporter.sleep.assert_called_with(2.0)

    def test_report_written_to_output_directory(self, make_settings, exporter):
        settings = make_settings()

        ExportOrchestrator(settings, FakeSession()).run()

        report = json.loads(Path(settings.report_path).read_text(encoding='utf-8'))
        assert report['summary']['space_key'] == 'ENG'
        assert len(report['pages']) == 3


class TestFatalErrors:
    def test_discovery_failure_aborts_and_closes_session(self, make_settings, exporter, discovery):
        discovery.discover.side_effect = DiscoveryError('https://example.atlassian.net/wiki/rest/api/content', 500)
        session = FakeSession()

        with pytest.raises(DiscoveryError):
            ExportOrchestrator(make_settings(), session).run()

        assert session.closed == 1
        assert exporter.instances == []

    def test_expired_session_mid_run_aborts(self, make_settings, discovery):
        session = FakeSession()
        failing = MagicMock()
        failing.return_value.export_page.side_effect = AuthenticationError('session expired')

        with patch('orchestrator.export_orchestrator.PdfExporter', failing), \
                patch('orchestrator.export_orchestrator.time.sleep'):
            with pytest.raises(AuthenticationError):
                ExportOrchestrator(make_settings(), session).run()

        assert session.closed == 1

    def test_output_root_failure_is_fatal(self, tmp_path, make_settings):
        blocker = tmp_path / 'not-a-dir'
        blocker.write_text('file', encoding='utf-8')
        session = FakeSession()

        with pytest.raises(FilesystemError):
            ExportOrchestrator(make_settings(output_dir=str(blocker / 'out')), session).run()

        assert session.opened == 0
