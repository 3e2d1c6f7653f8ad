"""PDF export package for the Confluence space exporter.

This package drives Confluence's own "Export to PDF" action for single pages
and stores the result under a directory tree mirroring the page hierarchy.

Package Structure:
- pdf_exporter: Per-page export state machine with bounded retries
- selectors: Ordered locator fallback for menu controls
- paths: Filename sanitization and breadcrumb directory mapping

Configuration Referenced:
- export.flow: UI click-through ("ui") or direct export endpoint ("direct")
- export.timeout / selector_timeout / processing_timeout: Wait ceilings in ms
- export.retry_on_error / max_retries / retry_delay: Retry policy
"""

from .pdf_exporter import PdfExporter
from .selectors import LocatorStrategy, SelectorChain

__all__ = [
    'PdfExporter',
    'LocatorStrategy',
    'SelectorChain'
]
