"""Data models for the Confluence space to PDF export pipeline."""

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


PAGE_ID_PATTERNS = (
    re.compile(r'/pages/(\d+)'),
    re.compile(r'[?&]pageId=(\d+)'),
)


class ExportState(Enum):
    """States of the per-page export workflow, in happy-path order."""
    NAVIGATE = "navigate"
    RESOLVE_TITLE = "resolve_title"
    CHECK_EXISTING = "check_existing"
    OPEN_ACTIONS_MENU = "open_actions_menu"
    OPEN_EXPORT_SUBMENU = "open_export_submenu"
    TRIGGER_EXPORT_TO_PDF = "trigger_export_to_pdf"
    AWAIT_SERVER_PROCESSING = "await_server_processing"
    CAPTURE_DOWNLOAD = "capture_download"
    PERSIST_ARTIFACT = "persist_artifact"
    DONE = "done"


class ErrorKind(Enum):
    """Classification of export failures for reporting."""
    AUTHENTICATION = "authentication"
    SPACE_KEY_RESOLUTION = "space_key_resolution"
    DISCOVERY = "discovery"
    UI_ELEMENT_NOT_FOUND = "ui_element_not_found"
    PROCESSING_TIMEOUT = "processing_timeout"
    DOWNLOAD_TIMEOUT = "download_timeout"
    NAVIGATION = "navigation"
    FILESYSTEM = "filesystem"
    BROWSER = "browser"


@dataclass(frozen=True)
class PageRecord:
    """A discovered page. ``url`` is the stable history key."""

    title: str
    url: str

    @property
    def page_id(self) -> Optional[str]:
        """Numeric Confluence page ID embedded in the URL, if any."""
        return extract_page_id(self.url)

    def to_dict(self) -> Dict[str, Any]:
        return {'title': self.title, 'url': self.url}


@dataclass(frozen=True)
class SpaceMetadata:
    """Space key (required for listing) and display name (cosmetic)."""

    key: str
    name: str

    def to_dict(self) -> Dict[str, Any]:
        return {'key': self.key, 'name': self.name}


@dataclass
class DiscoveryResult:
    """Output of a discovery strategy."""

    space: SpaceMetadata
    pages: List[PageRecord] = field(default_factory=list)

    @property
    def space_name(self) -> str:
        return self.space.name

    def to_listing(self) -> List[Dict[str, Any]]:
        """Serialize pages for the debug listing file."""
        return [page.to_dict() for page in self.pages]


@dataclass
class ExportOutcome:
    """Result of exporting a single page."""

    success: bool
    output_path: Optional[Path] = None
    error: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    attempts: int = 0
    skipped: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Serialize outcome to dictionary."""
        return {
            'success': self.success,
            'output_path': str(self.output_path) if self.output_path else None,
            'error': self.error.value if self.error else None,
            'error_message': self.error_message,
            'attempts': self.attempts,
            'skipped': self.skipped
        }


def extract_page_id(url: str) -> Optional[str]:
    """Extract a numeric page ID from a Confluence page URL."""
    for pattern in PAGE_ID_PATTERNS:
        match = pattern.search(url or '')
        if match:
            return match.group(1)
    return None


__all__ = [
    'DiscoveryResult',
    'ErrorKind',
    'ExportOutcome',
    'ExportState',
    'PageRecord',
    'SpaceMetadata',
    'extract_page_id'
]
