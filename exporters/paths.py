"""Filesystem naming for exported artifacts."""

import re
from pathlib import Path
from typing import Iterable, Optional

BRANDING_SUFFIX = ' - Confluence'
PDF_SUFFIX = '.pdf'


def sanitize_filename(name: str) -> str:
    """Lowercase and replace every character outside ``[a-z0-9]`` with ``_``."""
    return re.sub(r'[^a-z0-9]', '_', (name or '').lower())


def strip_branding(title: str) -> str:
    """Drop the service suffix from a document title."""
    title = (title or '').strip()
    if title.endswith(BRANDING_SUFFIX):
        title = title[:-len(BRANDING_SUFFIX)]
    return title.strip()


def is_ambiguous(sanitized_name: str) -> bool:
    """True when a sanitized name carries no usable characters."""
    return not sanitized_name.strip('_')


def build_relative_dir(breadcrumbs: Iterable[str]) -> Path:
    """
    Directory for a page relative to the space directory.

    The first breadcrumb is the space root and is dropped.

    Args:
        breadcrumbs: Breadcrumb texts, outermost first

    Returns:
        Relative path (``Path('.')`` for a root-level page)
    """
    parts = [crumb.strip() for crumb in breadcrumbs if crumb and crumb.strip()]
    return Path(*[sanitize_filename(part) for part in parts[1:]])


def artifact_name(title: str, page_id: Optional[str] = None) -> Optional[str]:
    """
    File name for a page's PDF.

    Args:
        title: Resolved page title
        page_id: Numeric page ID, used when the title is ambiguous

    Returns:
        ``<name>.pdf``, or None when the name must come from the download
    """
    name = sanitize_filename(title)
    if is_ambiguous(name):
        if not page_id:
            return None
        name = f"page_{page_id}"
    return name + PDF_SUFFIX


def name_from_suggested(suggested_filename: str) -> Optional[str]:
    """File name derived from a download's suggested filename."""
    stem = suggested_filename or ''
    if stem.lower().endswith(PDF_SUFFIX):
        stem = stem[:-len(PDF_SUFFIX)]
    name = sanitize_filename(stem)
    return None if is_ambiguous(name) else name + PDF_SUFFIX


__all__ = [
    'artifact_name',
    'build_relative_dir',
    'is_ambiguous',
    'name_from_suggested',
    'sanitize_filename',
    'strip_branding'
]
