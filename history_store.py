"""Persistent ledger of pages that have been exported successfully."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, List, Union

from errors import FilesystemError
from models import PageRecord

logger = logging.getLogger('confluence_pdf_exporter.history')


class HistoryStore:
    """Tracks completed page URLs in a JSON object on disk.

    ``mark_done`` is the only mutator and every call is written through to
    disk before returning, so a crash loses at most the page in flight.
    Entries are never removed or set to ``False`` by the exporter itself.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._entries: Dict[str, Any] = {}

    def load(self) -> Dict[str, Any]:
        """
        Load history from disk.

        A missing, unreadable or malformed file yields an empty history.

        Returns:
            Copy of the loaded mapping
        """
        self._entries = {}

        if not self.path.exists():
            logger.info(f"No export history at {self.path}, starting fresh")
            return {}

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable export history {self.path}: {str(e)}")
            return {}

        if not isinstance(data, dict):
            logger.warning(
                f"Ignoring export history {self.path}: expected a JSON object, got {type(data).__name__}"
            )
            return {}

        self._entries = {str(url): value for url, value in data.items()}
        logger.info(f"Loaded export history: {self.completed_count} completed pages")
        return dict(self._entries)

    @property
    def completed_count(self) -> int:
        return sum(1 for done in self._entries.values() if done is True)

    def is_done(self, url: str) -> bool:
        return self._entries.get(url) is True

    def pending(self, pages: Iterable[PageRecord]) -> List[PageRecord]:
        """Pages not yet recorded as completed, in their original order."""
        return [page for page in pages if not self.is_done(page.url)]

    def mark_done(self, url: str) -> None:
        """
        Record a page as exported and persist immediately.

        Args:
            url: Page URL (history key)

        Raises:
            FilesystemError: If the ledger cannot be written
        """
        if self.is_done(url):
            return

        previous = self._entries.get(url)
        self._entries[url] = True
        try:
            self._write()
        except FilesystemError:
            # Memory must not claim more than the disk holds
            if previous is None:
                del self._entries[url]
            else:
                self._entries[url] = previous
            raise
        logger.debug(f"Marked as exported: {url}")

    def _write(self) -> None:
        """Atomically replace the ledger file with the current entries."""
        directory = self.path.parent
        tmp_path = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix='.export-history-', suffix='.tmp', dir=str(directory))
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(self._entries, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise FilesystemError(self.path, f"Failed to write export history ({e})") from e


__all__ = ['HistoryStore']
