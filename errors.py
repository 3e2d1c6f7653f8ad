"""Exception hierarchy for discovery, export and persistence failures."""

from typing import Optional, Sequence

from models import ErrorKind


class ExporterError(Exception):
    """Base exception for all exporter errors."""

    kind: ErrorKind = ErrorKind.DISCOVERY


class AuthenticationError(ExporterError):
    """The browser session is missing, invalid or expired."""

    kind = ErrorKind.AUTHENTICATION


class SpaceKeyResolutionError(ExporterError):
    """No space key could be resolved from the space reference."""

    kind = ErrorKind.SPACE_KEY_RESOLUTION


class DiscoveryError(ExporterError):
    """A listing request failed with a non-authentication error."""

    kind = ErrorKind.DISCOVERY

    def __init__(self, target: str, status: Optional[int] = None, message: Optional[str] = None):
        self.target = target
        self.status = status
        detail = message or (f"HTTP {status}" if status is not None else "request failed")
        super().__init__(f"Discovery request failed for {target}: {detail}")


class ExportStepError(ExporterError):
    """Recoverable failure inside the per-page export sequence."""

    kind = ErrorKind.NAVIGATION


class UiElementNotFoundError(ExportStepError):
    """None of the selector strategies for a UI step resolved in time."""

    kind = ErrorKind.UI_ELEMENT_NOT_FOUND

    def __init__(self, step: str, tried: Sequence[str] = ()):
        self.step = step
        self.tried = list(tried)
        super().__init__(
            f"Could not find control for '{step}' (tried: {', '.join(self.tried) or 'nothing'})"
        )


class ProcessingTimeoutError(ExportStepError):
    """Server-side PDF generation did not signal readiness in time."""

    kind = ErrorKind.PROCESSING_TIMEOUT


class DownloadTimeoutError(ExportStepError):
    """The download event did not arrive in time."""

    kind = ErrorKind.DOWNLOAD_TIMEOUT


class NavigationError(ExportStepError):
    """Navigation or an interaction failed unexpectedly."""

    kind = ErrorKind.NAVIGATION


class BrowserLaunchError(ExporterError):
    """The browser could not be started."""

    kind = ErrorKind.BROWSER


class FilesystemError(ExporterError):
    """Writing an artifact, the ledger or the output root failed."""

    kind = ErrorKind.FILESYSTEM

    def __init__(self, path, message: str):
        self.path = path
        super().__init__(f"{message}: {path}")


__all__ = [
    'AuthenticationError',
    'BrowserLaunchError',
    'DiscoveryError',
    'DownloadTimeoutError',
    'ExportStepError',
    'ExporterError',
    'FilesystemError',
    'NavigationError',
    'ProcessingTimeoutError',
    'SpaceKeyResolutionError',
    'UiElementNotFoundError'
]
