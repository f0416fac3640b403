"""Exceptions raised by iclean."""


class IcleanError(Exception):
    """Base exception for iclean errors."""


class ProtectedPathError(IcleanError):
    """Raised when a scan or delete targets a protected system location."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Protected path: {path}")
        self.path = path


class InvalidRootError(IcleanError, NotADirectoryError):
    """Raised when a scan root does not exist or is not a directory."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Not a directory: {path}")
        self.path = path


class MetadataReadError(IcleanError):
    """Raised when size or modification time of a file cannot be read."""


class DeletionError(IcleanError):
    """Raised when a single file cannot be deleted."""


class TrashEmptyError(IcleanError):
    """Raised when an item in the trash cannot be removed."""


class DiskUsageQueryError(IcleanError):
    """Raised when the platform cannot report volume capacity."""


class AlreadyScanningError(IcleanError):
    """Raised when a scan is started while another one is running."""
