"""Protected system locations that must never be scanned or modified."""

import os
from collections.abc import Iterable

# Paths that should NEVER be scanned into or deleted from
PROTECTED_PATHS: tuple[str, ...] = (
    # macOS
    "/System",
    "/Library",
    "/usr",
    "/bin",
    "/sbin",
    "/private",
    "/etc",
    "/var",
    "/Applications",
    # Linux
    "/proc",
    "/sys",
    "/dev",
    "/boot",
    "/lib",
    "/lib64",
    "/snap",
)


def normalize_path(path: str) -> str:
    """Make a path absolute and collapse '..' and duplicate separators.

    Symlinks are not resolved.
    """
    normalized = os.path.normpath(os.path.abspath(os.path.expanduser(str(path))))
    # POSIX normpath keeps exactly two leading slashes
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    return normalized


class PathGuard:
    """Decides whether a path lies inside a protected location.

    A path is protected when it equals one of the prefixes or is a
    descendant of one. Matching is done on whole path components, so
    ``/usr`` protects ``/usr/bin`` but not ``/usrdata``.

    Args:
        prefixes: Protected locations. Defaults to PROTECTED_PATHS.
        extra: Additional locations added to the prefixes, typically from
            user configuration.
    """

    def __init__(
        self,
        prefixes: Iterable[str] | None = None,
        extra: Iterable[str] = (),
    ) -> None:
        base = PROTECTED_PATHS if prefixes is None else tuple(prefixes)
        normalized = [normalize_path(p) for p in (*base, *extra)]
        # dict.fromkeys keeps the order and drops duplicates
        self._prefixes = tuple(dict.fromkeys(normalized))

    @property
    def prefixes(self) -> tuple[str, ...]:
        return self._prefixes

    def is_protected(self, path: str) -> bool:
        """Check if a path is protected.

        Args:
            path: Path to check (relative paths are made absolute)

        Returns:
            True if the path is a protected location or inside one
        """
        normalized = normalize_path(path)
        for prefix in self._prefixes:
            if prefix == os.sep:
                return True
            if normalized == prefix or normalized.startswith(prefix + os.sep):
                return True
        return False

    def __repr__(self) -> str:
        return f"PathGuard({list(self._prefixes)!r})"


DEFAULT_GUARD = PathGuard()


def is_protected(path: str) -> bool:
    """Check a path against the default protected locations."""
    return DEFAULT_GUARD.is_protected(path)
