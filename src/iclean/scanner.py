"""Large file scanning for iclean."""

import logging
import os
import threading
from collections.abc import Iterator
from datetime import datetime
from typing import Callable

from iclean.errors import InvalidRootError, MetadataReadError, ProtectedPathError
from iclean.guard import DEFAULT_GUARD, PathGuard, normalize_path
from iclean.models import FileEntry, ScanOutcome, ScanProgress, ScanStatus

log = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 100_000_000  # 100 MB

# Directories treated as a single opaque item (macOS packages), never entered
PACKAGE_SUFFIXES = frozenset(
    {
        ".app",
        ".bundle",
        ".framework",
        ".kext",
        ".plugin",
        ".photoslibrary",
        ".musiclibrary",
        ".tvlibrary",
        ".xcodeproj",
        ".xcworkspace",
        ".xcarchive",
        ".pkg",
        ".mpkg",
        ".rtfd",
        ".lproj",
        ".sparsebundle",
    }
)

ProgressCallback = Callable[[ScanProgress], None]


class CancelToken:
    """Cooperative cancellation flag shared between a scan and its owner."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def is_hidden(name: str) -> bool:
    """Check if a file name is hidden (dot-prefixed)."""
    return name.startswith(".")


def is_package(name: str) -> bool:
    """Check if a directory name looks like a bundle/package."""
    _, ext = os.path.splitext(name)
    return ext.lower() in PACKAGE_SUFFIXES


def read_metadata(entry: os.DirEntry) -> tuple[int, datetime]:
    """
    Read size and modification time of a directory entry.

    Args:
        entry: Entry yielded by os.scandir

    Returns:
        Tuple of (size_bytes, modified_at)

    Raises:
        MetadataReadError: If the entry cannot be stat'ed
    """
    try:
        st = entry.stat(follow_symlinks=False)
    except OSError as e:
        raise MetadataReadError(f"Cannot read metadata of {entry.path}: {e}") from e
    return st.st_size, datetime.fromtimestamp(st.st_mtime)


def _sorted_children(directory: str) -> list[os.DirEntry]:
    try:
        with os.scandir(directory) as it:
            return sorted(it, key=lambda e: e.name)
    except OSError as e:
        log.debug("Skipping unreadable directory %s: %s", directory, e)
        return []


def iter_tree(
    directory: str,
    guard: PathGuard,
    cancel_token: CancelToken,
) -> Iterator[os.DirEntry]:
    """
    Walk a directory tree depth-first, yielding every visited entry.

    Children are visited in name order. Hidden entries, package
    directories and protected paths are skipped and never descended into.
    Symlinks are yielded but never followed. Unreadable directories are
    skipped. The walk stops as soon as the cancel token is set.

    The walk keeps its own stack of pending children instead of recursing,
    so nesting depth is not limited by the interpreter's recursion limit.

    Args:
        directory: Directory to walk
        guard: Protection policy consulted for every entry
        cancel_token: Polled before each entry

    Yields:
        os.DirEntry for each visited file or directory
    """
    stack = [iter(_sorted_children(directory))]

    while stack:
        entry = next(stack[-1], None)
        if entry is None:
            stack.pop()
            continue

        if cancel_token.cancelled:
            return

        if is_hidden(entry.name):
            continue

        if guard.is_protected(entry.path):
            log.debug("Skipping protected path %s", entry.path)
            continue

        try:
            is_dir = entry.is_dir(follow_symlinks=False)
        except OSError:
            continue

        if is_dir and is_package(entry.name):
            continue

        yield entry

        if is_dir:
            stack.append(iter(_sorted_children(entry.path)))


def scan(
    root: str,
    threshold: int = DEFAULT_THRESHOLD,
    on_progress: ProgressCallback | None = None,
    cancel_token: CancelToken | None = None,
    guard: PathGuard = DEFAULT_GUARD,
    report_visits: bool = False,
) -> ScanOutcome:
    """
    Find files at least `threshold` bytes large beneath a directory.

    Args:
        root: Directory to scan
        threshold: Minimum file size in bytes
        on_progress: Optional callback fired after each match (and after
            each visited path when report_visits is set)
        cancel_token: Optional token to stop the walk early
        guard: Protection policy (default: system locations)
        report_visits: Also report progress for every visited path

    Returns:
        ScanOutcome with entries sorted by size, largest first. A cancelled
        scan returns the entries found before cancellation.

    Raises:
        ProtectedPathError: If root is a protected location
        InvalidRootError: If root does not exist or is not a directory
        ValueError: If threshold is not positive
    """
    if threshold <= 0:
        raise ValueError(f"threshold must be positive, got {threshold}")

    root_path = normalize_path(root)
    if guard.is_protected(root_path):
        raise ProtectedPathError(root_path)
    if not os.path.isdir(root_path):
        raise InvalidRootError(root_path)

    token = cancel_token or CancelToken()
    found: list[FileEntry] = []
    skipped = 0

    log.info("Scanning %s for files >= %d bytes", root_path, threshold)

    for entry in iter_tree(root_path, guard, token):
        if report_visits and on_progress:
            on_progress(ScanProgress(items_found=len(found), current_path=entry.path))

        try:
            if not entry.is_file(follow_symlinks=False):
                continue
            size, modified_at = read_metadata(entry)
        except MetadataReadError as e:
            log.debug("%s", e)
            skipped += 1
            continue
        except OSError as e:
            log.debug("Cannot inspect %s: %s", entry.path, e)
            skipped += 1
            continue

        if size < threshold:
            continue

        found.append(FileEntry(path=entry.path, size=size, modified_at=modified_at))
        if on_progress:
            on_progress(ScanProgress(items_found=len(found), current_path=entry.path))

    status = ScanStatus.CANCELLED if token.cancelled else ScanStatus.COMPLETED
    log.info(
        "Scan of %s %s: %d files found, %d unreadable",
        root_path,
        status.value,
        len(found),
        skipped,
    )

    # list.sort is stable, so equal sizes keep discovery order
    found.sort(key=lambda e: e.size, reverse=True)

    return ScanOutcome(status=status, entries=found, root=root_path, threshold=threshold)
