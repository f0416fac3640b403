"""Deletion of scanned files and trash contents for iclean."""

import logging
import os
import shutil
import sys
from collections.abc import Iterable
from pathlib import Path

from iclean.errors import DeletionError, TrashEmptyError
from iclean.guard import DEFAULT_GUARD, PathGuard
from iclean.models import DeletionReport, FileEntry

log = logging.getLogger(__name__)


def delete_entry(entry: FileEntry, guard: PathGuard = DEFAULT_GUARD) -> None:
    """
    Delete the file behind a single scan entry.

    Args:
        entry: Entry to delete
        guard: Protection policy re-checked before deleting

    Raises:
        DeletionError: With a human-readable reason if the file was not removed
    """
    if guard.is_protected(entry.path):
        raise DeletionError("Protected path")

    path = Path(entry.path)
    try:
        if path.is_dir() and not path.is_symlink():
            raise DeletionError("Path is a directory")
        path.unlink()
    except FileNotFoundError as e:
        raise DeletionError("File no longer exists") from e
    except PermissionError as e:
        raise DeletionError(f"Permission denied: {e}") from e
    except OSError as e:
        raise DeletionError(f"OS error: {e}") from e


def delete_files(
    entries: Iterable[FileEntry],
    guard: PathGuard = DEFAULT_GUARD,
) -> DeletionReport:
    """
    Delete a batch of scanned files, continuing past failures.

    Args:
        entries: Entries to delete
        guard: Protection policy re-checked for each entry

    Returns:
        DeletionReport listing deleted ids and a failure reason per failed id
    """
    report = DeletionReport()

    for entry in entries:
        try:
            delete_entry(entry, guard)
        except DeletionError as e:
            log.warning("Could not delete %s: %s", entry.path, e)
            report.failed[entry.id] = str(e)
            continue

        report.succeeded.add(entry.id)
        report.bytes_freed += entry.size

    log.info(
        "Deleted %d of %d files (%d bytes)",
        len(report.succeeded),
        report.attempted,
        report.bytes_freed,
    )
    return report


def default_trash_dir() -> Path:
    """Return the current user's trash location for this platform."""
    if sys.platform == "darwin":
        return Path.home() / ".Trash"
    data_home = os.environ.get("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
    return Path(data_home) / "Trash"


def list_trash(trash_dir: Path | None = None) -> list[Path]:
    """
    List the items currently in the trash.

    On freedesktop systems the trash keeps items under files/ and their
    metadata under info/; the children of both are listed.

    Args:
        trash_dir: Trash location (default: platform trash)

    Returns:
        Items in the trash, empty if the location cannot be read
    """
    trash = trash_dir or default_trash_dir()
    containers = [trash]
    if (trash / "files").is_dir() or (trash / "info").is_dir():
        containers = [trash / "files", trash / "info"]

    items: list[Path] = []
    for container in containers:
        try:
            items.extend(sorted(container.iterdir()))
        except OSError as e:
            log.debug("Cannot list %s: %s", container, e)
    return items


def empty_trash(trash_dir: Path | None = None) -> None:
    """
    Permanently delete everything in the trash.

    Stops at the first item that cannot be removed.

    Args:
        trash_dir: Trash location (default: platform trash)

    Raises:
        TrashEmptyError: If an item could not be removed
    """
    items = list_trash(trash_dir)
    if not items:
        log.info("Trash is already empty")
        return

    for item in items:
        try:
            if item.is_dir() and not item.is_symlink():
                shutil.rmtree(item)
            else:
                item.unlink()
        except FileNotFoundError:
            continue
        except OSError as e:
            raise TrashEmptyError(f"Could not remove {item}: {e}") from e

    log.info("Emptied %d items from trash", len(items))
