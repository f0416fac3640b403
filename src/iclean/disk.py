"""Volume capacity queries for iclean."""

import logging
import shutil
import subprocess
import sys

from iclean.errors import DiskUsageQueryError
from iclean.models import DiskUsage

log = logging.getLogger(__name__)


def _apfs_container_space(mount_point: str) -> tuple[int, int] | None:
    """
    Read APFS container total and free bytes via diskutil.

    The container figures match what macOS System Settings shows, which
    differs from statvfs on APFS volumes.

    Returns:
        Tuple of (total_bytes, free_bytes), or None if unavailable
    """
    try:
        result = subprocess.run(
            ["diskutil", "info", mount_point],
            capture_output=True,
            text=True,
            timeout=10,
        )
    except (OSError, subprocess.SubprocessError) as e:
        log.debug("diskutil failed for %s: %s", mount_point, e)
        return None

    if result.returncode != 0:
        return None

    total_bytes = None
    free_bytes = None
    for line in result.stdout.splitlines():
        # "Container Total Space:     245.1 GB (245107195904 Bytes)"
        if "Container Total Space:" in line:
            total_bytes = _parse_byte_count(line)
        elif "Container Free Space:" in line:
            free_bytes = _parse_byte_count(line)

    if total_bytes and free_bytes is not None:
        return total_bytes, free_bytes
    return None


def _parse_byte_count(line: str) -> int | None:
    parts = line.split("(")
    if len(parts) < 2:
        return None
    try:
        return int(parts[1].split()[0])
    except (ValueError, IndexError):
        return None


def get_disk_usage(mount_point: str = "/") -> DiskUsage:
    """
    Get disk usage of the volume containing a path.

    Used space is derived as total minus free, so used + free always
    equals total.

    Args:
        mount_point: Any path on the volume to check (default: /)

    Returns:
        DiskUsage with total, used, and free bytes

    Raises:
        DiskUsageQueryError: If the capacity cannot be read
    """
    if sys.platform == "darwin" and mount_point == "/":
        container = _apfs_container_space(mount_point)
        if container is not None:
            total, free = container
            return DiskUsage(
                total_bytes=total,
                used_bytes=max(total - free, 0),
                free_bytes=min(free, total),
                mount_point=mount_point,
            )

    try:
        usage = shutil.disk_usage(mount_point)
    except OSError as e:
        raise DiskUsageQueryError(f"Cannot read capacity of {mount_point}: {e}") from e

    free = min(usage.free, usage.total)
    return DiskUsage(
        total_bytes=usage.total,
        used_bytes=usage.total - free,
        free_bytes=free,
        mount_point=mount_point,
    )
