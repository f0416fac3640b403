"""Data models for iclean."""

import os
import uuid
from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class FileEntry(BaseModel):
    """A large file found during a scan."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Unique entry id")
    path: str = Field(..., description="Absolute path of the file")
    size: int = Field(..., ge=0, description="Size in bytes")
    modified_at: datetime = Field(..., description="Last modification time")

    @property
    def name(self) -> str:
        """File name without its directory."""
        return os.path.basename(self.path)


class ScanProgress(BaseModel):
    """Snapshot of a running scan."""

    model_config = ConfigDict(frozen=True)

    items_found: int = Field(0, ge=0, description="Entries found so far")
    current_path: str = Field("", description="Path visited last")


class ScanStatus(str, Enum):
    """How a scan ended."""

    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ScanOutcome(BaseModel):
    """Result of a single scan, sorted largest first."""

    status: ScanStatus = Field(..., description="Whether the walk ran to the end")
    entries: list[FileEntry] = Field(default_factory=list)
    root: str = Field(..., description="Directory that was scanned")
    threshold: int = Field(..., description="Minimum size in bytes")

    @property
    def total_bytes(self) -> int:
        """Combined size of all entries."""
        return sum(e.size for e in self.entries)

    @property
    def cancelled(self) -> bool:
        return self.status == ScanStatus.CANCELLED


class DiskUsage(BaseModel):
    """Capacity figures of a volume."""

    total_bytes: int = Field(..., ge=0, description="Total capacity in bytes")
    used_bytes: int = Field(..., ge=0, description="Used space in bytes")
    free_bytes: int = Field(..., ge=0, description="Available space in bytes")
    mount_point: str = Field("/", description="Path the figures were queried for")

    @property
    def used_percentage(self) -> float:
        """Fraction of the volume in use, between 0 and 1."""
        if self.total_bytes <= 0:
            return 0.0
        return min(max(self.used_bytes / self.total_bytes, 0.0), 1.0)


class DeletionReport(BaseModel):
    """Outcome of deleting a batch of scanned files."""

    succeeded: set[str] = Field(default_factory=set, description="Ids of deleted entries")
    failed: dict[str, str] = Field(default_factory=dict, description="Failure reason per entry id")
    bytes_freed: int = Field(0, description="Combined size of deleted entries")

    @property
    def attempted(self) -> int:
        return len(self.succeeded) + len(self.failed)

    def remaining(self, entries: list[FileEntry]) -> list[FileEntry]:
        """Return the entries that were not deleted, keeping their order."""
        return [e for e in entries if e.id not in self.succeeded]


# =============================================================================
# Session events
# =============================================================================


class SessionEvent(BaseModel):
    """Base class for events delivered by a scan session."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


class ScanProgressEvent(SessionEvent):
    kind: Literal["progress"] = "progress"
    generation: int
    progress: ScanProgress


class ScanCompletedEvent(SessionEvent):
    kind: Literal["completed"] = "completed"
    generation: int
    outcome: ScanOutcome


class ScanCancelledEvent(SessionEvent):
    kind: Literal["cancelled"] = "cancelled"
    generation: int
    outcome: ScanOutcome


class ScanFailedEvent(SessionEvent):
    kind: Literal["failed"] = "failed"
    generation: int
    error: Exception


class DeletionFinishedEvent(SessionEvent):
    kind: Literal["deleted"] = "deleted"
    report: DeletionReport


class TrashEmptiedEvent(SessionEvent):
    kind: Literal["trash_emptied"] = "trash_emptied"
    error: Optional[Exception] = None

    @property
    def success(self) -> bool:
        return self.error is None
