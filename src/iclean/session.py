"""Scan session orchestration for iclean.

A ScanSession runs scans, deletions and trash-emptying on background
threads. Workers never touch session state: they put typed events on a
queue, and the owning (foreground) thread applies them by calling
``process_events`` or ``wait``. Subscribers are always called from that
foreground thread.
"""

import logging
import queue
import threading
import time
from collections.abc import Iterable
from enum import Enum
from pathlib import Path
from typing import Callable

from iclean.cleaner import delete_files, empty_trash
from iclean.disk import get_disk_usage
from iclean.errors import AlreadyScanningError, DiskUsageQueryError, IcleanError
from iclean.guard import DEFAULT_GUARD, PathGuard
from iclean.models import (
    DeletionFinishedEvent,
    DeletionReport,
    DiskUsage,
    FileEntry,
    ScanCancelledEvent,
    ScanCompletedEvent,
    ScanFailedEvent,
    ScanProgress,
    ScanProgressEvent,
    ScanStatus,
    SessionEvent,
    TrashEmptiedEvent,
)
from iclean.scanner import DEFAULT_THRESHOLD, CancelToken, scan

log = logging.getLogger(__name__)

EventCallback = Callable[[SessionEvent], None]


class SessionState(str, Enum):
    """Lifecycle of the current scan."""

    IDLE = "idle"
    SCANNING = "scanning"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class ScanSession:
    """Owns the current scan, its results, and the workers acting on them.

    Only one scan runs at a time: ``start`` raises AlreadyScanningError while
    the state is SCANNING. ``cancel`` moves the session to CANCELLED at once;
    a new scan may then be started, and any late events from the cancelled
    scan are dropped. A scan that finished its walk just before ``cancel``
    still publishes its entries, delivered as a ScanCancelledEvent.

    Args:
        threshold: Default minimum file size for scans
        guard: Protection policy used for scanning and deleting
        trash_dir: Trash location (default: platform trash)
        report_visits: Report progress for every visited path, not only matches
    """

    def __init__(
        self,
        threshold: int = DEFAULT_THRESHOLD,
        guard: PathGuard = DEFAULT_GUARD,
        trash_dir: Path | None = None,
        report_visits: bool = False,
    ) -> None:
        self.threshold = threshold
        self.guard = guard
        self.trash_dir = trash_dir
        self.report_visits = report_visits

        self._events: queue.Queue[tuple[str, SessionEvent]] = queue.Queue()
        self._subscribers: list[EventCallback] = []
        self._state = SessionState.IDLE
        self._generation = 0
        self._token: CancelToken | None = None
        self._results: list[FileEntry] = []
        self._pending = 0

        self.last_progress: ScanProgress | None = None
        self.last_error: Exception | None = None
        self.disk_usage: DiskUsage | None = None

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def generation(self) -> int:
        """Sequence number of the most recently started scan."""
        return self._generation

    @property
    def results(self) -> list[FileEntry]:
        """Published results, largest first (a copy)."""
        return list(self._results)

    @property
    def busy(self) -> bool:
        """True while any worker has not delivered its final event."""
        return self._pending > 0

    def subscribe(self, callback: EventCallback) -> Callable[[], None]:
        """
        Register a callback for session events.

        Returns:
            A function that removes the callback again
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def start(self, root: str, threshold: int | None = None) -> int:
        """
        Start scanning a directory in the background.

        Args:
            root: Directory to scan
            threshold: Minimum file size (default: the session threshold)

        Returns:
            Generation number of the new scan

        Raises:
            AlreadyScanningError: If a scan is already running
        """
        if self._state == SessionState.SCANNING:
            raise AlreadyScanningError("A scan is already running")

        self._generation += 1
        generation = self._generation
        token = CancelToken()
        self._token = token
        self._state = SessionState.SCANNING
        self._results = []
        self.last_progress = None
        self.last_error = None

        limit = threshold if threshold is not None else self.threshold
        self._spawn(f"iclean-scan-{generation}", self._run_scan, generation, root, limit, token)
        return generation

    def cancel(self) -> None:
        """Request cancellation of the running scan. No-op when not scanning."""
        if self._state != SessionState.SCANNING:
            return
        if self._token is not None:
            self._token.cancel()
        self._state = SessionState.CANCELLED
        log.info("Scan %d cancelled", self._generation)

    def delete_files(self, ids: Iterable[str]) -> None:
        """
        Delete published entries by id in the background.

        A DeletionFinishedEvent follows; when it is processed the deleted
        entries are dropped from the results. Ids that are not in the
        current results are reported as failed.
        """
        by_id = {e.id: e for e in self._results}
        wanted = list(dict.fromkeys(ids))
        entries = [by_id[i] for i in wanted if i in by_id]
        unknown = [i for i in wanted if i not in by_id]
        self._spawn("iclean-delete", self._run_delete, entries, unknown)

    def empty_trash(self) -> None:
        """Empty the trash in the background; a TrashEmptiedEvent follows."""
        self._spawn("iclean-trash", self._run_empty_trash)

    def refresh_disk_usage(self, mount_point: str = "/") -> DiskUsage | None:
        """
        Query disk usage, keeping the previous figures if the query fails.

        Returns:
            The latest known DiskUsage, or None if none was ever read
        """
        try:
            self.disk_usage = get_disk_usage(mount_point)
        except DiskUsageQueryError as e:
            log.warning("Keeping previous disk usage: %s", e)
        return self.disk_usage

    # -------------------------------------------------------------------------
    # Foreground event pump
    # -------------------------------------------------------------------------

    def process_events(self, timeout: float | None = 0) -> int:
        """
        Apply queued events and notify subscribers.

        Args:
            timeout: Seconds to wait for the first event. 0 returns at once,
                None blocks until an event arrives.

        Returns:
            Number of events processed (stale events included)
        """
        processed = 0
        try:
            if timeout == 0:
                item = self._events.get_nowait()
            else:
                item = self._events.get(timeout=timeout)
        except queue.Empty:
            return 0

        while True:
            self._dispatch(*item)
            processed += 1
            try:
                item = self._events.get_nowait()
            except queue.Empty:
                return processed

    def wait(self, timeout: float | None = None, poll: float = 0.05) -> bool:
        """
        Process events until every worker has finished.

        Returns:
            True if all workers finished, False on timeout
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while self._pending > 0:
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self.process_events(timeout=min(poll, remaining))
            else:
                self.process_events(timeout=poll)
        return True

    def _dispatch(self, kind: str, event: SessionEvent) -> None:
        if kind == "final":
            self._pending -= 1

        if isinstance(event, (ScanProgressEvent, ScanCompletedEvent, ScanCancelledEvent, ScanFailedEvent)):
            if event.generation != self._generation:
                log.debug("Dropping event from superseded scan %d", event.generation)
                return

        if isinstance(event, ScanCompletedEvent) and self._state == SessionState.CANCELLED:
            # The walk finished before cancel() was called; CANCELLED is terminal
            event = ScanCancelledEvent(
                generation=event.generation,
                outcome=event.outcome.model_copy(update={"status": ScanStatus.CANCELLED}),
            )

        if isinstance(event, ScanProgressEvent):
            self.last_progress = event.progress
        elif isinstance(event, ScanCompletedEvent):
            self._results = list(event.outcome.entries)
            self._state = SessionState.COMPLETED
        elif isinstance(event, ScanCancelledEvent):
            self._results = list(event.outcome.entries)
            self._state = SessionState.CANCELLED
        elif isinstance(event, ScanFailedEvent):
            self.last_error = event.error
            self._state = SessionState.FAILED
        elif isinstance(event, DeletionFinishedEvent):
            self._results = event.report.remaining(self._results)

        for callback in list(self._subscribers):
            callback(event)

    # -------------------------------------------------------------------------
    # Workers
    # -------------------------------------------------------------------------

    def _spawn(self, name: str, target: Callable[..., None], *args) -> None:
        self._pending += 1
        thread = threading.Thread(target=target, args=args, name=name, daemon=True)
        thread.start()

    def _emit(self, event: SessionEvent) -> None:
        self._events.put(("event", event))

    def _finish(self, event: SessionEvent) -> None:
        self._events.put(("final", event))

    def _run_scan(self, generation: int, root: str, threshold: int, token: CancelToken) -> None:
        def on_progress(progress: ScanProgress) -> None:
            self._emit(ScanProgressEvent(generation=generation, progress=progress))

        try:
            outcome = scan(
                root,
                threshold=threshold,
                on_progress=on_progress,
                cancel_token=token,
                guard=self.guard,
                report_visits=self.report_visits,
            )
        except IcleanError as e:
            log.warning("Scan of %s failed: %s", root, e)
            self._finish(ScanFailedEvent(generation=generation, error=e))
            return
        except Exception as e:
            log.exception("Scan of %s crashed", root)
            self._finish(ScanFailedEvent(generation=generation, error=e))
            return

        if outcome.cancelled:
            self._finish(ScanCancelledEvent(generation=generation, outcome=outcome))
        else:
            self._finish(ScanCompletedEvent(generation=generation, outcome=outcome))

    def _run_delete(self, entries: list[FileEntry], unknown: list[str]) -> None:
        try:
            report = delete_files(entries, self.guard)
        except Exception as e:
            log.exception("Deletion crashed")
            report = DeletionReport(failed={entry.id: str(e) for entry in entries})

        for entry_id in unknown:
            report.failed[entry_id] = "Unknown entry"

        self._finish(DeletionFinishedEvent(report=report))

    def _run_empty_trash(self) -> None:
        try:
            empty_trash(self.trash_dir)
        except IcleanError as e:
            log.warning("Emptying trash failed: %s", e)
            self._finish(TrashEmptiedEvent(error=e))
            return
        except Exception as e:
            log.exception("Emptying trash crashed")
            self._finish(TrashEmptiedEvent(error=e))
            return

        self._finish(TrashEmptiedEvent())
