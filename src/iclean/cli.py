"""CLI interface for iclean."""

import logging
from typing import Optional

import typer
from rich.markup import escape

from iclean import __version__
from iclean.config import load_config
from iclean.display import (
    confirm_action,
    console,
    shorten_path,
    show_deletion_summary,
    show_protected,
    show_results,
    show_scanning_progress,
    show_status,
)
from iclean.disk import get_disk_usage
from iclean.errors import DiskUsageQueryError
from iclean.guard import normalize_path
from iclean.models import (
    DeletionFinishedEvent,
    ScanCancelledEvent,
    ScanCompletedEvent,
    ScanFailedEvent,
    ScanOutcome,
    ScanProgressEvent,
    ScanStatus,
    SessionEvent,
    TrashEmptiedEvent,
)
from iclean.session import ScanSession, SessionState

# Create Typer app
app = typer.Typer(
    name="iclean",
    help="Find large files and free up disk space safely",
    add_completion=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"iclean version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Show debug logging."),
) -> None:
    """iclean - find large files and free up disk space."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _make_session() -> ScanSession:
    config = load_config()
    return ScanSession(
        threshold=config.threshold_bytes,
        guard=config.make_guard(),
        trash_dir=config.trash_path(),
        report_visits=True,
    )


def parse_selection(text: str, count: int) -> list[int]:
    """
    Parse 1-based row numbers and ranges like "1,3-5" into 0-based indices.

    Raises:
        ValueError: If a row is malformed or outside 1..count
    """
    rows: list[int] = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        first, sep, last = part.partition("-")
        try:
            start = int(first)
            end = int(last) if sep else start
        except ValueError:
            raise ValueError(f"not a row number: {part!r}") from None
        if start > end:
            raise ValueError(f"empty range: {part!r}")
        for row in range(start, end + 1):
            if not 1 <= row <= count:
                raise ValueError(f"row {row} is out of range 1-{count}")
            rows.append(row - 1)
    if not rows:
        raise ValueError("no rows selected")
    return list(dict.fromkeys(rows))


def _outcome_from_session(session: ScanSession, root: str, threshold: Optional[int]) -> ScanOutcome:
    """Rebuild the scan outcome when the terminal event never reached us."""
    status = ScanStatus.CANCELLED if session.state == SessionState.CANCELLED else ScanStatus.COMPLETED
    return ScanOutcome(
        status=status,
        entries=session.results,
        root=normalize_path(root),
        threshold=threshold or session.threshold,
    )


@app.command()
def scan(
    path: str = typer.Argument(..., help="Folder to scan"),
    threshold: Optional[int] = typer.Option(
        None, "--threshold", "-t", min=1, help="Minimum file size in bytes (default: 100 MB)"
    ),
    delete: bool = typer.Option(False, "--delete", help="Delete the files found"),
    pick: Optional[str] = typer.Option(
        None, "--pick", "-p", help="Delete only these rows, e.g. 1,3-5 (implies --delete)"
    ),
    yes: bool = typer.Option(False, "-y", "--yes", help="Skip confirmation prompts"),
) -> None:
    """Scan a folder for large files."""
    session = _make_session()
    terminal: list[SessionEvent] = []

    with show_scanning_progress() as progress:
        task = progress.add_task("Starting...", total=None, found=0)

        def on_event(event: SessionEvent) -> None:
            if isinstance(event, ScanProgressEvent):
                progress.update(
                    task,
                    description=escape(shorten_path(event.progress.current_path)),
                    found=event.progress.items_found,
                )
            elif isinstance(event, (ScanCompletedEvent, ScanCancelledEvent, ScanFailedEvent)):
                terminal.append(event)

        session.subscribe(on_event)
        session.start(path, threshold=threshold)
        try:
            session.wait()
        except KeyboardInterrupt:
            session.cancel()
            session.wait()

    if terminal:
        event = terminal[-1]
        error = event.error if isinstance(event, ScanFailedEvent) else None
        outcome = None if error else event.outcome
    else:
        error = session.last_error if session.state == SessionState.FAILED else None
        outcome = None if error else _outcome_from_session(session, path, threshold)

    if error is not None:
        console.print(f"[red]Error: {escape(str(error))}[/red]")
        raise typer.Exit(1)

    show_results(outcome)

    entries = session.results
    if not (delete or pick) or not entries:
        return

    if pick:
        try:
            rows = parse_selection(pick, len(entries))
        except ValueError as e:
            console.print(f"[red]Invalid selection: {escape(str(e))}[/red]")
            raise typer.Exit(1)
        entries = [entries[i] for i in rows]

    console.print()
    if not yes:
        noun = "file" if len(entries) == 1 else "files"
        if not confirm_action(
            f"Delete {len(entries)} {noun}? This action cannot be undone."
        ):
            console.print("[yellow]Cancelled[/yellow]")
            raise typer.Exit(0)

    reports: list[DeletionFinishedEvent] = []
    session.subscribe(lambda e: reports.append(e) if isinstance(e, DeletionFinishedEvent) else None)
    session.delete_files([e.id for e in entries])
    session.wait()

    report = reports[-1].report
    show_deletion_summary(report, entries)
    if report.failed:
        raise typer.Exit(1)


@app.command()
def status(
    path: str = typer.Argument("/", help="Any path on the volume to check"),
) -> None:
    """Show disk usage of a volume."""
    try:
        disk_usage = get_disk_usage(path)
    except DiskUsageQueryError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)
    show_status(disk_usage)


@app.command(name="empty-trash")
def empty_trash_command(
    yes: bool = typer.Option(False, "-y", "--yes", help="Skip confirmation prompts"),
) -> None:
    """Permanently erase the items in the Trash."""
    if not yes:
        if not confirm_action(
            "Permanently erase the items in the Trash? This action cannot be undone."
        ):
            console.print("[yellow]Cancelled[/yellow]")
            raise typer.Exit(0)

    session = _make_session()
    outcome: list[TrashEmptiedEvent] = []
    session.subscribe(lambda e: outcome.append(e) if isinstance(e, TrashEmptiedEvent) else None)
    session.empty_trash()
    session.wait()

    event = outcome[-1]
    if not event.success:
        console.print(f"[red]Error emptying trash: {escape(str(event.error))}[/red]")
        raise typer.Exit(1)
    console.print("[green]✓[/green] Trash emptied")

    # A failed disk usage query is logged by the session and returns None
    disk_usage = session.refresh_disk_usage()
    if disk_usage is not None:
        show_status(disk_usage)


@app.command()
def protected() -> None:
    """List locations that are never scanned or deleted."""
    show_protected(load_config().make_guard().prefixes)


if __name__ == "__main__":
    app()
