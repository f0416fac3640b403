"""Rich terminal display for iclean."""

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from iclean.models import DeletionReport, DiskUsage, FileEntry, ScanOutcome

console = Console()


def format_size(size_bytes: int) -> str:
    """Format bytes to human-readable string (decimal units like macOS)."""
    if size_bytes >= 1000**4:
        return f"{size_bytes / (1000**4):.1f} TB"
    elif size_bytes >= 1000**3:
        return f"{size_bytes / (1000**3):.1f} GB"
    elif size_bytes >= 1000**2:
        return f"{size_bytes / (1000**2):.1f} MB"
    elif size_bytes >= 1000:
        return f"{size_bytes / 1000:.1f} KB"
    else:
        return f"{size_bytes} B"


def shorten_path(path: str, width: int = 60) -> str:
    """Truncate the middle of a long path."""
    if len(path) <= width:
        return path
    keep = (width - 3) // 2
    return f"{path[:keep]}...{path[-(width - 3 - keep):]}"


def usage_color(fraction: float) -> str:
    if fraction >= 0.9:
        return "red"
    elif fraction >= 0.75:
        return "yellow"
    return "green"


def show_status(disk_usage: DiskUsage) -> None:
    """Display disk usage summary."""
    fraction = disk_usage.used_percentage
    color = usage_color(fraction)

    table = Table(title=f"Disk Usage ({escape(disk_usage.mount_point)})", show_header=True, header_style="bold")
    table.add_column("Total", justify="right")
    table.add_column("Used", justify="right")
    table.add_column("Free", justify="right")
    table.add_column("Usage", justify="right")

    table.add_row(
        format_size(disk_usage.total_bytes),
        format_size(disk_usage.used_bytes),
        f"[bold]{format_size(disk_usage.free_bytes)}[/bold]",
        f"[{color}]{fraction * 100:.0f}% Used[/{color}]",
    )

    console.print(table)


def show_scanning_progress() -> Progress:
    """Create a live progress display for scanning."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[bold]{task.fields[found]}[/bold] items found"),
        TextColumn("[dim]{task.description}[/dim]"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )


def show_results(outcome: ScanOutcome) -> None:
    """Display scan results, largest first."""
    if outcome.cancelled:
        console.print("[yellow]Scan cancelled - showing files found so far[/yellow]")

    if not outcome.entries:
        console.print("[bold]No large files found[/bold]")
        console.print("[dim]Try scanning a different folder[/dim]")
        return

    table = Table(
        title=f"Files >= {format_size(outcome.threshold)} in {escape(outcome.root)}",
        show_header=True,
        header_style="bold",
    )
    table.add_column("#", justify="right", style="dim")
    table.add_column("Name", style="bold", no_wrap=True)
    table.add_column("Size", justify="right")
    table.add_column("Modified")
    table.add_column("Path", style="dim", overflow="fold")

    for i, entry in enumerate(outcome.entries, 1):
        table.add_row(
            str(i),
            escape(entry.name),
            format_size(entry.size),
            entry.modified_at.strftime("%Y-%m-%d"),
            escape(entry.path),
        )

    console.print(table)
    count = len(outcome.entries)
    noun = "file" if count == 1 else "files"
    console.print(f"[bold]{count} {noun}, {format_size(outcome.total_bytes)} total[/bold]")


def show_deletion_summary(report: DeletionReport, entries: list[FileEntry]) -> None:
    """Display which deletions succeeded and why the others failed."""
    paths = {e.id: e.path for e in entries}
    deleted = len(report.succeeded)
    total = report.attempted
    noun = "file" if total == 1 else "files"

    if not report.failed:
        console.print(
            f"[green]✓[/green] Deleted {deleted} of {total} {noun} "
            f"({format_size(report.bytes_freed)} freed)"
        )
        return

    console.print(
        f"[yellow]![/yellow] Deleted {deleted} of {total} {noun}; "
        f"{len(report.failed)} failed ({format_size(report.bytes_freed)} freed)"
    )
    for entry_id, reason in report.failed.items():
        console.print(f"  [red]✗[/red] {escape(paths.get(entry_id, entry_id))}: {escape(reason)}")


def show_protected(prefixes: tuple[str, ...]) -> None:
    """List protected locations."""
    console.print(
        Panel(
            "\n".join(f"• {escape(p)}" for p in prefixes),
            title="Protected Locations",
            border_style="red",
        )
    )
    console.print("[dim]These locations are never scanned or deleted.[/dim]")


def confirm_action(message: str) -> bool:
    """Ask for confirmation."""
    from rich.prompt import Confirm

    return Confirm.ask(message)
