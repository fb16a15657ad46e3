"""Rich-based display functions for Cleanbox."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from .constants import SPECIAL_USE_JUNK, SPECIAL_USE_SENT
from .models import FolderCacheEntry, FolderInfo, RunSummary

console = Console()

_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def setup_logging(level: str = "info", log_file: str | None = None) -> None:
    """Send log records to the console, and to ``log_file`` when given."""
    handlers: list[logging.Handler] = [
        RichHandler(console=console, show_time=True, show_path=False, markup=False)
    ]
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=_LOG_LEVELS.get(level.lower(), logging.INFO),
        format="%(message)s",
        handlers=handlers,
        force=True,
    )
    logging.getLogger("imapclient").setLevel(logging.WARNING)


def create_progress(description: str) -> Progress:
    """Create a configured Rich Progress bar."""
    return Progress(
        SpinnerColumn(),
        TextColumn(f"[bold blue]{description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
    )


def display_run_summary(summary: RunSummary) -> None:
    """Show how many messages were kept, moved and junked."""
    table = Table(title=f"Results: {summary.name}")
    table.add_column("Outcome")
    table.add_column("Messages", justify="right")

    table.add_row("[green]Kept[/green]", str(summary.kept))
    for folder, count in sorted(summary.moved.items()):
        table.add_row(f"[blue]Moved to {folder}[/blue]", str(count))
    table.add_row("[red]Junked[/red]", str(summary.junked))

    console.print(table)

    prefix = "[yellow][PRETEND][/yellow] " if summary.pretend else ""
    console.print(
        Panel(
            f"{prefix}Candidates: {summary.candidates}  |  "
            f"Moved: {summary.moved_total}  |  Junked: {summary.junked}",
            title="Summary",
        )
    )


def _folder_marker(info: FolderInfo, roles: dict[str, str]) -> str:
    if SPECIAL_USE_JUNK in info.flags:
        return "[red]junk[/red]"
    if SPECIAL_USE_SENT in info.flags:
        return "[magenta]sent[/magenta]"
    return roles.get(info.name, "")


def display_folders(folders: list[FolderInfo], roles: dict[str, str] | None = None) -> None:
    """Show server folders with counts and the role Cleanbox gives them."""
    roles = roles or {}
    table = Table(title="Folders")
    table.add_column("Folder")
    table.add_column("Role")
    table.add_column("Total", justify="right")
    table.add_column("Unread", justify="right")

    for info in folders:
        table.add_row(
            info.name,
            _folder_marker(info, roles),
            "" if info.total is None else str(info.total),
            str(info.unseen) if info.unseen else "",
        )

    console.print(table)


def display_list_domains(domain_map: dict[str, str]) -> None:
    """Show the domain -> folder map used for list mail."""
    if not domain_map:
        console.print("[dim]No list domains configured.[/dim]")
        return

    table = Table(title="List Domains")
    table.add_column("Domain")
    table.add_column("Folder")
    for domain, folder in sorted(domain_map.items()):
        table.add_row(domain, folder)
    console.print(table)


def display_cache_entries(entries: list[FolderCacheEntry]) -> None:
    """Show one row per cached folder."""
    table = Table(title="Folder Cache")
    table.add_column("Folder")
    table.add_column("Addresses", justify="right")
    table.add_column("Messages", justify="right")
    table.add_column("UIDNEXT", justify="right")
    table.add_column("UIDVALIDITY", justify="right")
    table.add_column("Cached at")

    for entry in entries:
        table.add_row(
            entry.folder_name,
            str(len(entry.addresses)),
            str(entry.fingerprint.message_count),
            str(entry.fingerprint.next_uid),
            str(entry.fingerprint.uid_validity),
            entry.cached_at.isoformat(timespec="seconds"),
        )

    console.print(table)
