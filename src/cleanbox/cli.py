"""CLI entry point for Cleanbox."""

from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager

import click
from imapclient.exceptions import IMAPClientError

from .cache import FolderCacheStore
from .config import ConfigError, Settings, load_settings
from .constants import ENV_PASSWORD
from .display import (
    console,
    create_progress,
    display_cache_entries,
    display_folders,
    display_list_domains,
    display_run_summary,
    setup_logging,
)
from .mailbox import ImapMailbox
from .runner import Cleanbox

logger = logging.getLogger(__name__)


@click.group()
@click.version_option(version="0.1.0", prog_name="cleanbox")
@click.option("-c", "--config", "config_file", default=None, help="Path to a cleanbox.yml config file.")
@click.option("-D", "--data-dir", default=None, help="Directory holding the config and folder cache.")
@click.option("--host", default=None, help="IMAP server host.")
@click.option("-u", "--username", default=None, help="IMAP username.")
@click.option("--no-cache", is_flag=True, help="Rescan folders instead of using the folder cache.")
@click.option(
    "-L",
    "--level",
    type=click.Choice(["debug", "info", "warn", "error"]),
    default=None,
    help="Log level.",
)
@click.option("-v", "--verbose", is_flag=True, help="Shortcut for --level debug.")
@click.pass_context
def cli(
    ctx: click.Context,
    config_file: str | None,
    data_dir: str | None,
    host: str | None,
    username: str | None,
    no_cache: bool,
    level: str | None,
    verbose: bool,
) -> None:
    """Cleanbox - keep, file or junk mail based on who you already talk to."""
    overrides = {
        "data_dir": data_dir,
        "host": host,
        "username": username,
        "cache": False if no_cache else None,
        "level": "debug" if verbose else level,
    }
    try:
        settings = load_settings(config_file, overrides)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    setup_logging(settings.level, settings.log_file)
    ctx.obj = settings


def _open_store(settings: Settings) -> FolderCacheStore | None:
    """Folder cache for this run, or None when caching is off or unusable."""
    if not settings.cache_enabled:
        return None
    try:
        return FolderCacheStore(settings.cache_db_path)
    except (OSError, sqlite3.Error) as e:
        logger.warning("Folder cache at %s is unavailable, rescanning folders: %s", settings.cache_db_path, e)
        return None


@contextmanager
def _session(settings: Settings):
    """Connected mailbox plus folder cache, closed on exit."""
    if not settings.host or not settings.username:
        raise click.ClickException(
            "IMAP host and username are required (set them in cleanbox.yml or pass --host/--username)."
        )
    password = os.environ.get(ENV_PASSWORD) or click.prompt(
        f"Password for {settings.username}", hide_input=True
    )

    try:
        mailbox = ImapMailbox.connect(settings.host, settings.username, password, port=settings.port)
    except (IMAPClientError, OSError) as e:
        raise click.ClickException(f"Could not connect to {settings.host}: {e}") from e

    store = _open_store(settings)
    try:
        with mailbox:
            try:
                yield Cleanbox(mailbox, settings, store=store)
            except (IMAPClientError, OSError) as e:
                raise click.ClickException(f"Mailbox error: {e}") from e
    finally:
        if store is not None:
            store.close()


def _run(settings: Settings, workflow: str, description: str) -> None:
    with _session(settings) as cleanbox:
        with create_progress(description) as progress:
            task = progress.add_task(workflow, total=None)

            def on_chunk(done: int, total: int) -> None:
                progress.update(task, completed=done, total=total)

            summary = getattr(cleanbox, workflow)(callback=on_chunk)

    display_run_summary(summary)


def _apply_run_options(settings: Settings, pretend: bool, all_messages: bool = False, since=None) -> None:
    if pretend:
        settings.pretend = True
    if all_messages:
        settings.all_messages = True
    if since is not None:
        settings.since = since.date()


@cli.command()
@click.option("-n", "--pretend", is_flag=True, help="Log decisions without moving anything.")
@click.pass_obj
def clean(settings: Settings, pretend: bool) -> None:
    """Triage unseen inbox mail."""
    _apply_run_options(settings, pretend)
    _run(settings, "clean", "Cleaning inbox")


@cli.command(name="file")
@click.option("-n", "--pretend", is_flag=True, help="Log decisions without moving anything.")
@click.option("-a", "--all-messages", is_flag=True, help="Ignore the lookback window.")
@click.option("-s", "--since", type=click.DateTime(formats=["%Y-%m-%d"]), default=None, help="Only messages since this date.")
@click.pass_obj
def file_cmd(settings: Settings, pretend: bool, all_messages: bool, since) -> None:
    """File existing inbox mail into the folders its senders belong to."""
    _apply_run_options(settings, pretend, all_messages, since)
    _run(settings, "file", "Filing messages")


@cli.command()
@click.option("-n", "--pretend", is_flag=True, help="Log decisions without moving anything.")
@click.option("-a", "--all-messages", is_flag=True, help="Ignore the lookback window.")
@click.option("-s", "--since", type=click.DateTime(formats=["%Y-%m-%d"]), default=None, help="Only messages since this date.")
@click.pass_obj
def unjunk(settings: Settings, pretend: bool, all_messages: bool, since) -> None:
    """Move mail from known senders out of the junk folder."""
    _apply_run_options(settings, pretend, all_messages, since)
    _run(settings, "unjunk", "Unjunking messages")


@cli.command()
@click.pass_obj
def folders(settings: Settings) -> None:
    """List server folders with message counts."""
    with _session(settings) as cleanbox:
        overview = cleanbox.folder_overview()

    roles = {folder: "[blue]list[/blue]" for folder in settings.effective_list_folders}
    roles.update({folder: "[green]allow[/green]" for folder in settings.whitelist_folders})
    display_folders(overview, roles)


@cli.command()
@click.pass_obj
def lists(settings: Settings) -> None:
    """Show the configured list domain to folder map."""
    display_list_domains(settings.list_domain_map)


@cli.group(name="cache")
def cache_group() -> None:
    """Manage the folder address cache."""


@cache_group.command(name="info")
@click.pass_obj
def cache_info(settings: Settings) -> None:
    """Show cache statistics."""
    with FolderCacheStore(settings.cache_db_path) as store:
        info = store.get_info()
        entries = store.entries()

    if not info["folder_count"]:
        console.print("[dim]Cache is empty.[/dim]")
        return

    console.print(f"[bold]Database:[/bold] {settings.cache_db_path}")
    console.print(f"[bold]Database size:[/bold] {info['db_file_size'] / 1024:.1f} KB")
    console.print(f"[bold]Last update:[/bold] {info['last_cached_at']}")
    display_cache_entries(entries)


@cache_group.command(name="clear")
@click.pass_obj
def cache_clear(settings: Settings) -> None:
    """Clear the folder cache."""
    with FolderCacheStore(settings.cache_db_path) as store:
        store.clear()
    console.print("[green]Cache cleared.[/green]")
