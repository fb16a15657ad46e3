"""Tests for the CLI module."""

import pytest
from click.testing import CliRunner
from helpers import FakeMailbox, record

import cleanbox.cli as cli_module
from cleanbox.cache import FolderCacheStore
from cleanbox.cli import cli
from cleanbox.models import FolderCacheEntry, FolderFingerprint


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.delenv("CLEANBOX_CONFIG", raising=False)
    monkeypatch.delenv("CLEANBOX_CACHE", raising=False)
    monkeypatch.setenv("CLEANBOX_DATA_DIR", str(tmp_path))
    return tmp_path


class FakeImapMailbox(FakeMailbox):
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        pass


def test_cli_help():
    """CLI --help should work and show commands."""
    runner = CliRunner()
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    for command in ("clean", "file", "unjunk", "folders", "lists", "cache"):
        assert command in result.output


def test_cli_version():
    """CLI --version should show version."""
    runner = CliRunner()
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output


def test_clean_without_host_fails(data_dir):
    runner = CliRunner()
    result = runner.invoke(cli, ["clean"])
    assert result.exit_code != 0
    assert "host and username are required" in result.output


def test_invalid_config_file(data_dir):
    (data_dir / "cleanbox.yml").write_text("- not\n- a mapping\n")
    runner = CliRunner()
    result = runner.invoke(cli, ["lists"])
    assert result.exit_code != 0
    assert "must contain a mapping" in result.output


def test_lists(data_dir):
    (data_dir / "cleanbox.yml").write_text("list_domain_map:\n  news.example.com: Newsletters\n")
    runner = CliRunner()
    result = runner.invoke(cli, ["lists"])
    assert result.exit_code == 0
    assert "news.example.com" in result.output
    assert "Newsletters" in result.output


def test_clean_pretend(data_dir, monkeypatch):
    mailbox = FakeImapMailbox(folders={"INBOX": [record(1, "spammer@random.com")]})
    monkeypatch.setattr(cli_module.ImapMailbox, "connect", classmethod(lambda cls, *a, **kw: mailbox))
    monkeypatch.setenv("CLEANBOX_PASSWORD", "secret")

    runner = CliRunner()
    result = runner.invoke(cli, ["--host", "imap.example.com", "-u", "me", "clean", "--pretend"])

    assert result.exit_code == 0, result.output
    assert "Junked" in result.output
    assert not any(c[0] == "copy" for c in mailbox.calls)


@pytest.mark.parametrize("cache_args", [["--no-cache"], []])
def test_unusable_cache_dir_is_not_fatal(data_dir, monkeypatch, cache_args):
    (data_dir / "cache").write_text("not a directory")
    mailbox = FakeImapMailbox(folders={"INBOX": [record(1, "spammer@random.com")]})
    monkeypatch.setattr(cli_module.ImapMailbox, "connect", classmethod(lambda cls, *a, **kw: mailbox))
    monkeypatch.setenv("CLEANBOX_PASSWORD", "secret")

    runner = CliRunner()
    result = runner.invoke(
        cli, ["--host", "imap.example.com", "-u", "me", *cache_args, "clean", "--pretend"]
    )

    assert result.exit_code == 0, result.output
    assert "Junked" in result.output
    assert (data_dir / "cache").is_file()


def test_no_cache_does_not_create_database(data_dir, monkeypatch):
    mailbox = FakeImapMailbox(folders={"INBOX": []})
    monkeypatch.setattr(cli_module.ImapMailbox, "connect", classmethod(lambda cls, *a, **kw: mailbox))
    monkeypatch.setenv("CLEANBOX_PASSWORD", "secret")

    runner = CliRunner()
    result = runner.invoke(cli, ["--host", "imap.example.com", "-u", "me", "--no-cache", "clean"])

    assert result.exit_code == 0, result.output
    assert not (data_dir / "cache" / "folder_emails.db").exists()


def test_mailbox_errors_become_click_errors(data_dir, monkeypatch):
    def refuse(cls, *args, **kwargs):
        raise OSError("connection refused")

    monkeypatch.setattr(cli_module.ImapMailbox, "connect", classmethod(refuse))
    monkeypatch.setenv("CLEANBOX_PASSWORD", "secret")

    runner = CliRunner()
    result = runner.invoke(cli, ["--host", "imap.example.com", "-u", "me", "folders"])

    assert result.exit_code != 0
    assert "connection refused" in result.output


def test_cache_info_empty(data_dir):
    """Cache info on empty cache should not crash."""
    runner = CliRunner()
    result = runner.invoke(cli, ["cache", "info"])
    assert result.exit_code == 0
    assert "Cache is empty" in result.output


def test_cache_info_and_clear(data_dir):
    with FolderCacheStore(data_dir / "cache" / "folder_emails.db") as store:
        store.save(FolderCacheEntry("Friends", ["a@x.com"], FolderFingerprint(10, 11, 100)))

    runner = CliRunner()
    result = runner.invoke(cli, ["cache", "info"])
    assert result.exit_code == 0
    assert "Folder Cache" in result.output

    result = runner.invoke(cli, ["cache", "clear"])
    assert result.exit_code == 0
    assert "Cache cleared" in result.output

    with FolderCacheStore(data_dir / "cache" / "folder_emails.db") as store:
        assert store.entries() == []
