"""Shared fixtures for tests."""

from __future__ import annotations

from datetime import date

import pytest
from helpers import FakeMailbox, record

from cleanbox.cache import AddressCache, FolderCacheStore
from cleanbox.models import ClassificationContext


@pytest.fixture
def store(tmp_path):
    with FolderCacheStore(tmp_path / "cache" / "folder_emails.db") as s:
        yield s


@pytest.fixture
def friends_mailbox() -> FakeMailbox:
    return FakeMailbox(
        folders={
            "Friends": [
                record(1, "Alice <Alice@Example.com>"),
                record(2, "bob@example.org"),
                record(3, "alice@example.com"),
            ],
        }
    )


@pytest.fixture
def address_cache(friends_mailbox, store) -> AddressCache:
    return AddressCache(friends_mailbox, store)


@pytest.fixture
def basic_context() -> ClassificationContext:
    return ClassificationContext.create(
        allowed_addresses=["a@x.com"],
        allowed_domains=["trusted.com"],
        list_domains=["news.example.com", "lists.example.org"],
        list_domain_destinations={"news.example.com": "Newsletters"},
        sender_destinations={"friend@pals.net": "Friends", "editor@news.example.com": "Editors"},
    )


@pytest.fixture
def today() -> date:
    return date(2024, 6, 15)
