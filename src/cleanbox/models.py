"""Data models for Cleanbox."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Mapping

from .constants import DEFAULT_LIST_FOLDER


@dataclass(frozen=True)
class MessageView:
    """Read-only projection of a message used for classification."""

    from_address: str = ""  # lower-cased
    from_domain: str = ""
    has_authentication_header: bool = False
    has_suspicious_header: bool = False


@dataclass
class MessageRecord:
    """One message as returned by a mailbox fetch."""

    id: int
    from_addresses: list[str] = field(default_factory=list)
    to_addresses: list[str] = field(default_factory=list)
    header_text: str = ""


@dataclass(frozen=True)
class ClassificationContext:
    """Rule data for one run. All addresses and domains are lower-case."""

    allowed_addresses: frozenset[str] = frozenset()
    allowed_domains: frozenset[str] = frozenset()
    list_domains: frozenset[str] = frozenset()
    list_domain_destinations: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    sender_destinations: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    default_list_folder: str = DEFAULT_LIST_FOLDER

    @classmethod
    def create(
        cls,
        allowed_addresses=(),
        allowed_domains=(),
        list_domains=(),
        list_domain_destinations: dict[str, str] | None = None,
        sender_destinations: dict[str, str] | None = None,
        default_list_folder: str = DEFAULT_LIST_FOLDER,
    ) -> ClassificationContext:
        """Build a context, normalizing every key to lower-case."""
        return cls(
            allowed_addresses=frozenset(a.lower() for a in allowed_addresses),
            allowed_domains=frozenset(d.lower() for d in allowed_domains),
            list_domains=frozenset(d.lower() for d in list_domains),
            list_domain_destinations=MappingProxyType(
                {k.lower(): v for k, v in (list_domain_destinations or {}).items()}
            ),
            sender_destinations=MappingProxyType(
                {k.lower(): v for k, v in (sender_destinations or {}).items()}
            ),
            default_list_folder=default_list_folder,
        )


# --- decisions ---


@dataclass(frozen=True)
class Keep:
    """Leave the message where it is."""


@dataclass(frozen=True)
class MoveTo:
    """File the message into ``folder``."""

    folder: str


@dataclass(frozen=True)
class Junk:
    """Move the message to the junk folder."""


Decision = Keep | MoveTo | Junk


# --- folder cache ---


@dataclass(frozen=True)
class FolderFingerprint:
    """``(message_count, next_uid, uid_validity)`` as reported by STATUS."""

    message_count: int = 0
    next_uid: int = 0
    uid_validity: int = 0

    @classmethod
    def from_status(cls, status: dict) -> FolderFingerprint:
        return cls(
            message_count=int(status.get("MESSAGES") or 0),
            next_uid=int(status.get("UIDNEXT") or 0),
            uid_validity=int(status.get("UIDVALIDITY") or 0),
        )


@dataclass
class FolderCacheEntry:
    """Cached sender (or recipient) addresses for a single folder."""

    folder_name: str
    addresses: list[str] = field(default_factory=list)
    fingerprint: FolderFingerprint = field(default_factory=FolderFingerprint)
    cached_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class RunSummary:
    """Outcome of one classification run."""

    name: str
    candidates: int = 0
    kept: int = 0
    junked: int = 0
    moved: dict[str, int] = field(default_factory=dict)
    changed_folders: list[str] = field(default_factory=list)
    pretend: bool = False

    @property
    def moved_total(self) -> int:
        return sum(self.moved.values())


@dataclass
class FolderInfo:
    """A server folder with its message counts."""

    name: str
    flags: tuple[bytes, ...] = ()
    total: int | None = None
    unseen: int = 0
