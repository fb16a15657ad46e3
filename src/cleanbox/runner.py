"""Run orchestration - builds the context, classifies candidates, applies decisions."""

from __future__ import annotations

import dataclasses
import logging
from datetime import date
from typing import Callable

from .cache import AddressCache, FolderCacheStore
from .classifier import classify_for_filing, classify_for_unjunking, classify_incoming
from .config import Settings, unique_folders
from .constants import (
    DEFAULT_JUNK_FOLDER,
    DEFAULT_SENT_FOLDER,
    HEADER_CHUNK_SIZE,
    HEADER_FETCH_SPEC,
    INBOX,
    SPECIAL_USE_JUNK,
    SPECIAL_USE_SENT,
)
from .context import ContextBuilder
from .executor import DecisionExecutor
from .headers import domain_of, message_view_from_headers
from .mailbox import MailboxWriter
from .models import (
    ClassificationContext,
    Decision,
    FolderInfo,
    Junk,
    Keep,
    MessageRecord,
    MessageView,
    MoveTo,
    RunSummary,
)

logger = logging.getLogger(__name__)

Classify = Callable[[MessageView, ClassificationContext], Decision]
ProgressCallback = Callable[[int, int], None]


def message_view(record: MessageRecord) -> MessageView:
    """MessageView for a fetched record, falling back to the fetched From list."""
    view = message_view_from_headers(record.header_text)
    if not view.from_address and record.from_addresses:
        address = record.from_addresses[0].lower()
        view = dataclasses.replace(view, from_address=address, from_domain=domain_of(address))
    return view


class Cleanbox:
    """Runs the clean, file and unjunk workflows against one mailbox."""

    def __init__(
        self,
        mailbox: MailboxWriter,
        settings: Settings,
        store: FolderCacheStore | None = None,
        today: date | None = None,
    ) -> None:
        self.mailbox = mailbox
        self.settings = settings
        self.cache = AddressCache(mailbox, store, enabled=settings.cache_enabled)
        self.today = today

    # --- folders ---

    @property
    def folder_names(self) -> list[str]:
        return [name for _flags, name in self.mailbox.list_folders()]

    def _special_use_folder(self, flag: bytes) -> str | None:
        for flags, name in self.mailbox.list_folders():
            if flag in flags:
                return name
        return None

    @property
    def junk_folder(self) -> str:
        return (
            self.settings.junk_folder
            or self._special_use_folder(SPECIAL_USE_JUNK)
            or DEFAULT_JUNK_FOLDER
        )

    @property
    def sent_folder(self) -> str:
        return (
            self.settings.sent_folder
            or self._special_use_folder(SPECIAL_USE_SENT)
            or DEFAULT_SENT_FOLDER
        )

    def context_builder(self) -> ContextBuilder:
        return ContextBuilder(
            self.cache,
            self.settings,
            self.folder_names,
            sent_folder=self.sent_folder,
            today=self.today,
        )

    def folder_overview(self) -> list[FolderInfo]:
        """Every folder with its total and unseen message counts."""
        overview = []
        for flags, name in self.mailbox.list_folders():
            if b"\\Noselect" in flags:
                overview.append(FolderInfo(name=name, flags=flags))
                continue
            status = self.mailbox.status(name, ["MESSAGES", "UNSEEN"])
            overview.append(
                FolderInfo(
                    name=name,
                    flags=flags,
                    total=int(status.get("MESSAGES") or 0),
                    unseen=int(status.get("UNSEEN") or 0),
                )
            )
        return overview

    # --- workflows ---

    def clean(self, callback: ProgressCallback | None = None) -> RunSummary:
        """Triage unseen inbox mail: keep, file into list folders, or junk."""
        builder = self.context_builder()
        context = builder.for_incoming()
        if self.cache.enabled:
            # list folders are touched after the moves, so bring their entries up to date first
            builder.sender_destinations(self._list_destinations())
        self.mailbox.select(INBOX)
        ids = self.mailbox.search(["UNSEEN", "NOT", "DELETED"])
        return self._process("new inbox messages", ids, classify_incoming, context, callback)

    def file(self, callback: ProgressCallback | None = None) -> RunSummary:
        """Move existing inbox mail from known senders into their folders."""
        context = self.context_builder().for_filing()
        self.mailbox.select(INBOX)
        criteria = ["NOT", "DELETED"] + self._date_criteria()
        if not self.settings.file_unread:
            criteria.append("SEEN")
        ids = self.mailbox.search(criteria)
        return self._process("filing existing messages", ids, classify_for_filing, context, callback)

    def unjunk(self, callback: ProgressCallback | None = None) -> RunSummary:
        """Move junked mail from known senders back into their folders."""
        context = self.context_builder().for_filing()
        self.mailbox.select(self.junk_folder)
        ids = self.mailbox.search(["NOT", "DELETED"] + self._date_criteria())
        return self._process("unjunking", ids, classify_for_unjunking, context, callback)

    # --- internals ---

    def _list_destinations(self) -> list[str]:
        """Every folder incoming list mail can be filed into."""
        mapped = [folder for folder in self.settings.list_domain_map.values() if folder]
        return unique_folders(self.settings.effective_list_folders + [self.settings.list_folder] + mapped)

    def _date_criteria(self) -> list:
        since = self.settings.filing_since(self.today)
        if since is None:
            return []
        return ["SINCE", since]

    def _fetch_headers(self, ids: list[int], callback: ProgressCallback | None):
        total = len(ids)
        for start in range(0, total, HEADER_CHUNK_SIZE):
            chunk = ids[start:start + HEADER_CHUNK_SIZE]
            yield from self.mailbox.fetch(chunk, HEADER_FETCH_SPEC)
            if callback:
                callback(min(start + HEADER_CHUNK_SIZE, total), total)

    def _process(
        self,
        name: str,
        ids: list[int],
        classify: Classify,
        context: ClassificationContext,
        callback: ProgressCallback | None = None,
    ) -> RunSummary:
        logger.info("Processing %d messages for %s", len(ids), name)
        summary = RunSummary(name=name, candidates=len(ids), pretend=self.settings.pretend)
        executor = DecisionExecutor(
            self.mailbox,
            junk_folder=self.junk_folder,
            existing_folders=self.folder_names,
            pretend=self.settings.pretend,
        )

        for record in self._fetch_headers(ids, callback):
            view = message_view(record)
            decision = classify(view, context)
            executor.execute(decision, record, sender=view.from_address)
            _tally(summary, decision)

        summary.changed_folders = list(executor.changed_folders)
        if summary.changed_folders:
            logger.info(
                "Updated %d folders: %s", len(summary.changed_folders), ", ".join(summary.changed_folders)
            )
        else:
            logger.info("No messages were moved")

        if not self.settings.pretend:
            for folder in summary.changed_folders:
                self.cache.touch_fingerprint(folder)
            if summary.changed_folders:
                self.mailbox.expunge()

        return summary


def _tally(summary: RunSummary, decision: Decision) -> None:
    if isinstance(decision, Keep):
        summary.kept += 1
    elif isinstance(decision, MoveTo):
        summary.moved[decision.folder] = summary.moved.get(decision.folder, 0) + 1
    elif isinstance(decision, Junk):
        summary.junked += 1
