"""Applies classification decisions to the mailbox."""

from __future__ import annotations

import logging

from .mailbox import MailboxWriter
from .models import Decision, Junk, Keep, MessageRecord, MoveTo

logger = logging.getLogger(__name__)


class DecisionExecutor:
    """Moves, junks or keeps messages and remembers which folders changed.

    Moves are copy + mark deleted; the caller expunges once per run. In
    pretend mode decisions are only logged.
    """

    def __init__(
        self,
        mailbox: MailboxWriter,
        junk_folder: str,
        existing_folders: list[str] | None = None,
        pretend: bool = False,
    ) -> None:
        self.mailbox = mailbox
        self.junk_folder = junk_folder
        self.pretend = pretend
        self.existing_folders = set(existing_folders or [])
        self.changed_folders: list[str] = []

    def execute(self, decision: Decision, record: MessageRecord, sender: str = "") -> None:
        if isinstance(decision, Keep):
            logger.debug("Keeping message %s from '%s'", record.id, sender)
        elif isinstance(decision, MoveTo):
            self._move(record, decision.folder, sender)
        elif isinstance(decision, Junk):
            self._move(record, self.junk_folder, sender, label="junk folder")
        else:
            raise TypeError(f"Unknown decision: {decision!r}")

    def _move(self, record: MessageRecord, folder: str, sender: str, label: str = "folder") -> None:
        if self.pretend:
            logger.info("PRETEND: Would move message %s from '%s' to %s '%s'", record.id, sender, label, folder)
        else:
            logger.info("Moving message %s from '%s' to %s '%s'", record.id, sender, label, folder)
            self._ensure_folder(folder)
            self.mailbox.copy([record.id], folder)
            self.mailbox.mark_deleted([record.id])

        if folder not in self.changed_folders:
            self.changed_folders.append(folder)

    def _ensure_folder(self, folder: str) -> None:
        if folder in self.existing_folders:
            return
        logger.info("Creating folder '%s'", folder)
        self.mailbox.create_folder(folder)
        self.existing_folders.add(folder)
