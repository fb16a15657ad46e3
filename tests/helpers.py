"""Test helpers: an in-memory mailbox and message record builders."""

from __future__ import annotations

from cleanbox.models import MessageRecord


def header_block(sender: str, to: str = "me@home.org", extra: str = "") -> str:
    lines = [f"From: {sender}", f"To: {to}", "Subject: Hello", "Date: Mon, 1 Jan 2024 10:00:00 +0000"]
    if extra:
        lines.append(extra)
    return "\r\n".join(lines) + "\r\n\r\n"


class FakeMailbox:
    """In-memory mailbox that records every call.

    ``folders`` maps folder name -> list of MessageRecord; ids are the
    records' ``id`` values. ``stats`` overrides STATUS results per folder.
    """

    def __init__(self, folders=None, flags=None, stats=None) -> None:
        self.folders: dict[str, list[MessageRecord]] = folders or {}
        self.flags: dict[str, tuple[bytes, ...]] = flags or {}
        self.stats: dict[str, dict[str, int]] = stats or {}
        self.selected: str | None = None
        self.calls: list[tuple] = []
        self.deleted: set[int] = set()
        self.expunged = 0

    # --- Mailbox ---

    def select(self, folder):
        self.calls.append(("select", folder))
        if folder not in self.folders:
            raise KeyError(folder)
        self.selected = folder

    def search(self, criteria):
        self.calls.append(("search", list(criteria)))
        return [r.id for r in self.folders[self.selected]]

    def fetch(self, ids, spec):
        self.calls.append(("fetch", list(ids), spec))
        wanted = set(ids)
        return [r for r in self.folders[self.selected] if r.id in wanted]

    def status(self, folder, fields):
        self.calls.append(("status", folder))
        if folder in self.stats:
            return dict(self.stats[folder])
        messages = self.folders.get(folder, [])
        return {"MESSAGES": len(messages), "UIDNEXT": len(messages) + 1, "UIDVALIDITY": 1, "UNSEEN": 0}

    # --- MailboxWriter ---

    def list_folders(self):
        return [(self.flags.get(name, ()), name) for name in self.folders]

    def create_folder(self, folder):
        self.calls.append(("create", folder))
        self.folders[folder] = []

    def copy(self, ids, folder):
        self.calls.append(("copy", list(ids), folder))
        for record in self.folders[self.selected]:
            if record.id in ids:
                self.folders[folder].append(record)

    def mark_deleted(self, ids):
        self.calls.append(("mark_deleted", list(ids)))
        self.deleted.update(ids)

    def expunge(self):
        self.calls.append(("expunge",))
        self.expunged += 1

    # --- helpers ---

    def io_calls(self):
        return [c for c in self.calls if c[0] in ("select", "search", "fetch")]


def record(msg_id: int, sender: str, to: str = "me@home.org", extra: str = "") -> MessageRecord:
    address = sender.split("<")[-1].rstrip(">").strip().lower()
    recipient = to.split("<")[-1].rstrip(">").strip().lower()
    return MessageRecord(
        id=msg_id,
        from_addresses=[address],
        to_addresses=[recipient],
        header_text=header_block(sender, to, extra),
    )
