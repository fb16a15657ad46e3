"""SQLite cache of per-folder address lists, validated by folder fingerprints."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import date, datetime, timezone
from pathlib import Path

from .constants import ENVELOPE_CHUNK_SIZE, ENVELOPE_FETCH_SPEC, STATUS_FIELDS
from .headers import domain_of
from .mailbox import Mailbox
from .models import FolderCacheEntry, FolderFingerprint

logger = logging.getLogger(__name__)

ADDRESS_FIELDS = ("from", "to")

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS folder_cache (
    folder_name TEXT PRIMARY KEY,
    addresses_json TEXT NOT NULL,
    message_count INTEGER NOT NULL,
    next_uid INTEGER NOT NULL,
    uid_validity INTEGER NOT NULL,
    cached_at TEXT NOT NULL
);
"""


class FolderCacheStore:
    """Persistent SQLite store holding one FolderCacheEntry per folder.

    Each write is a single transaction, so a failed write leaves the previous
    entry in place. Concurrent processes sharing a database are not
    coordinated beyond SQLite's own locking: the last writer wins.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._open()
        except sqlite3.OperationalError:
            # locked or unopenable, the file itself may be fine
            raise
        except sqlite3.DatabaseError as exc:
            corrupt_path = self.db_path.with_name(self.db_path.name + ".corrupt")
            logger.warning(
                "Folder cache %s is unreadable (%s), moving it to %s", self.db_path, exc, corrupt_path
            )
            self.db_path.replace(corrupt_path)
            self._open()

    def _open(self) -> None:
        conn = sqlite3.connect(str(self.db_path))
        try:
            conn.executescript(_CREATE_TABLES_SQL)
        except sqlite3.DatabaseError:
            conn.close()
            raise
        conn.row_factory = sqlite3.Row
        self._conn = conn

    # --- public API ---

    def load(self, folder_name: str) -> FolderCacheEntry | None:
        """Return the entry for ``folder_name``, or None if missing or unreadable."""
        try:
            row = self._conn.execute(
                "SELECT * FROM folder_cache WHERE folder_name = ?", (folder_name,)
            ).fetchone()
        except sqlite3.DatabaseError as exc:
            logger.warning("Could not read cache for folder %s: %s", folder_name, exc)
            return None

        if row is None:
            return None

        try:
            return _entry_from_row(row)
        except (ValueError, TypeError) as exc:
            logger.warning("Discarding corrupt cache entry for folder %s: %s", folder_name, exc)
            return None

    def save(self, entry: FolderCacheEntry) -> None:
        """Insert or replace the entry for ``entry.folder_name``."""
        with self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO folder_cache (folder_name, addresses_json, "
                "message_count, next_uid, uid_validity, cached_at) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    entry.folder_name,
                    json.dumps(entry.addresses),
                    entry.fingerprint.message_count,
                    entry.fingerprint.next_uid,
                    entry.fingerprint.uid_validity,
                    entry.cached_at.isoformat(),
                ),
            )

    def update_fingerprint(
        self, folder_name: str, fingerprint: FolderFingerprint, cached_at: datetime
    ) -> bool:
        """Rewrite only the fingerprint and timestamp. Returns False if no entry exists."""
        with self._conn:
            cursor = self._conn.execute(
                "UPDATE folder_cache SET message_count = ?, next_uid = ?, uid_validity = ?, "
                "cached_at = ? WHERE folder_name = ?",
                (
                    fingerprint.message_count,
                    fingerprint.next_uid,
                    fingerprint.uid_validity,
                    cached_at.isoformat(),
                    folder_name,
                ),
            )
        return cursor.rowcount > 0

    def entries(self) -> list[FolderCacheEntry]:
        rows = self._conn.execute("SELECT * FROM folder_cache ORDER BY folder_name").fetchall()
        result = []
        for row in rows:
            try:
                result.append(_entry_from_row(row))
            except (ValueError, TypeError):
                continue
        return result

    def clear(self) -> None:
        """Drop and recreate all tables."""
        self._conn.executescript("DROP TABLE IF EXISTS folder_cache;")
        self._conn.executescript(_CREATE_TABLES_SQL)

    def get_info(self) -> dict:
        """Return cache statistics."""
        file_size = self.db_path.stat().st_size if self.db_path.exists() else 0
        row = self._conn.execute(
            "SELECT COUNT(*) AS c, MAX(cached_at) AS last FROM folder_cache"
        ).fetchone()
        return {
            "db_file_size": file_size,
            "folder_count": row["c"],
            "last_cached_at": row["last"],
        }

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # --- context manager ---

    def __enter__(self) -> FolderCacheStore:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.close()


def _entry_from_row(row: sqlite3.Row) -> FolderCacheEntry:
    addresses = json.loads(row["addresses_json"])
    if not isinstance(addresses, list):
        raise ValueError("addresses_json is not a list")
    return FolderCacheEntry(
        folder_name=row["folder_name"],
        addresses=[str(a) for a in addresses],
        fingerprint=FolderFingerprint(
            message_count=int(row["message_count"]),
            next_uid=int(row["next_uid"]),
            uid_validity=int(row["uid_validity"]),
        ),
        cached_at=datetime.fromisoformat(row["cached_at"]),
    )


def unique(items) -> list[str]:
    """De-duplicate, keeping first-seen order."""
    return list(dict.fromkeys(items))


class AddressCache:
    """Addresses seen in a folder, rescanned only when the folder changes.

    ``store`` may be None, in which case every call rescans and nothing is
    persisted. ``enabled=False`` has the same effect with a store present.
    """

    def __init__(
        self,
        mailbox: Mailbox,
        store: FolderCacheStore | None = None,
        enabled: bool = True,
    ) -> None:
        self.mailbox = mailbox
        self.store = store
        self.enabled = enabled and store is not None
        # folders whose entry matched the mailbox at some point in this run
        self.validated: set[str] = set()

    def fingerprint(self, folder: str) -> FolderFingerprint:
        return FolderFingerprint.from_status(self.mailbox.status(folder, STATUS_FIELDS))

    def addresses_for(
        self,
        folder: str,
        address_field: str = "from",
        since: date | None = None,
    ) -> list[str]:
        """Return the de-duplicated addresses of ``address_field`` in ``folder``."""
        if address_field not in ADDRESS_FIELDS:
            raise ValueError(f"address_field must be one of {ADDRESS_FIELDS}, got {address_field!r}")

        current = self.fingerprint(folder)

        if self.enabled:
            entry = self.store.load(folder)
            if entry is not None and entry.fingerprint == current:
                logger.debug("Using cached addresses for folder %s", folder)
                self.validated.add(folder)
                return list(entry.addresses)

        addresses = self._scan(folder, address_field, since)

        if self.enabled:
            entry = FolderCacheEntry(
                folder_name=folder,
                addresses=addresses,
                fingerprint=current,
                cached_at=datetime.now(timezone.utc),
            )
            try:
                self.store.save(entry)
            except sqlite3.Error as exc:
                logger.warning("Could not save cache for folder %s: %s", folder, exc)
            else:
                self.validated.add(folder)
                logger.debug("Cached %d addresses for folder %s", len(addresses), folder)

        return addresses

    def domains_for(
        self,
        folder: str,
        address_field: str = "from",
        since: date | None = None,
    ) -> list[str]:
        """Domains of :meth:`addresses_for`, de-duplicated."""
        return unique(
            d for d in (domain_of(a) for a in self.addresses_for(folder, address_field, since)) if d
        )

    def touch_fingerprint(self, folder: str) -> FolderCacheEntry | None:
        """Record the folder's current fingerprint without rescanning it.

        Only the caller knows that a change (e.g. expunging, or moving mail
        from already-known senders into the folder) introduced no new
        addresses. Does nothing when caching is off, when the folder has no
        entry yet, or when its entry was not checked against the mailbox
        earlier in this run: stamping an unchecked entry would hide any
        change made before the run.
        """
        if not self.enabled:
            return None
        if folder not in self.validated:
            logger.debug("Not touching unvalidated cache entry for folder %s", folder)
            return None
        if self.store.load(folder) is None:
            return None

        current = self.fingerprint(folder)
        try:
            self.store.update_fingerprint(folder, current, datetime.now(timezone.utc))
        except sqlite3.Error as exc:
            logger.warning("Could not update cache fingerprint for folder %s: %s", folder, exc)
            return None
        return self.store.load(folder)

    def _scan(self, folder: str, address_field: str, since: date | None) -> list[str]:
        logger.debug("Scanning addresses in folder %s", folder)
        self.mailbox.select(folder)

        criteria: list = ["NOT", "DELETED"]
        if since is not None:
            criteria += ["SINCE", since]
        ids = self.mailbox.search(criteria)
        if not ids:
            return []

        logger.debug("Found %d messages in folder %s", len(ids), folder)
        addresses: list[str] = []
        for start in range(0, len(ids), ENVELOPE_CHUNK_SIZE):
            chunk = ids[start:start + ENVELOPE_CHUNK_SIZE]
            for record in self.mailbox.fetch(chunk, ENVELOPE_FETCH_SPEC):
                found = record.from_addresses if address_field == "from" else record.to_addresses
                addresses.extend(a.lower() for a in found if a)
        return unique(addresses)
