"""Mailbox access - the protocol the core depends on and an IMAP implementation."""

from __future__ import annotations

import logging
from typing import Protocol, Sequence

from imapclient import DELETED, IMAPClient
from imapclient.exceptions import IMAPClientError
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from .constants import DEFAULT_IMAP_PORT, TRANSIENT_RESPONSE_CODES
from .headers import header_addresses
from .models import MessageRecord

logger = logging.getLogger(__name__)


class Mailbox(Protocol):
    """Read access used by the address cache and the runner."""

    def select(self, folder: str) -> None: ...

    def search(self, criteria: Sequence) -> list[int]: ...

    def fetch(self, ids: Sequence[int], spec: str) -> list[MessageRecord]: ...

    def status(self, folder: str, fields: Sequence[str]) -> dict[str, int]: ...


class MailboxWriter(Mailbox, Protocol):
    """Mutating operations needed to execute decisions."""

    def list_folders(self) -> list[tuple[tuple[bytes, ...], str]]: ...

    def create_folder(self, folder: str) -> None: ...

    def copy(self, ids: Sequence[int], folder: str) -> None: ...

    def mark_deleted(self, ids: Sequence[int]) -> None: ...

    def expunge(self) -> None: ...


def _is_retryable_imap_error(exc: BaseException) -> bool:
    return isinstance(exc, IMAPClientError) and any(
        code in str(exc) for code in TRANSIENT_RESPONSE_CODES
    )


_transient_retry = retry(
    retry=retry_if_exception(_is_retryable_imap_error),
    wait=wait_exponential(multiplier=1, min=1, max=30),
    stop=stop_after_attempt(5),
    reraise=True,
)


def _decode(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _envelope_addresses(addresses) -> list[str]:
    """Turn imapclient Address tuples into lower-cased ``mailbox@host`` strings."""
    result: list[str] = []
    for address in addresses or ():
        # group markers have no host
        if not address.mailbox or not address.host:
            continue
        result.append(f"{_decode(address.mailbox)}@{_decode(address.host)}".lower())
    return result


def _record_from_response(msg_id: int, data: dict) -> MessageRecord:
    header_text = _decode(data.get(b"BODY[HEADER]"))
    envelope = data.get(b"ENVELOPE")

    if envelope is not None:
        from_addresses = _envelope_addresses(envelope.from_)
        to_addresses = _envelope_addresses(envelope.to)
    else:
        from_addresses, to_addresses = header_addresses(header_text)

    return MessageRecord(
        id=msg_id,
        from_addresses=from_addresses,
        to_addresses=to_addresses,
        header_text=header_text,
    )


class ImapMailbox:
    """MailboxWriter backed by an authenticated ``IMAPClient`` connection."""

    def __init__(self, client: IMAPClient) -> None:
        self._client = client
        self._folders: list[tuple[tuple[bytes, ...], str]] | None = None

    @classmethod
    def connect(
        cls,
        host: str,
        username: str,
        password: str,
        port: int = DEFAULT_IMAP_PORT,
        ssl: bool = True,
    ) -> ImapMailbox:
        """Open and log in to an IMAP server."""
        client = IMAPClient(host, port=port, ssl=ssl)
        client.login(username, password)
        logger.debug("Logged in to %s as %s", host, username)
        return cls(client)

    # --- Mailbox ---

    @_transient_retry
    def select(self, folder: str) -> None:
        self._client.select_folder(folder)

    @_transient_retry
    def search(self, criteria: Sequence) -> list[int]:
        return list(self._client.search(list(criteria)))

    @_transient_retry
    def fetch(self, ids: Sequence[int], spec: str) -> list[MessageRecord]:
        if not ids:
            return []
        response = self._client.fetch(list(ids), [spec])
        return [_record_from_response(msg_id, data) for msg_id, data in response.items()]

    @_transient_retry
    def status(self, folder: str, fields: Sequence[str]) -> dict[str, int]:
        response = self._client.folder_status(folder, list(fields))
        return {_decode(key).upper(): int(value) for key, value in response.items()}

    # --- MailboxWriter ---

    def list_folders(self) -> list[tuple[tuple[bytes, ...], str]]:
        if self._folders is None:
            self._folders = [
                (tuple(flags), name) for flags, _delim, name in self._client.list_folders()
            ]
        return self._folders

    def create_folder(self, folder: str) -> None:
        self._client.create_folder(folder)
        self._folders = None

    @_transient_retry
    def copy(self, ids: Sequence[int], folder: str) -> None:
        self._client.copy(list(ids), folder)

    @_transient_retry
    def mark_deleted(self, ids: Sequence[int]) -> None:
        self._client.add_flags(list(ids), [DELETED])

    def expunge(self) -> None:
        self._client.expunge()

    def logout(self) -> None:
        try:
            self._client.logout()
        except (IMAPClientError, OSError) as exc:
            logger.debug("Ignoring error during logout: %s", exc)

    # --- context manager ---

    def __enter__(self) -> ImapMailbox:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.logout()
