"""Header parsing - builds MessageView objects from raw header text."""

from __future__ import annotations

from email.parser import HeaderParser
from email.utils import getaddresses, parseaddr

from .constants import AUTHENTICATION_HEADER, SUSPICIOUS_HEADERS
from .models import MessageView

_PARSER = HeaderParser()


def parse_address(value: str) -> str:
    """Return the lower-cased address part of a single address header value.

    Handles formats like:
      "John Doe <John@Example.com>" -> "john@example.com"
      "<john@example.com>"          -> "john@example.com"
      "garbage"                     -> ""
    """
    if not value:
        return ""
    _, address = parseaddr(str(value))
    address = address.strip().lower()
    if "@" not in address:
        return ""
    return address


def parse_address_list(values: list[str]) -> list[str]:
    """Parse one or more address header values into lower-cased addresses."""
    addresses: list[str] = []
    for _, address in getaddresses([str(v) for v in values if v]):
        address = address.strip().lower()
        if "@" in address:
            addresses.append(address)
    return addresses


def domain_of(address: str) -> str:
    if "@" not in address:
        return ""
    return address.rsplit("@", 1)[1]


def message_view_from_headers(header_text: str | bytes | None) -> MessageView:
    """Build a MessageView from the raw header block of a message.

    Never raises: missing or malformed headers give an empty address and
    domain and ``False`` flags.
    """
    if not header_text:
        return MessageView()
    if isinstance(header_text, bytes):
        header_text = header_text.decode("utf-8", errors="replace")

    headers = _PARSER.parsestr(header_text)
    from_address = parse_address(headers.get("From", ""))

    return MessageView(
        from_address=from_address,
        from_domain=domain_of(from_address),
        has_authentication_header=AUTHENTICATION_HEADER in headers,
        has_suspicious_header=any(name in headers for name in SUSPICIOUS_HEADERS),
    )


def header_addresses(header_text: str) -> tuple[list[str], list[str]]:
    """Return the (From, To) address lists found in a raw header block."""
    if not header_text:
        return [], []
    headers = _PARSER.parsestr(header_text)
    return (
        parse_address_list(headers.get_all("From", [])),
        parse_address_list(headers.get_all("To", [])),
    )
