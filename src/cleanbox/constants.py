"""Constants for Cleanbox."""

from pathlib import Path

# --- Config paths ---
DEFAULT_DATA_DIR = Path.home() / ".cleanbox"
HOME_CONFIG_PATH = Path.home() / ".cleanbox.yml"
CONFIG_FILE_NAME = "cleanbox.yml"
CACHE_DB_RELATIVE_PATH = Path("cache") / "folder_emails.db"

# --- Environment ---
ENV_DATA_DIR = "CLEANBOX_DATA_DIR"
ENV_CONFIG = "CLEANBOX_CONFIG"
ENV_CACHE = "CLEANBOX_CACHE"
ENV_PASSWORD = "CLEANBOX_PASSWORD"
FALSE_VALUES = ("false", "0", "no", "off")

# --- IMAP ---
DEFAULT_IMAP_PORT = 993
INBOX = "INBOX"
STATUS_FIELDS = ["MESSAGES", "UIDNEXT", "UIDVALIDITY"]
ENVELOPE_FETCH_SPEC = "ENVELOPE"
HEADER_FETCH_SPEC = "BODY.PEEK[HEADER]"
ENVELOPE_CHUNK_SIZE = 800  # ids per ENVELOPE fetch while building address caches
HEADER_CHUNK_SIZE = 100  # ids per header fetch while classifying
SPECIAL_USE_JUNK = b"\\Junk"
SPECIAL_USE_SENT = b"\\Sent"
TRANSIENT_RESPONSE_CODES = ("[UNAVAILABLE]", "[INUSE]")

# --- Folders ---
DEFAULT_LIST_FOLDER = "Lists"
DEFAULT_JUNK_FOLDER = "Junk"
DEFAULT_SENT_FOLDER = "Sent"

# --- Lookback windows (months) ---
SENT_SINCE_MONTHS = 24
LIST_SINCE_MONTHS = 12
SINCE_MONTHS = 24

# --- Headers ---
AUTHENTICATION_HEADER = "Authentication-Results"
SUSPICIOUS_HEADERS = ("X-Antiabuse",)
