"""Configuration for Cleanbox.

Settings come from a YAML file merged with command-line overrides. The data
directory and the cache toggle are resolved here and handed to the runner
explicitly; nothing in the package reads them from global state.
"""

from __future__ import annotations

import calendar
import logging
import os
from dataclasses import dataclass, field, fields
from datetime import date
from pathlib import Path
from typing import Any, Mapping

import yaml

from .constants import (
    CACHE_DB_RELATIVE_PATH,
    CONFIG_FILE_NAME,
    DEFAULT_DATA_DIR,
    DEFAULT_IMAP_PORT,
    DEFAULT_LIST_FOLDER,
    ENV_CACHE,
    ENV_CONFIG,
    ENV_DATA_DIR,
    FALSE_VALUES,
    HOME_CONFIG_PATH,
    LIST_SINCE_MONTHS,
    SENT_SINCE_MONTHS,
    SINCE_MONTHS,
)

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when a configuration file cannot be used."""


@dataclass
class Settings:
    """Everything a run needs to know, with the reference tool's defaults."""

    host: str = ""
    port: int = DEFAULT_IMAP_PORT
    username: str | None = None
    data_dir: Path | None = None
    cache: bool | None = None  # explicit override; None defers to the environment

    list_folder: str = DEFAULT_LIST_FOLDER
    junk_folder: str | None = None
    sent_folder: str | None = None
    whitelist_folders: list[str] = field(default_factory=list)
    whitelisted_domains: list[str] = field(default_factory=list)
    list_folders: list[str] = field(default_factory=list)
    list_domains: list[str] = field(default_factory=list)
    list_domain_map: dict[str, str] = field(default_factory=dict)
    file_from_folders: list[str] = field(default_factory=list)
    file_unread: bool = False

    sent_since_months: int = SENT_SINCE_MONTHS
    list_since_months: int = LIST_SINCE_MONTHS
    since_months: int = SINCE_MONTHS
    valid_from: date | None = None
    since: date | None = None
    all_messages: bool = False

    pretend: bool = False
    level: str = "info"
    log_file: str | None = None

    @property
    def resolved_data_dir(self) -> Path:
        return resolve_data_dir(self.data_dir)

    @property
    def cache_db_path(self) -> Path:
        return self.resolved_data_dir / CACHE_DB_RELATIVE_PATH

    @property
    def cache_enabled(self) -> bool:
        return resolve_cache_enabled(self.cache)

    @property
    def effective_list_folders(self) -> list[str]:
        return list(self.list_folders) or [self.list_folder]

    @property
    def filing_folders(self) -> list[str]:
        """Folders whose senders define where existing mail gets filed."""
        if self.file_from_folders:
            return list(self.file_from_folders)
        return unique_folders(self.effective_list_folders + list(self.whitelist_folders))

    def sender_map_since(self, today: date | None = None) -> date:
        return self.valid_from or months_ago(self.list_since_months, today)

    def sent_since(self, today: date | None = None) -> date:
        return months_ago(self.sent_since_months, today)

    def filing_since(self, today: date | None = None) -> date | None:
        if self.all_messages:
            return None
        return self.since or months_ago(self.since_months, today)


def unique_folders(folders: list[str]) -> list[str]:
    return list(dict.fromkeys(folders))


def months_ago(months: int, today: date | None = None) -> date:
    """Same day ``months`` months earlier, clamped to the end of that month."""
    today = today or date.today()
    index = today.year * 12 + (today.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    day = min(today.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def resolve_data_dir(explicit: str | Path | None = None, environ: Mapping[str, str] | None = None) -> Path:
    """Explicit option, then CLEANBOX_DATA_DIR, then ~/.cleanbox."""
    environ = os.environ if environ is None else environ
    if explicit:
        return Path(explicit).expanduser().resolve()
    if environ.get(ENV_DATA_DIR):
        return Path(environ[ENV_DATA_DIR]).expanduser().resolve()
    return DEFAULT_DATA_DIR


def resolve_cache_enabled(explicit: bool | None = None, environ: Mapping[str, str] | None = None) -> bool:
    """Explicit override, then CLEANBOX_CACHE, then on."""
    if explicit is not None:
        return explicit
    environ = os.environ if environ is None else environ
    value = environ.get(ENV_CACHE)
    if value is None:
        return True
    return value.strip().lower() not in FALSE_VALUES


def resolve_config_path(
    explicit: str | Path | None = None,
    data_dir: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Path:
    """Locate the YAML config file.

    Priority: explicit path, CLEANBOX_CONFIG (relative to the data dir when
    one is set), ``cleanbox.yml`` in the data dir, ``~/.cleanbox.yml``.
    """
    environ = os.environ if environ is None else environ
    if explicit:
        return Path(explicit).expanduser().resolve()

    if environ.get(ENV_CONFIG):
        path = Path(environ[ENV_CONFIG]).expanduser()
        if not path.is_absolute() and data_dir is not None:
            path = data_dir / path
        return path.resolve()

    if data_dir is not None and (data_dir / CONFIG_FILE_NAME).exists():
        return data_dir / CONFIG_FILE_NAME

    return HOME_CONFIG_PATH


def _parse_date(name: str, value: Any) -> date | None:
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        logger.warning("Ignoring invalid %s date %r", name, value)
        return None


def settings_from_mapping(values: Mapping[str, Any]) -> Settings:
    """Build Settings from a mapping, ignoring unknown keys."""
    known = {f.name for f in fields(Settings)}
    kwargs = {k: v for k, v in values.items() if k in known}

    for name in ("valid_from", "since"):
        if name in kwargs:
            kwargs[name] = _parse_date(name, kwargs[name])
    if kwargs.get("data_dir") is not None:
        kwargs["data_dir"] = Path(kwargs["data_dir"])
    for name in ("list_domains", "whitelisted_domains"):
        if name in kwargs:
            kwargs[name] = [str(d).lower() for d in kwargs[name] or []]
    if "list_domain_map" in kwargs:
        kwargs["list_domain_map"] = {
            str(k).lower(): str(v) for k, v in (kwargs["list_domain_map"] or {}).items()
        }

    return Settings(**kwargs)


def load_config_file(path: Path) -> dict[str, Any]:
    """Read a YAML config file. A missing file yields an empty mapping."""
    if not path.exists():
        return {}
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Could not read config file {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
    return {str(k): v for k, v in data.items()}


def load_settings(
    config_file: str | Path | None = None,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Load settings from the config file, then apply non-None overrides."""
    overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
    data_dir = resolve_data_dir(overrides.get("data_dir"), environ)
    path = resolve_config_path(config_file, data_dir, environ)

    values = load_config_file(path)
    if values:
        logger.debug("Loaded configuration from %s", path)
    values.update(overrides)
    values["data_dir"] = data_dir
    return settings_from_mapping(values)
