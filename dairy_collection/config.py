"""Runtime settings for the sync agent."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .const import (
    CONF_DB_PATH,
    CONF_LOG_LEVEL,
    CONF_SHEETS_URL,
    CONF_SYNC_ON_START,
    CONF_TIMEOUT,
    DEFAULT_DB_PATH,
    DEFAULT_LOG_LEVEL,
    DEFAULT_TIMEOUT,
)

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class SyncConfig:
    """Where the ledger lives and which sheet it syncs with."""

    sheets_url: str = ""
    db_path: Path = Path(DEFAULT_DB_PATH)
    timeout: int = DEFAULT_TIMEOUT
    sync_on_start: bool = True
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> SyncConfig:
        sheets_url = str(options.get(CONF_SHEETS_URL, "") or "").strip()
        db_raw = str(options.get(CONF_DB_PATH, "") or "").strip()
        db_path = Path(db_raw).expanduser() if db_raw else Path(DEFAULT_DB_PATH)
        timeout_raw = options.get(CONF_TIMEOUT, DEFAULT_TIMEOUT)
        try:
            timeout = max(1, int(timeout_raw))
        except (TypeError, ValueError):
            timeout = DEFAULT_TIMEOUT
        sync_raw = options.get(CONF_SYNC_ON_START, True)
        if isinstance(sync_raw, str):
            sync_on_start = sync_raw.strip().lower() not in {"0", "false", "no", "off"}
        else:
            sync_on_start = bool(sync_raw)
        log_level = str(options.get(CONF_LOG_LEVEL, "") or DEFAULT_LOG_LEVEL).strip().upper()
        return cls(
            sheets_url=sheets_url,
            db_path=db_path,
            timeout=timeout,
            sync_on_start=sync_on_start,
            log_level=log_level,
        )

    @property
    def ready(self) -> bool:
        return bool(self.sheets_url)


def load_config(path: str | Path | None) -> SyncConfig:
    """Read a YAML settings file; a missing or unreadable file yields defaults."""

    if path is None:
        return SyncConfig()
    config_path = Path(path)
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except FileNotFoundError:
        _LOGGER.debug("No config file at %s, using defaults", config_path)
        return SyncConfig()
    except (OSError, yaml.YAMLError) as err:
        _LOGGER.warning("Could not read config %s: %s", config_path, err)
        return SyncConfig()
    if not isinstance(data, Mapping):
        return SyncConfig()
    return SyncConfig.from_options(data)
