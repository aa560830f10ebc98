from __future__ import annotations

from typing import Final

# Collectors are a fixed roster; the first entry is the form default.
COLLECTORS: Final[tuple[str, ...]] = ("Raju", "Ranganna", "Arjun", "Rocky", "Jagga", "Farm")
DEFAULT_COLLECTOR: Final = COLLECTORS[0]

ALCOHOL_OPTIONS: Final[tuple[str, ...]] = ("+ve", "-ve", "NA")
DEFAULT_ALCOHOL: Final = "NA"

# Quality measurements that were not taken are stored as -1.
UNSET: Final = -1.0

ID_PREFIX: Final = "BUID"

STORAGE_COLLECTIONS: Final = "collections"
STORAGE_DEDUCTIONS: Final = "deductions"
STORAGE_BATCHES: Final = "batches"
STORAGE_PENDING_SYNC: Final = "pending_sync"
STORAGE_LAST_SYNC: Final = "last_sync"

# Wire tags for queued operations
OP_ADD: Final = "add"
OP_EDIT: Final = "edit"
OP_DEDUCTION: Final = "deduction"
OP_BATCH_DISPATCH: Final = "batch_dispatch"

CONF_SHEETS_URL: Final = "sheets_url"
CONF_DB_PATH: Final = "db_path"
CONF_TIMEOUT: Final = "timeout"
CONF_SYNC_ON_START: Final = "sync_on_start"
CONF_LOG_LEVEL: Final = "log_level"

DEFAULT_DB_PATH: Final = ".dairy_collection.db"
DEFAULT_TIMEOUT: Final = 30
DEFAULT_LOG_LEVEL: Final = "INFO"
