from __future__ import annotations

import sqlite3
from collections.abc import Iterator, Mapping
from contextlib import AbstractContextManager, contextmanager, nullcontext
from pathlib import Path
from typing import Protocol

_SCHEMA = "CREATE TABLE IF NOT EXISTS kv_entries (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
_UPSERT = "INSERT OR REPLACE INTO kv_entries(key, value) VALUES(?, ?)"


class KeyValueStore(Protocol):
    """Durable text storage addressed by key."""

    def read(self, key: str) -> str | None: ...

    def write(self, key: str, value: str) -> None: ...


class SQLiteKeyValueStore:
    """SQLite-backed key/value storage used for the ledger and its outbox.

    Writes commit before returning, so a value handed to ``write`` survives a
    crash immediately after the call. Inside :meth:`transaction` writes are
    held back and committed together when the block exits.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self.path)
        with self._conn:
            self._conn.execute(_SCHEMA)
        self._staged: dict[str, str] | None = None

    def close(self) -> None:
        self._conn.close()

    def read(self, key: str) -> str | None:
        if self._staged is not None and key in self._staged:
            return self._staged[key]
        row = self._conn.execute("SELECT value FROM kv_entries WHERE key = ?", (key,)).fetchone()
        return None if row is None else row[0]

    def write(self, key: str, value: str) -> None:
        self.write_many({key: value})

    def write_many(self, items: Mapping[str, str]) -> None:
        """Write several keys in one commit."""

        if self._staged is not None:
            self._staged.update(items)
            return
        self._commit(items)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Commit every write made inside the block at once, or none on error."""

        if self._staged is not None:
            yield
            return
        self._staged = {}
        try:
            yield
        except BaseException:
            self._staged = None
            raise
        staged, self._staged = self._staged, None
        if staged:
            self._commit(staged)

    def _commit(self, items: Mapping[str, str]) -> None:
        with self._conn:
            self._conn.executemany(_UPSERT, list(items.items()))


def write_all(store: KeyValueStore, items: Mapping[str, str]) -> None:
    """Write ``items`` atomically when the store supports it."""

    write_many = getattr(store, "write_many", None)
    if callable(write_many):
        write_many(items)
        return
    for key, value in items.items():
        store.write(key, value)


def transaction(store: KeyValueStore) -> AbstractContextManager[None]:
    """Group the writes made inside the block when the store supports it."""

    begin = getattr(store, "transaction", None)
    if callable(begin):
        return begin()
    return nullcontext()
