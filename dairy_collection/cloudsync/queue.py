from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence

from ..const import STORAGE_PENDING_SYNC
from ..utils.log_utils import warn_once
from .kv_store import KeyValueStore
from .operations import PendingOperation, operation_from_wire

_LOGGER = logging.getLogger(__name__)


class PendingQueue:
    """Append-only log of mutations the remote has not acknowledged yet.

    Entries keep their issue order; nothing is merged or deduplicated.
    """

    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv
        self._operations: list[PendingOperation] = []

    def __len__(self) -> int:
        return len(self._operations)

    def __bool__(self) -> bool:
        return bool(self._operations)

    @property
    def is_empty(self) -> bool:
        return not self._operations

    # ------------------------------------------------------------------
    def load(self) -> None:
        raw = self._kv.read(STORAGE_PENDING_SYNC)
        self._operations = []
        if raw is None:
            return
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError):
            warn_once(_LOGGER, "corrupt_pending_sync", "pending queue is not valid JSON, starting empty")
            return
        if not isinstance(payload, Sequence) or isinstance(payload, str | bytes | bytearray):
            warn_once(_LOGGER, "corrupt_pending_sync", "pending queue is not a list, starting empty")
            return
        for entry in payload:
            if not isinstance(entry, Mapping):
                _LOGGER.warning("Dropping malformed pending operation: %r", entry)
                continue
            try:
                self._operations.append(operation_from_wire(entry))
            except (KeyError, TypeError, ValueError) as err:
                _LOGGER.warning("Dropping malformed pending operation: %s", err)

    def enqueue(self, operation: PendingOperation) -> None:
        updated = [*self._operations, operation]
        self._persist(updated)
        self._operations = updated
        _LOGGER.debug("Queued %s operation (%d pending)", operation.TYPE, len(updated))

    def drain(self) -> tuple[PendingOperation, ...]:
        """Return the queued operations without removing them."""

        return tuple(self._operations)

    def clear(self) -> None:
        self._persist([])
        self._operations = []

    def remove_first(self, count: int) -> None:
        """Drop the ``count`` oldest operations once the remote accepted them."""

        if count <= 0:
            return
        updated = self._operations[count:]
        self._persist(updated)
        self._operations = updated

    # ------------------------------------------------------------------
    def _persist(self, operations: list[PendingOperation]) -> None:
        payload = [operation.to_wire() for operation in operations]
        self._kv.write(STORAGE_PENDING_SYNC, json.dumps(payload, separators=(",", ":")))
