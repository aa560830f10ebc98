"""Durable record store for collections, deductions and batches."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from .cloudsync.kv_store import KeyValueStore, write_all
from .const import STORAGE_BATCHES, STORAGE_COLLECTIONS, STORAGE_DEDUCTIONS
from .models import Batch, CollectionRecord, DeductionRecord, batches_to_dict
from .utils.log_utils import warn_once

_LOGGER = logging.getLogger(__name__)


def _dumps(payload: Any) -> str:
    return json.dumps(payload, separators=(",", ":"))


class RecordStore:
    """Owns every collection, deduction and batch known on this device.

    Mutators persist the touched keys before returning. ``load`` never raises
    on bad persisted data; the affected collection simply starts empty.
    """

    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv
        self._collections: list[CollectionRecord] = []
        self._deductions: list[DeductionRecord] = []
        self._batches: dict[str, Batch] = {}

    # ------------------------------------------------------------------
    @property
    def collections(self) -> list[CollectionRecord]:
        return list(self._collections)

    @property
    def deductions(self) -> list[DeductionRecord]:
        return list(self._deductions)

    @property
    def batches(self) -> dict[str, Batch]:
        return dict(self._batches)

    def get_collection(self, record_id: str) -> CollectionRecord | None:
        return next((record for record in self._collections if record.id == record_id), None)

    def has_batch(self, batch_id: str) -> bool:
        return batch_id in self._batches

    def batch_dispatched(self, batch_id: str) -> bool:
        batch = self._batches.get(batch_id)
        return bool(batch and batch.dispatched)

    # ------------------------------------------------------------------
    def load(self) -> None:
        self._collections = self._load_list(STORAGE_COLLECTIONS, CollectionRecord.from_dict)
        self._deductions = self._load_list(STORAGE_DEDUCTIONS, DeductionRecord.from_dict)
        self._batches = self._load_batches()
        _LOGGER.debug(
            "Loaded %d collections, %d deductions, %d batches",
            len(self._collections),
            len(self._deductions),
            len(self._batches),
        )

    def replace_all(
        self,
        collections: Iterable[CollectionRecord],
        deductions: Iterable[DeductionRecord],
        batches: Mapping[str, Batch],
    ) -> None:
        """Swap the entire local state for ``collections``/``deductions``/``batches``.

        Batches referenced by a collection but missing from ``batches`` are
        added undispatched.
        """

        new_collections = list(collections)
        new_deductions = list(deductions)
        new_batches = dict(batches)
        for record in new_collections:
            if record.batch_id and record.batch_id not in new_batches:
                new_batches[record.batch_id] = Batch(batch_id=record.batch_id)
        write_all(
            self._kv,
            {
                STORAGE_COLLECTIONS: _dumps([record.to_dict() for record in new_collections]),
                STORAGE_DEDUCTIONS: _dumps([record.to_dict() for record in new_deductions]),
                STORAGE_BATCHES: _dumps(batches_to_dict(new_batches)),
            },
        )
        self._collections = new_collections
        self._deductions = new_deductions
        self._batches = new_batches

    def upsert_collection(self, record: CollectionRecord) -> None:
        """Insert or replace ``record`` by id and make sure its batch exists."""

        updated = list(self._collections)
        for index, existing in enumerate(updated):
            if existing.id == record.id:
                updated[index] = record
                break
        else:
            updated.append(record)
        items = {STORAGE_COLLECTIONS: _dumps([item.to_dict() for item in updated])}
        batches = self._batches
        if record.batch_id not in batches:
            batches = {**batches, record.batch_id: Batch(batch_id=record.batch_id)}
            items[STORAGE_BATCHES] = _dumps(batches_to_dict(batches))
        write_all(self._kv, items)
        self._collections = updated
        self._batches = batches

    def upsert_deduction(self, record: DeductionRecord) -> None:
        updated = list(self._deductions)
        for index, existing in enumerate(updated):
            if existing.id == record.id:
                updated[index] = record
                break
        else:
            updated.append(record)
        self._kv.write(STORAGE_DEDUCTIONS, _dumps([item.to_dict() for item in updated]))
        self._deductions = updated

    def set_batch_dispatched(self, batch_id: str, dispatched: bool) -> None:
        batches = {**self._batches, batch_id: Batch(batch_id=batch_id, dispatched=bool(dispatched))}
        self._kv.write(STORAGE_BATCHES, _dumps(batches_to_dict(batches)))
        self._batches = batches

    def ensure_batch(self, batch_id: str) -> bool:
        """Create ``batch_id`` undispatched if unseen; return whether it was created."""

        if batch_id in self._batches:
            return False
        batches = {**self._batches, batch_id: Batch(batch_id=batch_id)}
        self._kv.write(STORAGE_BATCHES, _dumps(batches_to_dict(batches)))
        self._batches = batches
        return True

    # ------------------------------------------------------------------
    def _read_json(self, key: str) -> Any:
        raw = self._kv.read(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            warn_once(_LOGGER, f"corrupt_{key}", "stored %s is not valid JSON, starting empty", key)
            return None

    def _load_list(self, key: str, decode) -> list:
        payload = self._read_json(key)
        if payload is None:
            return []
        if not isinstance(payload, Sequence) or isinstance(payload, str | bytes | bytearray):
            warn_once(_LOGGER, f"corrupt_{key}", "stored %s is not a list, starting empty", key)
            return []
        items = []
        for entry in payload:
            if not isinstance(entry, Mapping):
                _LOGGER.warning("Dropping malformed %s entry: %r", key, entry)
                continue
            try:
                items.append(decode(dict(entry)))
            except (KeyError, TypeError, ValueError) as err:
                _LOGGER.warning("Dropping malformed %s entry: %s", key, err)
        return items

    def _load_batches(self) -> dict[str, Batch]:
        payload = self._read_json(STORAGE_BATCHES)
        if payload is None:
            return {}
        if not isinstance(payload, Mapping):
            warn_once(
                _LOGGER, f"corrupt_{STORAGE_BATCHES}", "stored %s is not a mapping, starting empty", STORAGE_BATCHES
            )
            return {}
        batches: dict[str, Batch] = {}
        for batch_id, entry in payload.items():
            if isinstance(entry, Mapping):
                batches[str(batch_id)] = Batch.from_dict(str(batch_id), dict(entry))
        return batches
