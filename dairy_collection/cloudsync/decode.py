"""Translate loosely typed sheet rows into ledger records.

The sheet has been exported with several header spellings over time
(``Collector Name`` vs ``collectorName`` and so on). All of that tolerance
lives here; the rest of the package only sees the strict models.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from ..const import DEFAULT_ALCOHOL, UNSET
from ..models import AlcoholTest, Batch, CollectionRecord, DeductionRecord


class SnapshotError(ValueError):
    """Raised when a pulled payload is not a usable snapshot."""


@dataclass(slots=True)
class RemoteSnapshot:
    """Authoritative state as returned by the remote sheet."""

    collections: list[CollectionRecord] = field(default_factory=list)
    deductions: list[DeductionRecord] = field(default_factory=list)
    batches: dict[str, Batch] = field(default_factory=dict)


def _first(payload: Mapping[str, Any], *keys: str) -> Any:
    """Return the first non-empty value among ``keys``."""

    for key in keys:
        value = payload.get(key)
        if value not in (None, "", 0, False):
            return value
    return None


def _number(value: Any, default: float) -> float:
    if value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number):
        return default
    return number


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _rows(payload: Mapping[str, Any], key: str) -> list[Mapping[str, Any]]:
    rows = payload.get(key)
    if not isinstance(rows, Sequence) or isinstance(rows, str | bytes | bytearray):
        return []
    return [row for row in rows if isinstance(row, Mapping)]


def decode_collection(row: Mapping[str, Any]) -> CollectionRecord:
    return CollectionRecord(
        id=_text(_first(row, "BUID")),
        collector_name=_text(_first(row, "Collector Name", "collectorName")),
        arrival_time=_text(_first(row, "Arrival Time", "arrivalTime")),
        quantity_liters=_number(_first(row, "Quantity", "quantity"), 0.0),
        batch_id=_text(_first(row, "Batch")),
        created_at=_text(_first(row, "Timestamp", "timestamp")),
        clr=_number(_first(row, "CLR"), UNSET),
        fat=_number(_first(row, "FAT"), UNSET),
        snf=_number(_first(row, "SNF"), UNSET),
        water_percent=_number(_first(row, "Water", "water"), UNSET),
        mbrt_hours=_number(_first(row, "MBRT"), UNSET),
        alcohol_test=AlcoholTest.parse(_first(row, "Alcohol", "alcohol") or DEFAULT_ALCOHOL),
    )


def decode_deduction(row: Mapping[str, Any]) -> DeductionRecord:
    return DeductionRecord(
        id=_text(_first(row, "ID", "id")),
        batch_id=_text(_first(row, "Batch", "batch")),
        reason=_text(_first(row, "Reason", "reason")),
        quantity_liters=_number(_first(row, "Quantity", "quantity"), 0.0),
        created_at=_text(_first(row, "Timestamp", "timestamp")),
    )


def decode_batch(row: Mapping[str, Any]) -> Batch | None:
    name = _first(row, "Batch Name", "batch")
    if name is None:
        return None
    flag = _first(row, "Dispatched", "dispatched")
    return Batch(batch_id=str(name), dispatched=flag == "YES" or flag is True)


def decode_snapshot(payload: Any) -> RemoteSnapshot:
    """Decode a pull response body into a :class:`RemoteSnapshot`."""

    if not isinstance(payload, Mapping):
        raise SnapshotError("snapshot payload is not an object")
    if not payload.get("success"):
        raise SnapshotError("remote reported an unsuccessful read")

    batches: dict[str, Batch] = {}
    for row in _rows(payload, "batches"):
        batch = decode_batch(row)
        if batch is not None:
            batches[batch.batch_id] = batch
    return RemoteSnapshot(
        collections=[decode_collection(row) for row in _rows(payload, "collections")],
        deductions=[decode_deduction(row) for row in _rows(payload, "deductions")],
        batches=batches,
    )
