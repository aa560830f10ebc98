"""Queued mutations replayed against the remote sheet.

Each operation owns a private copy of the record it carries so later local
edits cannot change what was queued.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from typing import Any, ClassVar

from ..const import OP_ADD, OP_BATCH_DISPATCH, OP_DEDUCTION, OP_EDIT
from ..models import CollectionRecord, DeductionRecord


@dataclass(frozen=True, slots=True)
class AddCollection:
    TYPE: ClassVar[str] = OP_ADD

    record: CollectionRecord

    def __post_init__(self) -> None:
        object.__setattr__(self, "record", replace(self.record))

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.TYPE, "data": self.record.to_dict()}


@dataclass(frozen=True, slots=True)
class EditCollection:
    TYPE: ClassVar[str] = OP_EDIT

    record: CollectionRecord

    def __post_init__(self) -> None:
        object.__setattr__(self, "record", replace(self.record))

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.TYPE, "data": self.record.to_dict()}


@dataclass(frozen=True, slots=True)
class AddDeduction:
    TYPE: ClassVar[str] = OP_DEDUCTION

    record: DeductionRecord

    def __post_init__(self) -> None:
        object.__setattr__(self, "record", replace(self.record))

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.TYPE, "data": self.record.to_dict()}


@dataclass(frozen=True, slots=True)
class SetBatchDispatched:
    TYPE: ClassVar[str] = OP_BATCH_DISPATCH

    batch_id: str
    dispatched: bool

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.TYPE, "data": {"batch": self.batch_id, "dispatched": self.dispatched}}


PendingOperation = AddCollection | EditCollection | AddDeduction | SetBatchDispatched


def operation_from_wire(payload: Mapping[str, Any]) -> PendingOperation:
    """Decode a ``{"type", "data"}`` pair back into an operation."""

    op_type = payload.get("type")
    data = payload.get("data")
    if not isinstance(data, Mapping):
        raise ValueError(f"operation {op_type!r} has no data")
    data = dict(data)
    if op_type == OP_ADD:
        return AddCollection(CollectionRecord.from_dict(data))
    if op_type == OP_EDIT:
        return EditCollection(CollectionRecord.from_dict(data))
    if op_type == OP_DEDUCTION:
        return AddDeduction(DeductionRecord.from_dict(data))
    if op_type == OP_BATCH_DISPATCH:
        return SetBatchDispatched(batch_id=str(data["batch"]), dispatched=data.get("dispatched") is True)
    raise ValueError(f"unknown operation type {op_type!r}")


def encode_actions(operations: Iterable[PendingOperation]) -> str:
    """Return the JSON push body understood by the sheet script."""

    return json.dumps({"actions": [operation.to_wire() for operation in operations]}, separators=(",", ":"))
