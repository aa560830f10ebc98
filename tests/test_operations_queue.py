from __future__ import annotations

import json
import logging

import pytest

from dairy_collection.cloudsync import (
    AddCollection,
    AddDeduction,
    EditCollection,
    PendingQueue,
    SetBatchDispatched,
    encode_actions,
    operation_from_wire,
)
from dairy_collection.const import STORAGE_PENDING_SYNC
from dairy_collection.models import CollectionRecord, DeductionRecord


def _record(record_id: str = "BUID1", quantity: float = 10.0) -> CollectionRecord:
    return CollectionRecord(
        record_id, "Raju", "2024-01-01T06:30:00.000Z", quantity, "M-010124", "2024-01-01T06:31:00.000Z"
    )


def test_wire_format_for_each_operation() -> None:
    deduction = DeductionRecord("BUID2", "M-010124", "spillage", 1.0, "2024-01-01T07:00:00.000Z")

    assert AddCollection(_record()).to_wire() == {"type": "add", "data": _record().to_dict()}
    assert EditCollection(_record()).to_wire()["type"] == "edit"
    assert AddDeduction(deduction).to_wire() == {"type": "deduction", "data": deduction.to_dict()}
    assert SetBatchDispatched("M-010124", True).to_wire() == {
        "type": "batch_dispatch",
        "data": {"batch": "M-010124", "dispatched": True},
    }


def test_operation_from_wire_restores_each_type() -> None:
    operations = [
        AddCollection(_record()),
        EditCollection(_record(quantity=11)),
        AddDeduction(DeductionRecord("BUID2", "M-010124", "spillage", 1.0, "")),
        SetBatchDispatched("M-010124", False),
    ]
    assert [operation_from_wire(op.to_wire()) for op in operations] == operations


@pytest.mark.parametrize(
    "payload",
    [
        {"type": "merge", "data": {}},
        {"type": "add"},
        {"type": "add", "data": "BUID1"},
    ],
)
def test_operation_from_wire_rejects_unknown_payloads(payload) -> None:
    with pytest.raises(ValueError):
        operation_from_wire(payload)


def test_operation_owns_a_copy_of_its_record() -> None:
    record = _record()
    operation = AddCollection(record)
    record.quantity_liters = 99
    assert operation.record.quantity_liters == 10.0


def test_encode_actions_keeps_order() -> None:
    body = json.loads(encode_actions([AddCollection(_record("A")), SetBatchDispatched("M-010124", True)]))
    assert [action["type"] for action in body["actions"]] == ["add", "batch_dispatch"]
    assert body["actions"][0]["data"]["BUID"] == "A"


def test_queue_preserves_order_and_reloads(kv) -> None:
    queue = PendingQueue(kv)
    queue.load()
    ops = [AddCollection(_record("A")), EditCollection(_record("A", 12)), SetBatchDispatched("M-010124", True)]
    for op in ops:
        queue.enqueue(op)

    assert queue.drain() == tuple(ops)
    assert len(queue) == 3

    reloaded = PendingQueue(kv)
    reloaded.load()
    assert reloaded.drain() == tuple(ops)


def test_drain_does_not_remove(kv) -> None:
    queue = PendingQueue(kv)
    queue.enqueue(AddCollection(_record()))
    queue.drain()
    assert not queue.is_empty


def test_remove_first_keeps_later_operations(kv) -> None:
    queue = PendingQueue(kv)
    first, second = AddCollection(_record("A")), AddCollection(_record("B"))
    queue.enqueue(first)
    queue.enqueue(second)

    queue.remove_first(1)
    queue.remove_first(0)

    assert queue.drain() == (second,)
    assert [entry["data"]["BUID"] for entry in json.loads(kv.read(STORAGE_PENDING_SYNC))] == ["B"]


def test_clear_empties_persisted_queue(kv) -> None:
    queue = PendingQueue(kv)
    queue.enqueue(AddCollection(_record()))
    queue.clear()
    assert queue.is_empty
    assert json.loads(kv.read(STORAGE_PENDING_SYNC)) == []


def test_load_tolerates_corrupt_queue(kv, caplog) -> None:
    kv.write(STORAGE_PENDING_SYNC, "[[[")
    queue = PendingQueue(kv)
    with caplog.at_level(logging.WARNING):
        queue.load()
    assert queue.is_empty
    assert "corrupt_pending_sync" in caplog.text


def test_load_drops_unknown_entries(kv) -> None:
    good = SetBatchDispatched("M-010124", True).to_wire()
    kv.write(STORAGE_PENDING_SYNC, json.dumps([{"type": "merge", "data": {}}, good, 4]))
    queue = PendingQueue(kv)
    queue.load()
    assert queue.drain() == (SetBatchDispatched("M-010124", True),)
