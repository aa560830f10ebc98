from __future__ import annotations

from datetime import datetime
from unittest.mock import MagicMock

import pytest

from dairy_collection.cloudsync import AddCollection, AddDeduction, EditCollection, SetBatchDispatched
from dairy_collection.const import UNSET
from dairy_collection.coordinator import REASON_VALIDATION, CollectionCoordinator
from dairy_collection.derived import BatchTotal
from dairy_collection.models import AlcoholTest
from dairy_collection.storage import RecordStore


def _form(**overrides) -> dict:
    form = {"collector_name": "Arjun", "arrival_time": "06:30", "quantity": "10", "batch": "M-010124"}
    form.update(overrides)
    return form


@pytest.mark.asyncio
async def test_add_collection_records_and_queues(coordinator) -> None:
    await coordinator.async_setup()

    result = coordinator.add_collection(_form(fat="4.5", alcohol="+ve"))

    assert result.success is True
    assert result.record_id == "BUID20240101060000000"
    assert result.totals == {"M-010124": BatchTotal(10.0, False)}
    record = coordinator.records.get_collection(result.record_id)
    assert record.arrival_time == "2024-01-01T06:30:00.000Z"
    assert record.created_at == "2024-01-01T06:00:00.000Z"
    assert record.fat == 4.5
    assert record.clr == UNSET
    assert record.alcohol_test is AlcoholTest.POSITIVE
    assert coordinator.records.has_batch("M-010124")
    (operation,) = coordinator.queue.drain()
    assert isinstance(operation, AddCollection)
    assert operation.record == record


@pytest.mark.asyncio
async def test_arrival_defaults_to_now_and_accepts_iso(coordinator) -> None:
    await coordinator.async_setup()

    default = coordinator.add_collection(_form(arrival_time=None))
    explicit = coordinator.add_collection(_form(arrival_time="2024-01-01T05:45:00Z"))

    assert coordinator.records.get_collection(default.record_id).arrival_time == "2024-01-01T06:00:00.000Z"
    assert coordinator.records.get_collection(explicit.record_id).arrival_time == "2024-01-01T05:45:00.000Z"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "form",
    [
        _form(quantity=""),
        _form(quantity="-1"),
        _form(batch=" "),
        _form(collector_name="Nobody"),
        _form(fat="high"),
        _form(arrival_time="25:99"),
    ],
)
async def test_invalid_collection_changes_nothing(coordinator, form) -> None:
    await coordinator.async_setup()

    result = coordinator.add_collection(form)

    assert result.success is False
    assert result.reason == REASON_VALIDATION
    assert coordinator.records.collections == []
    assert coordinator.queue.is_empty


@pytest.mark.asyncio
async def test_edit_collection_keeps_identity(coordinator) -> None:
    await coordinator.async_setup()
    original = coordinator.records.get_collection(coordinator.add_collection(_form()).record_id)

    result = coordinator.edit_collection(original.id, _form(quantity="12", batch="M-020124"))

    assert result.success is True
    edited = coordinator.records.get_collection(original.id)
    assert edited.quantity_liters == 12
    assert edited.created_at == original.created_at
    assert len(coordinator.records.collections) == 1
    assert coordinator.records.has_batch("M-020124")
    assert isinstance(coordinator.queue.drain()[-1], EditCollection)


@pytest.mark.asyncio
async def test_edit_unknown_collection_is_rejected(coordinator) -> None:
    await coordinator.async_setup()
    result = coordinator.edit_collection("BUID0", _form())
    assert result.reason == REASON_VALIDATION
    assert coordinator.queue.is_empty


@pytest.mark.asyncio
async def test_add_deduction_reduces_net(coordinator) -> None:
    await coordinator.async_setup()
    coordinator.add_collection(_form(quantity="10"))
    coordinator.add_collection(_form(quantity="5"))

    result = coordinator.add_deduction("M-010124", {"reason": "spillage", "quantity": 3})

    assert result.success is True
    assert result.totals["M-010124"].net_liters == 12
    assert isinstance(coordinator.queue.drain()[-1], AddDeduction)


@pytest.mark.asyncio
@pytest.mark.parametrize("data", [{"reason": "", "quantity": 1}, {"reason": "sour", "quantity": "x"}, {}])
async def test_invalid_deduction_is_rejected(coordinator, data) -> None:
    await coordinator.async_setup()
    coordinator.add_collection(_form())

    result = coordinator.add_deduction("M-010124", data)

    assert result.reason == REASON_VALIDATION
    assert coordinator.records.deductions == []
    assert len(coordinator.queue) == 1


@pytest.mark.asyncio
async def test_deduction_requires_known_undispatched_batch(coordinator) -> None:
    await coordinator.async_setup()
    assert coordinator.add_deduction("M-999999", {"reason": "spillage", "quantity": 1}).reason == REASON_VALIDATION

    coordinator.add_collection(_form())
    coordinator.set_batch_dispatched("M-010124", True)
    result = coordinator.add_deduction("M-010124", {"reason": "spillage", "quantity": 1})

    assert result.success is False
    assert result.reason == REASON_VALIDATION
    assert coordinator.records.deductions == []
    assert len(coordinator.queue) == 2


@pytest.mark.asyncio
async def test_dispatch_toggle_queues_each_change(coordinator) -> None:
    await coordinator.async_setup()
    coordinator.add_collection(_form())

    first = coordinator.toggle_batch_dispatched("M-010124")
    second = coordinator.toggle_batch_dispatched("M-010124")

    assert first.totals["M-010124"].dispatched is True
    assert second.totals["M-010124"].dispatched is False
    assert coordinator.queue.drain()[1:] == (
        SetBatchDispatched("M-010124", True),
        SetBatchDispatched("M-010124", False),
    )
    assert coordinator.set_batch_dispatched("M-999999", True).reason == REASON_VALIDATION


@pytest.mark.asyncio
async def test_status_reports_counts(coordinator) -> None:
    await coordinator.async_setup()
    coordinator.add_collection(_form())

    status = coordinator.status()

    assert status["state"] == "offline"
    assert status["online"] is False
    assert status["pending"] == 1
    assert status["collections"] == 1
    assert status["batches"] == 1
    assert status["last_sync"] is None


@pytest.mark.asyncio
async def test_state_survives_restart(coordinator, kv, gateway, offline) -> None:
    await coordinator.async_setup()
    coordinator.add_collection(_form())
    coordinator.close()

    restarted = CollectionCoordinator(kv, gateway, offline, clock=lambda: datetime(2024, 1, 2, 6, 0))
    await restarted.async_setup()

    assert len(restarted.records.collections) == 1
    assert len(restarted.queue) == 1
    assert restarted.get_batch_totals() == coordinator.get_batch_totals()


@pytest.mark.asyncio
async def test_edit_changes_only_supplied_fields(coordinator) -> None:
    await coordinator.async_setup()
    record_id = coordinator.add_collection(_form(fat="4.2", clr="28", alcohol="-ve")).record_id
    before = coordinator.records.get_collection(record_id)

    result = coordinator.edit_collection(record_id, {"quantity": 12})

    assert result.success is True
    edited = coordinator.records.get_collection(record_id)
    assert edited.quantity_liters == 12
    assert edited.fat == 4.2
    assert edited.clr == 28
    assert edited.snf == UNSET
    assert edited.collector_name == "Arjun"
    assert edited.alcohol_test is AlcoholTest.NEGATIVE
    assert edited.arrival_time == before.arrival_time == "2024-01-01T06:30:00.000Z"
    assert edited.batch_id == "M-010124"
    assert coordinator.queue.drain()[-1] == EditCollection(edited)


@pytest.mark.asyncio
async def test_edit_can_clear_a_measurement(coordinator) -> None:
    await coordinator.async_setup()
    record_id = coordinator.add_collection(_form(fat="4.2")).record_id

    coordinator.edit_collection(record_id, {"fat": ""})

    assert coordinator.records.get_collection(record_id).fat == UNSET


@pytest.mark.asyncio
async def test_edit_rejects_non_mapping_input(coordinator) -> None:
    await coordinator.async_setup()
    record_id = coordinator.add_collection(_form()).record_id
    assert coordinator.edit_collection(record_id, ["quantity", 3]).reason == REASON_VALIDATION
    assert len(coordinator.queue) == 1


@pytest.mark.asyncio
async def test_record_and_queue_entry_persist_together(coordinator, kv) -> None:
    await coordinator.async_setup()
    coordinator.queue.enqueue = MagicMock(side_effect=RuntimeError("disk full"))

    with pytest.raises(RuntimeError):
        coordinator.add_collection(_form())

    persisted = RecordStore(kv)
    persisted.load()
    assert persisted.collections == []
    assert persisted.batches == {}
