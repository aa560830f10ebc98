"""Application context wiring the ledger, its outbox and the sync orchestrator.

The coordinator is what a form or CLI calls into. Every operation returns an
:class:`OperationResult`; validation failures leave the store and queue
untouched, sync failures never roll back local changes.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from .cloudsync import (
    AddCollection,
    AddDeduction,
    ConnectivityMonitor,
    EditCollection,
    KeyValueStore,
    PendingQueue,
    RemoteGateway,
    SetBatchDispatched,
    SyncError,
    SyncOrchestrator,
    SyncResult,
)
from .cloudsync.kv_store import transaction
from .derived import BatchTotal, compute_batch_totals
from .ids import generate_id
from .models import AlcoholTest, CollectionRecord, DeductionRecord
from .storage import RecordStore
from .validators import InputValidationError, validate_collection_input, validate_deduction_input

_LOGGER = logging.getLogger(__name__)

REASON_VALIDATION = "validation"


@dataclass(slots=True)
class OperationResult:
    """Outcome of a coordinator call plus the refreshed batch view."""

    success: bool
    error: str | None = None
    reason: str | None = None
    record_id: str | None = None
    sync: SyncResult | None = None
    totals: dict[str, BatchTotal] = field(default_factory=dict)


def _utc_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.astimezone()
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _form_fields(record: CollectionRecord) -> dict[str, Any]:
    """Form values of ``record``; an edit overlays only the fields it names."""

    fields = {
        "collector_name": record.collector_name,
        "arrival_time": record.arrival_time,
        "quantity": record.quantity_liters,
        "clr": record.clr,
        "fat": record.fat,
        "snf": record.snf,
        "water": record.water_percent,
        "mbrt": record.mbrt_hours,
        "alcohol": str(record.alcohol_test),
        "batch": record.batch_id,
    }
    return {key: value for key, value in fields.items() if value not in (None, "")}


class CollectionCoordinator:
    """Owns the record store, pending queue and orchestrator for one device."""

    def __init__(
        self,
        kv: KeyValueStore,
        gateway: RemoteGateway,
        connectivity: ConnectivityMonitor,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.kv = kv
        self.connectivity = connectivity
        self.records = RecordStore(kv)
        self.queue = PendingQueue(kv)
        self.sync = SyncOrchestrator(self.records, self.queue, gateway, connectivity, kv)
        self._clock = clock

    async def async_setup(self, *, pull: bool = True) -> None:
        await self.sync.async_start(pull=pull)

    def close(self) -> None:
        self.sync.stop()

    # ------------------------------------------------------------------
    def get_batch_totals(self) -> dict[str, BatchTotal]:
        return compute_batch_totals(self.records.collections, self.records.deductions, self.records.batches)

    def add_collection(self, data: Mapping[str, Any]) -> OperationResult:
        try:
            fields = validate_collection_input(data)
        except InputValidationError as err:
            return self._invalid(str(err))

        now = self._clock()
        record = self._build_collection(generate_id(now), fields, now, created_at=_utc_iso(now))
        with transaction(self.kv):
            self.records.upsert_collection(record)
            self.queue.enqueue(AddCollection(record))
        _LOGGER.debug("Added collection %s to batch %s", record.id, record.batch_id)
        return self._ok(record.id)

    def edit_collection(self, record_id: str, data: Mapping[str, Any]) -> OperationResult:
        existing = self.records.get_collection(record_id)
        if existing is None:
            return self._invalid(f"unknown collection {record_id}")
        if not isinstance(data, Mapping):
            return self._invalid("expected a mapping of form fields")
        try:
            fields = validate_collection_input({**_form_fields(existing), **data})
        except InputValidationError as err:
            return self._invalid(str(err))

        record = self._build_collection(existing.id, fields, self._clock(), created_at=existing.created_at)
        with transaction(self.kv):
            self.records.upsert_collection(record)
            self.queue.enqueue(EditCollection(record))
        _LOGGER.debug("Edited collection %s", record.id)
        return self._ok(record.id)

    def add_deduction(self, batch_id: str, data: Mapping[str, Any]) -> OperationResult:
        if not self.records.has_batch(batch_id):
            return self._invalid(f"unknown batch {batch_id}")
        if self.records.batch_dispatched(batch_id):
            return self._invalid(f"batch {batch_id} is already dispatched")
        try:
            fields = validate_deduction_input(data)
        except InputValidationError as err:
            return self._invalid(str(err))

        now = self._clock()
        record = DeductionRecord(
            id=generate_id(now),
            batch_id=batch_id,
            reason=fields["reason"],
            quantity_liters=fields["quantity"],
            created_at=_utc_iso(now),
        )
        with transaction(self.kv):
            self.records.upsert_deduction(record)
            self.queue.enqueue(AddDeduction(record))
        return self._ok(record.id)

    def set_batch_dispatched(self, batch_id: str, dispatched: bool) -> OperationResult:
        if not self.records.has_batch(batch_id):
            return self._invalid(f"unknown batch {batch_id}")
        with transaction(self.kv):
            self.records.set_batch_dispatched(batch_id, dispatched)
            self.queue.enqueue(SetBatchDispatched(batch_id=batch_id, dispatched=bool(dispatched)))
        _LOGGER.info("Batch %s marked %s", batch_id, "dispatched" if dispatched else "pending")
        return self._ok(batch_id)

    def toggle_batch_dispatched(self, batch_id: str) -> OperationResult:
        return self.set_batch_dispatched(batch_id, not self.records.batch_dispatched(batch_id))

    async def async_request_sync(self) -> OperationResult:
        try:
            result = await self.sync.async_request_sync()
        except SyncError as err:
            return OperationResult(success=False, error=str(err), reason=err.reason, totals=self.get_batch_totals())
        return OperationResult(success=True, sync=result, totals=self.get_batch_totals())

    async def async_refresh(self) -> OperationResult:
        try:
            pulled = await self.sync.async_refresh()
        except SyncError as err:
            return OperationResult(success=False, error=str(err), reason=err.reason, totals=self.get_batch_totals())
        return OperationResult(success=True, sync=SyncResult(pulled=pulled), totals=self.get_batch_totals())

    def status(self) -> dict[str, Any]:
        status = self.sync.status()
        status["collections"] = len(self.records.collections)
        status["deductions"] = len(self.records.deductions)
        status["batches"] = len(self.records.batches)
        return status

    # ------------------------------------------------------------------
    def _build_collection(
        self,
        record_id: str,
        fields: Mapping[str, Any],
        now: datetime,
        *,
        created_at: str,
    ) -> CollectionRecord:
        return CollectionRecord(
            id=record_id,
            collector_name=fields["collector_name"],
            arrival_time=self._arrival_iso(fields.get("arrival_time"), now),
            quantity_liters=fields["quantity"],
            batch_id=fields["batch"],
            created_at=created_at,
            clr=fields["clr"],
            fat=fields["fat"],
            snf=fields["snf"],
            water_percent=fields["water"],
            mbrt_hours=fields["mbrt"],
            alcohol_test=AlcoholTest(fields["alcohol"]),
        )

    def _arrival_iso(self, value: str | None, now: datetime) -> str:
        """Place an ``HH:MM`` arrival on today's date; pass ISO timestamps through."""

        if value is None:
            return _utc_iso(now.replace(second=0, microsecond=0))
        if "T" not in value and ":" in value and len(value) <= 5:
            hours, minutes = value.split(":")
            return _utc_iso(now.replace(hour=int(hours), minute=int(minutes), second=0, microsecond=0))
        return _utc_iso(datetime.fromisoformat(value.replace("Z", "+00:00")))

    def _ok(self, record_id: str | None = None) -> OperationResult:
        return OperationResult(success=True, record_id=record_id, totals=self.get_batch_totals())

    def _invalid(self, message: str) -> OperationResult:
        _LOGGER.debug("Rejected operation: %s", message)
        return OperationResult(success=False, error=message, reason=REASON_VALIDATION)
