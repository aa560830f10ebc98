"""Entities tracked by the collection ledger."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from .const import DEFAULT_ALCOHOL, UNSET


class AlcoholTest(StrEnum):
    """Result of the alcohol stability test on a can."""

    POSITIVE = "+ve"
    NEGATIVE = "-ve"
    NOT_APPLICABLE = "NA"

    @classmethod
    def parse(cls, value: Any) -> AlcoholTest:
        try:
            return cls(str(value).strip())
        except ValueError:
            return cls(DEFAULT_ALCOHOL)


def _measurement(value: Any) -> float:
    if value is None or value == "":
        return UNSET
    return float(value)


@dataclass(slots=True)
class CollectionRecord:
    """A single milk intake event."""

    id: str
    collector_name: str
    arrival_time: str
    quantity_liters: float
    batch_id: str
    created_at: str
    clr: float = UNSET
    fat: float = UNSET
    snf: float = UNSET
    water_percent: float = UNSET
    mbrt_hours: float = UNSET
    alcohol_test: AlcoholTest = AlcoholTest.NOT_APPLICABLE

    def to_dict(self) -> dict[str, Any]:
        return {
            "BUID": self.id,
            "collectorName": self.collector_name,
            "arrivalTime": self.arrival_time,
            "quantity": self.quantity_liters,
            "CLR": self.clr,
            "FAT": self.fat,
            "SNF": self.snf,
            "water": self.water_percent,
            "alcohol": str(self.alcohol_test),
            "MBRT": self.mbrt_hours,
            "Batch": self.batch_id,
            "timestamp": self.created_at,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> CollectionRecord:
        return cls(
            id=str(payload["BUID"]),
            collector_name=str(payload.get("collectorName") or ""),
            arrival_time=str(payload.get("arrivalTime") or ""),
            quantity_liters=float(payload.get("quantity") or 0),
            batch_id=str(payload.get("Batch") or ""),
            created_at=str(payload.get("timestamp") or ""),
            clr=_measurement(payload.get("CLR")),
            fat=_measurement(payload.get("FAT")),
            snf=_measurement(payload.get("SNF")),
            water_percent=_measurement(payload.get("water")),
            mbrt_hours=_measurement(payload.get("MBRT")),
            alcohol_test=AlcoholTest.parse(payload.get("alcohol", DEFAULT_ALCOHOL)),
        )


@dataclass(slots=True)
class DeductionRecord:
    """A quantity taken off a batch's net total."""

    id: str
    batch_id: str
    reason: str
    quantity_liters: float
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "batch": self.batch_id,
            "reason": self.reason,
            "quantity": self.quantity_liters,
            "timestamp": self.created_at,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> DeductionRecord:
        return cls(
            id=str(payload["id"]),
            batch_id=str(payload["batch"]),
            reason=str(payload.get("reason") or ""),
            quantity_liters=float(payload.get("quantity") or 0),
            created_at=str(payload.get("timestamp") or ""),
        )


@dataclass(slots=True)
class Batch:
    """Aggregation unit for a day or shift; dispatched once it leaves the centre."""

    batch_id: str
    dispatched: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"dispatched": self.dispatched}

    @classmethod
    def from_dict(cls, batch_id: str, payload: dict[str, Any]) -> Batch:
        return cls(batch_id=str(batch_id), dispatched=payload.get("dispatched") is True)


def batches_to_dict(batches: dict[str, Batch]) -> dict[str, dict[str, Any]]:
    return {batch_id: batch.to_dict() for batch_id, batch in batches.items()}
