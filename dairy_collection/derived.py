"""Per-batch totals derived from the record store."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from .models import Batch, CollectionRecord, DeductionRecord


@dataclass(frozen=True, slots=True)
class BatchTotal:
    """Net litres for a batch and whether it has been dispatched."""

    net_liters: float
    dispatched: bool


def compute_batch_totals(
    collections: Iterable[CollectionRecord],
    deductions: Iterable[DeductionRecord],
    batches: Mapping[str, Batch],
) -> dict[str, BatchTotal]:
    """Return ``batch_id -> BatchTotal`` for every batch that has collections.

    Keys appear in the order their first collection appears. Quantities are
    summed in input order so repeated calls round identically. Deductions for
    a batch without collections are ignored.
    """

    net: dict[str, float] = {}
    for record in collections:
        net[record.batch_id] = net.get(record.batch_id, 0.0) + record.quantity_liters
    for deduction in deductions:
        if deduction.batch_id in net:
            net[deduction.batch_id] -= deduction.quantity_liters

    totals: dict[str, BatchTotal] = {}
    for batch_id, liters in net.items():
        batch = batches.get(batch_id)
        totals[batch_id] = BatchTotal(net_liters=liters, dispatched=bool(batch and batch.dispatched))
    return totals


def sort_batches_recent_first(totals: Mapping[str, BatchTotal]) -> list[str]:
    """Batch ids ordered with the most recently started batch first."""

    return list(reversed(list(totals)))
