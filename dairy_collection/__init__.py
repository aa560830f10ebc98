"""Offline-first ledger for milk collections, batch deductions and dispatch."""

from .coordinator import CollectionCoordinator, OperationResult
from .derived import BatchTotal, compute_batch_totals
from .ids import generate_id
from .models import AlcoholTest, Batch, CollectionRecord, DeductionRecord
from .storage import RecordStore

__all__ = [
    "AlcoholTest",
    "Batch",
    "BatchTotal",
    "CollectionCoordinator",
    "CollectionRecord",
    "DeductionRecord",
    "OperationResult",
    "RecordStore",
    "compute_batch_totals",
    "generate_id",
]

__version__ = "0.1.0"
