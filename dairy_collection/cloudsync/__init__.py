"""Offline-first sync between the device ledger and the remote sheet."""

from .connectivity import ConnectivityMonitor
from .decode import RemoteSnapshot, SnapshotError, decode_snapshot
from .gateway import GatewayError, RemoteGateway, SheetsGateway
from .kv_store import KeyValueStore, SQLiteKeyValueStore
from .manager import SyncError, SyncOrchestrator, SyncResult, SyncState
from .operations import (
    AddCollection,
    AddDeduction,
    EditCollection,
    PendingOperation,
    SetBatchDispatched,
    encode_actions,
    operation_from_wire,
)
from .queue import PendingQueue

__all__ = [
    "AddCollection",
    "AddDeduction",
    "ConnectivityMonitor",
    "EditCollection",
    "GatewayError",
    "KeyValueStore",
    "PendingOperation",
    "PendingQueue",
    "RemoteGateway",
    "RemoteSnapshot",
    "SQLiteKeyValueStore",
    "SetBatchDispatched",
    "SheetsGateway",
    "SnapshotError",
    "SyncError",
    "SyncOrchestrator",
    "SyncResult",
    "SyncState",
    "decode_snapshot",
    "encode_actions",
    "operation_from_wire",
]
