from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from copy import deepcopy
from datetime import UTC, datetime, timedelta

import pytest

from dairy_collection.cloudsync import (
    AddCollection,
    AddDeduction,
    ConnectivityMonitor,
    EditCollection,
    PendingOperation,
    RemoteSnapshot,
    SetBatchDispatched,
    SQLiteKeyValueStore,
)
from dairy_collection.coordinator import CollectionCoordinator
from dairy_collection.models import Batch
from dairy_collection.utils.log_utils import reset_warnings


class FakeGateway:
    """In-memory stand-in for the sheet that replays pushed operations in order."""

    def __init__(self, snapshot: RemoteSnapshot | None = None) -> None:
        self.state = snapshot or RemoteSnapshot()
        self.pushed: list[list[PendingOperation]] = []
        self.push_calls = 0
        self.pull_calls = 0
        self.push_error: Exception | None = None
        self.pull_error: Exception | None = None
        self.push_hook: Callable[[Sequence[PendingOperation]], Awaitable[None]] | None = None
        self.pull_hook: Callable[[], Awaitable[None]] | None = None

    async def pull(self) -> RemoteSnapshot:
        self.pull_calls += 1
        if self.pull_hook is not None:
            await self.pull_hook()
        if self.pull_error is not None:
            raise self.pull_error
        return deepcopy(self.state)

    async def push(self, operations: Sequence[PendingOperation]) -> None:
        self.push_calls += 1
        if self.push_hook is not None:
            await self.push_hook(operations)
        if self.push_error is not None:
            raise self.push_error
        self.pushed.append(list(operations))
        for operation in operations:
            self._apply(operation)

    def _apply(self, operation: PendingOperation) -> None:
        if isinstance(operation, AddCollection):
            self.state.collections.append(deepcopy(operation.record))
            self.state.batches.setdefault(operation.record.batch_id, Batch(operation.record.batch_id))
        elif isinstance(operation, EditCollection):
            self.state.collections = [
                deepcopy(operation.record) if item.id == operation.record.id else item
                for item in self.state.collections
            ]
            self.state.batches.setdefault(operation.record.batch_id, Batch(operation.record.batch_id))
        elif isinstance(operation, AddDeduction):
            self.state.deductions.append(deepcopy(operation.record))
        elif isinstance(operation, SetBatchDispatched):
            self.state.batches[operation.batch_id] = Batch(operation.batch_id, operation.dispatched)
        else:  # pragma: no cover - exhaustive above
            raise AssertionError(f"unexpected operation {operation!r}")


class SteppingClock:
    """Clock advancing one second per call so generated ids never collide."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 1, 1, 6, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        value = self.current
        self.current = value + timedelta(seconds=1)
        return value


@pytest.fixture(autouse=True)
def _reset_warn_once():
    reset_warnings()
    yield
    reset_warnings()


@pytest.fixture
def kv() -> SQLiteKeyValueStore:
    return SQLiteKeyValueStore(":memory:")


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock()


@pytest.fixture
def offline() -> ConnectivityMonitor:
    return ConnectivityMonitor(online=False)


@pytest.fixture
def coordinator(kv, gateway, offline, clock) -> CollectionCoordinator:
    """Coordinator that starts offline; tests flip connectivity as needed."""

    return CollectionCoordinator(kv, gateway, offline, clock=clock)
