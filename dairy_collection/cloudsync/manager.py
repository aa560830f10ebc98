"""Decide when to push the pending queue and pull the authoritative snapshot."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from ..const import STORAGE_LAST_SYNC
from .connectivity import ConnectivityMonitor
from .gateway import GatewayError, RemoteGateway
from .kv_store import KeyValueStore
from .queue import PendingQueue

if TYPE_CHECKING:
    from ..storage import RecordStore

_LOGGER = logging.getLogger(__name__)


class SyncState(StrEnum):
    IDLE = "idle"
    SYNCING = "syncing"
    OFFLINE = "offline"


class SyncError(RuntimeError):
    """Raised when a sync attempt cannot be completed; local state is kept."""

    def __init__(self, message: str, *, reason: str | None = None) -> None:
        super().__init__(message)
        self.reason = reason


@dataclass(slots=True)
class SyncResult:
    pushed: int = 0
    pulled: bool = False
    skipped: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {"pushed": self.pushed, "pulled": self.pulled, "skipped": self.skipped}


class SyncOrchestrator:
    """Runs the push → trim → pull → replace cycle against a :class:`RemoteGateway`.

    The payload of a push is fixed when it is sent. Operations queued while a
    push is in flight stay in the queue for the next flush, and the pull that
    would overwrite local records is deferred until they have been sent too.
    """

    def __init__(
        self,
        records: RecordStore,
        queue: PendingQueue,
        gateway: RemoteGateway,
        connectivity: ConnectivityMonitor,
        kv: KeyValueStore,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self.records = records
        self.queue = queue
        self.gateway = gateway
        self.connectivity = connectivity
        self._kv = kv
        self.logger = logger or _LOGGER
        self._state = SyncState.IDLE if connectivity.online else SyncState.OFFLINE
        self._unsubscribe: Callable[[], None] | None = None
        self.last_push_error: str | None = None
        self.last_pull_error: str | None = None
        self.last_result: SyncResult | None = None

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def last_sync(self) -> str | None:
        return self._kv.read(STORAGE_LAST_SYNC)

    # ------------------------------------------------------------------
    async def async_start(self, *, pull: bool = True) -> None:
        """Load local data, subscribe to connectivity and pull if nothing is pending."""

        self.records.load()
        self.queue.load()
        if self._unsubscribe is None:
            self._unsubscribe = self.connectivity.subscribe(self._async_connectivity_changed)
        self._state = self._resting_state()
        if not pull:
            return
        try:
            await self._async_pull_when_idle()
        except SyncError as err:
            self.logger.warning("Startup pull failed, showing local data: %s", err)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def async_request_sync(self) -> SyncResult:
        """Manual sync trigger."""

        if not self.connectivity.online:
            raise SyncError("cannot sync while offline", reason="offline")
        return await self.async_flush()

    async def async_refresh(self) -> bool:
        """Reload local data and pull when online with nothing pending.

        Returns whether a snapshot replaced the local records.
        """

        self.records.load()
        self.queue.load()
        return await self._async_pull_when_idle()

    async def _async_pull_when_idle(self) -> bool:
        if self._state is SyncState.SYNCING:
            return False
        if not self.connectivity.online or not self.queue.is_empty:
            return False
        self._state = SyncState.SYNCING
        try:
            return await self._async_pull()
        finally:
            self._state = self._resting_state()

    async def async_flush(self) -> SyncResult:
        if self._state is SyncState.SYNCING:
            self.logger.debug("Sync already running, ignoring trigger")
            return SyncResult(skipped=True)
        self._state = SyncState.SYNCING
        try:
            result = await self._async_flush()
        finally:
            self._state = self._resting_state()
        self.last_result = result
        return result

    # ------------------------------------------------------------------
    async def _async_flush(self) -> SyncResult:
        result = SyncResult()
        operations = self.queue.drain()
        if operations:
            try:
                await self.gateway.push(operations)
            except GatewayError as err:
                self.last_push_error = str(err)
                self.logger.warning("Push of %d operations failed: %s", len(operations), err)
                raise SyncError(f"failed to sync data: {err}", reason="push_failed") from err
            self.queue.remove_first(len(operations))
            self.last_push_error = None
            result.pushed = len(operations)
            self.logger.info("Pushed %d operations", result.pushed)
        result.pulled = await self._async_pull()
        return result

    async def _async_pull(self) -> bool:
        if not self.queue.is_empty:
            self.logger.info("%d operations still pending, not replacing local records", len(self.queue))
            return False
        try:
            snapshot = await self.gateway.pull()
        except GatewayError as err:
            self.last_pull_error = str(err)
            self.logger.warning("Pull failed: %s", err)
            raise SyncError(f"failed to fetch data: {err}", reason="pull_failed") from err
        if not self.queue.is_empty:
            # A mutation landed while the pull was in flight.
            self.logger.info("Local changes queued during pull, keeping local records")
            return False
        self.records.replace_all(snapshot.collections, snapshot.deductions, snapshot.batches)
        self._kv.write(STORAGE_LAST_SYNC, datetime.now(tz=UTC).isoformat())
        self.last_pull_error = None
        return True

    async def _async_connectivity_changed(self, online: bool) -> None:
        if self._state is SyncState.SYNCING:
            return
        self._state = self._resting_state()
        if not online:
            return
        # An empty queue still pulls.
        try:
            await self.async_flush()
        except SyncError as err:
            self.logger.warning("Automatic sync after reconnect failed: %s", err)

    def _resting_state(self) -> SyncState:
        return SyncState.IDLE if self.connectivity.online else SyncState.OFFLINE

    # ------------------------------------------------------------------
    def status(self) -> dict[str, Any]:
        return {
            "state": str(self._state),
            "online": self.connectivity.online,
            "pending": len(self.queue),
            "last_sync": self.last_sync,
            "last_push_error": self.last_push_error,
            "last_pull_error": self.last_pull_error,
            "last_result": self.last_result.as_dict() if self.last_result else None,
        }
