from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Sequence
from typing import Protocol

from aiohttp import ClientError, ClientSession, ClientTimeout

from ..const import DEFAULT_TIMEOUT
from .decode import RemoteSnapshot, SnapshotError, decode_snapshot
from .operations import PendingOperation, encode_actions

LOGGER = logging.getLogger(__name__)


class GatewayError(RuntimeError):
    """Raised when the remote sheet cannot be reached or rejects a request."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class RemoteGateway(Protocol):
    """Request/response channel to the authoritative store."""

    async def pull(self) -> RemoteSnapshot: ...

    async def push(self, operations: Sequence[PendingOperation]) -> None: ...


class SheetsGateway:
    """Talks to the spreadsheet web app: ``GET`` reads, ``POST`` replays actions."""

    def __init__(
        self,
        session: ClientSession,
        url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        logger: logging.Logger | None = None,
    ) -> None:
        self.session = session
        self.url = url
        self.timeout = ClientTimeout(total=timeout)
        self.logger = logger or LOGGER

    async def pull(self) -> RemoteSnapshot:
        try:
            async with self.session.get(
                self.url,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            ) as resp:
                text = await resp.text()
                if resp.status >= 400:
                    raise GatewayError(f"pull failed: {resp.status} {text}", status=resp.status)
        except (ClientError, asyncio.TimeoutError) as err:
            raise GatewayError(f"pull failed: {err}") from err

        try:
            payload = json.loads(text)
        except ValueError as err:
            raise GatewayError("pull returned a non-JSON body") from err
        try:
            snapshot = decode_snapshot(payload)
        except SnapshotError as err:
            raise GatewayError(f"pull rejected: {err}") from err
        self.logger.debug(
            "Pulled %d collections, %d deductions, %d batches",
            len(snapshot.collections),
            len(snapshot.deductions),
            len(snapshot.batches),
        )
        return snapshot

    async def push(self, operations: Sequence[PendingOperation]) -> None:
        """Send every operation in one request; the sheet applies all or none."""

        body = encode_actions(operations)
        try:
            async with self.session.post(
                self.url,
                data=body,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            ) as resp:
                text = await resp.text()
                if resp.status >= 400:
                    raise GatewayError(f"push failed: {resp.status} {text}", status=resp.status)
        except (ClientError, asyncio.TimeoutError) as err:
            raise GatewayError(f"push failed: {err}") from err

        if self._push_rejected(text):
            raise GatewayError(f"push rejected by remote: {text}")
        self.logger.debug("Pushed %d operations", len(operations))

    def _push_rejected(self, text: str) -> bool:
        try:
            payload = json.loads(text) if text else {}
        except ValueError:
            return False
        return isinstance(payload, dict) and payload.get("success") is False
