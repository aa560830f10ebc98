from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

_LOGGER = logging.getLogger(__name__)

ConnectivityListener = Callable[[bool], Awaitable[None] | None]


class ConnectivityMonitor:
    """Holds the host's online flag and notifies listeners on transitions only."""

    def __init__(self, online: bool = False) -> None:
        self._online = bool(online)
        self._listeners: list[ConnectivityListener] = []

    @property
    def online(self) -> bool:
        return self._online

    def subscribe(self, listener: ConnectivityListener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that removes it."""

        if listener not in self._listeners:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def async_set_online(self, online: bool) -> None:
        """Record the new state; listeners run only when it changed."""

        online = bool(online)
        if online == self._online:
            return
        self._online = online
        _LOGGER.info("Connectivity changed: %s", "online" if online else "offline")
        for listener in list(self._listeners):
            try:
                result = listener(online)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as err:  # noqa: BLE001
                _LOGGER.warning("Connectivity listener raised error: %s", err, exc_info=True)
