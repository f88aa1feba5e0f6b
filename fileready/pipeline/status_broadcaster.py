"""In-process status event delivery with per-user listener callbacks.

Implements :class:`~fileready.interfaces.status_emitter.IStatusEmitter` as
an Observer registry.  Transports (a WebSocket handler, a CLI printer, a
test collector) register a callback for a user id; every event emitted for
that user is passed to each of its callbacks.

    stage ──emit()──→ StatusEventBroadcaster ──callback()──→ transport

- Listeners are keyed by user id, so tenants never see each other's events.
- A raising listener is logged and skipped; the others still run and the
  pipeline is never interrupted.
- Sync and async callbacks are both accepted.
- Emitting with no listeners is a no-op.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable

import structlog

from fileready.interfaces.status_emitter import IStatusEmitter
from fileready.models.events import FileEvent
from fileready.utils.logging import get_logger


class StatusEventBroadcaster(IStatusEmitter):
    """Fans status events out to registered per-user callbacks.

    Parameters
    ----------
    history_size:
        How many recent events to keep per user for :meth:`recent_events`.
    """

    def __init__(self, history_size: int = 50) -> None:
        self._listeners: dict[str, list[Callable]] = {}
        self._history: dict[str, deque[FileEvent]] = {}
        self._history_size = history_size
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def emit(self, user_id: str, event: FileEvent) -> None:
        """Record *event* and notify every listener registered for *user_id*."""
        history = self._history.setdefault(user_id, deque(maxlen=self._history_size))
        history.append(event)

        self._logger.debug("status_event", user_id=user_id, type=event.type)

        await self._notify_listeners(user_id, event)

    def register_listener(self, user_id: str, callback: Callable) -> None:
        """Register a callback accepting ``(user_id, event)``."""
        listeners = self._listeners.setdefault(user_id, [])
        if callback not in listeners:
            listeners.append(callback)
            self._logger.debug(
                "listener_registered",
                user_id=user_id,
                total_listeners=len(listeners),
            )

    def unregister_listener(self, user_id: str, callback: Callable) -> None:
        listeners = self._listeners.get(user_id, [])
        if callback in listeners:
            listeners.remove(callback)
            self._logger.debug(
                "listener_unregistered",
                user_id=user_id,
                remaining_listeners=len(listeners),
            )
        if not listeners:
            self._listeners.pop(user_id, None)

    def recent_events(self, user_id: str) -> list[FileEvent]:
        """Return the user's most recent events, oldest first."""
        return list(self._history.get(user_id, ()))

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _notify_listeners(self, user_id: str, event: FileEvent) -> None:
        # Copy: a callback may unregister itself.
        for callback in list(self._listeners.get(user_id, [])):
            try:
                result = callback(user_id, event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.warning(
                    "listener_callback_error",
                    user_id=user_id,
                    type=event.type,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )
