"""Abstract base class for pushing status events to a user.

Emission is best-effort: implementations must not raise when no
transport is connected, and the pipeline never waits on delivery.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from fileready.models.events import FileEvent


class IStatusEmitter(ABC):
    """Contract for per-user status event delivery."""

    @abstractmethod
    async def emit(self, user_id: str, event: FileEvent) -> None:
        """Deliver *event* to every listener of *user_id*."""
