"""Abstract base class for the background job queue."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from fileready.models.jobs import JobType


# Concrete implementations:
#   MemoryJobQueue - in-process list, used by tests and the CLI
# Located in: fileready/providers/queue/
class IJobQueue(ABC):
    """Contract for enqueuing pipeline jobs.

    Retries are scheduled by enqueuing with ``delay_ms``; callers never
    sleep in-process waiting for a retry.
    """

    @abstractmethod
    async def enqueue(
        self,
        job_type: JobType,
        payload: dict[str, Any],
        delay_ms: int = 0,
    ) -> str:
        """Enqueue a job and return its id.

        Raises
        ------
        fileready.utils.errors.QueueError
            If the job could not be accepted.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this queue."""
