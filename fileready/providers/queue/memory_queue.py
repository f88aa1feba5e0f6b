"""In-process job queue.

Jobs are held in a list with their scheduled run time.  :meth:`due_jobs`
pops everything whose delay has elapsed, which is enough for the CLI
driver and for tests that assert on what was enqueued.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog

from fileready.interfaces.job_queue import IJobQueue
from fileready.models.jobs import JobType

logger = structlog.get_logger(logger_name=__name__)


@dataclass
class QueuedJob:
    job_id: str
    job_type: JobType
    payload: dict[str, Any]
    delay_ms: int
    run_at: float


class MemoryJobQueue(IJobQueue):
    def __init__(self, timer: Callable[[], float] = time.monotonic) -> None:
        self._timer = timer
        self._jobs: list[QueuedJob] = []

    async def enqueue(
        self,
        job_type: JobType,
        payload: dict[str, Any],
        delay_ms: int = 0,
    ) -> str:
        job = QueuedJob(
            job_id=str(uuid.uuid4()),
            job_type=job_type,
            payload=dict(payload),
            delay_ms=max(0, delay_ms),
            run_at=self._timer() + max(0, delay_ms) / 1000,
        )
        self._jobs.append(job)
        logger.debug(
            "job_enqueued",
            job_id=job.job_id,
            job_type=job_type.value,
            delay_ms=job.delay_ms,
        )
        return job.job_id

    @property
    def jobs(self) -> list[QueuedJob]:
        """Every job still queued, in enqueue order."""
        return list(self._jobs)

    def due_jobs(self, ignore_delay: bool = False) -> list[QueuedJob]:
        """Remove and return the jobs whose delay has elapsed.

        With *ignore_delay* every queued job is returned, delayed retries
        included.
        """
        now = float("inf") if ignore_delay else self._timer()
        due = [j for j in self._jobs if j.run_at <= now]
        self._jobs = [j for j in self._jobs if j.run_at > now]
        return due

    def get_provider_name(self) -> str:
        return "memory_queue"
