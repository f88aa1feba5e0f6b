"""Job queue providers."""

from fileready.providers.queue.memory_queue import MemoryJobQueue, QueuedJob

__all__ = ["MemoryJobQueue", "QueuedJob"]
