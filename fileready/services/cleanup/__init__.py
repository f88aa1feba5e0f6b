"""Partial-failure cleanup: per-file cleanup, orphan sweeps, scheduled runs."""

from fileready.services.cleanup.orphan_sweeper import SearchIndexOrphanSweeper
from fileready.services.cleanup.partial_failure_cleaner import PartialFailureCleaner
from fileready.services.cleanup.scheduled_job import ScheduledCleanupJob

__all__ = ["PartialFailureCleaner", "ScheduledCleanupJob", "SearchIndexOrphanSweeper"]
