"""Abstract base class for the search-index orphan sweep."""

from __future__ import annotations

from abc import ABC, abstractmethod

from fileready.models.cleanup import OrphanSweepSummary


class IOrphanSweeper(ABC):
    """Removes search-index documents whose chunk rows no longer exist."""

    @abstractmethod
    async def run_full_cleanup(self) -> OrphanSweepSummary:
        """Sweep the whole index and report what was deleted."""
