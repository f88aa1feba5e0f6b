"""Cleanup result models.  All transient; returned to callers and logged."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class CleanupResult(BaseModel):
    """Outcome of removing one file's chunk and search-index data."""

    model_config = ConfigDict(frozen=True)

    file_id: str
    chunks_deleted: int = Field(default=0, ge=0)
    search_documents_deleted: int = Field(default=0, ge=0)
    success: bool = True
    error: str | None = None


class CleanupFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    file_id: str
    error: str


class BatchCleanupResult(BaseModel):
    """Totals for a sweep over many failed files."""

    model_config = ConfigDict(frozen=True)

    files_processed: int = Field(default=0, ge=0)
    total_chunks_deleted: int = Field(default=0, ge=0)
    total_search_docs_deleted: int = Field(default=0, ge=0)
    failures: list[CleanupFailure] = Field(default_factory=list)


class OrphanSweepSummary(BaseModel):
    """Result of reconciling search-index documents against chunk rows."""

    model_config = ConfigDict(frozen=True)

    total_scanned: int = Field(default=0, ge=0)
    total_deleted: int = Field(default=0, ge=0)
    total_failed: int = Field(default=0, ge=0)


class CleanupRunSummary(BaseModel):
    """Result of one scheduled cleanup run across all three sweeps."""

    model_config = ConfigDict(frozen=True)

    failed_files: BatchCleanupResult | None = None
    orphaned_chunks_deleted: int = 0
    orphaned_search_docs_deleted: int = 0
    errors: list[str] = Field(default_factory=list)
    dry_run: bool = False
