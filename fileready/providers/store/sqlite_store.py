"""SQLite-backed file and chunk store.

Persists file records, extracted text and chunk rows to a local SQLite
database (default ``data/files.db``) using ``aiosqlite`` for async I/O.
A connection is opened per operation; each public method issues its
statements on that one connection and commits once.

Timestamps are stored as fixed-width UTC strings
(``YYYY-MM-DDTHH:MM:SS.ffffffZ``) so that text comparison in SQL matches
chronological order.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from fileready.interfaces.file_store import IFileStore
from fileready.models.file import FileChunk, FileRecord, PipelineStage, ProcessingStatus
from fileready.utils.errors import FileRecordNotFoundError, StorageError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/files.db")
_TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
# Stay well under SQLite's bound-parameter limit for IN (...) lists.
_IN_BATCH = 500

_CREATE_FILES_SQL = """\
CREATE TABLE IF NOT EXISTS files (
    file_id                TEXT    PRIMARY KEY,
    user_id                TEXT    NOT NULL,
    name                   TEXT    NOT NULL,
    mime_type              TEXT    NOT NULL,
    size_bytes             INTEGER NOT NULL,
    blob_path              TEXT    NOT NULL,
    content_hash           TEXT    NOT NULL DEFAULT '',
    parent_folder_id       TEXT,
    processing_status      TEXT    NOT NULL DEFAULT 'pending',
    embedding_status       TEXT    NOT NULL DEFAULT 'pending',
    processing_retry_count INTEGER NOT NULL DEFAULT 0,
    embedding_retry_count  INTEGER NOT NULL DEFAULT 0,
    last_processing_error  TEXT,
    last_embedding_error   TEXT,
    failed_at              TEXT,
    has_extracted_text     INTEGER NOT NULL DEFAULT 0,
    extracted_text         TEXT,
    created_at             TEXT    NOT NULL,
    updated_at             TEXT    NOT NULL
);
"""

_CREATE_CHUNKS_SQL = """\
CREATE TABLE IF NOT EXISTS chunks (
    chunk_id           TEXT    PRIMARY KEY,
    file_id            TEXT    NOT NULL,
    user_id            TEXT    NOT NULL,
    chunk_index        INTEGER NOT NULL,
    text               TEXT    NOT NULL,
    token_count        INTEGER NOT NULL,
    start_offset       INTEGER NOT NULL,
    end_offset         INTEGER NOT NULL,
    search_document_id TEXT,
    created_at         TEXT    NOT NULL
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_files_user ON files(user_id, file_id);",
    "CREATE INDEX IF NOT EXISTS idx_files_failed_at ON files(failed_at);",
    "CREATE INDEX IF NOT EXISTS idx_chunks_file ON chunks(user_id, file_id, chunk_index);",
    "CREATE INDEX IF NOT EXISTS idx_chunks_search_doc ON chunks(search_document_id);",
    "CREATE INDEX IF NOT EXISTS idx_chunks_created ON chunks(created_at);",
]

_FILE_COLUMNS = (
    "file_id, user_id, name, mime_type, size_bytes, blob_path, content_hash, "
    "parent_folder_id, processing_status, embedding_status, processing_retry_count, "
    "embedding_retry_count, last_processing_error, last_embedding_error, failed_at, "
    "has_extracted_text, created_at, updated_at"
)

_INSERT_FILE_SQL = f"""\
INSERT INTO files ({_FILE_COLUMNS})
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_SELECT_FILE_SQL = f"SELECT {_FILE_COLUMNS} FROM files WHERE user_id = ? AND file_id = ?;"

_SELECT_FAILED_SQL = f"""\
SELECT {_FILE_COLUMNS} FROM files
WHERE failed_at IS NOT NULL AND failed_at < ?
ORDER BY failed_at, file_id
LIMIT ? OFFSET ?;
"""

_INSERT_CHUNK_SQL = """\
INSERT INTO chunks (chunk_id, file_id, user_id, chunk_index, text, token_count,
                    start_offset, end_offset, search_document_id, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_CHUNK_COLUMNS = (
    "chunk_id, file_id, user_id, chunk_index, text, token_count, "
    "start_offset, end_offset, search_document_id, created_at"
)

_ORPHAN_WHERE = """\
FROM chunks c
LEFT JOIN files f ON f.file_id = c.file_id AND f.user_id = c.user_id
WHERE f.file_id IS NULL AND c.created_at < ?
"""

_STATUS_COLUMN = {
    PipelineStage.PROCESSING: "processing_status",
    PipelineStage.EMBEDDING: "embedding_status",
}
_RETRY_COLUMN = {
    PipelineStage.PROCESSING: "processing_retry_count",
    PipelineStage.EMBEDDING: "embedding_retry_count",
}
_ERROR_COLUMN = {
    PipelineStage.PROCESSING: "last_processing_error",
    PipelineStage.EMBEDDING: "last_embedding_error",
}


def _to_db(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(_TS_FORMAT)


def _from_db(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.strptime(value, _TS_FORMAT).replace(tzinfo=timezone.utc)


def _now_db() -> str:
    return _to_db(datetime.now(tz=timezone.utc))


class SQLiteFileStore(IFileStore):
    """SQLite-backed :class:`IFileStore`."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                yield db
        except aiosqlite.Error as exc:
            raise StorageError(
                f"SQLite operation failed: {exc}", provider_name=self.get_provider_name()
            ) from exc

    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            await db.execute(_CREATE_FILES_SQL)
            await db.execute(_CREATE_CHUNKS_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("file_store_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # File records
    # ------------------------------------------------------------------

    async def create_file(self, record: FileRecord) -> FileRecord:
        async with self._connect() as db:
            await db.execute(
                _INSERT_FILE_SQL,
                (
                    record.file_id,
                    record.user_id,
                    record.name,
                    record.mime_type,
                    record.size_bytes,
                    record.blob_path,
                    record.content_hash,
                    record.parent_folder_id,
                    record.processing_status.value,
                    record.embedding_status.value,
                    record.processing_retry_count,
                    record.embedding_retry_count,
                    record.last_processing_error,
                    record.last_embedding_error,
                    _to_db(record.failed_at) if record.failed_at else None,
                    int(record.has_extracted_text),
                    _to_db(record.created_at),
                    _to_db(record.updated_at),
                ),
            )
            await db.commit()
        logger.debug("file_created", user_id=record.user_id, file_id=record.file_id)
        return record

    async def get_file(self, user_id: str, file_id: str) -> FileRecord | None:
        async with self._connect() as db:
            cursor = await db.execute(_SELECT_FILE_SQL, (user_id, file_id))
            row = await cursor.fetchone()
        return self._row_to_record(row) if row else None

    async def delete_file(self, user_id: str, file_id: str) -> bool:
        async with self._connect() as db:
            cursor = await db.execute(
                "DELETE FROM files WHERE user_id = ? AND file_id = ?", (user_id, file_id)
            )
            await db.commit()
            return cursor.rowcount > 0

    async def update_status(
        self,
        user_id: str,
        file_id: str,
        stage: PipelineStage,
        status: ProcessingStatus,
    ) -> FileRecord | None:
        column = _STATUS_COLUMN[stage]
        async with self._connect() as db:
            await db.execute(
                f"UPDATE files SET {column} = ?, updated_at = ? WHERE user_id = ? AND file_id = ?",
                (status.value, _now_db(), user_id, file_id),
            )
            await db.commit()
            cursor = await db.execute(_SELECT_FILE_SQL, (user_id, file_id))
            row = await cursor.fetchone()
        return self._row_to_record(row) if row else None

    async def increment_retry_count(
        self, user_id: str, file_id: str, stage: PipelineStage
    ) -> int:
        column = _RETRY_COLUMN[stage]
        async with self._connect() as db:
            cursor = await db.execute(
                f"UPDATE files SET {column} = {column} + 1, updated_at = ? "
                "WHERE user_id = ? AND file_id = ?",
                (_now_db(), user_id, file_id),
            )
            if cursor.rowcount == 0:
                raise FileRecordNotFoundError(
                    f"File {file_id} not found", provider_name=self.get_provider_name()
                )
            await db.commit()
            cursor = await db.execute(
                f"SELECT {column} FROM files WHERE user_id = ? AND file_id = ?",
                (user_id, file_id),
            )
            row = await cursor.fetchone()
        return int(row[0])

    async def set_last_error(
        self, user_id: str, file_id: str, stage: PipelineStage, error: str | None
    ) -> None:
        await self._update_columns(user_id, file_id, {_ERROR_COLUMN[stage]: error})

    async def mark_failed(self, user_id: str, file_id: str, failed_at: datetime) -> None:
        await self._update_columns(user_id, file_id, {"failed_at": _to_db(failed_at)})

    async def clear_failed_status(
        self, user_id: str, file_id: str, stages: list[PipelineStage]
    ) -> None:
        changes: dict[str, Any] = {"failed_at": None}
        for stage in stages:
            changes[_RETRY_COLUMN[stage]] = 0
            changes[_ERROR_COLUMN[stage]] = None
        await self._update_columns(user_id, file_id, changes)

    async def list_failed_files(
        self, failed_before: datetime, limit: int, offset: int = 0
    ) -> list[FileRecord]:
        async with self._connect() as db:
            cursor = await db.execute(_SELECT_FAILED_SQL, (_to_db(failed_before), limit, offset))
            rows = await cursor.fetchall()
        return [self._row_to_record(r) for r in rows]

    # ------------------------------------------------------------------
    # Extracted text
    # ------------------------------------------------------------------

    async def set_extracted_text(self, user_id: str, file_id: str, text: str) -> None:
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE files SET extracted_text = ?, has_extracted_text = 1, updated_at = ? "
                "WHERE user_id = ? AND file_id = ?",
                (text, _now_db(), user_id, file_id),
            )
            if cursor.rowcount == 0:
                raise FileRecordNotFoundError(
                    f"File {file_id} not found", provider_name=self.get_provider_name()
                )
            await db.commit()

    async def get_extracted_text(self, user_id: str, file_id: str) -> str | None:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT extracted_text FROM files WHERE user_id = ? AND file_id = ?",
                (user_id, file_id),
            )
            row = await cursor.fetchone()
        return row[0] if row else None

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    async def replace_chunks(
        self, user_id: str, file_id: str, chunks: list[FileChunk]
    ) -> int:
        async with self._connect() as db:
            await db.execute(
                "DELETE FROM chunks WHERE user_id = ? AND file_id = ?", (user_id, file_id)
            )
            await db.executemany(
                _INSERT_CHUNK_SQL,
                [
                    (
                        c.chunk_id,
                        c.file_id,
                        c.user_id,
                        c.chunk_index,
                        c.text,
                        c.token_count,
                        c.start_offset,
                        c.end_offset,
                        c.search_document_id,
                        _to_db(c.created_at),
                    )
                    for c in chunks
                ],
            )
            await db.commit()
        logger.debug("chunks_replaced", user_id=user_id, file_id=file_id, count=len(chunks))
        return len(chunks)

    async def list_chunks(self, user_id: str, file_id: str) -> list[FileChunk]:
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {_CHUNK_COLUMNS} FROM chunks WHERE user_id = ? AND file_id = ? "
                "ORDER BY chunk_index",
                (user_id, file_id),
            )
            rows = await cursor.fetchall()
        return [self._row_to_chunk(r) for r in rows]

    async def count_chunks(self, user_id: str, file_id: str) -> int:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT COUNT(*) FROM chunks WHERE user_id = ? AND file_id = ?",
                (user_id, file_id),
            )
            row = await cursor.fetchone()
        return int(row[0])

    async def delete_chunks(self, user_id: str, file_id: str) -> int:
        async with self._connect() as db:
            cursor = await db.execute(
                "DELETE FROM chunks WHERE user_id = ? AND file_id = ?", (user_id, file_id)
            )
            await db.commit()
            return cursor.rowcount

    async def set_search_document_ids(
        self, user_id: str, file_id: str, mapping: dict[str, str]
    ) -> None:
        async with self._connect() as db:
            await db.executemany(
                "UPDATE chunks SET search_document_id = ? "
                "WHERE chunk_id = ? AND user_id = ? AND file_id = ?",
                [(doc_id, chunk_id, user_id, file_id) for chunk_id, doc_id in mapping.items()],
            )
            await db.commit()

    async def list_search_document_ids(self, user_id: str, file_id: str) -> list[str]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT search_document_id FROM chunks "
                "WHERE user_id = ? AND file_id = ? AND search_document_id IS NOT NULL "
                "ORDER BY chunk_index",
                (user_id, file_id),
            )
            rows = await cursor.fetchall()
        return [r[0] for r in rows]

    # ------------------------------------------------------------------
    # Orphan maintenance
    # ------------------------------------------------------------------

    async def list_orphaned_chunk_ids(self, created_before: datetime, limit: int) -> list[str]:
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT c.chunk_id {_ORPHAN_WHERE} ORDER BY c.created_at LIMIT ?",
                (_to_db(created_before), limit),
            )
            rows = await cursor.fetchall()
        return [r[0] for r in rows]

    async def count_orphaned_chunks(self, created_before: datetime) -> int:
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT COUNT(*) {_ORPHAN_WHERE}", (_to_db(created_before),)
            )
            row = await cursor.fetchone()
        return int(row[0])

    async def delete_chunks_by_ids(self, chunk_ids: list[str]) -> int:
        deleted = 0
        async with self._connect() as db:
            for start in range(0, len(chunk_ids), _IN_BATCH):
                batch = chunk_ids[start : start + _IN_BATCH]
                placeholders = ", ".join("?" for _ in batch)
                cursor = await db.execute(
                    f"DELETE FROM chunks WHERE chunk_id IN ({placeholders})", batch
                )
                deleted += cursor.rowcount
            await db.commit()
        return deleted

    async def existing_search_document_ids(self, document_ids: list[str]) -> set[str]:
        found: set[str] = set()
        async with self._connect() as db:
            for start in range(0, len(document_ids), _IN_BATCH):
                batch = document_ids[start : start + _IN_BATCH]
                placeholders = ", ".join("?" for _ in batch)
                cursor = await db.execute(
                    "SELECT search_document_id FROM chunks "
                    f"WHERE search_document_id IN ({placeholders})",
                    batch,
                )
                found.update(r[0] for r in await cursor.fetchall())
        return found

    def get_provider_name(self) -> str:
        return "sqlite"

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _update_columns(self, user_id: str, file_id: str, changes: dict[str, Any]) -> None:
        # Column names come from the module-level maps, never from callers.
        assignments = ", ".join(f"{column} = ?" for column in changes)
        async with self._connect() as db:
            await db.execute(
                f"UPDATE files SET {assignments}, updated_at = ? WHERE user_id = ? AND file_id = ?",
                (*changes.values(), _now_db(), user_id, file_id),
            )
            await db.commit()

    @staticmethod
    def _row_to_record(row: aiosqlite.Row) -> FileRecord:
        r = dict(row)
        return FileRecord(
            file_id=r["file_id"],
            user_id=r["user_id"],
            name=r["name"],
            mime_type=r["mime_type"],
            size_bytes=r["size_bytes"],
            blob_path=r["blob_path"],
            content_hash=r["content_hash"],
            parent_folder_id=r["parent_folder_id"],
            processing_status=ProcessingStatus(r["processing_status"]),
            embedding_status=ProcessingStatus(r["embedding_status"]),
            processing_retry_count=r["processing_retry_count"],
            embedding_retry_count=r["embedding_retry_count"],
            last_processing_error=r["last_processing_error"],
            last_embedding_error=r["last_embedding_error"],
            failed_at=_from_db(r["failed_at"]),
            has_extracted_text=bool(r["has_extracted_text"]),
            created_at=_from_db(r["created_at"]),
            updated_at=_from_db(r["updated_at"]),
        )

    @staticmethod
    def _row_to_chunk(row: aiosqlite.Row) -> FileChunk:
        r = dict(row)
        r["created_at"] = _from_db(r["created_at"])
        return FileChunk(**r)
