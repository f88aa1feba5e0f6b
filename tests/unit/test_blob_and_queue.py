"""Unit tests for LocalBlobStorage and MemoryJobQueue."""

from __future__ import annotations

from pathlib import Path

import pytest

from fileready.models.jobs import JobType
from fileready.providers.blob.local_blob_storage import LocalBlobStorage
from fileready.providers.queue.memory_queue import MemoryJobQueue
from fileready.utils.errors import BlobNotFoundError


class TestLocalBlobStorage:
    @pytest.mark.asyncio
    async def test_upload_exists_download(self, blob_storage: LocalBlobStorage) -> None:
        await blob_storage.upload("user-1/nested/doc.txt", b"payload")

        assert await blob_storage.exists("user-1/nested/doc.txt") is True
        assert await blob_storage.download("user-1/nested/doc.txt") == b"payload"

    @pytest.mark.asyncio
    async def test_missing_blob(self, blob_storage: LocalBlobStorage) -> None:
        assert await blob_storage.exists("user-1/none.txt") is False
        with pytest.raises(BlobNotFoundError, match="Blob not found at path: user-1/none.txt"):
            await blob_storage.download("user-1/none.txt")

    @pytest.mark.asyncio
    async def test_directories_are_not_blobs(
        self, blob_storage: LocalBlobStorage, blob_root: Path
    ) -> None:
        (blob_root / "user-1").mkdir()
        assert await blob_storage.exists("user-1") is False

    @pytest.mark.asyncio
    async def test_paths_cannot_escape_root(
        self, blob_storage: LocalBlobStorage, blob_root: Path
    ) -> None:
        secret = blob_root.parent / "secret.txt"
        secret.write_bytes(b"nope")

        assert await blob_storage.exists("../secret.txt") is False
        with pytest.raises(BlobNotFoundError):
            await blob_storage.download("../secret.txt")
        with pytest.raises(BlobNotFoundError):
            await blob_storage.upload("../escape.txt", b"x")

    def test_provider_name(self, blob_storage: LocalBlobStorage) -> None:
        assert blob_storage.get_provider_name() == "local_blob"


class TestMemoryJobQueue:
    @pytest.mark.asyncio
    async def test_enqueue_records_job(self) -> None:
        queue = MemoryJobQueue(timer=lambda: 100.0)

        job_id = await queue.enqueue(JobType.FILE_PROCESSING, {"file_id": "f1"}, delay_ms=2500)

        [job] = queue.jobs
        assert job.job_id == job_id
        assert job.payload == {"file_id": "f1"}
        assert job.delay_ms == 2500
        assert job.run_at == pytest.approx(102.5)

    @pytest.mark.asyncio
    async def test_payload_is_copied(self) -> None:
        queue = MemoryJobQueue()
        payload = {"file_id": "f1"}

        await queue.enqueue(JobType.EMBEDDING_GENERATION, payload)
        payload["file_id"] = "changed"

        assert queue.jobs[0].payload == {"file_id": "f1"}

    @pytest.mark.asyncio
    async def test_due_jobs_respects_delay(self) -> None:
        now = [0.0]
        queue = MemoryJobQueue(timer=lambda: now[0])
        await queue.enqueue(JobType.FILE_PROCESSING, {"n": 1})
        await queue.enqueue(JobType.FILE_PROCESSING, {"n": 2}, delay_ms=1000)

        assert [j.payload["n"] for j in queue.due_jobs()] == [1]
        assert queue.due_jobs() == []

        now[0] = 1.0
        assert [j.payload["n"] for j in queue.due_jobs()] == [2]
        assert queue.jobs == []

    @pytest.mark.asyncio
    async def test_negative_delay_is_immediate(self) -> None:
        queue = MemoryJobQueue(timer=lambda: 5.0)
        await queue.enqueue(JobType.FILE_UPLOAD, {}, delay_ms=-10)
        assert queue.jobs[0].delay_ms == 0
        assert len(queue.due_jobs()) == 1
