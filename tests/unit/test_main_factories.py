"""Unit tests for service assembly - fileready.main."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from fileready.config.processing import ChunkingConfig, FileProcessingConfig
from fileready.config.settings import Settings
from fileready.main import build_services
from fileready.providers.embedding.fastembed_provider import FastEmbedEmbeddingProvider
from fileready.providers.embedding.hashing_provider import HashingEmbeddingProvider
from fileready.providers.search_index.chromadb_index import ChromaDBSearchIndex
from fileready.providers.search_index.memory_index import MemorySearchIndex
from fileready.providers.store.memory_store import MemoryFileStore
from fileready.providers.store.sqlite_store import SQLiteFileStore
from fileready.utils.errors import ConfigurationError


def _settings(tmp_path: Path, **overrides: object) -> Settings:
    values: dict[str, object] = {
        "file_store_backend": "memory",
        "file_db_path": str(tmp_path / "files.db"),
        "blob_root": str(tmp_path / "blobs"),
        "search_index_backend": "memory",
        "chromadb_persist_dir": str(tmp_path / "chroma"),
        "config_path": str(tmp_path / "absent.yaml"),
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestBuildServices:
    def test_memory_backends(self, tmp_path: Path) -> None:
        services = build_services(_settings(tmp_path))

        assert isinstance(services.store, MemoryFileStore)
        assert isinstance(services.search_index, MemorySearchIndex)
        assert isinstance(services.embedding_provider, HashingEmbeddingProvider)
        assert services.config == FileProcessingConfig()

    def test_explicit_config_reaches_components(self, tmp_path: Path) -> None:
        config = FileProcessingConfig(chunking=ChunkingConfig(max_tokens=128, overlap_tokens=8))

        services = build_services(_settings(tmp_path), config)

        assert services.chunker.config.max_tokens == 128
        assert services.retry_policy.config == config.retry

    def test_settings_drive_config(self, tmp_path: Path) -> None:
        services = build_services(_settings(tmp_path, max_embedding_retries=7))
        assert services.config.retry.max_embedding_retries == 7

    def test_components_share_providers(self, tmp_path: Path) -> None:
        services = build_services(_settings(tmp_path))

        assert services.readiness._store is services.store
        assert services.retry_manager._queue is services.queue
        assert services.coordinator._emitter is services.broadcaster
        assert services.job_runner._queue is services.queue

    @pytest.mark.asyncio
    async def test_sqlite_initialize_creates_database(self, tmp_path: Path) -> None:
        services = build_services(_settings(tmp_path, file_store_backend="sqlite"))
        assert isinstance(services.store, SQLiteFileStore)

        await services.initialize()

        assert (tmp_path / "files.db").exists()

    def test_chromadb_backend(self, tmp_path: Path) -> None:
        services = build_services(_settings(tmp_path, search_index_backend="ChromaDB"))
        assert isinstance(services.search_index, ChromaDBSearchIndex)

    def test_embedding_dimension(self, tmp_path: Path) -> None:
        services = build_services(_settings(tmp_path, embedding_dimension=32))
        assert services.embedding_provider.get_dimension() == 32

    @pytest.mark.parametrize(
        "overrides",
        [
            {"file_store_backend": "postgres"},
            {"search_index_backend": "pinecone"},
            {"embedding_backend": "openai"},
        ],
    )
    def test_unknown_backend(self, tmp_path: Path, overrides: dict[str, str]) -> None:
        with pytest.raises(ConfigurationError, match="Unknown"):
            build_services(_settings(tmp_path, **overrides))


class TestEmbeddingSelection:
    def test_fastembed_when_available(self, tmp_path: Path) -> None:
        with patch.object(FastEmbedEmbeddingProvider, "is_available", return_value=True):
            services = build_services(
                _settings(
                    tmp_path,
                    embedding_backend="fastembed",
                    embedding_model="BAAI/bge-base-en-v1.5",
                )
            )

        assert isinstance(services.embedding_provider, FastEmbedEmbeddingProvider)
        assert services.embedding_provider.get_dimension() == 768

    def test_fastembed_falls_back_to_hashing(self, tmp_path: Path) -> None:
        with patch.object(FastEmbedEmbeddingProvider, "is_available", return_value=False):
            services = build_services(_settings(tmp_path, embedding_backend="fastembed"))

        assert isinstance(services.embedding_provider, HashingEmbeddingProvider)
