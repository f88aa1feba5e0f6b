"""Fetches each attached file's content according to its context strategy.

    DIRECT_CONTENT  -> download the blob; images/binary as base64, text as UTF-8
    EXTRACTED_TEXT  -> stored extracted text
    RAG_CHUNKS      -> embed the user query, search the file's chunks

RAG needs a query; without one the file falls back to extracted text.
:meth:`ContextRetrievalService.retrieve_multiple` applies a total token
budget across files, always keeping the first file that could be fetched.
"""

from __future__ import annotations

import base64

import structlog

from fileready.config.processing import ContextConfig
from fileready.interfaces.blob_storage import IBlobStorage
from fileready.interfaces.embedding_provider import IEmbeddingProvider
from fileready.interfaces.file_store import IFileStore
from fileready.interfaces.search_index import ISearchIndex
from fileready.models.context import (
    Base64Content,
    ChunkContent,
    ChunksContent,
    ContextStrategy,
    MultiRetrievalResult,
    RetrievalFailure,
    RetrievedContent,
    TextContent,
)
from fileready.models.file import FileForStrategy, FileRecord
from fileready.services.context.prompt_assembler import ContextPromptAssembler
from fileready.services.context.strategy import ContextStrategySelector, is_image, is_text_type
from fileready.utils.errors import ContentRetrievalError

logger = structlog.get_logger(logger_name=__name__)


class ContextRetrievalService:
    def __init__(
        self,
        store: IFileStore,
        blob_storage: IBlobStorage,
        search_index: ISearchIndex,
        embedding_provider: IEmbeddingProvider,
        selector: ContextStrategySelector,
        assembler: ContextPromptAssembler,
        config: ContextConfig | None = None,
    ) -> None:
        self._store = store
        self._blob_storage = blob_storage
        self._search_index = search_index
        self._embedding_provider = embedding_provider
        self._selector = selector
        self._assembler = assembler
        self._config = config or ContextConfig()

    async def retrieve_content(
        self,
        user_id: str,
        file: FileRecord,
        user_query: str | None = None,
        max_chunks: int | None = None,
    ) -> RetrievedContent:
        """Fetch one file's content.

        Raises
        ------
        ContentRetrievalError
            If the selected source has nothing to return.
        """
        decision = self._selector.select_strategy(FileForStrategy.from_record(file))
        strategy = decision.strategy
        if strategy == ContextStrategy.RAG_CHUNKS and not (user_query and user_query.strip()):
            strategy = ContextStrategy.EXTRACTED_TEXT

        logger.debug(
            "context_strategy_selected",
            user_id=user_id,
            file_id=file.file_id,
            strategy=strategy.value,
            reason=decision.reason,
        )

        if strategy == ContextStrategy.DIRECT_CONTENT:
            return await self._direct_content(file)
        if strategy == ContextStrategy.EXTRACTED_TEXT:
            return await self._extracted_text(user_id, file)
        return await self._rag_chunks(user_id, file, user_query or "", max_chunks)

    async def retrieve_multiple(
        self,
        user_id: str,
        files: list[FileRecord],
        user_query: str | None = None,
        max_total_tokens: int | None = None,
    ) -> MultiRetrievalResult:
        """Fetch several files within a shared token budget.

        Files are taken in order.  Once a file would push the total past
        the budget, it and every later file are left out and ``truncated``
        is set.  The first fetched file is kept even if it alone exceeds
        the budget.
        """
        budget = max_total_tokens or self._config.max_total_tokens
        contents: list[RetrievedContent] = []
        failures: list[RetrievalFailure] = []
        total_tokens = 0
        truncated = False

        for file in files:
            try:
                item = await self.retrieve_content(user_id, file, user_query)
            except Exception as exc:
                logger.warning(
                    "context_retrieval_failed",
                    user_id=user_id,
                    file_id=file.file_id,
                    error=str(exc),
                )
                failures.append(
                    RetrievalFailure(file_id=file.file_id, file_name=file.name, reason=str(exc))
                )
                continue

            tokens = self._assembler.estimate_tokens(item)
            if contents and total_tokens + tokens > budget:
                truncated = True
                break
            contents.append(item)
            total_tokens += tokens

        if truncated:
            logger.info(
                "context_budget_reached",
                user_id=user_id,
                included=len(contents),
                requested=len(files),
                total_tokens=total_tokens,
                budget=budget,
            )
        return MultiRetrievalResult(
            contents=contents,
            failures=failures,
            total_tokens=total_tokens,
            truncated=truncated,
        )

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    async def _direct_content(self, file: FileRecord) -> RetrievedContent:
        data = await self._blob_storage.download(file.blob_path)
        if is_image(file.mime_type) or not is_text_type(file.mime_type):
            payload: Base64Content | TextContent = Base64Content(
                mime_type=file.mime_type,
                data=base64.b64encode(data).decode("ascii"),
            )
        else:
            payload = TextContent(text=data.decode("utf-8", errors="replace"))
        return RetrievedContent(
            file_id=file.file_id,
            file_name=file.name,
            strategy=ContextStrategy.DIRECT_CONTENT,
            content=payload,
        )

    async def _extracted_text(self, user_id: str, file: FileRecord) -> RetrievedContent:
        text = await self._store.get_extracted_text(user_id, file.file_id)
        if text is None:
            raise ContentRetrievalError(f"Extracted text not found for file {file.file_id}")
        return RetrievedContent(
            file_id=file.file_id,
            file_name=file.name,
            strategy=ContextStrategy.EXTRACTED_TEXT,
            content=TextContent(text=text),
        )

    async def _rag_chunks(
        self,
        user_id: str,
        file: FileRecord,
        user_query: str,
        max_chunks: int | None,
    ) -> RetrievedContent:
        query_embedding = await self._embedding_provider.embed_single(user_query)
        hits = await self._search_index.search(
            user_id,
            query_embedding,
            top=max_chunks or self._config.max_chunks,
            file_id=file.file_id,
        )
        return RetrievedContent(
            file_id=file.file_id,
            file_name=file.name,
            strategy=ContextStrategy.RAG_CHUNKS,
            content=ChunksContent(
                chunks=[
                    ChunkContent(
                        chunk_index=hit.chunk_index,
                        text=hit.text,
                        relevance_score=hit.score,
                    )
                    for hit in hits
                ]
            ),
        )
