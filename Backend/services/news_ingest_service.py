from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Sequence

import asyncpg

from app.core.logging import get_logger
from services.article_store import ArticleStore
from services.errors import PipelineError, SourceError
from services.news_sources import NewsSourceAdapter
from services.work_queue import WorkQueue

logger = get_logger()

# Errors that belong to a single candidate and must not stop the source.
_ITEM_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, PipelineError)


class NewsIngestService:
    """
    Producer side of the transform pipeline: fetch from each source, insert
    new URLs as pending articles and enqueue their ids.
    """

    def __init__(self, store: ArticleStore, queue: WorkQueue) -> None:
        self._store = store
        self._queue = queue

    async def ingest_source(self, adapter: NewsSourceAdapter, limit: int) -> Dict[str, Any]:
        """
        Returns {source, saved, duplicate, error}. Raises SourceError when the
        adapter fetch fails; per-item failures are counted, not raised.
        """
        counts: Dict[str, Any] = {"source": adapter.name, "saved": 0, "duplicate": 0, "error": 0}

        candidates = await adapter.fetch(limit)
        logger.info("news_ingest_fetched", source=adapter.name, fetched=len(candidates))

        for candidate in candidates:
            try:
                article_id = await self._store.insert_if_absent(candidate)
            except _ITEM_ERRORS as exc:
                counts["error"] += 1
                logger.warning(
                    "news_ingest_save_failed",
                    source=adapter.name,
                    url=candidate.url,
                    error=str(exc),
                )
                continue

            if article_id is None:
                counts["duplicate"] += 1
                continue

            try:
                await self._queue.enqueue(article_id)
            except _ITEM_ERRORS as exc:
                # Row stays pending; the reconcile sweep re-enqueues it.
                counts["error"] += 1
                logger.error(
                    "news_ingest_enqueue_failed",
                    source=adapter.name,
                    article_id=article_id,
                    error=str(exc),
                )
                continue
            counts["saved"] += 1

        logger.info(
            "news_ingest_source_done",
            source=adapter.name,
            saved=counts["saved"],
            duplicate=counts["duplicate"],
            error=counts["error"],
        )
        return counts

    async def _ingest_guarded(self, adapter: NewsSourceAdapter, limit: int) -> Dict[str, Any]:
        try:
            return await self.ingest_source(adapter, limit)
        except SourceError as exc:
            logger.warning("news_ingest_source_failed", source=adapter.name, error=str(exc))
            return self._failed_result(adapter, exc)
        except Exception as exc:
            logger.exception("news_ingest_source_crashed", source=adapter.name, error=str(exc))
            return self._failed_result(adapter, exc)

    @staticmethod
    def _failed_result(adapter: NewsSourceAdapter, exc: Exception) -> Dict[str, Any]:
        return {
            "source": adapter.name,
            "saved": 0,
            "duplicate": 0,
            "error": 0,
            "failed": True,
            "reason": str(exc),
        }

    async def ingest_all_sources(
        self,
        adapters: Sequence[NewsSourceAdapter],
        limit: int,
    ) -> Dict[str, Any]:
        if not adapters:
            logger.info("news_ingest_no_sources_configured")

        results: List[Dict[str, Any]] = list(
            await asyncio.gather(*(self._ingest_guarded(a, limit) for a in adapters))
        )

        summary = {
            "sources": results,
            "total_saved": sum(r["saved"] for r in results),
            "total_duplicate": sum(r["duplicate"] for r in results),
            "total_error": sum(r["error"] for r in results),
            "failed_sources": sum(1 for r in results if r.get("failed")),
        }
        logger.info(
            "news_ingest_summary",
            total_sources=len(results),
            total_saved=summary["total_saved"],
            total_duplicate=summary["total_duplicate"],
            total_error=summary["total_error"],
            failed_sources=summary["failed_sources"],
        )
        return summary
