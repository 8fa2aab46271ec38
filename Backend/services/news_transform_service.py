"""
Transform consumer: pops article ids from the work queue and turns each
pending article into its neutral rewrite.

Per article: pending -> processing -> completed | failed. A failed model
call is recorded in processing_error and the id goes back to the tail of
the queue; once the error count reaches the attempt ceiling the next
delivery marks the article failed and drops the id (dead-letter by status).
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional, Protocol

import asyncpg

from app.core.logging import get_logger
from app.models.articles import OTHERS_CATEGORY, ArticleStatus, NormalizedArticle
from services.article_store import ArticleStore
from services.errors import ModelError, PipelineError
from services.news_normalization_service import NormalizationResult
from services.work_queue import WorkQueue

logger = get_logger()

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_S = 5.0
DEFAULT_WAIT_TIMEOUT_S = 5.0

SleepFn = Callable[[float], Awaitable[None]]


class Normalizer(Protocol):
    async def transform(self, headline: str, detail: str) -> NormalizationResult: ...


class TransformOutcome(str, Enum):
    EMPTY = "empty"
    INVALID = "invalid"
    MISSING = "missing"
    SKIPPED = "skipped"
    DEAD_LETTERED = "dead_lettered"
    RETRY = "retry"
    COMPLETED = "completed"
    COMMIT_FAILED = "commit_failed"


def parse_article_id(payload: str) -> Optional[int]:
    try:
        value = int(str(payload).strip())
    except ValueError:
        return None
    return value if value > 0 else None


class NewsTransformService:
    def __init__(
        self,
        store: ArticleStore,
        queue: WorkQueue,
        normalizer: Normalizer,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_s: float = DEFAULT_BACKOFF_S,
        wait_timeout_s: float = DEFAULT_WAIT_TIMEOUT_S,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._store = store
        self._queue = queue
        self._normalizer = normalizer
        self.max_attempts = max(1, int(max_attempts))
        self.backoff_s = max(0.0, float(backoff_s))
        self.wait_timeout_s = max(0.0, float(wait_timeout_s))
        self._sleep = sleep

    async def process_next(self) -> TransformOutcome:
        """Run one dequeue-to-commit step."""
        payload = await self._queue.dequeue(self.wait_timeout_s)
        if payload is None:
            return TransformOutcome.EMPTY

        article_id = parse_article_id(payload)
        if article_id is None:
            logger.warning("news_transform_invalid_payload", payload=str(payload)[:100])
            return TransformOutcome.INVALID

        log = logger.bind(article_id=article_id)

        attempts = await self._store.get_attempt_count(article_id)
        if attempts >= self.max_attempts:
            marked = await self._store.update_status(article_id, ArticleStatus.FAILED)
            log.warning("news_transform_dead_lettered", attempts=attempts, marked=marked)
            return TransformOutcome.DEAD_LETTERED

        article = await self._store.get_by_id(article_id)
        if article is None:
            log.warning("news_transform_article_missing")
            return TransformOutcome.MISSING
        if article.status.is_terminal:
            log.info("news_transform_already_terminal", status=article.status.value)
            return TransformOutcome.SKIPPED

        await self._store.mark_processing(article_id)

        try:
            result = await self._normalizer.transform(article.headline, article.detail)
        except ModelError as exc:
            await self._store.append_error(article_id, str(exc), exc.error_type)
            await self._queue.enqueue(article_id)
            log.warning(
                "news_transform_attempt_failed",
                attempt=attempts + 1,
                max_attempts=self.max_attempts,
                error_type=exc.error_type,
                error=str(exc),
            )
            await self._sleep(self.backoff_s)
            return TransformOutcome.RETRY

        category = await self._store.get_category_by_name(result.category)
        if category is None:
            log.warning("news_transform_unknown_category", category=result.category)
            category = await self._store.get_category_by_name(OTHERS_CATEGORY)
            if category is None:
                log.error("news_transform_fallback_category_missing", category=OTHERS_CATEGORY)
                return TransformOutcome.COMMIT_FAILED

        normalized = NormalizedArticle(
            original_id=article_id,
            headline=result.headline,
            detail=result.detail,
            category_id=category.id,
            sentiment_score=result.sentiment_score,
            prompt_version=result.prompt_version,
            model_used=result.model_used,
            transformed_at=datetime.now(timezone.utc),
        )
        try:
            committed = await self._store.save_normalized_and_complete(normalized)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
            # Row stays pending/processing; left for the reconcile sweep.
            log.error("news_transform_commit_failed", error=str(exc))
            return TransformOutcome.COMMIT_FAILED

        if not committed:
            log.info("news_transform_completed_elsewhere")
            return TransformOutcome.SKIPPED

        log.info(
            "news_transform_completed",
            category=category.name,
            sentiment_score=result.sentiment_score,
            model=result.model_used,
        )
        return TransformOutcome.COMPLETED

    async def run(
        self,
        stop_event: Optional[asyncio.Event] = None,
        *,
        drain: bool = False,
    ) -> Dict[str, int]:
        """
        Loop over process_next() until stop_event is set, or in drain mode
        until a queue wait expires. Returns per-outcome counters.
        """
        counters: Dict[str, int] = {outcome.value: 0 for outcome in TransformOutcome}
        counters["error"] = 0

        while stop_event is None or not stop_event.is_set():
            try:
                outcome = await self.process_next()
            except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, PipelineError) as exc:
                counters["error"] += 1
                logger.error("news_transform_step_failed", error=str(exc))
                await self._sleep(self.backoff_s)
                continue
            except Exception as exc:
                counters["error"] += 1
                logger.exception("news_transform_step_crashed", error=str(exc))
                await self._sleep(self.backoff_s)
                continue

            counters[outcome.value] += 1
            if outcome is TransformOutcome.EMPTY and drain:
                break

        logger.info("news_transform_run_finished", **counters)
        return counters
