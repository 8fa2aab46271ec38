from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import asyncpg

from app.core.logging import get_logger
from services.article_store import ArticleStore
from services.work_queue import WorkQueue

logger = get_logger()

DEFAULT_STALE_MINUTES = 30
DEFAULT_RECONCILE_LIMIT = 500


async def reconcile_stale_articles(
    store: ArticleStore,
    queue: WorkQueue,
    *,
    older_than_minutes: int = DEFAULT_STALE_MINUTES,
    limit: int = DEFAULT_RECONCILE_LIMIT,
) -> Dict[str, Any]:
    """
    Recover articles left in pending/processing by a crashed consumer or a
    failed enqueue: reset them to pending and push their ids again.
    Attempt counts are untouched, so the retry ceiling still applies.
    """
    cutoff = datetime.now(timezone.utc) - timedelta(minutes=max(0, int(older_than_minutes)))
    ids = await store.reset_stale(cutoff, limit)

    requeued = 0
    failed = 0
    for article_id in ids:
        try:
            await queue.enqueue(article_id)
            requeued += 1
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
            failed += 1
            logger.warning("news_reconcile_enqueue_failed", article_id=article_id, error=str(exc))

    logger.info(
        "news_reconcile_finished",
        cutoff=cutoff.isoformat(),
        found=len(ids),
        requeued=requeued,
        failed=failed,
    )
    return {"found": len(ids), "requeued": requeued, "failed": failed}
