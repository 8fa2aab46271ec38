from __future__ import annotations

import argparse
import asyncio
from typing import List, Optional

import asyncpg

from app.config import settings
from app.core.logging import configure_logging, get_logger
from app.core.request_id import with_run_id
from services.article_store import ArticleStore
from services.db_service import create_db_pool
from services.news_reconcile_service import DEFAULT_RECONCILE_LIMIT, reconcile_stale_articles
from services.work_queue import PostgresWorkQueue

configure_logging(service_name="worker")
logger = get_logger().bind(worker="news_reconcile_bot")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="NewsReconcileBot: re-queue articles stuck in pending/processing."
    )
    parser.add_argument(
        "--older-than-minutes",
        type=int,
        default=settings.RECONCILE_STALE_MINUTES,
        help="Only touch articles not updated for this many minutes.",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=DEFAULT_RECONCILE_LIMIT,
        help="Max articles to re-queue in one sweep.",
    )
    return parser.parse_args(argv)


async def run_reconcile(older_than_minutes: int, limit: int) -> int:
    try:
        pool = await create_db_pool(settings)
    except Exception as exc:
        logger.error("news_reconcile_bot_db_unavailable", error=str(exc))
        return 1

    try:
        result = await reconcile_stale_articles(
            ArticleStore(pool),
            PostgresWorkQueue(pool),
            older_than_minutes=older_than_minutes,
            limit=limit,
        )
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
        logger.error("news_reconcile_bot_failed", error=str(exc))
        return 1
    finally:
        await pool.close()

    logger.info("news_reconcile_bot_finished", **result)
    return 0


async def main_async(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    with with_run_id():
        return await run_reconcile(args.older_than_minutes, args.limit)


def main() -> None:
    exit_code = asyncio.run(main_async())
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
