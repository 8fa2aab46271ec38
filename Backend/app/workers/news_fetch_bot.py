from __future__ import annotations

import argparse
import asyncio
from typing import List, Optional

from app.config import settings
from app.core.logging import configure_logging, get_logger
from app.core.request_id import with_run_id
from services.article_store import ArticleStore
from services.db_service import create_db_pool
from services.news_ingest_service import NewsIngestService
from services.news_sources import build_http_client, build_sources
from services.work_queue import PostgresWorkQueue

configure_logging(service_name="worker")
logger = get_logger().bind(worker="news_fetch_bot")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="NewsFetchBot: fetch financial news, store new articles and queue them for transform."
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=settings.NEWS_FETCH_LIMIT,
        help="Max articles to request per source (default: NEWS_FETCH_LIMIT).",
    )
    parser.add_argument(
        "--sources",
        type=str,
        default=None,
        help="Comma-separated source keys overriding NEWS_SOURCES (finnhub,alphavantage,massive).",
    )
    return parser.parse_args(argv)


async def run_fetch(limit: int, sources: Optional[str]) -> int:
    keys = sources.split(",") if sources else None
    try:
        pool = await create_db_pool(settings)
    except Exception as exc:
        logger.error("news_fetch_bot_db_unavailable", error=str(exc))
        return 1

    try:
        async with build_http_client(settings.SOURCE_TIMEOUT_S) as client:
            adapters = build_sources(settings, client, keys)
            service = NewsIngestService(ArticleStore(pool), PostgresWorkQueue(pool))
            result = await service.ingest_all_sources(adapters, limit)
    except (RuntimeError, ValueError) as exc:
        logger.error("news_fetch_bot_misconfigured", error=str(exc))
        return 1
    finally:
        await pool.close()

    logger.info(
        "news_fetch_bot_finished",
        total_saved=result["total_saved"],
        total_duplicate=result["total_duplicate"],
        total_error=result["total_error"],
        failed_sources=result["failed_sources"],
    )
    if adapters and result["failed_sources"] == len(adapters):
        return 1
    return 0


async def main_async(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    with with_run_id():
        return await run_fetch(limit=args.limit, sources=args.sources)


def main() -> None:
    exit_code = asyncio.run(main_async())
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
