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
from services.errors import PipelineError
from services.llm import build_chat_provider, cluster_model_for
from services.news_clustering_service import NewsClusteringService
from services.news_digest_service import NewsDigestService
from services.summary_store import SummaryStore

configure_logging(service_name="worker")
logger = get_logger().bind(worker="news_digest_bot")

DIGEST_MODES = ("stories", "plain")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="NewsDigestBot: summarize articles stored since the previous digest."
    )
    parser.add_argument(
        "--mode",
        choices=DIGEST_MODES,
        default="stories",
        help="stories = cluster and rank into stories; plain = paragraph plus bullets.",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Optional cap on the number of articles in this digest window.",
    )
    return parser.parse_args(argv)


async def run_digest(mode: str, limit: Optional[int]) -> int:
    try:
        provider = build_chat_provider(settings)
    except (RuntimeError, ValueError) as exc:
        logger.error("news_digest_bot_misconfigured", error=str(exc))
        return 1

    try:
        pool = await create_db_pool(settings)
    except Exception as exc:
        logger.error("news_digest_bot_db_unavailable", error=str(exc))
        return 1

    clustering = NewsClusteringService(provider, cluster_model=cluster_model_for(settings))
    service = NewsDigestService(ArticleStore(pool), SummaryStore(pool), clustering)
    try:
        if mode == "plain":
            summary = await service.run_plain_digest(limit)
        else:
            summary = await service.run_story_digest(limit)
    except (PipelineError, asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
        logger.error("news_digest_bot_failed", mode=mode, error=str(exc))
        return 1
    except Exception as exc:
        logger.exception("news_digest_bot_crashed", mode=mode, error=str(exc))
        return 1
    finally:
        await pool.close()

    if summary is None:
        logger.info("news_digest_bot_nothing_to_do", mode=mode)
        return 0

    logger.info(
        "news_digest_bot_finished",
        mode=mode,
        summary_id=summary.id,
        article_count=summary.article_count,
        from_id=summary.from_article_id,
        to_id=summary.to_article_id,
    )
    return 0


async def main_async(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    with with_run_id():
        return await run_digest(mode=args.mode, limit=args.limit)


def main() -> None:
    exit_code = asyncio.run(main_async())
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
