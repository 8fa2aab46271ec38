from __future__ import annotations

import argparse
import asyncio
import signal
from typing import List, Optional

from app.config import settings
from app.core.logging import configure_logging, get_logger
from app.core.request_id import with_run_id
from services.article_store import ArticleStore
from services.db_service import create_db_pool
from services.llm import build_chat_provider
from services.news_normalization_service import NewsNormalizationService
from services.news_transform_service import NewsTransformService
from services.work_queue import PostgresWorkQueue

configure_logging(service_name="worker")
logger = get_logger().bind(worker="news_transform_bot")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="NewsTransformBot: consume the transform queue and rewrite articles in a neutral tone."
    )
    parser.add_argument(
        "--drain",
        action="store_true",
        help="Exit once the queue stays empty for one wait period instead of running forever.",
    )
    parser.add_argument(
        "--wait-timeout",
        type=float,
        default=settings.QUEUE_WAIT_TIMEOUT_S,
        help="Seconds to wait for a queue item before checking for shutdown.",
    )
    return parser.parse_args(argv)


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()

    def _request_stop(signum: int) -> None:
        logger.info("shutdown_signal_received", signal=signum)
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _request_stop, sig)
        except NotImplementedError:
            # Windows event loops: fall back to KeyboardInterrupt
            pass


async def run_transform(drain: bool, wait_timeout_s: float) -> int:
    try:
        provider = build_chat_provider(settings)
    except (RuntimeError, ValueError) as exc:
        logger.error("news_transform_bot_misconfigured", error=str(exc))
        return 1

    try:
        pool = await create_db_pool(settings)
    except Exception as exc:
        logger.error("news_transform_bot_db_unavailable", error=str(exc))
        return 1

    stop_event = asyncio.Event()
    _install_signal_handlers(stop_event)

    store = ArticleStore(pool)
    queue = PostgresWorkQueue(pool, poll_interval_s=settings.QUEUE_POLL_INTERVAL_S)
    service = NewsTransformService(
        store,
        queue,
        NewsNormalizationService(provider),
        max_attempts=settings.TRANSFORM_MAX_ATTEMPTS,
        backoff_s=settings.TRANSFORM_RETRY_BACKOFF_S,
        wait_timeout_s=wait_timeout_s,
    )

    logger.info(
        "news_transform_bot_started",
        provider=settings.LLM_PROVIDER,
        model=provider.model_name,
        drain=drain,
        backlog=await queue.length(),
    )
    try:
        counters = await service.run(stop_event, drain=drain)
    finally:
        await pool.close()

    logger.info("news_transform_bot_finished", **counters)
    return 0


async def main_async(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    with with_run_id():
        return await run_transform(drain=args.drain, wait_timeout_s=args.wait_timeout)


def main() -> None:
    exit_code = asyncio.run(main_async())
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
