# services/db_service.py
from __future__ import annotations

from typing import Any, AsyncIterator, List, Optional
from contextlib import asynccontextmanager
from time import monotonic
from urllib.parse import urlparse

import asyncpg

from app.config import Settings
from app.core.logging import get_logger

logger = get_logger()

APPLICATION_NAME = "zennews-pipeline"
IDLE_IN_TX_TIMEOUT_MS = 60_000
LOCK_TIMEOUT_MS = 5_000
SLOW_QUERY_THRESHOLD_MS = 1_000  # 1 second
DEFAULT_QUERY_TIMEOUT_S = 30.0


def normalize_database_url(raw_dsn: str) -> str:
    """
    Rewrite scheme postgresql+asyncpg:// → postgresql:// if needed.
    No other rewriting.
    """
    raw_dsn = raw_dsn.strip()
    if raw_dsn.startswith("postgresql+asyncpg://"):
        raw_dsn = "postgresql://" + raw_dsn[len("postgresql+asyncpg://"):]
    return raw_dsn


# --------------------------------------------------------------------
# Pool creation. Workers create exactly one pool at startup and hand it
# to every component that needs the database.
# --------------------------------------------------------------------
async def create_db_pool(settings: Settings) -> asyncpg.Pool:
    if not settings.DATABASE_URL:
        raise RuntimeError("DATABASE_URL not set in environment/.env")
    final_dsn = normalize_database_url(settings.DATABASE_URL)
    parsed = urlparse(final_dsn)

    logger.info(
        "db_pool_initializing",
        dsn_host=parsed.hostname,
        dsn_port=parsed.port,
        application_name=APPLICATION_NAME,
    )
    return await asyncpg.create_pool(
        dsn=final_dsn,
        min_size=settings.DB_POOL_MIN_SIZE,
        max_size=settings.DB_POOL_MAX_SIZE,
        command_timeout=60,
        timeout=60,
        statement_cache_size=0,
        max_inactive_connection_lifetime=30,
        server_settings={
            "application_name": APPLICATION_NAME,
            "statement_timeout": str(settings.STATEMENT_TIMEOUT_MS),
            "idle_in_transaction_session_timeout": str(IDLE_IN_TX_TIMEOUT_MS),
            "lock_timeout": str(LOCK_TIMEOUT_MS),
        },
    )


async def _execute_with_timing(
    conn: asyncpg.Connection,
    method: str,
    query: str,
    *args: Any,
    timeout: Optional[float] = None,
) -> Any:
    start_ms = monotonic() * 1000
    try:
        func = getattr(conn, method)
        effective_timeout = timeout if timeout is not None else DEFAULT_QUERY_TIMEOUT_S
        return await func(query, *args, timeout=effective_timeout)
    finally:
        duration_ms = (monotonic() * 1000) - start_ms
        if duration_ms >= SLOW_QUERY_THRESHOLD_MS:
            logger.warning(
                "db_slow_query",
                duration_ms=round(duration_ms, 2),
                method=method,
                arg_count=len(args),
                query_snippet=query.strip().split("\n")[0][:200],
            )


@asynccontextmanager
async def run_in_transaction(
    pool: asyncpg.Pool,
    *,
    isolation: Optional[str] = None,
    readonly: bool = False,
) -> AsyncIterator[asyncpg.Connection]:
    async with pool.acquire() as conn:
        tx = conn.transaction(isolation=isolation, readonly=readonly)
        await tx.start()
        try:
            yield conn
        except BaseException:
            await tx.rollback()
            raise
        else:
            await tx.commit()


async def fetch_with_conn(
    conn: asyncpg.Connection,
    query: str,
    *args: Any,
    timeout: Optional[float] = None,
) -> List[asyncpg.Record]:
    return await _execute_with_timing(conn, "fetch", query, *args, timeout=timeout)

async def fetchrow_with_conn(
    conn: asyncpg.Connection,
    query: str,
    *args: Any,
    timeout: Optional[float] = None,
) -> Optional[asyncpg.Record]:
    return await _execute_with_timing(
        conn, "fetchrow", query, *args, timeout=timeout
    )

async def fetchval_with_conn(
    conn: asyncpg.Connection,
    query: str,
    *args: Any,
    timeout: Optional[float] = None,
) -> Any:
    return await _execute_with_timing(conn, "fetchval", query, *args, timeout=timeout)

async def execute_with_conn(
    conn: asyncpg.Connection,
    query: str,
    *args: Any,
    timeout: Optional[float] = None,
) -> str:
    return await _execute_with_timing(conn, "execute", query, *args, timeout=timeout)


def affected_rows(status: Optional[str]) -> int:
    """
    Parse the row count from an asyncpg command tag ("UPDATE 1", "INSERT 0 1").
    """
    if not status:
        return 0
    try:
        return int(status.strip().split()[-1])
    except (ValueError, IndexError):
        return 0
