"""
Work Queue - durable FIFO of article ids awaiting normalization.

Delivery is at-least-once: there is no ack step. A consumer that fails an
attempt pushes the id back to the tail itself, and a consumer that dies after
dequeue leaves the article in pending/processing for the reconciliation sweep.
Payloads are stored as text so a malformed entry reaches the consumer as-is.
"""

from __future__ import annotations

import asyncio
from time import monotonic
from typing import Awaitable, Callable, Optional, Protocol, Union

import asyncpg

from app.core.logging import get_logger
from services.db_service import execute_with_conn, fetchval_with_conn

logger = get_logger()

SleepFn = Callable[[float], Awaitable[None]]


class WorkQueue(Protocol):
    async def enqueue(self, article_id: Union[int, str]) -> None: ...

    async def dequeue(self, timeout_s: float) -> Optional[str]: ...

    async def length(self) -> int: ...


class PostgresWorkQueue:
    def __init__(
        self,
        pool: asyncpg.Pool,
        *,
        poll_interval_s: float = 0.5,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._pool = pool
        self._poll_interval_s = max(0.01, float(poll_interval_s))
        self._sleep = sleep

    async def enqueue(self, article_id: Union[int, str]) -> None:
        async with self._pool.acquire() as conn:
            await execute_with_conn(
                conn,
                "INSERT INTO transform_queue (payload) VALUES ($1)",
                str(article_id),
            )

    async def _claim_one(self) -> Optional[str]:
        async with self._pool.acquire() as conn:
            return await fetchval_with_conn(
                conn,
                """
                DELETE FROM transform_queue
                WHERE id = (
                    SELECT id
                    FROM transform_queue
                    ORDER BY id ASC
                    LIMIT 1
                    FOR UPDATE SKIP LOCKED
                )
                RETURNING payload
                """,
            )

    async def dequeue(self, timeout_s: float) -> Optional[str]:
        """
        Pop the oldest entry, waiting up to `timeout_s` for one to arrive.
        Returns None when the wait expires.
        """
        deadline = monotonic() + max(0.0, float(timeout_s))
        while True:
            payload = await self._claim_one()
            if payload is not None:
                return payload
            remaining = deadline - monotonic()
            if remaining <= 0:
                return None
            await self._sleep(min(self._poll_interval_s, remaining))

    async def length(self) -> int:
        async with self._pool.acquire() as conn:
            value = await fetchval_with_conn(conn, "SELECT COUNT(*) FROM transform_queue")
        return int(value or 0)
