from __future__ import annotations

import asyncio
from typing import Any, Dict, List

import asyncpg
import pytest

from app.workers import news_digest_bot, news_fetch_bot, news_reconcile_bot, news_transform_bot
from services.errors import EmptySynthesisError
from tests.fixtures import FakeProvider, FakeQueue


class DummyPool:
    def __init__(self) -> None:
        self.closed = False

    async def close(self) -> None:
        self.closed = True


def _patch_pool(monkeypatch, module) -> DummyPool:
    pool = DummyPool()

    async def fake_create_db_pool(settings):
        return pool

    monkeypatch.setattr(module, "create_db_pool", fake_create_db_pool)
    return pool


def test_parse_args_defaults():
    assert news_digest_bot.parse_args([]).mode == "stories"
    assert news_digest_bot.parse_args(["--mode", "plain", "--limit", "50"]).limit == 50
    assert news_transform_bot.parse_args(["--drain"]).drain is True
    assert news_fetch_bot.parse_args(["--sources", "finnhub,massive"]).sources == "finnhub,massive"
    with pytest.raises(SystemExit):
        news_digest_bot.parse_args(["--mode", "weekly"])


@pytest.mark.asyncio
async def test_fetch_bot_success(monkeypatch):
    pool = _patch_pool(monkeypatch, news_fetch_bot)
    seen: Dict[str, Any] = {}

    def fake_build_sources(settings, client, keys):
        seen["keys"] = keys
        return ["adapter"]

    class DummyIngestService:
        def __init__(self, store, queue) -> None:
            pass

        async def ingest_all_sources(self, adapters, limit):
            seen["limit"] = limit
            return {"sources": [], "total_saved": 2, "total_duplicate": 1, "total_error": 0, "failed_sources": 0}

    monkeypatch.setattr(news_fetch_bot, "build_sources", fake_build_sources)
    monkeypatch.setattr(news_fetch_bot, "NewsIngestService", DummyIngestService)

    exit_code = await news_fetch_bot.run_fetch(limit=5, sources="finnhub,massive")

    assert exit_code == 0
    assert seen == {"keys": ["finnhub", "massive"], "limit": 5}
    assert pool.closed is True


@pytest.mark.asyncio
async def test_fetch_bot_fails_when_every_source_fails(monkeypatch):
    _patch_pool(monkeypatch, news_fetch_bot)

    class DummyIngestService:
        def __init__(self, store, queue) -> None:
            pass

        async def ingest_all_sources(self, adapters, limit):
            return {"sources": [], "total_saved": 0, "total_duplicate": 0, "total_error": 0, "failed_sources": 1}

    monkeypatch.setattr(news_fetch_bot, "build_sources", lambda settings, client, keys: ["adapter"])
    monkeypatch.setattr(news_fetch_bot, "NewsIngestService", DummyIngestService)

    assert await news_fetch_bot.run_fetch(limit=5, sources=None) == 1


@pytest.mark.asyncio
async def test_fetch_bot_db_unavailable(monkeypatch):
    async def failing_pool(settings):
        raise RuntimeError("DATABASE_URL not set in environment/.env")

    monkeypatch.setattr(news_fetch_bot, "create_db_pool", failing_pool)
    assert await news_fetch_bot.run_fetch(limit=5, sources=None) == 1


@pytest.mark.asyncio
async def test_transform_bot_runs_service_and_closes_pool(monkeypatch):
    pool = _patch_pool(monkeypatch, news_transform_bot)
    installed: List[asyncio.Event] = []
    runs: List[Dict[str, Any]] = []

    class DummyTransformService:
        def __init__(self, store, queue, normalizer, **kwargs) -> None:
            runs.append(kwargs)

        async def run(self, stop_event, *, drain):
            runs.append({"drain": drain, "stop_event": stop_event})
            return {"completed": 3, "retry": 1}

    monkeypatch.setattr(news_transform_bot, "build_chat_provider", lambda settings: FakeProvider(["{}"]))
    monkeypatch.setattr(news_transform_bot, "PostgresWorkQueue", lambda pool, **kw: FakeQueue([1, 2]))
    monkeypatch.setattr(news_transform_bot, "NewsTransformService", DummyTransformService)
    monkeypatch.setattr(news_transform_bot, "_install_signal_handlers", installed.append)

    exit_code = await news_transform_bot.run_transform(drain=True, wait_timeout_s=0.5)

    assert exit_code == 0
    assert runs[0]["wait_timeout_s"] == 0.5
    assert runs[1]["drain"] is True
    assert runs[1]["stop_event"] is installed[0]
    assert pool.closed is True


@pytest.mark.asyncio
async def test_transform_bot_misconfigured_provider(monkeypatch):
    def failing_provider(settings):
        raise RuntimeError("OPENAI_API_KEY is missing but LLM_PROVIDER=openai")

    monkeypatch.setattr(news_transform_bot, "build_chat_provider", failing_provider)
    assert await news_transform_bot.run_transform(drain=True, wait_timeout_s=0.5) == 1


@pytest.mark.asyncio
async def test_digest_bot_exit_codes(monkeypatch):
    _patch_pool(monkeypatch, news_digest_bot)
    monkeypatch.setattr(news_digest_bot, "build_chat_provider", lambda settings: FakeProvider(["{}"]))

    class NothingNew:
        def __init__(self, *args) -> None:
            pass

        async def run_story_digest(self, limit):
            return None

    class BrokenSynthesis(NothingNew):
        async def run_story_digest(self, limit):
            raise EmptySynthesisError("no stories in synthesis response")

    monkeypatch.setattr(news_digest_bot, "NewsDigestService", NothingNew)
    assert await news_digest_bot.run_digest(mode="stories", limit=None) == 0

    monkeypatch.setattr(news_digest_bot, "NewsDigestService", BrokenSynthesis)
    assert await news_digest_bot.run_digest(mode="stories", limit=None) == 1


@pytest.mark.asyncio
async def test_digest_bot_returns_failure_on_connection_and_unexpected_errors(monkeypatch):
    pool = _patch_pool(monkeypatch, news_digest_bot)
    monkeypatch.setattr(news_digest_bot, "build_chat_provider", lambda settings: FakeProvider(["{}"]))

    class BusyConnection:
        def __init__(self, *args) -> None:
            pass

        async def run_plain_digest(self, limit):
            raise asyncpg.InterfaceError("another operation is in progress")

    class Crashing(BusyConnection):
        async def run_plain_digest(self, limit):
            raise TypeError("unexpected row shape")

    monkeypatch.setattr(news_digest_bot, "NewsDigestService", BusyConnection)
    assert await news_digest_bot.run_digest(mode="plain", limit=5) == 1
    assert pool.closed is True

    monkeypatch.setattr(news_digest_bot, "NewsDigestService", Crashing)
    assert await news_digest_bot.run_digest(mode="plain", limit=5) == 1


@pytest.mark.asyncio
async def test_reconcile_bot_reports_result(monkeypatch):
    pool = _patch_pool(monkeypatch, news_reconcile_bot)
    calls: List[Dict[str, Any]] = []

    async def fake_reconcile(store, queue, *, older_than_minutes, limit):
        calls.append({"older_than_minutes": older_than_minutes, "limit": limit})
        return {"found": 2, "requeued": 2, "failed": 0}

    monkeypatch.setattr(news_reconcile_bot, "reconcile_stale_articles", fake_reconcile)

    assert await news_reconcile_bot.run_reconcile(older_than_minutes=45, limit=10) == 0
    assert calls == [{"older_than_minutes": 45, "limit": 10}]
    assert pool.closed is True
