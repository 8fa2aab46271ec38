from __future__ import annotations

import pytest

from services.errors import EmptySynthesisError, ModelError
from services.llm.prompts import CLUSTER_RANK_SYSTEM_PROMPT, SYNTHESIZE_SYSTEM_PROMPT
from services.news_clustering_service import (
    MAX_CLUSTERS,
    NewsClusteringService,
    format_articles,
    gather_cluster_articles,
    truncate,
)
from tests.fixtures import FakeProvider, make_summary_article


def _story(headline: str) -> dict:
    return {
        "stories": [
            {
                "headline": headline,
                "summary": "Two sentences. About the story.",
                "angles": ["results"],
                "tickers": ["NVDA"],
                "publishers": ["Reuters", "Bloomberg"],
                "time_range": "Mar 1 10:00 - Mar 1 14:00",
            }
        ]
    }


def test_truncate_appends_ellipsis_only_when_cut():
    assert truncate("short") == "short"
    assert truncate("x" * 250) == "x" * 200 + "..."


def test_format_articles_for_clustering_truncates_and_lists_symbols():
    articles = [
        make_summary_article(0, detail="d" * 300, symbols=["NVDA", "AMD"]),
        make_summary_article(1),
    ]

    text = format_articles(articles, truncate_detail=True)

    assert "[0] Headline: Headline 0\n" in text
    assert "    Summary: " + "d" * 200 + "...\n" in text
    assert "    Publisher: Reuters\n" in text
    assert "    Published: 2025-03-01 10:00\n" in text
    assert "    Symbols: NVDA, AMD\n" in text
    assert "[1] Headline: Headline 1\n" in text
    assert text.count("Symbols:") == 1


def test_format_articles_for_synthesis_keeps_full_detail():
    text = format_articles([make_summary_article(0, detail="d" * 300)], truncate_detail=False)
    assert "d" * 300 + "\n" in text
    assert "..." not in text


def test_gather_cluster_articles_skips_invalid_indices():
    articles = [make_summary_article(i) for i in range(3)]
    members = gather_cluster_articles(articles, [2, -1, 7, 0])
    assert [m.id for m in members] == [102, 100]


@pytest.mark.asyncio
async def test_cluster_and_summarize_keeps_rank_order_and_uses_cluster_model():
    articles = [make_summary_article(i) for i in range(4)]
    provider = FakeProvider(
        [
            {
                "clusters": [
                    {"topic": "B", "article_indices": [1, 3], "importance_reason": "most coverage"},
                    {"topic": "A", "article_indices": [0], "importance_reason": "niche"},
                ]
            },
            _story("Story B"),
            _story("Story A"),
        ]
    )
    service = NewsClusteringService(provider, cluster_model="gpt-4.1-mini")

    result = await service.cluster_and_summarize(articles)

    assert [s.headline for s in result.stories] == ["Story B", "Story A"]
    assert result.model_used == "gpt-4.1-mini"
    assert [c["model"] for c in provider.calls] == ["gpt-4.1-mini"] * 3
    assert provider.calls[0]["system"] == CLUSTER_RANK_SYSTEM_PROMPT
    assert provider.calls[1]["system"] == SYNTHESIZE_SYSTEM_PROMPT
    # synthesis input is the cluster members only, re-indexed from zero
    assert "[0] Headline: Headline 1" in provider.calls[1]["user"]
    assert "[1] Headline: Headline 3" in provider.calls[1]["user"]
    assert "Headline 0" not in provider.calls[1]["user"]


@pytest.mark.asyncio
async def test_out_of_range_indices_are_ignored_and_empty_cluster_dropped():
    articles = [make_summary_article(i) for i in range(3)]
    provider = FakeProvider(
        [
            {
                "clusters": [
                    {"topic": "valid", "article_indices": [0, 5, -2, 2]},
                    {"topic": "all bad", "article_indices": [3, 99, -1]},
                ]
            },
            _story("Valid story"),
        ]
    )
    service = NewsClusteringService(provider)

    result = await service.cluster_and_summarize(articles)

    assert [s.headline for s in result.stories] == ["Valid story"]
    assert len(provider.calls) == 2
    synth_user = provider.calls[1]["user"]
    assert "Headline 0" in synth_user and "Headline 2" in synth_user
    assert "Headline 1" not in synth_user


@pytest.mark.asyncio
async def test_cluster_list_is_capped():
    articles = [make_summary_article(i) for i in range(12)]
    clusters = [{"topic": f"t{i}", "article_indices": [i]} for i in range(12)]
    provider = FakeProvider([{"clusters": clusters}])

    kept = await NewsClusteringService(provider).cluster_and_rank(articles)

    assert len(kept) == MAX_CLUSTERS
    assert kept[0].topic == "t0"


@pytest.mark.asyncio
async def test_empty_synthesis_fails_whole_run():
    articles = [make_summary_article(i) for i in range(2)]
    provider = FakeProvider(
        [
            {"clusters": [{"topic": "A", "article_indices": [0]}, {"topic": "B", "article_indices": [1]}]},
            _story("A story"),
            {"stories": []},
        ]
    )

    with pytest.raises(EmptySynthesisError) as exc_info:
        await NewsClusteringService(provider).cluster_and_summarize(articles)

    assert exc_info.value.details["topic"] == "B"


@pytest.mark.asyncio
async def test_unparseable_cluster_reply_raises_parse_error():
    provider = FakeProvider(["I could not cluster these."])
    with pytest.raises(ModelError) as exc_info:
        await NewsClusteringService(provider).cluster_and_rank([make_summary_article(0)])
    assert exc_info.value.error_type == "parse_error"


@pytest.mark.asyncio
async def test_summarize_accepts_unexpected_bullet_count():
    provider = FakeProvider(
        [{"paragraph": "Markets were mixed.", "bullets": ["only one"]}],
        model_name="gpt-4o-mini",
    )
    articles = [make_summary_article(i) for i in range(2)]

    result = await NewsClusteringService(provider).summarize(articles)

    assert result.paragraph == "Markets were mixed."
    assert result.bullets == ["only one"]
    assert result.model_used == "gpt-4o-mini"
    assert provider.calls[0]["user"].startswith("1. Headline: Headline 0\nSummary: Detail 0\n\n2. ")
    assert provider.calls[0]["model"] is None
