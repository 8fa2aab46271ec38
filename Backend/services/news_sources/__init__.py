"""
News source adapters.

One adapter per vendor, selected at startup from NEWS_SOURCES.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional, Sequence

import httpx

from app.config import Settings, require_source_key

from .alphavantage_source import AlphaVantageSource
from .base import NewsSourceAdapter, build_http_client
from .finnhub_source import FinnhubSource
from .massive_source import MassiveSource

SOURCE_REGISTRY: Dict[str, Callable[..., NewsSourceAdapter]] = {
    "finnhub": FinnhubSource,
    "alphavantage": AlphaVantageSource,
    "massive": MassiveSource,
}


def build_sources(
    settings: Settings,
    client: httpx.AsyncClient,
    keys: Optional[Sequence[str]] = None,
) -> List[NewsSourceAdapter]:
    """
    Construct the configured adapters. Unknown keys fail at startup.
    """
    selected = [k.strip().lower() for k in (keys or settings.news_source_keys) if k.strip()]
    adapters: List[NewsSourceAdapter] = []
    for key in selected:
        factory = SOURCE_REGISTRY.get(key)
        if factory is None:
            raise ValueError(
                f"Unknown news source '{key}'. Expected one of: {', '.join(SOURCE_REGISTRY)}"
            )
        adapters.append(factory(require_source_key(key, settings), client))
    return adapters


__all__ = [
    "NewsSourceAdapter",
    "FinnhubSource",
    "AlphaVantageSource",
    "MassiveSource",
    "SOURCE_REGISTRY",
    "build_http_client",
    "build_sources",
]
