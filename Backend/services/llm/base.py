# services/llm/base.py
from __future__ import annotations

import re
from typing import Optional, Protocol

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


class ChatProvider(Protocol):
    """One system+user exchange against a chat model, returning raw text."""

    model_name: str

    async def complete(self, system: str, user: str, *, model: Optional[str] = None) -> str: ...


def extract_json(text: str) -> str:
    """
    Pull the JSON object out of a model reply: strip ``` fences and any
    surrounding prose, keep the outermost {...}, drop trailing commas.
    """
    candidate = _FENCE_RE.sub("", (text or "").strip()).strip()
    start = candidate.find("{")
    end = candidate.rfind("}")
    if start != -1 and end > start:
        candidate = candidate[start : end + 1]
    candidate = _TRAILING_COMMA_RE.sub(r"\1", candidate)
    return candidate.strip()
