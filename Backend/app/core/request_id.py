# Backend/app/core/request_id.py
from __future__ import annotations

import uuid
from contextlib import contextmanager
from typing import Iterator, Optional
import contextvars

_run_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("run_id", default=None)


def get_run_id() -> Optional[str]:
    return _run_id_ctx.get()

@contextmanager
def with_run_id(run_id: Optional[str] = None) -> Iterator[str]:
    """
    Use in workers:
        with with_run_id():
            ... do work ...
    """
    previous = _run_id_ctx.get()
    rid = run_id or uuid.uuid4().hex
    _run_id_ctx.set(rid)
    try:
        yield rid
    finally:
        _run_id_ctx.set(previous)
