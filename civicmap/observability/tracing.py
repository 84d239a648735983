"""Tracing helpers for store calls and dashboard refreshes."""
from __future__ import annotations

import contextlib
import time
from typing import Iterator, Optional

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars


def _logger():
    return structlog.get_logger("civicmap.trace")


def set_context(*, view: str, viewer_id: Optional[str] = None) -> None:
    bind_contextvars(view=view, viewer_id=viewer_id)
    _logger().debug("trace_context", view=view, viewer_id=viewer_id)


def clear_context() -> None:
    clear_contextvars()


@contextlib.contextmanager
def span(*, name: str, target: Optional[str] = None) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        _logger().debug("trace_span", span=name, target=target, elapsed_ms=elapsed_ms)


def log_store_result(*, method: str, url: str, status: int, elapsed_ms: int) -> None:
    _logger().info(
        "store_result",
        method=method,
        url=url,
        status=status,
        elapsed_ms=elapsed_ms,
    )
