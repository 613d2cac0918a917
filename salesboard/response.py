"""Uniform JSON envelopes returned by every invocation."""

from __future__ import annotations

import time
from typing import Any, Iterable

from salesboard.errors import SalesboardError
from salesboard.schemas import ResultGroup


def started_clock() -> float:
    return time.monotonic()


def elapsed_ms(started: float) -> int:
    return max(int((time.monotonic() - started) * 1000), 0)


def build_success(
    *,
    period: dict[str, str],
    page: dict[str, Any],
    groups: Iterable[ResultGroup],
    took_ms: int,
    kpis: dict[str, Any] | None = None,
    table: dict[str, Any] | None = None,
    picker: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {
        "ok": True,
        "period": dict(period),
        "page": dict(page),
        "groups": [group.as_payload() for group in groups],
        "kpis": dict(kpis or {}),
        "table": dict(table or {}),
        "picker": dict(picker or {}),
        "tookMs": took_ms,
    }


def build_failure(
    exc: BaseException,
    took_ms: int,
    diag: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Render *exc* as ``{ok: false, error, tookMs}`` plus optional diagnostics."""

    message = str(exc) or exc.__class__.__name__
    payload: dict[str, Any] = {"ok": False, "error": message, "tookMs": took_ms}
    merged = dict(diag or {})
    if isinstance(exc, SalesboardError) and exc.details:
        merged.update(exc.details)
    if merged:
        payload["diag"] = merged
    return payload


def build_ping(*, endpoint_host: str | None, cookie_count: int, took_ms: int) -> dict[str, Any]:
    return {
        "ok": True,
        "mode": "ping",
        "endpoint": endpoint_host,
        "cookies": cookie_count,
        "tookMs": took_ms,
    }


def build_html(*, page: dict[str, Any], html: str, took_ms: int) -> dict[str, Any]:
    return {
        "ok": True,
        "mode": "html",
        "page": dict(page),
        "length": len(html),
        "html": html,
        "tookMs": took_ms,
    }


__all__ = [
    "build_failure",
    "build_html",
    "build_ping",
    "build_success",
    "elapsed_ms",
    "started_clock",
]
