"""Detect when the single-page app has finished a client-side render cycle."""

from __future__ import annotations

from enum import Enum
from typing import Any

from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

import salesboard.selectors as selectors
from salesboard.dom_utils import is_context_destroyed, settle
from salesboard.errors import PageNotReadyError
from salesboard.logging_config import get_logger
from salesboard.settings import Settings

LOGGER = get_logger(__name__)

MAX_RESYNCS = 3
RESYNC_LOAD_TIMEOUT_MS = 8000
RESYNC_SETTLE_MS = 600

_MARKERS_READY_JS = """
(markers) => {
  if (document.readyState !== 'complete') return false;
  return markers.some((sel) => {
    try { return !!document.querySelector(sel); } catch (e) { return false; }
  });
}
"""

_LOADED_JS = """
(hint) => document.readyState === 'complete'
  || (document.title || '').toLowerCase().includes(hint)
"""


class ReadinessStep(str, Enum):
    """Which render cycle the caller is waiting on."""

    LOADED = "loaded"
    INITIAL = "initial"
    RESULTS = "results"


def _predicate(step: ReadinessStep, title_hint: str) -> tuple[str, Any]:
    if step is ReadinessStep.LOADED:
        return _LOADED_JS, title_hint
    if step is ReadinessStep.INITIAL:
        return _MARKERS_READY_JS, list(selectors.DATE_LIKE_MARKERS)
    return _MARKERS_READY_JS, list(selectors.RESULTS_MARKERS)


def timeout_for(step: ReadinessStep, settings: Settings) -> int:
    if step is ReadinessStep.LOADED:
        return settings.loaded_timeout_ms
    if step is ReadinessStep.INITIAL:
        return settings.initial_ready_timeout_ms
    return settings.results_ready_timeout_ms


def _page_url(page: Any) -> str | None:
    try:
        return page.url
    except Exception:
        return None


async def resync_after_replacement(page: Any, *, multiplier: float = 1.0) -> None:
    """Wait for the replacement document to finish loading."""

    try:
        await page.wait_for_load_state("load", timeout=RESYNC_LOAD_TIMEOUT_MS)
    except PlaywrightError as exc:
        LOGGER.debug("Load state wait after DOM replacement failed: %s", exc)
    await settle(RESYNC_SETTLE_MS, multiplier=multiplier)


async def wait_until_ready(
    page: Any,
    step: ReadinessStep,
    *,
    timeout_ms: int,
    fatal: bool,
    title_hint: str = "upseller",
    multiplier: float = 1.0,
) -> bool:
    """Block until *step*'s readiness markers are present.

    Returns ``True`` when ready. A timeout raises :class:`PageNotReadyError`
    when *fatal*, otherwise it is logged and ``False`` is returned. DOM
    replacement ("execution context destroyed") triggers a re-sync on the
    load state followed by another check.
    """

    script, arg = _predicate(step, title_hint)
    for resync in range(MAX_RESYNCS + 1):
        try:
            await page.wait_for_function(script, arg=arg, timeout=timeout_ms)
            LOGGER.debug("Page ready | step=%s resyncs=%s", step.value, resync)
            return True
        except PlaywrightTimeoutError as exc:
            if fatal:
                raise PageNotReadyError(
                    f"Página não ficou pronta em {timeout_ms}ms",
                    step=step.value,
                    url=_page_url(page),
                ) from exc
            LOGGER.warning(
                "Readiness timeout tolerated | step=%s timeout_ms=%s", step.value, timeout_ms
            )
            return False
        except PlaywrightError as exc:
            if not is_context_destroyed(exc):
                raise
            LOGGER.info("DOM replaced while waiting for %s; re-syncing", step.value)
            await resync_after_replacement(page, multiplier=multiplier)

    if fatal:
        raise PageNotReadyError(
            "Página substituída repetidamente durante a espera",
            step=step.value,
            url=_page_url(page),
        )
    LOGGER.warning("Readiness re-sync budget exhausted | step=%s", step.value)
    return False


async def wait_for_step(page: Any, step: ReadinessStep, settings: Settings, *, fatal: bool) -> bool:
    return await wait_until_ready(
        page,
        step,
        timeout_ms=timeout_for(step, settings),
        fatal=fatal,
        title_hint=settings.title_hint,
        multiplier=settings.wait_multiplier,
    )


__all__ = [
    "ReadinessStep",
    "resync_after_replacement",
    "timeout_for",
    "wait_for_step",
    "wait_until_ready",
]
