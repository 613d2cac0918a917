"""One extraction invocation: credentials → session → picker → table → envelope."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Mapping
from urllib.parse import urlparse

from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from salesboard.connection import open_session
from salesboard.credentials import CredentialBundle, read_credentials
from salesboard.datepicker import DateRange, DateRangeSelector, build_date_range
from salesboard.dom_utils import page_title_safe, settle
from salesboard.errors import (
    BrowserError,
    ConfigurationError,
    InvalidDateError,
    InvocationTimeoutError,
    SalesboardError,
)
from salesboard.extractor import extract_kpi_cards, extract_rows, read_results_table, resolve_columns
from salesboard.grouping import group_rows
from salesboard.logging_config import get_logger
from salesboard.readiness import ReadinessStep, wait_for_step
from salesboard.response import (
    build_failure,
    build_html,
    build_ping,
    build_success,
    elapsed_ms,
    started_clock,
)
from salesboard.settings import Settings, load_settings

LOGGER = get_logger(__name__)

MODES = ("", "normal", "ping", "html")
LOAD_STATE_TIMEOUT_MS = 20000
POST_READY_SETTLE_MS = 300


def normalize_mode(mode: str | None) -> str:
    value = (mode or "").strip().lower()
    if value not in MODES:
        raise ConfigurationError(f"Modo desconhecido: {mode!r} (use normal, ping ou html)")
    return "normal" if value == "" else value


def _page_info(page: Any, title: str | None) -> dict[str, Any]:
    return {"title": title, "url": getattr(page, "url", None)}


async def _load_target(page: Any, settings: Settings, progress: dict[str, Any]) -> None:
    progress["stage"] = "navigate"
    await page.goto(
        settings.target_url,
        wait_until="domcontentloaded",
        timeout=settings.navigation_timeout_ms,
    )
    progress["url"] = page.url
    try:
        await page.wait_for_load_state("load", timeout=LOAD_STATE_TIMEOUT_MS)
    except PlaywrightTimeoutError:
        LOGGER.warning("Load event not fired within %sms; continuing", LOAD_STATE_TIMEOUT_MS)
    await wait_for_step(page, ReadinessStep.LOADED, settings, fatal=True)
    progress["title"] = await page_title_safe(page)
    LOGGER.info("Target loaded | url=%s title=%s", page.url, progress["title"])


async def _collect(
    mode: str,
    date_range: DateRange | None,
    credentials: CredentialBundle,
    settings: Settings,
    progress: dict[str, Any],
    *,
    browser_type: Any | None,
    sleep: Callable[[float], Awaitable[None]],
) -> dict[str, Any]:
    progress["stage"] = "connect"
    async with open_session(credentials, settings, browser_type=browser_type, sleep=sleep) as session:
        page = session.page
        progress["cookies"] = session.cookies_injected
        progress["endpoint"] = urlparse(session.endpoint or "").hostname
        await _load_target(page, settings, progress)

        if mode == "html":
            progress["stage"] = "html"
            html = await page.content()
            return build_html(page=_page_info(page, progress["title"]), html=html, took_ms=0)

        progress["stage"] = "ready"
        await wait_for_step(page, ReadinessStep.INITIAL, settings, fatal=True)
        await settle(POST_READY_SETTLE_MS, multiplier=settings.wait_multiplier)

        progress["stage"] = "picker"
        selector = DateRangeSelector(page, settings)
        try:
            outcome = await selector.select(date_range)
        finally:
            progress["picker"] = selector.diagnostics()

        progress["stage"] = "extract"
        snapshot = await read_results_table(page, settings.max_rows)
        progress["table"] = snapshot.diagnostics()
        kpis = await extract_kpi_cards(page)
        columns = resolve_columns(snapshot.headers)
        rows = extract_rows(snapshot, columns)

        progress["stage"] = "group"
        groups = group_rows(rows, settings.group_prefixes, settings.top_n)
        title = await page_title_safe(page)
        return build_success(
            period=date_range.as_period(),
            page=_page_info(page, title),
            groups=groups,
            kpis=kpis,
            table=snapshot.diagnostics(),
            picker=outcome.as_dict(),
            took_ms=0,
        )


async def run_invocation(
    day: Any = None,
    month: Any = None,
    year: Any = None,
    mode: str | None = "",
    *,
    settings: Settings | None = None,
    environ: Mapping[str, str] | None = None,
    browser_type: Any | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> dict[str, Any]:
    """Run one invocation and always return a JSON-ready envelope.

    Every failure, expected or not, is converted into
    ``{"ok": False, "error": ..., "tookMs": ...}``; the session is released on
    every exit path by :func:`salesboard.connection.open_session`.
    """

    started = started_clock()
    progress: dict[str, Any] = {"stage": "init"}
    deadline_s: float | None = None
    try:
        settings = settings or load_settings(environ=environ)
        deadline_s = settings.deadline_s
        resolved_mode = normalize_mode(mode)

        if resolved_mode == "ping":
            credentials = read_credentials(environ, default_domain=settings.cookie_domain)
            return build_ping(
                endpoint_host=urlparse(credentials.endpoint).hostname,
                cookie_count=len(credentials.cookies),
                took_ms=elapsed_ms(started),
            )

        date_range: DateRange | None = None
        try:
            date_range = build_date_range(day, month, year)
        except InvalidDateError:
            if resolved_mode != "html":
                raise
        if date_range is not None:
            progress["period"] = date_range.as_period()

        credentials = read_credentials(environ, default_domain=settings.cookie_domain)
        LOGGER.info(
            "Invocation started | mode=%s range=%s cookies=%s",
            resolved_mode,
            date_range.start if date_range else None,
            len(credentials.cookies),
        )
        payload = await asyncio.wait_for(
            _collect(
                resolved_mode,
                date_range,
                credentials,
                settings,
                progress,
                browser_type=browser_type,
                sleep=sleep,
            ),
            timeout=deadline_s,
        )
        payload["tookMs"] = elapsed_ms(started)
        LOGGER.info("Invocation finished | mode=%s took_ms=%s", resolved_mode, payload["tookMs"])
        return payload
    except asyncio.TimeoutError:
        error = InvocationTimeoutError(
            f"Tempo limite da invocação excedido ({deadline_s:.0f}s)",
            step=progress.get("stage"),
        )
        LOGGER.warning("%s", error)
        return build_failure(error, elapsed_ms(started), progress)
    except SalesboardError as exc:
        LOGGER.warning("Invocation failed at stage=%s: %s", progress.get("stage"), exc)
        return build_failure(exc, elapsed_ms(started), progress)
    except PlaywrightError as exc:
        LOGGER.exception("Unexpected browser failure at stage=%s", progress.get("stage"))
        error = BrowserError(str(exc).splitlines()[0] if str(exc) else None, url=progress.get("url"))
        return build_failure(error, elapsed_ms(started), progress)
    except Exception as exc:
        LOGGER.exception("Unexpected failure at stage=%s", progress.get("stage"))
        return build_failure(exc, elapsed_ms(started), progress)


__all__ = ["MODES", "normalize_mode", "run_invocation"]
