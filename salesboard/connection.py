"""Remote browser connection with retry, backoff and region fallback."""

from __future__ import annotations

import asyncio
import re
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable

from playwright.async_api import Error as PlaywrightError, async_playwright
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from salesboard.credentials import CredentialBundle
from salesboard.errors import BrowserError, ConnectionExhaustedError
from salesboard.logging_config import get_logger
from salesboard.settings import RetryPolicy, Settings

LOGGER = get_logger(__name__)

_AUTH_REJECTED = re.compile(r"\b(?:401|403)\b|unauthori[sz]ed|forbidden|invalid (?:api )?token", re.I)
_RATE_LIMITED = re.compile(r"\b429\b|too many requests", re.I)
_TRANSIENT = re.compile(
    r"websocket|econnrefused|econnreset|etimedout|socket hang up|handshake"
    r"|closed before|connection (?:refused|reset|closed)|timeout \d+ms exceeded",
    re.I,
)


@dataclass
class BrowserSession:
    browser: Any | None = None
    context: Any | None = None
    page: Any | None = None
    endpoint: str | None = None
    reused_context: bool = False
    cookies_injected: int = 0


def candidate_endpoints(primary: str, regions: tuple[str, ...] = RetryPolicy.regions) -> list[str]:
    """Return the primary endpoint followed by its alternate-region variants."""

    candidates = [primary]
    for token in regions:
        if token not in primary:
            continue
        for alternate in regions:
            if alternate != token:
                candidates.append(primary.replace(token, alternate))
    seen: set[str] = set()
    ordered: list[str] = []
    for endpoint in candidates:
        if endpoint and endpoint not in seen:
            seen.add(endpoint)
            ordered.append(endpoint)
    return ordered


def is_retriable(exc: BaseException) -> bool:
    """Rate limits and transient socket failures are worth another attempt."""

    message = str(exc)
    if _AUTH_REJECTED.search(message):
        return False
    return bool(_RATE_LIMITED.search(message) or _TRANSIENT.search(message))


def _redact(endpoint: str) -> str:
    return re.sub(r"(token=)[^&]+", r"\1***", endpoint)


def _log_retry(endpoint: str) -> Callable[[RetryCallState], None]:
    def _before_sleep(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        LOGGER.warning(
            "Remote browser connect failed | endpoint=%s attempt=%s wait=%.2fs error=%s",
            _redact(endpoint),
            state.attempt_number,
            state.next_action.sleep if state.next_action else 0.0,
            exc,
        )

    return _before_sleep


async def connect_with_fallback(
    browser_type: Any,
    primary: str,
    *,
    policy: RetryPolicy,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> tuple[Any, str]:
    """Connect over CDP, retrying retriable failures and falling back across regions.

    Returns the browser together with the endpoint that accepted the connection.
    """

    last_error: BaseException | None = None
    attempts = 0
    for endpoint in candidate_endpoints(primary, policy.regions):
        retrying = AsyncRetrying(
            stop=stop_after_attempt(policy.tries_per_endpoint),
            wait=wait_exponential(multiplier=policy.base_delay_s, exp_base=2)
            + wait_random(0, policy.jitter_s),
            retry=retry_if_exception(is_retriable),
            before_sleep=_log_retry(endpoint),
            sleep=sleep,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    attempts += 1
                    browser = await browser_type.connect_over_cdp(
                        endpoint, timeout=policy.connect_timeout_ms
                    )
                    LOGGER.info(
                        "Connected to remote browser | endpoint=%s attempts=%s",
                        _redact(endpoint),
                        attempts,
                    )
                    return browser, endpoint
        except Exception as exc:
            if not is_retriable(exc):
                LOGGER.error("Fatal remote browser error on %s: %s", _redact(endpoint), exc)
                raise BrowserError(f"Falha ao conectar ao navegador remoto: {exc}") from exc
            last_error = exc
            LOGGER.warning("Endpoint exhausted; trying next region | endpoint=%s", _redact(endpoint))

    raise ConnectionExhaustedError(last_error=last_error, attempts=attempts)


async def attach_session(
    session: BrowserSession,
    credentials: CredentialBundle,
    settings: Settings,
) -> BrowserSession:
    """Reuse or create a browsing context, inject cookies and open a page."""

    browser = session.browser
    contexts = list(browser.contexts)
    if contexts:
        session.context = contexts[0]
        session.reused_context = True
    else:
        session.context = await browser.new_context(ignore_https_errors=True)

    if credentials.cookies:
        try:
            await session.context.add_cookies([dict(cookie) for cookie in credentials.cookies])
            session.cookies_injected = len(credentials.cookies)
        except PlaywrightError as exc:
            LOGGER.warning("Cookie injection failed; continuing unauthenticated: %s", exc)

    session.page = await session.context.new_page()
    session.page.set_default_timeout(settings.action_timeout_ms)
    session.page.set_default_navigation_timeout(settings.navigation_timeout_ms)
    LOGGER.debug(
        "Session attached | reused_context=%s cookies=%s",
        session.reused_context,
        session.cookies_injected,
    )
    return session


async def close_session(session: BrowserSession) -> None:
    """Close page, context and browser, each independently and without raising."""

    for label, target in (("page", session.page), ("context", session.context), ("browser", session.browser)):
        if target is None:
            continue
        try:
            await target.close()
        except Exception as exc:
            LOGGER.debug("Ignoring %s close failure: %s", label, exc)


@asynccontextmanager
async def open_session(
    credentials: CredentialBundle,
    settings: Settings,
    *,
    browser_type: Any | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> AsyncIterator[BrowserSession]:
    """Yield an authenticated session that is always torn down on exit."""

    async with AsyncExitStack() as stack:
        if browser_type is None:
            playwright = await stack.enter_async_context(async_playwright())
            browser_type = playwright.chromium

        session = BrowserSession()
        try:
            session.browser, session.endpoint = await connect_with_fallback(
                browser_type,
                credentials.endpoint,
                policy=settings.retry_policy(),
                sleep=sleep,
            )
            await attach_session(session, credentials, settings)
            yield session
        finally:
            await close_session(session)


__all__ = [
    "BrowserSession",
    "RetryPolicy",
    "attach_session",
    "candidate_endpoints",
    "close_session",
    "connect_with_fallback",
    "is_retriable",
    "open_session",
]
