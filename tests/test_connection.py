import asyncio

import pytest
from playwright.async_api import Error as PlaywrightError

from fakes import DummyBrowser, DummyBrowserType, DummyContext, DummyPage, no_sleep
from salesboard.connection import (
    BrowserSession,
    RetryPolicy,
    attach_session,
    candidate_endpoints,
    close_session,
    connect_with_fallback,
    is_retriable,
    open_session,
)
from salesboard.credentials import CredentialBundle
from salesboard.errors import BrowserError, ConnectionExhaustedError
from salesboard.settings import Settings

SFO = "wss://production-sfo.browserless.io?token=abc"
AMS = "wss://production-ams.browserless.io?token=abc"
FAST = RetryPolicy(base_delay_s=0.0, jitter_s=0.0)


def test_candidates_swap_region_and_dedupe() -> None:
    assert candidate_endpoints(SFO) == [SFO, AMS]
    assert candidate_endpoints(AMS) == [AMS, SFO]
    assert candidate_endpoints("ws://localhost:3000") == ["ws://localhost:3000"]


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("WebSocket error: 429 Too Many Requests", True),
        ("connect ECONNREFUSED 127.0.0.1:3000", True),
        ("socket hang up", True),
        ("browserType.connectOverCDP: Timeout 30000ms exceeded.", True),
        ("WebSocket error: 401 Unauthorized", False),
        ("Browser closed: invalid token", False),
        ("Protocol error (Target.createTarget): Target closed", False),
    ],
)
def test_retriable_classification(message, expected) -> None:
    assert is_retriable(PlaywrightError(message)) is expected


def test_retries_then_connects() -> None:
    browser = DummyBrowser(DummyPage())
    browser_type = DummyBrowserType([PlaywrightError("429 Too Many Requests"), browser])
    sleeps: list[float] = []

    async def record_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    result, endpoint = asyncio.run(
        connect_with_fallback(browser_type, SFO, policy=FAST, sleep=record_sleep)
    )

    assert result is browser
    assert endpoint == SFO
    assert browser_type.endpoints == [SFO, SFO]
    assert len(sleeps) == 1


def test_falls_back_to_alternate_region() -> None:
    browser = DummyBrowser(DummyPage())
    outage = PlaywrightError("WebSocket error: connect ECONNRESET")
    browser_type = DummyBrowserType([outage, outage, browser])

    result, endpoint = asyncio.run(connect_with_fallback(browser_type, SFO, policy=FAST, sleep=no_sleep))

    assert result is browser
    assert endpoint == AMS
    assert browser_type.endpoints == [SFO, SFO, AMS]


def test_fatal_error_aborts_immediately() -> None:
    browser_type = DummyBrowserType([PlaywrightError("WebSocket error: 401 Unauthorized")])

    with pytest.raises(BrowserError):
        asyncio.run(connect_with_fallback(browser_type, SFO, policy=FAST, sleep=no_sleep))

    assert browser_type.endpoints == [SFO]


def test_exhaustion_reports_attempts_and_last_error() -> None:
    browser_type = DummyBrowserType([PlaywrightError("socket hang up")])

    with pytest.raises(ConnectionExhaustedError) as excinfo:
        asyncio.run(connect_with_fallback(browser_type, SFO, policy=FAST, sleep=no_sleep))

    assert excinfo.value.attempts == 4
    assert "socket hang up" in str(excinfo.value.last_error)
    assert browser_type.endpoints == [SFO, SFO, AMS, AMS]


def test_attach_reuses_context_and_tolerates_cookie_failure() -> None:
    page = DummyPage()
    browser = DummyBrowser(page, reuse_context=True)
    browser.contexts[0].cookie_error = PlaywrightError("Invalid cookie fields")
    credentials = CredentialBundle(endpoint=SFO, cookies=({"name": "a", "value": "1"},))
    session = BrowserSession(browser=browser)

    asyncio.run(attach_session(session, credentials, Settings()))

    assert session.reused_context is True
    assert session.cookies_injected == 0
    assert session.page is page
    assert ("default_timeout", 25000) in page.calls
    assert browser.created == []


def test_close_session_is_guarded() -> None:
    class ExplodingPage(DummyPage):
        async def close(self) -> None:
            raise PlaywrightError("Target page, context or browser has been closed")

    page = ExplodingPage()
    context = DummyContext(page)
    browser = DummyBrowser(page)

    asyncio.run(close_session(BrowserSession(browser=browser, context=context, page=page)))

    assert context.closed is True
    assert browser.closed is True


def test_open_session_releases_on_error() -> None:
    page = DummyPage()
    browser = DummyBrowser(page)
    credentials = CredentialBundle(endpoint=SFO, cookies=({"name": "a", "value": "1"},))

    async def scenario() -> None:
        async with open_session(
            credentials, Settings(), browser_type=DummyBrowserType([browser]), sleep=no_sleep
        ) as session:
            assert session.context.cookies[0]["name"] == "a"
            assert browser.created == [{"ignore_https_errors": True}]
            raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        asyncio.run(scenario())

    assert page.closed is True
    assert browser.closed is True
    assert browser.contexts[0].closed is True


def test_open_session_records_the_region_that_connected() -> None:
    page = DummyPage()
    browser = DummyBrowser(page)
    outage = PlaywrightError("WebSocket error: connect ECONNRESET")
    browser_type = DummyBrowserType([outage, outage, browser])
    credentials = CredentialBundle(endpoint=SFO, cookies=())
    settings = Settings(backoff_base_s=0.0, jitter_s=0.0)

    async def scenario() -> str | None:
        async with open_session(credentials, settings, browser_type=browser_type, sleep=no_sleep) as session:
            return session.endpoint

    assert asyncio.run(scenario()) == AMS
    assert browser_type.endpoints == [SFO, SFO, AMS]
