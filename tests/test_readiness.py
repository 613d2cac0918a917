import asyncio

import pytest
from playwright.async_api import Error as PlaywrightError

from fakes import DummyPage, context_destroyed, readiness_timeout
from salesboard.errors import PageNotReadyError
from salesboard.readiness import MAX_RESYNCS, ReadinessStep, wait_for_step, wait_until_ready
from salesboard.settings import Settings

FAST = Settings(wait_multiplier=0.0)


def test_ready_immediately_passes_step_markers() -> None:
    page = DummyPage()

    assert asyncio.run(wait_for_step(page, ReadinessStep.INITIAL, FAST, fatal=True)) is True

    _, markers, timeout = page.calls[-1]
    assert ".ant-picker-range" in markers
    assert timeout == FAST.initial_ready_timeout_ms


def test_context_destroyed_resyncs_and_retries() -> None:
    page = DummyPage(wait_outcomes=[context_destroyed(), True])

    assert asyncio.run(wait_for_step(page, ReadinessStep.RESULTS, FAST, fatal=True)) is True

    assert any(call[0] == "load_state" for call in page.calls)
    assert sum(1 for call in page.calls if call[0] == "wait_for_function") == 2


def test_timeout_tolerated_when_not_fatal() -> None:
    page = DummyPage(wait_outcomes=[readiness_timeout()])

    assert asyncio.run(wait_for_step(page, ReadinessStep.RESULTS, FAST, fatal=False)) is False


def test_timeout_raises_when_fatal() -> None:
    page = DummyPage(url="https://app.upseller.com/pt/login", wait_outcomes=[readiness_timeout()])

    with pytest.raises(PageNotReadyError) as excinfo:
        asyncio.run(wait_for_step(page, ReadinessStep.INITIAL, FAST, fatal=True))

    assert excinfo.value.step == "initial"
    assert "login" in str(excinfo.value)


def test_other_browser_errors_propagate() -> None:
    page = DummyPage(wait_outcomes=[PlaywrightError("Target closed")])

    with pytest.raises(PlaywrightError):
        asyncio.run(
            wait_until_ready(page, ReadinessStep.LOADED, timeout_ms=100, fatal=False, multiplier=0)
        )


def test_resync_budget_is_bounded() -> None:
    page = DummyPage(wait_outcomes=[context_destroyed() for _ in range(MAX_RESYNCS + 1)])

    result = asyncio.run(
        wait_until_ready(page, ReadinessStep.RESULTS, timeout_ms=100, fatal=False, multiplier=0)
    )

    assert result is False
