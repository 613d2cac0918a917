import asyncio
from typing import Callable

import pytest
from playwright.async_api import Error as PlaywrightError

import salesboard.selectors as selectors
from fakes import (
    DummyElement,
    DummyPage,
    context_destroyed,
    dual_input_page,
    grid_only_page,
    readiness_timeout,
)
from salesboard.datepicker import (
    SET_VALUE_JS,
    DateRange,
    DateRangeSelector,
    PickerVariant,
    build_date_range,
    parse_heading,
)
from salesboard.errors import (
    DayNotFoundError,
    InputsNotFoundError,
    InvalidDateError,
    NavigationExhaustedError,
    PickerNotFoundError,
)
from salesboard.settings import Settings

FAST = Settings(wait_multiplier=0.0)


def test_date_range_is_zero_padded_single_day() -> None:
    date_range = build_date_range("5", "3", "2025")
    assert date_range.start == "05/03/2025"
    assert date_range.end == date_range.start
    assert date_range.as_period() == {"from": "05/03/2025", "to": "05/03/2025"}
    assert build_date_range(31, 12, 2024).start == "31/12/2024"


@pytest.mark.parametrize(
    ("day", "month", "year"),
    [
        (None, "3", "2025"),
        ("5", "3", "25"),
        ("32", "1", "2025"),
        ("5", "13", "2025"),
        ("ab", "1", "2025"),
        ("123", "1", "2025"),
        ("0²", "1", "2025"),
        ("²", "1", "2025"),
    ],
)
def test_invalid_dates_are_rejected(day, month, year) -> None:
    with pytest.raises(InvalidDateError):
        build_date_range(day, month, year)


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("jan. 2025", (2025, 1)),
        ("Março 2025", (2025, 3)),
        ("2025 Mar", (2025, 3)),
        ("sept. 2024", (2024, 9)),
        ("diciembre de 2024", (2024, 12)),
        ("August 2023", (2023, 8)),
        ("09/2024", (2024, 9)),
        ("2025-11", (2025, 11)),
        ("2025年3月", (2025, 3)),
        ("", None),
        ("Selecione", None),
    ],
)
def test_parse_heading(text, expected) -> None:
    assert parse_heading(text) == expected


def test_dual_input_flow_types_both_dates_and_commits_with_enter() -> None:
    page = dual_input_page()
    selector = DateRangeSelector(page, FAST)

    outcome = asyncio.run(selector.select(DateRange(day=5, month=3, year=2025)))

    start, end = page.inputs
    assert outcome.variant is PickerVariant.MODERN_DUAL_INPUT
    assert outcome.fill.strategies == ["typed", "typed"]
    assert (start.value, end.value) == ("05/03/2025", "05/03/2025")
    assert outcome.commit == "enter"
    assert page.keyboard.pressed == ["Enter"]
    assert outcome.results_ready is True
    assert outcome.history == [
        "closed",
        "opening",
        "opened",
        "filling",
        "applying",
        "confirmed",
    ]
    assert outcome.as_dict()["committed"] == {"from": "05/03/2025", "to": "05/03/2025"}


def test_dual_input_falls_back_to_setting_value() -> None:
    page = dual_input_page()
    start, _ = page.inputs
    start.click_error = PlaywrightError("Element is not visible")

    outcome = asyncio.run(DateRangeSelector(page, FAST).select(DateRange(1, 2, 2025)))

    assert outcome.fill.strategies == ["setValue", "typed"]
    assert start.evaluated == [(SET_VALUE_JS, "01/02/2025")]
    assert start.value == "01/02/2025"


def test_ok_button_used_when_enter_leaves_panel_open() -> None:
    page = dual_input_page()
    page.on_key = None

    def _confirm(_element: DummyElement) -> None:
        page.state["open"] = False

    ok_button = DummyElement("OK", on_click=_confirm)
    page.dom[selectors.OK_BUTTON] = [ok_button]

    outcome = asyncio.run(DateRangeSelector(page, FAST).select(DateRange(1, 2, 2025)))

    assert outcome.commit == "ok-button"
    assert ok_button.clicks == 1


def test_results_timeout_is_tolerated() -> None:
    page = dual_input_page()
    results_markers = list(selectors.RESULTS_MARKERS)

    async def _wait(script, arg=None, timeout=None):
        if arg == results_markers:
            raise readiness_timeout()
        return True

    page.wait_for_function = _wait

    outcome = asyncio.run(DateRangeSelector(page, FAST).select(DateRange(1, 2, 2025)))

    assert outcome.results_ready is False
    assert outcome.history[-1] == "confirmed"


def test_single_input_is_an_error() -> None:
    page = dual_input_page()
    start, _ = page.inputs
    page.dom[selectors.MODERN_INPUTS[0]] = [start]
    selector = DateRangeSelector(page, FAST)

    with pytest.raises(InputsNotFoundError) as excinfo:
        asyncio.run(selector.select(DateRange(1, 2, 2025)))

    assert selector.history[-1] == "aborted"
    assert excinfo.value.details["picker"]["variant"] == "modern-dual-input"


def test_missing_picker_raises() -> None:
    selector = DateRangeSelector(DummyPage(), FAST)

    with pytest.raises(PickerNotFoundError):
        asyncio.run(selector.select(DateRange(1, 2, 2025)))

    assert selector.history == ["closed", "opening", "aborted"]


def test_open_resyncs_after_dom_replacement() -> None:
    page = dual_input_page()
    opener = page.dom[".ant-picker-range"][0]
    original_click = opener.click
    attempts = {"count": 0}

    async def _flaky_click(**kwargs):
        attempts["count"] += 1
        if attempts["count"] == 1:
            raise context_destroyed()
        await original_click(**kwargs)

    opener.click = _flaky_click

    outcome = asyncio.run(DateRangeSelector(page, FAST).select(DateRange(1, 2, 2025)))

    assert attempts["count"] == 2
    assert outcome.opener == ".ant-picker-range"
    assert any(call[0] == "load_state" for call in page.calls)


def test_grid_only_navigates_back_and_clicks_day_twice() -> None:
    page = grid_only_page((2025, 5))

    outcome = asyncio.run(DateRangeSelector(page, FAST).select(DateRange(day=15, month=3, year=2025)))

    assert outcome.variant is PickerVariant.GRID_ONLY
    assert outcome.fill.nav_steps == 2
    assert outcome.fill.strategies == ["grid"]
    assert page.state["day_clicks"] == [(2025, 3, 15), (2025, 3, 15)]
    assert outcome.commit == "auto"
    assert "positioning" in outcome.history


def test_grid_only_navigates_forward_across_year() -> None:
    page = grid_only_page((2024, 11))

    outcome = asyncio.run(DateRangeSelector(page, FAST).select(DateRange(day=2, month=2, year=2025)))

    assert outcome.fill.nav_steps == 2
    assert page.state["day_clicks"] == [(2025, 2, 2), (2025, 2, 2)]


def test_grid_only_navigation_is_bounded() -> None:
    page = grid_only_page((2025, 5))
    settings = Settings(wait_multiplier=0.0, max_nav_steps=3)

    with pytest.raises(NavigationExhaustedError):
        asyncio.run(DateRangeSelector(page, settings).select(DateRange(1, 1, 2020)))


def test_grid_only_missing_day_raises() -> None:
    page = grid_only_page((2025, 2))

    with pytest.raises(DayNotFoundError):
        asyncio.run(DateRangeSelector(page, FAST).select(DateRange(day=31, month=2, year=2025)))


def _replace_dom_once(page: DummyPage, selector: str, when: Callable[[], bool] = lambda: True) -> dict:
    original = page.query_selector_all
    replaced = {"count": 0}

    async def _query(query: str):
        if query == selector and when() and not replaced["count"]:
            replaced["count"] += 1
            raise context_destroyed()
        return await original(query)

    page.query_selector_all = _query
    return replaced


def test_commit_resyncs_when_enter_replaces_the_dom() -> None:
    page = dual_input_page()
    replaced = _replace_dom_once(page, selectors.PANEL, when=lambda: bool(page.keyboard.pressed))

    outcome = asyncio.run(DateRangeSelector(page, FAST).select(DateRange(1, 2, 2025)))

    assert replaced["count"] == 1
    assert outcome.commit == "enter"
    assert outcome.history[-1] == "confirmed"
    assert any(call[0] == "load_state" for call in page.calls)


def test_variant_detection_resyncs_after_dom_replacement() -> None:
    page = dual_input_page()
    replaced = _replace_dom_once(page, selectors.MODERN_INPUTS[0])

    outcome = asyncio.run(DateRangeSelector(page, FAST).select(DateRange(1, 2, 2025)))

    assert replaced["count"] == 1
    assert outcome.variant is PickerVariant.MODERN_DUAL_INPUT
    assert outcome.fill.strategies == ["typed", "typed"]


def test_grid_positioning_resyncs_after_dom_replacement() -> None:
    page = grid_only_page((2025, 4))
    replaced = _replace_dom_once(page, selectors.CALENDAR_PANELS)

    outcome = asyncio.run(DateRangeSelector(page, FAST).select(DateRange(day=9, month=3, year=2025)))

    assert replaced["count"] == 1
    assert outcome.fill.nav_steps == 1
    assert page.state["day_clicks"] == [(2025, 3, 9), (2025, 3, 9)]


def test_legacy_dual_input_variant() -> None:
    page = DummyPage()
    state = {"open": False}

    def _open(_element: DummyElement) -> None:
        state["open"] = True

    def _key(key: str) -> None:
        if key == "Enter":
            state["open"] = False

    start = DummyElement(page=page)
    end = DummyElement(page=page)
    page.dom.update(
        {
            ".ant-calendar-picker": [DummyElement(on_click=_open, page=page)],
            selectors.PANEL: [DummyElement(visible=lambda: state["open"])],
            selectors.LEGACY_INPUTS[0]: [start, end],
        }
    )
    page.on_key = _key

    outcome = asyncio.run(DateRangeSelector(page, FAST).select(DateRange(day=7, month=8, year=2024)))

    assert outcome.opener == ".ant-calendar-picker"
    assert outcome.variant is PickerVariant.LEGACY_DUAL_INPUT
    assert (start.value, end.value) == ("07/08/2024", "07/08/2024")
    assert outcome.commit == "enter"


def test_grid_falls_back_to_generic_day_cells() -> None:
    page = grid_only_page((2025, 5))
    trailing = DummyElement("15", classes="ant-picker-cell")
    for panel in page.dom[selectors.CALENDAR_PANELS]:
        in_view = panel.children.pop(selectors.DAY_CELLS)
        panel.children[selectors.GENERIC_DAY_CELLS] = lambda cells=in_view: [trailing] + cells()

    outcome = asyncio.run(DateRangeSelector(page, FAST).select(DateRange(day=15, month=5, year=2025)))

    assert outcome.fill.nav_steps == 0
    assert trailing.clicks == 0
    assert page.state["day_clicks"] == [(2025, 5, 15), (2025, 5, 15)]
