"""Date-range picker interaction: open, detect the widget variant, fill, commit."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

import salesboard.selectors as selectors
from salesboard.dom_utils import (
    class_name_safe,
    first_visible,
    inner_text_safe,
    is_context_destroyed,
    is_visible_safe,
    settle,
)
from salesboard.errors import (
    DayNotFoundError,
    InputsNotFoundError,
    InvalidDateError,
    NavigationExhaustedError,
    PickerError,
    PickerNotFoundError,
)
from salesboard.logging_config import get_logger
from salesboard.normalizers import strip_accents
from salesboard.readiness import ReadinessStep, resync_after_replacement, wait_for_step
from salesboard.settings import Settings

LOGGER = get_logger(__name__)

DOCUMENT_COMPLETE_JS = "() => document.readyState === 'complete'"
DOCUMENT_COMPLETE_TIMEOUT_MS = 5000
INTERACTION_TIMEOUT_MS = 5000

# React-style inputs ignore plain property writes; go through the native setter
# and emit the events the framework listens to.
SET_VALUE_JS = """
(el, value) => {
  const proto = Object.getPrototypeOf(el);
  const descriptor = Object.getOwnPropertyDescriptor(proto, 'value');
  if (descriptor && descriptor.set) { descriptor.set.call(el, value); } else { el.value = value; }
  el.dispatchEvent(new Event('input', { bubbles: true }));
  el.dispatchEvent(new Event('change', { bubbles: true }));
}
"""

_MONTH_NAMES: dict[int, tuple[str, ...]] = {
    1: ("jan", "janeiro", "january", "ene", "enero"),
    2: ("fev", "fevereiro", "feb", "february", "febrero"),
    3: ("mar", "marco", "march", "marzo"),
    4: ("abr", "abril", "apr", "april"),
    5: ("mai", "maio", "may", "mayo"),
    6: ("jun", "junho", "june", "junio"),
    7: ("jul", "julho", "july", "julio"),
    8: ("ago", "agosto", "aug", "august"),
    9: ("set", "setembro", "sep", "sept", "september", "septiembre", "setiembre"),
    10: ("out", "outubro", "oct", "october", "octubre"),
    11: ("nov", "novembro", "november", "noviembre"),
    12: ("dez", "dezembro", "dec", "december", "dic", "diciembre"),
}
MONTH_LOOKUP = {name: number for number, names in _MONTH_NAMES.items() for name in names}
_HEADING_TOKENS = re.compile(r"[a-z]+|\d+")


@dataclass(frozen=True)
class DateRange:
    """A single-day range; start and end render identically."""

    day: int
    month: int
    year: int

    @property
    def start(self) -> str:
        return f"{self.day:02d}/{self.month:02d}/{self.year:04d}"

    @property
    def end(self) -> str:
        return self.start

    def as_period(self) -> dict[str, str]:
        return {"from": self.start, "to": self.end}


def build_date_range(day: Any, month: Any, year: Any) -> DateRange:
    """Validate d/m/y request parameters into a :class:`DateRange`.

    Day and month may omit the leading zero; the year must have four digits.
    Calendar validity (e.g. 31/02) is left to the picker, which reports a
    missing day cell.
    """

    dd = str(day if day is not None else "").strip().zfill(2)
    mm = str(month if month is not None else "").strip().zfill(2)
    yyyy = str(year if year is not None else "").strip()
    if not (dd.isdecimal() and mm.isdecimal() and yyyy.isdecimal()):
        raise InvalidDateError()
    if len(dd) != 2 or len(mm) != 2 or len(yyyy) != 4:
        raise InvalidDateError()
    day_value, month_value = int(dd), int(mm)
    if not 1 <= day_value <= 31 or not 1 <= month_value <= 12:
        raise InvalidDateError()
    return DateRange(day=day_value, month=month_value, year=int(yyyy))


def parse_heading(text: str | None) -> tuple[int, int] | None:
    """Return ``(year, month)`` from a calendar panel heading.

    Handles localized month names (``"jan. 2025"``, ``"março 2025"``,
    ``"2025 Mar"``, ``"enero de 2025"``) and numeric forms (``"01/2025"``,
    ``"2025-01"``, ``"2025年1月"``).
    """

    if not text:
        return None
    tokens = _HEADING_TOKENS.findall(strip_accents(text).lower())
    year = next((int(tok) for tok in tokens if tok.isdigit() and len(tok) == 4), None)
    if year is None:
        return None

    for tok in tokens:
        if tok.isalpha() and tok in MONTH_LOOKUP:
            return year, MONTH_LOOKUP[tok]

    for tok in tokens:
        if tok.isdigit() and len(tok) <= 2 and 1 <= int(tok) <= 12:
            return year, int(tok)
    return None


class PickerState(str, Enum):
    CLOSED = "closed"
    OPENING = "opening"
    OPENED = "opened"
    POSITIONING = "positioning"
    FILLING = "filling"
    APPLYING = "applying"
    CONFIRMED = "confirmed"
    ABORTED = "aborted"


class PickerVariant(str, Enum):
    MODERN_DUAL_INPUT = "modern-dual-input"
    LEGACY_DUAL_INPUT = "legacy-dual-input"
    GRID_ONLY = "calendar-grid-only"


@dataclass
class FillResult:
    strategies: list[str]
    committed_start: str
    committed_end: str
    nav_steps: int = 0


@dataclass
class PickerOutcome:
    variant: PickerVariant
    opener: str
    fill: FillResult
    commit: str
    results_ready: bool
    history: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "variant": self.variant.value,
            "opener": self.opener,
            "strategies": list(self.fill.strategies),
            "navSteps": self.fill.nav_steps,
            "commit": self.commit,
            "resultsReady": self.results_ready,
            "committed": {"from": self.fill.committed_start, "to": self.fill.committed_end},
            "states": list(self.history),
        }


FillStrategy = Callable[["DateRangeSelector", list[Any], DateRange], Awaitable[FillResult]]


class DateRangeSelector:
    """Drive the picker from CLOSED to CONFIRMED for one date range."""

    def __init__(self, page: Any, settings: Settings) -> None:
        self.page = page
        self.settings = settings
        self.state = PickerState.CLOSED
        self.history: list[str] = [PickerState.CLOSED.value]
        self.variant: PickerVariant | None = None

    def _transition(self, state: PickerState) -> None:
        LOGGER.debug("Picker state %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state.value)

    async def _settle(self, ms: int) -> None:
        await settle(ms, multiplier=self.settings.wait_multiplier)

    async def select(self, date_range: DateRange) -> PickerOutcome:
        """Commit *date_range* into the picker and wait for the results to refresh."""

        try:
            self._transition(PickerState.OPENING)
            opener = await self._open()
            self._transition(PickerState.OPENED)

            self.variant, inputs = await self._detect_variant()
            LOGGER.info("Picker opened | opener=%s variant=%s", opener, self.variant.value)
            fill = await FILL_STRATEGIES[self.variant](self, inputs, date_range)

            self._transition(PickerState.APPLYING)
            commit = await self._commit()
            await self._settle(1000)
            results_ready = await wait_for_step(
                self.page, ReadinessStep.RESULTS, self.settings, fatal=False
            )
            self._transition(PickerState.CONFIRMED)
        except Exception as exc:
            failed_in = self.state.value
            self._transition(PickerState.ABORTED)
            LOGGER.warning("Picker aborted in state=%s: %s", failed_in, exc)
            if isinstance(exc, PickerError):
                exc.step = exc.step or f"picker:{failed_in}"
                exc.details.setdefault("picker", self.diagnostics())
            raise

        LOGGER.info(
            "Date range committed | range=%s commit=%s results_ready=%s",
            date_range.start,
            commit,
            results_ready,
        )
        return PickerOutcome(
            variant=self.variant,
            opener=opener,
            fill=fill,
            commit=commit,
            results_ready=results_ready,
            history=list(self.history),
        )

    def diagnostics(self) -> dict[str, Any]:
        return {
            "variant": self.variant.value if self.variant else None,
            "states": list(self.history),
        }

    # ---- OPENING -> OPENED ----

    async def _open(self) -> str:
        for attempt in range(1, self.settings.open_attempts + 1):
            try:
                await self._wait_document_complete()
                for opener in selectors.OPENERS:
                    if await self._try_opener(opener):
                        return opener
                raise PickerNotFoundError()
            except PlaywrightError as exc:
                if not is_context_destroyed(exc):
                    raise
                LOGGER.info("DOM replaced while opening picker (attempt %s); re-syncing", attempt)
                await resync_after_replacement(self.page, multiplier=self.settings.wait_multiplier)
        raise PickerNotFoundError(
            f"Datepicker não encontrado após {self.settings.open_attempts} tentativas"
        )

    async def _wait_document_complete(self) -> None:
        try:
            await self.page.wait_for_function(
                DOCUMENT_COMPLETE_JS, timeout=DOCUMENT_COMPLETE_TIMEOUT_MS
            )
        except PlaywrightTimeoutError:
            LOGGER.debug("document.readyState not complete after %sms", DOCUMENT_COMPLETE_TIMEOUT_MS)

    async def _try_opener(self, opener: str) -> bool:
        handle = await self.page.query_selector(opener)
        if handle is None or not await is_visible_safe(handle):
            return False
        try:
            await handle.click(delay=10, timeout=INTERACTION_TIMEOUT_MS)
        except PlaywrightError as exc:
            if is_context_destroyed(exc):
                raise
            LOGGER.debug("Opener %s not clickable: %s", opener, exc)
            return False
        try:
            await self.page.wait_for_selector(
                selectors.PANEL, state="visible", timeout=self.settings.panel_timeout_ms
            )
        except PlaywrightTimeoutError:
            LOGGER.debug("Opener %s clicked but no panel appeared", opener)
            return False
        return True

    async def _panel_visible(self) -> bool:
        return await first_visible(self.page, selectors.PANEL) is not None

    async def _resync(self, during: str) -> None:
        LOGGER.info("DOM replaced during %s; re-syncing", during)
        await resync_after_replacement(self.page, multiplier=self.settings.wait_multiplier)

    # ---- variant detection ----

    async def _probe_inputs(self, probes: tuple[str, ...]) -> list[Any]:
        best: list[Any] = []
        for probe in probes:
            handles = list(await self.page.query_selector_all(probe))
            if len(handles) >= 2:
                return handles
            if len(handles) > len(best):
                best = handles
        return best

    async def _detect_variant(self) -> tuple[PickerVariant, list[Any]]:
        attempt = 1
        while True:
            try:
                return await self._match_variant()
            except PlaywrightError as exc:
                if not is_context_destroyed(exc) or attempt >= self.settings.open_attempts:
                    raise
            attempt += 1
            await self._resync("variant detection")

    async def _match_variant(self) -> tuple[PickerVariant, list[Any]]:
        for variant, probes in (
            (PickerVariant.MODERN_DUAL_INPUT, selectors.MODERN_INPUTS),
            (PickerVariant.LEGACY_DUAL_INPUT, selectors.LEGACY_INPUTS),
        ):
            inputs = await self._probe_inputs(probes)
            if not inputs:
                continue
            if len(inputs) < 2:
                self.variant = variant
                raise InputsNotFoundError(
                    f"{InputsNotFoundError.default_message}: {len(inputs)} de 2"
                )
            return variant, inputs[:2]
        return PickerVariant.GRID_ONLY, []

    # ---- APPLYING ----

    async def _commit(self) -> str:
        await self._settle(300)
        if not await self._panel_visible():
            return "auto"
        await self.page.keyboard.press("Enter")
        await self._settle(400)
        try:
            if not await self._panel_visible():
                return "enter"
            ok_button = await first_visible(self.page, selectors.OK_BUTTON)
        except PlaywrightError as exc:
            if not is_context_destroyed(exc):
                raise
            # Enter applied the filter and the app re-rendered.
            await self._resync("commit")
            return "enter"
        if ok_button is None:
            LOGGER.warning("Picker still open after Enter and no OK button is visible")
            return "enter"
        await ok_button.click(timeout=INTERACTION_TIMEOUT_MS)
        await self._settle(300)
        return "ok-button"


# ---- dual-input strategy ----


async def _type_or_set(page: Any, handle: Any, value: str) -> str:
    try:
        await handle.click(click_count=3, timeout=INTERACTION_TIMEOUT_MS)
        await page.keyboard.type(value)
        return "typed"
    except PlaywrightError as exc:
        if is_context_destroyed(exc):
            raise
        LOGGER.info("Typing into date input failed; setting value directly: %s", exc)
    await handle.evaluate(SET_VALUE_JS, value)
    return "setValue"


async def _input_value(handle: Any, fallback: str) -> str:
    try:
        return (await handle.input_value(timeout=INTERACTION_TIMEOUT_MS)) or fallback
    except PlaywrightError:
        return fallback


async def fill_dual_inputs(
    selector: DateRangeSelector, inputs: list[Any], date_range: DateRange
) -> FillResult:
    selector._transition(PickerState.FILLING)
    start_input, end_input = inputs[0], inputs[1]
    strategies = [await _type_or_set(selector.page, start_input, date_range.start)]
    await selector._settle(150)
    strategies.append(await _type_or_set(selector.page, end_input, date_range.end))

    committed_start = await _input_value(start_input, date_range.start)
    committed_end = await _input_value(end_input, date_range.end)
    if (committed_start, committed_end) != (date_range.start, date_range.end):
        LOGGER.warning(
            "Inputs read back %s - %s after filling %s", committed_start, committed_end, date_range.start
        )
    return FillResult(
        strategies=strategies,
        committed_start=committed_start,
        committed_end=committed_end,
    )


# ---- grid-only strategy ----


async def _visible_panels(page: Any) -> list[tuple[Any, tuple[int, int] | None]]:
    panels: list[tuple[Any, tuple[int, int] | None]] = []
    for handle in await page.query_selector_all(selectors.CALENDAR_PANELS):
        if not await is_visible_safe(handle):
            continue
        heading = await handle.query_selector(selectors.PANEL_HEADING)
        panels.append((handle, parse_heading(await inner_text_safe(heading))))
    return panels


async def _find_day_cell(panel: Any, day: int) -> Any:
    label = str(day)
    for cell in await panel.query_selector_all(selectors.DAY_CELLS):
        if await inner_text_safe(cell) == label:
            return cell

    LOGGER.info("Primary day-cell selector missed day %s; scanning generic cells", label)
    for cell in await panel.query_selector_all(selectors.GENERIC_DAY_CELLS):
        classes = await class_name_safe(cell)
        if any(marker in classes for marker in selectors.OUT_OF_VIEW_MARKERS):
            continue
        if "ant-picker-cell" in classes and "ant-picker-cell-in-view" not in classes:
            continue
        if await inner_text_safe(cell) == label and await is_visible_safe(cell):
            return cell
    raise DayNotFoundError(f"{DayNotFoundError.default_message}: {day:02d}")


async def _click_day_twice(selector: DateRangeSelector, panel: Any, cell: Any, day: int) -> None:
    await cell.click(timeout=INTERACTION_TIMEOUT_MS)
    await selector._settle(120)
    try:
        await cell.click(timeout=INTERACTION_TIMEOUT_MS)
    except PlaywrightError as exc:
        if is_context_destroyed(exc):
            raise
        LOGGER.debug("Day cell went stale after first click; re-locating: %s", exc)
        cell = await _find_day_cell(panel, day)
        await cell.click(timeout=INTERACTION_TIMEOUT_MS)


async def fill_calendar_grid(
    selector: DateRangeSelector, inputs: list[Any], date_range: DateRange
) -> FillResult:
    selector._transition(PickerState.POSITIONING)
    page = selector.page
    target = (date_range.year, date_range.month)
    max_steps = selector.settings.max_nav_steps
    steps = 0
    resyncs = 0

    while True:
        try:
            panels = await _visible_panels(page)
        except PlaywrightError as exc:
            if not is_context_destroyed(exc) or resyncs >= selector.settings.open_attempts:
                raise
            resyncs += 1
            await selector._resync("calendar positioning")
            continue
        shown = [heading for _, heading in panels if heading]
        if target in shown:
            break
        if not shown:
            raise NavigationExhaustedError("Cabeçalho do calendário ilegível")
        if steps >= max_steps:
            raise NavigationExhaustedError(
                f"{NavigationExhaustedError.default_message} após {steps} passos"
            )
        direction = "prev" if target < min(shown) else "next"
        button = await first_visible(
            page,
            selectors.NAV_PREV if direction == "prev" else selectors.NAV_NEXT,
            last=direction == "next",
        )
        if button is None:
            raise NavigationExhaustedError(f"Botão de navegação '{direction}' não encontrado")
        await button.click(timeout=INTERACTION_TIMEOUT_MS)
        steps += 1
        LOGGER.debug("Calendar moved %s | shown=%s target=%s step=%s", direction, shown, target, steps)
        await selector._settle(250)

    selector._transition(PickerState.FILLING)
    panel = next(handle for handle, heading in panels if heading == target)
    cell = await _find_day_cell(panel, date_range.day)
    await _click_day_twice(selector, panel, cell, date_range.day)
    return FillResult(
        strategies=["grid"],
        committed_start=date_range.start,
        committed_end=date_range.end,
        nav_steps=steps,
    )


FILL_STRATEGIES: dict[PickerVariant, FillStrategy] = {
    PickerVariant.MODERN_DUAL_INPUT: fill_dual_inputs,
    PickerVariant.LEGACY_DUAL_INPUT: fill_dual_inputs,
    PickerVariant.GRID_ONLY: fill_calendar_grid,
}


__all__ = [
    "DateRange",
    "DateRangeSelector",
    "FILL_STRATEGIES",
    "FillResult",
    "PickerOutcome",
    "PickerState",
    "PickerVariant",
    "build_date_range",
    "parse_heading",
]
