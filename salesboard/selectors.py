"""Centralised selectors for the store-sales analytics page."""

# ==== READINESS ====
DATE_LIKE_MARKERS = (
    ".ant-picker-input input",
    ".ant-picker-range",
    ".ant-picker",
    ".ant-calendar-picker",
    "input[placeholder*='Data']",
    "[data-testid*='date']",
    "[class*='date']",
    "[class*='calendar']",
)
RESULTS_MARKERS = (
    ".ant-table",
    "[class*='table']",
    ".ant-statistic",
    "[class*='statistic']",
)

# ==== PICKER (open) ====
OPENERS = (
    ".ant-calendar-picker",
    ".ant-picker-input input",
    ".ant-picker-range",
    ".ant-picker",
    "[data-testid='date-picker']",
    "input[placeholder*='Data']",
    "button[aria-label*='Data']",
)
PANEL = (
    ".ant-picker-dropdown:not(.ant-picker-dropdown-hidden), .ant-picker-panel, "
    ".ant-calendar-picker-container, [role='dialog']"
)

# ==== PICKER (variant probes) ====
MODERN_INPUTS = (
    ".ant-picker-dropdown .ant-picker-input input",
    ".ant-picker-panel .ant-picker-input input",
    ".ant-picker-dropdown input, .ant-picker-panel input",
)
LEGACY_INPUTS = (
    ".ant-calendar-range .ant-calendar-input",
    ".ant-calendar-picker-container input.ant-calendar-input",
    ".ant-calendar-picker-container input",
)

# ==== PICKER (calendar grid) ====
CALENDAR_PANELS = (
    ".ant-picker-date-panel, .ant-calendar-range-part, .ant-calendar:not(.ant-calendar-range)"
)
PANEL_HEADING = (
    ".ant-picker-header-view, .ant-calendar-my-select, .ant-calendar-ym-select"
)
NAV_PREV = ".ant-picker-header-prev-btn, .ant-calendar-prev-month-btn"
NAV_NEXT = ".ant-picker-header-next-btn, .ant-calendar-next-month-btn"
DAY_CELLS = (
    "td.ant-picker-cell-in-view, "
    "td.ant-calendar-cell:not(.ant-calendar-last-month-cell):not(.ant-calendar-next-month-btn-day)"
)
GENERIC_DAY_CELLS = "[role='gridcell'], td[class*='cell'], [class*='calendar-date'], [class*='day']"
OUT_OF_VIEW_MARKERS = ("disabled", "last-month", "next-month", "prev-month", "outside")

# ==== PICKER (commit) ====
OK_BUTTON = ".ant-picker-dropdown .ant-picker-ok button, .ant-picker-ok button, .ant-calendar-ok-btn"

# ==== RESULTS ====
RESULTS_TABLE = ".ant-table, table"
KPI_STATISTIC = ".ant-statistic"
KPI_CARD_TITLES = ".ant-card .ant-card-meta-title, .ant-card-head-title"
