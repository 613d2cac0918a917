"""Results-table and KPI-card extraction for the store-sales page."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from playwright.async_api import Error as PlaywrightError

from salesboard.errors import ColumnsNotFoundError
from salesboard.logging_config import get_logger
from salesboard.normalizers import format_amount, normalize_label, parse_amount, parse_count
from salesboard.schemas import ExtractedRow

LOGGER = get_logger(__name__)

READ_TABLE_JS = """
(maxRows) => {
  const table = document.querySelector('.ant-table') || document.querySelector('table');
  if (!table) return null;
  const text = (el) => ((el && el.textContent) || '').replace(/\\s+/g, ' ').trim();
  const headers = Array.from(table.querySelectorAll('thead th')).map(text);
  const rows = [];
  for (const tr of table.querySelectorAll('tbody tr')) {
    const cls = typeof tr.className === 'string' ? tr.className : '';
    if (cls.includes('measure-row') || cls.includes('placeholder')) continue;
    const cells = Array.from(tr.querySelectorAll('td')).map(text);
    if (!cells.some((cell) => cell.length > 0)) continue;
    rows.push(cells);
    if (rows.length >= maxRows) break;
  }
  return { headers, rows };
}
"""

READ_KPIS_JS = """
(knownLabels) => {
  const pick = (el) => ((el && el.textContent) || '').replace(/\\s+/g, ' ').trim();
  const out = {};
  document.querySelectorAll('.ant-statistic').forEach((card) => {
    const label = pick(card.querySelector('.ant-statistic-title')) || pick(card.previousElementSibling);
    const value = pick(card.querySelector('.ant-statistic-content-value, .ant-statistic-content'));
    if (label && value) out[label] = value;
  });
  document.querySelectorAll('.ant-card .ant-card-meta-title, .ant-card-head-title').forEach((el) => {
    const label = pick(el);
    const holder = el.parentElement && el.parentElement.parentElement;
    const value = pick(holder && holder.querySelector(
      '.ant-statistic-content, .ant-typography, .ant-card-meta-description'));
    if (label && value && !(label in out)) out[label] = value;
  });
  const numberLike = /R\\$\\s*\\d[\\d.,]*|-?\\d{1,3}(?:\\.\\d{3})*(?:,\\d+)?%?/g;
  const seen = Object.keys(out).map((key) => key.toLowerCase());
  knownLabels.forEach((label) => {
    if (seen.some((key) => key.includes(label))) return;
    const node = Array.from(document.querySelectorAll('.ant-card, .ant-col, .ant-typography'))
      .find((n) => pick(n).toLowerCase().includes(label));
    if (!node) return;
    const matches = pick(node).match(numberLike);
    if (matches) out[label] = matches[matches.length - 1];
  });
  return out;
}
"""

KNOWN_KPI_LABELS = ("faturamento", "pedidos", "ticket medio", "ticket médio", "conversão", "itens por pedido")

STORE_HEADERS = ("nome da loja", "store name", "loja", "store", "tienda", "shop")
ORDER_HEADERS = (
    "pedidos validos",
    "valid orders",
    "valid order",
    "ordenes validas",
    "qtd pedidos validos",
)
SALES_HEADERS = (
    "vendas validas",
    "valid sales",
    "ventas validas",
    "faturamento valido",
    "valor de vendas validas",
    "gmv valido",
    "valid gmv",
)
SUMMARY_LABELS = frozenset({"total", "totais", "total geral"})


@dataclass
class TableSnapshot:
    headers: list[str] = field(default_factory=list)
    rows: list[list[str]] = field(default_factory=list)
    found: bool = True

    def diagnostics(self) -> dict[str, Any]:
        return {"found": self.found, "headers": list(self.headers), "rowCount": len(self.rows)}


@dataclass(frozen=True)
class ColumnMap:
    store: int
    orders: int
    sales: int


async def read_results_table(page: Any, max_rows: int = 500) -> TableSnapshot:
    """Return header texts and up to *max_rows* non-empty body rows."""

    payload = await page.evaluate(READ_TABLE_JS, max_rows)
    if not payload:
        LOGGER.warning("No results table present on the page")
        return TableSnapshot(found=False)
    headers = [str(text or "") for text in payload.get("headers") or []]
    rows = [[str(cell or "") for cell in row] for row in payload.get("rows") or []]
    LOGGER.info("Results table read | headers=%s rows=%s", len(headers), len(rows))
    return TableSnapshot(headers=headers, rows=rows)


def _match_header(normalized: list[str], phrasings: tuple[str, ...], taken: set[int]) -> int | None:
    wanted = [normalize_label(phrase) for phrase in phrasings]
    for index, header in enumerate(normalized):
        if index not in taken and header in wanted:
            return index
    for phrase in wanted:
        for index, header in enumerate(normalized):
            if index not in taken and phrase and phrase in header:
                return index
    return None


def resolve_columns(headers: list[str]) -> ColumnMap:
    """Map the store, valid-orders and valid-sales roles onto column indexes.

    Matching is accent- and case-insensitive; exact header matches win over
    substring matches and a column is assigned to at most one role.
    """

    normalized = [normalize_label(header) for header in headers]
    taken: set[int] = set()
    resolved: dict[str, int] = {}
    missing: list[str] = []
    for role, phrasings in (
        ("orders", ORDER_HEADERS),
        ("sales", SALES_HEADERS),
        ("store", STORE_HEADERS),
    ):
        index = _match_header(normalized, phrasings, taken)
        if index is None:
            missing.append(role)
            continue
        taken.add(index)
        resolved[role] = index

    if missing:
        raise ColumnsNotFoundError(missing=tuple(missing), headers=tuple(headers))
    return ColumnMap(**resolved)


def extract_rows(snapshot: TableSnapshot, columns: ColumnMap) -> list[ExtractedRow]:
    rows: list[ExtractedRow] = []
    needed = max(columns.store, columns.orders, columns.sales)
    for cells in snapshot.rows:
        if len(cells) <= needed:
            LOGGER.debug("Skipping short row with %s cells", len(cells))
            continue
        store = cells[columns.store].strip()
        if not store or normalize_label(store) in SUMMARY_LABELS:
            continue
        sales = parse_amount(cells[columns.sales])
        if sales is None:
            LOGGER.debug("Sales cell %r for %s has no digits; using 0", cells[columns.sales], store)
            sales = Decimal("0")
        rows.append(
            ExtractedRow(
                store=store,
                orders=parse_count(cells[columns.orders]),
                sales=sales,
                position=len(rows),
            )
        )
    return rows


async def extract_kpi_cards(page: Any) -> dict[str, dict[str, Any]]:
    """Read statistic cards into ``{label: {"raw": text, "value": number}}``.

    Best effort: a failing page script yields an empty mapping.
    """

    try:
        raw_cards = await page.evaluate(READ_KPIS_JS, list(KNOWN_KPI_LABELS))
    except PlaywrightError as exc:
        LOGGER.warning("KPI card extraction failed: %s", exc)
        return {}

    cards: dict[str, dict[str, Any]] = {}
    for label, raw in (raw_cards or {}).items():
        key = normalize_label(label)
        if not key or key in cards:
            continue
        amount = parse_amount(str(raw))
        cards[key] = {"raw": raw, "value": format_amount(amount) if amount is not None else None}
    return cards


__all__ = [
    "ColumnMap",
    "TableSnapshot",
    "extract_kpi_cards",
    "extract_rows",
    "read_results_table",
    "resolve_columns",
]
