"""Validation schemas for extracted rows and ranked groups."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from salesboard.normalizers import format_amount


class ExtractedRow(BaseModel):
    """One store line from the results table."""

    model_config = ConfigDict(frozen=True)

    store: str
    orders: int = Field(ge=0)
    sales: Decimal
    position: int = Field(ge=0)

    @field_validator("store", mode="before")
    @classmethod
    def _strip_store(cls, value: Any) -> str:
        return str(value or "").strip()

    def as_payload(self) -> dict[str, Any]:
        return {
            "store": self.store,
            "orders": self.orders,
            "sales": format_amount(self.sales),
        }


class ResultGroup(BaseModel):
    """Ranked leaderboard for one store-name prefix.

    Totals cover the ranked rows only, not every row that matched the prefix.
    """

    name: str
    rows: list[ExtractedRow] = Field(default_factory=list)
    matched: int = Field(default=0, ge=0)

    @property
    def total_orders(self) -> int:
        return sum(row.orders for row in self.rows)

    @property
    def total_sales(self) -> Decimal:
        return sum((row.sales for row in self.rows), Decimal("0"))

    def as_payload(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "matched": self.matched,
            "rows": [row.as_payload() for row in self.rows],
            "totals": {
                "orders": self.total_orders,
                "sales": format_amount(self.total_sales),
            },
        }


__all__ = ["ExtractedRow", "ResultGroup"]
