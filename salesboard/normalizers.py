"""Utility helpers for normalising scraped dashboard text values."""

from __future__ import annotations

import re
import unicodedata
from decimal import Decimal, InvalidOperation

_NON_DIGITS = re.compile(r"\D+")
_AMOUNT_CHARS = re.compile(r"[^0-9.,\-]")
_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def strip_accents(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_label(value: str | None) -> str:
    """Lowercase, accent-strip and collapse a header or KPI label."""

    if not value:
        return ""
    text = strip_accents(value).lower()
    text = _PUNCTUATION.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()


def parse_count(value: str | None) -> int:
    """Parse an order count cell, keeping digits only."""

    if not value:
        return 0
    digits = _NON_DIGITS.sub("", value)
    return int(digits) if digits else 0


def parse_amount(value: str | None) -> Decimal | None:
    """Parse a pt-BR currency string (``R$ 1.234,56``) into a Decimal.

    Dots are thousands separators and the comma is the decimal separator.
    Returns ``None`` when the text carries no digits.
    """

    if value is None:
        return None
    text = value.strip()
    if not any(ch.isdigit() for ch in text):
        return None

    negative = "-" in text or (text.startswith("(") and text.endswith(")"))
    cleaned = _AMOUNT_CHARS.sub("", text).replace("-", "")
    cleaned = cleaned.replace(".", "").replace(",", ".")
    if cleaned.count(".") > 1:
        head, _, tail = cleaned.rpartition(".")
        cleaned = head.replace(".", "") + "." + tail
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return None
    return -amount if negative else amount


def format_amount(value: Decimal) -> float:
    return float(value.quantize(Decimal("0.01")))


__all__ = ["format_amount", "normalize_label", "parse_amount", "parse_count", "strip_accents"]
