"""
OCR value normalization: odometer readings, currency amounts and dates as they come
off a scanned invoice ("67,890 mi", "$1,234.50", "08/22/2025").
Shared by the AI response schema and the rule-based fallback.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime
from typing import Any

# "67,890" / "1,234,567"; a run like "12,3456" reads as its grouped prefix 12,345
_COMMA_GROUPED = re.compile(r"\d{1,3}(?:,\d{3})+")
_COMMA_GROUPED_DECIMAL = re.compile(r"-?\d{1,3}(?:,\d{3})+(?:\.\d+)?(?![\d,])")
_PLAIN_DIGITS = re.compile(r"\d{3,}")
_PLAIN_DECIMAL = re.compile(r"-?\d+(?:\.\d+)?|-?\.\d+")

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%m-%d-%Y",
    "%d.%m.%Y",
    "%Y/%m/%d",
    "%b %d, %Y",
    "%B %d, %Y",
    "%d %b %Y",
    "%d %B %Y",
)


def parse_odometer(value: Any) -> int | None:
    """
    Parse an odometer/mileage reading.

    A comma-grouped number wins ("67,890 miles" -> 67890); otherwise the first run of
    at least three digits is taken as a plain integer. Returns None when neither matches.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    text = str(value).strip()
    if not text:
        return None
    m = _COMMA_GROUPED.search(text)
    if m:
        return int(m.group(0).replace(",", ""))
    m = _PLAIN_DIGITS.search(text)
    if m:
        return int(m.group(0))
    return None


def parse_amount(value: Any) -> float | None:
    """
    Parse a currency amount or quantity: "$1,234.50" -> 1234.5, "2" -> 2.0.
    Comma-grouped values are tried first, then the first plain decimal.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return _finite(float(value))
        except OverflowError:
            return None
    text = str(value).strip()
    if not text:
        return None
    m = _COMMA_GROUPED_DECIMAL.search(text)
    if m:
        return _finite(float(m.group(0).replace(",", "")))
    m = _PLAIN_DECIMAL.search(text)
    if m:
        try:
            return _finite(float(m.group(0)))
        except ValueError:
            return None
    return None


def _finite(n: float) -> float | None:
    # 1e999 in JSON decodes to inf; a runaway digit string overflows the same way
    return n if math.isfinite(n) else None


def parse_date(value: Any) -> date | None:
    """Parse ISO and common US/EU invoice date formats; unparseable -> None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    # ISO timestamps ("2025-08-22T00:00:00Z")
    if "T" in text and text[:4].isdigit():
        text = text.split("T", 1)[0]
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def clean_text(value: Any) -> str | None:
    """Strip and collapse whitespace; empty -> None."""
    if value is None:
        return None
    text = re.sub(r"\s+", " ", str(value)).strip()
    return text or None
