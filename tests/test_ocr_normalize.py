"""Tests for OCR value normalization (odometer, amounts, dates)."""

from __future__ import annotations

from datetime import date

import pytest

from utils.ocr_normalize import clean_text, parse_amount, parse_date, parse_odometer


@pytest.mark.parametrize(
    "text,expected",
    [
        ("67,890", 67890),
        ("67,890 mi", 67890),
        ("Odometer: 1,234,567 miles", 1234567),
        ("45210", 45210),
        ("Mileage 45210 km", 45210),
        (" 123,456 ", 123456),
        ("12,3456", 12345),
    ],
)
def test_parse_odometer(text: str, expected: int) -> None:
    assert parse_odometer(text) == expected


@pytest.mark.parametrize("text", ["1,000", "999,999", "12,345,678"])
def test_comma_grouped_odometer_drops_separators(text: str) -> None:
    assert parse_odometer(text) == int(text.replace(",", ""))


@pytest.mark.parametrize("value", [None, "", "abc", "12", True])
def test_parse_odometer_rejects(value) -> None:
    assert parse_odometer(value) is None


def test_parse_odometer_passes_numbers_through() -> None:
    assert parse_odometer(123456) == 123456
    assert parse_odometer(98765.0) == 98765


@pytest.mark.parametrize(
    "text,expected",
    [
        ("$1,234.50", 1234.5),
        ("12.99", 12.99),
        ("2", 2.0),
        ("USD 45", 45.0),
        ("-5.00", -5.0),
    ],
)
def test_parse_amount(text: str, expected: float) -> None:
    assert parse_amount(text) == pytest.approx(expected)


@pytest.mark.parametrize("value", [None, "", "abc", False])
def test_parse_amount_rejects(value) -> None:
    assert parse_amount(value) is None


@pytest.mark.parametrize("value", [float("inf"), float("-inf"), float("nan")])
def test_parse_odometer_rejects_non_finite(value: float) -> None:
    assert parse_odometer(value) is None


@pytest.mark.parametrize("value", [float("inf"), float("nan"), 10**400, "9" * 400])
def test_parse_amount_rejects_non_finite(value) -> None:
    assert parse_amount(value) is None


@pytest.mark.parametrize(
    "text",
    ["2025-08-22", "08/22/2025", "2025-08-22T10:00:00Z", "Aug 22, 2025", "22 August 2025"],
)
def test_parse_date_formats(text: str) -> None:
    assert parse_date(text) == date(2025, 8, 22)


def test_parse_date_unparseable() -> None:
    assert parse_date("not a date") is None
    assert parse_date("") is None


def test_clean_text_collapses_whitespace() -> None:
    assert clean_text("  Oil \n filter\t") == "Oil filter"
    assert clean_text("   ") is None
    assert clean_text(None) is None
