from __future__ import annotations

from datetime import date

import pytest

from endesa_invoice_sync.errors import DateParseError
from endesa_invoice_sync.util.dates import format_invoice_date, parse_iso_date, parse_portal_date


def test_parse_portal_date_numeric_formats() -> None:
    assert parse_portal_date("05/03/2024", "DD/MM/YYYY") == date(2024, 3, 5)
    assert parse_portal_date("5/3/24", "D/M/YY") == date(2024, 3, 5)
    assert parse_portal_date(" 31-12-1999 ", "DD-MM-YYYY") == date(1999, 12, 31)


def test_parse_portal_date_spanish_month_names() -> None:
    assert parse_portal_date("5 marzo 2024", "D MMMM YYYY", "es") == date(2024, 3, 5)
    assert parse_portal_date("05 Dic. 2023", "DD MMM YYYY", "es") == date(2023, 12, 5)
    assert parse_portal_date("5 March 2024", "D MMMM YYYY", "en-GB") == date(2024, 3, 5)


@pytest.mark.parametrize("label", ["", "   ", "2024-03-05", "32/01/2024", "Pendiente"])
def test_parse_portal_date_rejects_bad_labels(label: str) -> None:
    with pytest.raises(DateParseError):
        parse_portal_date(label, "DD/MM/YYYY", "es")


def test_parse_portal_date_unknown_locale_for_month_names() -> None:
    with pytest.raises(DateParseError):
        parse_portal_date("5 mars 2024", "D MMMM YYYY", "fr")


def test_format_invoice_date_default_pattern() -> None:
    assert format_invoice_date(date(2024, 3, 5), "DD-MM-YY") == "05-03-24"


def test_format_invoice_date_other_patterns() -> None:
    d = date(2024, 3, 5)
    assert format_invoice_date(d, "YYYY-MM-DD") == "2024-03-05"
    assert format_invoice_date(d, "YYYY_MMM", "es") == "2024_mar"
    assert format_invoice_date(d, "D MMMM YYYY", "en") == "5 March 2024"


def test_parse_iso_date() -> None:
    assert parse_iso_date("2024-03-05") == date(2024, 3, 5)
    with pytest.raises(ValueError):
        parse_iso_date("  ")


@pytest.mark.parametrize("value", ["05/03/2024", "March 5 2024", "5-3-2024"])
def test_parse_iso_date_rejects_day_month_orders(value: str) -> None:
    with pytest.raises(ValueError):
        parse_iso_date(value)
