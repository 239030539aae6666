from __future__ import annotations

from datetime import date

import pytest

from endesa_invoice_sync.errors import DateParseError, NavigationError
from endesa_invoice_sync.portal.discovery import RowDiscovery
from endesa_invoice_sync.portal.selectors import PortalSelectors

from fakes import BASE_URL, FakePortalPage


def _discovery(page: FakePortalPage) -> RowDiscovery:
    return RowDiscovery(page, base_url=BASE_URL)


def test_navigate_to_list_view_waits_for_rows() -> None:
    page = FakePortalPage(["05/03/2024"])
    _discovery(page).navigate_to_list_view()
    assert page.opened_urls == [BASE_URL + "/facturas"]
    assert page.view == "list"


def test_navigate_to_list_view_failure_is_navigation_error() -> None:
    page = FakePortalPage([])
    page.list_view_broken = True
    with pytest.raises(NavigationError):
        _discovery(page).navigate_to_list_view()


def test_filter_is_strictly_after_watermark_and_keeps_page_order() -> None:
    page = FakePortalPage(["05/04/2024", "05/03/2024", "01/03/2024", "05/02/2024", "06/03/2024"])
    d = _discovery(page)
    d.navigate_to_list_view()

    out = d.discover_candidates(date(2024, 3, 1), "DD/MM/YYYY", "es")

    # 01/03/2024 equals the watermark and 05/02/2024 is older: both excluded.
    assert [r.issue_date for r in out] == [date(2024, 4, 5), date(2024, 3, 5), date(2024, 3, 6)]
    assert [r.raw_label for r in out] == ["05/04/2024", "05/03/2024", "06/03/2024"]
    sel = PortalSelectors()
    assert [r.locator for r in out] == [sel.row(1), sel.row(2), sel.row(5)]


def test_nothing_newer_than_watermark() -> None:
    page = FakePortalPage(["05/03/2024", "05/02/2024"])
    d = _discovery(page)
    d.navigate_to_list_view()
    assert d.discover_candidates(date(2024, 3, 5), "DD/MM/YYYY", "es") == []


def test_empty_list() -> None:
    page = FakePortalPage([])
    d = _discovery(page)
    d.navigate_to_list_view()
    assert d.discover_candidates(date(2024, 3, 5), "DD/MM/YYYY", "es") == []


def test_unparseable_row_aborts_discovery() -> None:
    page = FakePortalPage(["05/04/2024", "Pendiente", "05/02/2024"])
    d = _discovery(page)
    d.navigate_to_list_view()
    with pytest.raises(DateParseError) as exc:
        d.discover_candidates(date(2024, 1, 1), "DD/MM/YYYY", "es")
    assert "Row 2" in str(exc.value)
