from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from ..errors import DateParseError, NavigationError
from ..models import CandidateRecord, PortalRoutes
from ..util.dates import parse_portal_date
from .browser import BrowserPage
from .selectors import PortalSelectors


logger = logging.getLogger(__name__)


class RowDiscovery:
    """
    Reads the invoices list and picks the rows issued after the watermark.
    """

    def __init__(
        self,
        page: BrowserPage,
        *,
        base_url: str,
        routes: Optional[PortalRoutes] = None,
        selectors: Optional[PortalSelectors] = None,
        wait_timeout_ms: int = 30_000,
    ) -> None:
        self.page = page
        self.base_url = base_url.rstrip("/")
        self.routes = routes or PortalRoutes()
        self.selectors = selectors or PortalSelectors()
        self.wait_timeout_ms = wait_timeout_ms

    def navigate_to_list_view(self) -> None:
        url = self.base_url + self.routes.invoices
        try:
            self.page.open(url)
            self.page.wait_for_selector(self.selectors.invoice_rows, timeout_ms=self.wait_timeout_ms)
        except Exception as e:
            raise NavigationError(f"Invoices list did not load ({url}): {e}") from e

    def discover_candidates(self, watermark: date, date_format: str, locale: str) -> list[CandidateRecord]:
        """
        Return one record per row whose date is strictly after `watermark`, in on-page order.

        Expects the list view to be open. A row whose date label cannot be parsed aborts the whole
        call with `DateParseError`; we never guess which invoices were skipped.
        """
        rows = self.page.query_all(self.selectors.invoice_rows)
        out: list[CandidateRecord] = []
        for i in range(1, len(rows) + 1):
            locator = self.selectors.row(i)
            raw = self.page.extract_text(self.selectors.row_date(locator)).strip()
            try:
                issue_date = parse_portal_date(raw, date_format, locale)
            except DateParseError as e:
                raise DateParseError(f"Row {i}: cannot parse invoice date {raw!r}: {e}") from e

            if watermark < issue_date:
                out.append(CandidateRecord(issue_date=issue_date, locator=locator, raw_label=raw))

        logger.debug("Examined %d rows; %d newer than %s", len(rows), len(out), watermark.isoformat())
        return out
