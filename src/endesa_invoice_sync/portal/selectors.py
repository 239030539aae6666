from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PortalSelectors:
    """
    The customer portal is a web app; selectors may change over time.
    Keep all UI selectors here for easy maintenance.
    """

    # Login
    username_input: str = 'input[name="username"]'
    password_input: str = 'input[name="password"]'
    login_submit_button: str = 'button[type="submit"]'
    accept_cookies_button: str = "#onetrust-accept-btn-handler"

    # Invoices list. Rows are addressed by position: `{invoice_rows}:nth-child(i)`.
    invoice_rows: str = "table.invoices tbody tr"
    invoice_date_cell: str = "td.invoice-date"
    invoice_action_cell: str = "td.invoice-actions"
    invoice_action_button: str = "button"

    # Invoice detail
    invoice_content: str = "div.invoice-detail"
    invoice_download_button: str = 'button[data-action="download-pdf"]'

    def row(self, index: int) -> str:
        """
        Positional locator for the 1-based `index`-th invoice row.
        """
        return f"{self.invoice_rows}:nth-child({index})"

    def row_date(self, row_locator: str) -> str:
        return f"{row_locator} {self.invoice_date_cell}"

    def row_action(self, row_locator: str) -> str:
        return f"{row_locator} {self.invoice_action_cell} {self.invoice_action_button}"
