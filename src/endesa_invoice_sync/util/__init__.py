from .dates import format_invoice_date, parse_iso_date, parse_portal_date

__all__ = ["format_invoice_date", "parse_iso_date", "parse_portal_date"]
