from __future__ import annotations


class HarvestError(RuntimeError):
    """
    Base class for every failure raised by the invoice harvesting pipeline.
    """


class InitializationError(HarvestError):
    """
    Raised when the browser session cannot be started or the portal root page does not load.
    """


class AuthenticationError(HarvestError):
    """
    Raised when the login flow does not complete (rejected credentials, timeouts, missing form).
    """


class SessionStateError(HarvestError):
    """
    Raised when a session operation is called in the wrong lifecycle state.
    """


class NavigationError(HarvestError):
    """
    Raised when the invoices list route fails to load or its rows never appear.
    """


class DateParseError(HarvestError, ValueError):
    pass


class OpenError(HarvestError):
    """
    Raised when an invoice's detail view cannot be opened.
    """


class DownloadError(HarvestError):
    """
    Raised when the download trigger is missing/unclickable or the file never shows up.
    """


class DownloadTimeoutError(DownloadError):
    def __init__(self, path: str, timeout_s: float) -> None:
        super().__init__(f"Timed out after {timeout_s:g}s waiting for download: {path}")
        self.path = path
        self.timeout_s = timeout_s
