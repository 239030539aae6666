from .browser import BrowserPage, BrowserSession, PlaywrightPage, PlaywrightSession
from .discovery import RowDiscovery
from .selectors import PortalSelectors
from .session import SessionController, SessionState

__all__ = [
    "BrowserPage",
    "BrowserSession",
    "PlaywrightPage",
    "PlaywrightSession",
    "PortalSelectors",
    "RowDiscovery",
    "SessionController",
    "SessionState",
]
