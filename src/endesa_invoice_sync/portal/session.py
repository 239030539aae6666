from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional

from ..errors import AuthenticationError, InitializationError, SessionStateError
from ..models import PortalCredentials, PortalRoutes, Viewport
from .browser import BrowserPage, BrowserSession
from .selectors import PortalSelectors


logger = logging.getLogger(__name__)

# Client-side redirects keep running for a while after the login navigation settles.
LOGIN_QUIESCENCE_MS = 2_000


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    AUTHENTICATED = "authenticated"
    HARVESTING = "harvesting"
    CLOSED = "closed"
    FAILED = "failed"


_TERMINAL = (SessionState.CLOSED, SessionState.FAILED)


class SessionController:
    """
    Owns the lifecycle of one authenticated portal session:
    `initialize()` -> `authenticate()` -> (harvesting) -> `teardown()`.

    `teardown()` is always safe: repeated calls and partially initialized sessions are no-ops.
    """

    def __init__(
        self,
        *,
        base_url: str,
        session_factory: Callable[[], BrowserSession],
        routes: Optional[PortalRoutes] = None,
        selectors: Optional[PortalSelectors] = None,
        viewport: Optional[Viewport] = None,
        login_settle_ms: int = 30_000,
        quiescence_ms: int = LOGIN_QUIESCENCE_MS,
        debug_dir: str = "data/debug",
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.routes = routes or PortalRoutes()
        self.selectors = selectors or PortalSelectors()
        self.viewport = viewport or Viewport()
        self.login_settle_ms = login_settle_ms
        self.quiescence_ms = quiescence_ms
        self.debug_dir = debug_dir

        self._session_factory = session_factory
        self._session: Optional[BrowserSession] = None
        self._page: Optional[BrowserPage] = None
        self.state = SessionState.UNINITIALIZED

    @property
    def page(self) -> BrowserPage:
        if self._page is None or self.state in _TERMINAL:
            raise SessionStateError(f"No open page (session state: {self.state.value})")
        return self._page

    def initialize(self) -> BrowserPage:
        if self.state is not SessionState.UNINITIALIZED:
            raise SessionStateError(f"initialize() called in state {self.state.value}")
        try:
            self._session = self._session_factory()
            self._page = self._session.new_page(self.viewport)
            self._page.open(self.base_url)
        except Exception as e:
            self.state = SessionState.FAILED
            raise InitializationError(f"Could not open the portal at {self.base_url}: {e}") from e

        self.state = SessionState.INITIALIZED
        logger.debug("Session initialized (url=%s)", self.base_url)
        return self._page

    def authenticate(self, creds: PortalCredentials) -> None:
        if self.state is not SessionState.INITIALIZED or self._page is None:
            raise SessionStateError(f"authenticate() called in state {self.state.value}")

        page = self._page
        login_url = self.base_url + self.routes.login
        try:
            page.open(login_url)
            page.type(self.selectors.username_input, creds.username)
            page.type(self.selectors.password_input, creds.password)
            page.click(self.selectors.accept_cookies_button)
            page.click(self.selectors.login_submit_button)
            page.wait_for_settle(timeout_ms=self.login_settle_ms)
            page.pause(self.quiescence_ms)
        except Exception as e:
            self.state = SessionState.FAILED
            page.save_debug(debug_dir=self.debug_dir, name_prefix="login_failure")
            raise AuthenticationError(f"Portal login did not complete: {e}") from e

        # A rejected login re-renders the login route instead of redirecting away from it.
        if page.url.rstrip("/") == login_url.rstrip("/"):
            self.state = SessionState.FAILED
            page.save_debug(debug_dir=self.debug_dir, name_prefix="login_not_completed")
            raise AuthenticationError(
                "Portal login did not complete (still on the login page). "
                "This usually means the credentials were rejected."
            )

        self.state = SessionState.AUTHENTICATED
        logger.debug("Session authenticated (url=%s)", page.url)

    def begin_harvest(self) -> BrowserPage:
        if self.state is not SessionState.AUTHENTICATED:
            raise SessionStateError(f"begin_harvest() called in state {self.state.value}")
        self.state = SessionState.HARVESTING
        return self.page

    def teardown(self) -> None:
        page, session = self._page, self._session
        self._page = None
        self._session = None

        if page is not None:
            try:
                page.close()
            except Exception:
                logger.debug("Failed to close page.", exc_info=True)
        if session is not None:
            try:
                session.close()
            except Exception:
                logger.debug("Failed to close browser session.", exc_info=True)

        if self.state is not SessionState.FAILED:
            self.state = SessionState.CLOSED
