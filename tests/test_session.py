from __future__ import annotations

import pytest

from endesa_invoice_sync.errors import AuthenticationError, InitializationError, SessionStateError
from endesa_invoice_sync.models import PortalCredentials, Viewport
from endesa_invoice_sync.portal.selectors import PortalSelectors
from endesa_invoice_sync.portal.session import SessionController, SessionState

from fakes import BASE_URL, FakePortalPage, FakeSession


CREDS = PortalCredentials(username="user@example.com", password="pw")


def _controller(session: FakeSession) -> SessionController:
    return SessionController(base_url=BASE_URL + "/", session_factory=lambda: session, quiescence_ms=2_000)


def test_initialize_opens_root_with_fixed_viewport() -> None:
    page = FakePortalPage([])
    session = FakeSession(page)
    c = _controller(session)

    assert c.initialize() is page
    assert c.state is SessionState.INITIALIZED
    assert page.opened_urls == [BASE_URL]
    assert session.viewports == [Viewport(width=1680, height=950)]


def test_initialize_failure_is_initialization_error() -> None:
    session = FakeSession(FakePortalPage([]), fail_new_page=True)
    c = _controller(session)
    with pytest.raises(InitializationError):
        c.initialize()
    assert c.state is SessionState.FAILED

    c.teardown()
    assert session.close_calls == 1
    assert c.state is SessionState.FAILED


def test_authenticate_fills_form_and_waits_for_quiescence() -> None:
    page = FakePortalPage([])
    c = _controller(FakeSession(page))
    c.initialize()
    c.authenticate(CREDS)

    sel = PortalSelectors()
    assert c.state is SessionState.AUTHENTICATED
    assert page.opened_urls[-1] == BASE_URL + "/login"
    assert page.typed == {sel.username_input: "user@example.com", sel.password_input: "pw"}
    assert page.clicks == [sel.accept_cookies_button, sel.login_submit_button]
    assert page.clock.now == pytest.approx(2.0)


def test_rejected_login_raises_authentication_error() -> None:
    page = FakePortalPage([])
    page.reject_login = True
    c = _controller(FakeSession(page))
    c.initialize()
    with pytest.raises(AuthenticationError):
        c.authenticate(CREDS)
    assert c.state is SessionState.FAILED
    assert page.debug_saves == ["login_not_completed"]


def test_login_timeout_raises_authentication_error() -> None:
    page = FakePortalPage([])
    page.login_times_out = True
    c = _controller(FakeSession(page))
    c.initialize()
    with pytest.raises(AuthenticationError) as exc:
        c.authenticate(CREDS)
    assert isinstance(exc.value.__cause__, TimeoutError)
    assert c.state is SessionState.FAILED


def test_out_of_order_calls_are_rejected() -> None:
    page = FakePortalPage([])
    c = _controller(FakeSession(page))
    with pytest.raises(SessionStateError):
        c.authenticate(CREDS)
    with pytest.raises(SessionStateError):
        c.begin_harvest()
    c.initialize()
    with pytest.raises(SessionStateError):
        c.initialize()


def test_teardown_is_idempotent_and_safe_before_initialize() -> None:
    page = FakePortalPage([])
    session = FakeSession(page)
    c = _controller(session)

    c.teardown()
    assert c.state is SessionState.CLOSED
    assert session.close_calls == 0

    c2 = _controller(session)
    c2.initialize()
    c2.authenticate(CREDS)
    c2.begin_harvest()
    assert c2.state is SessionState.HARVESTING
    c2.teardown()
    c2.teardown()
    assert page.close_calls == 1
    assert session.close_calls == 1
    assert c2.state is SessionState.CLOSED
    with pytest.raises(SessionStateError):
        _ = c2.page
