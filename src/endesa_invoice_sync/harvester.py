from __future__ import annotations

import logging
import time
from datetime import date
from pathlib import Path
from typing import Callable, Optional, Union

from pydantic import BaseModel, Field

from .download import DEFAULT_DOWNLOAD_TIMEOUT_S, DEFAULT_POLL_INTERVAL_S, DownloadLoop
from .errors import AuthenticationError, InitializationError
from .fs import Filesystem, LocalFilesystem
from .models import DocumentFormats, PortalCredentials, PortalRoutes, RunResult, Viewport
from .portal.browser import BrowserPage, BrowserSession, PlaywrightSession
from .portal.discovery import RowDiscovery
from .portal.selectors import PortalSelectors
from .portal.session import LOGIN_QUIESCENCE_MS, SessionController
from .reporter import LoggingReporter, Reporter
from .tracker import CompletionTracker


logger = logging.getLogger(__name__)


class HarvestOptions(BaseModel):
    base_url: str = "https://www.endesaclientes.com"
    routes: PortalRoutes = Field(default_factory=PortalRoutes)
    viewport: Viewport = Field(default_factory=Viewport)
    headless: bool = True
    slow_mo_ms: int = 0
    wait_timeout_ms: int = 30_000
    login_settle_ms: int = 30_000
    login_quiescence_ms: int = LOGIN_QUIESCENCE_MS
    download_timeout_s: float = Field(default=DEFAULT_DOWNLOAD_TIMEOUT_S, gt=0)
    poll_interval_s: float = Field(default=DEFAULT_POLL_INTERVAL_S, gt=0)
    debug_dir: str = "data/debug"


def run_harvest(
    *,
    credentials: PortalCredentials,
    watermark: date,
    download_dir: Union[str, Path],
    formats: Optional[DocumentFormats] = None,
    options: Optional[HarvestOptions] = None,
    selectors: Optional[PortalSelectors] = None,
    reporter: Optional[Reporter] = None,
    fs: Optional[Filesystem] = None,
    session_factory: Optional[Callable[[], BrowserSession]] = None,
    clock: Callable[[], float] = time.monotonic,
) -> RunResult:
    """
    Log into the portal and download every invoice issued after `watermark` into `download_dir`.

    Raises `InitializationError` / `AuthenticationError` when no session could be established.
    Everything after login is reported through the returned `RunResult`; the browser is always
    closed before returning.
    """
    formats = formats or DocumentFormats()
    options = options or HarvestOptions()
    selectors = selectors or PortalSelectors()
    reporter = reporter or LoggingReporter()
    fs = fs or LocalFilesystem()
    if session_factory is None:

        def session_factory() -> BrowserSession:
            return PlaywrightSession(
                headless=options.headless,
                slow_mo_ms=options.slow_mo_ms,
                timeout_ms=options.wait_timeout_ms,
            )

    controller = SessionController(
        base_url=options.base_url,
        session_factory=session_factory,
        routes=options.routes,
        selectors=selectors,
        viewport=options.viewport,
        login_settle_ms=options.login_settle_ms,
        quiescence_ms=options.login_quiescence_ms,
        debug_dir=options.debug_dir,
    )

    try:
        reporter.info("Initializing...")
        try:
            controller.initialize()
        except InitializationError as e:
            reporter.error(f"Failed to start the browser session: {e}")
            raise

        reporter.info("Trying to login...")
        try:
            controller.authenticate(credentials)
        except AuthenticationError:
            reporter.error("Failed to login with provided credentials")
            raise
        reporter.info("Logged in successfully")

        page = controller.begin_harvest()
        result = _harvest(
            page,
            watermark=watermark,
            download_dir=Path(download_dir),
            formats=formats,
            options=options,
            selectors=selectors,
            reporter=reporter,
            fs=fs,
            clock=clock,
        )
        CompletionTracker(reporter).report(result)
        return result
    finally:
        controller.teardown()


def _harvest(
    page: BrowserPage,
    *,
    watermark: date,
    download_dir: Path,
    formats: DocumentFormats,
    options: HarvestOptions,
    selectors: PortalSelectors,
    reporter: Reporter,
    fs: Filesystem,
    clock: Callable[[], float],
) -> RunResult:
    discovery = RowDiscovery(
        page,
        base_url=options.base_url,
        routes=options.routes,
        selectors=selectors,
        wait_timeout_ms=options.wait_timeout_ms,
    )
    loop = DownloadLoop(
        page,
        discovery=discovery,
        fs=fs,
        reporter=reporter,
        formats=formats,
        selectors=selectors,
        download_timeout_s=options.download_timeout_s,
        poll_interval_s=options.poll_interval_s,
        debug_dir=options.debug_dir,
        clock=clock,
    )

    try:
        reporter.info("Downloading invoices")
        discovery.navigate_to_list_view()
        records = discovery.discover_candidates(watermark, formats.date_format, formats.locale)
        if not records:
            return RunResult()

        reporter.info(f"Found {len(records)} invoices")
        fs.ensure_dir(download_dir)
        reporter.print_path("Saving invoices to", download_dir)
        return loop.run(records, download_dir)
    except Exception as e:
        logger.debug("Harvest aborted", exc_info=True)
        reporter.error("Failed to download invoices")
        reporter.error(str(e))
        return RunResult(error=str(e))
