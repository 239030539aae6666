from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional, Protocol, Union

from playwright.sync_api import Browser, BrowserContext, Download, Page, Playwright, sync_playwright

from ..models import Viewport


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 30_000


class BrowserPage(Protocol):
    """
    The browser primitives the harvester needs. Any automation backend that provides them works.
    """

    @property
    def url(self) -> str: ...

    def open(self, url: str) -> None: ...

    def wait_for_selector(self, selector: str, *, visible: bool = False, timeout_ms: Optional[int] = None) -> None: ...

    def click(self, selector: str) -> None: ...

    def type(self, selector: str, text: str) -> None: ...

    def query_all(self, selector: str) -> list[Any]: ...

    def extract_text(self, selector: str) -> str: ...

    def set_download_destination(self, path: Optional[Union[str, Path]]) -> None: ...

    def wait_for_settle(self, *, timeout_ms: Optional[int] = None) -> None: ...

    def pause(self, ms: int) -> None: ...

    def save_debug(self, *, debug_dir: str, name_prefix: str) -> None: ...

    def close(self) -> None: ...


class BrowserSession(Protocol):
    def new_page(self, viewport: Viewport) -> BrowserPage: ...

    def close(self) -> None: ...


class PlaywrightPage:
    """
    `BrowserPage` on top of a Playwright sync `Page`.

    Downloads are captured through the page's `download` event. `set_download_destination` arms the
    page for exactly one download, saved into that directory under the name the portal suggests;
    passing `None` disarms it. Downloads that arrive while disarmed are cancelled. Events are only dispatched while
    Playwright is running a call, so callers waiting for a file should sleep with `pause()`.
    """

    def __init__(self, page: Page, *, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> None:
        self._page = page
        self._timeout_ms = timeout_ms
        self._download_dir: Optional[Path] = None
        self._page.set_default_timeout(timeout_ms)
        self._page.on("download", self._on_download)

    @property
    def url(self) -> str:
        return self._page.url

    def open(self, url: str) -> None:
        response = self._page.goto(url, wait_until="domcontentloaded")
        if response is not None and response.status >= 400:
            raise RuntimeError(f"GET {url} returned HTTP {response.status}")

    def wait_for_selector(self, selector: str, *, visible: bool = False, timeout_ms: Optional[int] = None) -> None:
        self._page.wait_for_selector(
            selector,
            state="visible" if visible else "attached",
            timeout=timeout_ms or self._timeout_ms,
        )

    def click(self, selector: str) -> None:
        self._page.click(selector)

    def type(self, selector: str, text: str) -> None:
        self._page.locator(selector).first.fill(text)

    def query_all(self, selector: str) -> list[Any]:
        return list(self._page.query_selector_all(selector))

    def extract_text(self, selector: str) -> str:
        return self._page.text_content(selector) or ""

    def set_download_destination(self, path: Optional[Union[str, Path]]) -> None:
        if path is None:
            self._download_dir = None
            return
        target = Path(path).resolve()
        target.mkdir(parents=True, exist_ok=True)
        self._download_dir = target

    def wait_for_settle(self, *, timeout_ms: Optional[int] = None) -> None:
        self._page.wait_for_load_state("networkidle", timeout=timeout_ms or self._timeout_ms)

    def pause(self, ms: int) -> None:
        self._page.wait_for_timeout(ms)

    def save_debug(self, *, debug_dir: str, name_prefix: str) -> None:
        try:
            out_dir = Path(debug_dir)
            out_dir.mkdir(parents=True, exist_ok=True)
            self._page.screenshot(path=str(out_dir / f"{name_prefix}.png"), full_page=True)
            (out_dir / f"{name_prefix}.html").write_text(self._page.content(), encoding="utf-8")
        except Exception:
            logger.debug("Failed to save debug artifacts.", exc_info=True)

    def close(self) -> None:
        self._page.close()

    def _on_download(self, download: Download) -> None:
        if self._download_dir is None:
            logger.warning("Cancelling unexpected download %r.", download.suggested_filename)
            try:
                download.cancel()
            except Exception:
                logger.debug("Failed to cancel download.", exc_info=True)
            return
        final = self._download_dir / download.suggested_filename
        self._download_dir = None
        # Write to a temp name first so a poller never sees a half-written file.
        tmp = final.with_name(final.name + ".part")
        try:
            download.save_as(str(tmp))
            tmp.replace(final)
            logger.debug("Saved download to %s", final)
        except Exception:
            logger.warning("Failed to save download %r.", download.suggested_filename, exc_info=True)


class PlaywrightSession:
    """
    One Chromium instance with a single browser context.
    """

    def __init__(self, *, headless: bool = True, slow_mo_ms: int = 0, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> None:
        self.headless = headless
        self.slow_mo_ms = int(slow_mo_ms or 0)
        self.timeout_ms = timeout_ms
        self._pw: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None

    def new_page(self, viewport: Viewport) -> PlaywrightPage:
        if self._pw is None:
            self._pw = sync_playwright().start()
        if self._browser is None:
            self._browser = self._launch(viewport)
        if self._context is None:
            self._context = self._browser.new_context(
                viewport={"width": viewport.width, "height": viewport.height},
                accept_downloads=True,
                color_scheme="light",
            )
        return PlaywrightPage(self._context.new_page(), timeout_ms=self.timeout_ms)

    def _launch(self, viewport: Viewport) -> Browser:
        assert self._pw is not None
        launch_kwargs: dict = {
            "headless": self.headless,
            "slow_mo": self.slow_mo_ms,
            "ignore_default_args": ["--enable-automation"],
            "args": [f"--window-size={viewport.width},{viewport.height}"],
        }
        # Prefer Playwright's bundled Chromium, but fall back to a system-installed browser if the
        # Playwright browser cache is missing.
        try:
            return self._pw.chromium.launch(**launch_kwargs)
        except Exception as e:
            msg = str(e)
            if "Executable doesn't exist" not in msg:
                raise
            logger.warning("Playwright Chromium executable missing; falling back to system Chrome. (%s)", msg)
            return self._pw.chromium.launch(channel="chrome", **launch_kwargs)

    def close(self) -> None:
        # Close in reverse order of creation; each step is independent of the previous one succeeding.
        if self._context is not None:
            try:
                self._context.close()
            except Exception:
                logger.debug("Failed to close browser context.", exc_info=True)
            self._context = None
        if self._browser is not None:
            try:
                self._browser.close()
            except Exception:
                logger.debug("Failed to close browser.", exc_info=True)
            self._browser = None
        if self._pw is not None:
            try:
                self._pw.stop()
            except Exception:
                logger.debug("Failed to stop Playwright.", exc_info=True)
            self._pw = None
