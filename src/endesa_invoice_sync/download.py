from __future__ import annotations

import logging
import time
from datetime import date
from pathlib import Path
from typing import Callable, Optional

from .errors import DownloadError, DownloadTimeoutError, OpenError
from .fs import Filesystem, PathLike
from .models import CandidateRecord, DocumentFormats, RunResult
from .portal.browser import BrowserPage
from .portal.discovery import RowDiscovery
from .portal.selectors import PortalSelectors
from .reporter import SEPARATOR, Reporter
from .util.dates import format_invoice_date


logger = logging.getLogger(__name__)

DEFAULT_DOWNLOAD_TIMEOUT_S = 60.0
DEFAULT_POLL_INTERVAL_S = 1.0


def wait_for_file(
    fs: Filesystem,
    path: PathLike,
    *,
    timeout_s: float = DEFAULT_DOWNLOAD_TIMEOUT_S,
    interval_s: float = DEFAULT_POLL_INTERVAL_S,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> None:
    """
    Poll until `path` exists, raising `DownloadTimeoutError` once `timeout_s` has passed.
    """
    deadline = clock() + timeout_s
    while True:
        if fs.exists(path):
            return
        remaining = deadline - clock()
        if remaining <= 0:
            raise DownloadTimeoutError(str(path), timeout_s)
        sleep(min(interval_s, remaining))


def invoice_filename(issue_date: date, formats: DocumentFormats) -> str:
    return f"{format_invoice_date(issue_date, formats.invoice_name_format, formats.locale)}.{formats.extension}"


class DownloadLoop:
    """
    Downloads the selected invoices one by one, isolating failures per invoice.

    Opening an invoice navigates away from the list and row locators are positional, so the list
    view is reloaded before every invoice except the first.
    """

    def __init__(
        self,
        page: BrowserPage,
        *,
        discovery: RowDiscovery,
        fs: Filesystem,
        reporter: Reporter,
        formats: DocumentFormats,
        selectors: Optional[PortalSelectors] = None,
        download_timeout_s: float = DEFAULT_DOWNLOAD_TIMEOUT_S,
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
        debug_dir: str = "data/debug",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.page = page
        self.discovery = discovery
        self.fs = fs
        self.reporter = reporter
        self.formats = formats
        self.selectors = selectors or PortalSelectors()
        self.download_timeout_s = download_timeout_s
        self.poll_interval_s = poll_interval_s
        self.debug_dir = debug_dir
        self._clock = clock

    def run(self, records: list[CandidateRecord], target_directory: PathLike) -> RunResult:
        if not records:
            return RunResult()

        tick = self.reporter.progress(len(records))
        downloaded: list[date] = []
        failed: list[date] = []

        self.reporter.log(SEPARATOR)
        for i, record in enumerate(records):
            try:
                # For the first invoice the list is still open from discovery.
                if i > 0:
                    self.discovery.navigate_to_list_view()
                self.reporter.info(f"Downloading invoice for {record.raw_label}")
                self.open_record(record)
                self.download_document(record, target_directory)
                downloaded.append(record.issue_date)
            except Exception as e:
                failed.append(record.issue_date)
                logger.debug("Invoice %s failed", record.raw_label, exc_info=True)
                self.reporter.error(f"Failed to download invoice for {record.raw_label}: {e}")
                self.page.save_debug(
                    debug_dir=self.debug_dir,
                    name_prefix=f"invoice_{record.issue_date.isoformat()}_failure",
                )
            tick()
            self.reporter.log(SEPARATOR)

        return RunResult(
            total_candidates=len(records),
            downloaded_count=len(downloaded),
            downloaded_dates=tuple(downloaded),
            failed_dates=tuple(failed),
        )

    def open_record(self, record: CandidateRecord) -> None:
        try:
            self.page.click(self.selectors.row_action(record.locator))
            self.page.wait_for_selector(self.selectors.invoice_content, visible=True)
        except Exception as e:
            raise OpenError(f"Could not open invoice {record.raw_label}: {e}") from e

    def download_document(self, record: CandidateRecord, target_directory: PathLike) -> Path:
        target = Path(target_directory)
        source = target / self.formats.source_filename
        # Every invoice arrives under the same name, so anything already there belongs to someone else.
        self._discard_source(source, strict=True)

        try:
            self.page.wait_for_selector(self.selectors.invoice_download_button)
            self.page.set_download_destination(target)
            self.page.click(self.selectors.invoice_download_button)
        except Exception as e:
            self.page.set_download_destination(None)
            raise DownloadError(f"Could not trigger download for invoice {record.raw_label}: {e}") from e

        try:
            wait_for_file(
                self.fs,
                source,
                timeout_s=self.download_timeout_s,
                interval_s=self.poll_interval_s,
                # Sleep through the browser so download events keep being processed.
                sleep=lambda seconds: self.page.pause(int(seconds * 1000)),
                clock=self._clock,
            )
        except DownloadTimeoutError:
            # A download that starts after the deadline must not be saved for the next invoice.
            self.page.set_download_destination(None)
            raise
        self.reporter.success("Invoice saved")

        final = target / invoice_filename(record.issue_date, self.formats)
        try:
            self.fs.rename(source, final)
        except OSError as e:
            self._discard_source(source, strict=False)
            raise DownloadError(f"Could not rename {source} to {final}: {e}") from e
        self.reporter.print_path("Invoice renamed to", final.name, "success")
        return final

    def _discard_source(self, source: Path, *, strict: bool) -> None:
        if not self.fs.exists(source):
            return
        logger.warning("Removing leftover download %s", source)
        try:
            self.fs.remove(source)
        except OSError as e:
            if strict:
                raise DownloadError(f"Leftover download {source} cannot be removed: {e}") from e
            logger.warning("Failed to remove %s; the next invoice will refuse to start.", source, exc_info=True)
