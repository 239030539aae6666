from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Literal, Optional, Protocol, Union

from tqdm import tqdm

from .logging_config import SUCCESS


Level = Literal["info", "warn", "error", "success", "log"]
Tick = Callable[[], None]

SEPARATOR = "-" * 40


class Reporter(Protocol):
    """
    Observational sink for user-facing progress. Nothing it returns feeds back into control flow.
    """

    def info(self, msg: str) -> None: ...

    def warn(self, msg: str) -> None: ...

    def error(self, msg: str) -> None: ...

    def success(self, msg: str) -> None: ...

    def log(self, msg: str) -> None: ...

    def progress(self, total: int) -> Tick: ...

    def print_path(self, label: str, path: Union[str, Path], level: Level = "info") -> None: ...


class LoggingReporter:
    """
    Reporter backed by stdlib logging, with a tqdm bar for per-invoice progress.
    """

    def __init__(self, logger: Optional[logging.Logger] = None, *, show_progress_bar: bool = True) -> None:
        self.logger = logger or logging.getLogger("endesa_invoice_sync")
        self.show_progress_bar = show_progress_bar

    def info(self, msg: str) -> None:
        self.logger.info(msg)

    def warn(self, msg: str) -> None:
        self.logger.warning(msg)

    def error(self, msg: str) -> None:
        self.logger.error(msg)

    def success(self, msg: str) -> None:
        self.logger.log(SUCCESS, msg)

    def log(self, msg: str) -> None:
        self.logger.debug(msg)

    def emit(self, level: Level, msg: str) -> None:
        {
            "info": self.info,
            "warn": self.warn,
            "error": self.error,
            "success": self.success,
            "log": self.log,
        }[level](msg)

    def print_path(self, label: str, path: Union[str, Path], level: Level = "info") -> None:
        self.emit(level, f"{label}: {path}")

    def progress(self, total: int) -> Tick:
        bar = tqdm(total=total, desc="Invoices", unit="invoice", disable=not self.show_progress_bar, leave=False)
        done = 0

        def tick() -> None:
            nonlocal done
            done += 1
            bar.update(1)
            self.logger.debug("Progress %d/%d", done, total)
            if done >= total:
                bar.close()

        return tick
