from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


@dataclass(frozen=True)
class PortalCredentials:
    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class CandidateRecord:
    """
    One invoice row newer than the watermark.

    `locator` is positional (`<rows>:nth-child(i)`), so it is only valid while the list view
    is in its original state. Re-open the list before every lookup.
    """

    issue_date: date
    locator: str
    raw_label: str


class RunOutcome(str, Enum):
    NOTHING_TO_DO = "nothing_to_do"
    FULL_SUCCESS = "full_success"
    PARTIAL_SUCCESS = "partial_success"
    TOTAL_FAILURE = "total_failure"


class RunResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_candidates: int = 0
    downloaded_count: int = 0
    downloaded_dates: tuple[date, ...] = ()
    failed_dates: tuple[date, ...] = ()
    # Message of an unexpected error that ended the discovery/download phase early.
    error: Optional[str] = None

    @model_validator(mode="after")
    def _validate_counts(self) -> "RunResult":
        if self.total_candidates < 0:
            raise ValueError("total_candidates must be >= 0")
        if not 0 <= self.downloaded_count <= self.total_candidates:
            raise ValueError(
                f"downloaded_count must be between 0 and total_candidates "
                f"(got {self.downloaded_count}/{self.total_candidates})"
            )
        return self

    @property
    def failed_count(self) -> int:
        return self.total_candidates - self.downloaded_count

    def next_watermark(self, current: date) -> date:
        """
        Watermark that is safe to persist after this run.

        Failed invoices must be picked up again next time, so the watermark only advances to the
        newest downloaded invoice that is older than every failed one. It never moves backward.
        """
        downloaded = list(self.downloaded_dates)
        if self.failed_dates:
            oldest_failure = min(self.failed_dates)
            downloaded = [d for d in downloaded if d < oldest_failure]
        if not downloaded:
            return current
        return max(current, max(downloaded))


class DocumentFormats(BaseModel):
    """
    How invoice dates are shown on the portal and how downloaded files are named.

    Formats use moment-style tokens (`DD/MM/YYYY`, `DD-MM-YY`, `D MMMM YYYY`).
    """

    date_format: str = "DD/MM/YYYY"
    locale: str = "es"
    invoice_name_format: str = "DD-MM-YY"
    source_name: str = "factura"
    extension: str = "pdf"

    @model_validator(mode="after")
    def _normalize(self) -> "DocumentFormats":
        self.extension = (self.extension or "").strip().lstrip(".")
        if not self.extension:
            raise ValueError("documents.extension must not be empty")
        self.locale = (self.locale or "en").strip().lower()
        return self

    @property
    def source_filename(self) -> str:
        return f"{self.source_name}.{self.extension}"


class PortalRoutes(BaseModel):
    login: str = "/login"
    invoices: str = "/facturas"


class Viewport(BaseModel):
    width: int = Field(default=1680, gt=0)
    height: int = Field(default=950, gt=0)
