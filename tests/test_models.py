from __future__ import annotations

from datetime import date

import pytest
from pydantic import ValidationError

from endesa_invoice_sync.models import DocumentFormats, PortalCredentials, RunResult


def test_run_result_counting_invariant() -> None:
    with pytest.raises(ValidationError):
        RunResult(total_candidates=2, downloaded_count=3)
    with pytest.raises(ValidationError):
        RunResult(total_candidates=0, downloaded_count=1)
    with pytest.raises(ValidationError):
        RunResult(total_candidates=-1, downloaded_count=0)

    r = RunResult(total_candidates=3, downloaded_count=1)
    assert r.failed_count == 2


def test_run_result_is_immutable() -> None:
    r = RunResult(total_candidates=1, downloaded_count=1)
    with pytest.raises(ValidationError):
        r.downloaded_count = 0  # type: ignore[misc]


def test_next_watermark_advances_to_newest_download() -> None:
    r = RunResult(
        total_candidates=2,
        downloaded_count=2,
        downloaded_dates=(date(2024, 3, 5), date(2024, 2, 5)),
    )
    assert r.next_watermark(date(2024, 1, 1)) == date(2024, 3, 5)


def test_next_watermark_stops_before_oldest_failure() -> None:
    r = RunResult(
        total_candidates=3,
        downloaded_count=2,
        downloaded_dates=(date(2024, 3, 5), date(2024, 1, 5)),
        failed_dates=(date(2024, 2, 5),),
    )
    assert r.next_watermark(date(2023, 12, 1)) == date(2024, 1, 5)


def test_next_watermark_never_moves_backward() -> None:
    r = RunResult(
        total_candidates=1,
        downloaded_count=0,
        failed_dates=(date(2024, 2, 5),),
    )
    assert r.next_watermark(date(2024, 1, 1)) == date(2024, 1, 1)
    assert RunResult().next_watermark(date(2024, 1, 1)) == date(2024, 1, 1)


def test_document_formats_normalizes_extension() -> None:
    f = DocumentFormats(extension=".PDF", locale=" ES ")
    assert f.extension == "PDF"
    assert f.locale == "es"
    assert f.source_filename == "factura.PDF"
    with pytest.raises(ValidationError):
        DocumentFormats(extension=" . ")


def test_credentials_hide_password_in_repr() -> None:
    creds = PortalCredentials(username="u", password="s3cret")
    assert "s3cret" not in repr(creds)
