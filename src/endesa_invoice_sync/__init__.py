from .errors import (
    AuthenticationError,
    DateParseError,
    DownloadError,
    DownloadTimeoutError,
    HarvestError,
    InitializationError,
    NavigationError,
    OpenError,
)
from .harvester import HarvestOptions, run_harvest
from .models import CandidateRecord, DocumentFormats, PortalCredentials, RunOutcome, RunResult

__all__ = [
    "run_harvest",
    "HarvestOptions",
    "PortalCredentials",
    "DocumentFormats",
    "CandidateRecord",
    "RunResult",
    "RunOutcome",
    "HarvestError",
    "InitializationError",
    "AuthenticationError",
    "NavigationError",
    "DateParseError",
    "OpenError",
    "DownloadError",
    "DownloadTimeoutError",
]
