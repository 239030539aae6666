from __future__ import annotations

from typing import Optional

from .models import RunOutcome, RunResult
from .reporter import Reporter


class CompletionTracker:
    """
    Classifies a finished run for user-facing reporting. Has no effect on control flow.
    """

    def __init__(self, reporter: Optional[Reporter] = None) -> None:
        self.reporter = reporter

    @staticmethod
    def classify(total: int, downloaded: int) -> RunOutcome:
        if total == 0:
            return RunOutcome.NOTHING_TO_DO
        if total == downloaded:
            return RunOutcome.FULL_SUCCESS
        if downloaded == 0:
            return RunOutcome.TOTAL_FAILURE
        return RunOutcome.PARTIAL_SUCCESS

    def report(self, result: RunResult) -> RunOutcome:
        outcome = self.classify(result.total_candidates, result.downloaded_count)
        if self.reporter is None:
            return outcome

        if outcome is RunOutcome.NOTHING_TO_DO:
            # An aborted discovery has already been reported as an error.
            if result.error is None:
                self.reporter.warn("No invoices found to download")
            return outcome

        msg = f"Downloaded {result.downloaded_count}/{result.total_candidates} invoices"
        if outcome is RunOutcome.FULL_SUCCESS:
            self.reporter.success(msg)
        elif outcome is RunOutcome.TOTAL_FAILURE:
            self.reporter.error(msg)
        else:
            self.reporter.info(msg)
        return outcome
