"""Swipe service layer - facade between API routes and the scan orchestrator.

Two operations, one orchestrator:
- weekly_scan: usage inside the current quota week (ignore_week=False)
- recent_scan: every swipe in the last N days (ignore_week=True), for history
"""

from __future__ import annotations

from collections.abc import Callable

from swipeq.config import (
    HISTORY_DEFAULT_DAYS,
    HISTORY_MAX_RESULTS,
    SCAN_DEFAULT_DAYS,
    SCAN_MAX_RESULTS,
    SCAN_TIMEOUT_SECONDS,
)
from swipeq.gmail.source import GmailMailSource, MailSource
from swipeq.observability.logging import get_logger
from swipeq.swipes.scanner import ScanOrchestrator
from swipeq.swipes.types import ScanOptions, ScanResult

logger = get_logger(__name__)


class SwipeService:
    """Builds scan options for each use case and runs them.

    The mail source is resolved lazily through ``source_factory`` so that a
    missing or expired Gmail token surfaces as a ConfigurationError on the
    request that needs it, not at import time.
    """

    def __init__(
        self,
        source_factory: Callable[[], MailSource] | None = None,
        orchestrator_factory: Callable[[MailSource], ScanOrchestrator] = ScanOrchestrator,
        timeout: float | None = SCAN_TIMEOUT_SECONDS,
    ):
        self._source_factory = source_factory or GmailMailSource.from_token_file
        self._orchestrator_factory = orchestrator_factory
        self.timeout = timeout

    def run(self, options: ScanOptions) -> ScanResult:
        """Run one scan. Raises ConfigurationError if the mailbox is unusable."""
        orchestrator = self._orchestrator_factory(self._source_factory())
        return orchestrator.scan(options)

    def weekly_scan(
        self,
        days: int = SCAN_DEFAULT_DAYS,
        ignore_week: bool = False,
        debug: bool = False,
        max_results: int = SCAN_MAX_RESULTS,
    ) -> ScanResult:
        """Usage against the current quota week (unless ``ignore_week``)."""
        return self.run(
            ScanOptions(
                days=days,
                max_results=max_results,
                ignore_week=ignore_week,
                debug=debug,
                timeout=self.timeout,
            )
        )

    def recent_scan(
        self,
        days: int = HISTORY_DEFAULT_DAYS,
        debug: bool = False,
        max_results: int = HISTORY_MAX_RESULTS,
    ) -> ScanResult:
        """All swipes found in the last ``days`` days, regardless of quota week."""
        return self.run(
            ScanOptions(
                days=days,
                max_results=max_results,
                ignore_week=True,
                debug=debug,
                timeout=self.timeout,
            )
        )
