"""
Scan Orchestrator - mailbox search -> per-message parse -> weekly aggregate.

Pipeline for one scan:
1. QuotaWindow for "now" and the Gmail search query (VendorFilter)
2. MailSource.search, capped at max_results (failure here is fatal)
3. Per message, on a bounded thread pool: fetch -> receipt time -> days
   re-check -> flatten -> MessageExtractor -> vendor plausibility
4. Fold the per-message outcomes in search order: dedup by order id (or
   message id), count discards
5. Aggregate week vs. recent totals into a ScanResult

Only ConfigurationError escapes. Anything that goes wrong with a single
message drops that message and nothing else.
"""

from __future__ import annotations

import concurrent.futures
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from swipeq.config import DEBUG_PREVIEW_CHARS, RESET_WEEKDAY, SCAN_MAX_WORKERS
from swipeq.gmail.mime import message_body
from swipeq.gmail.source import MailSource
from swipeq.observability.logging import get_logger
from swipeq.observability.telemetry import counter, log_event, time_block
from swipeq.swipes.errors import ConfigurationError, MalformedMessageError, TransientFetchError
from swipeq.swipes.extractor import MessageExtractor
from swipeq.swipes.filters import VendorFilter
from swipeq.swipes.time_window import QuotaWindow, localize, reference_now
from swipeq.swipes.types import FetchedMessage, ParsedSwipe, ScanOptions, ScanResult, SwipeEvent
from swipeq.utils.redaction import redact_sender, redact_subject

logger = get_logger(__name__)

# Characters of flattened body used as the plausibility preview when the
# source didn't supply a snippet
_PREVIEW_CHARS = 200


@dataclass(frozen=True)
class MessageOutcome:
    """What one message contributed: an event, or the reason it didn't."""

    message_id: str | None
    event: SwipeEvent | None = None
    reason: str | None = None

    @classmethod
    def rejected(cls, message_id: str | None, reason: str) -> MessageOutcome:
        return cls(message_id=message_id, reason=reason)


def fold_outcomes(outcomes: Iterable[MessageOutcome]) -> tuple[list[SwipeEvent], int]:
    """
    Dedup and collect events; first occurrence of a dedup key wins.

    The seen-set belongs to this call only, so concurrent scans never share it.

    Returns:
        (events in input order, number of outcomes that contributed nothing)
    """
    seen: set[str] = set()
    events: list[SwipeEvent] = []
    discarded = 0

    for outcome in outcomes:
        event = outcome.event
        if event is None:
            discarded += 1
            counter(f"swipes.scan.discarded.{outcome.reason or 'unknown'}")
            continue
        if event.dedup_key in seen:
            discarded += 1
            counter("swipes.scan.discarded.duplicate")
            logger.debug("Duplicate swipe dropped: message=%s key=%s", event.message_id, event.dedup_key)
            continue
        seen.add(event.dedup_key)
        events.append(event)

    return events, discarded


def aggregate(
    events: list[SwipeEvent], week_start: datetime, ignore_week: bool, discarded: int = 0
) -> ScanResult:
    """Build the ScanResult from the deduplicated event set."""
    ordered = sorted(events, key=lambda e: (e.occurred_at, e.message_id), reverse=True)
    in_week = [e for e in ordered if e.in_week]

    used_recent = sum(e.meals for e in ordered)
    used_in_week = sum(e.meals for e in in_week)

    return ScanResult(
        week_start=week_start,
        used=used_recent if ignore_week else used_in_week,
        used_recent=used_recent,
        events=ordered if ignore_week else in_week,
        total_found_recent=len(ordered),
        discarded=discarded,
    )


class ScanOrchestrator:
    """
    Drives a MailSource through extraction, dedup and weekly aggregation.

    One orchestrator may serve many scans (including concurrent ones); all
    per-scan state lives inside scan().
    """

    def __init__(
        self,
        source: MailSource,
        extractor: MessageExtractor | None = None,
        vendor_filter: VendorFilter | None = None,
        clock: Callable[[], datetime] | None = None,
        reset_weekday: int = RESET_WEEKDAY,
        max_workers: int = SCAN_MAX_WORKERS,
    ):
        """
        Args:
            source: Mailbox to scan
            extractor: Body parser (stateless, shared by workers)
            vendor_filter: Query builder and plausibility check
            clock: Returns "now"; naive values are reference-zone wall time
            reset_weekday: Quota reset day, 0=Monday .. 6=Sunday
            max_workers: Upper bound on concurrent message fetches
        """
        self.source = source
        self.extractor = extractor or MessageExtractor()
        self.vendor_filter = vendor_filter or VendorFilter()
        self.clock = clock or reference_now
        self.reset_weekday = reset_weekday
        self.max_workers = max(1, max_workers)

    def scan(self, options: ScanOptions | None = None) -> ScanResult:
        """
        Run one scan.

        Args:
            options: days / max_results / ignore_week / debug / timeout

        Returns:
            ScanResult. With a timeout, messages not fetched in time are
            abandoned and the result covers only what finished.

        Raises:
            ConfigurationError: Mailbox unreachable or credentials unusable.
        """
        options = options or ScanOptions()
        wall = self.clock()
        window = QuotaWindow.current(wall, self.reset_weekday)
        now = localize(wall)
        cutoff = now - timedelta(days=options.days)

        counter("swipes.scan.started")
        with time_block("swipes.scan.latency"):
            query = self.vendor_filter.build_query(options.days)
            if options.debug:
                logger.info("Scan query: %s (max_results=%d)", query, options.max_results)

            message_ids = self.source.search(query, options.max_results)
            logger.info("Search returned %d messages", len(message_ids))

            outcomes = self._collect(message_ids, cutoff, window, options)
            events, discarded = fold_outcomes(outcomes)
            result = aggregate(events, window.start, options.ignore_week, discarded)

        log_event(
            "swipes.scan.completed",
            listed=len(message_ids),
            found=result.total_found_recent,
            used=result.used,
            used_recent=result.used_recent,
            discarded=result.discarded,
            ignore_week=options.ignore_week,
        )
        return result

    def _collect(
        self,
        message_ids: list[str | None],
        cutoff: datetime,
        window: QuotaWindow,
        options: ScanOptions,
    ) -> list[MessageOutcome]:
        """Inspect messages concurrently; return outcomes in search order."""
        slots: list[MessageOutcome | tuple[str, concurrent.futures.Future[MessageOutcome]]] = []

        executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="swipe-scan"
        )
        try:
            for raw_id in message_ids:
                if not raw_id:
                    logger.warning("Skipping search result without a message id")
                    slots.append(MessageOutcome.rejected(None, "missing_id"))
                    continue
                message_id = str(raw_id)
                future = executor.submit(self._inspect, message_id, cutoff, window, options.debug)
                slots.append((message_id, future))

            futures = [slot[1] for slot in slots if isinstance(slot, tuple)]
            _, not_done = concurrent.futures.wait(futures, timeout=options.timeout)
            if not_done:
                logger.warning(
                    "Scan timed out after %.1fs; abandoning %d of %d messages",
                    options.timeout,
                    len(not_done),
                    len(futures),
                )
                counter("swipes.scan.timeouts")
                for future in not_done:
                    future.cancel()

            outcomes: list[MessageOutcome] = []
            for slot in slots:
                if isinstance(slot, MessageOutcome):
                    outcomes.append(slot)
                    continue
                message_id, future = slot
                if future in not_done:
                    outcomes.append(MessageOutcome.rejected(message_id, "timeout"))
                else:
                    # ConfigurationError from a worker surfaces here
                    outcomes.append(future.result())
            return outcomes
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _inspect(
        self, message_id: str, cutoff: datetime, window: QuotaWindow, debug: bool
    ) -> MessageOutcome:
        """Fetch and evaluate one message. Never raises except ConfigurationError."""
        try:
            message = self.source.fetch(message_id)
        except ConfigurationError:
            raise
        except TransientFetchError as exc:
            logger.warning("Fetch failed for message %s: %s", message_id, exc.reason)
            return MessageOutcome.rejected(message_id, "fetch_error")
        except Exception as exc:
            logger.warning("Unexpected fetch error for message %s: %s", message_id, exc)
            return MessageOutcome.rejected(message_id, "fetch_error")

        received_at = message.received_at
        if received_at is None or received_at.tzinfo is None:
            logger.warning("Message %s has no usable receipt time", message_id)
            return MessageOutcome.rejected(message_id, "no_timestamp")

        # The search's newer_than is day-granular; enforce the exact bound
        if received_at < cutoff:
            return MessageOutcome.rejected(message_id, "out_of_range")

        subject = message.header("Subject")
        from_address = message.header("From")

        # One unreadable message must not cost the rest of the scan
        try:
            body = message_body(message)
            parsed = self.extractor.extract(body)
            preview = message.snippet or parsed.raw_snippet[:_PREVIEW_CHARS]
            plausibility = self.vendor_filter.is_plausible(from_address, subject, preview)
        except MalformedMessageError as exc:
            logger.warning("Undecodable body for message %s: %s", message_id, exc.reason)
            return MessageOutcome.rejected(message_id, "malformed")
        except Exception as exc:
            logger.warning("Unreadable message %s: %s: %s", message_id, type(exc).__name__, exc)
            return MessageOutcome.rejected(message_id, "malformed")

        meals = parsed.meals or 0
        if meals <= 0 or not plausibility.is_candidate:
            reason = "not_swipe" if meals <= 0 else plausibility.reason
            if debug:
                self._log_debug_record(message, parsed, received_at, reason)
            return MessageOutcome.rejected(message_id, reason)

        event = SwipeEvent(
            message_id=message_id,
            order_id=parsed.order_id,
            occurred_at=received_at,
            meals=meals,
            store=parsed.store,
            items=parsed.items,
            raw_snippet=parsed.raw_snippet,
            subject=subject,
            from_address=from_address,
            in_week=window.contains(received_at),
        )
        logger.info(
            "Swipe found: message=%s meals=%d rule=%s in_week=%s sender=%s subject=%s",
            message_id,
            meals,
            parsed.meals_rule,
            event.in_week,
            redact_sender(from_address),
            redact_subject(subject),
        )
        return MessageOutcome(message_id=message_id, event=event)

    def _log_debug_record(
        self, message: FetchedMessage, parsed: ParsedSwipe, received_at: datetime, reason: str
    ) -> None:
        logger.info(
            "Inspected message (no swipe): id=%s reason=%s from=%s subject=%s received=%s "
            "meals=%s rule=%s order_id=%s snippet=%s",
            message.message_id,
            reason,
            message.header("From"),
            message.header("Subject"),
            received_at.isoformat(),
            parsed.meals,
            parsed.meals_rule,
            parsed.order_id,
            parsed.raw_snippet[:DEBUG_PREVIEW_CHARS],
        )
