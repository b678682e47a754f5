"""
SwipeQ swipes module - meal-swipe detection and weekly quota aggregation.

Leaf types and pure components are re-exported here. The orchestrator and
service live in swipeq.swipes.scanner / swipeq.swipes.service; they depend on
swipeq.gmail, which itself imports the types below.
"""

from swipeq.swipes.errors import (
    ConfigurationError,
    MalformedMessageError,
    SwipeScanError,
    TransientFetchError,
)
from swipeq.swipes.extractor import MessageExtractor, extract_swipe, normalize_body
from swipeq.swipes.filters import VendorFilter
from swipeq.swipes.time_window import QuotaWindow, current_week_start, window_end
from swipeq.swipes.types import (
    FetchedMessage,
    FilterResult,
    ParsedSwipe,
    ScanOptions,
    ScanResult,
    SwipeEvent,
)

__all__ = [
    # Models
    "FetchedMessage",
    "FilterResult",
    "ParsedSwipe",
    "ScanOptions",
    "ScanResult",
    "SwipeEvent",
    # Errors
    "ConfigurationError",
    "MalformedMessageError",
    "SwipeScanError",
    "TransientFetchError",
    # Time window
    "QuotaWindow",
    "current_week_start",
    "window_end",
    # Extraction
    "MessageExtractor",
    "extract_swipe",
    "normalize_body",
    # Filters
    "VendorFilter",
]
