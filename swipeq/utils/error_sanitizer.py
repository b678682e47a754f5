"""
Error message sanitization for HTTP responses.

Scan failures usually come from the Gmail client and can carry token file
paths, client ids or raw API payloads; none of that goes back to callers.
"""

from __future__ import annotations

import re

from swipeq.observability.logging import get_logger

logger = get_logger(__name__)

# Patterns that might leak sensitive information
SENSITIVE_PATTERNS = [
    # File paths
    r"/[^\s]+\.(py|json)",
    r"[A-Za-z]:\\[^\s]+",
    # Stack trace indicators
    r"Traceback \(most recent call last\)",
    r"File \".*\"",
    # Google API / OAuth details
    r"https?://\S*googleapis\.com\S*",
    r"client_(id|secret)",
    r"refresh_token",
    r"Bearer [A-Za-z0-9._-]+",
    r"[A-Za-z0-9_-]{32,}",
    # Internal module names
    r"swipeq\.[a-z_.]+",
]

GENERIC_MESSAGES = {
    400: "Invalid request. Please check your input and try again.",
    422: "Invalid data format.",
    500: "An internal error occurred. Please try again later.",
    503: "Mailbox is not available. Check the Gmail connection and try again.",
}


def sanitize_error_message(message: str, status_code: int = 500) -> str:
    """
    Return ``message`` if it is safe to show a client, else a generic message.

    Args:
        message: The original error message
        status_code: HTTP status code (selects the generic fallback)
    """
    fallback = GENERIC_MESSAGES.get(status_code, "An error occurred.")
    if not message:
        return fallback

    for pattern in SENSITIVE_PATTERNS:
        if re.search(pattern, message, re.IGNORECASE):
            logger.warning("Sanitized sensitive error pattern: %s", pattern)
            return fallback

    if len(message) > 200 or any(c in message for c in "{}[]\n"):
        return fallback

    return message


def get_safe_error_detail(error: Exception, status_code: int = 500) -> str:
    """Log the full error and return a client-safe detail string."""
    logger.error("Error (status=%d): %s - %s", status_code, type(error).__name__, str(error))
    return sanitize_error_message(str(error), status_code)
