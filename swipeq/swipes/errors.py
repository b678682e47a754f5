"""
Error taxonomy for the swipe scan.

Only ConfigurationError escapes a scan. The other two are per-message and are
caught by the scanner, which drops the message and keeps going.
"""

from __future__ import annotations


class SwipeScanError(Exception):
    """Base class for scan errors."""


class ConfigurationError(SwipeScanError):
    """Mailbox unreachable or credentials unusable. Fatal for the whole scan."""


class TransientFetchError(SwipeScanError):
    """A single message could not be retrieved."""

    def __init__(self, message_id: str, reason: str):
        super().__init__(f"failed to fetch message {message_id}: {reason}")
        self.message_id = message_id
        self.reason = reason


class MalformedMessageError(SwipeScanError):
    """A message was retrieved but its body could not be decoded or flattened."""

    def __init__(self, message_id: str | None, reason: str):
        super().__init__(f"malformed message {message_id or '(unknown)'}: {reason}")
        self.message_id = message_id
        self.reason = reason
