"""
Redaction helpers for log lines.

Order emails carry student names, addresses and order numbers. INFO logs only
ever see a truncated subject and a sender reduced to its domain; a short hash
keeps lines correlatable across a scan.
"""

from __future__ import annotations

from email.utils import parseaddr
from hashlib import sha256


def _short_hash(value: str, length: int = 6) -> str:
    return sha256(value.encode("utf-8")).hexdigest()[:length]


def redact_sender(from_header: str | None) -> str:
    """
    Keep only the sender's domain.

    "Jane Doe <jane@grubhub.com>" -> "h:1a2b3c@grubhub.com"
    """
    if not from_header:
        return "(no sender)"
    _, address = parseaddr(from_header)
    local, _, domain = address.rpartition("@")
    if not local or not domain:
        return f"h:{_short_hash(from_header)}"
    return f"h:{_short_hash(local)}@{domain.lower()}"


def redact_subject(subject: str | None, max_length: int = 30) -> str:
    """First ``max_length`` characters of the subject plus a correlation hash."""
    if not subject:
        return "(no subject)"
    visible = subject if len(subject) <= max_length else subject[:max_length] + "..."
    return f"{visible} (h:{_short_hash(subject)})"
