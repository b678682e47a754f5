"""Mailbox fakes and Gmail payload builders shared by the tests."""

from __future__ import annotations

import base64
import threading
from datetime import UTC, datetime
from typing import Any


from swipeq.swipes.types import FetchedMessage

# Saturday; the quota week containing it starts Thursday 2025-03-13 00:00 UTC
FIXED_NOW = datetime(2025, 3, 15, 12, 0, tzinfo=UTC)
WEEK_START = datetime(2025, 3, 13, 0, 0, tzinfo=UTC)

VENDOR_FROM = "Grubhub <no-reply@grubhub.com>"


def b64url(text: str) -> str:
    """Encode like Gmail does: URL-safe base64 without padding."""
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def text_part(text: str, mime_type: str = "text/plain") -> dict[str, Any]:
    return {"mimeType": mime_type, "body": {"size": len(text), "data": b64url(text)}}


def gmail_resource(
    message_id: str,
    body: str,
    from_address: str = VENDOR_FROM,
    subject: str = "Order approved",
    received_at: datetime | None = FIXED_NOW,
    snippet: str = "",
    html: str | None = None,
) -> dict[str, Any]:
    """A users.messages.get(format="full") resource."""
    parts = [text_part(body)]
    if html is not None:
        parts.append(text_part(html, "text/html"))
    resource: dict[str, Any] = {
        "id": message_id,
        "threadId": message_id,
        "snippet": snippet,
        "payload": {
            "mimeType": "multipart/alternative",
            "headers": [
                {"name": "From", "value": from_address},
                {"name": "Subject", "value": subject},
            ],
            "body": {"size": 0},
            "parts": parts,
        },
    }
    if received_at is not None:
        resource["internalDate"] = str(int(received_at.timestamp() * 1000))
    return resource


def make_message(
    message_id: str,
    body: str,
    from_address: str = VENDOR_FROM,
    subject: str = "Order approved",
    received_at: datetime | None = FIXED_NOW,
    snippet: str = "",
) -> FetchedMessage:
    return FetchedMessage(
        message_id=message_id,
        headers={"From": from_address, "Subject": subject},
        received_at=received_at,
        payload={"mimeType": "text/plain", "body": {"data": b64url(body)}},
        snippet=snippet,
    )


class FakeMailSource:
    """In-memory MailSource; records queries and fetches."""

    def __init__(
        self,
        messages: list[FetchedMessage] | None = None,
        ids: list[str | None] | None = None,
        failures: dict[str, Exception] | None = None,
        search_error: Exception | None = None,
    ):
        self.messages = {m.message_id: m for m in messages or []}
        self.ids = ids if ids is not None else list(self.messages)
        self.failures = failures or {}
        self.search_error = search_error
        self.queries: list[tuple[str, int]] = []
        self.fetched: list[str] = []
        self._lock = threading.Lock()

    def search(self, query: str, limit: int) -> list[str | None]:
        self.queries.append((query, limit))
        if self.search_error is not None:
            raise self.search_error
        return list(self.ids)[:limit]

    def fetch(self, message_id: str) -> FetchedMessage:
        with self._lock:
            self.fetched.append(message_id)
        if message_id in self.failures:
            raise self.failures[message_id]
        return self.messages[message_id]

