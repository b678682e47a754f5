"""
Gmail message payload helpers.

Converts a ``users.messages.get(format="full")`` resource into a
FetchedMessage and flattens its MIME tree into one text body for the
extractor. Part data is base64url without padding; HTML parts are reduced to
visible text.
"""

from __future__ import annotations

import base64
import binascii
import email
from datetime import UTC, datetime
from email import policy
from typing import Any

from swipeq.swipes.errors import MalformedMessageError
from swipeq.swipes.types import FetchedMessage
from swipeq.utils.html import html_to_text, looks_like_html


def decode_base64url(data: str | None) -> str:
    """Decode Gmail's unpadded URL-safe base64 into text (UTF-8, lossy)."""
    if not data:
        return ""
    padded = data + "=" * (-len(data) % 4)
    raw = base64.urlsafe_b64decode(padded.encode("ascii"))
    return raw.decode("utf-8", errors="replace")


def _part_text(part: dict[str, Any]) -> str:
    body = part.get("body") or {}
    if not isinstance(body, dict):
        raise ValueError(f"expected body object, got {type(body).__name__}")
    data = body.get("data")
    if not data:
        return ""
    if not isinstance(data, str):
        raise ValueError(f"expected body data string, got {type(data).__name__}")
    text = decode_base64url(data)
    mime_type = part.get("mimeType") or ""
    if not isinstance(mime_type, str):
        raise ValueError(f"expected mimeType string, got {type(mime_type).__name__}")
    mime_type = mime_type.lower()
    if mime_type == "text/html" or looks_like_html(text):
        return html_to_text(text)
    return text


def _gather_parts(part: Any, chunks: list[str], depth: int = 0) -> None:
    # Children first, then the part's own data, same as Gmail renders nesting
    if not isinstance(part, dict):
        raise ValueError(f"expected part object, got {type(part).__name__}")
    if depth > 50:
        raise ValueError("MIME tree too deep")

    children = part.get("parts") or []
    if not isinstance(children, list):
        raise ValueError("parts is not a list")
    for child in children:
        _gather_parts(child, chunks, depth + 1)

    text = _part_text(part)
    if text:
        chunks.append(text)


def flatten_payload(payload: dict[str, Any] | None, message_id: str | None = None) -> str:
    """
    Concatenate every decoded text part of a Gmail payload.

    Raises:
        MalformedMessageError: If the tree is structurally broken or part
            data is not valid base64.
    """
    if not payload:
        return ""
    chunks: list[str] = []
    try:
        _gather_parts(payload, chunks)
    except (ValueError, TypeError, AttributeError, binascii.Error, UnicodeEncodeError) as exc:
        raise MalformedMessageError(message_id, str(exc)) from exc
    return "\n".join(chunks)


def flatten_raw(raw: str, message_id: str | None = None) -> str:
    """
    Flatten a ``format=raw`` message (base64url RFC 822 bytes).

    GmailMailSource always fetches ``format=full``, so this path serves
    MailSource implementations that only hold the RFC 822 source, such as
    an exported mailbox or a ``format=raw`` fetch.
    """
    try:
        padded = raw + "=" * (-len(raw) % 4)
        message = email.message_from_bytes(base64.urlsafe_b64decode(padded), policy=policy.default)
    except (ValueError, TypeError, binascii.Error) as exc:
        raise MalformedMessageError(message_id, str(exc)) from exc

    chunks: list[str] = []
    for part in message.walk():
        if part.is_multipart():
            continue
        content_type = part.get_content_type()
        if content_type not in ("text/plain", "text/html"):
            continue
        text = part.get_content()
        chunks.append(html_to_text(text) if content_type == "text/html" else text)
    return "\n".join(chunks)


def header_map(headers: list[dict[str, Any]] | None) -> dict[str, str]:
    """Gmail's [{name, value}] header list to a dict; first occurrence wins."""
    result: dict[str, str] = {}
    for header in headers or []:
        name = header.get("name")
        if name and name not in result:
            result[name] = header.get("value") or ""
    return result


def parse_internal_date(value: Any) -> datetime | None:
    """Gmail ``internalDate`` (epoch milliseconds, as a string) to aware UTC."""
    if value is None or value == "":
        return None
    try:
        millis = int(value)
    except (TypeError, ValueError):
        return None
    if millis <= 0:
        return None
    try:
        return datetime.fromtimestamp(millis / 1000, tz=UTC)
    except (OverflowError, OSError, ValueError):
        return None


def message_from_gmail(resource: dict[str, Any]) -> FetchedMessage:
    """Build a FetchedMessage from a Gmail ``users.messages`` resource."""
    payload = resource.get("payload") or {}
    return FetchedMessage(
        message_id=str(resource.get("id") or ""),
        headers=header_map(payload.get("headers")),
        received_at=parse_internal_date(resource.get("internalDate")),
        payload=payload,
        snippet=resource.get("snippet") or "",
        raw=resource.get("raw"),
    )


def message_body(message: FetchedMessage) -> str:
    """
    Flattened body text, falling back to the provider snippet when empty.

    A structured payload wins over raw source; raw is read only when a
    source supplied nothing else.
    """
    if message.payload:
        body = flatten_payload(message.payload, message.message_id)
    elif message.raw:
        body = flatten_raw(message.raw, message.message_id)
    else:
        body = ""
    return body if body.strip() else message.snippet
