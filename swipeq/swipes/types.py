"""
Module: types
Purpose: Shared domain types for the swipe scan pipeline.
Dependencies: pydantic

Leaf module: extractor, filters, scanner, gmail source and routes all import
from here, so it imports nothing else from swipeq.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

SNIPPET_MAX_CHARS = 1200


# ---------------------------------------------------------------------------
# Wire models (serialized with the camelCase names the UI expects)
# ---------------------------------------------------------------------------


class SwipeEvent(BaseModel):
    """One confirmed use of meal credit, derived from exactly one message."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    message_id: str = Field(alias="messageId", min_length=1)
    order_id: str | None = Field(default=None, alias="orderId")
    occurred_at: datetime = Field(alias="occurredAt")
    meals: int = Field(ge=1)
    store: str | None = None
    items: list[str] = Field(default_factory=list)
    raw_snippet: str = Field(default="", alias="rawSnippet", max_length=SNIPPET_MAX_CHARS)
    subject: str = ""
    from_address: str = Field(default="", alias="from")
    in_week: bool = Field(default=False, alias="inWeek")

    @field_validator("occurred_at")
    @classmethod
    def _require_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError("occurred_at must be timezone-aware")
        return value

    @property
    def dedup_key(self) -> str:
        """Order id when the vendor gave one, else the message id."""
        return self.order_id or self.message_id


class ScanResult(BaseModel):
    """Aggregate answer for one scan invocation."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    week_start: datetime = Field(alias="weekStart")
    used: int = Field(ge=0)
    used_recent: int = Field(alias="usedRecent", ge=0)
    events: list[SwipeEvent] = Field(default_factory=list)
    total_found_recent: int = Field(alias="totalFoundRecent", ge=0)
    # Messages that contributed nothing (diagnostic, not part of the wire shape)
    discarded: int = Field(default=0, ge=0)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready dict with ISO-8601 instants and camelCase keys."""
        return self.model_dump(mode="json", by_alias=True, exclude={"discarded"})


# ---------------------------------------------------------------------------
# Pipeline values
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ParsedSwipe:
    """What the extractor could read out of one message body."""

    meals: int | None
    order_id: str | None
    store: str | None
    items: list[str]
    raw_snippet: str
    meals_rule: str | None = None  # name of the cascade rule that produced meals


@dataclass(frozen=True)
class FetchedMessage:
    """Full content of one message as returned by a MailSource."""

    message_id: str
    headers: dict[str, str]
    received_at: datetime | None
    payload: dict[str, Any] = field(default_factory=dict)
    snippet: str = ""
    raw: str | None = None  # base64url RFC 822 source, for sources without a parsed payload

    def header(self, name: str) -> str:
        """Case-insensitive header lookup, empty string when absent."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return ""


@dataclass(frozen=True)
class ScanOptions:
    """Caller-supplied knobs for one scan."""

    days: int = 7
    max_results: int = 250
    ignore_week: bool = False
    debug: bool = False
    timeout: float | None = None

    def __post_init__(self) -> None:
        if self.days < 1:
            raise ValueError("days must be >= 1")
        if self.max_results < 1:
            raise ValueError("max_results must be >= 1")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be positive")


@dataclass
class FilterResult:
    """Result of the vendor-plausibility check."""

    is_candidate: bool
    reason: str
    match_type: str  # "sender" | "subject" | "snippet" | "none"
