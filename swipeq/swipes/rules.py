"""
Named extraction rules for vendor order emails.

Each rule is a pure function from normalized body text to an optional value.
Rule lists are evaluated in order and the first rule that yields a usable
value wins; later rules never override it. Patterns are tuned to Grubhub /
Tapingo campus receipts ("Meals Used: 1", "1M", "Paid Using: Meal Swipe").
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class ExtractionRule(Generic[T]):
    name: str
    apply: Callable[[str], T | None]


def first_match(rules: Sequence[ExtractionRule[T]], body: str) -> tuple[str | None, T | None]:
    """Run ``rules`` in order; return (rule name, value) for the first hit."""
    for rule in rules:
        value = rule.apply(body)
        if value is not None:
            return rule.name, value
    return None, None


def _positive(value: str | None) -> int | None:
    if value is None:
        return None
    number = int(value)
    return number if number > 0 else None


# ---------------------------------------------------------------------------
# Meal count
# ---------------------------------------------------------------------------

_LABELED_MEAL_PATTERNS = (
    re.compile(r"Meals\s*Used\s*[:\-\s]?\s*(\d+)", re.IGNORECASE),
    re.compile(r"Meal\s*Swipe\s*Used\s*[:\-\s]?\s*(\d+)", re.IGNORECASE),
    re.compile(r"\bMeals\s*[:\-\s]?\s*(\d+)", re.IGNORECASE),
)
_COMPACT_MEAL_RE = re.compile(r"\b(\d+)\s*M\b", re.IGNORECASE)
_PAID_USING_RE = re.compile(r"Paid\s+Using\s*:\s*([^<\n\r]+)", re.IGNORECASE)
_PAID_WITH_MEAL_RE = re.compile(r"\bmeal\b|\bmeal\s*swipe\b", re.IGNORECASE)
_PAID_MEAL_COUNT_RE = re.compile(r"(\d+)\s*(?:meal|meals|M)", re.IGNORECASE)
_MEAL_VALUE_RE = re.compile(r"Meal\s*Value", re.IGNORECASE)


def labeled_meal_count(body: str) -> int | None:
    """'Meals Used: 2', 'Meal Swipe Used 1', 'Meals - 1'."""
    for pattern in _LABELED_MEAL_PATTERNS:
        match = pattern.search(body)
        if match:
            return _positive(match.group(1))
    return None


def compact_meal_count(body: str) -> int | None:
    """'1M' / '2 m' shorthand."""
    match = _COMPACT_MEAL_RE.search(body)
    return _positive(match.group(1)) if match else None


def paid_using_meal_count(body: str) -> int | None:
    """'Paid Using: Meal Swipe' counts 1 unless a number sits next to 'meal'."""
    match = _PAID_USING_RE.search(body)
    if not match:
        return None
    paid_text = match.group(1)
    if not _PAID_WITH_MEAL_RE.search(paid_text):
        return None
    explicit = _PAID_MEAL_COUNT_RE.search(paid_text)
    if explicit:
        return _positive(explicit.group(1))
    return 1


def meal_value_presence(body: str) -> int | None:
    """A 'Meal Value' line only shows up on swipe orders."""
    return 1 if _MEAL_VALUE_RE.search(body) else None


MEAL_RULES: list[ExtractionRule[int]] = [
    ExtractionRule("labeled_count", labeled_meal_count),
    ExtractionRule("compact_suffix", compact_meal_count),
    ExtractionRule("paid_using", paid_using_meal_count),
    ExtractionRule("meal_value_presence", meal_value_presence),
]


# ---------------------------------------------------------------------------
# Order id
# ---------------------------------------------------------------------------


def _search_group(pattern: re.Pattern[str]) -> Callable[[str], str | None]:
    def rule(body: str) -> str | None:
        match = pattern.search(body)
        return match.group(1) if match else None

    return rule


ORDER_ID_RULES: list[ExtractionRule[str]] = [
    ExtractionRule(
        "order_number_label",
        _search_group(
            re.compile(r"Order\s*(?:#|number|No\.?)\s*[:#]?\s*([0-9A-Za-z\-]+)", re.IGNORECASE)
        ),
    ),
    ExtractionRule(
        "order_colon",
        _search_group(re.compile(r"Order\s*[:\-]\s*([0-9A-Za-z\-]+)", re.IGNORECASE)),
    ),
    ExtractionRule(
        "order_hash_digits",
        _search_group(re.compile(r"Order\s*#\s*(\d+)", re.IGNORECASE)),
    ),
]


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


def _trimmed_group(pattern: re.Pattern[str]) -> Callable[[str], str | None]:
    def rule(body: str) -> str | None:
        match = pattern.search(body)
        if not match:
            return None
        return match.group(1).strip() or None

    return rule


STORE_RULES: list[ExtractionRule[str]] = [
    ExtractionRule(
        "shop_label",
        _trimmed_group(re.compile(r"Shop\s*[:\-]\s*([A-Za-z0-9 &'\-]+)", re.IGNORECASE)),
    ),
    ExtractionRule(
        "pickup_label",
        _trimmed_group(
            re.compile(r"Pickup\s*(?:from)?\s*[:\-]?\s*([A-Za-z0-9 &'\-]+)", re.IGNORECASE)
        ),
    ),
    # Some receipts open with the restaurant name, e.g. "Qdoba Pickup ..."
    ExtractionRule("leading_heading", _trimmed_group(re.compile(r"^([A-Z][a-zA-Z '&-]{2,40})\b"))),
]
