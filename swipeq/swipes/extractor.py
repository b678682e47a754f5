"""
Message Extractor - turn one order email body into a swipe candidate.

Runs the named rule cascades from rules.py over the flattened, whitespace-
collapsed body:
- meals: labeled count -> "1M" shorthand -> "Paid Using" line -> "Meal Value"
- order id, store: first matching pattern wins
- items: "qty x name $price" scan, falling back to an "ITEMS:" block

Pure and deterministic: no I/O, no clock, same body in -> same result out.
"""

from __future__ import annotations

import re

from swipeq.config import (
    EXTRACT_ITEM_MAX_LEN,
    EXTRACT_ITEM_MIN_LEN,
    EXTRACT_MAX_ITEMS,
    EXTRACT_SNIPPET_CHARS,
)
from swipeq.swipes.rules import MEAL_RULES, ORDER_ID_RULES, STORE_RULES, first_match
from swipeq.swipes.types import ParsedSwipe

_WHITESPACE_RE = re.compile(r"\s+")

# "1 x Grilled Adobo Chicken Bowl $9.50", "2x Chips", "Burrito Bowl"
_ITEM_LINE_RE = re.compile(r"(?:\b\d+x?\s*)?([A-Z0-9][A-Za-z0-9'&\-\s]{3,60})\s*\$?\d{0,3}\.?\d{0,2}")
_NON_ITEM_RE = re.compile(
    r"subtotal|tax|tip|meal value|order approved|paid using|locker|pickup", re.IGNORECASE
)
_ITEMS_BLOCK_RE = re.compile(
    r"ITEMS\s*[:\-]\s*(.+?)\s*(?:Subtotal|Service fee|Total|PAYMENT)", re.IGNORECASE
)
_ITEMS_SPLIT_RE = re.compile(r"\+|\n|;|,")
_INNER_SPACE_RE = re.compile(r"\s{2,}")


def normalize_body(text: str | None) -> str:
    """Collapse all whitespace runs to single spaces and trim."""
    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", text).strip()


def _item_length_ok(candidate: str) -> bool:
    return EXTRACT_ITEM_MIN_LEN <= len(candidate) < EXTRACT_ITEM_MAX_LEN


def _scan_item_lines(body: str) -> list[str]:
    items: list[str] = []
    for match in _ITEM_LINE_RE.finditer(body):
        if len(items) >= EXTRACT_MAX_ITEMS:
            break
        candidate = match.group(1).strip()
        if _NON_ITEM_RE.search(candidate):
            continue
        if _item_length_ok(candidate):
            items.append(candidate)
    return items


def _scan_items_block(body: str) -> list[str]:
    block = _ITEMS_BLOCK_RE.search(body)
    if not block:
        return []
    items: list[str] = []
    for raw in _ITEMS_SPLIT_RE.split(block.group(1)):
        item = raw.strip()
        if len(item) < EXTRACT_ITEM_MIN_LEN:
            continue
        if len(items) >= EXTRACT_MAX_ITEMS:
            break
        items.append(_INNER_SPACE_RE.sub(" ", item))
    return items


def extract_items(body: str) -> list[str]:
    """Best-effort line items, at most EXTRACT_MAX_ITEMS."""
    return _scan_item_lines(body) or _scan_items_block(body)


class MessageExtractor:
    """
    Extract a swipe candidate from a flattened message body.

    Stateless; one instance can be shared across scan worker threads.
    """

    def extract(self, body: str) -> ParsedSwipe:
        """
        Parse meals, order id, store and items out of ``body``.

        Args:
            body: Decoded body text. Whitespace is collapsed here, so callers
                may pass either raw flattened text or already-normalized text.

        Returns:
            ParsedSwipe. ``meals`` is None when no rule matched, which means the
            message is not a swipe.
        """
        text = normalize_body(body)

        meals_rule, meals = first_match(MEAL_RULES, text)
        _, order_id = first_match(ORDER_ID_RULES, text)
        _, store = first_match(STORE_RULES, text)

        return ParsedSwipe(
            meals=meals,
            order_id=order_id,
            store=store,
            items=extract_items(text),
            raw_snippet=text[:EXTRACT_SNIPPET_CHARS],
            meals_rule=meals_rule,
        )


def extract_swipe(body: str) -> ParsedSwipe:
    """Module-level convenience wrapper."""
    return MessageExtractor().extract(body)
