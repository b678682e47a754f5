"""
Vendor signals: mailbox search query and the plausibility check.

The search query is a deliberately loose OR of sender, subject and body
keywords, so it admits false positives (any email quoting "Paid Using").
The plausibility check then requires the From header, subject or body preview
to actually name the vendor before a message may count as a swipe.

Sender/keyword lists are configuration data (config/vendor_rules.yaml) and
have only been validated against Grubhub / Tapingo receipts.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import yaml

from swipeq.config import VENDOR_RULES_PATH
from swipeq.observability.logging import get_logger
from swipeq.swipes.types import FilterResult

logger = get_logger(__name__)

DEFAULT_VENDOR_RULES: dict[str, Any] = {
    "vendor": "grubhub",
    "senders": ["grubhub", "tapingo-grubhub", "no-reply@tapingo", "no-reply@grubhub"],
    "subjects": ["Order approved", "Order Receipt", "Order confirmed"],
    "body_keywords": ["Meals Used", "Paid Using"],
    "plausibility": {
        "sender_pattern": "grubhub|tapingo",
        "subject_pattern": "grubhub",
        "snippet_pattern": "grubhub",
    },
}


def _quote(term: str) -> str:
    """Gmail search quoting: bare single tokens, quoted phrases and addresses."""
    if re.fullmatch(r"[A-Za-z0-9_-]+", term):
        return term
    return f'"{term}"'


class VendorFilter:
    """
    Builds the Gmail search query and checks vendor plausibility.

    Rules are copied into the instance at construction; a filter can be
    shared across threads because nothing mutates after __init__.
    """

    def __init__(self, rules_path: Path | None = None, rules: dict[str, Any] | None = None):
        """
        Args:
            rules_path: Path to vendor_rules.yaml (defaults to SWIPEQ_VENDOR_RULES_PATH)
            rules: Already-loaded rules dict; takes precedence over ``rules_path``
        """
        if rules is None:
            rules = self._load_vendor_rules(rules_path or VENDOR_RULES_PATH)

        self.vendor: str = rules.get("vendor", DEFAULT_VENDOR_RULES["vendor"])
        self.senders: list[str] = list(rules.get("senders") or DEFAULT_VENDOR_RULES["senders"])
        self.subjects: list[str] = list(rules.get("subjects") or DEFAULT_VENDOR_RULES["subjects"])
        self.body_keywords: list[str] = list(
            rules.get("body_keywords") or DEFAULT_VENDOR_RULES["body_keywords"]
        )

        patterns = {**DEFAULT_VENDOR_RULES["plausibility"], **(rules.get("plausibility") or {})}
        self._sender_re = re.compile(patterns["sender_pattern"], re.IGNORECASE)
        self._subject_re = re.compile(patterns["subject_pattern"], re.IGNORECASE)
        self._snippet_re = re.compile(patterns["snippet_pattern"], re.IGNORECASE)

        logger.info(
            "VendorFilter initialized: vendor=%s, %d senders, %d subjects, %d body keywords",
            self.vendor,
            len(self.senders),
            len(self.subjects),
            len(self.body_keywords),
        )

    def _load_vendor_rules(self, path: Path) -> dict[str, Any]:
        """Load vendor rules from YAML, falling back to built-in defaults."""
        if not path.exists():
            logger.warning("Vendor rules not found at %s, using built-in defaults", path)
            return DEFAULT_VENDOR_RULES

        with open(path) as f:
            return yaml.safe_load(f) or DEFAULT_VENDOR_RULES

    def build_query(self, days: int) -> str:
        """
        Gmail search string for vendor order emails newer than ``days`` days.

        Example:
            (from:(grubhub OR "no-reply@grubhub") OR subject:("Order approved")
             OR "Meals Used") newer_than:7d
        """
        senders = " OR ".join(_quote(s) for s in self.senders)
        subjects = " OR ".join(f'"{s}"' for s in self.subjects)
        keywords = " OR ".join(f'"{k}"' for k in self.body_keywords)

        clauses = [f"from:({senders})", f"subject:({subjects})"]
        if keywords:
            clauses.append(keywords)
        return f"({' OR '.join(clauses)}) newer_than:{days}d"

    def is_plausible(self, from_address: str, subject: str, snippet: str = "") -> FilterResult:
        """
        Check that a message really comes from the vendor.

        Args:
            from_address: Raw From header (display name and address both count)
            subject: Subject header
            snippet: Short body preview (the provider's snippet)

        Returns:
            FilterResult with is_candidate=True on the first matching signal.
        """
        if self._sender_re.search(from_address or ""):
            return FilterResult(is_candidate=True, reason="vendor_sender", match_type="sender")
        if self._subject_re.search(subject or ""):
            return FilterResult(is_candidate=True, reason="vendor_subject", match_type="subject")
        if self._snippet_re.search(snippet or ""):
            return FilterResult(is_candidate=True, reason="vendor_snippet", match_type="snippet")
        return FilterResult(is_candidate=False, reason="not_vendor", match_type="none")
