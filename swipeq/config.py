"""Centralized configuration for the SwipeQ backend.

Typed constants for the quota window, scan defaults, the Gmail source and
extraction limits. Environment variable overrides use safe defaults so the
app starts without extra env configuration.
"""

from __future__ import annotations

import os
from pathlib import Path

# --- App ---
APP_VERSION: str = "0.1.0"

# --- Quota Window ---
# Weekday the quota resets on (0=Monday .. 6=Sunday). Thursday by default.
RESET_WEEKDAY: int = int(os.getenv("SWIPEQ_RESET_WEEKDAY", "3"))
# IANA zone used for midnight alignment; empty means system local time.
TIMEZONE: str = os.getenv("SWIPEQ_TIMEZONE", "")
WEEKLY_QUOTA: int = int(os.getenv("SWIPEQ_WEEKLY_QUOTA", "7"))

# --- Scan ---
SCAN_DEFAULT_DAYS: int = int(os.getenv("SWIPEQ_SCAN_DEFAULT_DAYS", "7"))
SCAN_MAX_RESULTS: int = int(os.getenv("SWIPEQ_SCAN_MAX_RESULTS", "250"))
HISTORY_DEFAULT_DAYS: int = int(os.getenv("SWIPEQ_HISTORY_DEFAULT_DAYS", "30"))
HISTORY_MAX_RESULTS: int = int(os.getenv("SWIPEQ_HISTORY_MAX_RESULTS", "500"))
SCAN_MAX_WORKERS: int = int(os.getenv("SWIPEQ_SCAN_MAX_WORKERS", "4"))
_scan_timeout = os.getenv("SWIPEQ_SCAN_TIMEOUT", "")
SCAN_TIMEOUT_SECONDS: float | None = float(_scan_timeout) if _scan_timeout else None

# --- Gmail ---
GMAIL_TOKEN_PATH: Path = Path(os.getenv("SWIPEQ_GMAIL_TOKEN_PATH", "token.json"))
GMAIL_SCOPES: list[str] = ["https://www.googleapis.com/auth/gmail.readonly"]
FETCH_MAX_RETRIES: int = int(os.getenv("SWIPEQ_FETCH_MAX_RETRIES", "3"))

# --- Vendor Rules ---
VENDOR_RULES_PATH: Path = Path(
    os.getenv(
        "SWIPEQ_VENDOR_RULES_PATH",
        str(Path(__file__).parent.parent / "config" / "vendor_rules.yaml"),
    )
)

# --- Extraction ---
EXTRACT_SNIPPET_CHARS: int = 1200
EXTRACT_MAX_ITEMS: int = 8
EXTRACT_ITEM_MIN_LEN: int = 3
EXTRACT_ITEM_MAX_LEN: int = 80
DEBUG_PREVIEW_CHARS: int = 300

# --- API ---
API_PREVIEW_LIMIT: int = 12
