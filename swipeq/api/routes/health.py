"""Health check endpoint for the SwipeQ API."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter

from swipeq.config import APP_VERSION, GMAIL_TOKEN_PATH, RESET_WEEKDAY
from swipeq.observability.telemetry import latency_stats, snapshot
from swipeq.swipes.time_window import current_week_start

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Liveness plus token presence and scan counters. Never calls Gmail."""
    return {
        "status": "healthy",
        "service": "SwipeQ API",
        "version": APP_VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
        "gmail": {"token_present": GMAIL_TOKEN_PATH.exists()},
        "quota": {
            "reset_weekday": RESET_WEEKDAY,
            "week_start": current_week_start().isoformat(),
        },
        "scans": {
            "counters": snapshot("swipes.scan."),
            "latency": latency_stats("swipes.scan.latency"),
        },
    }
