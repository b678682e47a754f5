"""
Swipe API endpoints.

- GET /api/swipes  - this week's usage and remaining quota, with a preview
- GET /api/history - every swipe found in the last N days
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from swipeq.config import (
    API_PREVIEW_LIMIT,
    HISTORY_DEFAULT_DAYS,
    SCAN_DEFAULT_DAYS,
    WEEKLY_QUOTA,
)
from swipeq.observability.logging import get_logger
from swipeq.observability.telemetry import counter
from swipeq.swipes.errors import ConfigurationError
from swipeq.swipes.service import SwipeService
from swipeq.utils.error_sanitizer import get_safe_error_detail

router = APIRouter(prefix="/api", tags=["swipes"])
logger = get_logger(__name__)

_service: SwipeService | None = None


def get_swipe_service() -> SwipeService:
    """Process-wide SwipeService (overridden in tests)."""
    global _service
    if _service is None:
        _service = SwipeService()
    return _service


# ============================================================================
# Response Models
# ============================================================================


class SwipesMeta(BaseModel):
    usedRecent: int
    totalFoundRecent: int


class SwipesResponse(BaseModel):
    """Weekly usage for the dashboard."""

    weekStart: str
    used: int
    remaining: int
    preview: list[dict[str, Any]]
    meta: SwipesMeta


class HistoryResponse(BaseModel):
    """Recent swipe history."""

    weekStart: str
    usedRecent: int
    events: list[dict[str, Any]]


# ============================================================================
# Endpoints
# ============================================================================


@router.get("/swipes", response_model=SwipesResponse)
def get_swipes(
    days: int = Query(SCAN_DEFAULT_DAYS, ge=1, le=365),
    ignore_week: bool = Query(False, alias="ignoreWeek"),
    debug: bool = Query(False),
    service: SwipeService = Depends(get_swipe_service),
) -> SwipesResponse:
    """Meals used this quota week and how many are left."""
    counter("api.swipes.requests")
    try:
        result = service.weekly_scan(days=days, ignore_week=ignore_week, debug=debug)
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=get_safe_error_detail(e, 503)) from None
    except Exception as e:
        logger.error("Swipe scan failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to scan mailbox") from None

    data = result.to_dict()
    return SwipesResponse(
        weekStart=data["weekStart"],
        used=result.used,
        remaining=max(0, WEEKLY_QUOTA - result.used),
        preview=data["events"][:API_PREVIEW_LIMIT],
        meta=SwipesMeta(usedRecent=result.used_recent, totalFoundRecent=result.total_found_recent),
    )


@router.get("/history", response_model=HistoryResponse)
def get_history(
    days: int = Query(HISTORY_DEFAULT_DAYS, ge=1, le=365),
    debug: bool = Query(False),
    service: SwipeService = Depends(get_swipe_service),
) -> HistoryResponse:
    """All swipes in the last ``days`` days, newest first."""
    counter("api.history.requests")
    try:
        result = service.recent_scan(days=days, debug=debug)
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=get_safe_error_detail(e, 503)) from None
    except Exception as e:
        logger.error("History scan failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to scan mailbox") from None

    data = result.to_dict()
    return HistoryResponse(
        weekStart=data["weekStart"],
        usedRecent=result.used_recent,
        events=data["events"],
    )
