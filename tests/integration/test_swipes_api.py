"""
API tests for /api/swipes, /api/history and /health

The real SwipeService runs against an in-memory mailbox via dependency
overrides; no Gmail credentials are involved.
"""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from swipeq.api.app import app
from swipeq.api.routes.swipes import get_swipe_service
from swipeq.swipes.errors import ConfigurationError
from swipeq.swipes.filters import DEFAULT_VENDOR_RULES, VendorFilter
from swipeq.swipes.scanner import ScanOrchestrator
from swipeq.swipes.service import SwipeService
from tests.fixtures.mailbox import FIXED_NOW, FakeMailSource, make_message

THIS_WEEK = FIXED_NOW - timedelta(days=1)


def _service_for(source: FakeMailSource) -> SwipeService:
    return SwipeService(
        source_factory=lambda: source,
        orchestrator_factory=lambda src: ScanOrchestrator(
            src,
            vendor_filter=VendorFilter(rules=DEFAULT_VENDOR_RULES),
            clock=lambda: FIXED_NOW,
            reset_weekday=3,
        ),
        timeout=None,
    )


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


def _use(source: FakeMailSource) -> FakeMailSource:
    app.dependency_overrides[get_swipe_service] = lambda: _service_for(source)
    return source


class TestSwipesEndpoint:
    def test_weekly_usage(self, client):
        _use(
            FakeMailSource(
                [
                    make_message("msg1", "Order #1 Meals Used: 1", received_at=THIS_WEEK),
                    make_message("msg2", "Order #2 Meals Used: 2", received_at=THIS_WEEK),
                    make_message("old", "Meals Used: 1", received_at=FIXED_NOW - timedelta(days=3)),
                ]
            )
        )

        response = client.get("/api/swipes")

        assert response.status_code == 200
        data = response.json()
        assert data["weekStart"] == "2025-03-13T00:00:00Z"
        assert data["used"] == 3
        assert data["remaining"] == 4
        assert {e["messageId"] for e in data["preview"]} == {"msg1", "msg2"}
        assert data["meta"] == {"usedRecent": 4, "totalFoundRecent": 3}

    def test_remaining_never_negative(self, client):
        _use(
            FakeMailSource(
                [make_message(f"m{i}", "Meals Used: 1", received_at=THIS_WEEK) for i in range(9)]
            )
        )
        data = client.get("/api/swipes").json()
        assert data["used"] == 9
        assert data["remaining"] == 0

    def test_preview_is_capped(self, client):
        _use(
            FakeMailSource(
                [
                    make_message(f"m{i:02d}", "Meals Used: 1", received_at=THIS_WEEK - timedelta(minutes=i))
                    for i in range(15)
                ]
            )
        )
        data = client.get("/api/swipes").json()
        assert data["used"] == 15
        assert len(data["preview"]) == 12
        assert data["preview"][0]["messageId"] == "m00"

    def test_query_parameters(self, client):
        source = _use(FakeMailSource([]))
        response = client.get("/api/swipes", params={"days": 14, "ignoreWeek": "true", "debug": "true"})
        assert response.status_code == 200
        assert source.queries[0][0].endswith("newer_than:14d")

    def test_invalid_days(self, client):
        _use(FakeMailSource([]))
        response = client.get("/api/swipes", params={"days": 0})
        assert response.status_code == 422
        assert response.json()["invalid_fields"] == ["days"]

    def test_configuration_error_is_503(self, client):
        _use(FakeMailSource(search_error=ConfigurationError("Gmail credentials are expired")))
        response = client.get("/api/swipes")
        assert response.status_code == 503
        assert response.json()["detail"] == "Gmail credentials are expired"

    def test_unexpected_error_is_500(self, client):
        _use(FakeMailSource(search_error=RuntimeError("kaboom")))
        response = client.get("/api/swipes")
        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to scan mailbox"


class TestHistoryEndpoint:
    def test_recent_history(self, client):
        source = _use(
            FakeMailSource(
                [
                    make_message("new", "Meals Used: 1", received_at=THIS_WEEK),
                    make_message("older", "Meals Used: 2", received_at=FIXED_NOW - timedelta(days=20)),
                    make_message("ancient", "Meals Used: 1", received_at=FIXED_NOW - timedelta(days=40)),
                ]
            )
        )

        response = client.get("/api/history")

        assert response.status_code == 200
        data = response.json()
        assert data["usedRecent"] == 3
        assert [e["messageId"] for e in data["events"]] == ["new", "older"]
        query, limit = source.queries[0]
        assert query.endswith("newer_than:30d")
        assert limit == 500

    def test_configuration_error_is_503(self, client):
        _use(FakeMailSource(search_error=ConfigurationError("Gmail token file not found: token.json")))
        assert client.get("/api/history").status_code == 503


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "token_present" in data["gmail"]
    assert data["quota"]["reset_weekday"] in range(7)


def test_health_reports_scan_counters(client):
    _use(FakeMailSource([make_message("m1", "Meals Used: 1", received_at=THIS_WEEK)]))
    client.get("/api/swipes")

    scans = client.get("/health").json()["scans"]
    assert scans["counters"]["swipes.scan.started"] == 1
    assert scans["latency"]["count"] == 1
