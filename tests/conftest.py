"""
Pytest configuration for SwipeQ tests

Shared fixtures: a fixed clock and clean telemetry per test. Mailbox fakes
and payload builders live in tests/fixtures/mailbox.py.
"""

import pytest

from swipeq.observability import telemetry
from tests.fixtures.mailbox import FIXED_NOW


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture(autouse=True)
def reset_telemetry():
    telemetry.reset()
    yield
    telemetry.reset()
