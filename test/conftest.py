"""
Pytest configuration and fixtures for portfolio analytics tests
"""

import os
import sys
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))  # noqa: PTH100, PTH118, PTH119, PTH120

from main import create_app  # noqa: E402
from portfolio_analytics.config import Settings  # noqa: E402
from portfolio_analytics.engine import create_engine  # noqa: E402
from portfolio_analytics.services.interaction_ledger import InteractionLedger  # noqa: E402
from portfolio_analytics.services.metrics_aggregator import MetricsAggregator  # noqa: E402
from portfolio_analytics.services.session_registry import SessionRegistry  # noqa: E402

USER_AGENTS = {
    "desktop_chrome": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    "iphone_safari": (
        "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) "
        "Version/17.0 Mobile/15E148 Safari/604.1"
    ),
    "ipad_safari": (
        "Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) "
        "Version/17.0 Mobile/15E148 Safari/604.1"
    ),
    "android_tablet": (
        "Mozilla/5.0 (Linux; Android 13; SM-X700) AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    "android_phone": (
        "Mozilla/5.0 (Linux; Android 13; Pixel 7) AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Mobile Safari/537.36"
    ),
    "firefox": "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "edge": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36 Edg/120.0.0.0"
    ),
}


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 11, 22, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    """Clock pinned to 2024-11-22 12:00 UTC"""
    return FakeClock()


@pytest.fixture
def test_settings():
    """Settings with plain-text logging for readable test output"""
    return Settings(log_json=False, log_level="WARNING", environment="test")


@pytest.fixture
def registry(clock):
    return SessionRegistry(clock=clock)


@pytest.fixture
def ledger(clock):
    return InteractionLedger(clock=clock)


@pytest.fixture
def metrics(clock):
    return MetricsAggregator(clock=clock)


@pytest.fixture
def engine(test_settings, clock):
    """Fully wired engagement engine"""
    return create_engine(test_settings, clock=clock)


@pytest.fixture
def app(test_settings, clock):
    """Fresh application per test so engine state never leaks between tests"""
    return create_app(test_settings, clock=clock)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def session_id(client):
    """Session created through the API"""
    response = client.post("/api/interactions/sessions", json={"country": "ES", "referrer": "google"})
    assert response.status_code == 201
    return response.json()["id"]
