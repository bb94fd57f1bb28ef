"""Pytest configuration and fixtures."""

import os
from datetime import datetime, timedelta, timezone
from typing import Generator
from unittest.mock import AsyncMock

import pytest

# Set test environment variables before importing app modules
os.environ.setdefault("STORE_BASE_URL", "http://store.test/api/partners")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from src.models.action_item import ActionItem
from src.models.contract import StoreAck, UploadEvidenceResponse
from src.services import dashboard_service
from src.services.store_client import StoreClient

PARTNERSHIP_ID = "partnership-1"
USER_ID = "user-1"


class FakeClock:
    """Controllable wall clock returning timezone-aware datetimes."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeMonotonic:
    """Controllable monotonic clock in seconds."""

    def __init__(self, start: float = 1000.0):
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> float:
        self.value += seconds
        return self.value


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 2, 17, 15, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(now) -> FakeClock:
    return FakeClock(now)


@pytest.fixture
def monotonic() -> FakeMonotonic:
    return FakeMonotonic()


@pytest.fixture
def make_item():
    """Factory for pending action items with overridable fields."""

    def _make(item_id: str = "x1", **overrides) -> ActionItem:
        fields = {
            "id": item_id,
            "partnership_id": PARTNERSHIP_ID,
            "title": f"Task {item_id}",
            "category": "onboarding",
            "priority": "high",
            "sort_order": 1,
            "status": "pending",
        }
        fields.update(overrides)
        return ActionItem.model_validate(fields)

    return _make


@pytest.fixture
def mock_store() -> AsyncMock:
    """Store client whose every call succeeds."""
    store = AsyncMock(spec=StoreClient)
    store.fetch_action_items.return_value = []
    store.update_status.return_value = True
    store.log_activity.return_value = True
    store.track_view.return_value = True
    store.save_item_data.return_value = StoreAck(success=True, message="Saved successfully!")
    store.upload_evidence.return_value = UploadEvidenceResponse(
        success=True, file_path=f"{PARTNERSHIP_ID}/x1/plan.pdf"
    )
    return store


@pytest.fixture
def session(mock_store, clock, monotonic) -> dashboard_service.DashboardSession:
    return dashboard_service.DashboardSession(
        PARTNERSHIP_ID,
        USER_ID,
        store=mock_store,
        clock=clock,
        monotonic=monotonic,
    )


@pytest.fixture(autouse=True)
def fresh_session_registry() -> Generator[None, None, None]:
    """Each test starts without cached dashboard sessions."""
    dashboard_service.reset_session_registry()
    yield
    dashboard_service.reset_session_registry()
