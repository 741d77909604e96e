from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from reprise.domain.models import Item, Recipient, UserSchedulingProfile
from reprise.domain.ports import Clock, NotificationSender, SendResult
from reprise.infrastructure.adapters.memory_store import InMemoryStore

NOW = datetime(2026, 1, 1, 10, 0, tzinfo=timezone.utc)


class FixedClock(Clock):
    """Clock whose current instant is set by the test."""

    def __init__(self, current: datetime):
        self.current = current

    def now(self) -> datetime:
        return self.current


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def make_item():
    """
    Factory for items relative to NOW.

    `revisited_days_ago=None` means never revisited.
    """
    counter = {"n": 0}

    def _make(
        added_days_ago: float,
        revisited_days_ago: float | None = None,
        times_revisited: int = 0,
        item_id: str | None = None,
        title: str = "",
    ) -> Item:
        counter["n"] += 1
        return Item(
            id=item_id or f"p{counter['n']}",
            added_at=NOW - timedelta(days=added_days_ago),
            title=title,
            last_revisited_at=(
                NOW - timedelta(days=revisited_days_ago) if revisited_days_ago is not None else None
            ),
            times_revisited=times_revisited,
        )

    return _make


@pytest.fixture
def make_user():
    def _make(
        user_id: str = "alice",
        problems_per_day: int = 2,
        min_revisit_days: int = 2,
        email_time: str | None = None,
        last_email_sent_at: datetime | None = None,
    ) -> Recipient:
        return Recipient(
            id=user_id,
            email=f"{user_id}@example.com",
            profile=UserSchedulingProfile(
                problems_per_day=problems_per_day,
                min_revisit_days=min_revisit_days,
                email_time=email_time,
                last_email_sent_at=last_email_sent_at,
            ),
        )

    return _make


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def sender():
    mock = AsyncMock(spec=NotificationSender)
    mock.send.return_value = SendResult(ok=True, message="sent")
    return mock


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config files
    monkeypatch.setenv("HOME", str(home))
    return home
