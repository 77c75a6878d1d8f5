"""
Pytest configuration and fixtures for scheduling engine tests.

Provides event factories and sample schedules for testing.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable

import pytest

from calendar_engine.config import Settings, get_settings
from calendar_engine.models import CalendarEvent, EventPriority, RecurrencePattern


def _build_event(
    id: str = "event-1",
    start: datetime = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc),
    duration_minutes: int = 60,
    **fields,
) -> CalendarEvent:
    fields.setdefault("title", f"Event {id}")
    fields.setdefault("user_id", "user-1")
    end = fields.pop("end", None) or start + timedelta(minutes=duration_minutes)
    return CalendarEvent(id=id, start_time=start, end_time=end, **fields)


@pytest.fixture
def make_event() -> Callable[..., CalendarEvent]:
    """
    Factory for CalendarEvent instances.

    Defaults to a one hour event at 10:00 UTC on Monday 2026-03-02.
    Pass `start`, `duration_minutes` or `end` plus any CalendarEvent field.

    Returns:
        Callable building a new event per call
    """
    return _build_event


@pytest.fixture
def utc() -> Callable[..., datetime]:
    """Shorthand for aware UTC datetimes: utc(2026, 3, 2, 10)."""

    def _utc(*args) -> datetime:
        return datetime(*args, tzinfo=timezone.utc)

    return _utc


@pytest.fixture
def daily_standup() -> CalendarEvent:
    """
    A 15 minute daily standup at 09:00 New York time, 30 occurrences.

    Returns:
        CalendarEvent with a daily RecurrencePattern
    """
    return CalendarEvent(
        id="standup",
        user_id="user-1",
        title="Daily Standup",
        start_time=datetime(2026, 3, 2, 9, 0),
        end_time=datetime(2026, 3, 2, 9, 15),
        timezone="America/New_York",
        recurrence=RecurrencePattern(frequency="daily", interval=1, count=30),
    )


@pytest.fixture
def busy_morning(make_event) -> list[CalendarEvent]:
    """
    Three events on 2026-03-02 (UTC) with one overlapping pair.

    - review 10:00-11:00 (high)
    - sync   10:30-11:30 (normal, overlaps review)
    - lunch  12:00-13:00 (low)
    """
    return [
        make_event(id="review", title="Design Review", priority=EventPriority.HIGH),
        make_event(
            id="sync",
            title="Team Sync",
            start=datetime(2026, 3, 2, 10, 30, tzinfo=timezone.utc),
        ),
        make_event(
            id="lunch",
            title="Lunch",
            start=datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc),
            priority=EventPriority.LOW,
        ),
    ]


@pytest.fixture
def settings() -> Settings:
    """Settings with defaults only (no .env file)."""
    return Settings(_env_file=None)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Ensure each test sees freshly loaded settings."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
