"""
Unit tests for the schedule optimizer.

Tests priority-ordered placement, free-slot search (step, gap, working
hours, window), representation of moved events and invariants such as
input order and idempotence.
"""

from datetime import datetime, time, timedelta, timezone

import pytest

from calendar_engine.exceptions import ContractViolationError
from calendar_engine.models import (
    EventPriority,
    EventStatus,
    ReschedulingConstraints,
    WorkingHours,
)
from calendar_engine.services.optimizer import PlacedSlot, find_free_slot, optimize_schedule

NINE_TO_FIVE = WorkingHours(start=time(9, 0), end=time(17, 0))


def at(hour: int, minute: int = 0, day: int = 2) -> datetime:
    return datetime(2026, 3, day, hour, minute, tzinfo=timezone.utc)


def by_id(events):
    return {e.id: e for e in events}


class TestOptimizeSchedule:
    """Test optimize_schedule."""

    def test_empty_schedule(self):
        assert optimize_schedule([]) == []

    def test_none_rejected(self):
        with pytest.raises(ContractViolationError):
            optimize_schedule(None)

    def test_conflict_free_schedule_unchanged(self, make_event):
        events = [make_event(id="a", start=at(9)), make_event(id="b", start=at(10))]

        assert optimize_schedule(events) == events

    def test_lower_priority_moves(self, busy_morning):
        """Sync (normal) yields to the overlapping review (high)."""
        result = by_id(optimize_schedule(busy_morning))

        assert result["review"].start_time == at(10)
        assert result["sync"].start_time == at(11)
        assert result["sync"].end_time == at(12)
        assert result["lunch"].start_time == at(12)

    def test_priority_beats_start_order(self, make_event):
        early_low = make_event(id="low", start=at(10), priority=EventPriority.LOW)
        late_urgent = make_event(id="urgent", start=at(10, 30), priority=EventPriority.URGENT)

        result = by_id(optimize_schedule([early_low, late_urgent]))

        assert result["urgent"].start_time == at(10, 30)
        assert result["low"].start_time == at(11, 30)
        assert result["low"].end_time == at(12, 30)

    def test_equal_priority_earlier_start_stays(self, make_event):
        first = make_event(id="z-first", start=at(10))
        second = make_event(id="a-second", start=at(10, 15))

        result = by_id(optimize_schedule([second, first]))

        assert result["z-first"].start_time == at(10)
        assert result["a-second"].start_time == at(11, 15)

    def test_identical_times_ordered_by_id(self, make_event):
        result = by_id(optimize_schedule([make_event(id="b"), make_event(id="a")]))

        assert result["a"].start_time == at(10)
        assert result["b"].start_time == at(11)

    def test_preserves_order_ids_and_fields(self, busy_morning):
        result = optimize_schedule(busy_morning)

        assert [e.id for e in result] == ["review", "sync", "lunch"]
        for before, after in zip(busy_morning, result):
            assert after.title == before.title
            assert after.priority == before.priority
            assert after.duration == before.duration

    def test_input_not_mutated(self, busy_morning):
        snapshot = [e.model_dump() for e in busy_morning]

        optimize_schedule(busy_morning)

        assert [e.model_dump() for e in busy_morning] == snapshot

    def test_idempotent(self, busy_morning):
        once = optimize_schedule(busy_morning)

        assert optimize_schedule(once) == once

    def test_cancelled_events_pass_through(self, make_event):
        cancelled = make_event(id="gone", priority=EventPriority.URGENT, status=EventStatus.CANCELLED)
        kept = make_event(id="kept")

        result = optimize_schedule([cancelled, kept])

        assert result[0] is cancelled
        assert result[1].start_time == at(10)

    def test_preferred_gap(self, busy_morning):
        constraints = ReschedulingConstraints(preferred_gap_minutes=15)

        result = by_id(optimize_schedule(busy_morning, constraints))

        assert result["sync"].start_time == at(11, 30)
        assert result["lunch"].start_time == at(13)
        assert result["lunch"].end_time == at(14)

    def test_working_hours_push_to_next_day(self, make_event):
        high = make_event(id="high", start=at(16), priority=EventPriority.HIGH)
        normal = make_event(id="normal", start=at(16))

        result = by_id(
            optimize_schedule([high, normal], ReschedulingConstraints(working_hours=NINE_TO_FIVE))
        )

        assert result["normal"].start_time == at(9, day=3)
        assert result["normal"].end_time == at(10, day=3)

    def test_zero_window_leaves_events_in_place(self, busy_morning):
        constraints = ReschedulingConstraints(max_rescheduling_window_days=0)

        assert optimize_schedule(busy_morning, constraints) == busy_morning

    def test_default_window_used_without_constraint(self, busy_morning):
        assert optimize_schedule(busy_morning, default_window_days=0) == busy_morning

    def test_naive_event_stays_naive(self, make_event):
        """Moved wall-clock events keep wall-clock times in their own zone."""
        anchor = make_event(
            id="anchor",
            start=datetime(2026, 3, 2, 9, 0),
            timezone="America/New_York",
            priority=EventPriority.HIGH,
        )
        mover = make_event(id="mover", start=datetime(2026, 3, 2, 9, 0), timezone="America/New_York")

        result = by_id(optimize_schedule([anchor, mover]))

        assert result["mover"].start_time == datetime(2026, 3, 2, 10, 0)
        assert result["mover"].start_time.tzinfo is None
        assert result["mover"].end_time == datetime(2026, 3, 2, 11, 0)

    def test_aware_event_keeps_its_offset(self, make_event):
        tokyo = timezone(timedelta(hours=9))
        anchor = make_event(id="anchor", start=at(10), priority=EventPriority.HIGH)
        mover = make_event(id="mover", start=at(10).astimezone(tokyo))

        result = by_id(optimize_schedule([anchor, mover]))

        assert result["mover"].start_time.utcoffset() == timedelta(hours=9)
        assert result["mover"].start_time == at(11)

    def test_working_hours_in_event_zone(self, make_event):
        """Working hours are read in New York for a New York event."""
        anchor = make_event(id="anchor", start=at(21), priority=EventPriority.HIGH)
        mover = make_event(id="mover", start=at(21), timezone="America/New_York")

        result = by_id(
            optimize_schedule([anchor, mover], ReschedulingConstraints(working_hours=NINE_TO_FIVE))
        )

        # 16:30-17:30 local spills past closing, so 09:00 local the next day
        assert result["mover"].start_time == at(14, day=3)


class TestWeekendAvoidance:
    """Weekday events are never moved onto a weekend."""

    def test_friday_event_moves_to_monday(self, make_event):
        anchor = make_event(id="anchor", start=at(16, day=6), priority=EventPriority.HIGH)
        mover = make_event(id="mover", start=at(16, day=6))

        result = by_id(
            optimize_schedule([anchor, mover], ReschedulingConstraints(working_hours=NINE_TO_FIVE))
        )

        assert result["mover"].start_time == at(9, day=9)
        assert result["mover"].start_time.weekday() == 0

    def test_without_working_hours(self, make_event):
        """A late Friday event skips to Monday midnight rather than Saturday."""
        anchor = make_event(id="anchor", start=at(23, day=6), priority=EventPriority.HIGH)
        mover = make_event(id="mover", start=at(23, day=6))

        result = by_id(optimize_schedule([anchor, mover]))

        assert result["mover"].start_time == at(0, day=9)

    def test_weekend_event_may_stay_on_weekend(self, make_event):
        anchor = make_event(id="anchor", start=at(16, day=7), priority=EventPriority.HIGH)
        mover = make_event(id="mover", start=at(16, day=7))

        result = by_id(
            optimize_schedule([anchor, mover], ReschedulingConstraints(working_hours=NINE_TO_FIVE))
        )

        assert result["mover"].start_time == at(9, day=8)

    def test_weekdays_read_in_event_zone(self, make_event):
        """Friday 16:00 New York is 21:00 UTC; Monday 09:00 is 13:00 UTC after DST."""
        anchor = make_event(id="anchor", start=at(21, day=6), priority=EventPriority.HIGH)
        mover = make_event(id="mover", start=at(21, day=6), timezone="America/New_York")

        result = by_id(
            optimize_schedule([anchor, mover], ReschedulingConstraints(working_hours=NINE_TO_FIVE))
        )

        assert result["mover"].start_time == at(13, day=9)

    def test_find_free_slot_skips_weekend(self):
        slot = find_free_slot(
            at(16, day=6),
            timedelta(hours=1),
            [PlacedSlot("busy", at(16, day=6), at(17, day=6))],
            working_hours=NINE_TO_FIVE,
            skip_weekends=True,
        )

        assert slot == (at(9, day=9), at(10, day=9))


class TestFindFreeSlot:
    """Test find_free_slot."""

    def test_first_slot_after_start(self):
        placed = [PlacedSlot("busy", at(10), at(11))]

        slot = find_free_slot(at(10), timedelta(hours=1), placed)

        assert slot == (at(11), at(12))

    def test_no_placed_slots(self):
        slot = find_free_slot(at(10), timedelta(hours=1), [], step=timedelta(minutes=15))

        assert slot == (at(10, 15), at(11, 15))

    def test_non_positive_step(self):
        assert find_free_slot(at(10), timedelta(hours=1), [], step=timedelta(0)) is None

    def test_longer_than_working_day(self):
        slot = find_free_slot(at(10), timedelta(hours=9), [], working_hours=NINE_TO_FIVE)

        assert slot is None

    def test_window_exhausted(self):
        placed = [PlacedSlot("busy", at(10), at(14))]

        slot = find_free_slot(at(10), timedelta(hours=1), placed, window=timedelta(hours=2))

        assert slot is None

    def test_snaps_to_opening_time(self):
        slot = find_free_slot(at(6), timedelta(hours=1), [], working_hours=NINE_TO_FIVE)

        assert slot == (at(9), at(10))
