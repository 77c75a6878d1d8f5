"""
Unit tests for the conflict detection service.

Tests overlap detection and severity, travel-time and buffer conflicts,
batch detection invariants, travel heuristics and resolution suggestions.
"""

from datetime import datetime, timedelta, timezone

import pytest

from calendar_engine.exceptions import ContractViolationError
from calendar_engine.models import (
    OVERLAP_ONLY,
    ConflictConfig,
    ConflictSeverity,
    ConflictType,
    DetectionOptions,
    EventPriority,
)
from calendar_engine.services.conflicts import ConflictDetector, sort_conflicts

SPRINGFIELD_A = "1 Main St, Springfield, USA"
SPRINGFIELD_B = "20 Oak Ave, Springfield, USA"
SHELBYVILLE = "9 Elm St, Shelbyville, USA"


def at(hour: int, minute: int = 0, day: int = 2) -> datetime:
    return datetime(2026, 3, day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def detector() -> ConflictDetector:
    return ConflictDetector()


class TestOverlaps:
    """Test ConflictDetector.overlaps."""

    def test_partial_overlap(self, detector, make_event):
        a = make_event(id="a", start=at(10))
        b = make_event(id="b", start=at(10, 30))

        assert detector.overlaps(a, b) is True
        assert detector.overlaps(b, a) is True

    def test_adjacent_events_do_not_overlap(self, detector, make_event):
        a = make_event(id="a", start=at(10))
        b = make_event(id="b", start=at(11))

        assert detector.overlaps(a, b) is False

    def test_cross_zone_comparison(self, detector, make_event):
        """09:00 New York (naive) is 14:00 UTC in March before DST."""
        a = make_event(id="a", start=datetime(2026, 3, 2, 9, 0), timezone="America/New_York")
        b = make_event(id="b", start=at(14, 30))

        assert detector.overlaps(a, b) is True


class TestDetectOverlap:
    """Test overlap conflicts from detect()."""

    def test_reference_overlap(self, detector, make_event):
        """E1 10:00-11:00 vs E2 10:30-11:30 is one 30 minute overlap."""
        e1 = make_event(id="E1", start=at(10))
        e2 = make_event(id="E2", title="Planning", start=at(10, 30))

        conflicts = detector.detect(e1, [e2])

        assert len(conflicts) == 1
        conflict = conflicts[0]
        assert conflict.type == ConflictType.OVERLAP
        assert conflict.event_id == "E1"
        assert conflict.conflicting_event_id == "E2"
        assert conflict.conflicting_event_title == "Planning"
        assert conflict.overlap_minutes == 30.0
        assert conflict.gap_minutes is None
        assert conflict.severity == ConflictSeverity.MEDIUM

    def test_disjoint_events_have_no_conflicts(self, detector, make_event):
        e1 = make_event(id="E1", start=at(10))
        e2 = make_event(id="E2", start=at(14))

        assert detector.detect(e1, [e2]) == []

    def test_self_detection_is_empty(self, detector, make_event):
        event = make_event(id="E1")

        assert detector.detect(event, [event]) == []

    def test_cancelled_events_ignored(self, detector, make_event):
        e1 = make_event(id="E1", start=at(10))
        cancelled = make_event(id="E2", start=at(10), status="cancelled")

        assert detector.detect(e1, [cancelled]) == []
        assert detector.detect(cancelled, [e1]) == []

    def test_overlap_minutes_rounded(self, detector, make_event):
        e1 = make_event(id="E1", start=at(10))
        e2 = make_event(id="E2", start=datetime(2026, 3, 2, 10, 59, 40, tzinfo=timezone.utc))

        conflict = detector.detect(e1, [e2])[0]

        assert conflict.overlap_minutes == 0.33

    @pytest.mark.parametrize(
        "overlap, priority, expected",
        [
            (10, EventPriority.NORMAL, ConflictSeverity.LOW),
            (15, EventPriority.NORMAL, ConflictSeverity.MEDIUM),
            (59, EventPriority.NORMAL, ConflictSeverity.MEDIUM),
            (60, EventPriority.NORMAL, ConflictSeverity.HIGH),
            (10, EventPriority.URGENT, ConflictSeverity.MEDIUM),
            (60, EventPriority.URGENT, ConflictSeverity.CRITICAL),
        ],
    )
    def test_severity_thresholds(self, detector, make_event, overlap, priority, expected):
        e1 = make_event(id="E1", start=at(10), duration_minutes=120)
        e2 = make_event(
            id="E2",
            start=at(12) - timedelta(minutes=overlap),
            duration_minutes=120,
            priority=priority,
        )

        assert detector.detect(e1, [e2])[0].severity == expected

    def test_severity_monotonic_in_overlap(self, detector, make_event):
        """Longer overlaps never produce a lower severity."""
        target = make_event(id="T", start=at(8), duration_minutes=180)
        ranks = []
        for minutes in range(5, 180, 5):
            candidate = make_event(id="C", start=at(11) - timedelta(minutes=minutes), duration_minutes=180)
            ranks.append(detector.detect(target, [candidate])[0].severity.rank)

        assert ranks == sorted(ranks)

    def test_sorted_by_severity_then_overlap(self, detector, make_event):
        target = make_event(id="T", start=at(9), duration_minutes=240)
        small = make_event(id="small", start=at(12, 50))
        medium = make_event(id="medium", start=at(12, 30))
        large = make_event(id="large", start=at(9), duration_minutes=90)

        conflicts = detector.detect(target, [small, medium, large])

        assert [c.conflicting_event_id for c in conflicts] == ["large", "medium", "small"]

    def test_custom_thresholds(self, make_event):
        detector = ConflictDetector(ConflictConfig(high_severity_overlap_minutes=20))
        e1 = make_event(id="E1", start=at(10))
        e2 = make_event(id="E2", start=at(10, 30))

        assert detector.detect(e1, [e2])[0].severity == ConflictSeverity.HIGH

    def test_none_arguments_raise(self, detector, make_event):
        with pytest.raises(ContractViolationError):
            detector.detect(None, [])
        with pytest.raises(ContractViolationError):
            detector.detect(make_event(), None)

    def test_malformed_times_are_skipped(self, detector, make_event):
        """Times that cannot be converted never raise."""
        broken = make_event(
            id="broken",
            start=datetime(9999, 12, 31, 20, 0),
            end=datetime(9999, 12, 31, 21, 0),
            timezone="Etc/GMT+12",
        )

        assert detector.detect(make_event(id="ok"), [broken]) == []

    def test_end_before_start_never_conflicts(self, detector, make_event):
        """A reversed event inside another one yields no negative overlap."""
        reversed_event = make_event(id="reversed", start=at(10), end=at(9))
        around = make_event(id="around", start=at(8), end=at(11))

        assert detector.detect(reversed_event, [around]) == []
        assert detector.detect(around, [reversed_event]) == []
        assert detector.detect_batch([reversed_event, around]) == {}


class TestTravelTimeConflicts:
    """Test travel-time conflicts between different locations."""

    def test_different_cities(self, detector, make_event):
        a = make_event(id="a", start=at(10), location=SPRINGFIELD_A)
        b = make_event(id="b", start=at(11, 10), location=SHELBYVILLE)

        conflict = detector.detect(a, [b])[0]

        assert conflict.type == ConflictType.TRAVEL_TIME
        assert conflict.severity == ConflictSeverity.MEDIUM
        assert conflict.gap_minutes == 10.0
        assert conflict.required_minutes == 120
        assert conflict.overlap_minutes is None

    def test_same_city_enough_time(self, detector, make_event):
        """45 minutes is enough within one city; the buffer is not checked."""
        a = make_event(id="a", start=at(10), location=SPRINGFIELD_A)
        b = make_event(id="b", start=at(11, 45), location=SPRINGFIELD_B)

        assert detector.detect(a, [b]) == []

    def test_same_city_too_close(self, detector, make_event):
        a = make_event(id="a", start=at(10), location=SPRINGFIELD_A)
        b = make_event(id="b", start=at(11, 20), location=SPRINGFIELD_B)

        conflict = detector.detect(a, [b])[0]

        assert conflict.type == ConflictType.TRAVEL_TIME
        assert conflict.required_minutes == 30

    def test_candidate_before_target(self, detector, make_event):
        """The gap is measured in whichever direction separates the events."""
        a = make_event(id="a", start=at(12), location=SPRINGFIELD_A)
        b = make_event(id="b", start=at(10, 50), location=SHELBYVILLE)

        assert detector.detect(a, [b])[0].gap_minutes == 10.0

    def test_virtual_location_needs_no_travel(self, detector, make_event):
        a = make_event(id="a", start=at(10), location="Zoom")
        b = make_event(id="b", start=at(11, 10), location=SHELBYVILLE)

        assert detector.detect(a, [b]) == []

    def test_meeting_url_needs_no_travel(self, detector, make_event):
        a = make_event(id="a", start=at(10), location=SPRINGFIELD_A,
                       virtual_meeting_url="https://meet.example.com/abc")
        b = make_event(id="b", start=at(11, 10), location=SHELBYVILLE)

        assert detector.detect(a, [b]) == []

    def test_custom_travel_minutes(self, detector, make_event):
        a = make_event(id="a", start=at(10), location=SPRINGFIELD_A)
        b = make_event(id="b", start=at(11, 10), location=SHELBYVILLE)

        options = DetectionOptions(custom_travel_minutes=5)

        assert detector.detect(a, [b], options) == []

    def test_travel_disabled_falls_back_to_buffer(self, detector, make_event):
        a = make_event(id="a", start=at(10), location=SPRINGFIELD_A)
        b = make_event(id="b", start=at(11, 5), location=SHELBYVILLE)

        conflicts = detector.detect(a, [b], DetectionOptions(include_travel_time=False))

        assert [c.type for c in conflicts] == [ConflictType.BUFFER]

    def test_same_location_uses_buffer(self, detector, make_event):
        """Equal locations are not a travel case."""
        a = make_event(id="a", start=at(10), location="Room 4")
        b = make_event(id="b", start=at(11, 5), location="room 4")

        conflicts = detector.detect(a, [b])

        assert [c.type for c in conflicts] == [ConflictType.BUFFER]


class TestBufferConflicts:
    """Test priority buffer conflicts."""

    def test_higher_priority_buffer_applies(self, detector, make_event):
        a = make_event(id="a", start=at(10))
        b = make_event(id="b", start=at(11, 20), priority=EventPriority.URGENT)

        conflict = detector.detect(a, [b])[0]

        assert conflict.type == ConflictType.BUFFER
        assert conflict.severity == ConflictSeverity.LOW
        assert conflict.gap_minutes == 20.0
        assert conflict.required_minutes == 30

    def test_gap_meeting_buffer_is_fine(self, detector, make_event):
        a = make_event(id="a", start=at(10))
        b = make_event(id="b", start=at(11, 10))

        assert detector.detect(a, [b]) == []

    def test_adjacent_events_never_buffer_conflict(self, detector, make_event):
        """A zero gap is not a buffer violation."""
        a = make_event(id="a", start=at(10), priority=EventPriority.URGENT)
        b = make_event(id="b", start=at(11))

        assert detector.detect(a, [b]) == []

    def test_overlap_only_options(self, detector, make_event):
        a = make_event(id="a", start=at(10))
        b = make_event(id="b", start=at(11, 5), location=SHELBYVILLE)

        assert detector.detect(a, [b], OVERLAP_ONLY) == []


class TestDetectBatch:
    """Test detect_batch invariants."""

    def test_empty_batch(self, detector):
        assert detector.detect_batch([]) == {}

    def test_none_raises(self, detector):
        with pytest.raises(ContractViolationError):
            detector.detect_batch(None)

    def test_conflicts_recorded_for_both_events(self, detector, busy_morning):
        conflict_map = detector.detect_batch(busy_morning)

        assert set(conflict_map) == {"review", "sync"}
        assert conflict_map["review"][0].conflicting_event_id == "sync"
        assert conflict_map["sync"][0].conflicting_event_id == "review"

    def test_order_invariant(self, detector, busy_morning):
        forward = detector.detect_batch(busy_morning)
        backward = detector.detect_batch(list(reversed(busy_morning)))

        assert forward == backward

    def test_events_beyond_window_not_compared(self, detector, make_event):
        """Starts further apart than the detection window never conflict."""
        long_event = make_event(id="long", start=at(10, day=1), duration_minutes=40 * 24 * 60)
        later = make_event(id="later", start=datetime(2026, 4, 5, 10, 0, tzinfo=timezone.utc))

        assert detector.detect_batch([long_event, later]) == {}
        assert detector.detect(long_event, [later]) == []

    def test_window_is_configurable(self, make_event):
        detector = ConflictDetector(ConflictConfig(detection_window_days=60))
        long_event = make_event(id="long", start=at(10, day=1), duration_minutes=40 * 24 * 60)
        later = make_event(id="later", start=datetime(2026, 4, 5, 10, 0, tzinfo=timezone.utc))

        assert set(detector.detect_batch([long_event, later])) == {"long", "later"}

    def test_cancelled_excluded(self, detector, busy_morning):
        busy_morning[1] = busy_morning[1].model_copy(update={"status": "cancelled"})

        assert detector.detect_batch(busy_morning) == {}


class TestTravelMinutes:
    """Test the location-pair travel heuristic."""

    @pytest.mark.parametrize(
        "loc_a, loc_b, expected",
        [
            (None, SHELBYVILLE, 15),
            ("Zoom call", SHELBYVILLE, 0),
            ("Microsoft Teams", SHELBYVILLE, 0),
            ("Conference Room", "conference room ", 5),
            (SPRINGFIELD_A, SPRINGFIELD_B, 30),
            (SPRINGFIELD_A, SHELBYVILLE, 120),
            ("Office A", "Office B", 15),
            ("Meeting Room 1", "Board Room", 15),
        ],
    )
    def test_heuristic(self, detector, loc_a, loc_b, expected):
        assert detector.travel_minutes(loc_a, loc_b) == expected

    def test_symmetric(self, detector):
        assert detector.travel_minutes(SPRINGFIELD_A, SHELBYVILLE) == detector.travel_minutes(
            SHELBYVILLE, SPRINGFIELD_A
        )

    def test_configured_default(self):
        detector = ConflictDetector(ConflictConfig(default_travel_minutes=25))

        assert detector.travel_minutes("Office A", "Office B") == 25


class TestSuggestions:
    """Test resolution suggestions."""

    def test_partial_overlap_suggestions(self, detector, make_event):
        e1 = make_event(id="E1", title="Review", start=at(10))
        e2 = make_event(id="E2", title="Planning", start=at(10, 30))

        conflict = detector.detect(e1, [e2])[0]
        suggestions = conflict.suggestions

        assert [s.type for s in suggestions] == ["shorten", "reschedule", "reschedule"]
        assert [s.impact_score for s in suggestions] == [50, 60, 60]

        shorten, after, before = suggestions
        assert shorten.new_end_time == at(10, 25)
        assert after.new_start_time == at(11, 45)
        assert after.new_end_time == at(12, 45)
        assert before.new_start_time == at(9, 15)
        assert before.new_end_time == at(10, 15)
        assert shorten.description in conflict.suggestion

    def test_low_priority_offers_ignore(self, detector, make_event):
        e1 = make_event(id="E1", start=at(10))
        e2 = make_event(id="E2", start=at(10, 30), priority=EventPriority.LOW)

        suggestions = detector.detect(e1, [e2])[0].suggestions

        assert suggestions[0].type == "ignore"
        assert suggestions[0].impact_score == 20

    def test_physical_locations_offer_virtual(self, detector, make_event):
        e1 = make_event(id="E1", start=at(10), location=SPRINGFIELD_A)
        e2 = make_event(id="E2", start=at(10, 30), location=SHELBYVILLE)

        types = [s.type for s in detector.detect(e1, [e2])[0].suggestions]

        assert "virtual" in types

    def test_attendees_raise_impact(self, detector, make_event):
        e2 = make_event(id="E2", start=at(10, 30))
        alone = detector.detect(make_event(id="E1", start=at(10)), [e2])[0]
        crowded = detector.detect(
            make_event(id="E1", start=at(10), attendees=["a@x.com", "b@x.com", "c@x.com"]), [e2]
        )[0]

        assert crowded.suggestions[0].impact_score == alone.suggestions[0].impact_score + 6

    def test_suggestions_capped(self, make_event):
        detector = ConflictDetector(ConflictConfig(max_suggestions=2))
        e1 = make_event(id="E1", start=at(10))
        e2 = make_event(id="E2", start=at(10, 30))

        assert len(detector.detect(e1, [e2])[0].suggestions) == 2

    def test_naive_times_suggested_as_naive(self, detector, make_event):
        """Suggested times keep the target's representation."""
        e1 = make_event(id="E1", start=datetime(2026, 3, 2, 9, 0), timezone="America/New_York")
        e2 = make_event(id="E2", start=at(14, 30))

        conflict = detector.detect(e1, [e2])[0]
        after = next(s for s in conflict.suggestions if s.new_start_time.hour == 10)

        assert after.new_start_time == datetime(2026, 3, 2, 10, 45)
        assert after.new_start_time.tzinfo is None


def test_sort_conflicts_breaks_ties_by_id(detector, make_event):
    target = make_event(id="T", start=at(10))
    b = make_event(id="b", start=at(10, 30))
    a = make_event(id="a", start=at(10, 30))

    conflicts = sort_conflicts([detector.detect_pair(target, b), detector.detect_pair(target, a)])

    assert [c.conflicting_event_id for c in conflicts] == ["a", "b"]
