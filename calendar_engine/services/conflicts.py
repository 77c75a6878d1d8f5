"""
Conflict detection service.

Detects conflicts between events:
- overlap: time ranges intersect (severity by overlap length, escalated for urgent events)
- travel_time: adjacent events at different locations without enough time to travel
- buffer: adjacent events closer than the higher-priority participant's buffer

All comparisons are made on UTC instants. Malformed event data never raises:
the pair is logged and treated as non-conflicting. Missing arguments do raise.
"""

import logging
import re
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence

from calendar_engine.exceptions import ContractViolationError
from calendar_engine.models.base import ConflictSeverity, ConflictType, EventPriority
from calendar_engine.models.conflicts import (
    Conflict,
    ConflictConfig,
    DetectionOptions,
    ResolutionSuggestion,
)
from calendar_engine.models.events import CalendarEvent
from calendar_engine.services.timezones import overlap_across_zones, restore_like, to_utc

logger = logging.getLogger(__name__)

SUGGESTION_BUFFER = timedelta(minutes=15)
SHORTEN_BUFFER = timedelta(minutes=5)

_IMPACT_BY_TYPE = {
    "ignore": 10,
    "virtual": 20,
    "shorten": 30,
    "reschedule": 40,
}

_IMPACT_BY_PRIORITY = {
    EventPriority.LOW: 0,
    EventPriority.NORMAL: 10,
    EventPriority.HIGH: 20,
    EventPriority.URGENT: 40,
}


def sort_conflicts(conflicts: Iterable[Conflict]) -> list[Conflict]:
    """Order by severity (high to low), overlap (desc), then conflicting id."""
    return sorted(
        conflicts,
        key=lambda c: (*c.sort_key, c.conflicting_event_id),
    )


def _minutes(delta: timedelta) -> float:
    return round(delta.total_seconds() / 60, 2)


class ConflictDetector:
    """
    Pairwise and batch conflict detection.

    Thresholds come from an immutable ConflictConfig given at construction,
    so one detector can be shared freely across threads.

    Example:
        >>> detector = ConflictDetector()
        >>> conflicts = detector.detect(new_event, existing_events)
    """

    def __init__(self, config: Optional[ConflictConfig] = None):
        self.config = config or ConflictConfig()

    # =========================================================================
    # Interval Tests
    # =========================================================================

    def overlaps(self, event_a: CalendarEvent, event_b: CalendarEvent) -> bool:
        """Direct overlap test on UTC instants: a.start < b.end and a.end > b.start."""
        return overlap_across_zones(event_a, event_b)

    def gap_minutes(self, event_a: CalendarEvent, event_b: CalendarEvent) -> Optional[float]:
        """
        Minutes between two ranges (negative when they overlap).

        Returns:
            Gap in minutes, or None if the events' times cannot be compared
        """
        try:
            a_start, a_end = _utc_range(event_a)
            b_start, b_end = _utc_range(event_b)
        except (TypeError, ValueError, OverflowError) as e:
            logger.warning(f"Cannot compute gap between {event_a.id} and {event_b.id}: {e}")
            return None
        return _minutes(max(b_start - a_end, a_start - b_end))

    # =========================================================================
    # Detection
    # =========================================================================

    def detect_pair(
        self,
        target: CalendarEvent,
        candidate: CalendarEvent,
        options: Optional[DetectionOptions] = None,
    ) -> Optional[Conflict]:
        """
        Check one candidate against a target event.

        Events whose starts are further apart than detection_window_days are
        never compared, and an event ending before it starts never conflicts.

        Args:
            target: Event being checked
            candidate: Event it may conflict with
            options: Travel/buffer switches (defaults: both enabled)

        Returns:
            Conflict from the target's point of view, or None

        Raises:
            ContractViolationError: If either event is None
        """
        if target is None or candidate is None:
            raise ContractViolationError("Both target and candidate events are required")

        options = options or DetectionOptions()

        if candidate.id == target.id or candidate.is_cancelled or target.is_cancelled:
            return None

        try:
            t_start, t_end = _utc_range(target)
            c_start, c_end = _utc_range(candidate)
        except (TypeError, ValueError, OverflowError) as e:
            logger.warning(f"Skipping conflict check {target.id} vs {candidate.id}: {e}")
            return None

        if t_end < t_start or c_end < c_start:
            logger.warning(
                f"Skipping conflict check {target.id} vs {candidate.id}: end before start"
            )
            return None

        if abs(c_start - t_start) > timedelta(days=self.config.detection_window_days):
            return None

        if t_start < c_end and t_end > c_start:
            overlap = _minutes(min(t_end, c_end) - max(t_start, c_start))
            return self._overlap_conflict(target, candidate, overlap)

        gap = _minutes(max(c_start - t_end, t_start - c_end))
        if gap <= 0:
            return None

        if options.include_travel_time and _distinct_locations(target, candidate):
            required = self._required_travel(target, candidate, options)
            if gap < required:
                return self._travel_conflict(target, candidate, gap, required)
            return None

        if options.include_buffer_time:
            required = self.config.buffer_for(_higher_priority(target, candidate))
            if gap < required:
                return self._buffer_conflict(target, candidate, gap, required)

        return None

    def detect(
        self,
        target: CalendarEvent,
        candidates: Sequence[CalendarEvent],
        options: Optional[DetectionOptions] = None,
    ) -> list[Conflict]:
        """
        Detect conflicts for a single event against a list of other events.

        Args:
            target: Event being checked
            candidates: Existing events (cancelled ones and the target itself are skipped)
            options: Travel/buffer switches

        Returns:
            Conflicts sorted by severity, then overlap minutes (descending)

        Raises:
            ContractViolationError: If target or candidates is None
        """
        if target is None:
            raise ContractViolationError("Target event is required")
        if candidates is None:
            raise ContractViolationError("Candidate event collection is required")

        conflicts = []
        for candidate in candidates:
            conflict = self.detect_pair(target, candidate, options)
            if conflict is not None:
                conflicts.append(conflict)

        return sort_conflicts(conflicts)

    def detect_batch(
        self,
        events: Sequence[CalendarEvent],
        options: Optional[DetectionOptions] = None,
    ) -> dict[str, list[Conflict]]:
        """
        Detect all conflicts within a collection.

        Events are sorted by start and each is compared only with later events
        starting within detection_window_days. Each conflict is recorded
        for both participants, so the result does not depend on input order.

        Args:
            events: Events to check (cancelled ones are ignored)
            options: Travel/buffer switches

        Returns:
            Mapping of event id to its sorted conflicts; ids without conflicts
            are omitted

        Raises:
            ContractViolationError: If events is None
        """
        if events is None:
            raise ContractViolationError("Event collection is required")

        keyed = []
        for event in events:
            if event.is_cancelled:
                continue
            try:
                keyed.append((to_utc(event.start_time, event.timezone), event.id, event))
            except (TypeError, ValueError, OverflowError) as e:
                logger.warning(f"Excluding event {event.id} from batch detection: {e}")

        keyed.sort(key=lambda item: (item[0], item[1]))
        window = timedelta(days=self.config.detection_window_days)
        conflict_map: dict[str, list[Conflict]] = defaultdict(list)

        for i in range(len(keyed)):
            start_i, _, event_i = keyed[i]
            for j in range(i + 1, len(keyed)):
                start_j, _, event_j = keyed[j]
                if start_j - start_i > window:
                    break

                forward = self.detect_pair(event_i, event_j, options)
                if forward is None:
                    continue
                conflict_map[event_i.id].append(forward)

                backward = self.detect_pair(event_j, event_i, options)
                if backward is not None:
                    conflict_map[event_j.id].append(backward)

        logger.debug(
            f"Batch detection over {len(keyed)} events found conflicts for "
            f"{len(conflict_map)} events"
        )
        return {event_id: sort_conflicts(found) for event_id, found in conflict_map.items()}

    # =========================================================================
    # Travel Time
    # =========================================================================

    def is_virtual_location(self, location: Optional[str]) -> bool:
        """Check if a location names an online meeting (zoom, teams, meet, ...)."""
        if not location:
            return False
        pattern = r"\b(" + "|".join(re.escape(k) for k in self.config.virtual_keywords) + r")\b"
        return re.search(pattern, location.lower()) is not None

    def travel_minutes(self, location_a: Optional[str], location_b: Optional[str]) -> int:
        """
        Estimate travel time between two locations.

        Heuristics, in order:
        - Either location missing: default travel time
        - Either location virtual: virtual travel time
        - Same location string: same-building time
        - City components ("Street, City, Country") compared: same/different city
        - Otherwise: default travel time
        """
        table = self.config.location_travel_minutes
        default = self.config.default_travel_minutes

        if not location_a or not location_b:
            return default

        if self.is_virtual_location(location_a) or self.is_virtual_location(location_b):
            return table.get("virtual", 0)

        if location_a.strip().lower() == location_b.strip().lower():
            return table.get("same_building", default)

        city_a = _extract_city(location_a)
        city_b = _extract_city(location_b)
        if city_a and city_b:
            if city_a.lower() == city_b.lower():
                return table.get("same_city", default)
            return table.get("different_city", default)

        return default

    def _required_travel(
        self,
        target: CalendarEvent,
        candidate: CalendarEvent,
        options: DetectionOptions,
    ) -> int:
        if options.custom_travel_minutes is not None:
            return options.custom_travel_minutes
        if target.is_virtual or candidate.is_virtual:
            return self.config.location_travel_minutes.get("virtual", 0)
        return self.travel_minutes(target.location, candidate.location)

    # =========================================================================
    # Conflict Construction
    # =========================================================================

    def overlap_severity(
        self,
        overlap_minutes: float,
        target: CalendarEvent,
        candidate: CalendarEvent,
    ) -> ConflictSeverity:
        """Severity by overlap length, one tier higher if either event is urgent."""
        if overlap_minutes >= self.config.high_severity_overlap_minutes:
            severity = ConflictSeverity.HIGH
        elif overlap_minutes >= self.config.medium_severity_overlap_minutes:
            severity = ConflictSeverity.MEDIUM
        else:
            severity = ConflictSeverity.LOW

        if EventPriority.URGENT in (target.priority, candidate.priority):
            severity = severity.escalate()
        return severity

    def _overlap_conflict(
        self,
        target: CalendarEvent,
        candidate: CalendarEvent,
        overlap: float,
    ) -> Conflict:
        suggestions = self.suggest_resolutions(target, candidate, overlap)
        best = suggestions[0].description if suggestions else "Reschedule one of the events"
        return Conflict(
            event_id=target.id,
            conflicting_event_id=candidate.id,
            conflicting_event_title=candidate.title,
            type=ConflictType.OVERLAP,
            severity=self.overlap_severity(overlap, target, candidate),
            overlap_minutes=overlap,
            suggestion=f'Overlaps "{candidate.title}" by {overlap:g} minutes. {best}',
            suggestions=suggestions,
        )

    def _travel_conflict(
        self,
        target: CalendarEvent,
        candidate: CalendarEvent,
        gap: float,
        required: int,
    ) -> Conflict:
        return Conflict(
            event_id=target.id,
            conflicting_event_id=candidate.id,
            conflicting_event_title=candidate.title,
            type=ConflictType.TRAVEL_TIME,
            severity=ConflictSeverity.MEDIUM,
            gap_minutes=gap,
            required_minutes=required,
            suggestion=(
                f"Only {gap:g} minutes to travel between \"{target.location}\" and "
                f"\"{candidate.location}\"; allow at least {required} minutes"
            ),
            suggestions=self.suggest_resolutions(target, candidate, None),
        )

    def _buffer_conflict(
        self,
        target: CalendarEvent,
        candidate: CalendarEvent,
        gap: float,
        required: int,
    ) -> Conflict:
        return Conflict(
            event_id=target.id,
            conflicting_event_id=candidate.id,
            conflicting_event_title=candidate.title,
            type=ConflictType.BUFFER,
            severity=ConflictSeverity.LOW,
            gap_minutes=gap,
            required_minutes=required,
            suggestion=(
                f'Only {gap:g} minutes between this event and "{candidate.title}"; '
                f"{_higher_priority(target, candidate).value} priority needs {required} minutes"
            ),
            suggestions=self.suggest_resolutions(target, candidate, None),
        )

    # =========================================================================
    # Resolution Suggestions
    # =========================================================================

    def suggest_resolutions(
        self,
        target: CalendarEvent,
        candidate: CalendarEvent,
        overlap_minutes: Optional[float],
    ) -> list[ResolutionSuggestion]:
        """
        Propose ways to resolve a conflict, least disruptive first.

        Suggestions: move the target after or before the candidate, shorten it
        to end before the candidate starts, make it virtual, or ignore the
        conflict when a low-priority event is involved.
        """
        try:
            t_start, t_end = _utc_range(target)
            c_start, c_end = _utc_range(candidate)
        except (TypeError, ValueError, OverflowError):
            return []

        duration = t_end - t_start
        suggestions = []

        after_start = c_end + SUGGESTION_BUFFER
        suggestions.append(self._reschedule(
            target,
            f'Move "{target.title}" to start after "{candidate.title}" ends',
            after_start,
            after_start + duration,
            candidate,
        ))

        before_end = c_start - SUGGESTION_BUFFER
        suggestions.append(self._reschedule(
            target,
            f'Move "{target.title}" to before "{candidate.title}" starts',
            before_end - duration,
            before_end,
            candidate,
        ))

        shortened_end = c_start - SHORTEN_BUFFER
        if overlap_minutes is not None and t_start < c_start and shortened_end > t_start:
            suggestions.append(ResolutionSuggestion(
                type="shorten",
                description=f'Shorten "{target.title}" to end before the conflict',
                new_start_time=target.start_time,
                new_end_time=restore_like(shortened_end, target.start_time, target.timezone),
                impact_score=self._impact("shorten", target, candidate),
            ))

        if (
            target.location and candidate.location
            and not self._is_virtual(target) and not self._is_virtual(candidate)
        ):
            suggestions.append(ResolutionSuggestion(
                type="virtual",
                description=f'Make "{target.title}" virtual to eliminate travel time',
                new_start_time=target.start_time,
                new_end_time=target.end_time,
                impact_score=self._impact("virtual", target, candidate),
            ))

        if EventPriority.LOW in (target.priority, candidate.priority):
            suggestions.append(ResolutionSuggestion(
                type="ignore",
                description="Accept the conflict as a low priority event is involved",
                impact_score=self._impact("ignore", target, candidate),
            ))

        suggestions.sort(key=lambda s: s.impact_score)
        return suggestions[: self.config.max_suggestions]

    def _reschedule(
        self,
        target: CalendarEvent,
        description: str,
        start: datetime,
        end: datetime,
        candidate: CalendarEvent,
    ) -> ResolutionSuggestion:
        return ResolutionSuggestion(
            type="reschedule",
            description=description,
            new_start_time=restore_like(start, target.start_time, target.timezone),
            new_end_time=restore_like(end, target.start_time, target.timezone),
            impact_score=self._impact("reschedule", target, candidate),
        )

    def _impact(self, kind: str, target: CalendarEvent, candidate: CalendarEvent) -> int:
        """Higher is more disruptive: type, both priorities, attendees, virtual-ness."""
        score = _IMPACT_BY_TYPE.get(kind, 50)
        score += _IMPACT_BY_PRIORITY.get(target.priority, 0)
        score += _IMPACT_BY_PRIORITY.get(candidate.priority, 0)
        score += 2 * len(target.attendees)
        if self._is_virtual(target):
            score -= 15
        return max(0, score)

    def _is_virtual(self, event: CalendarEvent) -> bool:
        return event.is_virtual or self.is_virtual_location(event.location)


def _utc_range(event: CalendarEvent) -> tuple[datetime, datetime]:
    return to_utc(event.start_time, event.timezone), to_utc(event.end_time, event.timezone)


def _distinct_locations(event_a: CalendarEvent, event_b: CalendarEvent) -> bool:
    a = (event_a.location or "").strip().lower()
    b = (event_b.location or "").strip().lower()
    return bool(a) and bool(b) and a != b


def _higher_priority(event_a: CalendarEvent, event_b: CalendarEvent) -> EventPriority:
    return max(event_a.priority, event_b.priority, key=lambda p: p.rank)


def _extract_city(location: str) -> Optional[str]:
    """Second-to-last comma-separated part ('1 Main St, Springfield, USA' -> 'Springfield')."""
    parts = location.split(",")
    if len(parts) >= 2:
        return parts[-2].strip() or None
    return None
