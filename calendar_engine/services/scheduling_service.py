"""
Scheduling service - facade over the engine components.

Combines an EventRepository with recurrence expansion, conflict detection,
validation and optimization so callers work with user ids and time ranges
instead of assembling candidate lists themselves.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional, Sequence

from calendar_engine.config import Settings, get_settings
from calendar_engine.exceptions import ContractViolationError, EventNotFoundError
from calendar_engine.integrations.base import EventRepository
from calendar_engine.models.base import EventStatus
from calendar_engine.models.conflicts import Conflict, DetectionOptions
from calendar_engine.models.constraints import (
    ReschedulingConstraints,
    SchedulingRules,
    ValidationResult,
)
from calendar_engine.models.events import CalendarEvent
from calendar_engine.services.conflicts import ConflictDetector, sort_conflicts
from calendar_engine.services.optimizer import optimize_schedule
from calendar_engine.services.recurrence import expand_events, expand_recurrence
from calendar_engine.services.timezones import to_utc
from calendar_engine.services.validation import validate_event, validate_event_data

logger = logging.getLogger(__name__)

# Neighbouring events further away than this cannot raise travel or buffer conflicts
CANDIDATE_MARGIN = timedelta(days=1)


class SchedulingService:
    """
    Scheduling operations for one event store.

    Example:
        >>> service = SchedulingService(InMemoryEventRepository(events))
        >>> conflicts = service.check_conflicts(new_event, user_id="u1")
    """

    def __init__(
        self,
        repository: EventRepository,
        detector: Optional[ConflictDetector] = None,
        settings: Optional[Settings] = None,
    ):
        self._settings = settings or get_settings()
        self._repository = repository
        self._detector = detector or ConflictDetector(self._settings.conflict_config())

    @property
    def detector(self) -> ConflictDetector:
        return self._detector

    def get_events_in_range(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
        expand_recurring: bool = True,
    ) -> list[CalendarEvent]:
        """
        Get a user's events within a time range.

        Args:
            user_id: Owner of the events
            start: Range start (inclusive; naive values are UTC)
            end: Range end (inclusive; naive values are UTC)
            expand_recurring: Replace recurring events by their instances

        Returns:
            Events ordered by UTC start
        """
        stored = self._repository.get_events_in_range(user_id, start, end)
        if not expand_recurring:
            return sorted(stored, key=lambda e: (to_utc(e.start_time, e.timezone), e.id))

        return expand_events(
            stored, start, end, max_instances=self._settings.recurrence_max_instances
        )

    def check_conflicts(
        self,
        event: CalendarEvent,
        user_id: str,
        options: Optional[DetectionOptions] = None,
    ) -> list[Conflict]:
        """
        Check an event against the user's stored schedule.

        Recurring events are checked instance by instance across the
        detection window. The event's own stored copy and instances are
        never reported as conflicts.

        Returns:
            Conflicts sorted by severity, then overlap
        """
        if event is None:
            raise ContractViolationError("Event is required")

        targets = self._targets(event)
        if not targets:
            return []

        candidates = self._candidates(event, user_id, targets)
        conflicts = []
        for target in targets:
            conflicts.extend(self._detector.detect(target, candidates, options))

        logger.debug(f"Event {event.id} has {len(conflicts)} conflicts")
        return sort_conflicts(conflicts)

    def validate(
        self,
        event: CalendarEvent,
        user_id: str,
        rules: Optional[SchedulingRules],
    ) -> ValidationResult:
        """
        Validate an event's data and business rules against the user's schedule.

        Returns:
            Data integrity findings merged with business rule findings
        """
        if event is None:
            raise ContractViolationError("Event is required")

        data_result = validate_event_data(event)
        candidates = self._candidates(event, user_id, [event])
        return data_result.merge(validate_event(event, candidates, rules, self._detector))

    def optimize_range(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
        constraints: Optional[ReschedulingConstraints] = None,
    ) -> list[CalendarEvent]:
        """
        Propose a conflict-free schedule for a range.

        Nothing is written back to the repository; callers apply the moves
        they accept.

        Returns:
            Expanded events in start order, with movable conflicts relocated
        """
        events = self.get_events_in_range(user_id, start, end)
        return optimize_schedule(
            events,
            constraints,
            detector=self._detector,
            slot_minutes=self._settings.optimizer_slot_minutes,
            default_window_days=self._settings.default_rescheduling_window_days,
        )

    def add_recurrence_exception(self, event_id: str, on_date: date) -> CalendarEvent:
        """
        Exclude one date from a recurring series.

        Raises:
            EventNotFoundError: If the event does not exist
            ContractViolationError: If the event is not recurring
        """
        event = self._get_or_raise(event_id)
        if not event.is_recurring:
            raise ContractViolationError(f"Event {event_id} is not recurring")

        pattern = event.recurrence.model_copy(
            update={"exceptions": event.recurrence.exceptions | {on_date}}
        )
        logger.info(f"Adding recurrence exception {on_date.isoformat()} to {event_id}")
        return self._repository.update_event(event_id, {"recurrence": pattern})

    def cancel_event(self, event_id: str) -> CalendarEvent:
        """
        Mark an event cancelled. Cancelled events stay stored but are ignored
        by detection, validation and optimization.

        Raises:
            EventNotFoundError: If the event does not exist
        """
        self._get_or_raise(event_id)
        logger.info(f"Cancelling event {event_id}")
        return self._repository.update_event(event_id, {"status": EventStatus.CANCELLED})

    # =========================================================================
    # Helpers
    # =========================================================================

    def _get_or_raise(self, event_id: str) -> CalendarEvent:
        event = self._repository.get_event_by_id(event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        return event

    def _targets(self, event: CalendarEvent) -> list[CalendarEvent]:
        if not event.is_recurring:
            return [event]
        start = to_utc(event.start_time, event.timezone)
        window = timedelta(days=self._detector.config.detection_window_days)
        return expand_recurrence(
            event, start, start + window, self._settings.recurrence_max_instances
        )

    def _candidates(
        self,
        event: CalendarEvent,
        user_id: str,
        targets: Sequence[CalendarEvent],
    ) -> list[CalendarEvent]:
        range_start = min(to_utc(t.start_time, t.timezone) for t in targets) - CANDIDATE_MARGIN
        range_end = max(to_utc(t.end_time, t.timezone) for t in targets) + CANDIDATE_MARGIN
        existing = self.get_events_in_range(user_id, range_start, range_end)
        return [
            candidate for candidate in existing
            if candidate.id != event.id and candidate.parent_event_id != event.id
        ]
