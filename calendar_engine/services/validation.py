"""
Scheduling validation service.

Two independent checks:
- validate_event: business rules (working hours, weekends, daily and
  concurrent limits, minimum gap) against the existing schedule
- validate_event_data: integrity of a single event (title, time order,
  duration, timezone, recurrence pattern)

Rule violations are reported in a ValidationResult, never raised.
"""

import logging
from datetime import date, timedelta
from typing import Optional, Sequence

from calendar_engine.exceptions import ContractViolationError
from calendar_engine.models.constraints import SchedulingRules, ValidationResult
from calendar_engine.models.events import CalendarEvent
from calendar_engine.services.conflicts import ConflictDetector
from calendar_engine.services.recurrence import validate_pattern
from calendar_engine.services.timezones import as_local, is_valid_zone, to_utc

logger = logging.getLogger(__name__)

MAX_EVENT_DURATION = timedelta(hours=24)


def validate_event(
    event: CalendarEvent,
    existing_events: Sequence[CalendarEvent],
    rules: Optional[SchedulingRules],
    detector: Optional[ConflictDetector] = None,
) -> ValidationResult:
    """
    Validate a candidate event against business rules.

    Errors (fail the event):
    - More than max_events_per_day events on the event's local date
    - More than max_concurrent_events events overlapping at once

    Warnings:
    - Start or end outside working hours (event's own zone; all-day skipped)
    - Saturday/Sunday when allow_weekends is False
    - Nearest neighbour closer than min_event_gap_minutes

    Args:
        event: Candidate event
        existing_events: Current schedule (cancelled events and the
            candidate's own id are ignored)
        rules: Rules to enforce; None or an empty SchedulingRules enforces nothing
        detector: Detector used for overlap and gap tests

    Returns:
        ValidationResult

    Raises:
        ContractViolationError: If event or existing_events is None
    """
    if event is None:
        raise ContractViolationError("Event is required for validation")
    if existing_events is None:
        raise ContractViolationError("Existing event collection is required for validation")

    rules = rules or SchedulingRules()
    detector = detector or ConflictDetector()
    others = [e for e in existing_events if not e.is_cancelled and e.id != event.id]

    errors: list[str] = []
    warnings: list[str] = []

    try:
        local_start = as_local(event.start_time, event.timezone)
        local_end = as_local(event.end_time, event.timezone)
    except (TypeError, ValueError, OverflowError) as e:
        logger.warning(f"Cannot validate event {event.id}: {e}")
        return ValidationResult.from_findings([f"Event times cannot be interpreted: {e}"], [])

    # Working hours
    hours = rules.working_hours
    if hours is not None and not event.all_day:
        if not hours.contains(local_start.time()):
            warnings.append(
                f"Event starts at {local_start:%H:%M}, outside working hours ({hours})"
            )
        if not hours.contains(local_end.time()):
            warnings.append(
                f"Event ends at {local_end:%H:%M}, outside working hours ({hours})"
            )

    # Weekends
    if rules.allow_weekends is False and local_start.weekday() >= 5:
        warnings.append(f"Event is scheduled on a weekend ({local_start:%A})")

    # Daily limit
    if rules.max_events_per_day is not None:
        day = local_start.date()
        same_day = 1 + sum(1 for other in others if _local_date(other, event.timezone) == day)
        if same_day > rules.max_events_per_day:
            errors.append(
                f"Maximum events per day ({rules.max_events_per_day}) exceeded: "
                f"{same_day} events on {day.isoformat()}"
            )

    # Concurrency limit
    if rules.max_concurrent_events is not None:
        concurrent = 1 + sum(1 for other in others if detector.overlaps(event, other))
        if concurrent > rules.max_concurrent_events:
            errors.append(
                f"Maximum concurrent events ({rules.max_concurrent_events}) exceeded: "
                f"{concurrent} events overlap"
            )

    # Minimum gap
    if rules.min_event_gap_minutes is not None and others:
        gaps = [g for g in (detector.gap_minutes(event, other) for other in others) if g is not None]
        if gaps:
            nearest = max(0.0, min(gaps))
            if nearest < rules.min_event_gap_minutes:
                warnings.append(
                    f"Only {nearest:g} minutes to the nearest event; "
                    f"at least {rules.min_event_gap_minutes} recommended"
                )

    if errors:
        logger.debug(f"Event {event.id} failed validation: {errors}")

    return ValidationResult.from_findings(errors, warnings)


def validate_event_data(event: CalendarEvent) -> ValidationResult:
    """
    Check a single event's data integrity.

    Errors: missing title, end before start, more than 24 hours (unless
    all-day), unknown timezone, invalid recurrence pattern.
    Warnings: zero duration.
    """
    if event is None:
        raise ContractViolationError("Event is required for validation")

    errors: list[str] = []
    warnings: list[str] = []

    if not event.title or not event.title.strip():
        errors.append("Title is required")

    try:
        start = to_utc(event.start_time, event.timezone)
        end = to_utc(event.end_time, event.timezone)
    except (TypeError, ValueError, OverflowError) as e:
        errors.append(f"Start and end times cannot be compared: {e}")
    else:
        if end < start:
            errors.append("End time must not be before start time")
        elif end == start:
            warnings.append("Event has zero duration")
        elif not event.all_day and end - start > MAX_EVENT_DURATION:
            errors.append("Event duration cannot exceed 24 hours")

    if not is_valid_zone(event.timezone):
        errors.append(f"Invalid timezone specified: {event.timezone}")

    if event.recurrence is not None:
        errors.extend(validate_pattern(event.recurrence, event.start_time, event.timezone))

    return ValidationResult.from_findings(errors, warnings)


def _local_date(event: CalendarEvent, zone_id: str) -> Optional[date]:
    """Calendar date of an event's start as seen from `zone_id`."""
    try:
        return as_local(to_utc(event.start_time, event.timezone), zone_id).date()
    except (TypeError, ValueError, OverflowError) as e:
        logger.warning(f"Ignoring event {event.id} in daily count: {e}")
        return None
