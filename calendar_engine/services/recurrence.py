"""
Recurrence expansion service.

Expands a base event's RecurrencePattern into concrete instances for a
query window:
- Pure next-occurrence stepping (no mutation of the input)
- Lazy, restartable instance iteration
- Exception dates, weekday filter, count/until bounds and a safety cap

Uses python-dateutil for calendar arithmetic and RRULE interoperability.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Iterator, Optional

from dateutil.parser import parse as parse_datetime
from dateutil.relativedelta import relativedelta
from dateutil.rrule import rrule, rrulestr

from calendar_engine.models.base import Frequency
from calendar_engine.models.events import CalendarEvent, RecurrencePattern
from calendar_engine.services.timezones import as_local, to_utc

logger = logging.getLogger(__name__)

DEFAULT_MAX_INSTANCES = 1000
MAX_PATTERN_COUNT = 1000

# Covers UTC offset changes between the series start and the window
FAST_FORWARD_MARGIN = timedelta(days=1)

_RRULE_FREQ = {
    Frequency.DAILY: "DAILY",
    Frequency.WEEKLY: "WEEKLY",
    Frequency.MONTHLY: "MONTHLY",
    Frequency.YEARLY: "YEARLY",
}

# 0=Sunday .. 6=Saturday
_RRULE_DAYS = ["SU", "MO", "TU", "WE", "TH", "FR", "SA"]


def next_occurrence(current: datetime, pattern: RecurrencePattern) -> datetime:
    """
    Compute the occurrence after `current`.

    Monthly and yearly steps clamp to the last day of shorter months
    (Jan 31 -> Feb 28), and later steps continue from the clamped day.

    Args:
        current: Current occurrence start (wall-clock arithmetic is used)
        pattern: Recurrence pattern

    Returns:
        New datetime; `current` is not modified
    """
    interval = pattern.interval
    if pattern.frequency == Frequency.DAILY:
        return current + relativedelta(days=interval)
    if pattern.frequency == Frequency.WEEKLY:
        return current + relativedelta(days=7 * interval)
    if pattern.frequency == Frequency.MONTHLY:
        return current + relativedelta(months=interval)
    return current + relativedelta(years=interval)


def sunday_based_weekday(value: datetime | date) -> int:
    """Weekday number with 0=Sunday .. 6=Saturday."""
    return (value.weekday() + 1) % 7


def iter_occurrences(
    event: CalendarEvent,
    window_start: datetime,
    window_end: datetime,
    max_instances: int = DEFAULT_MAX_INSTANCES,
) -> Iterator[CalendarEvent]:
    """
    Lazily yield the instances of an event that overlap a query window.

    Each call starts a fresh iteration; nothing is cached between calls.

    Args:
        event: Base event (non-recurring events yield themselves if they overlap)
        window_start: Window start (inclusive; naive values are UTC)
        window_end: Window end (inclusive; naive values are UTC)
        max_instances: Safety cap on stepped occurrences. Daily and weekly
            series without a count skip the steps that end before the
            window; monthly, yearly and counted series are stepped from
            their first occurrence

    Yields:
        Instances ordered by start, each with parent_event_id,
        original_start_time and no recurrence
    """
    if window_start is None or window_end is None:
        return

    win_start = to_utc(window_start)
    win_end = to_utc(window_end)

    pattern = event.recurrence
    if pattern is None:
        if _overlaps_window(event.start_time, event.end_time, event.timezone, win_start, win_end):
            yield event
        return

    try:
        duration = event.end_time - event.start_time
    except TypeError as e:
        logger.warning(f"Cannot expand event {event.id}: {e}")
        return

    zone_id = event.timezone
    current = event.start_time
    if current.tzinfo is not None:
        # Step in the event's own wall clock so DST keeps the local time
        current = as_local(current, zone_id)

    until = to_utc(pattern.until, zone_id) if pattern.until is not None else None
    if pattern.count is None:
        current = _fast_forward(current, pattern, duration, zone_id, win_start)
    generated = 0
    stepped = 0

    while stepped < max_instances:
        current_utc = to_utc(current, zone_id)
        if until is not None and current_utc > until:
            break
        if current_utc > win_end:
            break
        stepped += 1

        if _is_candidate(current, pattern):
            generated += 1
            end = _instance_end(current, duration)
            if _overlaps_window(current, end, zone_id, win_start, win_end):
                yield _materialize(event, current, end)
            if pattern.count is not None and generated >= pattern.count:
                break

        current = next_occurrence(current, pattern)
    else:
        logger.debug(f"Recurrence expansion of {event.id} hit the {max_instances} instance cap")


def expand_recurrence(
    event: CalendarEvent,
    window_start: datetime,
    window_end: datetime,
    max_instances: int = DEFAULT_MAX_INSTANCES,
) -> list[CalendarEvent]:
    """
    Expand a recurring event into instances within a time window.

    Args:
        event: Base event with a RecurrencePattern
        window_start: Start of query window
        window_end: End of query window
        max_instances: Safety cap on stepped occurrences

    Returns:
        List of instances ordered by start
    """
    return list(iter_occurrences(event, window_start, window_end, max_instances))


def expand_events(
    events: Iterable[CalendarEvent],
    window_start: datetime,
    window_end: datetime,
    max_instances: int = DEFAULT_MAX_INSTANCES,
) -> list[CalendarEvent]:
    """
    Expand a mixed collection for a range query.

    Recurring events are replaced by their instances; other events pass
    through when they overlap the window.

    Returns:
        Events ordered by UTC start, then id
    """
    expanded = []
    for event in events:
        expanded.extend(iter_occurrences(event, window_start, window_end, max_instances))
    return sorted(expanded, key=lambda e: (_sort_instant(e), e.id))


def _fast_forward(
    current: datetime,
    pattern: RecurrencePattern,
    duration: timedelta,
    zone_id: Optional[str],
    win_start: datetime,
) -> datetime:
    """
    Skip whole daily/weekly steps that end before the window.

    Only valid without a count. Monthly and yearly steps continue from
    clamped days, so they are always stepped one by one.
    """
    if pattern.frequency == Frequency.DAILY:
        step_days = pattern.interval
    elif pattern.frequency == Frequency.WEEKLY:
        step_days = 7 * pattern.interval
    else:
        return current

    try:
        lag = win_start - to_utc(current, zone_id) - max(duration, timedelta(0)) - FAST_FORWARD_MARGIN
    except (TypeError, ValueError, OverflowError):
        return current

    skipped = lag // timedelta(days=step_days)
    if skipped <= 0:
        return current
    return current + relativedelta(days=skipped * step_days)


def _is_candidate(current: datetime, pattern: RecurrencePattern) -> bool:
    if (
        pattern.frequency == Frequency.WEEKLY
        and pattern.by_week_day
        and sunday_based_weekday(current) not in pattern.by_week_day
    ):
        return False
    return current.date() not in pattern.exceptions


def _instance_end(start: datetime, duration: timedelta) -> datetime:
    """Keep the absolute duration even when the instance spans a DST change."""
    if start.tzinfo is None:
        return start + duration
    return (start.astimezone(timezone.utc) + duration).astimezone(start.tzinfo)


def _overlaps_window(start, end, zone_id, win_start, win_end) -> bool:
    try:
        return to_utc(start, zone_id) <= win_end and to_utc(end, zone_id) >= win_start
    except (TypeError, ValueError, OverflowError):
        return False


def _materialize(event: CalendarEvent, start: datetime, end: datetime) -> CalendarEvent:
    return event.model_copy(
        update={
            "id": f"{event.id}_{format_recurrence_id(start)}",
            "start_time": start,
            "end_time": end,
            "recurrence": None,
            "parent_event_id": event.id,
            "original_start_time": start,
        },
        deep=True,
    )


def _sort_instant(event: CalendarEvent) -> datetime:
    try:
        return to_utc(event.start_time, event.timezone)
    except (TypeError, ValueError, OverflowError):
        return datetime.min.replace(tzinfo=timezone.utc)


# =============================================================================
# Pattern Validation & RRULE Interop
# =============================================================================


def validate_pattern(
    pattern: RecurrencePattern,
    base_start: Optional[datetime] = None,
    zone_id: Optional[str] = None,
) -> list[str]:
    """
    Validate a recurrence pattern beyond its field constraints.

    Args:
        pattern: Pattern to check
        base_start: Series start, used to check `until`
        zone_id: Zone owning naive values

    Returns:
        List of error messages (empty when valid)
    """
    errors = []

    if pattern.count is not None and pattern.count > MAX_PATTERN_COUNT:
        errors.append(f"Recurrence count must be between 1 and {MAX_PATTERN_COUNT}")

    if pattern.by_week_day and pattern.frequency != Frequency.WEEKLY:
        errors.append("Weekday filter is only supported for weekly recurrence")

    if pattern.until is not None and base_start is not None:
        try:
            if to_utc(pattern.until, zone_id) < to_utc(base_start, zone_id):
                errors.append("Recurrence end date cannot be before the event start")
        except (TypeError, ValueError, OverflowError):
            errors.append("Recurrence end date is not comparable with the event start")

    return errors


def pattern_to_rrule(pattern: RecurrencePattern, zone_id: Optional[str] = "UTC") -> str:
    """
    Render a pattern as an iCalendar RRULE string.

    Exception dates have no RRULE representation (they are EXDATEs) and are
    not included.

    Returns:
        String like 'FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE;COUNT=10'
    """
    parts = [f"FREQ={_RRULE_FREQ[pattern.frequency]}", f"INTERVAL={pattern.interval}"]

    if pattern.frequency == Frequency.WEEKLY and pattern.by_week_day:
        days = ",".join(_RRULE_DAYS[d] for d in sorted(pattern.by_week_day))
        parts.append(f"BYDAY={days}")

    if pattern.count is not None:
        parts.append(f"COUNT={pattern.count}")

    if pattern.until is not None:
        until = to_utc(pattern.until, zone_id)
        parts.append(f"UNTIL={until.strftime('%Y%m%dT%H%M%SZ')}")

    return ";".join(parts)


def parse_rrule(rrule_string: str, dtstart: datetime) -> Optional[rrule]:
    """
    Parse an RRULE string into a dateutil rrule object.

    Args:
        rrule_string: iCalendar RRULE string (e.g., 'FREQ=WEEKLY;BYDAY=MO,WE,FR')
        dtstart: Start datetime for the recurrence

    Returns:
        rrule object or None if parsing fails
    """
    if not rrule_string:
        return None

    try:
        return rrulestr(rrule_string, dtstart=dtstart)
    except (ValueError, TypeError, KeyError) as e:
        logger.debug(f"Could not parse RRULE '{rrule_string}': {e}")
        return None


def format_recurrence_id(dt: datetime) -> str:
    """
    Format a datetime as a recurrence ID (iCalendar RECURRENCE-ID format).

    Args:
        dt: Datetime to format

    Returns:
        String in YYYYMMDDTHHMMSS format
    """
    return dt.strftime("%Y%m%dT%H%M%S")


def parse_recurrence_id(recurrence_id: str) -> Optional[datetime]:
    """
    Parse a recurrence ID back to a datetime.

    Args:
        recurrence_id: String in YYYYMMDDTHHMMSS format

    Returns:
        Datetime or None if parsing fails
    """
    try:
        return parse_datetime(recurrence_id)
    except (ValueError, TypeError, OverflowError):
        return None
