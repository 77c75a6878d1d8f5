"""
Schedule optimization service.

Resolves overlaps by moving lower-priority events to the next free slot:
- Higher priority events are placed first and never move for lower ones
- A conflicting event searches forward from its original start
- Slots keep the event's duration, the preferred gap, and (when given)
  the working-hours window of the event's own zone
- Weekday events are never moved onto a Saturday or Sunday
- Events with no free slot inside the rescheduling window stay in place
"""

import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone, tzinfo
from typing import Optional, Sequence

from calendar_engine.exceptions import ContractViolationError
from calendar_engine.models.constraints import ReschedulingConstraints, WorkingHours
from calendar_engine.models.events import CalendarEvent
from calendar_engine.services.conflicts import ConflictDetector
from calendar_engine.services.timezones import resolve_zone, restore_like, to_utc

logger = logging.getLogger(__name__)

DEFAULT_SLOT_MINUTES = 30
DEFAULT_WINDOW_DAYS = 7


@dataclass
class PlacedSlot:
    """A UTC range already claimed by a placed event."""

    event_id: str
    start: datetime
    end: datetime


def optimize_schedule(
    events: Sequence[CalendarEvent],
    constraints: Optional[ReschedulingConstraints] = None,
    detector: Optional[ConflictDetector] = None,
    slot_minutes: int = DEFAULT_SLOT_MINUTES,
    default_window_days: int = DEFAULT_WINDOW_DAYS,
) -> list[CalendarEvent]:
    """
    Move overlapping events into free slots.

    Args:
        events: Schedule to optimize (never mutated)
        constraints: Working hours, preferred gap and window; None uses defaults
        detector: Detector used for the placement overlap test
        slot_minutes: Step between candidate slot starts
        default_window_days: Window used when constraints give none

    Returns:
        Events in input order with the same ids. Moved events are copies with
        new start/end times in their original representation; cancelled and
        unmovable events are returned unchanged.

    Raises:
        ContractViolationError: If events is None
    """
    if events is None:
        raise ContractViolationError("Event collection is required for optimization")

    constraints = constraints or ReschedulingConstraints()
    detector = detector or ConflictDetector()

    gap = timedelta(minutes=constraints.preferred_gap_minutes or 0)
    window_days = constraints.max_rescheduling_window_days
    if window_days is None:
        window_days = default_window_days
    step = timedelta(minutes=slot_minutes)

    result = list(events)
    active = []
    for index, event in enumerate(events):
        if event.is_cancelled:
            continue
        try:
            active.append((index, event, to_utc(event.start_time, event.timezone)))
        except (TypeError, ValueError, OverflowError) as e:
            logger.warning(f"Leaving event {event.id} in place: {e}")

    active.sort(key=lambda item: (-item[1].priority.rank, item[2], item[1].id))

    placed: list[PlacedSlot] = []
    placed_events: list[CalendarEvent] = []
    moved = 0

    for index, event, start in active:
        if not any(detector.overlaps(event, other) for other in placed_events):
            placed_events.append(event)
            placed.append(PlacedSlot(event.id, start, to_utc(event.end_time, event.timezone)))
            continue

        duration = to_utc(event.end_time, event.timezone) - start
        tz = resolve_zone(event.timezone).tz
        slot = find_free_slot(
            start,
            duration,
            placed,
            step=step,
            window=timedelta(days=window_days),
            gap=gap,
            working_hours=constraints.working_hours,
            tz=tz,
            skip_weekends=start.astimezone(tz).weekday() < 5,
        )

        if slot is None:
            logger.debug(f"No free slot for {event.id} within {window_days} days; leaving in place")
            placed_events.append(event)
            placed.append(PlacedSlot(event.id, start, start + duration))
            continue

        new_start, new_end = slot
        moved_event = event.model_copy(
            update={
                "start_time": restore_like(new_start, event.start_time, event.timezone),
                "end_time": restore_like(new_end, event.end_time, event.timezone),
            }
        )
        result[index] = moved_event
        placed_events.append(moved_event)
        placed.append(PlacedSlot(event.id, new_start, new_end))
        moved += 1

    logger.info(f"Optimized {len(active)} events, moved {moved}")
    return result


def find_free_slot(
    start: datetime,
    duration: timedelta,
    placed: Sequence[PlacedSlot],
    step: timedelta = timedelta(minutes=DEFAULT_SLOT_MINUTES),
    window: timedelta = timedelta(days=DEFAULT_WINDOW_DAYS),
    gap: timedelta = timedelta(0),
    working_hours: Optional[WorkingHours] = None,
    tz: tzinfo = timezone.utc,
    skip_weekends: bool = False,
) -> Optional[tuple[datetime, datetime]]:
    """
    Find the first free UTC slot after `start`.

    Args:
        start: Original UTC start; the search begins one step later
        duration: Required slot length
        placed: Ranges the slot must keep `gap` away from
        step: Time between candidate starts
        window: Latest allowed start, relative to `start`
        gap: Required distance from every placed range
        working_hours: Daily window in `tz` each slot must fit in
        tz: Zone the working hours and weekdays are read in
        skip_weekends: Never start a slot on a local Saturday or Sunday

    Returns:
        (start, end) in UTC, or None if no slot fits inside the window
    """
    if step <= timedelta(0):
        return None
    if working_hours is not None and not _fits_working_day(duration, working_hours):
        return None

    latest = start + window
    candidate = start + step

    while candidate <= latest:
        if working_hours is not None:
            candidate = _snap_into_working_hours(candidate, duration, working_hours, tz)
        if skip_weekends:
            candidate = _skip_weekend(candidate, working_hours, tz)
        if candidate > latest:
            break

        candidate_end = candidate + duration
        if all(_keeps_gap(candidate, candidate_end, slot, gap) for slot in placed):
            return candidate, candidate_end

        candidate += step

    return None


def _keeps_gap(start: datetime, end: datetime, slot: PlacedSlot, gap: timedelta) -> bool:
    return end + gap <= slot.start or start >= slot.end + gap


def _fits_working_day(duration: timedelta, hours: WorkingHours) -> bool:
    opens = datetime.combine(datetime.min.date(), hours.start)
    closes = datetime.combine(datetime.min.date(), hours.end)
    return duration <= closes - opens


def _skip_weekend(candidate: datetime, hours: Optional[WorkingHours], tz: tzinfo) -> datetime:
    """Move a UTC candidate on a local Saturday or Sunday to Monday's opening time."""
    local = candidate.astimezone(tz)
    if local.weekday() < 5:
        return candidate
    monday = local.date() + timedelta(days=7 - local.weekday())
    opens = hours.start if hours is not None else time(0, 0)
    return datetime.combine(monday, opens, tzinfo=tz).astimezone(timezone.utc)


def _snap_into_working_hours(
    candidate: datetime,
    duration: timedelta,
    hours: WorkingHours,
    tz: tzinfo,
) -> datetime:
    """Move a UTC candidate into the same or next local working day."""
    day = candidate.astimezone(tz).date()
    opens = datetime.combine(day, hours.start, tzinfo=tz).astimezone(timezone.utc)
    closes = datetime.combine(day, hours.end, tzinfo=tz).astimezone(timezone.utc)

    if candidate < opens:
        return opens
    if candidate + duration > closes:
        next_day = day + timedelta(days=1)
        return datetime.combine(next_day, hours.start, tzinfo=tz).astimezone(timezone.utc)
    return candidate
