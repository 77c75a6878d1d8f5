"""
Time and zone utilities.

Pure functions for:
- Resolving IANA zone ids (never raising on bad user input)
- Converting instants between zones
- Formatting instants for display
- Translating working-hours windows across zones
- Timezone-aware overlap checks

Datetime convention used across the engine:
- Aware datetimes are absolute instants
- Naive datetimes are wall-clock readings in the owning event's zone
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Optional, Sequence, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from calendar_engine.models.constraints import WorkingHours

logger = logging.getLogger(__name__)

UTC_ZONE_ID = "UTC"
DEFAULT_WORKING_HOURS = WorkingHours(start=time(9, 0), end=time(17, 0))


# =============================================================================
# Zone Resolution
# =============================================================================


@dataclass(frozen=True)
class ResolvedZone:
    """A zone id that the zone database recognized."""

    zone_id: str
    tz: tzinfo


@dataclass(frozen=True)
class FellBackToUtc:
    """A zone id that could not be resolved; UTC is used in its place."""

    requested: object
    reason: str
    zone_id: str = UTC_ZONE_ID
    tz: tzinfo = timezone.utc


ZoneResolution = Union[ResolvedZone, FellBackToUtc]


def resolve_zone(zone_id: Optional[str]) -> ZoneResolution:
    """
    Resolve a zone id without ever raising.

    Args:
        zone_id: IANA zone identifier (e.g., 'America/New_York')

    Returns:
        ResolvedZone, or FellBackToUtc for empty, non-string or unknown ids
    """
    if not isinstance(zone_id, str) or not zone_id.strip():
        return FellBackToUtc(requested=zone_id, reason="empty or non-string zone id")

    try:
        return ResolvedZone(zone_id=zone_id, tz=ZoneInfo(zone_id))
    except (ZoneInfoNotFoundError, ValueError, TypeError, OSError) as e:
        logger.debug(f"Falling back to UTC for zone '{zone_id}': {e}")
        return FellBackToUtc(requested=zone_id, reason=str(e) or type(e).__name__)


def is_valid_zone(zone_id: Optional[str]) -> bool:
    """
    Check whether a zone id is recognized.

    Returns:
        False for None, empty, non-string or unknown ids; never raises
    """
    return isinstance(resolve_zone(zone_id), ResolvedZone)


# =============================================================================
# Instant Helpers
# =============================================================================


def localize(value: datetime, zone_id: Optional[str]) -> datetime:
    """Attach the zone to a naive wall-clock value; aware values pass through."""
    if value.tzinfo is None:
        return value.replace(tzinfo=resolve_zone(zone_id).tz)
    return value


def to_utc(value: datetime, zone_id: Optional[str] = UTC_ZONE_ID) -> datetime:
    """Absolute UTC instant for a value owned by `zone_id`."""
    return localize(value, zone_id).astimezone(timezone.utc)


def as_local(value: datetime, zone_id: Optional[str]) -> datetime:
    """Aware datetime expressed in `zone_id` (UTC if the id is unknown)."""
    return localize(value, zone_id).astimezone(resolve_zone(zone_id).tz)


def restore_like(instant: datetime, template: datetime, zone_id: Optional[str]) -> datetime:
    """
    Express an instant in the same representation as `template`.

    Naive templates get a naive wall-clock value in `zone_id`; aware templates
    get an aware value in the template's tzinfo.
    """
    if template.tzinfo is None:
        return as_local(instant, zone_id).replace(tzinfo=None)
    return localize(instant, zone_id).astimezone(template.tzinfo)


# =============================================================================
# Zone Information & Conversion
# =============================================================================


@dataclass
class ZoneDetails:
    """Zone facts at a particular instant."""

    zone_id: str
    utc_offset_minutes: int
    abbreviation: str
    is_dst: bool


def zone_info(zone_id: Optional[str], at: Optional[datetime] = None) -> ZoneDetails:
    """
    Get zone information at an instant.

    Args:
        zone_id: IANA zone identifier
        at: Instant to evaluate (naive values are read as UTC; default: now)

    Returns:
        ZoneDetails; UTC's details when the zone id is unknown
    """
    resolution = resolve_zone(zone_id)
    moment = to_utc(at) if at is not None else datetime.now(timezone.utc)
    local = moment.astimezone(resolution.tz)

    offset = local.utcoffset() or timedelta(0)
    dst = local.dst() or timedelta(0)

    return ZoneDetails(
        zone_id=resolution.zone_id,
        utc_offset_minutes=int(offset.total_seconds() / 60),
        abbreviation=local.tzname() or resolution.zone_id,
        is_dst=dst != timedelta(0),
    )


def convert(instant: datetime, from_zone: Optional[str], to_zone: Optional[str]) -> datetime:
    """
    Convert an instant from one zone to another.

    Args:
        instant: Value to convert (naive values are wall-clock in from_zone)
        from_zone: Zone owning naive values
        to_zone: Target zone

    Returns:
        Aware datetime in to_zone representing the same instant, or the
        original value unchanged when to_zone is invalid
    """
    target = resolve_zone(to_zone)
    if isinstance(target, FellBackToUtc):
        logger.debug(f"Not converting to unknown zone '{to_zone}'")
        return instant
    return localize(instant, from_zone).astimezone(target.tz)


def format_in_zone(
    instant: datetime,
    zone_id: Optional[str],
    style: str = "long",
    include_zone: bool = True,
    source_zone: Optional[str] = UTC_ZONE_ID,
) -> str:
    """
    Format an instant for display in a zone.

    Args:
        instant: Value to format (naive values are wall-clock in source_zone)
        zone_id: Display zone (UTC if unknown)
        style: 'short' (Dec 1, 2025, 10:00 AM), 'long' (December 1, 2025 at
            10:00 AM) or 'full' (Monday, December 1, 2025 at 10:00 AM)
        include_zone: Append the zone abbreviation ('full' appends the zone id)
        source_zone: Zone owning naive values

    Returns:
        Display string
    """
    resolution = resolve_zone(zone_id)
    local = localize(instant, source_zone).astimezone(resolution.tz)

    clock = f"{local.hour % 12 or 12}:{local.minute:02d} {'AM' if local.hour < 12 else 'PM'}"
    if style == "short":
        text = f"{local.strftime('%b')} {local.day}, {local.year}, {clock}"
    elif style == "full":
        text = f"{local.strftime('%A, %B')} {local.day}, {local.year} at {clock}"
    else:
        text = f"{local.strftime('%B')} {local.day}, {local.year} at {clock}"

    if include_zone:
        suffix = resolution.zone_id if style == "full" else (local.tzname() or resolution.zone_id)
        text = f"{text} {suffix}"
    return text


# =============================================================================
# Working Hours
# =============================================================================


@dataclass
class WorkingHoursTranslation:
    """
    A working-hours window re-expressed in another zone.

    day_offset / end_day_offset give the calendar-day shift of the translated
    start and end relative to the requested date (e.g. +1 for next day).
    """

    start: time
    end: time
    crosses_day_boundary: bool
    day_offset: int = 0
    end_day_offset: int = 0


def working_hours_in_zone(
    hours: WorkingHours,
    from_zone: Optional[str],
    to_zone: Optional[str],
    on_date: date,
) -> WorkingHoursTranslation:
    """
    Translate a wall-clock window in one zone into the equivalent window in another.

    Example: 09:00-17:00 America/New_York on a July date is 22:00-06:00 in
    Asia/Tokyo, ending on the next calendar day.

    Args:
        hours: Window defined in from_zone
        from_zone: Zone the window is defined in
        to_zone: Zone to express the window in
        on_date: Calendar date (DST makes the translation date-dependent)

    Returns:
        WorkingHoursTranslation flagging any spill into another calendar day
    """
    source = resolve_zone(from_zone).tz
    target = resolve_zone(to_zone).tz

    start = datetime.combine(on_date, hours.start, tzinfo=source).astimezone(target)
    end = datetime.combine(on_date, hours.end, tzinfo=source).astimezone(target)

    day_offset = (start.date() - on_date).days
    end_day_offset = (end.date() - on_date).days

    return WorkingHoursTranslation(
        start=start.time(),
        end=end.time(),
        crosses_day_boundary=day_offset != 0 or end_day_offset != 0,
        day_offset=day_offset,
        end_day_offset=end_day_offset,
    )


# =============================================================================
# Overlap & Multi-Zone Views
# =============================================================================


def overlap_across_zones(event_a, event_b) -> bool:
    """
    Check if two events overlap, comparing both in UTC.

    Accepts anything with start_time, end_time and timezone attributes.
    Never raises on bad zones or mixed naive/aware values: falls back to a
    wall-clock comparison, and to False if even that is impossible.
    """
    try:
        a_start = to_utc(event_a.start_time, event_a.timezone)
        a_end = to_utc(event_a.end_time, event_a.timezone)
        b_start = to_utc(event_b.start_time, event_b.timezone)
        b_end = to_utc(event_b.end_time, event_b.timezone)
        return a_start < b_end and b_start < a_end
    except (TypeError, ValueError, OverflowError) as e:
        logger.warning(f"Timezone-aware overlap failed, comparing wall clocks: {e}")

    try:
        a_start, a_end = _naive(event_a.start_time), _naive(event_a.end_time)
        b_start, b_end = _naive(event_b.start_time), _naive(event_b.end_time)
        return a_start < b_end and b_start < a_end
    except (TypeError, ValueError, AttributeError):
        return False


def _naive(value: datetime) -> datetime:
    return value.replace(tzinfo=None)


@dataclass
class ZonedEventView:
    """An event's times as seen from one display zone."""

    start_time: datetime
    end_time: datetime
    display_time: str
    is_next_day: bool


def event_in_zones(event, zone_ids: Sequence[str]) -> dict[str, ZonedEventView]:
    """
    Create a multi-zone view of an event.

    Args:
        event: Event with start_time, end_time and timezone
        zone_ids: Display zones

    Returns:
        Mapping of zone id to the event's times in that zone. is_next_day is
        True when the start falls on a different calendar date than in the
        event's own zone.
    """
    home_start = as_local(event.start_time, event.timezone)
    views = {}

    for zone_id in zone_ids:
        start = as_local(event.start_time, event.timezone).astimezone(resolve_zone(zone_id).tz)
        end = as_local(event.end_time, event.timezone).astimezone(resolve_zone(zone_id).tz)
        views[zone_id] = ZonedEventView(
            start_time=start,
            end_time=end,
            display_time=format_in_zone(start, zone_id, style="short", include_zone=False),
            is_next_day=start.date() != home_start.date(),
        )

    return views


@dataclass
class Participant:
    """A meeting participant's zone and (optional) working hours."""

    timezone: str
    working_hours: Optional[WorkingHours] = None


def suggest_meeting_times(
    participants: Sequence[Participant],
    duration_minutes: int,
    on_date: date,
    limit: int = 5,
    slot_interval: timedelta = timedelta(minutes=30),
) -> list[datetime]:
    """
    Suggest UTC meeting starts that fit every participant's working hours.

    Args:
        participants: Participants (default hours 09:00-17:00 local)
        duration_minutes: Meeting length
        on_date: UTC calendar date to search
        limit: Maximum suggestions
        slot_interval: Time between candidate starts

    Returns:
        Up to `limit` aware UTC datetimes, earliest first
    """
    if not participants or duration_minutes <= 0:
        return []

    windows = []
    for participant in participants:
        hours = participant.working_hours or DEFAULT_WORKING_HOURS
        tz = resolve_zone(participant.timezone).tz
        windows.append((
            datetime.combine(on_date, hours.start, tzinfo=tz).astimezone(timezone.utc),
            datetime.combine(on_date, hours.end, tzinfo=tz).astimezone(timezone.utc),
        ))

    duration = timedelta(minutes=duration_minutes)
    day_start = datetime.combine(on_date, time(0, 0), tzinfo=timezone.utc)
    day_end = day_start + timedelta(days=1)

    suggestions = []
    current = day_start
    while current < day_end and len(suggestions) < limit:
        slot_end = current + duration
        if all(start <= current and slot_end <= end for start, end in windows):
            suggestions.append(current)
        current += slot_interval

    return suggestions


# =============================================================================
# Zone Catalogue
# =============================================================================


@dataclass
class ZoneOption:
    value: str
    label: str
    region: str


_COMMON_ZONES = [
    ZoneOption("America/New_York", "Eastern Time", "Americas"),
    ZoneOption("America/Chicago", "Central Time", "Americas"),
    ZoneOption("America/Denver", "Mountain Time", "Americas"),
    ZoneOption("America/Los_Angeles", "Pacific Time", "Americas"),
    ZoneOption("America/Sao_Paulo", "Brasilia Time", "Americas"),
    ZoneOption("Europe/London", "Greenwich Mean Time", "Europe"),
    ZoneOption("Europe/Paris", "Central European Time", "Europe"),
    ZoneOption("Europe/Berlin", "Central European Time", "Europe"),
    ZoneOption("Europe/Moscow", "Moscow Standard Time", "Europe"),
    ZoneOption("Asia/Tokyo", "Japan Standard Time", "Asia"),
    ZoneOption("Asia/Shanghai", "China Standard Time", "Asia"),
    ZoneOption("Asia/Singapore", "Singapore Standard Time", "Asia"),
    ZoneOption("Asia/Kolkata", "India Standard Time", "Asia"),
    ZoneOption("Asia/Dubai", "Gulf Standard Time", "Asia"),
    ZoneOption("Australia/Sydney", "Australian Eastern Time", "Oceania"),
    ZoneOption("Pacific/Auckland", "New Zealand Standard Time", "Oceania"),
    ZoneOption("Africa/Cairo", "Eastern European Time", "Africa"),
    ZoneOption("Africa/Johannesburg", "South Africa Standard Time", "Africa"),
    ZoneOption(UTC_ZONE_ID, "Coordinated Universal Time", "UTC"),
]


def available_zones() -> list[ZoneOption]:
    """Common zones sorted by region, then label."""
    return sorted(_COMMON_ZONES, key=lambda z: (z.region, z.label, z.value))
