"""
Service layer for the scheduling engine.

Provides:
- Time & zone utilities (resolution, conversion, working hours)
- Recurrence expansion (pattern stepping, RRULE interop)
- Conflict detection (overlap, travel time, buffers)
- Scheduling validation (business rules, data integrity)
- Schedule optimization (priority-ordered slot search)
- SchedulingService facade over an EventRepository
"""

from calendar_engine.services.timezones import (
    FellBackToUtc,
    Participant,
    ResolvedZone,
    ZoneDetails,
    available_zones,
    convert,
    event_in_zones,
    format_in_zone,
    is_valid_zone,
    overlap_across_zones,
    resolve_zone,
    suggest_meeting_times,
    to_utc,
    working_hours_in_zone,
    zone_info,
)

from calendar_engine.services.recurrence import (
    expand_events,
    expand_recurrence,
    format_recurrence_id,
    iter_occurrences,
    next_occurrence,
    parse_recurrence_id,
    parse_rrule,
    pattern_to_rrule,
    validate_pattern,
)

from calendar_engine.services.conflicts import ConflictDetector, sort_conflicts

from calendar_engine.services.validation import validate_event, validate_event_data

from calendar_engine.services.optimizer import find_free_slot, optimize_schedule

from calendar_engine.services.scheduling_service import SchedulingService

__all__ = [
    # Time & zones
    "FellBackToUtc",
    "Participant",
    "ResolvedZone",
    "ZoneDetails",
    "available_zones",
    "convert",
    "event_in_zones",
    "format_in_zone",
    "is_valid_zone",
    "overlap_across_zones",
    "resolve_zone",
    "suggest_meeting_times",
    "to_utc",
    "working_hours_in_zone",
    "zone_info",
    # Recurrence
    "expand_events",
    "expand_recurrence",
    "format_recurrence_id",
    "iter_occurrences",
    "next_occurrence",
    "parse_recurrence_id",
    "parse_rrule",
    "pattern_to_rrule",
    "validate_pattern",
    # Conflicts
    "ConflictDetector",
    "sort_conflicts",
    # Validation
    "validate_event",
    "validate_event_data",
    # Optimization
    "find_free_slot",
    "optimize_schedule",
    # Facade
    "SchedulingService",
]
