"""
Pydantic request and response models for the scheduling engine API.

Engine models (CalendarEvent, Conflict, SchedulingRules, ...) are used
directly in request and response bodies.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from calendar_engine.models import (
    CalendarEvent,
    Conflict,
    DetectionOptions,
    ReschedulingConstraints,
    SchedulingRules,
)


# =============================================================================
# Request Models
# =============================================================================


class ExpandRecurrenceRequest(BaseModel):
    """Request to expand a recurring event over a window."""

    event: CalendarEvent = Field(..., description="Base event with a recurrence pattern")
    window_start: datetime = Field(..., description="Window start (naive values are UTC)")
    window_end: datetime = Field(..., description="Window end (naive values are UTC)")
    max_instances: Optional[int] = Field(
        None,
        ge=1,
        le=10000,
        description="Override the configured safety cap",
    )

    @model_validator(mode="after")
    def validate_window(self) -> "ExpandRecurrenceRequest":
        start = self.window_start
        end = self.window_end
        if (start.tzinfo is None) == (end.tzinfo is None) and end < start:
            raise ValueError("window_end must not be before window_start")
        return self


class DetectConflictsRequest(BaseModel):
    """Request to check one event against candidates."""

    event: CalendarEvent = Field(..., description="Event being checked")
    candidates: list[CalendarEvent] = Field(
        default_factory=list,
        description="Existing events to check against",
    )
    options: Optional[DetectionOptions] = Field(
        None,
        description="Travel/buffer switches (defaults: both enabled)",
    )


class BatchConflictsRequest(BaseModel):
    """Request to detect all conflicts within a collection."""

    events: list[CalendarEvent] = Field(..., description="Events to check")
    options: Optional[DetectionOptions] = None


class ValidateEventRequest(BaseModel):
    """Request to validate an event's data and business rules."""

    event: CalendarEvent = Field(..., description="Candidate event")
    existing_events: list[CalendarEvent] = Field(
        default_factory=list,
        description="Current schedule",
    )
    rules: SchedulingRules = Field(
        default_factory=SchedulingRules,
        description="Rules to enforce (omitted fields are not enforced)",
    )


class OptimizeRequest(BaseModel):
    """Request to resolve overlaps by moving events."""

    events: list[CalendarEvent] = Field(..., description="Schedule to optimize")
    constraints: Optional[ReschedulingConstraints] = None


# =============================================================================
# Response Models
# =============================================================================


class ExpandRecurrenceResponse(BaseModel):
    """Materialized instances of a recurring event."""

    instances: list[CalendarEvent] = Field(..., description="Instances ordered by start")
    total: int = Field(..., description="Number of instances")


class ConflictListResponse(BaseModel):
    """Conflicts for a single event."""

    event_id: str = Field(..., description="Checked event")
    has_conflicts: bool
    conflicts: list[Conflict] = Field(
        default_factory=list,
        description="Sorted by severity, then overlap minutes",
    )


class BatchConflictsResponse(BaseModel):
    """Conflicts for every event in a batch."""

    conflicts: dict[str, list[Conflict]] = Field(
        default_factory=dict,
        description="Event id to its conflicts; events without conflicts are omitted",
    )
    events_with_conflicts: int = Field(..., description="Number of keys in conflicts")


class OptimizeResponse(BaseModel):
    """Optimized schedule."""

    events: list[CalendarEvent] = Field(..., description="Events in request order")
    moved_event_ids: list[str] = Field(
        default_factory=list,
        description="Events whose times changed",
    )


class ZoneInfoResponse(BaseModel):
    """Zone details at an instant."""

    zone_id: str = Field(..., description="Resolved zone (UTC when invalid)")
    requested: str = Field(..., description="Zone id as requested")
    is_valid: bool = Field(..., description="Whether the requested id is recognized")
    utc_offset_minutes: int
    abbreviation: str
    is_dst: bool


class ErrorResponse(BaseModel):
    """Error information for failed requests."""

    error_type: Literal[
        "validation_error",
        "contract_violation",
        "not_found",
        "http_error",
        "internal_error",
    ] = Field(..., description="Type of error")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[dict] = Field(None, description="Additional error details")
    retryable: bool = Field(default=False, description="Whether request can be retried")


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["healthy", "unhealthy"] = Field(..., description="Health status")
    version: str = Field(..., description="API version")
    timezone_database: bool = Field(..., description="IANA zone database available")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "healthy",
                "version": "0.1.0",
                "timezone_database": True,
            }
        }
    )
