"""
Event models.

Entities:
- RecurrencePattern: Frequency/interval rule with bounds and exception dates
- CalendarEvent: A time-boxed event, possibly recurring or a materialized instance
"""

from datetime import date, datetime, timedelta
from typing import Any, Optional

from pydantic import Field, field_validator

from calendar_engine.models.base import (
    EngineModel,
    EventPriority,
    EventStatus,
    Frequency,
)


class RecurrencePattern(EngineModel):
    """
    Recurrence rule attached to a base event.

    Bounds:
    - count: stop after this many (non-excepted) occurrences
    - until: stop once the next occurrence is later than this instant
    If both are set, whichever is reached first wins. Neither set means the
    series is bounded only by the query window and the expansion safety cap.

    Weekday numbers follow the storage format: 0=Sunday .. 6=Saturday.
    """

    frequency: Frequency = Field(..., description="daily, weekly, monthly or yearly")
    interval: int = Field(
        default=1,
        ge=1,
        le=999,
        description="Every N days/weeks/months/years",
    )
    count: Optional[int] = Field(
        default=None,
        ge=1,
        description="Number of occurrences in the series",
    )
    until: Optional[datetime] = Field(
        default=None,
        description="Last instant an occurrence may start at",
    )
    by_week_day: Optional[set[int]] = Field(
        default=None,
        description="Weekday filter (0=Sunday..6=Saturday), weekly only",
    )
    exceptions: set[date] = Field(
        default_factory=set,
        description="Calendar dates whose occurrence is suppressed",
    )

    @field_validator("by_week_day")
    @classmethod
    def validate_week_days(cls, v: Optional[set[int]]) -> Optional[set[int]]:
        if v is None:
            return v
        invalid = sorted(day for day in v if day < 0 or day > 6)
        if invalid:
            raise ValueError(f"Weekday numbers must be 0-6, got {invalid}")
        return v

    @field_validator("exceptions", mode="before")
    @classmethod
    def coerce_exception_dates(cls, v: Any) -> Any:
        """Accept datetimes and ISO datetime strings, keeping only their date."""
        if v is None:
            return set()
        coerced = []
        for item in v:
            if isinstance(item, datetime):
                coerced.append(item.date())
            elif isinstance(item, str) and "T" in item:
                coerced.append(datetime.fromisoformat(item.replace("Z", "+00:00")).date())
            else:
                coerced.append(item)
        return coerced


class CalendarEvent(EngineModel):
    """
    Normalized event representation consumed by every engine component.

    Times:
    - Aware datetimes are absolute instants
    - Naive datetimes are wall-clock readings in `timezone`

    end_time >= start_time is NOT enforced here: events synced from external
    calendars may violate it, and the validator reports it instead.

    Instances materialized from a recurring event carry parent_event_id and
    original_start_time and have no recurrence of their own.
    """

    id: str = Field(..., description="Opaque event identifier")
    user_id: str = Field(default="", description="Owner identifier")
    title: str = Field(default="", description="Event title")
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    timezone: str = Field(default="UTC", description="Authoring IANA timezone")
    all_day: bool = False
    location: Optional[str] = None
    virtual_meeting_url: Optional[str] = None
    attendees: list[str] = Field(default_factory=list)
    priority: EventPriority = EventPriority.NORMAL
    status: EventStatus = EventStatus.CONFIRMED
    recurrence: Optional[RecurrencePattern] = None
    parent_event_id: Optional[str] = None
    original_start_time: Optional[datetime] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def duration(self) -> timedelta:
        """Raw end - start. May be negative for malformed data."""
        return self.end_time - self.start_time

    @property
    def duration_minutes(self) -> int:
        """Calculate event duration in minutes."""
        return int(self.duration.total_seconds() / 60)

    @property
    def is_recurring(self) -> bool:
        return self.recurrence is not None

    @property
    def is_instance(self) -> bool:
        """True for occurrences materialized from (or excepted out of) a series."""
        return self.parent_event_id is not None

    @property
    def is_cancelled(self) -> bool:
        return self.status == EventStatus.CANCELLED

    @property
    def is_virtual(self) -> bool:
        return bool(self.virtual_meeting_url)
