"""
Scheduling rule models.

Entities:
- WorkingHours: A wall-clock window, applied in an event's own timezone
- SchedulingRules: Business rules checked by the validator
- ReschedulingConstraints: Movement bounds used by the optimizer
- ValidationResult: Pass/fail/warn verdict returned by the validator

Every rule field is optional. A field left as None is not enforced.
"""

from datetime import time
from typing import Optional

from pydantic import Field, model_validator

from calendar_engine.models.base import EngineModel


class WorkingHours(EngineModel):
    """Wall-clock window in HH:MM form (e.g. '09:00' - '17:00')."""

    start: time = Field(..., description="Window start, HH:MM")
    end: time = Field(..., description="Window end, HH:MM")

    @model_validator(mode="after")
    def validate_order(self) -> "WorkingHours":
        if self.end < self.start:
            raise ValueError("Working hours end must not be before start")
        return self

    def contains(self, value: time) -> bool:
        """Inclusive on both ends."""
        return self.start <= value <= self.end

    def __str__(self) -> str:
        return f"{self.start.strftime('%H:%M')}-{self.end.strftime('%H:%M')}"


class SchedulingRules(EngineModel):
    """
    Business rules for validating a candidate event.

    - working_hours: None = any time of day allowed; otherwise start/end
      outside the window produce a warning
    - allow_weekends: None = not enforced; False = Saturday/Sunday warn
    - max_events_per_day: None = unlimited; count including the event itself
    - max_concurrent_events: None = unlimited; overlapping events including
      the event itself
    - min_event_gap_minutes: None = not enforced; nearest neighbour closer
      than this warns
    """

    working_hours: Optional[WorkingHours] = None
    allow_weekends: Optional[bool] = None
    max_events_per_day: Optional[int] = Field(default=None, ge=1)
    max_concurrent_events: Optional[int] = Field(default=None, ge=1)
    min_event_gap_minutes: Optional[int] = Field(default=None, ge=0)


class ReschedulingConstraints(EngineModel):
    """
    Movement bounds for the optimizer.

    - working_hours: None = slots may start at any time of day
    - preferred_gap_minutes: None = moved events may touch their neighbours
    - max_rescheduling_window_days: None = engine default window
    """

    working_hours: Optional[WorkingHours] = None
    preferred_gap_minutes: Optional[int] = Field(default=None, ge=0)
    max_rescheduling_window_days: Optional[int] = Field(default=None, ge=0)


class ValidationResult(EngineModel):
    """Validator verdict. Errors fail the event; warnings never do."""

    ok: bool = True
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def from_findings(cls, errors: list[str], warnings: list[str]) -> "ValidationResult":
        return cls(ok=not errors, errors=list(errors), warnings=list(warnings))

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        """Combine two verdicts into a new one."""
        return ValidationResult.from_findings(
            self.errors + other.errors,
            self.warnings + other.warnings,
        )
