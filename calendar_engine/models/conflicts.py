"""
Conflict models.

Entities:
- ConflictConfig: Immutable thresholds table driving the conflict detector
- DetectionOptions: Per-call switches for travel-time and buffer checks
- ResolutionSuggestion: One impact-scored way of resolving a conflict
- Conflict: A derived, never-persisted conflict between two events
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import ConfigDict, Field

from calendar_engine.models.base import (
    ConflictSeverity,
    ConflictType,
    EngineModel,
    EventPriority,
)


class ConflictConfig(EngineModel):
    """
    Thresholds for conflict detection.

    Passed to ConflictDetector at construction. Values are configurable
    defaults; Settings.conflict_config() builds one from the environment.

    Travel table keys:
    - same_building: identical location strings
    - same_city: same city component ("..., City, Country")
    - different_city: differing city components
    - virtual: either side is an online meeting
    """

    model_config = ConfigDict(frozen=True)

    default_travel_minutes: int = Field(default=15, ge=0)
    location_travel_minutes: dict[str, int] = Field(
        default_factory=lambda: {
            "same_building": 5,
            "same_city": 30,
            "different_city": 120,
            "virtual": 0,
        }
    )
    priority_buffer_minutes: dict[EventPriority, int] = Field(
        default_factory=lambda: {
            EventPriority.URGENT: 30,
            EventPriority.HIGH: 15,
            EventPriority.NORMAL: 10,
            EventPriority.LOW: 5,
        }
    )
    high_severity_overlap_minutes: int = Field(default=60, ge=0)
    medium_severity_overlap_minutes: int = Field(default=15, ge=0)
    detection_window_days: int = Field(default=30, ge=1)
    max_suggestions: int = Field(default=5, ge=1)
    virtual_keywords: tuple[str, ...] = (
        "zoom",
        "teams",
        "meet",
        "virtual",
        "online",
        "webinar",
        "call",
    )

    def buffer_for(self, priority: EventPriority) -> int:
        """Buffer minutes for a priority, defaulting to the normal buffer."""
        return self.priority_buffer_minutes.get(
            priority, self.priority_buffer_minutes.get(EventPriority.NORMAL, 0)
        )


class DetectionOptions(EngineModel):
    """Per-call detection switches."""

    include_travel_time: bool = True
    include_buffer_time: bool = True
    custom_travel_minutes: Optional[int] = Field(
        default=None,
        ge=0,
        description="Overrides the location-pair travel heuristic",
    )


OVERLAP_ONLY = DetectionOptions(include_travel_time=False, include_buffer_time=False)


class ResolutionSuggestion(EngineModel):
    """A proposed way of resolving a conflict. Lower impact is less disruptive."""

    type: Literal["reschedule", "shorten", "virtual", "ignore"]
    description: str
    new_start_time: Optional[datetime] = None
    new_end_time: Optional[datetime] = None
    impact_score: int = Field(default=0, ge=0)


class Conflict(EngineModel):
    """
    A conflict between `event_id` (the target) and `conflicting_event_id`.

    overlap_minutes is set for overlap conflicts only; gap_minutes is set for
    travel-time and buffer conflicts.
    """

    event_id: str
    conflicting_event_id: str
    conflicting_event_title: str = ""
    type: ConflictType
    severity: ConflictSeverity
    overlap_minutes: Optional[float] = None
    gap_minutes: Optional[float] = None
    required_minutes: Optional[int] = Field(
        default=None,
        description="Travel time or buffer that the gap failed to meet",
    )
    suggestion: str = ""
    suggestions: list[ResolutionSuggestion] = Field(default_factory=list)

    @property
    def sort_key(self) -> tuple:
        """Severity descending, then overlap descending."""
        return (-self.severity.rank, -(self.overlap_minutes or 0.0))
