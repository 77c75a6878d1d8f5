"""
Pydantic models for the scheduling engine.

This module exports all entity models for easy importing.
"""

# Import base classes
from calendar_engine.models.base import (
    EngineModel,
    EventPriority,
    EventStatus,
    Frequency,
    ConflictType,
    ConflictSeverity,
)

from calendar_engine.models.events import CalendarEvent, RecurrencePattern
from calendar_engine.models.conflicts import (
    Conflict,
    ConflictConfig,
    DetectionOptions,
    OVERLAP_ONLY,
    ResolutionSuggestion,
)
from calendar_engine.models.constraints import (
    WorkingHours,
    SchedulingRules,
    ReschedulingConstraints,
    ValidationResult,
)

# Export all for easy importing
__all__ = [
    # Base classes and enums
    "EngineModel",
    "EventPriority",
    "EventStatus",
    "Frequency",
    "ConflictType",
    "ConflictSeverity",
    # Event models
    "CalendarEvent",
    "RecurrencePattern",
    # Conflict models
    "Conflict",
    "ConflictConfig",
    "DetectionOptions",
    "OVERLAP_ONLY",
    "ResolutionSuggestion",
    # Rule models
    "WorkingHours",
    "SchedulingRules",
    "ReschedulingConstraints",
    "ValidationResult",
]
