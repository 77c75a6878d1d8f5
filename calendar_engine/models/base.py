"""
Base model definitions shared by all engine entities.

Provides:
- EngineModel base class with common Pydantic configuration
- Ordered priority enum and status/frequency enums
- Conflict classification enums
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class EngineModel(BaseModel):
    """
    Base model for all engine entities.

    Entities are plain structured data: they serialize to nested maps/lists of
    strings, numbers, booleans and ISO-8601 instants via model_dump(mode="json").
    """

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=False,
        extra="ignore",
    )


class EventPriority(str, Enum):
    """Ordered event priority: low < normal < high < urgent."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        """Numeric rank used for ordering (higher is more important)."""
        return _PRIORITY_RANKS[self]


_PRIORITY_RANKS = {
    EventPriority.LOW: 1,
    EventPriority.NORMAL: 2,
    EventPriority.HIGH: 3,
    EventPriority.URGENT: 4,
}


class EventStatus(str, Enum):
    """Event lifecycle status. Deletion is a transition to CANCELLED."""

    DRAFT = "draft"
    CONFIRMED = "confirmed"
    TENTATIVE = "tentative"
    CANCELLED = "cancelled"

    @classmethod
    def _missing_(cls, value):
        # Storage rows written by older clients use "active"
        if isinstance(value, str) and value.lower() == "active":
            return cls.CONFIRMED
        return None


class Frequency(str, Enum):
    """Recurrence frequency."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class ConflictType(str, Enum):
    """Conflict classification."""

    OVERLAP = "overlap"
    TRAVEL_TIME = "travel_time"
    BUFFER = "buffer"


class ConflictSeverity(str, Enum):
    """Conflict severity. CRITICAL is the escalation tier above HIGH."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)

    def escalate(self) -> "ConflictSeverity":
        """Return the next tier up, capped at CRITICAL."""
        index = min(self.rank + 1, len(_SEVERITY_ORDER) - 1)
        return _SEVERITY_ORDER[index]


_SEVERITY_ORDER = [
    ConflictSeverity.LOW,
    ConflictSeverity.MEDIUM,
    ConflictSeverity.HIGH,
    ConflictSeverity.CRITICAL,
]
