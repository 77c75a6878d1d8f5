"""
Event repository protocol.

Defines the interface for event storage backends. The engine itself is
storage-agnostic; SchedulingService reads and writes through this protocol.
"""

from abc import abstractmethod
from datetime import datetime
from typing import Optional, Protocol, Sequence

from calendar_engine.models.events import CalendarEvent


class EventRepository(Protocol):
    """
    Protocol for event storage backends.

    Implementations:
    - InMemoryEventRepository: Dict-backed store for local use and tests

    Methods are synchronous; the engine performs no I/O of its own.
    """

    @abstractmethod
    def get_events_in_range(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
    ) -> Sequence[CalendarEvent]:
        """
        Get a user's events that may fall within a time range.

        Recurring events are returned as unexpanded base events whenever
        their series could produce an instance in the range.

        Args:
            user_id: Owner of the events
            start: Range start (inclusive)
            end: Range end (inclusive)

        Returns:
            Sequence of stored events
        """
        ...

    @abstractmethod
    def get_event_by_id(self, event_id: str) -> Optional[CalendarEvent]:
        """
        Get a single event by ID.

        Returns:
            Event or None if not found
        """
        ...

    @abstractmethod
    def update_event(self, event_id: str, updates: dict) -> CalendarEvent:
        """
        Update an existing event.

        Args:
            event_id: Event to update
            updates: Fields to update

        Returns:
            Updated event

        Raises:
            EventNotFoundError: If the event does not exist
        """
        ...
