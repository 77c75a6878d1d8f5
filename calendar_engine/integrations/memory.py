"""
In-memory event repository.

Stores copies of events keyed by id. Callers never share model instances
with the store, so mutating a returned event does not change stored data.
"""

import logging
from datetime import datetime
from typing import Iterable, Optional, Sequence

from calendar_engine.exceptions import EventNotFoundError
from calendar_engine.models.events import CalendarEvent
from calendar_engine.services.timezones import to_utc

logger = logging.getLogger(__name__)


class InMemoryEventRepository:
    """Dict-backed EventRepository."""

    def __init__(self, events: Optional[Iterable[CalendarEvent]] = None):
        self._events: dict[str, CalendarEvent] = {}
        for event in events or []:
            self.add_event(event)

    def __len__(self) -> int:
        return len(self._events)

    def add_event(self, event: CalendarEvent) -> CalendarEvent:
        """Store (or replace) an event and return the stored copy."""
        stored = event.model_copy(deep=True)
        self._events[stored.id] = stored
        return stored.model_copy(deep=True)

    def get_events_in_range(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
    ) -> Sequence[CalendarEvent]:
        range_start = to_utc(start)
        range_end = to_utc(end)

        matches = []
        for event in self._events.values():
            if event.user_id != user_id:
                continue
            try:
                event_start = to_utc(event.start_time, event.timezone)
                event_end = to_utc(event.end_time, event.timezone)
            except (TypeError, ValueError, OverflowError) as e:
                logger.warning(f"Skipping stored event {event.id}: {e}")
                continue

            if event.is_recurring:
                earliest_start = range_start - (event_end - event_start)
                if event_start <= range_end and _series_reaches(event, earliest_start):
                    matches.append(event.model_copy(deep=True))
            elif event_start <= range_end and event_end >= range_start:
                matches.append(event.model_copy(deep=True))

        return matches

    def get_event_by_id(self, event_id: str) -> Optional[CalendarEvent]:
        event = self._events.get(event_id)
        return event.model_copy(deep=True) if event else None

    def update_event(self, event_id: str, updates: dict) -> CalendarEvent:
        current = self._events.get(event_id)
        if current is None:
            raise EventNotFoundError(event_id)

        data = current.model_dump()
        data.update(updates)
        data["id"] = event_id
        updated = CalendarEvent.model_validate(data)

        self._events[event_id] = updated
        logger.debug(f"Updated event {event_id}: {sorted(updates)}")
        return updated.model_copy(deep=True)


def _series_reaches(event: CalendarEvent, earliest_start: datetime) -> bool:
    """False only when the series provably ends before the range starts."""
    until = event.recurrence.until
    if until is None:
        return True
    return to_utc(until, event.timezone) >= earliest_start
