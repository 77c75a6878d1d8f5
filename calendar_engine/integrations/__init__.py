"""
Event storage integrations.

Provides the abstraction layer between the engine and event storage backends.
"""

from calendar_engine.integrations.base import EventRepository
from calendar_engine.integrations.memory import InMemoryEventRepository

__all__ = ["EventRepository", "InMemoryEventRepository"]
