"""
Custom exceptions for the scheduling engine.

Only caller contract violations and collaborator lookups raise. Malformed
event data degrades gracefully and business-rule failures are returned as
ValidationResult values.
"""


class SchedulingEngineError(Exception):
    """Base exception for scheduling engine operations."""

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class ContractViolationError(SchedulingEngineError):
    """
    A required argument was missing.

    Causes:
    - Target event is None
    - Candidate or existing event collection is None
    """


class EventNotFoundError(SchedulingEngineError):
    """
    Event lookup through the storage collaborator failed.

    Causes:
    - Event was hard-deleted
    - Event ID is invalid
    """

    def __init__(self, event_id: str):
        super().__init__(f"Event not found: {event_id}")
        self.event_id = event_id
