"""
Unit tests for base enums.

Tests priority ordering, status aliases and severity escalation.
"""

import pytest

from calendar_engine.models import ConflictSeverity, EventPriority, EventStatus, Frequency


class TestEventPriority:
    """Test EventPriority ordering."""

    def test_rank_order(self):
        """low < normal < high < urgent."""
        ranks = [p.rank for p in (
            EventPriority.LOW,
            EventPriority.NORMAL,
            EventPriority.HIGH,
            EventPriority.URGENT,
        )]
        assert ranks == sorted(ranks)
        assert len(set(ranks)) == 4

    def test_from_string(self):
        """Priorities are constructed from their wire values."""
        assert EventPriority("urgent") is EventPriority.URGENT


class TestEventStatus:
    """Test EventStatus parsing."""

    def test_active_alias_maps_to_confirmed(self):
        """Legacy 'active' rows read as confirmed."""
        assert EventStatus("active") is EventStatus.CONFIRMED
        assert EventStatus("ACTIVE") is EventStatus.CONFIRMED

    def test_unknown_status_rejected(self):
        """Unknown values raise ValueError."""
        with pytest.raises(ValueError):
            EventStatus("archived")


class TestConflictSeverity:
    """Test ConflictSeverity escalation."""

    def test_escalate_one_tier(self):
        """Each tier escalates to the next."""
        assert ConflictSeverity.LOW.escalate() is ConflictSeverity.MEDIUM
        assert ConflictSeverity.MEDIUM.escalate() is ConflictSeverity.HIGH
        assert ConflictSeverity.HIGH.escalate() is ConflictSeverity.CRITICAL

    def test_critical_is_capped(self):
        """CRITICAL is the highest tier."""
        assert ConflictSeverity.CRITICAL.escalate() is ConflictSeverity.CRITICAL

    def test_rank_increases_with_severity(self):
        assert ConflictSeverity.LOW.rank < ConflictSeverity.CRITICAL.rank


def test_frequency_values():
    """Frequencies use lowercase wire values."""
    assert {f.value for f in Frequency} == {"daily", "weekly", "monthly", "yearly"}
