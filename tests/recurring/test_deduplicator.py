"""
Tests for pfm_recurring.services.deduplicator.

One notification per (budget, period, tier); WARNING and EXCEEDED are
independent keys; a unique-key collision is reported as suppressed.
"""

from datetime import datetime, timezone
from uuid import uuid4

import pytest
from sqlalchemy import false, select

from pfm_kernel.domain.dtos import NotificationKind

from pfm_recurring.domain.types import AlertCandidate, AlertTier
from pfm_recurring.services import deduplicator as deduplicator_module
from pfm_recurring.services.deduplicator import NotificationDeduplicator, render_alert

UTC = timezone.utc
NOW = datetime(2024, 3, 20, 12, 0, tzinfo=UTC)
MARCH = datetime(2024, 3, 1, tzinfo=UTC)
APRIL = datetime(2024, 4, 1, tzinfo=UTC)


@pytest.fixture
def deduplicator(session_factory, clock):
    return NotificationDeduplicator(session_factory, clock=clock)


def _candidate(budget_id, spent, tier, period_start=MARCH, period_end=APRIL, user_id=None):
    return AlertCandidate(
        budget_id=budget_id,
        user_id=user_id or uuid4(),
        budget_name="Groceries",
        period_start=period_start,
        period_end=period_end,
        tier=tier,
        spent=spent,
        limit_amount=100000,
    )


class TestDeliver:

    def test_first_delivery_creates_notification(self, deduplicator, store):
        budget_id = uuid4()

        note = deduplicator.deliver(_candidate(budget_id, 85000, AlertTier.WARNING), NOW)

        assert note is not None
        assert note.kind is NotificationKind.BUDGET_WARNING
        assert note.title == 'Budget "Groceries" almost reached'
        assert note.message == "You've spent $850.00 of your $1000.00 budget (85%)."
        assert note.action_url == "/budgets"
        assert note.created_at == NOW
        (record,) = store.alert_records()
        assert record.budget_id == budget_id
        assert record.notification_id == note.notification_id

    def test_same_key_suppressed(self, deduplicator, store, captured_logs):
        budget_id = uuid4()
        deduplicator.deliver(_candidate(budget_id, 85000, AlertTier.WARNING), NOW)

        again = deduplicator.deliver(_candidate(budget_id, 90000, AlertTier.WARNING), NOW)

        assert again is None
        assert len(store.notifications()) == 1
        assert any(r["message"] == "alert_suppressed" for r in captured_logs())

    def test_warning_twice_then_exceeded(self, deduplicator, store):
        """0.85, 0.85, 1.1 in one period -> WARNING then EXCEEDED, nothing else."""
        budget_id = uuid4()

        results = [
            deduplicator.deliver(_candidate(budget_id, 85000, AlertTier.WARNING), NOW),
            deduplicator.deliver(_candidate(budget_id, 85000, AlertTier.WARNING), NOW),
            deduplicator.deliver(_candidate(budget_id, 110000, AlertTier.EXCEEDED), NOW),
        ]

        assert [r is not None for r in results] == [True, False, True]
        kinds = [n.kind for n in store.notifications()]
        assert sorted(kinds) == ["BUDGET_EXCEEDED", "BUDGET_WARNING"]

    def test_new_period_alerts_again(self, deduplicator, store):
        budget_id = uuid4()
        deduplicator.deliver(_candidate(budget_id, 85000, AlertTier.WARNING), NOW)

        april = deduplicator.deliver(
            _candidate(
                budget_id, 85000, AlertTier.WARNING,
                period_start=APRIL, period_end=datetime(2024, 5, 1, tzinfo=UTC),
            ),
            NOW,
        )

        assert april is not None
        assert len(store.alert_records()) == 2

    def test_exceeded_message(self):
        title, message = render_alert(_candidate(uuid4(), 110000, AlertTier.EXCEEDED))
        assert title == 'Budget "Groceries" exceeded'
        assert message == "You've spent $1100.00 of your $1000.00 budget (110%)."

    def test_defaults_to_clock_time(self, deduplicator, clock):
        note = deduplicator.deliver(_candidate(uuid4(), 85000, AlertTier.WARNING))
        assert note.created_at == clock.now()


class TestConcurrentDelivery:

    def test_unique_key_collision_is_suppressed(self, deduplicator, store, monkeypatch):
        """Both racers miss the lookup; the loser's INSERT hits the unique key."""
        budget_id = uuid4()
        deduplicator.deliver(_candidate(budget_id, 85000, AlertTier.WARNING), NOW)

        def _blind_select(*entities):
            return select(*entities).where(false())

        monkeypatch.setattr(deduplicator_module, "select", _blind_select)

        result = deduplicator.deliver(_candidate(budget_id, 85000, AlertTier.WARNING), NOW)

        assert result is None
        assert len(store.notifications()) == 1
        assert len(store.alert_records()) == 1
