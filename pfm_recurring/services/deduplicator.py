"""
NotificationDeduplicator -- at most one alert per tier per budget period.

Contract:
    ``deliver(candidate, now)`` creates the budget alert notification unless
    an AlertRecord with key ``(budget_id, period_start, tier)`` exists.
    The AlertRecord and the Notification are committed together.

Invariants enforced:
    - The UNIQUE constraint on the key is the final arbiter.  Two evaluations
      racing on the same key both pass the lookup; the losing INSERT fails
      with IntegrityError, is rolled back and reported as suppressed.
    - Tiers are independent keys: a delivered WARNING never blocks EXCEEDED.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pfm_kernel.domain.clock import Clock, SystemClock
from pfm_kernel.domain.dtos import NotificationRecord, format_minor_units
from pfm_kernel.logging_config import get_logger
from pfm_kernel.models.notification import AlertRecord, Notification

from pfm_recurring.domain.types import AlertCandidate, AlertTier

logger = get_logger("recurring.deduplicator")

BUDGETS_ACTION_URL = "/budgets"


def render_alert(candidate: AlertCandidate) -> tuple[str, str]:
    """(title, message) for a budget alert."""
    if candidate.tier is AlertTier.EXCEEDED:
        title = f'Budget "{candidate.budget_name}" exceeded'
    else:
        title = f'Budget "{candidate.budget_name}" almost reached'
    percent = candidate.spent * 100 // candidate.limit_amount
    message = (
        f"You've spent ${format_minor_units(candidate.spent)} of your "
        f"${format_minor_units(candidate.limit_amount)} budget ({percent}%)."
    )
    return title, message


class NotificationDeduplicator:
    """Delivers budget alert notifications exactly once per key."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    def deliver(
        self,
        candidate: AlertCandidate,
        now: datetime | None = None,
    ) -> NotificationRecord | None:
        """Create the notification, or return None if already delivered."""
        now = now or self._clock.now()
        log_extra = {
            "budget_id": str(candidate.budget_id),
            "tier": candidate.tier.value,
            "period_start": candidate.period_start,
        }

        session = self._session_factory()
        try:
            existing = session.execute(
                select(AlertRecord.id).where(
                    AlertRecord.budget_id == candidate.budget_id,
                    AlertRecord.period_start == candidate.period_start,
                    AlertRecord.tier == candidate.tier.value,
                )
            ).scalar_one_or_none()
            if existing is not None:
                logger.info("alert_suppressed", extra=log_extra)
                return None

            title, message = render_alert(candidate)
            notification = Notification(
                id=uuid4(),
                user_id=candidate.user_id,
                kind=candidate.tier.notification_kind.value,
                title=title,
                message=message,
                action_url=BUDGETS_ACTION_URL,
                payload={
                    "budget_id": str(candidate.budget_id),
                    "tier": candidate.tier.value,
                    "spent": candidate.spent,
                    "limit_amount": candidate.limit_amount,
                    "period_start": candidate.period_start.isoformat(),
                    "period_end": candidate.period_end.isoformat(),
                },
                is_read=False,
                created_at=now,
            )
            session.add(notification)
            session.add(
                AlertRecord(
                    id=uuid4(),
                    budget_id=candidate.budget_id,
                    period_start=candidate.period_start,
                    tier=candidate.tier.value,
                    delivered_at=now,
                    notification_id=notification.id,
                )
            )
            session.commit()
        except IntegrityError:
            session.rollback()
            logger.info(
                "alert_suppressed",
                extra={**log_extra, "reason": "concurrent_delivery"},
            )
            return None
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

        logger.info(
            "alert_delivered",
            extra={**log_extra, "notification_id": str(notification.id)},
        )
        return notification.to_dto()
