"""
Notification and AlertRecord models.

Contract:
    ``AlertRecord`` is the dedup key for budget alerts.  The UNIQUE
    constraint on (budget_id, period_start, tier) guarantees at most one
    delivered alert per tier per budget period, even when two evaluations
    race: the losing INSERT fails with IntegrityError.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, Boolean, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from pfm_kernel.db.base import Base, TimestampedBase
from pfm_kernel.db.types import UUIDString
from pfm_kernel.domain.dtos import NotificationKind, NotificationRecord


class Notification(TimestampedBase):
    """Inbox entry read by the notification UI (delivery filtering is external)."""

    __tablename__ = "notifications"

    __table_args__ = (
        Index("ix_notifications_user_created", "user_id", "created_at"),
    )

    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    action_url: Mapped[str | None] = mapped_column(String(300), nullable=True)
    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def to_dto(self) -> NotificationRecord:
        return NotificationRecord(
            notification_id=self.id,
            user_id=self.user_id,
            kind=NotificationKind(self.kind),
            title=self.title,
            message=self.message,
            created_at=self.created_at,
            payload=self.payload or {},
            action_url=self.action_url,
            is_read=self.is_read,
        )


class AlertRecord(Base):
    """Delivered budget alert, keyed by (budget_id, period_start, tier)."""

    __tablename__ = "alert_records"

    __table_args__ = (
        UniqueConstraint(
            "budget_id", "period_start", "tier",
            name="uq_alert_records_budget_period_tier",
        ),
    )

    budget_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    period_start: Mapped[datetime] = mapped_column(nullable=False)
    tier: Mapped[str] = mapped_column(String(16), nullable=False)
    delivered_at: Mapped[datetime] = mapped_column(nullable=False)
    notification_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
