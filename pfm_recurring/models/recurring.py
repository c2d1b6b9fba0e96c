"""
ORM model for recurring templates.

Contract:
    RecurringTemplateModel persists a user's recurring rule and its
    scheduling state.  The engine writes only ``next_run_at``,
    ``last_run_at``, ``is_active`` and ``updated_at``, and only through the
    claimer's conditional UPDATE.  ``to_dto()`` / ``from_dto()`` round-trip
    with ``pfm_recurring.domain.types.RecurringTemplate``.

Invariants enforced:
    - ``next_run_at`` is NOT NULL, so an active template always has one.
    - ``amount`` is a positive minor-unit integer; direction carries the sign.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from pfm_kernel.db.base import TimestampedBase
from pfm_kernel.db.types import UUIDString

if TYPE_CHECKING:
    from pfm_recurring.domain.types import RecurringTemplate


class RecurringTemplateModel(TimestampedBase):
    __tablename__ = "recurring_templates"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_recurring_templates_amount"),
        Index("ix_recurring_templates_due", "is_active", "next_run_at"),
        Index("ix_recurring_templates_user", "user_id"),
    )

    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    amount: Mapped[int] = mapped_column(nullable=False)
    direction: Mapped[str] = mapped_column(String(16), nullable=False)
    category_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    wallet_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    frequency: Mapped[str] = mapped_column(String(16), nullable=False)
    anchor_day: Mapped[int | None] = mapped_column(Integer, nullable=True)
    anchor_at: Mapped[datetime] = mapped_column(nullable=False)
    next_run_at: Mapped[datetime] = mapped_column(nullable=False)
    last_run_at: Mapped[datetime | None] = mapped_column(nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    end_date: Mapped[datetime | None] = mapped_column(nullable=True)

    def to_dto(self) -> RecurringTemplate:
        from pfm_kernel.domain.dtos import Direction
        from pfm_recurring.domain.types import (
            Frequency,
            FrequencySpec,
            RecurringTemplate,
        )

        return RecurringTemplate(
            template_id=self.id,
            user_id=self.user_id,
            description=self.description,
            amount=self.amount,
            direction=Direction(self.direction),
            category_id=self.category_id,
            wallet_id=self.wallet_id,
            schedule=FrequencySpec(
                frequency=Frequency(self.frequency),
                anchor_day=self.anchor_day,
            ),
            anchor_at=self.anchor_at,
            next_run_at=self.next_run_at,
            last_run_at=self.last_run_at,
            is_active=self.is_active,
            end_date=self.end_date,
        )

    @classmethod
    def from_dto(cls, dto: RecurringTemplate, created_at: datetime) -> RecurringTemplateModel:
        return cls(
            id=dto.template_id,
            user_id=dto.user_id,
            description=dto.description,
            amount=dto.amount,
            direction=dto.direction.value,
            category_id=dto.category_id,
            wallet_id=dto.wallet_id,
            frequency=dto.schedule.frequency.value,
            anchor_day=dto.schedule.anchor_day,
            anchor_at=dto.anchor_at,
            next_run_at=dto.next_run_at,
            last_run_at=dto.last_run_at,
            is_active=dto.is_active,
            end_date=dto.end_date,
            created_at=created_at,
        )
