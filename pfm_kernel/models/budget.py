"""Budget model (owned by the CRUD layer, read by the alert evaluator)."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from pfm_kernel.db.base import TimestampedBase
from pfm_kernel.db.types import UUIDString
from pfm_kernel.domain.dtos import BudgetPeriod, BudgetSnapshot


class Budget(TimestampedBase):
    """
    Spending limit over a recurring period window.

    Scope is a category, a wallet, or both.  ``starts_at`` anchors the period
    windows (weekday for WEEKLY, day-of-month otherwise).  Spend is never
    stored; it is summed from transactions on demand.
    """

    __tablename__ = "budgets"

    __table_args__ = (
        CheckConstraint(
            "category_id IS NOT NULL OR wallet_id IS NOT NULL",
            name="ck_budgets_scope",
        ),
        Index("ix_budgets_user_active", "user_id", "is_active"),
    )

    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    wallet_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    limit_amount: Mapped[int] = mapped_column(nullable=False)
    period: Mapped[str] = mapped_column(String(16), nullable=False)
    starts_at: Mapped[datetime] = mapped_column(nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def to_dto(self) -> BudgetSnapshot:
        return BudgetSnapshot(
            budget_id=self.id,
            user_id=self.user_id,
            name=self.name,
            limit_amount=self.limit_amount,
            period=BudgetPeriod(self.period),
            starts_at=self.starts_at,
            category_id=self.category_id,
            wallet_id=self.wallet_id,
            is_active=self.is_active,
        )
