"""
Transaction model.

Contract:
    A transaction is immutable once created except for the ``is_deleted``
    soft-delete flag.  Transactions materialized from a recurring template
    carry ``recurring_template_id`` for traceability; ``occurred_at`` is the
    due occurrence, not the processing time.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from pfm_kernel.db.base import TimestampedBase
from pfm_kernel.db.types import UUIDString
from pfm_kernel.domain.dtos import Direction, TransactionRecord


class Transaction(TimestampedBase):
    __tablename__ = "transactions"

    __table_args__ = (
        Index("ix_transactions_user_date", "user_id", "occurred_at"),
        Index("ix_transactions_category_date", "category_id", "occurred_at"),
        Index("ix_transactions_wallet_date", "wallet_id", "occurred_at"),
        Index("ix_transactions_recurring", "recurring_template_id"),
    )

    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    wallet_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    category_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    amount: Mapped[int] = mapped_column(nullable=False)
    direction: Mapped[str] = mapped_column(String(16), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    recurring_template_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True,
    )
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def to_dto(self) -> TransactionRecord:
        return TransactionRecord(
            transaction_id=self.id,
            user_id=self.user_id,
            wallet_id=self.wallet_id,
            category_id=self.category_id,
            amount=self.amount,
            direction=Direction(self.direction),
            occurred_at=self.occurred_at,
            description=self.description,
            recurring_template_id=self.recurring_template_id,
        )
