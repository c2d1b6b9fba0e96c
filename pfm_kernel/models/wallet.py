"""Wallet and Category models (metadata owned by the CRUD layer)."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from pfm_kernel.db.base import TimestampedBase
from pfm_kernel.db.types import UUIDString


class Wallet(TimestampedBase):
    """
    Money container with a running balance.

    ``balance`` is a derived running total in signed minor units.  The engine
    mutates it only through an atomic ``balance = balance + :delta`` UPDATE
    issued in the same database transaction as the transaction insert.
    """

    __tablename__ = "wallets"

    __table_args__ = (Index("ix_wallets_user", "user_id"),)

    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    balance: Mapped[int] = mapped_column(nullable=False, default=0)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class Category(TimestampedBase):
    __tablename__ = "categories"

    __table_args__ = (Index("ix_categories_user", "user_id"),)

    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
