"""
pfm_kernel.domain.dtos -- frozen snapshots of the shared-store records.

ZERO I/O.  ORM models in ``pfm_kernel.models`` convert to these types with
``to_dto()`` so that services hand immutable values to each other instead
of session-bound objects.

Amounts are signed minor-unit integers (cents).  There are no floats here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID


# =============================================================================
# Enums
# =============================================================================


class Direction(str, Enum):
    """Direction of money relative to the wallet."""

    INCOME = "INCOME"
    EXPENSE = "EXPENSE"

    def signed(self, amount: int) -> int:
        """Signed balance delta for a positive ``amount``."""
        return amount if self is Direction.INCOME else -amount


class BudgetPeriod(str, Enum):
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"


class NotificationKind(str, Enum):
    BUDGET_WARNING = "BUDGET_WARNING"
    BUDGET_EXCEEDED = "BUDGET_EXCEEDED"
    RECURRING_PROCESSED = "RECURRING_PROCESSED"


# =============================================================================
# Record snapshots
# =============================================================================


@dataclass(frozen=True)
class TransactionRecord:
    """Immutable snapshot of a persisted transaction."""

    transaction_id: UUID
    user_id: UUID
    wallet_id: UUID
    category_id: UUID
    amount: int  # positive minor units; sign comes from direction
    direction: Direction
    occurred_at: datetime
    description: str | None = None
    recurring_template_id: UUID | None = None

    @property
    def signed_amount(self) -> int:
        return self.direction.signed(self.amount)


@dataclass(frozen=True)
class BudgetSnapshot:
    """Immutable snapshot of a budget (owned by the CRUD layer)."""

    budget_id: UUID
    user_id: UUID
    name: str
    limit_amount: int
    period: BudgetPeriod
    starts_at: datetime
    category_id: UUID | None = None
    wallet_id: UUID | None = None
    is_active: bool = True

    def covers(self, transaction: TransactionRecord) -> bool:
        """True when the transaction falls inside this budget's scope."""
        if transaction.user_id != self.user_id:
            return False
        if self.category_id is not None and self.category_id == transaction.category_id:
            return True
        return self.wallet_id is not None and self.wallet_id == transaction.wallet_id


@dataclass(frozen=True)
class NotificationRecord:
    """Immutable snapshot of a notification created by the engine."""

    notification_id: UUID
    user_id: UUID
    kind: NotificationKind
    title: str
    message: str
    created_at: datetime
    payload: dict[str, Any] = field(default_factory=dict)
    action_url: str | None = None
    is_read: bool = False


def format_minor_units(amount: int) -> str:
    """Render minor units as a two-decimal string (``123456 -> '1234.56'``)."""
    sign = "-" if amount < 0 else ""
    whole, cents = divmod(abs(amount), 100)
    return f"{sign}{whole}.{cents:02d}"
