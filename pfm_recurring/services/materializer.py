"""
TransactionMaterializer -- turns a claimed occurrence into a transaction.

Contract:
    ``materialize(occurrence)`` writes, in ONE database transaction:
        1. the Transaction row, dated at the due occurrence,
        2. the wallet balance increment (``balance = balance + :delta``),
        3. the RECURRING_PROCESSED notification for the owner.
    Either all three are committed or none is.

Architecture: pfm_recurring/services.  Runs after the claim has been
    committed; a failure here never touches the claim, so the occurrence is
    treated as missed rather than retried.

Failure modes:
    - WalletNotFoundError / CategoryNotFoundError: the template points at a
      missing or soft-deleted record (or one owned by another user).
    - BalanceUpdateError: the increment did not apply to exactly one row.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable
from uuid import UUID, uuid4

from sqlalchemy import update
from sqlalchemy.orm import Session

from pfm_kernel.domain.clock import Clock, SystemClock
from pfm_kernel.domain.dtos import (
    Direction,
    NotificationKind,
    TransactionRecord,
    format_minor_units,
)
from pfm_kernel.exceptions import (
    BalanceUpdateError,
    CategoryNotFoundError,
    WalletNotFoundError,
)
from pfm_kernel.logging_config import get_logger
from pfm_kernel.models.notification import Notification
from pfm_kernel.models.transaction import Transaction
from pfm_kernel.models.wallet import Category, Wallet

from pfm_recurring.domain.types import ClaimedOccurrence, RecurringTemplate

logger = get_logger("recurring.materializer")

TRANSACTIONS_ACTION_URL = "/transactions"


class TransactionMaterializer:
    """Creates the transaction and balance change for one claimed occurrence."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    def materialize(self, occurrence: ClaimedOccurrence) -> TransactionRecord:
        """Insert the transaction, apply the balance delta, notify the owner.

        Raises:
            WalletNotFoundError: Wallet missing, deleted or not the owner's.
            CategoryNotFoundError: Category missing, deleted or not the owner's.
            BalanceUpdateError: Balance increment matched no row.
        """
        template = occurrence.template
        delta = template.direction.signed(template.amount)
        now = self._clock.now()

        session = self._session_factory()
        try:
            self._check_references(session, template)

            txn = Transaction(
                id=uuid4(),
                user_id=template.user_id,
                wallet_id=template.wallet_id,
                category_id=template.category_id,
                amount=template.amount,
                direction=template.direction.value,
                occurred_at=occurrence.due_at,
                description=template.description,
                recurring_template_id=template.template_id,
                is_deleted=False,
                created_at=now,
            )
            session.add(txn)
            session.flush()

            self._apply_balance(session, template.wallet_id, delta, now)

            session.add(self._processed_notification(template, txn, now))
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

        record = txn.to_dto()
        logger.info(
            "transaction_materialized",
            extra={
                "transaction_id": str(record.transaction_id),
                "wallet_id": str(record.wallet_id),
                "amount": record.amount,
                "direction": record.direction.value,
                "balance_delta": record.signed_amount,
                "occurred_at": record.occurred_at,
            },
        )
        return record

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    def _check_references(self, session: Session, template: RecurringTemplate) -> None:
        wallet = session.get(Wallet, template.wallet_id)
        if wallet is None or wallet.is_deleted or wallet.user_id != template.user_id:
            raise WalletNotFoundError(str(template.wallet_id))

        category = session.get(Category, template.category_id)
        if category is None or category.is_deleted or category.user_id != template.user_id:
            raise CategoryNotFoundError(str(template.category_id))

    def _apply_balance(
        self,
        session: Session,
        wallet_id: UUID,
        delta: int,
        now: datetime,
    ) -> None:
        """Atomic increment; never read-modify-write."""
        result = session.execute(
            update(Wallet)
            .where(Wallet.id == wallet_id, Wallet.deleted_at.is_(None))
            .values(balance=Wallet.balance + delta, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise BalanceUpdateError(
                str(wallet_id), delta, f"matched {result.rowcount} rows",
            )

    def _processed_notification(
        self,
        template: RecurringTemplate,
        txn: Transaction,
        now: datetime,
    ) -> Notification:
        label = template.description or "Recurring transaction"
        sign = "+" if template.direction is Direction.INCOME else "-"
        return Notification(
            id=uuid4(),
            user_id=template.user_id,
            kind=NotificationKind.RECURRING_PROCESSED.value,
            title=f"{label} processed",
            message=(
                f"{sign}${format_minor_units(template.amount)} "
                "was automatically recorded."
            ),
            action_url=TRANSACTIONS_ACTION_URL,
            payload={
                "template_id": str(template.template_id),
                "transaction_id": str(txn.id),
                "amount": template.amount,
                "direction": template.direction.value,
                "occurred_at": txn.occurred_at.isoformat(),
            },
            is_read=False,
            created_at=now,
        )
