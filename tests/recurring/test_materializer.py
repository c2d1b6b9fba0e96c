"""
Tests for pfm_recurring.services.materializer.

Validates the single unit of work: transaction insert, atomic balance
increment and RECURRING_PROCESSED notification commit together or not at all.
"""

from datetime import datetime, timedelta, timezone

import pytest

from pfm_kernel.domain.dtos import Direction, NotificationKind
from pfm_kernel.exceptions import (
    BalanceUpdateError,
    CategoryNotFoundError,
    WalletNotFoundError,
)
from pfm_kernel.models import Category, Wallet

from pfm_recurring.domain.types import ClaimedOccurrence
from pfm_recurring.services.materializer import TransactionMaterializer

UTC = timezone.utc
DUE_AT = datetime(2024, 3, 1, 9, 0, tzinfo=UTC)


@pytest.fixture
def materializer(session_factory, clock):
    return TransactionMaterializer(session_factory, clock=clock)


def _occurrence(store, template_id, due_at=DUE_AT) -> ClaimedOccurrence:
    template = store.get_template(template_id).to_dto()
    return ClaimedOccurrence(
        template=template,
        due_at=due_at,
        next_run_at=due_at + timedelta(days=31),
    )


def _soft_delete(session_factory, model, record_id):
    with session_factory() as session:
        session.get(model, record_id).deleted_at = DUE_AT
        session.commit()


# =============================================================================
# Happy path
# =============================================================================


class TestMaterialize:

    def test_expense_creates_transaction_and_debits(self, materializer, store, owner):
        template_id = store.template(
            owner["user_id"], owner["wallet_id"], owner["category_id"], amount=120000,
        )

        record = materializer.materialize(_occurrence(store, template_id))

        assert record.amount == 120000
        assert record.direction is Direction.EXPENSE
        assert record.recurring_template_id == template_id
        assert store.get_wallet(owner["wallet_id"]).balance == 500000 - 120000

        (txn,) = store.transactions(template_id)
        assert txn.id == record.transaction_id
        assert txn.category_id == owner["category_id"]
        assert txn.description == "Rent"

    def test_income_credits_wallet(self, materializer, store, owner):
        template_id = store.template(
            owner["user_id"], owner["wallet_id"], owner["category_id"],
            amount=250000, direction=Direction.INCOME, description="Salary",
        )

        materializer.materialize(_occurrence(store, template_id))

        assert store.get_wallet(owner["wallet_id"]).balance == 750000

    def test_dated_at_due_occurrence_not_now(self, materializer, store, owner, clock):
        late_due = DUE_AT - timedelta(days=2)
        template_id = store.template(
            owner["user_id"], owner["wallet_id"], owner["category_id"], next_run_at=late_due,
        )

        record = materializer.materialize(_occurrence(store, template_id, due_at=late_due))

        assert record.occurred_at == late_due
        assert record.occurred_at != clock.now()

    def test_processed_notification_recorded(self, materializer, store, owner):
        template_id = store.template(
            owner["user_id"], owner["wallet_id"], owner["category_id"], amount=120000,
        )

        materializer.materialize(_occurrence(store, template_id))

        (note,) = store.notifications(NotificationKind.RECURRING_PROCESSED.value)
        assert note.user_id == owner["user_id"]
        assert note.title == "Rent processed"
        assert note.message == "-$1200.00 was automatically recorded."
        assert note.action_url == "/transactions"
        assert note.payload["template_id"] == str(template_id)
        assert note.is_read is False


# =============================================================================
# Referential failures
# =============================================================================


class TestReferentialFailures:

    def test_deleted_wallet(self, materializer, session_factory, store, owner):
        template_id = store.template(owner["user_id"], owner["wallet_id"], owner["category_id"])
        _soft_delete(session_factory, Wallet, owner["wallet_id"])

        with pytest.raises(WalletNotFoundError) as exc_info:
            materializer.materialize(_occurrence(store, template_id))

        assert exc_info.value.code == "WALLET_NOT_FOUND"
        assert store.transactions() == []

    def test_deleted_category(self, materializer, session_factory, store, owner):
        template_id = store.template(owner["user_id"], owner["wallet_id"], owner["category_id"])
        _soft_delete(session_factory, Category, owner["category_id"])

        with pytest.raises(CategoryNotFoundError):
            materializer.materialize(_occurrence(store, template_id))

        assert store.transactions() == []
        assert store.get_wallet(owner["wallet_id"]).balance == 500000

    def test_wallet_of_another_user(self, materializer, store, owner):
        stranger = store.user()
        template_id = store.template(
            owner["user_id"], store.wallet(stranger), owner["category_id"],
        )

        with pytest.raises(WalletNotFoundError):
            materializer.materialize(_occurrence(store, template_id))


# =============================================================================
# Atomicity
# =============================================================================


class TestAtomicity:

    def test_forced_balance_failure_rolls_back_everything(
        self, materializer, store, owner, monkeypatch,
    ):
        template_id = store.template(owner["user_id"], owner["wallet_id"], owner["category_id"])

        def _fail(self, session, wallet_id, delta, now):
            raise BalanceUpdateError(str(wallet_id), delta, "forced")

        monkeypatch.setattr(TransactionMaterializer, "_apply_balance", _fail)

        with pytest.raises(BalanceUpdateError):
            materializer.materialize(_occurrence(store, template_id))

        assert store.transactions() == []
        assert store.notifications() == []
        assert store.get_wallet(owner["wallet_id"]).balance == 500000

    def test_increment_matching_no_row_raises(
        self, materializer, session_factory, store, owner, monkeypatch,
    ):
        """A wallet deleted between the reference check and the increment."""
        template_id = store.template(owner["user_id"], owner["wallet_id"], owner["category_id"])
        _soft_delete(session_factory, Wallet, owner["wallet_id"])
        monkeypatch.setattr(
            TransactionMaterializer, "_check_references", lambda self, session, template: None,
        )

        with pytest.raises(BalanceUpdateError) as exc_info:
            materializer.materialize(_occurrence(store, template_id))

        assert exc_info.value.delta == -120000
        assert store.transactions() == []
