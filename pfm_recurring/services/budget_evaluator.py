"""
BudgetAlertEvaluator -- decides which budgets crossed an alert tier.

Contract:
    ``evaluate(transactions, now)`` finds the budgets affected by newly
    created transactions, recomputes spend over each budget's current
    period window and returns at most one ``AlertCandidate`` per budget,
    at the highest tier reached.  ``evaluate_all(now)`` does the same for
    every active budget.

    Read-only.  Spend is recomputed from transactions on every call; no
    lock is taken, duplicate delivery is prevented downstream by the
    AlertRecord unique key.

Scope and window:
    A budget is affected by a transaction of the same owner when its
    category or its wallet matches, and the transaction date falls inside
    the window containing ``now`` (owner's time zone).  Spend is the sum
    of non-deleted EXPENSE amounts in scope with
    ``window.start <= occurred_at < window.end``.
    A transaction dated in an earlier window (an occurrence due Jan 31 but
    materialized on Feb 1) never contributes to any alert.
"""

from __future__ import annotations

from datetime import datetime, tzinfo
from typing import Callable, Iterable, Sequence
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pfm_config.schema import AlertThresholds
from pfm_kernel.domain.dtos import BudgetSnapshot, Direction, TransactionRecord
from pfm_kernel.exceptions import BudgetEvaluationError
from pfm_kernel.logging_config import LogContext, get_logger
from pfm_kernel.models.budget import Budget
from pfm_kernel.models.transaction import Transaction
from pfm_kernel.models.user import UserProfile

from pfm_recurring.domain.budget_window import classify_tier, period_window
from pfm_recurring.domain.frequency import resolve_timezone
from pfm_recurring.domain.types import AlertCandidate, PeriodWindow

logger = get_logger("recurring.budget_evaluator")


class BudgetAlertEvaluator:
    """Recomputes budget spend and classifies alert tiers."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        thresholds: AlertThresholds | None = None,
        default_timezone: str = "UTC",
    ):
        self._session_factory = session_factory
        self._thresholds = thresholds or AlertThresholds()
        self._default_timezone = default_timezone

    @property
    def thresholds(self) -> AlertThresholds:
        return self._thresholds

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def evaluate(
        self,
        transactions: Iterable[TransactionRecord],
        now: datetime,
    ) -> tuple[AlertCandidate, ...]:
        """Alert candidates for budgets touched by ``transactions``."""
        txns = tuple(transactions)
        if not txns:
            return ()

        user_ids = {t.user_id for t in txns}
        with self._session_factory() as session:
            zones = self._user_zones(session, user_ids)
            budgets = self._active_budgets(session, user_ids)

            affected: list[tuple[BudgetSnapshot, PeriodWindow]] = []
            for budget in budgets:
                tz = zones.get(budget.user_id) or resolve_timezone(None, self._default_timezone)
                window = period_window(budget.period, budget.starts_at, now, tz)
                if any(budget.covers(t) and window.contains(t.occurred_at) for t in txns):
                    affected.append((budget, window))

            return self._classify(session, affected)

    def evaluate_all(self, now: datetime) -> tuple[AlertCandidate, ...]:
        """Alert candidates across every active budget."""
        with self._session_factory() as session:
            budgets = self._active_budgets(session)
            zones = self._user_zones(session, {b.user_id for b in budgets})

            affected = [
                (
                    budget,
                    period_window(
                        budget.period,
                        budget.starts_at,
                        now,
                        zones.get(budget.user_id)
                        or resolve_timezone(None, self._default_timezone),
                    ),
                )
                for budget in budgets
            ]
            return self._classify(session, affected)

    def spent_in_window(
        self,
        session: Session,
        budget: BudgetSnapshot,
        window: PeriodWindow,
    ) -> int:
        """Sum of in-scope, non-deleted EXPENSE amounts within ``window``."""
        scope = []
        if budget.category_id is not None:
            scope.append(Transaction.category_id == budget.category_id)
        if budget.wallet_id is not None:
            scope.append(Transaction.wallet_id == budget.wallet_id)
        if not scope:
            return 0

        total = session.execute(
            select(func.coalesce(func.sum(Transaction.amount), 0)).where(
                Transaction.user_id == budget.user_id,
                Transaction.direction == Direction.EXPENSE.value,
                Transaction.is_deleted == False,  # noqa: E712
                Transaction.occurred_at >= window.start,
                Transaction.occurred_at < window.end,
                or_(*scope),
            )
        ).scalar_one()
        return int(total)

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _classify(
        self,
        session: Session,
        affected: Sequence[tuple[BudgetSnapshot, PeriodWindow]],
    ) -> tuple[AlertCandidate, ...]:
        candidates: list[AlertCandidate] = []
        for budget, window in affected:
            with LogContext.bind(budget_id=str(budget.budget_id)):
                try:
                    spent = self.spent_in_window(session, budget, window)
                except SQLAlchemyError as exc:
                    raise BudgetEvaluationError(str(budget.budget_id), str(exc)) from exc

                tier = classify_tier(
                    spent,
                    budget.limit_amount,
                    self._thresholds.warning_ratio,
                    self._thresholds.exceeded_ratio,
                )
                logger.debug(
                    "budget_evaluated",
                    extra={
                        "spent": spent,
                        "limit_amount": budget.limit_amount,
                        "period_start": window.start,
                        "tier": tier.value if tier else None,
                    },
                )
                if tier is None:
                    continue

                candidate = AlertCandidate(
                    budget_id=budget.budget_id,
                    user_id=budget.user_id,
                    budget_name=budget.name,
                    period_start=window.start,
                    period_end=window.end,
                    tier=tier,
                    spent=spent,
                    limit_amount=budget.limit_amount,
                )
                logger.info(
                    "budget_alert_candidate",
                    extra={
                        "tier": tier.value,
                        "spent": spent,
                        "limit_amount": budget.limit_amount,
                        "period_start": window.start,
                    },
                )
                candidates.append(candidate)
        return tuple(candidates)

    def _active_budgets(
        self,
        session: Session,
        user_ids: set[UUID] | None = None,
    ) -> list[BudgetSnapshot]:
        stmt = select(Budget).where(Budget.is_active == True)  # noqa: E712
        if user_ids is not None:
            stmt = stmt.where(Budget.user_id.in_(sorted(user_ids, key=str)))
        stmt = stmt.order_by(Budget.created_at, Budget.id)
        return [b.to_dto() for b in session.execute(stmt).scalars()]

    def _user_zones(self, session: Session, user_ids: set[UUID]) -> dict[UUID, tzinfo]:
        if not user_ids:
            return {}
        rows = session.execute(
            select(UserProfile.id, UserProfile.timezone)
            .where(UserProfile.id.in_(sorted(user_ids, key=str)))
        ).all()
        return {
            user_id: resolve_timezone(tz_name, self._default_timezone)
            for user_id, tz_name in rows
        }
