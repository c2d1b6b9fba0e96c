"""
RecurringProcessor -- one processing pass over every due template.

Contract:
    ``run(now)`` claims each due template, materializes the claimed
    occurrence, evaluates the affected budgets and delivers deduplicated
    alerts, then returns a ``RunSummary``.

Architecture: pfm_recurring/services.  Composes the claimer, materializer,
    evaluator and deduplicator; owns no SQL of its own.

Concurrency:
    Per-template pipelines run on a ThreadPoolExecutor bounded by
    ``max_workers`` (1 means sequential).  Steps of one template run in
    order on one worker; every step opens its own session, so nothing
    session-bound crosses threads.

Failure modes:
    A failure in one template's pipeline, or in the budget sweep, is
    logged, recorded in the summary's ``errors`` with the stage it happened
    in, and never stops the rest of the batch.  An alerting failure does
    not undo the committed transaction.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Sequence
from uuid import UUID, uuid4

from pfm_kernel.domain.clock import Clock, SystemClock
from pfm_kernel.logging_config import LogContext, get_logger

from pfm_recurring.domain.types import (
    AlertCandidate,
    ClaimStatus,
    DueTemplate,
    RunSummary,
    TemplateError,
    TemplateResult,
)
from pfm_recurring.services.budget_evaluator import BudgetAlertEvaluator
from pfm_recurring.services.claimer import TemplateClaimer
from pfm_recurring.services.deduplicator import NotificationDeduplicator
from pfm_recurring.services.materializer import TransactionMaterializer

logger = get_logger("recurring.processor")


def _template_error(template_id: UUID | None, stage: str, exc: Exception) -> TemplateError:
    return TemplateError(
        template_id=template_id,
        reason=str(exc) or type(exc).__name__,
        stage=stage,
        code=getattr(exc, "code", None),
    )


class RecurringProcessor:
    """Runs claim -> materialize -> evaluate -> deduplicate for a batch."""

    def __init__(
        self,
        claimer: TemplateClaimer,
        materializer: TransactionMaterializer,
        evaluator: BudgetAlertEvaluator,
        deduplicator: NotificationDeduplicator,
        max_workers: int = 1,
        sweep_all_budgets: bool = False,
        clock: Clock | None = None,
    ):
        self._claimer = claimer
        self._materializer = materializer
        self._evaluator = evaluator
        self._deduplicator = deduplicator
        self._max_workers = max(1, max_workers)
        self._sweep_all_budgets = sweep_all_budgets
        self._clock = clock or SystemClock()

    def run(self, now: datetime, run_id: UUID | None = None) -> RunSummary:
        """Process every template due at ``now``."""
        run_id = run_id or uuid4()
        started_at = self._clock.now()

        with LogContext.bind(run_id=str(run_id)):
            due = self._claimer.find_due(now)
            logger.info(
                "recurring_run_started",
                extra={"now": now, "due_count": len(due), "max_workers": self._max_workers},
            )

            results = self._process_all(due, now, run_id)
            swept_alerts, sweep_errors = (
                self._sweep(now) if self._sweep_all_budgets else (0, ())
            )

            errors = tuple(e for r in results for e in r.errors) + sweep_errors
            summary = RunSummary(
                run_id=run_id,
                processed_count=sum(
                    1 for r in results if r.claim_status is ClaimStatus.CLAIMED
                ),
                created_transaction_count=sum(1 for r in results if r.transaction_created),
                created_alert_count=sum(r.alerts_created for r in results) + swept_alerts,
                deactivated_count=sum(
                    1 for r in results if r.claim_status is ClaimStatus.DEACTIVATED
                ),
                skipped_count=sum(1 for r in results if r.claim_status is ClaimStatus.LOST),
                errors=errors,
                started_at=started_at,
                completed_at=self._clock.now(),
            )

            logger.info(
                "recurring_run_completed",
                extra={
                    "processed_count": summary.processed_count,
                    "created_transaction_count": summary.created_transaction_count,
                    "created_alert_count": summary.created_alert_count,
                    "deactivated_count": summary.deactivated_count,
                    "skipped_count": summary.skipped_count,
                    "error_count": len(summary.errors),
                },
            )
        return summary

    # -------------------------------------------------------------------------
    # Per-template pipeline
    # -------------------------------------------------------------------------

    def _process_all(
        self,
        due: Sequence[DueTemplate],
        now: datetime,
        run_id: UUID,
    ) -> list[TemplateResult]:
        if self._max_workers == 1 or len(due) <= 1:
            return [self._process_one(d, now, run_id) for d in due]

        # Context variables do not flow into pool threads; each worker
        # rebinds run_id itself.
        with ThreadPoolExecutor(
            max_workers=self._max_workers,
            thread_name_prefix="pfm-recurring",
        ) as pool:
            return list(pool.map(lambda d: self._process_one(d, now, run_id), due))

    def _process_one(self, due: DueTemplate, now: datetime, run_id: UUID) -> TemplateResult:
        template = due.template
        template_id = template.template_id

        with LogContext.bind(
            run_id=str(run_id),
            template_id=str(template_id),
            user_id=str(template.user_id),
        ):
            try:
                outcome = self._claimer.claim(due, now)
            except Exception as exc:
                logger.exception("claim_failed")
                return TemplateResult(
                    template_id=template_id,
                    errors=(_template_error(template_id, "claim", exc),),
                )

            if outcome.occurrence is None:
                return TemplateResult(template_id=template_id, claim_status=outcome.status)

            try:
                record = self._materializer.materialize(outcome.occurrence)
            except Exception as exc:
                logger.exception(
                    "materialize_failed",
                    extra={"due_at": outcome.occurrence.due_at},
                )
                return TemplateResult(
                    template_id=template_id,
                    claim_status=outcome.status,
                    errors=(_template_error(template_id, "materialize", exc),),
                )

            try:
                candidates = self._evaluator.evaluate((record,), now)
                alerts_created = self._deliver(candidates, now)
            except Exception as exc:
                logger.exception("alert_evaluation_failed")
                return TemplateResult(
                    template_id=template_id,
                    claim_status=outcome.status,
                    transaction_created=True,
                    errors=(_template_error(template_id, "alerts", exc),),
                )

            return TemplateResult(
                template_id=template_id,
                claim_status=outcome.status,
                transaction_created=True,
                alerts_created=alerts_created,
            )

    # -------------------------------------------------------------------------
    # Alerts
    # -------------------------------------------------------------------------

    def _deliver(self, candidates: Sequence[AlertCandidate], now: datetime) -> int:
        delivered = 0
        for candidate in candidates:
            if self._deliver_one(candidate, now):
                delivered += 1
        return delivered

    def _deliver_one(self, candidate: AlertCandidate, now: datetime) -> bool:
        with LogContext.bind(budget_id=str(candidate.budget_id)):
            return self._deduplicator.deliver(candidate, now) is not None

    def _sweep(self, now: datetime) -> tuple[int, tuple[TemplateError, ...]]:
        """Evaluate every active budget; each failure becomes a sweep error."""
        try:
            candidates = self._evaluator.evaluate_all(now)
        except Exception as exc:
            logger.exception("budget_sweep_failed")
            return 0, (_template_error(None, "sweep", exc),)

        delivered = 0
        errors: list[TemplateError] = []
        for candidate in candidates:
            try:
                if self._deliver_one(candidate, now):
                    delivered += 1
            except Exception as exc:
                logger.exception(
                    "budget_sweep_delivery_failed",
                    extra={"budget_id": str(candidate.budget_id)},
                )
                errors.append(_template_error(None, "sweep", exc))
        return delivered, tuple(errors)
