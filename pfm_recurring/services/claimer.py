"""
TemplateClaimer -- race-safe selection and claiming of due templates.

Contract:
    ``find_due(now)`` reads every active template with ``next_run_at <= now``.
    ``claim(due, now)`` advances the template's schedule with a conditional
    UPDATE that only applies while ``next_run_at`` still holds the value
    that was read.  Exactly one of any number of concurrent invocations wins
    a given occurrence; the others observe ``ClaimStatus.LOST``.

Architecture: pfm_recurring/services.  Uses pfm_recurring.domain.frequency
    for the pure schedule arithmetic; each claim is its own committed unit.

Invariants enforced:
    - At most one claimant per template per due occurrence (optimistic
      precondition on ``next_run_at``; no locks held across steps).
    - A template whose due date has not arrived is never selected.
    - After a claim ``next_run_at > last_run_at``; missed intermediate
      occurrences are skipped, never back-filled.
    - Nothing is claimed once ``end_date`` is behind ``now``, even when the
      due occurrence itself fell on or before it.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from pfm_kernel.logging_config import get_logger
from pfm_kernel.models.user import UserProfile

from pfm_recurring.domain.frequency import advance_past, resolve_timezone
from pfm_recurring.domain.types import (
    ClaimedOccurrence,
    ClaimOutcome,
    ClaimStatus,
    DueTemplate,
)
from pfm_recurring.models.recurring import RecurringTemplateModel

logger = get_logger("recurring.claimer")


class TemplateClaimer:
    """Selects due templates and claims each occurrence exactly once.

    Non-goals:
        - Does NOT create transactions -- that is the materializer's job.
        - Does NOT hold a session across calls; every method opens and
          closes its own.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        default_timezone: str = "UTC",
    ):
        self._session_factory = session_factory
        self._default_timezone = default_timezone

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------

    def find_due(self, now: datetime) -> tuple[DueTemplate, ...]:
        """Active templates with ``next_run_at <= now``, oldest first."""
        with self._session_factory() as session:
            rows = session.execute(
                select(RecurringTemplateModel, UserProfile.timezone)
                .outerjoin(UserProfile, UserProfile.id == RecurringTemplateModel.user_id)
                .where(
                    RecurringTemplateModel.is_active == True,  # noqa: E712
                    RecurringTemplateModel.next_run_at <= now,
                )
                .order_by(RecurringTemplateModel.next_run_at, RecurringTemplateModel.id)
            ).all()

            due = tuple(
                DueTemplate(
                    template=model.to_dto(),
                    read_next_run_at=model.next_run_at,
                    timezone=tz_name or self._default_timezone,
                )
                for model, tz_name in rows
            )

        logger.debug("due_templates_selected", extra={"count": len(due), "now": now})
        return due

    # -------------------------------------------------------------------------
    # Claim
    # -------------------------------------------------------------------------

    def claim(self, due: DueTemplate, now: datetime) -> ClaimOutcome:
        """Conditionally advance one due template.

        Returns:
            CLAIMED with the occurrence, LOST when another invocation already
            advanced it, or DEACTIVATED when end_date has already passed.
        """
        template = due.template
        due_at = due.read_next_run_at

        if template.end_date is not None and template.end_date < now:
            won = self._conditional_update(due, {"is_active": False, "updated_at": now})
            status = ClaimStatus.DEACTIVATED if won else ClaimStatus.LOST
            logger.info(
                "template_deactivated" if won else "claim_lost",
                extra={
                    "template_id": str(template.template_id),
                    "due_at": due_at,
                    "end_date": template.end_date,
                },
            )
            return ClaimOutcome(status=status, template_id=template.template_id)

        tz = resolve_timezone(due.timezone, self._default_timezone)
        next_run_at, skipped = advance_past(
            template.schedule, template.anchor_at, due_at, now, tz,
        )
        ends = template.end_date is not None and next_run_at > template.end_date

        values: dict[str, Any] = {
            "next_run_at": next_run_at,
            "last_run_at": now,
            "updated_at": now,
        }
        if ends:
            values["is_active"] = False

        if not self._conditional_update(due, values):
            logger.info(
                "claim_lost",
                extra={"template_id": str(template.template_id), "due_at": due_at},
            )
            return ClaimOutcome(status=ClaimStatus.LOST, template_id=template.template_id)

        if skipped:
            logger.warning(
                "occurrences_skipped",
                extra={
                    "template_id": str(template.template_id),
                    "skipped": skipped,
                    "due_at": due_at,
                    "next_run_at": next_run_at,
                },
            )

        logger.info(
            "template_claimed",
            extra={
                "template_id": str(template.template_id),
                "due_at": due_at,
                "next_run_at": next_run_at,
                "schedule_ended": ends,
            },
        )

        return ClaimOutcome(
            status=ClaimStatus.CLAIMED,
            template_id=template.template_id,
            occurrence=ClaimedOccurrence(
                template=template,
                due_at=due_at,
                next_run_at=next_run_at,
                skipped_occurrences=skipped,
                deactivated=ends,
            ),
        )

    def claim_due(self, now: datetime) -> tuple[ClaimedOccurrence, ...]:
        """Find and claim every due template; returns only the ones won."""
        claimed: list[ClaimedOccurrence] = []
        for due in self.find_due(now):
            outcome = self.claim(due, now)
            if outcome.occurrence is not None:
                claimed.append(outcome.occurrence)
        return tuple(claimed)

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _conditional_update(self, due: DueTemplate, values: dict[str, Any]) -> bool:
        """UPDATE guarded by the read ``next_run_at``; True if this call won."""
        with self._session_factory() as session:
            try:
                result = session.execute(
                    update(RecurringTemplateModel)
                    .where(
                        RecurringTemplateModel.id == due.template.template_id,
                        RecurringTemplateModel.is_active == True,  # noqa: E712
                        RecurringTemplateModel.next_run_at == due.read_next_run_at,
                    )
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                session.commit()
            except Exception:
                session.rollback()
                raise
        return result.rowcount == 1
