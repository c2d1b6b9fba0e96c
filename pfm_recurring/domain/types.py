"""
pfm_recurring.domain.types -- Pure frozen dataclasses for the engine.

ZERO I/O.  Frozen dataclasses with enum status fields and tuples for
immutable collections, passed between the claimer, materializer, alert
evaluator, deduplicator and processor.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from fractions import Fraction
from typing import Any
from uuid import UUID

from pfm_kernel.domain.dtos import Direction, NotificationKind


# =============================================================================
# Enums
# =============================================================================


class Frequency(str, Enum):
    """Recurrence frequency of a template."""

    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"


class AlertTier(str, Enum):
    """Budget alert severity.  Higher tiers are listed first."""

    EXCEEDED = "EXCEEDED"
    WARNING = "WARNING"

    @property
    def notification_kind(self) -> NotificationKind:
        if self is AlertTier.EXCEEDED:
            return NotificationKind.BUDGET_EXCEEDED
        return NotificationKind.BUDGET_WARNING


class ClaimStatus(str, Enum):
    CLAIMED = "claimed"  # Conditional write won; occurrence is ours
    LOST = "lost"  # Another invocation claimed it first (not an error)
    DEACTIVATED = "deactivated"  # Due occurrence lies past end_date


# =============================================================================
# Schedule
# =============================================================================


@dataclass(frozen=True)
class FrequencySpec:
    """Schedule descriptor: frequency plus optional anchor override.

    ``anchor_day`` is a day-of-month (1-31) for month-based and yearly
    frequencies' day, or a weekday (0=Monday .. 6=Sunday) for week-based
    frequencies.  When None, the anchor timestamp supplies it.
    """

    frequency: Frequency
    anchor_day: int | None = None


# =============================================================================
# Templates and claims
# =============================================================================


@dataclass(frozen=True)
class RecurringTemplate:
    """Immutable snapshot of a recurring template."""

    template_id: UUID
    user_id: UUID
    description: str | None
    amount: int  # positive minor units
    direction: Direction
    category_id: UUID
    wallet_id: UUID
    schedule: FrequencySpec
    anchor_at: datetime
    next_run_at: datetime
    last_run_at: datetime | None = None
    is_active: bool = True
    end_date: datetime | None = None


@dataclass(frozen=True)
class DueTemplate:
    """A template selected as due, with the ``next_run_at`` value read.

    The claim UPDATE is conditional on ``next_run_at`` still equal to
    ``read_next_run_at``.
    """

    template: RecurringTemplate
    read_next_run_at: datetime
    timezone: str = "UTC"


@dataclass(frozen=True)
class ClaimedOccurrence:
    """A due occurrence this invocation owns, exactly once."""

    template: RecurringTemplate
    due_at: datetime
    next_run_at: datetime
    skipped_occurrences: int = 0
    deactivated: bool = False  # claim also ended the schedule (end_date reached)


@dataclass(frozen=True)
class ClaimOutcome:
    status: ClaimStatus
    template_id: UUID
    occurrence: ClaimedOccurrence | None = None


# =============================================================================
# Budget alerts
# =============================================================================


@dataclass(frozen=True)
class PeriodWindow:
    """Half-open budget period ``[start, end)`` as UTC instants."""

    start: datetime
    end: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end


@dataclass(frozen=True)
class AlertCandidate:
    """At most one per (budget, period) per evaluation pass."""

    budget_id: UUID
    user_id: UUID
    budget_name: str
    period_start: datetime
    period_end: datetime
    tier: AlertTier
    spent: int
    limit_amount: int

    @property
    def ratio(self) -> Fraction:
        return Fraction(self.spent, self.limit_amount)


# =============================================================================
# Run results
# =============================================================================


@dataclass(frozen=True)
class TemplateError:
    """Failure surfaced in the run summary.

    ``template_id`` is None for budget-sweep failures, which belong to no
    template.
    """

    template_id: UUID | None
    reason: str
    stage: str  # "claim" | "materialize" | "alerts" | "sweep"
    code: str | None = None


@dataclass(frozen=True)
class TemplateResult:
    """Outcome of one template's pipeline within a run."""

    template_id: UUID
    claim_status: ClaimStatus | None = None
    transaction_created: bool = False
    alerts_created: int = 0
    errors: tuple[TemplateError, ...] = ()


@dataclass(frozen=True)
class RunSummary:
    """Aggregate result of ``process_due`` returned to the trigger caller."""

    run_id: UUID
    processed_count: int = 0
    created_transaction_count: int = 0
    created_alert_count: int = 0
    deactivated_count: int = 0
    skipped_count: int = 0
    errors: tuple[TemplateError, ...] = ()
    started_at: datetime | None = None
    completed_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """External shape consumed by the scheduler caller."""
        return {
            "processedCount": self.processed_count,
            "createdTransactionCount": self.created_transaction_count,
            "createdAlertCount": self.created_alert_count,
            "errors": [
                {
                    "templateId": str(e.template_id) if e.template_id is not None else None,
                    "reason": e.reason,
                }
                for e in self.errors
            ],
        }
