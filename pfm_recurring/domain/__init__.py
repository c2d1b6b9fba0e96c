"""
pfm_recurring.domain -- Pure types and functions for the engine.

ZERO I/O.  All types are frozen dataclasses.
"""

from pfm_recurring.domain.budget_window import classify_tier, period_window
from pfm_recurring.domain.frequency import (
    advance_past,
    next_occurrence,
    resolve_timezone,
)
from pfm_recurring.domain.types import (
    AlertCandidate,
    AlertTier,
    ClaimedOccurrence,
    ClaimOutcome,
    ClaimStatus,
    DueTemplate,
    Frequency,
    FrequencySpec,
    PeriodWindow,
    RecurringTemplate,
    RunSummary,
    TemplateError,
    TemplateResult,
)

__all__ = [
    "AlertCandidate",
    "AlertTier",
    "ClaimedOccurrence",
    "ClaimOutcome",
    "ClaimStatus",
    "DueTemplate",
    "Frequency",
    "FrequencySpec",
    "PeriodWindow",
    "RecurringTemplate",
    "RunSummary",
    "TemplateError",
    "TemplateResult",
    "advance_past",
    "classify_tier",
    "next_occurrence",
    "period_window",
    "resolve_timezone",
]
