"""
Pure budget period windows and alert tier classification.

Contract:
    ``period_window()`` returns the half-open window of a budget period that
    contains a given instant; ``classify_tier()`` maps spend against limit to
    the highest alert tier reached.  ZERO I/O.

Windows are anchored on the budget's local start date at midnight in the
owner's zone:
    WEEKLY     7 days starting on the anchor weekday
    MONTHLY    1 month  \
    QUARTERLY  3 months  > stepping from the anchor day-of-month, clamped
    YEARLY     12 months/   to the month's length
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from fractions import Fraction

from pfm_kernel.domain.dtos import BudgetPeriod

from pfm_recurring.domain.frequency import add_months, clamped_date
from pfm_recurring.domain.types import AlertTier, PeriodWindow

_MONTH_STEPS = {
    BudgetPeriod.MONTHLY: 1,
    BudgetPeriod.QUARTERLY: 3,
    BudgetPeriod.YEARLY: 12,
}


def _local_midnight(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time(0), tzinfo=tz).astimezone(timezone.utc)


def _month_window_start(anchor: date, step: int, k: int) -> date:
    year, month = add_months(anchor.year, anchor.month, k * step)
    return clamped_date(year, month, anchor.day)


def period_window(
    period: BudgetPeriod,
    starts_at: datetime,
    at: datetime,
    tz: tzinfo = timezone.utc,
) -> PeriodWindow:
    """The budget window containing ``at``.

    Works for instants before ``starts_at`` too (the anchor only fixes the
    phase of the windows, not where they begin).
    """
    anchor = starts_at.astimezone(tz).date()
    day = at.astimezone(tz).date()

    if period is BudgetPeriod.WEEKLY:
        start = day - timedelta(days=(day.weekday() - anchor.weekday()) % 7)
        end = start + timedelta(days=7)
        return PeriodWindow(_local_midnight(start, tz), _local_midnight(end, tz))

    step = _MONTH_STEPS[period]
    months_apart = (day.year - anchor.year) * 12 + (day.month - anchor.month)
    k = months_apart // step
    start = _month_window_start(anchor, step, k)
    if start > day:
        k -= 1
        start = _month_window_start(anchor, step, k)
    end = _month_window_start(anchor, step, k + 1)
    return PeriodWindow(_local_midnight(start, tz), _local_midnight(end, tz))


def classify_tier(
    spent: int,
    limit_amount: int,
    warning_ratio: Fraction = Fraction(4, 5),
    exceeded_ratio: Fraction = Fraction(1),
) -> AlertTier | None:
    """Highest tier reached by ``spent / limit_amount``, or None.

    Evaluated high to low, first match wins, so a single pass can never
    yield both WARNING and EXCEEDED.  Exact rational arithmetic; budgets with
    a non-positive limit never alert.
    """
    if limit_amount <= 0:
        return None
    ratio = Fraction(spent, limit_amount)
    if ratio >= exceeded_ratio:
        return AlertTier.EXCEEDED
    if ratio >= warning_ratio:
        return AlertTier.WARNING
    return None
