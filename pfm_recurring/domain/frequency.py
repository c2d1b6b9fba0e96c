"""
Pure next-occurrence calculation for recurring templates.

Contract:
    ``next_occurrence(schedule, anchor, from_, tz)`` maps a schedule descriptor,
    the schedule anchor and the previous occurrence to the next one.  No
    clock, no I/O, no side effects.

Rules (all in the wall-clock of ``tz``; results returned as UTC instants,
always at the anchor's local time-of-day):
    DAILY      local date of ``from_`` + 1 day
    WEEKLY     + 7 days, moved back onto the anchor weekday
    BIWEEKLY   + 14 days, moved back onto the anchor weekday
    MONTHLY    next month, anchor day-of-month clamped to month end
    QUARTERLY  3 months on, anchor day-of-month clamped to month end
    YEARLY     next year, anchor month/day; Feb 29 clamps to Feb 28

Every result is strictly after ``from_``.  Clamping never drifts: the
anchor day is re-applied each time, so Jan 31 -> Feb 28 -> Mar 31.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pfm_kernel.exceptions import InvalidScheduleError

from pfm_recurring.domain.types import Frequency, FrequencySpec

_WEEK_STEPS = {Frequency.WEEKLY: 7, Frequency.BIWEEKLY: 14}
_MONTH_STEPS = {Frequency.MONTHLY: 1, Frequency.QUARTERLY: 3}


def resolve_timezone(name: str | None, default: str = "UTC") -> tzinfo:
    """Resolve an IANA zone name, falling back to ``default`` when unusable."""
    for candidate in (name, default):
        if not candidate:
            continue
        try:
            return ZoneInfo(candidate)
        except (ZoneInfoNotFoundError, ValueError):
            continue
    return timezone.utc


def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def add_months(year: int, month: int, months: int) -> tuple[int, int]:
    """Return (year, month) shifted by ``months`` (may be negative)."""
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def clamped_date(year: int, month: int, day: int) -> date:
    """``date(year, month, day)`` with ``day`` clamped to the month's length."""
    return date(year, month, min(day, last_day_of_month(year, month)))


def _require_aware(name: str, value: datetime, frequency: Frequency) -> None:
    if value.tzinfo is None or value.utcoffset() is None:
        raise InvalidScheduleError(frequency.value, f"{name} must be timezone-aware")


def _anchor_weekday(schedule: FrequencySpec, local_anchor: datetime) -> int:
    if schedule.anchor_day is None:
        return local_anchor.weekday()
    if not 0 <= schedule.anchor_day <= 6:
        raise InvalidScheduleError(
            schedule.frequency.value, f"weekday anchor must be 0-6, got {schedule.anchor_day}",
        )
    return schedule.anchor_day


def _anchor_day_of_month(schedule: FrequencySpec, local_anchor: datetime) -> int:
    if schedule.anchor_day is None:
        return local_anchor.day
    if not 1 <= schedule.anchor_day <= 31:
        raise InvalidScheduleError(
            schedule.frequency.value, f"day-of-month anchor must be 1-31, got {schedule.anchor_day}",
        )
    return schedule.anchor_day


def next_occurrence(
    schedule: FrequencySpec,
    anchor: datetime,
    from_: datetime,
    tz: tzinfo = timezone.utc,
) -> datetime:
    """Compute the occurrence following ``from_``.

    Args:
        schedule: Frequency and optional anchor-day override.
        anchor: Schedule anchor (normally the template start); supplies the
            time-of-day and, unless overridden, the weekday/day/month.
        from_: The previous occurrence.
        tz: Zone of the template owner.

    Raises:
        InvalidScheduleError: naive datetimes or an out-of-range anchor day.
    """
    frequency = schedule.frequency
    _require_aware("anchor", anchor, frequency)
    _require_aware("from_", from_, frequency)

    local_anchor = anchor.astimezone(tz)
    local_from = from_.astimezone(tz)

    if frequency is Frequency.DAILY:
        target = local_from.date() + timedelta(days=1)

    elif frequency in _WEEK_STEPS:
        target = local_from.date() + timedelta(days=_WEEK_STEPS[frequency])
        weekday = _anchor_weekday(schedule, local_anchor)
        target -= timedelta(days=(target.weekday() - weekday) % 7)

    elif frequency in _MONTH_STEPS:
        year, month = add_months(local_from.year, local_from.month, _MONTH_STEPS[frequency])
        target = clamped_date(year, month, _anchor_day_of_month(schedule, local_anchor))

    else:  # YEARLY
        target = clamped_date(
            local_from.year + 1,
            local_anchor.month,
            _anchor_day_of_month(schedule, local_anchor),
        )

    local_result = datetime.combine(target, local_anchor.time(), tzinfo=tz)
    return local_result.astimezone(timezone.utc)


def advance_past(
    schedule: FrequencySpec,
    anchor: datetime,
    due_at: datetime,
    now: datetime,
    tz: tzinfo = timezone.utc,
) -> tuple[datetime, int]:
    """First occurrence after ``due_at`` that is strictly after ``now``.

    Occurrences between ``due_at`` and ``now`` are skipped, never
    back-filled.  Returns ``(next_run_at, skipped_count)``.
    """
    next_run = next_occurrence(schedule, anchor, due_at, tz)
    skipped = 0
    while next_run <= now:
        next_run = next_occurrence(schedule, anchor, next_run, tz)
        skipped += 1
    return next_run, skipped
