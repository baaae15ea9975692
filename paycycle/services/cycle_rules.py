"""Calendar rules for recurring pay periods.

Everything here is pure: no database access, no clock reads. A cycle setting
is described by its type and the ``from_date`` of its first period; every
later period is derived from that anchor, so the sequence never drifts when
months have different lengths.
"""

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Iterator, Optional, Union

from paycycle.core.errors import DateOrderError, InvalidCycleType
from paycycle.services.check_dates import adjust_for_weekend


class CycleType(str, Enum):
    WEEKLY = "Weekly"
    BIWEEKLY = "BiWeekly"
    SEMIMONTHLY = "SemiMonthly"
    MONTHLY = "Monthly"


# Numeric ids used by older payroll exports.
_LEGACY_IDS = {
    1: CycleType.WEEKLY,
    2: CycleType.BIWEEKLY,
    3: CycleType.SEMIMONTHLY,
    4: CycleType.MONTHLY,
}

_FIXED_SPAN_DAYS = {
    CycleType.WEEKLY: 7,
    CycleType.BIWEEKLY: 14,
}

# First half of a semimonthly block ends on from_date + 14 (the 15th when
# the block starts on the 1st).
SEMIMONTHLY_FIRST_HALF_DAYS = 15


@dataclass(frozen=True)
class DerivedPeriod:
    to_date: date
    check_date: date


@dataclass(frozen=True)
class SecondHalf:
    second_from_date: date
    second_to_date: date


@dataclass(frozen=True)
class PeriodDates:
    from_date: date
    to_date: date
    check_date: date
    actual_check_date: date


def parse_cycle_type(value: Union[str, int, CycleType, None]) -> CycleType:
    if isinstance(value, CycleType):
        return value

    if isinstance(value, bool) or value is None:
        raise InvalidCycleType(f"Invalid cycle type: {value!r}")

    if isinstance(value, int):
        if value in _LEGACY_IDS:
            return _LEGACY_IDS[value]
        raise InvalidCycleType(f"Invalid cycle type: {value!r}")

    raw = str(value).strip()
    if raw.isdigit():
        return parse_cycle_type(int(raw))

    normalized = raw.replace("-", "").replace("_", "").replace(" ", "").lower()
    for cycle_type in CycleType:
        if normalized in (cycle_type.value.lower(), cycle_type.name.lower()):
            return cycle_type

    raise InvalidCycleType(f"Invalid cycle type: {value!r}")


def add_months(d: date, months: int) -> date:
    """Same day ``months`` later, clamped to the length of the target month."""
    month_index = d.month - 1 + int(months)
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def one_month_end(d: date) -> date:
    """Last day of the one-month span starting at ``d``."""
    return add_months(d, 1) - timedelta(days=1)


def derive_period(cycle_type, from_date: date) -> DerivedPeriod:
    cycle_type = parse_cycle_type(cycle_type)

    if cycle_type in _FIXED_SPAN_DAYS:
        to_date = from_date + timedelta(days=_FIXED_SPAN_DAYS[cycle_type] - 1)
    elif cycle_type == CycleType.MONTHLY:
        to_date = one_month_end(from_date)
    else:
        to_date = from_date + timedelta(days=SEMIMONTHLY_FIRST_HALF_DAYS - 1)

    return DerivedPeriod(to_date=to_date, check_date=adjust_for_weekend(to_date))


def derive_second_half(to_date: date) -> SecondHalf:
    block_start = to_date - timedelta(days=SEMIMONTHLY_FIRST_HALF_DAYS - 1)
    return SecondHalf(
        second_from_date=to_date + timedelta(days=1),
        second_to_date=one_month_end(block_start),
    )


def validate_to_date(cycle_type, from_date: date, to_date: date) -> DerivedPeriod:
    derived = derive_period(cycle_type, from_date)
    if to_date != derived.to_date:
        raise DateOrderError(
            f"to_date must be {derived.to_date.isoformat()} for a "
            f"{parse_cycle_type(cycle_type).value} cycle starting {from_date.isoformat()}"
        )
    return derived


def validate_second_half(to_date: date, second_from_date: date, second_to_date: date) -> SecondHalf:
    derived = derive_second_half(to_date)
    if second_from_date != derived.second_from_date:
        raise DateOrderError(
            f"second_from_date must be {derived.second_from_date.isoformat()} (the day after to_date)"
        )
    if second_to_date != derived.second_to_date:
        raise DateOrderError(f"second_to_date must be {derived.second_to_date.isoformat()}")
    return derived


def _with_check(from_date: date, to_date: date, raise_days: int) -> PeriodDates:
    actual = to_date + timedelta(days=max(int(raise_days), 0))
    return PeriodDates(
        from_date=from_date,
        to_date=to_date,
        check_date=adjust_for_weekend(actual),
        actual_check_date=actual,
    )


def iter_periods(
    cycle_type,
    anchor_from_date: date,
    *,
    raise_days: int = 0,
    second_raise_days: Optional[int] = None,
) -> Iterator[PeriodDates]:
    """Yield the periods of a cycle in order, starting with the anchor period.

    ``raise_days`` is the distance from a period's end to its actual check
    date; semimonthly second halves use ``second_raise_days`` when given.
    The iterator is infinite; callers bound it.
    """
    cycle_type = parse_cycle_type(cycle_type)
    if second_raise_days is None:
        second_raise_days = raise_days

    index = 0
    while True:
        if cycle_type in _FIXED_SPAN_DAYS:
            span = _FIXED_SPAN_DAYS[cycle_type]
            from_date = anchor_from_date + timedelta(days=span * index)
            yield _with_check(from_date, from_date + timedelta(days=span - 1), raise_days)
        elif cycle_type == CycleType.MONTHLY:
            from_date = add_months(anchor_from_date, index)
            to_date = add_months(anchor_from_date, index + 1) - timedelta(days=1)
            yield _with_check(from_date, to_date, raise_days)
        else:
            block_start = add_months(anchor_from_date, index)
            first_to = block_start + timedelta(days=SEMIMONTHLY_FIRST_HALF_DAYS - 1)
            block_end = add_months(anchor_from_date, index + 1) - timedelta(days=1)
            yield _with_check(block_start, first_to, raise_days)
            yield _with_check(first_to + timedelta(days=1), block_end, second_raise_days)
        index += 1


def next_period_after(
    cycle_type,
    anchor_from_date: date,
    after: date,
    *,
    raise_days: int = 0,
    second_raise_days: Optional[int] = None,
) -> PeriodDates:
    """First period of the cycle whose from_date is later than ``after``."""
    for period in iter_periods(
        cycle_type,
        anchor_from_date,
        raise_days=raise_days,
        second_raise_days=second_raise_days,
    ):
        if period.from_date > after:
            return period
