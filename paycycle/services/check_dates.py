from datetime import date, timedelta

from paycycle.core.errors import DateOrderError

SATURDAY = 5
SUNDAY = 6


def adjust_for_weekend(d: date) -> date:
    """Move a weekend date back onto the preceding Friday."""
    weekday = d.weekday()
    if weekday == SATURDAY:
        return d - timedelta(days=1)
    if weekday == SUNDAY:
        return d - timedelta(days=2)
    return d


def verify(check_date: date, actual_check_date: date, to_date: date) -> bool:
    if actual_check_date < to_date:
        return False
    return adjust_for_weekend(actual_check_date) == check_date


def require_valid_check_dates(
    *,
    check_date: date,
    actual_check_date: date,
    to_date: date,
    label: str = "",
) -> None:
    prefix = f"{label} " if label else ""

    if actual_check_date < to_date:
        raise DateOrderError(f"{prefix}actual check date cannot be before the period end date")

    if not verify(check_date, actual_check_date, to_date):
        raise DateOrderError(
            f"{prefix}check date must be {adjust_for_weekend(actual_check_date).isoformat()} "
            f"for actual check date {actual_check_date.isoformat()}"
        )
