import logging
import os
from datetime import date
from typing import List, Optional

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from paycycle.core.errors import TransactionAborted, ValidationError
from paycycle.database import SessionLocal
from paycycle.models.pay_period import PayPeriod
from paycycle.models.payroll_cycle_setting import PayrollCycleSetting
from paycycle.services import period_store
from paycycle.services.check_dates import require_valid_check_dates
from paycycle.services.cycle_rules import (
    CycleType,
    PeriodDates,
    next_period_after,
    parse_cycle_type,
    validate_second_half,
    validate_to_date,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_SCHEDULED_PERIODS = 16
MAX_NAME_LENGTH = 100

SECOND_HALF_FIELDS = (
    "second_from_date",
    "second_to_date",
    "second_check_date",
    "second_actual_check_date",
)


def _max_scheduled_periods() -> int:
    raw = os.getenv("MAX_SCHEDULED_PERIODS")
    if not raw:
        return DEFAULT_MAX_SCHEDULED_PERIODS
    try:
        value = int(raw)
    except ValueError:
        return DEFAULT_MAX_SCHEDULED_PERIODS
    return value if value > 0 else DEFAULT_MAX_SCHEDULED_PERIODS


def validate_cycle_dates(
    *,
    cycle_type,
    from_date: date,
    to_date: date,
    check_date: date,
    actual_check_date: date,
    second_from_date: Optional[date] = None,
    second_to_date: Optional[date] = None,
    second_check_date: Optional[date] = None,
    second_actual_check_date: Optional[date] = None,
) -> CycleType:
    cycle_type = parse_cycle_type(cycle_type)

    validate_to_date(cycle_type, from_date, to_date)
    require_valid_check_dates(
        check_date=check_date,
        actual_check_date=actual_check_date,
        to_date=to_date,
    )

    second = (second_from_date, second_to_date, second_check_date, second_actual_check_date)

    if cycle_type != CycleType.SEMIMONTHLY:
        if any(v is not None for v in second):
            raise ValidationError("Second half dates are only allowed for SemiMonthly cycles")
        return cycle_type

    if any(v is None for v in second):
        raise ValidationError("SemiMonthly cycles require all second half dates")

    validate_second_half(to_date, second_from_date, second_to_date)
    require_valid_check_dates(
        check_date=second_check_date,
        actual_check_date=second_actual_check_date,
        to_date=second_to_date,
        label="second half",
    )
    return cycle_type


def _schedule_kwargs(setting: PayrollCycleSetting) -> dict:
    raise_days = (setting.actual_check_date - setting.to_date).days
    second_raise_days = None
    if setting.second_actual_check_date is not None and setting.second_to_date is not None:
        second_raise_days = (setting.second_actual_check_date - setting.second_to_date).days
    return {
        "raise_days": raise_days,
        "second_raise_days": second_raise_days,
    }


def first_period_dates(setting: PayrollCycleSetting) -> PeriodDates:
    return PeriodDates(
        from_date=setting.from_date,
        to_date=setting.to_date,
        check_date=setting.check_date,
        actual_check_date=setting.actual_check_date,
    )


def next_period_dates(setting: PayrollCycleSetting, latest: Optional[PayPeriod]) -> PeriodDates:
    """Dates of the period following ``latest`` (or the first period)."""
    if latest is None:
        return first_period_dates(setting)

    return next_period_after(
        setting.cycle_type,
        setting.from_date,
        latest.to_date,
        **_schedule_kwargs(setting),
    )


def _ensure_name_available(db: Session, *, company_id: int, name: str, exclude_id: Optional[int] = None) -> None:
    q = (
        db.query(PayrollCycleSetting.id)
        .filter(PayrollCycleSetting.company_id == int(company_id))
        .filter(PayrollCycleSetting.name == name)
    )
    if exclude_id is not None:
        q = q.filter(PayrollCycleSetting.id != int(exclude_id))
    if q.first() is not None:
        raise ValidationError(f"Payroll settings name already exists: {name}")


def _clean_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"name must be at most {MAX_NAME_LENGTH} characters")
    return name


def create_settings(
    *,
    company_id: int,
    name: str,
    cycle_type,
    from_date: date,
    to_date: date,
    check_date: date,
    actual_check_date: date,
    second_from_date: Optional[date] = None,
    second_to_date: Optional[date] = None,
    second_check_date: Optional[date] = None,
    second_actual_check_date: Optional[date] = None,
    created_by: Optional[str] = None,
    db: Optional[Session] = None,
) -> PayrollCycleSetting:
    """Create a cycle setting and seed its first period as YetToGenerate."""
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        name = _clean_name(name)
        cycle_type = validate_cycle_dates(
            cycle_type=cycle_type,
            from_date=from_date,
            to_date=to_date,
            check_date=check_date,
            actual_check_date=actual_check_date,
            second_from_date=second_from_date,
            second_to_date=second_to_date,
            second_check_date=second_check_date,
            second_actual_check_date=second_actual_check_date,
        )
        _ensure_name_available(db, company_id=company_id, name=name)

        setting = PayrollCycleSetting(
            company_id=int(company_id),
            name=name,
            cycle_type=cycle_type.value,
            from_date=from_date,
            to_date=to_date,
            check_date=check_date,
            actual_check_date=actual_check_date,
            second_from_date=second_from_date,
            second_to_date=second_to_date,
            second_check_date=second_check_date,
            second_actual_check_date=second_actual_check_date,
            created_by=created_by,
        )
        db.add(setting)
        db.flush()

        period_store.insert_period(db, setting=setting, dates=first_period_dates(setting))

        if owns_db:
            db.commit()

        logger.info(
            "Payroll settings created",
            extra={"company_id": int(company_id), "settings_id": setting.id, "cycle_type": cycle_type.value},
        )
        return setting

    except OperationalError as exc:
        if owns_db:
            db.rollback()
        raise TransactionAborted(str(exc.orig)) from exc
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()


def update_settings(
    *,
    company_id: int,
    settings_id: int,
    name: str,
    cycle_type,
    from_date: date,
    to_date: date,
    check_date: date,
    actual_check_date: date,
    second_from_date: Optional[date] = None,
    second_to_date: Optional[date] = None,
    second_check_date: Optional[date] = None,
    second_actual_check_date: Optional[date] = None,
    edit_from_date: Optional[date] = None,
    db: Optional[Session] = None,
) -> PayrollCycleSetting:
    """Replace a setting's dates.

    Periods that were never generated (YetToGenerate) are discarded, from
    ``edit_from_date`` onwards when given, and the next period is re-seeded
    from the new dates. Drafted and resolved periods are never touched.
    """
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        name = _clean_name(name)
        cycle_type = validate_cycle_dates(
            cycle_type=cycle_type,
            from_date=from_date,
            to_date=to_date,
            check_date=check_date,
            actual_check_date=actual_check_date,
            second_from_date=second_from_date,
            second_to_date=second_to_date,
            second_check_date=second_check_date,
            second_actual_check_date=second_actual_check_date,
        )

        setting = period_store.get_setting(db, company_id=company_id, settings_id=settings_id, lock=True)
        _ensure_name_available(db, company_id=company_id, name=name, exclude_id=setting.id)

        setting.name = name
        setting.cycle_type = cycle_type.value
        setting.from_date = from_date
        setting.to_date = to_date
        setting.check_date = check_date
        setting.actual_check_date = actual_check_date
        setting.second_from_date = second_from_date
        setting.second_to_date = second_to_date
        setting.second_check_date = second_check_date
        setting.second_actual_check_date = second_actual_check_date
        db.flush()

        removed = period_store.delete_yet_to_generate(db, settings_id=setting.id, from_date=edit_from_date)

        if period_store.earliest_unresolved(db, settings_id=setting.id) is None:
            latest = period_store.latest_period(db, settings_id=setting.id)
            period_store.insert_period(db, setting=setting, dates=next_period_dates(setting, latest))

        if owns_db:
            db.commit()

        logger.info(
            "Payroll settings updated",
            extra={"company_id": int(company_id), "settings_id": setting.id, "removed_periods": removed},
        )
        return setting

    except OperationalError as exc:
        if owns_db:
            db.rollback()
        raise TransactionAborted(str(exc.orig)) from exc
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()


def schedule_periods(
    *,
    company_id: int,
    settings_id: int,
    through: date,
    db: Optional[Session] = None,
) -> List[PayPeriod]:
    """Insert YetToGenerate periods for every period ending on or before ``through``.

    At most MAX_SCHEDULED_PERIODS are created per call.
    """
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        setting = period_store.get_setting(db, company_id=company_id, settings_id=settings_id, lock=True)

        created: List[PayPeriod] = []
        latest = period_store.latest_period(db, settings_id=setting.id)

        for _ in range(_max_scheduled_periods()):
            dates = next_period_dates(setting, latest)
            if dates.to_date > through:
                break
            latest = period_store.insert_period(db, setting=setting, dates=dates)
            created.append(latest)

        if owns_db:
            db.commit()

        logger.info(
            "Payroll periods scheduled",
            extra={"settings_id": setting.id, "created": len(created), "through": through.isoformat()},
        )
        return created

    except OperationalError as exc:
        if owns_db:
            db.rollback()
        raise TransactionAborted(str(exc.orig)) from exc
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()


def get_settings(*, company_id: int, settings_id: int, db: Optional[Session] = None) -> PayrollCycleSetting:
    owns_db = db is None
    if owns_db:
        db = SessionLocal()
    try:
        return period_store.get_setting(db, company_id=company_id, settings_id=settings_id)
    finally:
        if owns_db:
            db.close()


def list_settings(*, company_id: int, db: Optional[Session] = None) -> List[PayrollCycleSetting]:
    owns_db = db is None
    if owns_db:
        db = SessionLocal()
    try:
        return (
            db.query(PayrollCycleSetting)
            .filter(PayrollCycleSetting.company_id == int(company_id))
            .order_by(PayrollCycleSetting.id.asc())
            .all()
        )
    finally:
        if owns_db:
            db.close()
