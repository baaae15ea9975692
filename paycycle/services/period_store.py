from typing import List, Optional

from sqlalchemy.orm import Session

from paycycle.core.errors import AlreadyResolved, NotFound
from paycycle.models.pay_period import PayPeriod
from paycycle.models.payroll_cycle_setting import PayrollCycleSetting
from paycycle.services.cycle_rules import PeriodDates
from paycycle.services.payroll_run_state import PayrollRunStateMachine, PeriodStatus

UNRESOLVED_STATUSES = (PeriodStatus.YET_TO_GENERATE.value, PeriodStatus.DRAFTED.value)


def get_setting(db: Session, *, company_id: int, settings_id: int, lock: bool = False) -> PayrollCycleSetting:
    q = (
        db.query(PayrollCycleSetting)
        .filter(PayrollCycleSetting.company_id == int(company_id))
        .filter(PayrollCycleSetting.id == int(settings_id))
    )
    if lock:
        q = q.with_for_update()

    setting = q.one_or_none()
    if setting is None:
        raise NotFound(f"Payroll settings {settings_id} not found")
    return setting


def get_period(
    db: Session,
    *,
    company_id: int,
    period_id: str,
    lock: bool = False,
    shared: bool = False,
) -> PayPeriod:
    q = (
        db.query(PayPeriod)
        .filter(PayPeriod.company_id == int(company_id))
        .filter(PayPeriod.id == str(period_id))
    )
    if lock:
        q = q.with_for_update()
    elif shared:
        # FOR SHARE: payment writers may overlap, a status change may not.
        q = q.with_for_update(read=True)

    period = q.one_or_none()
    if period is None:
        raise NotFound(f"Pay period {period_id} not found")
    return period


def lock_period_chain(db: Session, *, company_id: int, period_id: str) -> List[PayPeriod]:
    """Lock a period and every earlier period of its setting.

    Rows are locked in from_date order so concurrent callers on the same
    setting always acquire locks in the same sequence. The target is the
    last element of the returned list.
    """
    target = get_period(db, company_id=company_id, period_id=period_id)

    chain = (
        db.query(PayPeriod)
        .filter(PayPeriod.settings_id == int(target.settings_id))
        .filter(PayPeriod.from_date <= target.from_date)
        .order_by(PayPeriod.from_date.asc())
        .with_for_update()
        .populate_existing()
        .all()
    )
    return chain


def earliest_unresolved(db: Session, *, settings_id: int) -> Optional[PayPeriod]:
    return (
        db.query(PayPeriod)
        .filter(PayPeriod.settings_id == int(settings_id))
        .filter(PayPeriod.status.in_(UNRESOLVED_STATUSES))
        .order_by(PayPeriod.from_date.asc())
        .first()
    )


def latest_period(db: Session, *, settings_id: int) -> Optional[PayPeriod]:
    return (
        db.query(PayPeriod)
        .filter(PayPeriod.settings_id == int(settings_id))
        .order_by(PayPeriod.from_date.desc())
        .first()
    )


def list_periods(
    db: Session,
    *,
    company_id: int,
    settings_id: int,
    status: Optional[str] = None,
) -> List[PayPeriod]:
    q = (
        db.query(PayPeriod)
        .filter(PayPeriod.company_id == int(company_id))
        .filter(PayPeriod.settings_id == int(settings_id))
    )
    if status is not None:
        q = q.filter(PayPeriod.status == PayrollRunStateMachine.coerce(status).value)
    return q.order_by(PayPeriod.from_date.asc()).all()


def insert_period(
    db: Session,
    *,
    setting: PayrollCycleSetting,
    dates: PeriodDates,
    status: PeriodStatus = PeriodStatus.YET_TO_GENERATE,
) -> PayPeriod:
    period = PayPeriod(
        company_id=int(setting.company_id),
        settings_id=int(setting.id),
        from_date=dates.from_date,
        to_date=dates.to_date,
        check_date=dates.check_date,
        actual_check_date=dates.actual_check_date,
        status=status.value,
    )
    db.add(period)
    db.flush()
    return period


def reschedule(db: Session, *, period: PayPeriod, dates: PeriodDates) -> PayPeriod:
    if PayrollRunStateMachine.is_resolved(period.status):
        raise AlreadyResolved(f"Period {period.id} is {period.status}; its dates are fixed")

    period.from_date = dates.from_date
    period.to_date = dates.to_date
    period.check_date = dates.check_date
    period.actual_check_date = dates.actual_check_date
    db.flush()
    return period


def delete_yet_to_generate(db: Session, *, settings_id: int, from_date=None) -> int:
    q = (
        db.query(PayPeriod)
        .filter(PayPeriod.settings_id == int(settings_id))
        .filter(PayPeriod.status == PeriodStatus.YET_TO_GENERATE.value)
    )
    if from_date is not None:
        q = q.filter(PayPeriod.from_date >= from_date)

    deleted = q.delete(synchronize_session=False)
    db.flush()
    return int(deleted)
