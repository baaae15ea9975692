"""Pay period lifecycle: generate, reschedule, submit and skip.

Every operation runs in one transaction. Periods of a setting are resolved
strictly in from_date order; the ordering check and the status change happen
under row locks on the target period and all of its predecessors.
"""

import logging
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from paycycle.core.errors import AlreadyResolved, FinalizePending, OrderViolation, TransactionAborted
from paycycle.database import SessionLocal
from paycycle.models.employee import Employee
from paycycle.models.pay_period import PayPeriod
from paycycle.models.payment_detail import PaymentDetail
from paycycle.services import payroll_items, period_store
from paycycle.services.check_dates import require_valid_check_dates
from paycycle.services.cycle_rules import PeriodDates
from paycycle.services.payroll_run_state import PayrollRunStateMachine, PeriodStatus
from paycycle.services.payroll_settings_service import next_period_dates

logger = logging.getLogger(__name__)


def _draft_payment_rows(db: Session, *, period: PayPeriod) -> int:
    employees = (
        db.query(Employee)
        .filter(Employee.company_id == int(period.company_id))
        .filter(Employee.payroll_settings_id == int(period.settings_id))
        .filter(Employee.is_active.is_(True))
        .order_by(Employee.id.asc())
        .all()
    )

    existing = {
        row[0]
        for row in db.query(PaymentDetail.employee_id)
        .filter(PaymentDetail.period_id == period.id)
        .all()
    }

    created = 0
    for employee in employees:
        if employee.id in existing:
            continue

        earned = payroll_items.earned_totals(db, employee_id=employee.id, period_id=period.id)
        db.add(
            PaymentDetail(
                company_id=int(period.company_id),
                period_id=period.id,
                employee_id=employee.id,
                total_amount_cents=earned.gross_pay_cents,
                worked_hours=earned.hours,
                amount_paid_cents=0,
                existing_balance_cents=int(employee.balance_cents or 0),
                is_draft=True,
                is_finalize=False,
            )
        )
        created += 1

    db.flush()
    return created


def generate_for_settings(
    settings_id: int,
    *,
    company_id: int,
    db: Optional[Session] = None,
) -> PayPeriod:
    """Draft the upcoming period of a setting.

    The upcoming period is the earliest one not yet submitted or skipped. A
    period that is already Drafted is returned unchanged, so repeated calls
    are idempotent. When every known period is resolved, the next one is
    derived from the cycle rules and drafted.
    """
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        # Generation for one setting is serialized on the setting row.
        setting = period_store.get_setting(db, company_id=company_id, settings_id=settings_id, lock=True)

        period = period_store.earliest_unresolved(db, settings_id=setting.id)
        if period is None:
            latest = period_store.latest_period(db, settings_id=setting.id)
            period = period_store.insert_period(db, setting=setting, dates=next_period_dates(setting, latest))

        if period.status == PeriodStatus.DRAFTED.value:
            if owns_db:
                db.commit()
            return period

        PayrollRunStateMachine.validate_transition(period.status, PeriodStatus.DRAFTED)
        period.status = PeriodStatus.DRAFTED.value
        db.flush()

        drafted = _draft_payment_rows(db, period=period)

        if owns_db:
            db.commit()

        logger.info(
            "Pay period drafted",
            extra={
                "settings_id": setting.id,
                "period_id": period.id,
                "from_date": period.from_date.isoformat(),
                "payment_rows": drafted,
            },
        )
        return period

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


def _lock_and_check_order(db: Session, *, company_id: int, period_id: str) -> PayPeriod:
    chain = period_store.lock_period_chain(db, company_id=company_id, period_id=period_id)
    target = chain[-1]

    if PayrollRunStateMachine.is_resolved(target.status):
        raise AlreadyResolved(f"Period {target.id} is already {target.status}")

    for earlier in chain[:-1]:
        if not PayrollRunStateMachine.is_resolved(earlier.status):
            raise OrderViolation(
                f"Period starting {earlier.from_date.isoformat()} must be submitted or skipped first"
            )

    return target


def _resolve(
    period_id: str,
    *,
    company_id: int,
    to_status: PeriodStatus,
    resolved_by: Optional[str],
    db: Optional[Session],
) -> PayPeriod:
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        period = _lock_and_check_order(db, company_id=company_id, period_id=period_id)

        if to_status == PeriodStatus.SUBMITTED:
            pending = (
                db.query(PaymentDetail.id)
                .filter(PaymentDetail.period_id == period.id)
                .filter(PaymentDetail.amount_paid_cents > 0)
                .filter(PaymentDetail.is_finalize.is_(False))
                .first()
            )
            if pending is not None:
                raise FinalizePending("Finalize all recorded payments before submitting the period")

        PayrollRunStateMachine.validate_transition(period.status, to_status)

        from_status = period.status
        period.status = to_status.value
        period.resolved_at = datetime.utcnow()
        period.resolved_by = None if resolved_by is None else str(resolved_by)
        db.flush()

        if to_status == PeriodStatus.SUBMITTED:
            payroll_items.mark_payroll_raised(db, period_id=period.id)

        if owns_db:
            db.commit()

        logger.info(
            "Pay period resolved",
            extra={
                "period_id": period.id,
                "settings_id": period.settings_id,
                "from_status": from_status,
                "to_status": to_status.value,
            },
        )
        return period

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


def submit_period(
    period_id: str,
    *,
    company_id: int,
    resolved_by: Optional[str] = None,
    db: Optional[Session] = None,
) -> PayPeriod:
    return _resolve(
        period_id,
        company_id=company_id,
        to_status=PeriodStatus.SUBMITTED,
        resolved_by=resolved_by,
        db=db,
    )


def skip_period(
    period_id: str,
    *,
    company_id: int,
    resolved_by: Optional[str] = None,
    db: Optional[Session] = None,
) -> PayPeriod:
    return _resolve(
        period_id,
        company_id=company_id,
        to_status=PeriodStatus.SKIPPED,
        resolved_by=resolved_by,
        db=db,
    )


def reschedule_period(
    period_id: str,
    *,
    company_id: int,
    check_date: date,
    actual_check_date: date,
    db: Optional[Session] = None,
) -> PayPeriod:
    """Move the check dates of a period that has not been resolved yet."""
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        period = period_store.get_period(db, company_id=company_id, period_id=period_id, lock=True)
        if PayrollRunStateMachine.is_resolved(period.status):
            raise AlreadyResolved(f"Period {period.id} is {period.status}; its dates are fixed")

        require_valid_check_dates(
            check_date=check_date,
            actual_check_date=actual_check_date,
            to_date=period.to_date,
        )

        period_store.reschedule(
            db,
            period=period,
            dates=PeriodDates(
                from_date=period.from_date,
                to_date=period.to_date,
                check_date=check_date,
                actual_check_date=actual_check_date,
            ),
        )

        if owns_db:
            db.commit()

        logger.info(
            "Pay period rescheduled",
            extra={
                "period_id": period.id,
                "check_date": check_date.isoformat(),
                "actual_check_date": actual_check_date.isoformat(),
            },
        )
        return period

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


def get_period(period_id: str, *, company_id: int, db: Optional[Session] = None) -> PayPeriod:
    owns_db = db is None
    if owns_db:
        db = SessionLocal()
    try:
        return period_store.get_period(db, company_id=company_id, period_id=period_id)
    finally:
        if owns_db:
            db.close()


def list_periods(
    settings_id: int,
    *,
    company_id: int,
    status: Optional[str] = None,
    db: Optional[Session] = None,
) -> List[PayPeriod]:
    owns_db = db is None
    if owns_db:
        db = SessionLocal()
    try:
        period_store.get_setting(db, company_id=company_id, settings_id=settings_id)
        return period_store.list_periods(db, company_id=company_id, settings_id=settings_id, status=status)
    finally:
        if owns_db:
            db.close()
