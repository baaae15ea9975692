import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from paycycle.core.errors import AlreadyResolved, NonZeroAmountBlocked, TransactionAborted, ValidationError
from paycycle.database import SessionLocal
from paycycle.models.employee import Employee
from paycycle.models.pay_period import PayPeriod
from paycycle.models.payroll_item import PayrollItem
from paycycle.services import period_store
from paycycle.services.amounts import require_cents
from paycycle.services.payroll_run_state import PayrollRunStateMachine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EarnedTotals:
    gross_pay_cents: int
    hours: Decimal


def has_pending_approval(db: Session, *, employee_id: int, period_id: str) -> bool:
    row = (
        db.query(PayrollItem.id)
        .filter(PayrollItem.period_id == str(period_id))
        .filter(PayrollItem.employee_id == int(employee_id))
        .filter(PayrollItem.timesheet_approval_pending.is_(True))
        .first()
    )
    return row is not None


def earned_totals(db: Session, *, employee_id: int, period_id: str) -> EarnedTotals:
    gross, hours = (
        db.query(
            func.coalesce(func.sum(PayrollItem.gross_pay_cents), 0),
            func.coalesce(func.sum(PayrollItem.hours), 0),
        )
        .filter(PayrollItem.period_id == str(period_id))
        .filter(PayrollItem.employee_id == int(employee_id))
        .one()
    )
    return EarnedTotals(gross_pay_cents=int(gross or 0), hours=Decimal(str(hours or 0)))


def _lock_employee(db: Session, *, company_id: int, employee_id: int) -> Optional[Employee]:
    return (
        db.query(Employee)
        .filter(Employee.company_id == int(company_id))
        .filter(Employee.id == int(employee_id))
        .with_for_update()
        .one_or_none()
    )


def _open_period(db: Session, *, company_id: int, period_id: str) -> PayPeriod:
    period = period_store.get_period(db, company_id=company_id, period_id=period_id, shared=True)
    if PayrollRunStateMachine.is_resolved(period.status):
        raise AlreadyResolved(f"Period {period.id} is {period.status}")
    return period


def add_payroll_item(
    *,
    company_id: int,
    period_id: str,
    employee_id: int,
    gross_pay_cents: int,
    hours: Optional[Decimal] = None,
    rate_cents: Optional[int] = None,
    timesheet_approval_pending: bool = False,
    meta: Optional[dict[str, Any]] = None,
    updated_by: Optional[str] = None,
    db: Optional[Session] = None,
) -> PayrollItem:
    """Record computed earnings for an employee in an open period.

    The employee's payment row picks up the new earnings; once that row is
    finalized the period is closed to further items for the employee.
    """
    from paycycle.services.payment_ledger import lock_open_payment, refresh_earnings

    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        require_cents("gross_pay_cents", gross_pay_cents)
        if hours is not None and Decimal(str(hours)) < 0:
            raise ValidationError("hours must be >= 0")

        period = _open_period(db, company_id=company_id, period_id=period_id)

        employee = _lock_employee(db, company_id=company_id, employee_id=employee_id)
        if employee is None:
            raise ValidationError(f"Employee {employee_id} not found")

        row = lock_open_payment(db, period_id=period.id, employee_id=employee.id)
        if timesheet_approval_pending and row is not None and int(row.amount_paid_cents or 0) != 0:
            raise NonZeroAmountBlocked()

        item = PayrollItem(
            company_id=int(company_id),
            period_id=period.id,
            employee_id=employee.id,
            hours=hours,
            rate_cents=rate_cents,
            gross_pay_cents=int(gross_pay_cents),
            timesheet_approval_pending=bool(timesheet_approval_pending),
            meta=meta,
        )
        db.add(item)
        db.flush()

        refresh_earnings(db, period=period, employee_id=employee.id, updated_by=updated_by)

        if owns_db:
            db.commit()

        return item

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


def set_timesheet_approval(
    *,
    company_id: int,
    period_id: str,
    employee_id: int,
    pending: bool,
    db: Optional[Session] = None,
) -> int:
    from paycycle.services.payment_ledger import lock_open_payment

    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        period = _open_period(db, company_id=company_id, period_id=period_id)

        if pending:
            # A pending timesheet holds the payment at zero until it is approved.
            employee = _lock_employee(db, company_id=company_id, employee_id=employee_id)
            if employee is not None:
                row = lock_open_payment(db, period_id=period.id, employee_id=employee.id)
                if row is not None and int(row.amount_paid_cents or 0) != 0:
                    raise NonZeroAmountBlocked()

        updated = (
            db.query(PayrollItem)
            .filter(PayrollItem.period_id == period.id)
            .filter(PayrollItem.employee_id == int(employee_id))
            .update({PayrollItem.timesheet_approval_pending: bool(pending)}, synchronize_session=False)
        )
        db.flush()

        if owns_db:
            db.commit()

        logger.info(
            "Timesheet approval flag updated",
            extra={"period_id": period.id, "employee_id": int(employee_id), "pending": bool(pending)},
        )
        return int(updated)

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


def mark_payroll_raised(db: Session, *, period_id: str) -> int:
    updated = (
        db.query(PayrollItem)
        .filter(PayrollItem.period_id == str(period_id))
        .filter(PayrollItem.payroll_raised.is_(False))
        .update({PayrollItem.payroll_raised: True}, synchronize_session=False)
    )
    db.flush()
    return int(updated)
