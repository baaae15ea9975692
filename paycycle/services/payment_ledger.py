"""Per-employee payments within a pay period.

A PaymentDetail row starts as a draft. Drafts never move the employee's
running totals; a row counts towards them once it is recorded as non-draft
or finalized. ``balance_delta_cents`` and ``applied_hours`` hold what the
row currently contributes, so re-recording a row only applies the
difference. Finalized rows never change again.
"""

import logging
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from paycycle.core.errors import (
    AlreadyFinalized,
    AlreadyResolved,
    FinalizeNotAllowed,
    FinalizeRequiredForPayment,
    NonZeroAmountBlocked,
    NotFound,
    TransactionAborted,
    ValidationError,
)
from paycycle.database import SessionLocal
from paycycle.models.employee import Employee
from paycycle.models.pay_period import PayPeriod
from paycycle.models.payment_detail import PaymentDetail
from paycycle.services import balance_audit, payroll_items, period_store
from paycycle.services.amounts import require_cents
from paycycle.services.payroll_run_state import PayrollRunStateMachine

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 100


def _validate_amounts(
    *,
    amount_paid_cents: int,
    credited_expense_cents: int,
    debited_expense_cents: int,
    comments: Optional[str],
) -> None:
    require_cents("amount_paid_cents", amount_paid_cents)
    require_cents("credited_expense_cents", credited_expense_cents)
    require_cents("debited_expense_cents", debited_expense_cents)
    if comments is not None and len(comments) > MAX_COMMENT_LENGTH:
        raise ValidationError(f"comments must be at most {MAX_COMMENT_LENGTH} characters")


def _open_period(db: Session, *, company_id: int, period_id: str) -> PayPeriod:
    period = period_store.get_period(db, company_id=company_id, period_id=period_id, shared=True)

    if PayrollRunStateMachine.is_resolved(period.status):
        raise AlreadyResolved(f"Period {period.id} is already {period.status}")
    if not PayrollRunStateMachine.accepts_payments(period.status):
        raise ValidationError(f"Period {period.id} has not been generated yet")
    return period


def _lock_employee(db: Session, *, company_id: int, employee_id: int) -> Employee:
    employee = (
        db.query(Employee)
        .filter(Employee.company_id == int(company_id))
        .filter(Employee.id == int(employee_id))
        .with_for_update()
        .one_or_none()
    )
    if employee is None:
        raise NotFound(f"Employee {employee_id} not found")
    return employee


def _lock_row(db: Session, *, period_id: str, employee_id: int) -> Optional[PaymentDetail]:
    return (
        db.query(PaymentDetail)
        .filter(PaymentDetail.period_id == str(period_id))
        .filter(PaymentDetail.employee_id == int(employee_id))
        .with_for_update()
        .populate_existing()
        .one_or_none()
    )


def _apply(
    db: Session,
    *,
    period: PayPeriod,
    employee: Employee,
    row: Optional[PaymentDetail],
    amount_paid_cents: int,
    is_draft: bool,
    is_finalize: bool,
    comments: Optional[str],
    credited_expense_cents: int,
    debited_expense_cents: int,
    updated_by: Optional[str],
) -> PaymentDetail:
    if row is not None and row.is_finalize:
        raise AlreadyFinalized(f"Payment for employee {employee.id} is finalized")

    pending = payroll_items.has_pending_approval(db, employee_id=employee.id, period_id=period.id)

    if pending and is_finalize:
        raise FinalizeNotAllowed()
    if pending and not is_finalize and int(amount_paid_cents) != 0:
        raise NonZeroAmountBlocked()
    if not pending and not is_draft and not is_finalize and int(amount_paid_cents) > 0:
        raise FinalizeRequiredForPayment()

    if is_finalize:
        is_draft = False

    if row is None:
        row = PaymentDetail(company_id=int(period.company_id), period_id=period.id, employee_id=employee.id)
        db.add(row)
        try:
            db.flush()
        except IntegrityError as exc:
            # Another transaction inserted the same (period, employee) row first.
            raise TransactionAborted("Concurrent payment write; retry the request") from exc

    earned = payroll_items.earned_totals(db, employee_id=employee.id, period_id=period.id)

    row.total_amount_cents = earned.gross_pay_cents
    row.worked_hours = earned.hours
    row.amount_paid_cents = int(amount_paid_cents)
    row.credited_expense_cents = int(credited_expense_cents)
    row.debited_expense_cents = int(debited_expense_cents)
    row.existing_balance_cents = int(employee.balance_cents or 0)
    row.is_draft = bool(is_draft)
    row.is_finalize = bool(is_finalize)
    row.comments = comments
    row.updated_by = None if updated_by is None else str(updated_by)

    _settle(db, period=period, employee=employee, row=row, updated_by=updated_by)

    logger.info(
        "Payment recorded",
        extra={
            "period_id": period.id,
            "employee_id": employee.id,
            "amount_paid_cents": row.amount_paid_cents,
            "is_draft": row.is_draft,
            "is_finalize": row.is_finalize,
        },
    )
    return row


def _settle(
    db: Session,
    *,
    period: PayPeriod,
    employee: Employee,
    row: PaymentDetail,
    updated_by: Optional[str],
) -> None:
    """Move the employee by the difference between what the row should
    contribute now and what it already contributed."""
    if row.is_finalize or not row.is_draft:
        target_delta = (
            int(row.total_amount_cents or 0) + int(row.credited_expense_cents or 0)
            - (int(row.amount_paid_cents or 0) + int(row.debited_expense_cents or 0))
        )
        target_hours = Decimal(str(row.worked_hours or 0))
    else:
        target_delta = 0
        target_hours = Decimal("0")

    applied_delta = int(row.balance_delta_cents or 0)
    applied_hours = Decimal(str(row.applied_hours or 0))

    new_hours = Decimal(str(employee.hours_worked or 0)) + (target_hours - applied_hours)
    if new_hours < 0:
        raise ValidationError(
            f"Payment would leave employee {employee.id} with negative hours worked ({new_hours})"
        )

    before = balance_audit.snapshot(employee)
    employee.balance_cents = int(employee.balance_cents or 0) + (target_delta - applied_delta)
    employee.hours_worked = new_hours
    row.balance_delta_cents = target_delta
    row.applied_hours = target_hours
    db.flush()

    balance_audit.append_balance_audit(
        db,
        company_id=period.company_id,
        employee_id=employee.id,
        old_values=before,
        new_values=balance_audit.snapshot(employee),
        created_by=updated_by,
        remarks=f"Payroll {period.from_date.isoformat()} to {period.to_date.isoformat()}",
    )


def lock_open_payment(db: Session, *, period_id: str, employee_id: int) -> Optional[PaymentDetail]:
    """Lock an employee's payment row, refusing rows that are finalized.

    The caller holds the period FOR SHARE and the employee FOR UPDATE.
    """
    row = _lock_row(db, period_id=period_id, employee_id=employee_id)
    if row is not None and row.is_finalize:
        raise AlreadyFinalized(f"Payment for employee {employee_id} is finalized")
    return row


def refresh_earnings(
    db: Session,
    *,
    period: PayPeriod,
    employee_id: int,
    updated_by: Optional[str] = None,
) -> Optional[PaymentDetail]:
    """Re-read the period's earnings into the employee's payment row.

    A row that already counts moves the balance by the newly earned amount.
    """
    employee = _lock_employee(db, company_id=period.company_id, employee_id=employee_id)
    row = lock_open_payment(db, period_id=period.id, employee_id=employee.id)
    if row is None:
        return None

    earned = payroll_items.earned_totals(db, employee_id=employee.id, period_id=period.id)
    row.total_amount_cents = earned.gross_pay_cents
    row.worked_hours = earned.hours

    _settle(db, period=period, employee=employee, row=row, updated_by=updated_by)
    return row


def record_payment(
    period_id: str,
    employee_id: int,
    amount_paid_cents: int,
    is_draft: bool,
    is_finalize: bool,
    comments: Optional[str] = None,
    *,
    company_id: int,
    credited_expense_cents: int = 0,
    debited_expense_cents: int = 0,
    updated_by: Optional[str] = None,
    db: Optional[Session] = None,
) -> PaymentDetail:
    """Insert or update the payment of one employee in a drafted period.

    Approved reimbursements and deductions come in through
    ``credited_expense_cents`` / ``debited_expense_cents``; there is no other
    path that moves an employee's balance during a pay period.
    """
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        _validate_amounts(
            amount_paid_cents=amount_paid_cents,
            credited_expense_cents=credited_expense_cents,
            debited_expense_cents=debited_expense_cents,
            comments=comments,
        )

        period = _open_period(db, company_id=company_id, period_id=period_id)
        employee = _lock_employee(db, company_id=company_id, employee_id=employee_id)
        row = _lock_row(db, period_id=period.id, employee_id=employee.id)

        row = _apply(
            db,
            period=period,
            employee=employee,
            row=row,
            amount_paid_cents=amount_paid_cents,
            is_draft=is_draft,
            is_finalize=is_finalize,
            comments=comments,
            credited_expense_cents=credited_expense_cents,
            debited_expense_cents=debited_expense_cents,
            updated_by=updated_by,
        )

        if owns_db:
            db.commit()

        return row

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


def finalize_payments(
    period_id: str,
    payment_ids: Iterable[int],
    *,
    company_id: int,
    updated_by: Optional[str] = None,
    db: Optional[Session] = None,
) -> List[PaymentDetail]:
    """Finalize existing payment rows of a period, all or nothing.

    Rows that are already finalized are left as they are.
    """
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        ids = sorted({int(pid) for pid in payment_ids})
        if not ids:
            raise ValidationError("payment_ids must not be empty")

        period = _open_period(db, company_id=company_id, period_id=period_id)

        rows = (
            db.query(PaymentDetail)
            .filter(PaymentDetail.period_id == period.id)
            .filter(PaymentDetail.id.in_(ids))
            .order_by(PaymentDetail.id.asc())
            .all()
        )
        found = {row.id: row for row in rows}
        missing = [pid for pid in ids if pid not in found]
        if missing:
            raise NotFound(f"Payments not found in period {period.id}: {missing}")

        finalized: List[PaymentDetail] = []
        for pid in ids:
            employee = _lock_employee(db, company_id=company_id, employee_id=found[pid].employee_id)
            row = _lock_row(db, period_id=period.id, employee_id=employee.id)
            if row.is_finalize:
                finalized.append(row)
                continue

            finalized.append(
                _apply(
                    db,
                    period=period,
                    employee=employee,
                    row=row,
                    amount_paid_cents=row.amount_paid_cents,
                    is_draft=False,
                    is_finalize=True,
                    comments=row.comments,
                    credited_expense_cents=row.credited_expense_cents,
                    debited_expense_cents=row.debited_expense_cents,
                    updated_by=updated_by,
                )
            )

        if owns_db:
            db.commit()

        return finalized

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


def list_payments(
    period_id: str,
    *,
    company_id: int,
    finalized: Optional[bool] = None,
    db: Optional[Session] = None,
) -> List[PaymentDetail]:
    owns_db = db is None
    if owns_db:
        db = SessionLocal()
    try:
        period = period_store.get_period(db, company_id=company_id, period_id=period_id)
        q = db.query(PaymentDetail).filter(PaymentDetail.period_id == period.id)
        if finalized is not None:
            q = q.filter(PaymentDetail.is_finalize.is_(bool(finalized)))
        return q.order_by(PaymentDetail.employee_id.asc()).all()
    finally:
        if owns_db:
            db.close()

