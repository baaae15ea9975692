import logging
from decimal import Decimal
from typing import Any, List, Mapping, Optional

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from paycycle.core.errors import NotFound, TransactionAborted, ValidationError
from paycycle.database import SessionLocal
from paycycle.models.balance_audit_entry import BalanceAuditEntry
from paycycle.models.employee import Employee
from paycycle.services import period_store

logger = logging.getLogger(__name__)

# (key, label, kind)
AUDITED_FIELDS = (
    ("balance_amount", "Balance amount", "money"),
    ("standard_pay_amount", "Standard Pay amount", "money"),
    ("hours_worked", "Hours", "hours"),
)

MAX_PAGE_SIZE = 500


def _format_money(cents: Any) -> str:
    cents = int(cents or 0)
    sign = "-" if cents < 0 else ""
    cents = abs(cents)
    return f"{sign}{cents // 100}.{cents % 100:02d}"


def _format_hours(hours: Any) -> str:
    value = Decimal(str(hours or 0)).normalize()
    return format(value, "f")


def _normalize(kind: str, value: Any):
    if kind == "money":
        return int(value or 0)
    return Decimal(str(value or 0))


def snapshot(employee: Employee) -> dict[str, Any]:
    return {
        "balance_amount": int(employee.balance_cents or 0),
        "standard_pay_amount": int(employee.standard_pay_cents or 0),
        "hours_worked": Decimal(str(employee.hours_worked or 0)),
    }


def describe_changes(old_values: Mapping[str, Any], new_values: Mapping[str, Any]) -> Optional[str]:
    """Human readable diff of the audited fields, or None if nothing changed."""
    parts = []
    for key, label, kind in AUDITED_FIELDS:
        if key not in new_values:
            continue
        old = _normalize(kind, old_values.get(key))
        new = _normalize(kind, new_values.get(key))
        if old == new:
            continue
        fmt = _format_money if kind == "money" else _format_hours
        parts.append(f"{label} updated from {fmt(old)} to {fmt(new)}")

    if not parts:
        return None
    return " and ".join(parts)


def append_balance_audit(
    db: Session,
    *,
    company_id: int,
    employee_id: int,
    old_values: Mapping[str, Any],
    new_values: Mapping[str, Any],
    created_by: Optional[str] = None,
    remarks: Optional[str] = None,
) -> Optional[BalanceAuditEntry]:
    """Append one audit entry for the audited fields that changed.

    Runs inside the caller's transaction. Returns None when no audited
    field changed; that is not an error.
    """
    information = describe_changes(old_values, new_values)
    if information is None:
        return None

    entry = BalanceAuditEntry(
        company_id=int(company_id),
        employee_id=int(employee_id),
        information=information,
        remarks=remarks,
        created_by=None if created_by is None else str(created_by),
    )
    db.add(entry)
    db.flush()

    logger.info(
        "Balance audit entry appended",
        extra={"employee_id": int(employee_id), "audit_entry_id": entry.id},
    )
    return entry


def list_audit_trail(
    *,
    company_id: int,
    employee_id: int,
    after_id: Optional[int] = None,
    limit: int = 100,
    db: Optional[Session] = None,
) -> List[BalanceAuditEntry]:
    """Entries for an employee, oldest first.

    Pass the last id seen as ``after_id`` to continue from where a previous
    call stopped.
    """
    if int(limit) < 1 or int(limit) > MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")

    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        q = (
            db.query(BalanceAuditEntry)
            .filter(BalanceAuditEntry.company_id == int(company_id))
            .filter(BalanceAuditEntry.employee_id == int(employee_id))
        )
        if after_id is not None:
            q = q.filter(BalanceAuditEntry.id > int(after_id))

        return q.order_by(BalanceAuditEntry.id.asc()).limit(int(limit)).all()
    finally:
        if owns_db:
            db.close()


def update_employee_pay_profile(
    *,
    company_id: int,
    employee_id: int,
    balance_cents: Optional[int] = None,
    standard_pay_cents: Optional[int] = None,
    hours_worked: Optional[Decimal] = None,
    payroll_settings_id: Optional[int] = None,
    remarks: Optional[str] = None,
    updated_by: Optional[str] = None,
    db: Optional[Session] = None,
) -> Employee:
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        if standard_pay_cents is not None and int(standard_pay_cents) < 0:
            raise ValidationError("standard_pay_cents must be >= 0")
        if hours_worked is not None and Decimal(str(hours_worked)) < 0:
            raise ValidationError("hours_worked must be >= 0")

        employee = (
            db.query(Employee)
            .filter(Employee.company_id == int(company_id))
            .filter(Employee.id == int(employee_id))
            .with_for_update()
            .one_or_none()
        )
        if employee is None:
            raise NotFound(f"Employee {employee_id} not found")

        if payroll_settings_id is not None:
            setting = period_store.get_setting(
                db, company_id=company_id, settings_id=payroll_settings_id
            )
            employee.payroll_settings_id = setting.id

        before = snapshot(employee)

        if balance_cents is not None:
            employee.balance_cents = int(balance_cents)
        if standard_pay_cents is not None:
            employee.standard_pay_cents = int(standard_pay_cents)
        if hours_worked is not None:
            employee.hours_worked = Decimal(str(hours_worked))

        db.flush()

        append_balance_audit(
            db,
            company_id=company_id,
            employee_id=employee.id,
            old_values=before,
            new_values=snapshot(employee),
            created_by=updated_by,
            remarks=remarks,
        )

        if owns_db:
            db.commit()

        return employee

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
