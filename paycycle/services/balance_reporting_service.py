from __future__ import annotations

from datetime import date
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from paycycle.models.pay_period import PayPeriod
from paycycle.models.payment_detail import PaymentDetail
from paycycle.services.payroll_run_state import PeriodStatus


def balance_summary(
    *,
    company_id: int,
    db: Session,
    employee_id: Optional[int] = None,
    settings_id: Optional[int] = None,
    date_start: Optional[date] = None,
    date_end: Optional[date] = None,
) -> dict[str, Any]:
    """
    Read-only balance sheet over submitted periods.

    Semantics:
      period.status = Submitted
      period.from_date >= date_start AND period.to_date < date_end (when given)
    Grouping:
      employee_id
    """

    q = (
        db.query(
            PaymentDetail.employee_id.label("employee_id"),
            func.count(PaymentDetail.id).label("period_count"),
            func.coalesce(func.sum(PaymentDetail.total_amount_cents), 0).label("billed_cents"),
            func.coalesce(func.sum(PaymentDetail.amount_paid_cents), 0).label("paid_cents"),
            func.coalesce(func.sum(PaymentDetail.balance_delta_cents), 0).label("balance_cents"),
            func.coalesce(func.sum(PaymentDetail.worked_hours), 0).label("hours"),
        )
        .join(PayPeriod, PayPeriod.id == PaymentDetail.period_id)
        .filter(PaymentDetail.company_id == int(company_id))
        .filter(PayPeriod.status == PeriodStatus.SUBMITTED.value)
    )

    if employee_id is not None:
        q = q.filter(PaymentDetail.employee_id == int(employee_id))
    if settings_id is not None:
        q = q.filter(PayPeriod.settings_id == int(settings_id))
    if date_start is not None:
        q = q.filter(PayPeriod.from_date >= date_start)
    if date_end is not None:
        q = q.filter(PayPeriod.to_date < date_end)

    rows = q.group_by(PaymentDetail.employee_id).order_by(PaymentDetail.employee_id.asc()).all()

    return {
        "company_id": int(company_id),
        "filters": {
            "employee_id": employee_id,
            "settings_id": settings_id,
            "date_start": None if date_start is None else date_start.isoformat(),
            "date_end": None if date_end is None else date_end.isoformat(),
        },
        "groups": [
            {
                "employee_id": int(r.employee_id),
                "period_count": int(r.period_count),
                "billed_cents": int(r.billed_cents),
                "paid_cents": int(r.paid_cents),
                "balance_cents": int(r.balance_cents),
                "hours": str(r.hours),
            }
            for r in rows
        ],
    }
