from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from paycycle.core.authorization import Role, require_role
from paycycle.database import SessionLocal
from paycycle.deps.auth import require_auth
from paycycle.models.employee import Employee
from paycycle.schemas.employee import (
    BalanceAuditPage,
    EmployeeCreate,
    EmployeeResponse,
    PayProfileUpdate,
)
from paycycle.services import period_store
from paycycle.services.balance_audit import list_audit_trail, update_employee_pay_profile
from paycycle.services.balance_reporting_service import balance_summary

router = APIRouter(prefix="/employees", tags=["Employees"])


@router.post("", response_model=EmployeeResponse)
def create_employee(
    payload: EmployeeCreate,
    request: Request,
    _role=Depends(require_role(Role.MANAGER)),
):
    company_id = int(request.state.company_id)

    db = SessionLocal()
    try:
        if payload.payroll_settings_id is not None:
            period_store.get_setting(db, company_id=company_id, settings_id=payload.payroll_settings_id)

        row = Employee(
            company_id=company_id,
            name=payload.name,
            is_active=True,
            status="ACTIVE",
            balance_cents=0,
            standard_pay_cents=int(payload.standard_pay_cents),
            hours_worked=0,
            payroll_settings_id=payload.payroll_settings_id,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        return row
    finally:
        db.close()


@router.get("", response_model=List[EmployeeResponse])
def list_employees(
    request: Request,
    _auth: tuple[str, int] = Depends(require_auth),
):
    db = SessionLocal()
    try:
        rows = (
            db.query(Employee)
            .filter(Employee.company_id == int(request.state.company_id))
            .order_by(Employee.id.asc())
            .all()
        )
        return rows
    finally:
        db.close()


@router.get("/{employee_id}", response_model=EmployeeResponse)
def get_employee(
    employee_id: int,
    request: Request,
    _auth: tuple[str, int] = Depends(require_auth),
):
    db = SessionLocal()
    try:
        row = (
            db.query(Employee)
            .filter(
                Employee.id == int(employee_id),
                Employee.company_id == int(request.state.company_id),
            )
            .first()
        )
        if row is None:
            raise HTTPException(status_code=404, detail="Employee not found")
        return row
    finally:
        db.close()


@router.put("/{employee_id}/pay-profile", response_model=EmployeeResponse)
def update_pay_profile(
    employee_id: int,
    payload: PayProfileUpdate,
    request: Request,
    _role=Depends(require_role(Role.ADMIN)),
):
    return update_employee_pay_profile(
        company_id=int(request.state.company_id),
        employee_id=employee_id,
        balance_cents=payload.balance_cents,
        standard_pay_cents=payload.standard_pay_cents,
        hours_worked=payload.hours_worked,
        payroll_settings_id=payload.payroll_settings_id,
        remarks=payload.remarks,
        updated_by=str(request.state.user_id),
    )


@router.get("/{employee_id}/balance-audit", response_model=BalanceAuditPage)
def get_balance_audit(
    employee_id: int,
    request: Request,
    after_id: Optional[int] = Query(None, ge=0),
    limit: int = Query(100, ge=1, le=500),
    _role=Depends(require_role(Role.MANAGER)),
):
    rows = list_audit_trail(
        company_id=int(request.state.company_id),
        employee_id=employee_id,
        after_id=after_id,
        limit=limit,
    )
    return {
        "rows": rows,
        "next_after_id": rows[-1].id if len(rows) == int(limit) else None,
    }


@router.get("/{employee_id}/balance-summary")
def get_balance_summary(
    employee_id: int,
    request: Request,
    _role=Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        return balance_summary(
            company_id=int(request.state.company_id),
            employee_id=employee_id,
            db=db,
        )
    finally:
        db.close()
