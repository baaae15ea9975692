from typing import List, Optional

from fastapi import APIRouter, Depends, Request

from paycycle.core.authorization import Role, require_role
from paycycle.deps.auth import require_auth
from paycycle.schemas.payroll import (
    CheckDatesUpdate,
    FinalizeRequest,
    PaymentRecord,
    PaymentResponse,
    PayPeriodResponse,
    PayrollItemCreate,
    PayrollItemResponse,
    PayrollSettingsCreate,
    PayrollSettingsResponse,
    PayrollSettingsUpdate,
    ScheduleRequest,
    TimesheetApprovalUpdate,
)
from paycycle.services import payment_ledger, payroll_items, payroll_run_service, payroll_settings_service

router = APIRouter(prefix="/payroll", tags=["Payroll"])


def _company_id(request: Request) -> int:
    return int(request.state.company_id)


def _user_id(request: Request) -> str:
    return str(request.state.user_id)


# Cycle settings


@router.post("/settings", response_model=PayrollSettingsResponse)
def create_payroll_settings(
    payload: PayrollSettingsCreate,
    request: Request,
    _role=Depends(require_role(Role.MANAGER)),
):
    return payroll_settings_service.create_settings(
        company_id=_company_id(request),
        created_by=_user_id(request),
        **payload.model_dump(),
    )


@router.get("/settings", response_model=List[PayrollSettingsResponse])
def list_payroll_settings(
    request: Request,
    _auth: tuple[str, int] = Depends(require_auth),
):
    return payroll_settings_service.list_settings(company_id=_company_id(request))


@router.get("/settings/{settings_id}", response_model=PayrollSettingsResponse)
def get_payroll_settings(
    settings_id: int,
    request: Request,
    _auth: tuple[str, int] = Depends(require_auth),
):
    return payroll_settings_service.get_settings(company_id=_company_id(request), settings_id=settings_id)


@router.put("/settings/{settings_id}", response_model=PayrollSettingsResponse)
def update_payroll_settings(
    settings_id: int,
    payload: PayrollSettingsUpdate,
    request: Request,
    _role=Depends(require_role(Role.MANAGER)),
):
    return payroll_settings_service.update_settings(
        company_id=_company_id(request),
        settings_id=settings_id,
        **payload.model_dump(),
    )


@router.post("/settings/{settings_id}/schedule", response_model=List[PayPeriodResponse])
def schedule_payroll_periods(
    settings_id: int,
    payload: ScheduleRequest,
    request: Request,
    _role=Depends(require_role(Role.MANAGER)),
):
    return payroll_settings_service.schedule_periods(
        company_id=_company_id(request),
        settings_id=settings_id,
        through=payload.through,
    )


@router.post("/settings/{settings_id}/generate", response_model=PayPeriodResponse)
def generate_payroll_period(
    settings_id: int,
    request: Request,
    _role=Depends(require_role(Role.MANAGER)),
):
    return payroll_run_service.generate_for_settings(settings_id, company_id=_company_id(request))


@router.get("/settings/{settings_id}/periods", response_model=List[PayPeriodResponse])
def list_payroll_periods(
    settings_id: int,
    request: Request,
    status: Optional[str] = None,
    _auth: tuple[str, int] = Depends(require_auth),
):
    return payroll_run_service.list_periods(settings_id, company_id=_company_id(request), status=status)


# Periods


@router.get("/periods/{period_id}", response_model=PayPeriodResponse)
def get_payroll_period(
    period_id: str,
    request: Request,
    _auth: tuple[str, int] = Depends(require_auth),
):
    return payroll_run_service.get_period(period_id, company_id=_company_id(request))


@router.post("/periods/{period_id}/submit", response_model=PayPeriodResponse)
def submit_payroll_period(
    period_id: str,
    request: Request,
    _role=Depends(require_role(Role.MANAGER)),
):
    return payroll_run_service.submit_period(
        period_id,
        company_id=_company_id(request),
        resolved_by=_user_id(request),
    )


@router.post("/periods/{period_id}/skip", response_model=PayPeriodResponse)
def skip_payroll_period(
    period_id: str,
    request: Request,
    _role=Depends(require_role(Role.MANAGER)),
):
    return payroll_run_service.skip_period(
        period_id,
        company_id=_company_id(request),
        resolved_by=_user_id(request),
    )


@router.put("/periods/{period_id}/check-dates", response_model=PayPeriodResponse)
def reschedule_payroll_period(
    period_id: str,
    payload: CheckDatesUpdate,
    request: Request,
    _role=Depends(require_role(Role.MANAGER)),
):
    return payroll_run_service.reschedule_period(
        period_id,
        company_id=_company_id(request),
        check_date=payload.check_date,
        actual_check_date=payload.actual_check_date,
    )


@router.post("/periods/{period_id}/items", response_model=PayrollItemResponse)
def add_payroll_item(
    period_id: str,
    payload: PayrollItemCreate,
    request: Request,
    _role=Depends(require_role(Role.MANAGER)),
):
    return payroll_items.add_payroll_item(
        company_id=_company_id(request),
        period_id=period_id,
        updated_by=_user_id(request),
        **payload.model_dump(),
    )


@router.put("/periods/{period_id}/items/{employee_id}/approval")
def update_timesheet_approval(
    period_id: str,
    employee_id: int,
    payload: TimesheetApprovalUpdate,
    request: Request,
    _role=Depends(require_role(Role.MANAGER)),
):
    updated = payroll_items.set_timesheet_approval(
        company_id=_company_id(request),
        period_id=period_id,
        employee_id=employee_id,
        pending=payload.pending,
    )
    return {"updated": updated}


# Payments


@router.get("/periods/{period_id}/payments", response_model=List[PaymentResponse])
def list_period_payments(
    period_id: str,
    request: Request,
    finalized: Optional[bool] = None,
    _role=Depends(require_role(Role.MANAGER)),
):
    return payment_ledger.list_payments(period_id, company_id=_company_id(request), finalized=finalized)


@router.put("/periods/{period_id}/payments/{employee_id}", response_model=PaymentResponse)
def record_period_payment(
    period_id: str,
    employee_id: int,
    payload: PaymentRecord,
    request: Request,
    _role=Depends(require_role(Role.MANAGER)),
):
    return payment_ledger.record_payment(
        period_id,
        employee_id,
        payload.amount_paid_cents,
        payload.is_draft,
        payload.is_finalize,
        payload.comments,
        company_id=_company_id(request),
        credited_expense_cents=payload.credited_expense_cents,
        debited_expense_cents=payload.debited_expense_cents,
        updated_by=_user_id(request),
    )


@router.post("/periods/{period_id}/finalize", response_model=List[PaymentResponse])
def finalize_period_payments(
    period_id: str,
    payload: FinalizeRequest,
    request: Request,
    _role=Depends(require_role(Role.MANAGER)),
):
    return payment_ledger.finalize_payments(
        period_id,
        payload.payment_ids,
        company_id=_company_id(request),
        updated_by=_user_id(request),
    )
