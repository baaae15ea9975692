from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class PayrollSettingsCreate(BaseModel):
    name: str
    cycle_type: Union[str, int]
    from_date: date
    to_date: date
    check_date: date
    actual_check_date: date
    second_from_date: Optional[date] = None
    second_to_date: Optional[date] = None
    second_check_date: Optional[date] = None
    second_actual_check_date: Optional[date] = None


class PayrollSettingsUpdate(PayrollSettingsCreate):
    edit_from_date: Optional[date] = None


class PayrollSettingsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    name: str
    cycle_type: str
    from_date: date
    to_date: date
    check_date: date
    actual_check_date: date
    second_from_date: Optional[date]
    second_to_date: Optional[date]
    second_check_date: Optional[date]
    second_actual_check_date: Optional[date]
    created_by: Optional[str]
    created_at: datetime


class ScheduleRequest(BaseModel):
    through: date


class PayPeriodResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    company_id: int
    settings_id: int
    from_date: date
    to_date: date
    check_date: date
    actual_check_date: date
    status: str
    resolved_at: Optional[datetime]
    resolved_by: Optional[str]


class PayrollItemCreate(BaseModel):
    employee_id: int
    gross_pay_cents: int = Field(..., ge=0)
    hours: Optional[Decimal] = Field(None, ge=0)
    rate_cents: Optional[int] = Field(None, ge=0)
    timesheet_approval_pending: bool = False
    meta: Optional[dict[str, Any]] = None


class PayrollItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    period_id: str
    employee_id: int
    hours: Optional[Decimal]
    rate_cents: Optional[int]
    gross_pay_cents: int
    timesheet_approval_pending: bool
    payroll_raised: bool


class CheckDatesUpdate(BaseModel):
    check_date: date
    actual_check_date: date


class TimesheetApprovalUpdate(BaseModel):
    pending: bool


class PaymentRecord(BaseModel):
    amount_paid_cents: int
    is_draft: bool = True
    is_finalize: bool = False
    comments: Optional[str] = None
    credited_expense_cents: int = 0
    debited_expense_cents: int = 0


class FinalizeRequest(BaseModel):
    payment_ids: list[int]


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    period_id: str
    employee_id: int
    total_amount_cents: int
    worked_hours: Decimal
    amount_paid_cents: int
    credited_expense_cents: int
    debited_expense_cents: int
    balance_delta_cents: int
    existing_balance_cents: int
    is_draft: bool
    is_finalize: bool
    comments: Optional[str]
    updated_by: Optional[str]
