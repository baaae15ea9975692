from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class EmployeeCreate(BaseModel):
    name: str
    standard_pay_cents: int = Field(0, ge=0)
    payroll_settings_id: Optional[int] = None


class EmployeeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    name: str
    is_active: bool
    status: str
    balance_cents: int
    standard_pay_cents: int
    hours_worked: Decimal
    payroll_settings_id: Optional[int]
    created_at: datetime


class PayProfileUpdate(BaseModel):
    balance_cents: Optional[int] = None
    standard_pay_cents: Optional[int] = Field(None, ge=0)
    hours_worked: Optional[Decimal] = Field(None, ge=0)
    payroll_settings_id: Optional[int] = None
    remarks: Optional[str] = Field(None, max_length=255)


class BalanceAuditEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    information: str
    remarks: Optional[str]
    created_by: Optional[str]
    created_at: datetime


class BalanceAuditPage(BaseModel):
    rows: list[BalanceAuditEntryResponse]
    next_after_id: Optional[int]
