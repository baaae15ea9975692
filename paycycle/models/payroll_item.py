from sqlalchemy import JSON, Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from paycycle.database import Base


class PayrollItem(Base):
    __tablename__ = "payroll_items"

    __table_args__ = (
        CheckConstraint("gross_pay_cents >= 0", name="ck_payroll_items_gross_pay_nonnegative"),
        CheckConstraint("hours IS NULL OR hours >= 0", name="ck_payroll_items_hours_nonnegative"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(Integer, nullable=False, index=True)
    period_id = Column(
        String,
        ForeignKey("pay_period.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    employee_id = Column(
        Integer,
        ForeignKey("employees.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    hours = Column(Numeric(10, 2), nullable=True)
    rate_cents = Column(Integer, nullable=True)
    gross_pay_cents = Column(Integer, nullable=False)
    timesheet_approval_pending = Column(Boolean, nullable=False, default=False)
    payroll_raised = Column(Boolean, nullable=False, default=False)
    meta = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    period = relationship("PayPeriod", backref="payroll_items")
    employee = relationship("Employee", backref="payroll_items")
