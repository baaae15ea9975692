from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String

from paycycle.database import Base


class Employee(Base):
    __tablename__ = "employees"

    __table_args__ = (
        CheckConstraint("hours_worked >= 0", name="ck_employees_hours_worked_nonnegative"),
        CheckConstraint("standard_pay_cents >= 0", name="ck_employees_standard_pay_nonnegative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, nullable=False, index=True)
    name = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    status = Column(String, nullable=False, default="ACTIVE")

    # Running amount owed to the employee; negative when overpaid.
    balance_cents = Column(Integer, nullable=False, default=0)
    standard_pay_cents = Column(Integer, nullable=False, default=0)
    hours_worked = Column(Numeric(10, 2), nullable=False, default=0)

    payroll_settings_id = Column(
        Integer,
        ForeignKey("payroll_cycle_settings.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
