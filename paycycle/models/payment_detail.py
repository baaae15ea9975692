from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from paycycle.database import Base


class PaymentDetail(Base):
    __tablename__ = "payment_details"

    __table_args__ = (
        UniqueConstraint("period_id", "employee_id", name="uq_payment_details_period_employee"),
        CheckConstraint("amount_paid_cents >= 0", name="ck_payment_details_amount_paid_nonnegative"),
        CheckConstraint("credited_expense_cents >= 0", name="ck_payment_details_credited_nonnegative"),
        CheckConstraint("debited_expense_cents >= 0", name="ck_payment_details_debited_nonnegative"),
        CheckConstraint(
            "comments IS NULL OR length(comments) <= 100",
            name="ck_payment_details_comments_length",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
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

    total_amount_cents = Column(Integer, nullable=False, default=0)
    worked_hours = Column(Numeric(10, 2), nullable=False, default=0)
    amount_paid_cents = Column(Integer, nullable=False, default=0)
    credited_expense_cents = Column(Integer, nullable=False, default=0)
    debited_expense_cents = Column(Integer, nullable=False, default=0)

    # What this row currently contributes to the employee's running totals.
    balance_delta_cents = Column(Integer, nullable=False, default=0)
    applied_hours = Column(Numeric(10, 2), nullable=False, default=0)

    existing_balance_cents = Column(Integer, nullable=False, default=0)
    is_draft = Column(Boolean, nullable=False, default=True)
    is_finalize = Column(Boolean, nullable=False, default=False)
    comments = Column(String(100), nullable=True)

    updated_by = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    period = relationship("PayPeriod", backref="payment_details")
    employee = relationship("Employee", backref="payment_details")
