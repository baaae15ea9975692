import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from paycycle.database import Base


class PayPeriod(Base):
    """One recurring period of a cycle setting."""

    __tablename__ = "pay_period"

    __table_args__ = (
        UniqueConstraint("settings_id", "from_date", name="uq_pay_period_settings_from_date"),
        CheckConstraint("from_date <= to_date", name="ck_pay_period_from_before_to"),
        CheckConstraint(
            "status IN ('YetToGenerate', 'Drafted', 'Submitted', 'Skipped')",
            name="ck_pay_period_status_valid",
        ),
        CheckConstraint(
            "(status IN ('Submitted', 'Skipped') AND resolved_at IS NOT NULL) OR "
            "(status IN ('YetToGenerate', 'Drafted') AND resolved_at IS NULL)",
            name="ck_pay_period_resolved_at_matches_status",
        ),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(Integer, index=True, nullable=False)
    settings_id = Column(
        Integer,
        ForeignKey("payroll_cycle_settings.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    from_date = Column(Date, nullable=False)
    to_date = Column(Date, nullable=False)
    check_date = Column(Date, nullable=False)
    actual_check_date = Column(Date, nullable=False)
    status = Column(String, nullable=False, default="YetToGenerate")
    resolved_at = Column(DateTime, nullable=True)
    resolved_by = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    settings = relationship("PayrollCycleSetting", backref="periods")
