from datetime import datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, Integer, String, UniqueConstraint

from paycycle.database import Base


class PayrollCycleSetting(Base):
    __tablename__ = "payroll_cycle_settings"

    __table_args__ = (
        UniqueConstraint("company_id", "name", name="uq_payroll_cycle_settings_company_name"),
        CheckConstraint(
            "cycle_type IN ('Weekly', 'BiWeekly', 'SemiMonthly', 'Monthly')",
            name="ck_payroll_cycle_settings_cycle_type_valid",
        ),
        CheckConstraint("from_date <= to_date", name="ck_payroll_cycle_settings_from_before_to"),
        CheckConstraint(
            "(cycle_type = 'SemiMonthly' AND second_from_date IS NOT NULL AND second_to_date IS NOT NULL "
            "AND second_check_date IS NOT NULL AND second_actual_check_date IS NOT NULL) OR "
            "(cycle_type <> 'SemiMonthly' AND second_from_date IS NULL AND second_to_date IS NULL "
            "AND second_check_date IS NULL AND second_actual_check_date IS NULL)",
            name="ck_payroll_cycle_settings_second_half_only_semimonthly",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, nullable=False, index=True)
    name = Column(String, nullable=False)
    cycle_type = Column(String, nullable=False)

    from_date = Column(Date, nullable=False)
    to_date = Column(Date, nullable=False)
    check_date = Column(Date, nullable=False)
    actual_check_date = Column(Date, nullable=False)

    second_from_date = Column(Date, nullable=True)
    second_to_date = Column(Date, nullable=True)
    second_check_date = Column(Date, nullable=True)
    second_actual_check_date = Column(Date, nullable=True)

    created_by = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
