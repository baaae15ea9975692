import pytest
from sqlalchemy import text

from paycycle import database
from paycycle.core.errors import TransactionAborted
from paycycle.database import SessionLocal
from paycycle.models.employee import Employee
from paycycle.models.pay_period import PayPeriod
from paycycle.services.payment_ledger import record_payment
from paycycle.services.payroll_run_service import generate_for_settings, submit_period

pytestmark = pytest.mark.skipif(not database.is_postgres(), reason="row locks require PostgreSQL")


def _hold_period_lock(period_id: str):
    db = SessionLocal()
    db.query(PayPeriod).filter(PayPeriod.id == period_id).with_for_update().one()
    return db


def _short_lock_timeout_session():
    db = SessionLocal()
    db.execute(text("SET LOCAL lock_timeout = '200ms'"))
    return db


def test_submit_waits_on_locked_period_and_aborts(make_settings):
    setting = make_settings()
    period = generate_for_settings(setting.id, company_id=1)

    holder = _hold_period_lock(period.id)
    contender = _short_lock_timeout_session()
    try:
        with pytest.raises(TransactionAborted):
            submit_period(period.id, company_id=1, db=contender)
    finally:
        contender.rollback()
        contender.close()
        holder.rollback()
        holder.close()

    db = SessionLocal()
    try:
        assert db.query(PayPeriod).filter(PayPeriod.id == period.id).one().status == "Drafted"
    finally:
        db.close()


def test_payment_waits_on_locked_period_and_aborts(make_settings, make_employee):
    setting = make_settings()
    employee = make_employee(settings_id=setting.id)
    period = generate_for_settings(setting.id, company_id=1)

    holder = _hold_period_lock(period.id)
    contender = _short_lock_timeout_session()
    try:
        with pytest.raises(TransactionAborted):
            record_payment(period.id, employee.id, 0, False, False, company_id=1, db=contender)
    finally:
        contender.rollback()
        contender.close()
        holder.rollback()
        holder.close()


def test_payment_waits_on_locked_employee_and_aborts(make_settings, make_employee):
    setting = make_settings()
    employee = make_employee(settings_id=setting.id)
    period = generate_for_settings(setting.id, company_id=1)

    holder = SessionLocal()
    holder.query(Employee).filter(Employee.id == employee.id).with_for_update().one()
    contender = _short_lock_timeout_session()
    try:
        with pytest.raises(TransactionAborted):
            record_payment(period.id, employee.id, 0, False, False, company_id=1, db=contender)
    finally:
        contender.rollback()
        contender.close()
        holder.rollback()
        holder.close()

    db = SessionLocal()
    try:
        assert db.query(Employee).filter(Employee.id == employee.id).one().balance_cents == 0
    finally:
        db.close()
