from paycycle.models.balance_audit_entry import BalanceAuditEntry
from paycycle.models.employee import Employee
from paycycle.models.pay_period import PayPeriod
from paycycle.models.payment_detail import PaymentDetail
from paycycle.models.payroll_cycle_setting import PayrollCycleSetting
from paycycle.models.payroll_item import PayrollItem

__all__ = [
    "BalanceAuditEntry",
    "Employee",
    "PayPeriod",
    "PaymentDetail",
    "PayrollCycleSetting",
    "PayrollItem",
]
