from typing import Optional


class PayrollError(Exception):
    """Base for every rejection raised by the payroll core.

    Each subclass carries a stable ``code`` and the HTTP status the API
    layer renders it with. Guards raise before any write is made.
    """

    code = "payroll_error"
    status_code = 400

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)


class ValidationError(PayrollError):
    """Malformed input."""

    code = "validation_error"
    status_code = 422


class InvalidCycleType(ValidationError):
    """Unknown pay cycle type."""

    code = "invalid_cycle_type"


class DateOrderError(ValidationError):
    """Period dates are inconsistent with the cycle rules."""

    code = "date_order_error"


class NotFound(PayrollError):
    code = "not_found"
    status_code = 404


class OrderViolation(PayrollError):
    """An earlier period must be submitted or skipped first."""

    code = "order_violation"
    status_code = 409


class AlreadyResolved(PayrollError):
    """Period is already submitted or skipped."""

    code = "already_resolved"
    status_code = 409


class FinalizePending(PayrollError):
    """Some payments are recorded but not yet finalized."""

    code = "finalize_pending"
    status_code = 409


class FinalizeNotAllowed(PayrollError):
    """Cannot finalize while timesheet approval is pending."""

    code = "finalize_not_allowed"
    status_code = 409


class NonZeroAmountBlocked(PayrollError):
    """Timesheet approval is pending; amount paid must be zero."""

    code = "non_zero_amount_blocked"
    status_code = 409


class FinalizeRequiredForPayment(PayrollError):
    """A non-draft payment must be finalized."""

    code = "finalize_required_for_payment"
    status_code = 409


class AlreadyFinalized(PayrollError):
    """Payment is finalized and can no longer change."""

    code = "already_finalized"
    status_code = 409


class TransactionAborted(PayrollError):
    """The database aborted the transaction; nothing was written."""

    code = "transaction_aborted"
    status_code = 503
