"""Pay period status model with transition validation."""

from enum import Enum

from paycycle.core.errors import AlreadyResolved, ValidationError


class PeriodStatus(str, Enum):
    YET_TO_GENERATE = "YetToGenerate"
    DRAFTED = "Drafted"
    SUBMITTED = "Submitted"
    SKIPPED = "Skipped"


class PayrollRunStateMachine:
    """Transitions for a pay period.

    Allowed transitions:
    - YetToGenerate -> Drafted
    - YetToGenerate -> Submitted | Skipped
    - Drafted -> Submitted | Skipped

    Submitted and Skipped are terminal. Ordering between periods of the same
    setting is enforced by the run service, which holds the row locks.
    """

    VALID_TRANSITIONS: dict[PeriodStatus, list[PeriodStatus]] = {
        PeriodStatus.YET_TO_GENERATE: [
            PeriodStatus.DRAFTED,
            PeriodStatus.SUBMITTED,
            PeriodStatus.SKIPPED,
        ],
        PeriodStatus.DRAFTED: [PeriodStatus.SUBMITTED, PeriodStatus.SKIPPED],
        PeriodStatus.SUBMITTED: [],
        PeriodStatus.SKIPPED: [],
    }

    TERMINAL = {PeriodStatus.SUBMITTED, PeriodStatus.SKIPPED}

    # Statuses in which payments may be recorded.
    PAYMENTS_OPEN = {PeriodStatus.DRAFTED}

    @classmethod
    def coerce(cls, status) -> PeriodStatus:
        try:
            return PeriodStatus(status)
        except ValueError as exc:
            raise ValidationError(f"Unknown period status: {status!r}") from exc

    @classmethod
    def is_resolved(cls, status) -> bool:
        return cls.coerce(status) in cls.TERMINAL

    @classmethod
    def can_transition(cls, from_status, to_status) -> bool:
        allowed = cls.VALID_TRANSITIONS.get(cls.coerce(from_status), [])
        return cls.coerce(to_status) in allowed

    @classmethod
    def validate_transition(cls, from_status, to_status) -> None:
        from_status = cls.coerce(from_status)
        to_status = cls.coerce(to_status)

        if from_status in cls.TERMINAL:
            raise AlreadyResolved(f"Period is already {from_status.value}")

        if not cls.can_transition(from_status, to_status):
            raise ValidationError(
                f"Invalid transition from '{from_status.value}' to '{to_status.value}'"
            )

    @classmethod
    def accepts_payments(cls, status) -> bool:
        return cls.coerce(status) in cls.PAYMENTS_OPEN
