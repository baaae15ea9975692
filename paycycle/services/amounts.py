from paycycle.core.errors import ValidationError


def require_cents(name: str, value) -> int:
    """Accept a non-negative whole number of cents; bools and floats are refused."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be a whole number of cents")
    if value < 0:
        raise ValidationError(f"{name} must be >= 0")
    return value
