"""
Value helpers for compliance quantities.

Responsibility:
    The single place where compliance balances are converted to Decimal
    and rounded.  CB values are reported with ``CB_DECIMAL_PLACES`` places
    using round-half-away-from-zero (``ROUND_HALF_UP`` on Decimal rounds
    the magnitude, so -0.005 becomes -0.01).

Invariants enforced:
    - No floats.  ``to_decimal`` goes through ``str`` so binary float
      noise never enters an amount.
"""

from decimal import ROUND_HALF_UP, Decimal

CB_DECIMAL_PLACES = 2

ZERO = Decimal("0")


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Convert a numeric input to Decimal without float artefacts."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("bool is not a numeric amount")
    if isinstance(value, (int, str)):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value))
    raise TypeError(f"Cannot convert {type(value).__name__} to Decimal")


def round_cb(value: Decimal, places: int = CB_DECIMAL_PLACES) -> Decimal:
    """Round a compliance quantity half away from zero."""
    quantum = Decimal(1).scaleb(-places)
    return to_decimal(value).quantize(quantum, rounding=ROUND_HALF_UP)


def coerce_decimal_fields(obj: object, *fields: str) -> None:
    """Coerce numeric fields of a frozen dataclass to Decimal in place."""
    for name in fields:
        object.__setattr__(obj, name, to_decimal(getattr(obj, name)))
