"""
Module: quote_kernel.db.types
Responsibility: Annotated column type aliases and the money rounding helpers.
    Centralizes precision and rounding so that every model, engine and service
    uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, selectors/ and the engines.  MUST NOT import from any of those.

Invariants enforced:
    - Money is rounded to the currency's minor unit (2 places) with
      ROUND_HALF_EVEN, so rounding error does not drift in one direction
      across many quotes.  round_money() is the ONLY sanctioned rounding
      function for money.
    - No floats anywhere.  Inputs arriving as float are converted through
      their shortest repr, never through the binary value.

Failure modes:
    - ValidationError from to_decimal() on non-numeric, boolean or
      non-finite input.
"""

from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Annotated, Any

from sqlalchemy import Numeric, String

from quote_kernel.exceptions import ValidationError

# Monetary amount: 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Normalized score in [0, 1] or vendor score in [0, 100]
Score = Annotated[Decimal, Numeric(9, 4)]

# Short identifier strings
ShortCode = Annotated[str, String(50)]

MONEY_DECIMAL_PLACES = 2
SCORE_DECIMAL_PLACES = 4
DEFAULT_ROUNDING = ROUND_HALF_EVEN


def to_decimal(value: Any, field: str) -> Decimal:
    """
    Coerce a caller-supplied number to Decimal.

    Accepts Decimal, int, str and float.  Floats go through ``str()`` so that
    ``139.9`` becomes ``Decimal("139.9")`` rather than its binary expansion.

    Raises:
        ValidationError: on bool, non-numeric strings, NaN or Infinity.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(field, "must be a number", value)
    try:
        if isinstance(value, Decimal):
            result = value
        elif isinstance(value, (int, str)):
            result = Decimal(value)
        elif isinstance(value, float):
            result = Decimal(str(value))
        else:
            raise ValidationError(field, "must be a number", value)
    except InvalidOperation as exc:
        raise ValidationError(field, "must be a number", value) from exc

    if not result.is_finite():
        raise ValidationError(field, "must be finite", value)
    return result


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    This is the ONLY sanctioned rounding function for money.  All other code
    MUST delegate to it.
    """
    return value.quantize(Decimal(1).scaleb(-decimal_places), rounding=rounding)


def round_score(value: Decimal, decimal_places: int = SCORE_DECIMAL_PLACES) -> Decimal:
    """Round a score for storage (same rounding mode as money)."""
    return value.quantize(Decimal(1).scaleb(-decimal_places), rounding=DEFAULT_ROUNDING)
