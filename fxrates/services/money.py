"""Money / rounding helpers.

Centralized so the refresh path, the conversion engine and the store use
identical rounding semantics (ROUND_HALF_UP throughout).
"""

from __future__ import annotations
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext

from fxrates.models.constants import AMOUNT_QUANTUM, RATE_QUANTUM


def _quantize(value: Decimal, quantum: Decimal) -> Decimal:
    # quantize needs room for every integer digit plus the target scale
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() + 2 - quantum.as_tuple().exponent)
        return value.quantize(quantum, rounding=ROUND_HALF_UP)


def round_rate(value: Decimal) -> Decimal:
    return _quantize(value, RATE_QUANTUM)


def round_amount(value: Decimal) -> Decimal:
    return _quantize(value, AMOUNT_QUANTUM)


def exact_product(a: Decimal, b: Decimal) -> Decimal:
    """a * b without the context rounding the coefficient."""
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, len(a.as_tuple().digits) + len(b.as_tuple().digits))
        return a * b


def to_decimal(value: object) -> Decimal:
    """Exact Decimal for a provider number.

    Accepts Decimal (JSON parsed with parse_float=Decimal), int, or numeric
    text. Binary floats and bools are refused so no rounding error can sneak in.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"refusing non-exact numeric value {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation as e:
            raise ValueError(f"not a number: {value!r}") from e
    else:
        raise ValueError(f"not a number: {value!r}")
    if not result.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return result
