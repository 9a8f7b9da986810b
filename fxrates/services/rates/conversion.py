from __future__ import annotations

from decimal import Decimal

from fxrates.services.money import exact_product, round_amount, round_rate

"""Cross-rate arithmetic.

Both legs are quoted from the same pivot P (1 P = rate_from FROM, 1 P = rate_to TO),
so 1 FROM = rate_to / rate_from TO. Rate is rounded before the amount is
multiplied, matching what callers see in the response.
"""

ONE = Decimal(1)


def cross_rate(rate_from: Decimal, rate_to: Decimal) -> Decimal:
    if rate_from <= 0 or rate_to <= 0:
        raise ValueError("pivot rates must be positive")
    return round_rate(rate_to / rate_from)


def convert_amount(amount: Decimal, rate: Decimal) -> Decimal:
    return round_amount(exact_product(amount, rate))
