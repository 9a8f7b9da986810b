"""Pydantic domain models for the FX rate service."""

from .constants import (
    AMOUNT_PLACES,
    CURRENCY_CODE_PATTERN,
    MAX_AMOUNT,
    RATE_PLACES,
)  # re-export
from .rates import ConversionResult, RateOut, RateRecord, RatesTable, normalize_code

__all__ = [
    "AMOUNT_PLACES",
    "CURRENCY_CODE_PATTERN",
    "MAX_AMOUNT",
    "RATE_PLACES",
    "ConversionResult",
    "RateOut",
    "RateRecord",
    "RatesTable",
    "normalize_code",
]
