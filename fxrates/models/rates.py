from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator


def normalize_code(v: str) -> str:
    v = v.strip().upper()
    if len(v) != 3 or not v.isalpha():
        raise ValueError("currency code must be 3 letters")
    return v


class RateRecord(BaseModel):
    """One observed rate: 1 unit of base_currency = rate units of target_currency."""

    id: Optional[int] = None
    base_currency: str
    target_currency: str
    rate: Decimal = Field(..., gt=0)
    date: dt.date

    @field_validator("base_currency", "target_currency")
    @classmethod
    def valid_currency(cls, v: str) -> str:
        return normalize_code(v)


class ConversionResult(BaseModel):
    from_currency: str
    to_currency: str
    original_amount: Decimal
    converted_amount: Decimal
    exchange_rate: Decimal


class RateOut(BaseModel):
    target_currency: str
    rate: Decimal
    date: dt.date

    @classmethod
    def from_record(cls, record: RateRecord) -> "RateOut":
        return cls(
            target_currency=record.target_currency,
            rate=record.rate,
            date=record.date,
        )


class RatesTable(BaseModel):
    base_currency: str
    rates: list[RateOut]
