from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from fxrates.core.logging import job_context
from fxrates.models import (
    CURRENCY_CODE_PATTERN,
    MAX_AMOUNT,
    ConversionResult,
    RateOut,
    RatesTable,
)
from fxrates.services.rate_service import ExchangeRateService

"""FX router.

Endpoints:
    - GET /api/fx/convert?from=USD&to=GBP&amount=100 -> conversion from persisted rates
    - GET /api/fx/latest                             -> run a refresh now, report outcome
    - GET /api/fx/rates                              -> latest stored rate per target

/latest always answers 200: a failed refresh is reported in the body, never
as an HTTP error.
"""

router = APIRouter(prefix="/api/fx", tags=["fx"])


def get_rate_service(request: Request) -> ExchangeRateService:
    return request.app.state.rate_service


class RefreshResponse(BaseModel):
    status: str
    message: str
    rate_date: Optional[date] = None
    saved: int = 0
    reason: Optional[str] = None


@router.get("/convert", response_model=ConversionResult, summary="Convert an amount")
async def convert(
    from_currency: str = Query(..., alias="from", pattern=CURRENCY_CODE_PATTERN),
    to_currency: str = Query(..., alias="to", pattern=CURRENCY_CODE_PATTERN),
    amount: Decimal = Query(
        ..., ge=0, le=MAX_AMOUNT, description="Non-negative amount to convert"
    ),
    svc: ExchangeRateService = Depends(get_rate_service),
):
    # RateNotFound bubbles up to the 404 handler
    return await run_in_threadpool(svc.convert, from_currency, to_currency, amount)


@router.get(
    "/latest", response_model=RefreshResponse, summary="Fetch and store the latest rates"
)
async def refresh_latest(svc: ExchangeRateService = Depends(get_rate_service)):
    with job_context("manual"):
        outcome = await run_in_threadpool(svc.refresh_rates)
    return RefreshResponse(
        status=outcome.status,
        message=outcome.message,
        rate_date=outcome.rate_date,
        saved=outcome.saved,
        reason=outcome.reason,
    )


@router.get("/rates", response_model=RatesTable, summary="Latest stored rates")
async def latest_rates(svc: ExchangeRateService = Depends(get_rate_service)):
    records = await run_in_threadpool(svc.latest_rates)
    return RatesTable(
        base_currency=svc.pivot, rates=[RateOut.from_record(r) for r in records]
    )
