"""Exchange rate service: refresh from the provider, convert from the store.

Design:
- Pivot currency P is injected at construction; every stored row is (P, X).
- refresh_rates() pulls the provider table for P, persists one row per target
  plus the (P, P, 1) self-rate in a single transaction, and reports an
  outcome instead of raising. A non-blocking lock lets only one refresh run at
  a time; overlapping triggers return "skipped".
- convert() reads both legs inside one store snapshot and computes the
  cross-rate rate_to / rate_from (6 dp) and the amount (2 dp), ROUND_HALF_UP.
"""

from __future__ import annotations

import logging
import threading
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Protocol

from fxrates.core.errors import FxServiceError, ProviderError, RateNotFound
from fxrates.models import ConversionResult, RateRecord, normalize_code
from fxrates.models.constants import MAX_AMOUNT, SIDE_SOURCE, SIDE_TARGET
from fxrates.services.money import round_rate, to_decimal
from fxrates.services.rates.base import ProviderSnapshot, RateProvider
from fxrates.services.rates.conversion import ONE, convert_amount, cross_rate

logger = logging.getLogger("fxrates.rates")

STATUS_OK = "ok"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"


class SupportsLatestLookup(Protocol):
    def find_latest(self, base: str, target: str) -> Optional[RateRecord]: ...


class RateStore(SupportsLatestLookup, Protocol):
    def save_all(self, records: Iterable[RateRecord]) -> List[RateRecord]: ...

    def snapshot(self) -> AbstractContextManager[SupportsLatestLookup]: ...

    def list_latest(self, base: str) -> List[RateRecord]: ...


@dataclass(frozen=True)
class RefreshOutcome:
    status: str
    rate_date: Optional[date] = None
    saved: int = 0
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK

    @property
    def message(self) -> str:
        if self.status == STATUS_OK:
            return f"Saved {self.saved} rates for {self.rate_date}."
        if self.status == STATUS_SKIPPED:
            return "A refresh is already running; this trigger was skipped."
        return f"Rate refresh failed: {self.reason}"


class ExchangeRateService:
    def __init__(self, store: RateStore, provider: RateProvider, pivot_currency: str = "EUR"):
        self._store = store
        self._provider = provider
        self.pivot = normalize_code(pivot_currency)
        self._refresh_lock = threading.Lock()

    # Refresh ---------------------------------------------------
    @property
    def refresh_in_progress(self) -> bool:
        return self._refresh_lock.locked()

    def refresh_rates(self) -> RefreshOutcome:
        if not self._refresh_lock.acquire(blocking=False):
            logger.info("rate refresh already in progress; skipping trigger")
            return RefreshOutcome(status=STATUS_SKIPPED, reason="refresh already in progress")
        try:
            return self._refresh_locked()
        finally:
            self._refresh_lock.release()

    def _refresh_locked(self) -> RefreshOutcome:
        logger.info(
            "starting rate refresh (pivot=%s, provider=%s)", self.pivot, self._provider.name
        )
        try:
            snapshot = self._provider.fetch_latest(self.pivot)
            records = self._build_records(snapshot)
            saved = self._store.save_all(records)
        except FxServiceError as e:
            logger.error("rate refresh failed: %s", e)
            return RefreshOutcome(status=STATUS_FAILED, reason=str(e))
        except Exception as e:
            logger.exception("rate refresh failed unexpectedly")
            return RefreshOutcome(status=STATUS_FAILED, reason=f"unexpected error: {e}")

        logger.info(
            "rate refresh finished: %d rows saved for %s", len(saved), snapshot.date
        )
        return RefreshOutcome(status=STATUS_OK, rate_date=snapshot.date, saved=len(saved))

    def _build_records(self, snapshot: ProviderSnapshot) -> List[RateRecord]:
        records: List[RateRecord] = []
        for code in sorted(snapshot.rates):
            if code == self.pivot:
                # replaced by the canonical self-rate below
                continue
            rate = round_rate(snapshot.rates[code])
            if rate <= 0:
                raise ProviderError(
                    f"rate for {code} ({snapshot.rates[code]}) rounds to zero at 6 places"
                )
            records.append(
                RateRecord(
                    base_currency=self.pivot,
                    target_currency=code,
                    rate=rate,
                    date=snapshot.date,
                )
            )
            logger.debug("rate 1 %s = %s %s on %s", self.pivot, rate, code, snapshot.date)
        records.append(
            RateRecord(
                base_currency=self.pivot,
                target_currency=self.pivot,
                rate=ONE,
                date=snapshot.date,
            )
        )
        return records

    # Conversion ------------------------------------------------
    def rate_to_base(self, currency: str) -> Decimal:
        """Units of `currency` per 1 pivot unit, from the latest stored row."""
        return self._rate_to_base(normalize_code(currency), self._store)

    def _rate_to_base(
        self, code: str, reader: SupportsLatestLookup, side: Optional[str] = None
    ) -> Decimal:
        if code == self.pivot:
            return ONE
        record = reader.find_latest(self.pivot, code)
        if record is None:
            raise RateNotFound(code, side)
        return record.rate

    def convert(self, from_currency: str, to_currency: str, amount: Decimal) -> ConversionResult:
        from_code = normalize_code(from_currency)
        to_code = normalize_code(to_currency)
        amount = to_decimal(amount)
        if amount < 0:
            raise ValueError("amount must not be negative")
        if amount > MAX_AMOUNT:
            raise ValueError(f"amount must not exceed {MAX_AMOUNT}")

        if from_code == to_code:
            return ConversionResult(
                from_currency=from_code,
                to_currency=to_code,
                original_amount=amount,
                converted_amount=amount,
                exchange_rate=round_rate(ONE),
            )

        with self._store.snapshot() as snap:
            rate_from = self._rate_to_base(from_code, snap, SIDE_SOURCE)
            rate_to = self._rate_to_base(to_code, snap, SIDE_TARGET)

        rate = cross_rate(rate_from, rate_to)
        converted = convert_amount(amount, rate)
        logger.debug("converted %s %s -> %s %s at %s", amount, from_code, converted, to_code, rate)
        return ConversionResult(
            from_currency=from_code,
            to_currency=to_code,
            original_amount=amount,
            converted_amount=converted,
            exchange_rate=rate,
        )

    def latest_rates(self) -> List[RateRecord]:
        return self._store.list_latest(self.pivot)
