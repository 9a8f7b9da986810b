from __future__ import annotations

"""Concrete rate providers and factory.

'frankfurter' talks to the free Frankfurter API (ECB reference rates, no key
required). 'static' serves a fixed EUR-quoted table, re-based onto the
requested pivot, so the service can run offline.
"""
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, Mapping, Optional, TYPE_CHECKING

from fxrates.core.errors import ProviderError
from fxrates.services.http_client import HttpError, build_url, get_json
from fxrates.services.money import to_decimal
from .base import ProviderSnapshot, RateProvider

if TYPE_CHECKING:  # pragma: no cover
    from fxrates.core.config import Settings

# EUR-based placeholders, roughly in line with ECB reference rates
_STATIC_RATES: Dict[str, Decimal] = {
    "USD": Decimal("1.0850"),
    "GBP": Decimal("0.8560"),
    "JPY": Decimal("161.23"),
    "CHF": Decimal("0.9410"),
    "INR": Decimal("90.415"),
}


def parse_latest_payload(payload: Any, expected_base: str) -> ProviderSnapshot:
    """Validate a `{"date": ..., "rates": {...}}` payload into a snapshot."""
    if not isinstance(payload, Mapping):
        raise ProviderError("provider response is empty or not a JSON object")
    rates_raw = payload.get("rates")
    if not isinstance(rates_raw, Mapping):
        raise ProviderError("provider response missing 'rates' map")

    base = payload.get("base", expected_base)
    if not isinstance(base, str) or base.upper() != expected_base:
        raise ProviderError(
            f"provider answered for base {base!r}, expected {expected_base}"
        )

    date_raw = payload.get("date")
    if not isinstance(date_raw, str):
        raise ProviderError("provider response missing 'date'")
    try:
        rate_date = date.fromisoformat(date_raw)
    except ValueError as e:
        raise ProviderError(f"invalid settlement date {date_raw!r}") from e

    rates: Dict[str, Decimal] = {}
    for code, raw in rates_raw.items():
        if not isinstance(code, str) or len(code) != 3 or not code.isalpha():
            raise ProviderError(f"invalid currency code {code!r} in rates")
        try:
            value = to_decimal(raw)
        except ValueError as e:
            raise ProviderError(f"non-numeric rate for {code}: {raw!r}") from e
        if value <= 0:
            raise ProviderError(f"non-positive rate for {code}: {value}")
        rates[code.upper()] = value
    return ProviderSnapshot(base=expected_base, date=rate_date, rates=rates)


class StaticRateProvider(RateProvider):
    """Fixed table quoted from ``base``; other bases are derived by cross-rate."""

    name = "static"

    def __init__(
        self,
        rates: Optional[Mapping[str, Decimal]] = None,
        rate_date: Optional[date] = None,
        base: str = "EUR",
    ):
        self._rates = dict(rates if rates is not None else _STATIC_RATES)
        self._date = rate_date
        self._base = base.upper()

    def fetch_latest(self, base: str) -> ProviderSnapshot:  # type: ignore[override]
        base = base.upper()
        if base == self._base:
            rates = dict(self._rates)
        elif base in self._rates:
            rates = self._rebase(base)
        else:
            raise ProviderError(f"static table has no rate for {base}")
        return ProviderSnapshot(base=base, date=self._date or date.today(), rates=rates)

    def _rebase(self, base: str) -> Dict[str, Decimal]:
        # x per base = table[x] / table[base]; the table base itself is 1 / table[base]
        pivot = self._rates[base]
        rates = {code: rate / pivot for code, rate in self._rates.items() if code != base}
        rates[self._base] = Decimal(1) / pivot
        return rates


class FrankfurterRateProvider(RateProvider):
    name = "frankfurter"

    def __init__(
        self,
        base_url: str = "https://api.frankfurter.app",
        timeout: float = 10.0,
        retries: int = 0,
    ):
        self._base_url = base_url
        self._timeout = timeout
        self._retries = retries

    def fetch_latest(self, base: str) -> ProviderSnapshot:  # type: ignore[override]
        base = base.upper()
        url = build_url(self._base_url, "/latest", {"from": base})
        try:
            payload = get_json(url, timeout=self._timeout, retries=self._retries)
        except HttpError as e:
            raise ProviderError(str(e)) from e
        return parse_latest_payload(payload, base)


def _make_frankfurter(settings: "Settings") -> RateProvider:
    return FrankfurterRateProvider(
        base_url=str(settings.provider_base_url),
        timeout=settings.http_timeout_seconds,
        retries=settings.http_retries,
    )


def _make_static(settings: "Settings") -> RateProvider:
    return StaticRateProvider()


_PROVIDER_REGISTRY: Dict[str, Callable[["Settings"], RateProvider]] = {
    "frankfurter": _make_frankfurter,
    "static": _make_static,
}


def make_rate_provider(kind: str, settings: "Settings") -> RateProvider:
    factory = _PROVIDER_REGISTRY.get(kind)
    if not factory:
        raise ValueError(f"Unknown rate provider kind '{kind}'")
    return factory(settings)
