import urllib.error
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from fxrates.core.config import Settings
from fxrates.core.errors import ProviderError
from fxrates.main import build_rate_service
from fxrates.services.http_client import USER_AGENT, HttpError, build_url, get_json
from fxrates.services.money import round_rate
from fxrates.services.rates.providers import (
    FrankfurterRateProvider,
    StaticRateProvider,
    make_rate_provider,
    parse_latest_payload,
)


@pytest.fixture
def mock_get_json(mocker):
    return mocker.patch("fxrates.services.rates.providers.get_json")


def _urlopen_returning(mocker, body: bytes, status: int = 200):
    resp = MagicMock()
    resp.status = status
    resp.read.return_value = body
    cm = MagicMock()
    cm.__enter__.return_value = resp
    return mocker.patch(
        "fxrates.services.http_client.urllib.request.urlopen", return_value=cm
    )


def test_frankfurter_fetch_latest(mock_get_json):
    mock_get_json.return_value = {
        "amount": Decimal("1.0"),
        "base": "EUR",
        "date": "2024-01-01",
        "rates": {"USD": Decimal("1.1"), "GBP": Decimal("0.85")},
    }
    provider = FrankfurterRateProvider("https://api.frankfurter.app", timeout=3.0)

    snapshot = provider.fetch_latest("eur")

    assert snapshot.base == "EUR"
    assert snapshot.date == date(2024, 1, 1)
    assert snapshot.rates == {"USD": Decimal("1.1"), "GBP": Decimal("0.85")}
    mock_get_json.assert_called_once()
    args, kwargs = mock_get_json.call_args
    assert args[0] == "https://api.frankfurter.app/latest?from=EUR"
    assert kwargs["timeout"] == 3.0
    assert kwargs["retries"] == 0


def test_frankfurter_network_error_becomes_provider_error(mock_get_json):
    mock_get_json.side_effect = HttpError("Failed to fetch JSON: timed out")
    with pytest.raises(ProviderError, match="timed out"):
        FrankfurterRateProvider().fetch_latest("EUR")


def test_frankfurter_missing_rates(mock_get_json):
    mock_get_json.return_value = {"base": "EUR", "date": "2024-01-01"}
    with pytest.raises(ProviderError, match="rates"):
        FrankfurterRateProvider().fetch_latest("EUR")


def test_parse_refuses_binary_floats():
    with pytest.raises(ProviderError, match="USD"):
        parse_latest_payload({"date": "2024-01-01", "rates": {"USD": 1.1}}, "EUR")


def test_parse_rejects_bad_currency_code():
    with pytest.raises(ProviderError):
        parse_latest_payload({"date": "2024-01-01", "rates": {"US": Decimal("1")}}, "EUR")


def test_parse_uppercases_codes():
    snap = parse_latest_payload({"date": "2024-01-01", "rates": {"usd": Decimal("1.1")}}, "EUR")
    assert list(snap.rates) == ["USD"]


def test_static_provider():
    provider = StaticRateProvider({"USD": Decimal("1.1")}, rate_date=date(2024, 1, 1))
    snap = provider.fetch_latest("EUR")
    assert snap.rates == {"USD": Decimal("1.1")}
    with pytest.raises(ProviderError, match="GBP"):
        provider.fetch_latest("GBP")


def test_static_provider_rebases_onto_a_table_currency():
    provider = StaticRateProvider(
        {"USD": Decimal("1.0850"), "GBP": Decimal("0.8560")}, rate_date=date(2024, 1, 1)
    )
    snap = provider.fetch_latest("usd")
    assert snap.base == "USD"
    assert set(snap.rates) == {"GBP", "EUR"}
    assert round_rate(snap.rates["GBP"]) == Decimal("0.788940")
    assert round_rate(snap.rates["EUR"]) == Decimal("0.921659")


def test_static_refresh_under_non_eur_pivot(tmp_path):
    settings = Settings(
        data_dir=tmp_path, pivot_currency="USD", exchange_rate_provider="static"
    )
    settings.init_post_load()
    db, service = build_rate_service(settings)
    outcome = service.refresh_rates()
    assert outcome.ok
    assert db.find_latest("USD", "GBP").rate == round_rate(Decimal("0.8560") / Decimal("1.0850"))
    assert db.find_latest("USD", "EUR").rate == Decimal("0.921659")
    assert db.find_latest("USD", "USD").rate == Decimal("1")
    assert db.find_latest("EUR", "GBP") is None


def test_static_refresh_fails_for_pivot_outside_table(tmp_path):
    settings = Settings(
        data_dir=tmp_path, pivot_currency="AUD", exchange_rate_provider="static"
    )
    settings.init_post_load()
    db, service = build_rate_service(settings)
    outcome = service.refresh_rates()
    assert not outcome.ok
    assert "AUD" in outcome.reason
    assert db.count_rates() == 0


def test_make_rate_provider(tmp_path):
    settings = Settings(data_dir=tmp_path, provider_base_url="https://example.test/v1")
    provider = make_rate_provider("frankfurter", settings)
    assert isinstance(provider, FrankfurterRateProvider)
    assert isinstance(make_rate_provider("static", settings), StaticRateProvider)
    with pytest.raises(ValueError):
        make_rate_provider("nope", settings)


def test_build_url():
    assert build_url("https://x.test/", "/latest", {"from": "EUR"}) == "https://x.test/latest?from=EUR"


def test_get_json_decodes_numbers_as_decimal(mocker):
    _urlopen_returning(mocker, b'{"date": "2024-01-01", "rates": {"IDR": 17287.1234567, "JPY": 166}}')
    data = get_json("https://x.test/latest")
    assert data["rates"]["IDR"] == Decimal("17287.1234567")
    assert isinstance(data["rates"]["JPY"], Decimal)


def test_get_json_single_attempt_by_default(mocker):
    urlopen = mocker.patch(
        "fxrates.services.http_client.urllib.request.urlopen",
        side_effect=urllib.error.URLError("connection refused"),
    )
    with pytest.raises(HttpError, match="connection refused"):
        get_json("https://x.test/latest")
    assert urlopen.call_count == 1


def test_get_json_bad_body(mocker):
    _urlopen_returning(mocker, b"<html>oops</html>")
    with pytest.raises(HttpError):
        get_json("https://x.test/latest")


def test_get_json_sends_client_headers(mocker):
    urlopen = _urlopen_returning(mocker, b"{}")
    get_json("https://x.test/latest")
    request = urlopen.call_args[0][0]
    assert request.get_header("User-agent") == USER_AGENT == "fxrates/0.1"
    assert request.get_header("Accept") == "application/json"
