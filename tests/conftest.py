from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from fxrates.core.config import Settings
from fxrates.db.dal import Database
from fxrates.db.schema import init_db
from fxrates.main import create_app
from fxrates.models import RateRecord
from fxrates.services.rate_service import ExchangeRateService
from fxrates.services.rates.providers import StaticRateProvider

RATE_DATE = date(2024, 1, 1)


def make_record(target: str, rate: str, on: date = RATE_DATE, base: str = "EUR") -> RateRecord:
    return RateRecord(
        base_currency=base, target_currency=target, rate=Decimal(rate), date=on
    )


@pytest.fixture
def db(tmp_path) -> Database:
    path = tmp_path / "rates.sqlite3"
    init_db(path)
    return Database(path)


@pytest.fixture
def seeded_db(db) -> Database:
    db.save_all(
        [
            make_record("USD", "1.100000"),
            make_record("GBP", "0.850000"),
            make_record("CHF", "0.940000"),
            make_record("EUR", "1"),
        ]
    )
    return db


@pytest.fixture
def provider() -> StaticRateProvider:
    return StaticRateProvider(
        {"USD": Decimal("1.1"), "GBP": Decimal("0.85")}, rate_date=RATE_DATE
    )


@pytest.fixture
def service(seeded_db, provider) -> ExchangeRateService:
    return ExchangeRateService(seeded_db, provider, "EUR")


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        data_dir=tmp_path,
        db_path=tmp_path / "api.sqlite3",
        exchange_rate_provider="static",
        scheduler_enabled=False,
    )


@pytest.fixture
def client(settings, provider):
    app = create_app(settings_override=settings, provider_override=provider)
    with TestClient(app) as c:
        yield c
