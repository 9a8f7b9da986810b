from datetime import date
from decimal import Decimal

import pytest

from fxrates.core.errors import StorageError
from fxrates.db.dal import Database
from tests.conftest import make_record


def test_save_assigns_identity_and_fixed_scale(db):
    saved = db.save(make_record("USD", "1.1"))
    assert isinstance(saved.id, int)
    assert str(saved.rate) == "1.100000"

    latest = db.find_latest("EUR", "USD")
    assert latest is not None
    assert latest.id == saved.id
    assert str(latest.rate) == "1.100000"
    assert latest.date == date(2024, 1, 1)


def test_find_latest_picks_max_date_not_insert_order(db):
    db.save(make_record("USD", "1.20", on=date(2024, 3, 1)))
    db.save(make_record("USD", "1.10", on=date(2024, 1, 1)))
    db.save(make_record("USD", "1.15", on=date(2024, 2, 1)))

    latest = db.find_latest("EUR", "USD")
    assert latest.date == date(2024, 3, 1)
    assert latest.rate == Decimal("1.2")


def test_find_latest_same_date_prefers_newest_row(db):
    db.save(make_record("USD", "1.10"))
    db.save(make_record("USD", "1.11"))
    assert db.find_latest("EUR", "USD").rate == Decimal("1.11")


def test_find_latest_missing_pair_is_none(db):
    db.save(make_record("USD", "1.10"))
    assert db.find_latest("EUR", "JPY") is None
    # codes are matched exactly; callers normalise to uppercase
    assert db.find_latest("EUR", "usd") is None
    assert db.find_latest("USD", "EUR") is None


def test_save_all_is_atomic(db):
    records = [
        make_record("USD", "1.10"),
        make_record("BTC", "0.0000001"),  # rounds to zero at 6 places
    ]
    with pytest.raises(ValueError):
        db.save_all(records)
    assert db.count_rates() == 0
    assert db.find_latest("EUR", "USD") is None


def test_history_accumulates(db):
    db.save_all([make_record("USD", "1.10"), make_record("EUR", "1")])
    db.save_all(
        [make_record("USD", "1.12", on=date(2024, 1, 2)), make_record("EUR", "1", on=date(2024, 1, 2))]
    )
    assert db.count_rates() == 4


def test_list_latest_one_row_per_target(db):
    db.save_all([make_record("USD", "1.10"), make_record("GBP", "0.85")])
    db.save(make_record("USD", "1.12", on=date(2024, 1, 2)))

    rows = db.list_latest("EUR")
    assert [r.target_currency for r in rows] == ["GBP", "USD"]
    assert rows[1].rate == Decimal("1.12")
    assert db.latest_rate_date("EUR") == date(2024, 1, 2)
    assert db.latest_rate_date("USD") is None


def test_snapshot_reads_both_legs(seeded_db):
    with seeded_db.snapshot() as snap:
        usd = snap.find_latest("EUR", "USD")
        gbp = snap.find_latest("EUR", "GBP")
    assert (usd.rate, gbp.rate) == (Decimal("1.1"), Decimal("0.85"))


def test_unusable_store_raises_storage_error(tmp_path):
    # a directory cannot be opened as a database file
    store = Database(tmp_path)
    with pytest.raises(StorageError):
        store.find_latest("EUR", "USD")
    with pytest.raises(StorageError):
        store.save(make_record("USD", "1.10"))


def test_missing_table_raises_storage_error(tmp_path):
    store = Database(tmp_path / "empty.sqlite3")
    with pytest.raises(StorageError):
        store.find_latest("EUR", "USD")
