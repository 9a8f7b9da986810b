"""Data Access Layer for persisted exchange rates.

Responsibilities
----------------
- Append rate observations, one row per (pivot, target) pair per refresh.
- Answer "latest rate for pair" queries (maximum settlement date, newest row
  on ties).
- Give the conversion engine a read snapshot so both legs of a conversion
  observe the same committed refresh batch.

Every sqlite3 failure leaves this module as ``StorageError``.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from pathlib import Path
import sqlite3
from typing import Iterable, Iterator, List, Optional

from fxrates.core.errors import StorageError
from fxrates.models import RateRecord
from fxrates.services.money import round_rate

_SELECT_COLUMNS = "id, base_currency, target_currency, rate, date"


def _row_to_record(row: sqlite3.Row) -> RateRecord:
    return RateRecord(
        id=row["id"],
        base_currency=row["base_currency"],
        target_currency=row["target_currency"],
        rate=Decimal(row["rate"]),
        date=date.fromisoformat(row["date"]),
    )


def _find_latest(
    cur: sqlite3.Cursor, base: str, target: str
) -> Optional[RateRecord]:
    cur.execute(
        f"""
        SELECT {_SELECT_COLUMNS} FROM exchange_rates
        WHERE base_currency = ? AND target_currency = ?
        ORDER BY date DESC, id DESC
        LIMIT 1
        """,
        (base, target),
    )
    row = cur.fetchone()
    return _row_to_record(row) if row else None


class RateSnapshot:
    """Read view bound to one open read transaction."""

    def __init__(self, cur: sqlite3.Cursor):
        self._cur = cur

    def find_latest(self, base: str, target: str) -> Optional[RateRecord]:
        try:
            return _find_latest(self._cur, base, target)
        except sqlite3.Error as e:
            raise StorageError(f"failed to read latest rate {base}/{target}: {e}") from e


class Database:
    def __init__(self, db_path: Path, timeout: float = 5.0):
        self.db_path = db_path
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Connection helpers
    def _connect(self) -> sqlite3.Connection:
        # Autocommit mode; transactions are opened explicitly in _transaction()
        conn = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _transaction(self, mode: str = "DEFERRED") -> Iterator[sqlite3.Cursor]:
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            raise StorageError(f"cannot open rate store {self.db_path}: {e}") from e
        try:
            cur = conn.cursor()
            cur.execute(f"BEGIN {mode}")
            yield cur
            cur.execute("COMMIT")
        except sqlite3.Error as e:
            _rollback_quietly(conn)
            raise StorageError(f"rate store transaction failed: {e}") from e
        except BaseException:
            _rollback_quietly(conn)
            raise
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Writes
    def save(self, record: RateRecord) -> RateRecord:
        return self.save_all([record])[0]

    def save_all(self, records: Iterable[RateRecord]) -> List[RateRecord]:
        """Insert a batch atomically; nothing is written if any row fails."""
        saved: List[RateRecord] = []
        with self._transaction("IMMEDIATE") as cur:
            for record in records:
                rate = round_rate(record.rate)
                if rate <= 0:
                    raise ValueError(
                        f"rate {record.rate} for {record.base_currency}/{record.target_currency} "
                        "rounds to zero"
                    )
                cur.execute(
                    """
                    INSERT INTO exchange_rates (base_currency, target_currency, rate, date)
                    VALUES (?, ?, ?, ?)
                    """,
                    (
                        record.base_currency,
                        record.target_currency,
                        format(rate, "f"),
                        record.date.isoformat(),
                    ),
                )
                saved.append(
                    record.model_copy(update={"id": int(cur.lastrowid), "rate": rate})
                )
        return saved

    # ------------------------------------------------------------------
    # Reads
    def find_latest(self, base: str, target: str) -> Optional[RateRecord]:
        with self._transaction() as cur:
            return _find_latest(cur, base, target)

    @contextmanager
    def snapshot(self) -> Iterator[RateSnapshot]:
        with self._transaction() as cur:
            yield RateSnapshot(cur)

    def list_latest(self, base: str) -> List[RateRecord]:
        """Latest row per target currency for the given base, ordered by code."""
        with self._transaction() as cur:
            cur.execute(
                f"""
                SELECT {_SELECT_COLUMNS} FROM exchange_rates AS r
                WHERE r.base_currency = ?
                  AND r.id = (
                    SELECT r2.id FROM exchange_rates AS r2
                    WHERE r2.base_currency = r.base_currency
                      AND r2.target_currency = r.target_currency
                    ORDER BY r2.date DESC, r2.id DESC
                    LIMIT 1
                  )
                ORDER BY r.target_currency
                """,
                (base,),
            )
            return [_row_to_record(r) for r in cur.fetchall()]

    def latest_rate_date(self, base: str) -> Optional[date]:
        with self._transaction() as cur:
            cur.execute(
                "SELECT MAX(date) FROM exchange_rates WHERE base_currency = ?", (base,)
            )
            row = cur.fetchone()
            return date.fromisoformat(row[0]) if row and row[0] else None

    def count_rates(self) -> int:
        with self._transaction() as cur:
            cur.execute("SELECT COUNT(*) FROM exchange_rates")
            return int(cur.fetchone()[0])


def _rollback_quietly(conn: sqlite3.Connection) -> None:
    if not conn.in_transaction:
        return
    try:
        conn.execute("ROLLBACK")
    except sqlite3.Error:
        # Connection is closed right after; sqlite discards the transaction
        pass
