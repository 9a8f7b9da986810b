"""Database schema DDL definitions and initialization utilities.

Tables:
  - exchange_rates: append-only rate observations (pivot -> target) per settlement date
  - metadata: key/value store (schema version)

Rates are stored as decimal text so no binary float ever touches them.
Rows accumulate without pruning; every refresh appends one row per pair.
"""

from __future__ import annotations
import sqlite3
from typing import Sequence
from pathlib import Path

BASIC_UTC_NOW = "strftime('%Y-%m-%dT%H:%M:%fZ','now')"
SCHEMA_VERSION = 1
SCHEMA_VERSION_KEY = "schema_version"

EXCHANGE_RATES_DDL = f"""
CREATE TABLE IF NOT EXISTS exchange_rates (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    base_currency TEXT NOT NULL CHECK (length(base_currency) = 3),
    target_currency TEXT NOT NULL CHECK (length(target_currency) = 3),
    rate TEXT NOT NULL, -- exact decimal, 6 fractional digits
    date TEXT NOT NULL, -- ISO date (YYYY-MM-DD), provider settlement date
    created_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW})
);
"""

METADATA_DDL = f"""
CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW})
);
"""

EXCHANGE_RATES_PAIR_DATE_INDEX_DDL = """
CREATE INDEX IF NOT EXISTS idx_exchange_rates_pair_date
ON exchange_rates(base_currency, target_currency, date);
"""

DDL_ORDER: Sequence[str] = (
    EXCHANGE_RATES_DDL,
    METADATA_DDL,
    EXCHANGE_RATES_PAIR_DATE_INDEX_DDL,
)


def init_db(path: Path) -> int:
    """Create all tables idempotently and return the schema version.

    Parameters
    ----------
    path: Path to SQLite database file.
    """
    conn = sqlite3.connect(path)
    try:
        cur = conn.cursor()
        for ddl in DDL_ORDER:
            cur.execute(ddl)
        cur.execute(
            f"""
            INSERT INTO metadata (key, value)
            VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                updated_at = ({BASIC_UTC_NOW})
            """,
            (SCHEMA_VERSION_KEY, str(SCHEMA_VERSION)),
        )
        conn.commit()
        return SCHEMA_VERSION
    finally:
        conn.close()
