"""Database connection, schema and reading queries."""

import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Iterable, Iterator

from .analysis.hourly import TIMESTAMP_FORMAT, format_local_ts
from .models import MeterReading

logger = logging.getLogger(__name__)

DB_ENV_VAR = "METERWATCH_DB"
DEFAULT_DB_PATH = Path.home() / ".local" / "share" / "meterwatch" / "meterwatch.db"

SCHEMA = """
-- Consumers (service connections) with a display name
CREATE TABLE IF NOT EXISTS consumers (
    consumer_id TEXT PRIMARY KEY,
    short_name TEXT
);

-- Half-hourly meter readings, local wall-clock timestamps
CREATE TABLE IF NOT EXISTS meter_readings (
    id INTEGER PRIMARY KEY,
    consumer_id TEXT NOT NULL,
    ts TEXT NOT NULL,
    wh_imp REAL NOT NULL,
    UNIQUE(consumer_id, ts)
);

CREATE INDEX IF NOT EXISTS idx_readings_consumer_ts ON meter_readings(consumer_id, ts);
"""


def get_db_path() -> Path:
    """Get the database path, creating parent directories if needed."""
    db_path = Path(os.environ.get(DB_ENV_VAR, DEFAULT_DB_PATH))
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return db_path


@contextmanager
def get_connection(db_path: Path | None = None) -> Iterator[sqlite3.Connection]:
    """Get a database connection with row factory enabled."""
    path = db_path or get_db_path()
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def init_db(db_path: Path | None = None) -> None:
    """Initialize the database schema."""
    with get_connection(db_path) as conn:
        conn.executescript(SCHEMA)
        conn.commit()


def save_consumer(consumer_id: str, short_name: str | None, db_path: Path | None = None) -> None:
    """Insert or rename a consumer."""
    with get_connection(db_path) as conn:
        conn.execute(
            """INSERT INTO consumers (consumer_id, short_name) VALUES (?, ?)
               ON CONFLICT(consumer_id) DO UPDATE SET
               short_name = COALESCE(excluded.short_name, consumers.short_name)""",
            (consumer_id, short_name),
        )
        conn.commit()


def save_readings(readings: Iterable[MeterReading], db_path: Path | None = None) -> dict:
    """Save readings, skipping any already stored for the same consumer and time.

    Returns dict with 'imported' and 'skipped' counts.
    """
    imported = 0
    skipped = 0

    with get_connection(db_path) as conn:
        for reading in readings:
            try:
                conn.execute(
                    "INSERT INTO consumers (consumer_id) VALUES (?) ON CONFLICT DO NOTHING",
                    (reading.consumer_id,),
                )
                conn.execute(
                    "INSERT INTO meter_readings (consumer_id, ts, wh_imp) VALUES (?, ?, ?)",
                    (reading.consumer_id, format_local_ts(reading.timestamp), reading.import_wh),
                )
                imported += 1
            except sqlite3.IntegrityError as e:
                if "UNIQUE" not in str(e):
                    raise
                skipped += 1

        conn.commit()

    logger.info("Saved %d readings (%d duplicates skipped)", imported, skipped)
    return {"imported": imported, "skipped": skipped}


def _row_to_reading(row: sqlite3.Row) -> MeterReading:
    return MeterReading(
        consumer_id=row["consumer_id"],
        timestamp=datetime.strptime(row["ts"], TIMESTAMP_FORMAT),
        import_wh=row["wh_imp"],
    )


def fetch_readings(
    consumer_id: str,
    start: date | None = None,
    end: date | None = None,
    db_path: Path | None = None,
) -> list[MeterReading]:
    """Readings of one consumer that can contribute to hours of days in [start, end).

    The range runs to 00:00 of `end` inclusive, since that sample closes the
    last hour of the previous day.
    """
    query = "SELECT consumer_id, ts, wh_imp FROM meter_readings WHERE consumer_id = ?"
    params: list = [consumer_id]
    if start is not None:
        query += " AND ts >= ?"
        params.append(format_local_ts(datetime.combine(start, datetime.min.time())))
    if end is not None:
        query += " AND ts <= ?"
        params.append(format_local_ts(datetime.combine(end, datetime.min.time())))
    query += " ORDER BY ts"

    with get_connection(db_path) as conn:
        rows = conn.execute(query, params).fetchall()

    logger.debug("Fetched %d readings for %s", len(rows), consumer_id)
    return [_row_to_reading(row) for row in rows]


def fetch_all_readings(db_path: Path | None = None) -> dict[str, list[MeterReading]]:
    """All readings grouped by consumer, each list ordered by timestamp."""
    with get_connection(db_path) as conn:
        rows = conn.execute(
            "SELECT consumer_id, ts, wh_imp FROM meter_readings ORDER BY consumer_id, ts"
        ).fetchall()

    grouped: dict[str, list[MeterReading]] = {}
    for row in rows:
        grouped.setdefault(row["consumer_id"], []).append(_row_to_reading(row))

    logger.debug("Fetched %d readings for %d consumers", len(rows), len(grouped))
    return grouped


def list_consumers(db_path: Path | None = None) -> dict[str, str | None]:
    """Map consumer id -> short name, ordered by id."""
    with get_connection(db_path) as conn:
        rows = conn.execute(
            "SELECT consumer_id, short_name FROM consumers ORDER BY consumer_id"
        ).fetchall()
    return {row["consumer_id"]: row["short_name"] for row in rows}


def get_stats(db_path: Path | None = None) -> dict:
    """Get database statistics."""
    with get_connection(db_path) as conn:
        stats = {}

        row = conn.execute(
            "SELECT COUNT(*) as count, MIN(ts) as earliest, MAX(ts) as latest FROM meter_readings"
        ).fetchone()
        stats["meter_readings"] = {
            "count": row["count"],
            "earliest": row["earliest"],
            "latest": row["latest"],
        }

        rows = conn.execute(
            "SELECT consumer_id, COUNT(*) as count FROM meter_readings GROUP BY consumer_id"
        ).fetchall()
        stats["readings_by_consumer"] = {row["consumer_id"]: row["count"] for row in rows}

        row = conn.execute("SELECT COUNT(*) as count FROM consumers").fetchone()
        stats["consumers"] = {"count": row["count"]}

        return stats

