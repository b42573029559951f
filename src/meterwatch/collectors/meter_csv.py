"""Meter reading CSV importer.

CSV format: consumer_id, timestamp, wh_imp [, short_name]
Timestamps are local wall-clock times on :00 or :30 boundaries.
"""

import csv
import logging
import math
from datetime import datetime
from pathlib import Path
from typing import Iterable, TextIO

from ..db import save_consumer, save_readings
from ..models import MeterReading

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("consumer_id", "timestamp", "wh_imp")


def parse_row(row: dict) -> MeterReading | None:
    """Parse one CSV row, or None if the core could not use it."""
    try:
        timestamp = datetime.fromisoformat(row["timestamp"].strip())
        value = float(row["wh_imp"])
    except (KeyError, ValueError, AttributeError):
        return None

    consumer_id = (row.get("consumer_id") or "").strip()
    if not consumer_id or not math.isfinite(value) or value < 0:
        return None
    if timestamp.minute not in (0, 30) or timestamp.second or timestamp.microsecond:
        return None

    return MeterReading(consumer_id, timestamp.replace(tzinfo=None), value)


def parse_csv(f: TextIO) -> tuple[list[MeterReading], dict[str, str], int]:
    """Parse a readings CSV stream.

    Returns (readings, short names by consumer id, number of rejected rows).
    """
    reader = csv.DictReader(f)
    missing = [c for c in REQUIRED_COLUMNS if c not in (reader.fieldnames or [])]
    if missing:
        raise ValueError(f"CSV is missing columns: {', '.join(missing)}")

    readings = []
    names = {}
    rejected = 0
    for line_no, row in enumerate(reader, start=2):
        reading = parse_row(row)
        if reading is None:
            logger.debug("Rejected row %d: %s", line_no, row)
            rejected += 1
            continue
        readings.append(reading)
        short_name = (row.get("short_name") or "").strip()
        if short_name:
            names[reading.consumer_id] = short_name

    return readings, names, rejected


def save_parsed(
    readings: Iterable[MeterReading], names: dict[str, str], rejected: int, db_path: Path | None = None
) -> dict:
    result = save_readings(readings, db_path)
    for consumer_id, short_name in names.items():
        save_consumer(consumer_id, short_name, db_path)
    result["rejected"] = rejected
    return result


def import_from_csv(csv_path: Path, db_path: Path | None = None) -> dict:
    """Import meter readings from a CSV file.

    Returns dict with 'imported', 'skipped' and 'rejected' counts.
    """
    with open(csv_path, newline="") as f:
        readings, names, rejected = parse_csv(f)
    logger.info("Parsed %d readings from %s", len(readings), csv_path)
    return save_parsed(readings, names, rejected, db_path)
