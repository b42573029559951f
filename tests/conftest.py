from datetime import date, datetime, timedelta

import pytest
from meterwatch import db
from meterwatch.models import MeterReading

# Wh per half-hour sample for each hour of the day
DAYTIME_PROFILE = [500.0 if 9 <= h < 21 else 25.0 for h in range(24)]
FLAT_PROFILE = [225.0 if h in (6, 7, 8, 9, 18, 19, 20, 21) else 250.0 for h in range(24)]

SEED_DAYS = [date(2025, 10, 6), date(2025, 10, 7)]  # Monday, Tuesday


def day_readings(consumer_id: str, day: date, profile: list[float]) -> list[MeterReading]:
    """Both samples of every hour of a day, each worth profile[hour] Wh."""
    midnight = datetime.combine(day, datetime.min.time())
    readings = []
    for hour, wh in enumerate(profile):
        readings.append(MeterReading(consumer_id, midnight + timedelta(hours=hour, minutes=30), wh))
        readings.append(MeterReading(consumer_id, midnight + timedelta(hours=hour + 1), wh))
    return readings


@pytest.fixture
def make_day_readings():
    return day_readings


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "meterwatch.db"
    db.init_db(path)
    return path


@pytest.fixture
def seeded_db(db_path):
    """Consumer A uses most of its energy 09:00-21:00; B is nearly flat."""
    readings = []
    for day in SEED_DAYS:
        readings += day_readings("A", day, DAYTIME_PROFILE)
        readings += day_readings("B", day, FLAT_PROFILE)
    db.save_readings(readings, db_path)
    db.save_consumer("A", "Alpha", db_path)
    db.save_consumer("B", "Bravo", db_path)
    return db_path
