"""Hourly consumption derived from half-hourly meter readings.

An hour H of a day is the pair of samples stamped H:30 and (H+1):00, the
latter rolling into the next calendar day for H = 23. Sample values are
watt-hours; hourly values are kWh.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Iterable, Iterator

from ..models import HourlyConsumption, MeterReading, MissingSamplePolicy

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_local_ts(ts: datetime) -> str:
    """Format a wall-clock timestamp the way readings are keyed."""
    return ts.strftime(TIMESTAMP_FORMAT)


def build_sample_lookup(
    readings: Iterable[MeterReading | tuple[datetime, float]],
) -> dict[str, float]:
    """Map formatted timestamp -> Wh. Later duplicates replace earlier ones."""
    lookup = {}
    for reading in readings:
        if isinstance(reading, MeterReading):
            ts, value = reading.timestamp, reading.import_wh
        else:
            ts, value = reading
        lookup[format_local_ts(ts)] = value
    return lookup


def daterange(start: date, end: date) -> Iterator[date]:
    """Days in [start, end)."""
    current = start
    while current < end:
        yield current
        current += timedelta(days=1)


def hour_sample_keys(day: date, hour: int) -> tuple[str, str]:
    """Timestamps of the two samples making up an hour."""
    first = datetime.combine(day, datetime.min.time()).replace(hour=hour, minute=30)
    second = datetime.combine(day, datetime.min.time()) + timedelta(hours=hour + 1)
    return format_local_ts(first), format_local_ts(second)


def derive_hourly(
    readings: Iterable[MeterReading | tuple[datetime, float]],
    start: date,
    end: date,
    policy: MissingSamplePolicy = MissingSamplePolicy.ZERO_FILL_PARTIAL,
) -> Iterator[HourlyConsumption]:
    """Yield hourly kWh for each day in [start, end).

    Hours with neither sample are skipped. With ZERO_FILL_PARTIAL (the
    observed behavior of the dashboard) an hour with only one sample counts
    the absent half as 0 Wh; EXCLUDE_PARTIAL skips such hours too.

    This is a generator, so it can only be consumed once.
    """
    lookup = build_sample_lookup(readings)
    emitted = 0

    for day in daterange(start, end):
        for hour in range(24):
            first_key, second_key = hour_sample_keys(day, hour)
            v1 = lookup.get(first_key)
            v2 = lookup.get(second_key)

            if v1 is None and v2 is None:
                continue
            if policy == MissingSamplePolicy.EXCLUDE_PARTIAL and (v1 is None or v2 is None):
                continue

            emitted += 1
            yield HourlyConsumption(day, hour, ((v1 or 0) + (v2 or 0)) / 1000)

    logger.debug("Derived %d hourly values for %s to %s", emitted, start, end)


def readings_date_span(
    readings: Iterable[MeterReading | tuple[datetime, float]],
) -> tuple[date, date] | None:
    """The [start, end) day range covering a set of readings.

    A 00:00 sample belongs to hour 23 of the previous day, so it opens that day.
    """
    first = last = None
    for reading in readings:
        ts = reading.timestamp if isinstance(reading, MeterReading) else reading[0]
        day = ts.date()
        if ts.hour == 0 and ts.minute == 0:
            day -= timedelta(days=1)
        if first is None or day < first:
            first = day
        if last is None or day > last:
            last = day
    if first is None:
        return None
    return first, last + timedelta(days=1)


def group_by_day(records: Iterable[HourlyConsumption]) -> dict[date, dict[int, float]]:
    """Group hourly records into {day: {hour: kWh}} preserving day order."""
    days: dict[date, dict[int, float]] = {}
    for record in records:
        days.setdefault(record.day, {})[record.hour] = record.kwh
    return days


def day_profile(hours: dict[int, float]) -> list[float]:
    """The 24 values of one day with missing hours filled with 0."""
    return [hours.get(hour, 0.0) for hour in range(24)]
