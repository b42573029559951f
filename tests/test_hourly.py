import pytest
from datetime import date, datetime
from meterwatch.analysis.hourly import (
    day_profile,
    derive_hourly,
    group_by_day,
    readings_date_span,
)
from meterwatch.models import HourlyConsumption, MeterReading, MissingSamplePolicy


def reading(ts: datetime, wh: float) -> MeterReading:
    return MeterReading("C1", ts, wh)


def test_pair_of_samples_makes_one_hour():
    """Samples at 00:30 and 01:00 form hour 0."""
    readings = [
        reading(datetime(2025, 10, 1, 0, 30), 100),
        reading(datetime(2025, 10, 1, 1, 0), 150),
    ]

    hours = list(derive_hourly(readings, date(2025, 10, 1), date(2025, 10, 2)))

    assert hours == [HourlyConsumption(date(2025, 10, 1), 0, pytest.approx(0.25))]


def test_accepts_plain_timestamp_value_pairs():
    readings = [(datetime(2025, 10, 1, 5, 30), 400.0), (datetime(2025, 10, 1, 6, 0), 600.0)]

    hours = list(derive_hourly(readings, date(2025, 10, 1), date(2025, 10, 2)))

    assert len(hours) == 1
    assert hours[0].hour == 5
    assert hours[0].kwh == pytest.approx(1.0)


def test_hour_23_rolls_into_next_day():
    """Hour 23 is closed by the 00:00 sample of the following day."""
    readings = [
        reading(datetime(2025, 10, 1, 23, 30), 200),
        reading(datetime(2025, 10, 2, 0, 0), 300),
    ]

    hours = list(derive_hourly(readings, date(2025, 10, 1), date(2025, 10, 2)))

    assert len(hours) == 1
    assert hours[0].day == date(2025, 10, 1)
    assert hours[0].hour == 23
    assert hours[0].kwh == pytest.approx(0.5)


def test_hour_with_both_samples_missing_is_excluded():
    readings = [
        reading(datetime(2025, 10, 1, 0, 30), 100),
        reading(datetime(2025, 10, 1, 1, 0), 100),
        # hour 1 has neither 01:30 nor 02:00
        reading(datetime(2025, 10, 1, 2, 30), 100),
        reading(datetime(2025, 10, 1, 3, 0), 100),
    ]

    hours = [h.hour for h in derive_hourly(readings, date(2025, 10, 1), date(2025, 10, 2))]

    assert hours == [0, 2]


def test_hour_with_one_sample_counts_missing_half_as_zero():
    """The observed policy: one absent half is treated as 0 Wh."""
    readings = [reading(datetime(2025, 10, 1, 7, 30), 500)]

    hours = list(derive_hourly(readings, date(2025, 10, 1), date(2025, 10, 2)))

    assert len(hours) == 1
    assert hours[0].hour == 7
    assert hours[0].kwh == pytest.approx(0.5)


def test_exclude_partial_policy_needs_both_halves():
    readings = [
        reading(datetime(2025, 10, 1, 7, 30), 500),
        reading(datetime(2025, 10, 1, 8, 30), 500),
        reading(datetime(2025, 10, 1, 9, 0), 500),
    ]

    hours = list(
        derive_hourly(
            readings, date(2025, 10, 1), date(2025, 10, 2), MissingSamplePolicy.EXCLUDE_PARTIAL
        )
    )

    assert [h.hour for h in hours] == [8]


def test_output_never_exceeds_24_per_day():
    readings = []
    for day in (1, 2):
        for hour in range(24):
            readings.append(reading(datetime(2025, 10, day, hour, 0), 10))
            readings.append(reading(datetime(2025, 10, day, hour, 30), 10))

    hours = list(derive_hourly(readings, date(2025, 10, 1), date(2025, 10, 3)))

    # Hour 23 of day 2 has its 23:30 sample but no 00:00 on day 3
    assert len(hours) == 48
    assert hours[-1].kwh == pytest.approx(0.01)


def test_no_samples_in_range_gives_empty_sequence():
    readings = [reading(datetime(2025, 9, 1, 0, 30), 100)]

    assert list(derive_hourly(readings, date(2025, 10, 1), date(2025, 10, 5))) == []


def test_sequence_is_not_restartable():
    readings = [reading(datetime(2025, 10, 1, 0, 30), 100)]
    hours = derive_hourly(readings, date(2025, 10, 1), date(2025, 10, 2))

    assert len(list(hours)) == 1
    assert list(hours) == []


def test_readings_date_span_assigns_midnight_to_previous_day():
    readings = [
        reading(datetime(2025, 10, 2, 0, 0), 1),
        reading(datetime(2025, 10, 2, 12, 30), 1),
        reading(datetime(2025, 10, 4, 0, 0), 1),
    ]

    assert readings_date_span(readings) == (date(2025, 10, 1), date(2025, 10, 4))
    assert readings_date_span([]) is None


def test_day_profile_fills_gaps_with_zero():
    records = [
        HourlyConsumption(date(2025, 10, 1), 0, 1.0),
        HourlyConsumption(date(2025, 10, 1), 5, 2.0),
        HourlyConsumption(date(2025, 10, 2), 1, 3.0),
    ]

    days = group_by_day(records)
    profile = day_profile(days[date(2025, 10, 1)])

    assert list(days) == [date(2025, 10, 1), date(2025, 10, 2)]
    assert len(profile) == 24
    assert profile[0] == 1.0
    assert profile[5] == 2.0
    assert sum(profile) == 3.0
