import pytest
from datetime import date
from meterwatch.analysis.rollup import (
    Granularity,
    Window,
    WeekdayType,
    hourly_means,
    parse_granularity,
    parse_weekday_type,
    presum,
    rollup,
    rollup_hourly,
    window_bounds,
)
from meterwatch.config import ConfigurationError
from meterwatch.models import Extreme, HourlyConsumption

MONDAY = date(2025, 10, 6)
SATURDAY = date(2025, 10, 11)
SUNDAY = date(2025, 10, 12)


def test_rollup_basic_statistics():
    agg = rollup([("00:00", 2.0), ("01:00", 4.0), ("02:00", 6.0)])

    assert agg.count == 3
    assert agg.sum == 12.0
    assert agg.mean == 4.0
    assert agg.high == Extreme("02:00", 6.0)
    assert agg.low == Extreme("00:00", 2.0)
    assert agg.percent_increase == pytest.approx(50.0)
    assert agg.percent_decrease == pytest.approx(50.0)


def test_rollup_ties_keep_first_occurrence():
    agg = rollup([("a", 5.0), ("b", 1.0), ("c", 5.0), ("d", 1.0)])

    assert agg.high.key == "a"
    assert agg.low.key == "b"


def test_rollup_of_nothing_has_no_statistics():
    agg = rollup([])

    assert agg.count == 0
    assert agg.sum is None
    assert agg.mean is None
    assert agg.high is None
    assert agg.low is None
    assert agg.percent_increase is None


def test_rollup_zero_mean_leaves_percentages_out():
    agg = rollup([("a", 0.0), ("b", 0.0)])

    assert agg.mean == 0.0
    assert agg.high == Extreme("a", 0.0)
    assert agg.percent_increase is None
    assert agg.percent_decrease is None


def test_percentages_are_non_negative():
    values = [("a", 3.0), ("b", 0.5), ("c", 9.0), ("d", 2.5)]
    agg = rollup(values)

    assert agg.high.value >= agg.mean
    assert agg.percent_increase >= 0
    assert agg.low.value <= agg.mean
    assert agg.percent_decrease >= 0


def test_presum_by_day_and_weekday_filter():
    records = [
        HourlyConsumption(MONDAY, 1, 1.0),
        HourlyConsumption(MONDAY, 2, 2.0),
        HourlyConsumption(SATURDAY, 1, 5.0),
        HourlyConsumption(SUNDAY, 1, 7.0),
    ]

    assert presum(records, Granularity.DAY) == [
        ("2025-10-06", 3.0),
        ("2025-10-11", 5.0),
        ("2025-10-12", 7.0),
    ]
    assert presum(records, Granularity.DAY, WeekdayType.MON_FRI) == [("2025-10-06", 3.0)]
    assert presum(records, Granularity.DAY, WeekdayType.SAT) == [("2025-10-11", 5.0)]
    assert presum(records, Granularity.DAY, WeekdayType.SUN) == [("2025-10-12", 7.0)]


def test_presum_labels():
    record = HourlyConsumption(date(2025, 10, 15), 7, 1.0)

    assert presum([record], Granularity.HOUR) == [("07:00", 1.0)]
    assert presum([record], Granularity.WEEK) == [("Week-3", 1.0)]
    assert presum([record], Granularity.MONTH) == [("October", 1.0)]
    assert presum([record], Granularity.YEAR) == [("2025", 1.0)]


def test_presum_seed_labels_come_first():
    record = HourlyConsumption(MONDAY, 2, 1.5)

    result = presum([record], Granularity.HOUR, seed_labels=["00:00", "01:00", "02:00"])

    assert result == [("00:00", 0.0), ("01:00", 0.0), ("02:00", 1.5)]


def test_rollup_hourly_by_month():
    records = [
        HourlyConsumption(date(2025, 1, 5), 0, 10.0),
        HourlyConsumption(date(2025, 2, 5), 0, 30.0),
        HourlyConsumption(date(2025, 2, 6), 0, 20.0),
    ]

    agg = rollup_hourly(records, "month")

    assert agg.count == 2
    assert agg.high == Extreme("February", 50.0)
    assert agg.low == Extreme("January", 10.0)
    assert agg.mean == pytest.approx(30.0)


def test_unknown_grouping_is_rejected():
    with pytest.raises(ConfigurationError, match="grouping"):
        parse_granularity("fortnight")


def test_weekday_type_parsing():
    assert parse_weekday_type(None) is WeekdayType.ALL
    assert parse_weekday_type("mon-fri") is WeekdayType.MON_FRI
    assert parse_weekday_type("Sun") is WeekdayType.SUN
    with pytest.raises(ConfigurationError, match="weekday"):
        parse_weekday_type("Weekend")


def test_hourly_means():
    records = [
        HourlyConsumption(MONDAY, 7, 1.0),
        HourlyConsumption(SATURDAY, 7, 3.0),
        HourlyConsumption(MONDAY, 8, 4.0),
    ]

    assert hourly_means(records) == {7: 2.0, 8: 4.0}
    assert hourly_means(records, WeekdayType.SAT) == {7: 3.0}
    assert hourly_means([]) == {}


def test_window_bounds():
    anchor = date(2025, 2, 10)

    assert window_bounds(anchor, Window.DAY) == (anchor, date(2025, 2, 11))
    assert window_bounds(anchor, Window.WEEK) == (anchor, date(2025, 2, 17))
    assert window_bounds(anchor, Window.MONTH) == (date(2025, 2, 1), date(2025, 3, 1))
    assert window_bounds(anchor, Window.YEAR) == (date(2025, 1, 1), date(2026, 1, 1))
