"""Period statistics over grouped consumption values.

Grouping only decides how hourly values are pre-summed into labeled values;
the statistics step (`rollup`) does not care what the labels mean.
"""

import calendar
from datetime import date, timedelta
from enum import Enum
from typing import Iterable

from ..config import ConfigurationError
from ..models import Extreme, HourlyConsumption, PeriodAggregate


class Granularity(str, Enum):
    """What a labeled value stands for."""

    HOUR = "hour"  # hour of day, "HH:00"
    DAY = "day"  # ISO date
    WEEK = "week"  # "Week-N" within the month, N = ceil(day / 7)
    MONTH = "month"  # month name
    YEAR = "year"


class WeekdayType(str, Enum):
    """Which days of the week contribute values."""

    MON_FRI = "Mon-Fri"
    SAT = "Sat"
    SUN = "Sun"
    ALL = "All"

    def matches(self, day: date) -> bool:
        weekday = day.weekday()
        if self is WeekdayType.MON_FRI:
            return weekday < 5
        if self is WeekdayType.SAT:
            return weekday == 5
        if self is WeekdayType.SUN:
            return weekday == 6
        return True


class Window(str, Enum):
    """Span of days a report covers, anchored at a date."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


def parse_granularity(value: str | Granularity) -> Granularity:
    try:
        return Granularity(value.lower() if isinstance(value, str) else value)
    except ValueError:
        raise ConfigurationError(f"Unknown grouping: {value}")


def parse_weekday_type(value: str | WeekdayType | None) -> WeekdayType:
    if value is None:
        return WeekdayType.ALL
    if isinstance(value, WeekdayType):
        return value
    for member in WeekdayType:
        if member.value.lower() == value.lower():
            return member
    raise ConfigurationError(f"Unknown weekday type: {value}")


def parse_window(value: str | Window) -> Window:
    try:
        return Window(value.lower() if isinstance(value, str) else value)
    except ValueError:
        raise ConfigurationError(f"Unknown window: {value}")


def hour_label(hour: int) -> str:
    return f"{hour:02d}:00"


def week_of_month(day: date) -> int:
    return (day.day - 1) // 7 + 1


def period_label(record: HourlyConsumption, granularity: Granularity) -> str:
    """The grouping key of an hourly record."""
    if granularity is Granularity.HOUR:
        return hour_label(record.hour)
    if granularity is Granularity.DAY:
        return record.day.isoformat()
    if granularity is Granularity.WEEK:
        return f"Week-{week_of_month(record.day)}"
    if granularity is Granularity.MONTH:
        return calendar.month_name[record.day.month]
    return str(record.day.year)


def week_labels(year: int, month: int) -> list[str]:
    """All "Week-N" labels of a month, in order."""
    days_in_month = calendar.monthrange(year, month)[1]
    return [f"Week-{n}" for n in range(1, (days_in_month + 6) // 7 + 1)]


def month_labels() -> list[str]:
    return list(calendar.month_name)[1:]


def window_bounds(anchor: date, window: Window) -> tuple[date, date]:
    """The [start, end) days of a window anchored at a date.

    DAY is the anchor itself, WEEK the seven days starting at the anchor,
    MONTH and YEAR the calendar month or year containing it.
    """
    if window is Window.DAY:
        return anchor, anchor + timedelta(days=1)
    if window is Window.WEEK:
        return anchor, anchor + timedelta(days=7)
    if window is Window.MONTH:
        start = anchor.replace(day=1)
        days_in_month = calendar.monthrange(anchor.year, anchor.month)[1]
        return start, start + timedelta(days=days_in_month)
    return date(anchor.year, 1, 1), date(anchor.year + 1, 1, 1)


def presum(
    records: Iterable[HourlyConsumption],
    granularity: Granularity,
    weekday_type: WeekdayType = WeekdayType.ALL,
    seed_labels: Iterable[str] | None = None,
) -> list[tuple[str, float]]:
    """Sum hourly kWh per period label.

    Labels keep first-seen order. `seed_labels` are placed first with a value
    of 0 so that periods without data still appear.
    """
    sums: dict[str, float] = {label: 0.0 for label in seed_labels or ()}
    for record in records:
        if not weekday_type.matches(record.day):
            continue
        label = period_label(record, granularity)
        sums[label] = sums.get(label, 0.0) + record.kwh
    return list(sums.items())


def rollup(values: Iterable[tuple[str, float]]) -> PeriodAggregate:
    """Sum, mean, high, low and deviation from the mean of labeled values.

    High and low keep the first occurrence on ties. Percentages are None
    when the mean is zero.
    """
    count = 0
    total = 0.0
    high = low = None
    for key, value in values:
        count += 1
        total += value
        if high is None or value > high.value:
            high = Extreme(key, value)
        if low is None or value < low.value:
            low = Extreme(key, value)

    if count == 0:
        return PeriodAggregate(count=0)

    mean = total / count
    aggregate = PeriodAggregate(count=count, sum=total, mean=mean, high=high, low=low)
    if mean != 0:
        aggregate.percent_increase = (high.value - mean) / mean * 100
        aggregate.percent_decrease = (mean - low.value) / mean * 100
    return aggregate


def rollup_hourly(
    records: Iterable[HourlyConsumption],
    granularity: Granularity | str,
    weekday_type: WeekdayType | str | None = None,
    seed_labels: Iterable[str] | None = None,
) -> PeriodAggregate:
    """Pre-sum hourly records by granularity, then roll the sums up."""
    granularity = parse_granularity(granularity)
    weekday_type = parse_weekday_type(weekday_type)
    return rollup(presum(records, granularity, weekday_type, seed_labels))


def hourly_means(
    records: Iterable[HourlyConsumption],
    weekday_type: WeekdayType = WeekdayType.ALL,
) -> dict[int, float]:
    """Mean kWh for each hour of day that has at least one value."""
    sums: dict[int, float] = {}
    counts: dict[int, int] = {}
    for record in records:
        if not weekday_type.matches(record.day):
            continue
        sums[record.hour] = sums.get(record.hour, 0.0) + record.kwh
        counts[record.hour] = counts.get(record.hour, 0) + 1
    return {hour: sums[hour] / counts[hour] for hour in sorted(sums)}
