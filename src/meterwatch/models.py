"""Data models for meter readings and derived consumption metrics."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


@dataclass(frozen=True)
class MeterReading:
    """A single half-hourly meter reading (watt-hours imported)."""

    consumer_id: str
    timestamp: datetime  # local wall-clock, on :00 or :30
    import_wh: float


@dataclass(frozen=True)
class HourlyConsumption:
    """Consumption of one consumer for one clock hour, in kWh."""

    day: date
    hour: int  # 0-23
    kwh: float


class MissingSamplePolicy(str, Enum):
    """How an hour is derived when one of its two half-hour samples is absent.

    An hour with both samples absent is always excluded.
    """

    ZERO_FILL_PARTIAL = "zero_fill_partial"  # absent half counts as 0 Wh
    EXCLUDE_PARTIAL = "exclude_partial"  # hour needs both halves


@dataclass(frozen=True)
class TariffWindow:
    """An hour range assigned to a tariff bucket.

    `end_hour` is exclusive and may be 24. A window whose start is after its
    end wraps past midnight (e.g. 22 -> 6).
    `rate` is the price per kWh, None when the table carries no prices.
    """

    start_hour: int
    end_hour: int
    name: str
    rate: float | None = None

    def hours(self) -> list[int]:
        """Hours of the day covered by this window."""
        if self.start_hour <= self.end_hour:
            return list(range(self.start_hour, self.end_hour))
        return list(range(self.start_hour, 24)) + list(range(0, self.end_hour))


@dataclass(frozen=True)
class Extreme:
    """The label and value of a high or low point."""

    key: str
    value: float


@dataclass
class PeriodAggregate:
    """Statistics over a grouped set of values.

    Everything except `count` is None when there were no values, and the
    percentage fields are None when the mean is zero.
    """

    count: int
    sum: float | None = None
    mean: float | None = None
    high: Extreme | None = None
    low: Extreme | None = None
    percent_increase: float | None = None
    percent_decrease: float | None = None


class PatternCategory(str, Enum):
    """Behavioral category of a single day's load shape."""

    FLAT = "Flat"
    DAY_DOMINANT = "DayDominant"
    NIGHT_DOMINANT = "NightDominant"
    SHIFT = "Shift"
    RANDOM = "Random"


@dataclass(frozen=True)
class DayPattern:
    """The classification of one calendar day."""

    day: date | None
    category: PatternCategory
    shift_window: tuple[int, int] | None = None  # only for SHIFT


@dataclass
class ConsumerPatternSummary:
    """Pattern counts across a consumer's observed days."""

    consumer_id: str
    days_of_data: int = 0
    counts: dict[PatternCategory, int] = field(
        default_factory=lambda: {category: 0 for category in PatternCategory}
    )
    shift_window: tuple[int, int] | None = None  # modal window, SHIFT days only

    @property
    def dominant_category(self) -> PatternCategory | None:
        """Most frequent category, ties broken by enum order."""
        if self.days_of_data == 0:
            return None
        best = None
        for category in PatternCategory:
            if best is None or self.counts[category] > self.counts[best]:
                best = category
        return best

    def to_dict(self) -> dict:
        return {
            "consumer_id": self.consumer_id,
            "days_of_data": self.days_of_data,
            "counts": {category.value: count for category, count in self.counts.items()},
            "shift_window": list(self.shift_window) if self.shift_window else None,
        }


@dataclass(frozen=True)
class ConsumerRankEntry:
    """A consumer's position in a ranking."""

    consumer_id: str
    metric_score: float
    rank: int
    group: str | None = None

    def to_dict(self) -> dict:
        data = {
            "consumer_id": self.consumer_id,
            "metric_score": self.metric_score,
            "rank": self.rank,
        }
        if self.group is not None:
            data["group"] = self.group
        return data
