"""Tariff bucket classification and tariff-based consumption breakdowns."""

import logging
from typing import Iterable

from .analysis.rollup import Granularity, month_labels, period_label, week_labels
from .config import ConfigurationError, validate_tariff_windows
from .models import HourlyConsumption, TariffWindow

logger = logging.getLogger(__name__)

TOTAL_KEY = "totalConsumption"
PEAK_PREFIX = "Peak"


class TariffClassifier:
    """Maps an hour of day to a tariff bucket name.

    The windows must cover 0-23 exactly once; anything else is rejected here.
    """

    def __init__(self, windows: list[TariffWindow]):
        try:
            validate_tariff_windows(windows)
        except ConfigurationError as e:
            logger.debug("Rejected tariff table: %s", e)
            raise
        self.windows = list(windows)
        self._bucket_by_hour = [""] * 24
        self._rate_by_hour: list[float | None] = [None] * 24
        for window in self.windows:
            for hour in window.hours():
                self._bucket_by_hour[hour] = window.name
                self._rate_by_hour[hour] = window.rate

    @property
    def bucket_names(self) -> list[str]:
        """Bucket names in the order they first appear in the table."""
        names = []
        for window in self.windows:
            if window.name not in names:
                names.append(window.name)
        return names

    def classify(self, hour: int) -> str:
        if not 0 <= hour <= 23:
            raise ValueError(f"Hour out of range: {hour}")
        return self._bucket_by_hour[hour]

    def is_peak(self, bucket: str) -> bool:
        return bucket.startswith(PEAK_PREFIX)

    def rate_for(self, hour: int) -> float | None:
        """Price per kWh of an hour, None when its window has no rate."""
        if not 0 <= hour <= 23:
            raise ValueError(f"Hour out of range: {hour}")
        return self._rate_by_hour[hour]

    def cost(self, record: HourlyConsumption) -> float | None:
        rate = self.rate_for(record.hour)
        if rate is None:
            return None
        return record.kwh * rate

    def accumulate(self, records: Iterable[HourlyConsumption]) -> dict[str, float]:
        """Sum kWh per bucket. Every bucket appears, even with nothing in it."""
        sums = {name: 0.0 for name in self.bucket_names}
        for record in records:
            sums[self.classify(record.hour)] += record.kwh
        return sums

    def hour_table(self) -> list[tuple[int, str]]:
        return list(enumerate(self._bucket_by_hour))


def classify_tariff(hour: int, windows: list[TariffWindow]) -> str:
    """Bucket name of an hour under a window table."""
    return TariffClassifier(windows).classify(hour)


def period_breakdown(
    records: Iterable[HourlyConsumption],
    classifier: TariffClassifier,
    granularity: Granularity,
    seed_labels: Iterable[str] | None = None,
) -> dict[str, dict[str, float]]:
    """Per-period totals split by tariff bucket, rounded to 2 decimals.

    Returns {label: {"totalConsumption": kWh, <bucket>: kWh, ...}}.
    """
    def empty() -> dict[str, float]:
        row = {TOTAL_KEY: 0.0}
        row.update({name: 0.0 for name in classifier.bucket_names})
        return row

    breakdown = {label: empty() for label in seed_labels or ()}
    for record in records:
        label = period_label(record, granularity)
        row = breakdown.setdefault(label, empty())
        row[classifier.classify(record.hour)] += record.kwh
        row[TOTAL_KEY] += record.kwh

    return {
        label: {key: round(value, 2) for key, value in row.items()}
        for label, row in breakdown.items()
    }


def weekly_breakdown(
    records: Iterable[HourlyConsumption], classifier: TariffClassifier, year: int, month: int
) -> dict[str, dict[str, float]]:
    """Tariff breakdown of one month by "Week-N"."""
    return period_breakdown(records, classifier, Granularity.WEEK, week_labels(year, month))


def monthly_breakdown(
    records: Iterable[HourlyConsumption], classifier: TariffClassifier
) -> dict[str, dict[str, float]]:
    """Tariff breakdown of one year by month name."""
    return period_breakdown(records, classifier, Granularity.MONTH, month_labels())


def peak_share(records: Iterable[HourlyConsumption], classifier: TariffClassifier) -> float | None:
    """Fraction of kWh in peak buckets, or None when nothing was consumed."""
    sums = classifier.accumulate(records)
    total = sum(sums.values())
    if total == 0:
        return None
    return sum(v for name, v in sums.items() if classifier.is_peak(name)) / total


def hour_of_day_costs(
    records: Iterable[HourlyConsumption], classifier: TariffClassifier
) -> dict[int, dict[str, float | None]]:
    """kWh and cost summed per hour of day, ordered by hour.

    Returns {hour: {"totalConsumption": kWh, "cost": amount}}. The cost of an
    hour whose window has no rate is None.
    """
    sums: dict[int, dict[str, float | None]] = {}
    for record in records:
        row = sums.setdefault(record.hour, {TOTAL_KEY: 0.0, "cost": 0.0})
        row[TOTAL_KEY] += record.kwh
        cost = classifier.cost(record)
        row["cost"] = None if cost is None or row["cost"] is None else row["cost"] + cost
    return {hour: sums[hour] for hour in sorted(sums)}
