"""Behavioral classification of daily load shapes.

A day's 24 hourly values are classified in order:

1. Zero guard: a day with no consumption is Random.
2. Flatness test: Flat if enough hours sit close to the day's level.
3. Dominance test: DayDominant/NightDominant (fixed window) or Shift
   (sliding 12-hour window), depending on configuration.
4. Otherwise Random.

Both the flatness and the dominance tests come in two variants. The dashboard
used each of them at different times and neither is authoritative, so they
are interchangeable strategy objects chosen through PatternConfig.
"""

import logging
from collections import Counter
from datetime import date
from typing import Iterable, Protocol

from ..config import PatternConfig
from ..models import ConsumerPatternSummary, DayPattern, HourlyConsumption, PatternCategory
from .hourly import day_profile, group_by_day

logger = logging.getLogger(__name__)

HOURS_PER_DAY = 24


class FlatnessTest(Protocol):
    def is_flat(self, values: list[float]) -> bool: ...


class DominanceTest(Protocol):
    def classify(self, values: list[float], total: float) -> DayPattern | None: ...


class MeanBandFlatness:
    """Flat when enough hours fall within +/- tolerance of the day's mean."""

    def __init__(self, tolerance: float = 0.15, min_hours: int = 18):
        self.tolerance = tolerance
        self.min_hours = min_hours

    def is_flat(self, values: list[float]) -> bool:
        mean = sum(values) / len(values)
        low = mean * (1 - self.tolerance)
        high = mean * (1 + self.tolerance)
        in_band = sum(1 for v in values if low <= v <= high)
        return in_band >= self.min_hours


class PairwiseRatioFlatness:
    """Flat when enough hours stay within a ratio of the previous hour.

    The 23 adjacent pairs of the day are counted. A pair whose previous
    hour is zero passes only if both hours are zero.
    """

    def __init__(self, low: float = 0.8, high: float = 1.2, min_pairs: int = 18):
        self.low = low
        self.high = high
        self.min_pairs = min_pairs

    def is_flat(self, values: list[float]) -> bool:
        passing = 0
        for previous, current in zip(values, values[1:]):
            if previous == 0:
                if current == 0:
                    passing += 1
                continue
            if self.low <= current / previous <= self.high:
                passing += 1
        return passing >= self.min_pairs


class FixedWindowDominance:
    """DayDominant or NightDominant when one side holds most of the total.

    The day window is [start, end); the night window is every other hour.
    """

    def __init__(self, day_window: tuple[int, int] = (9, 21), threshold: float = 0.8):
        self.day_window = day_window
        self.threshold = threshold

    def classify(self, values: list[float], total: float) -> DayPattern | None:
        start, end = self.day_window
        day_sum = sum(values[start:end])
        night_sum = total - day_sum
        if day_sum >= self.threshold * total:
            return DayPattern(None, PatternCategory.DAY_DOMINANT)
        if night_sum >= self.threshold * total:
            return DayPattern(None, PatternCategory.NIGHT_DOMINANT)
        return None


class SlidingWindowDominance:
    """Shift when some run of consecutive hours holds most of the total.

    Every start hour is tried, wrapping past midnight. Among qualifying
    windows the one with the largest sum wins, then the earliest start.
    """

    def __init__(self, length: int = 12, threshold: float = 0.9):
        self.length = length
        self.threshold = threshold

    def window_sums(self, values: list[float]) -> list[float]:
        return [
            sum(values[(start + i) % HOURS_PER_DAY] for i in range(self.length))
            for start in range(HOURS_PER_DAY)
        ]

    def classify(self, values: list[float], total: float) -> DayPattern | None:
        best_start = None
        best_sum = None
        for start, window_sum in enumerate(self.window_sums(values)):
            if window_sum < self.threshold * total:
                continue
            if best_sum is None or window_sum > best_sum:
                best_start, best_sum = start, window_sum
        if best_start is None:
            return None
        window = (best_start, (best_start + self.length) % HOURS_PER_DAY)
        return DayPattern(None, PatternCategory.SHIFT, window)


class PatternClassifier:
    """Classifies one day of hourly values into a PatternCategory."""

    def __init__(self, flatness: FlatnessTest | None = None, dominance: DominanceTest | None = None):
        self.flatness = flatness or MeanBandFlatness()
        self.dominance = dominance or FixedWindowDominance()

    @classmethod
    def from_config(cls, config: PatternConfig) -> "PatternClassifier":
        if config.flatness == "pairwise_ratio":
            flatness = PairwiseRatioFlatness(
                config.pairwise_low, config.pairwise_high, config.flat_min_hours
            )
        else:
            flatness = MeanBandFlatness(config.flat_tolerance, config.flat_min_hours)

        if config.dominance == "sliding_window":
            dominance = SlidingWindowDominance(config.sliding_length, config.sliding_threshold)
        else:
            dominance = FixedWindowDominance(config.day_window, config.fixed_threshold)

        return cls(flatness, dominance)

    def classify(self, values: list[float], day: date | None = None) -> DayPattern:
        if len(values) != HOURS_PER_DAY:
            raise ValueError(f"Expected {HOURS_PER_DAY} hourly values, got {len(values)}")

        total = sum(values)
        if total == 0:
            return DayPattern(day, PatternCategory.RANDOM)

        if self.flatness.is_flat(values):
            return DayPattern(day, PatternCategory.FLAT)

        dominant = self.dominance.classify(values, total)
        if dominant is not None:
            return DayPattern(day, dominant.category, dominant.shift_window)

        return DayPattern(day, PatternCategory.RANDOM)


def classify_day(values: list[float], classifier: PatternClassifier | None = None) -> DayPattern:
    """Classify 24 hourly kWh values with the given (or default) classifier."""
    return (classifier or PatternClassifier()).classify(values)


def classify_days(
    records: Iterable[HourlyConsumption], classifier: PatternClassifier
) -> list[DayPattern]:
    """Classify every day present in a set of hourly records.

    Hours missing from a day count as zero here.
    """
    return [
        classifier.classify(day_profile(hours), day)
        for day, hours in group_by_day(records).items()
    ]


def summarize_patterns(
    consumer_id: str, records: Iterable[HourlyConsumption], classifier: PatternClassifier
) -> ConsumerPatternSummary:
    """Category counts over a consumer's history plus the modal shift window."""
    summary = ConsumerPatternSummary(consumer_id)
    windows: Counter = Counter()

    for pattern in classify_days(records, classifier):
        summary.days_of_data += 1
        summary.counts[pattern.category] += 1
        if pattern.shift_window is not None:
            windows[pattern.shift_window] += 1

    if windows:
        # most_common keeps insertion order among equal counts
        summary.shift_window = windows.most_common(1)[0][0]

    logger.debug(
        "Classified %d days for %s: %s",
        summary.days_of_data,
        consumer_id,
        {c.value: n for c, n in summary.counts.items()},
    )
    return summary
