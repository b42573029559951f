"""Day pattern classification.

The dashboard used two flatness tests (band around the mean, ratio to the
previous hour) and two dominance tests (fixed 9-21 window, sliding 12-hour
window) without saying which is authoritative, so both variants of each are
exercised here.
"""

import pytest
from datetime import date
from meterwatch.analysis.patterns import (
    FixedWindowDominance,
    MeanBandFlatness,
    PairwiseRatioFlatness,
    PatternClassifier,
    SlidingWindowDominance,
    classify_day,
    classify_days,
    summarize_patterns,
)
from meterwatch.config import PatternConfig
from meterwatch.models import HourlyConsumption, PatternCategory

FIXED = PatternClassifier(MeanBandFlatness(), FixedWindowDominance())
SLIDING = PatternClassifier(MeanBandFlatness(), SlidingWindowDominance())
PAIRWISE = PatternClassifier(PairwiseRatioFlatness(), FixedWindowDominance())


def day_heavy(share_inside: float = 0.95, start: int = 9, end: int = 21) -> list[float]:
    """A day with `share_inside` of 1000 kWh spread evenly over [start, end)."""
    inside = list(range(start, end))
    outside = [h for h in range(24) if h not in inside]
    values = [0.0] * 24
    for h in inside:
        values[h] = 1000 * share_inside / len(inside)
    for h in outside:
        values[h] = 1000 * (1 - share_inside) / len(outside)
    return values


@pytest.mark.parametrize("classifier", [FIXED, SLIDING, PAIRWISE])
def test_identical_values_are_flat(classifier):
    assert classifier.classify([5.0] * 24).category == PatternCategory.FLAT


@pytest.mark.parametrize("classifier", [FIXED, SLIDING, PAIRWISE])
def test_all_zero_day_is_random(classifier):
    assert classifier.classify([0.0] * 24).category == PatternCategory.RANDOM


def test_one_spike_is_still_flat_with_mean_band():
    """Mean 116.67, band about [99.2, 134.2]: 23 of 24 hours inside."""
    values = [100.0] * 24
    values[5] = 500.0

    assert FIXED.classify(values).category == PatternCategory.FLAT


def test_mean_band_needs_enough_hours_in_band():
    values = [100.0] * 18 + [0.0] * 6

    # mean 75, band [63.75, 86.25]: no hour inside
    assert not MeanBandFlatness().is_flat(values)
    assert MeanBandFlatness(min_hours=18).is_flat([100.0] * 18 + [90.0] * 6)


def test_pairwise_ratio_counts_adjacent_pairs():
    steady = [10.0] * 24
    steady[12] = 20.0  # breaks the pairs (11, 12) and (12, 13)

    assert PairwiseRatioFlatness().is_flat(steady)

    ramp = [float(2 ** h) for h in range(24)]  # every step doubles
    assert not PairwiseRatioFlatness().is_flat(ramp)


def test_pairwise_zero_previous_hour_only_passes_when_both_zero():
    flat = PairwiseRatioFlatness(min_pairs=23)

    assert flat.is_flat([0.0] * 24)
    assert not flat.is_flat([0.0] + [1.0] * 23)


def test_day_window_dominance():
    pattern = FIXED.classify(day_heavy(0.95))

    assert pattern.category == PatternCategory.DAY_DOMINANT
    assert pattern.shift_window is None


def test_night_window_dominance():
    values = [0.0] * 24
    for h in list(range(0, 9)) + list(range(21, 24)):
        values[h] = 90.0
    for h in range(9, 21):
        values[h] = 10.0

    assert FIXED.classify(values).category == PatternCategory.NIGHT_DOMINANT


def test_sliding_window_finds_shift():
    pattern = SLIDING.classify(day_heavy(0.95))

    assert pattern.category == PatternCategory.SHIFT
    start, end = pattern.shift_window
    assert start <= 9
    assert end == (start + 12) % 24
    hours = [(start + i) % 24 for i in range(12)]
    values = day_heavy(0.95)
    assert sum(values[h] for h in hours) >= 0.9 * sum(values)


def test_sliding_window_wraps_midnight():
    values = day_heavy(0.95, start=0, end=6)
    for h in range(18, 24):
        values[h] = values[0]
    for h in range(6, 18):
        values[h] = 0.0

    pattern = SLIDING.classify(values)

    assert pattern.category == PatternCategory.SHIFT
    assert pattern.shift_window == (18, 6)


def test_sliding_window_tie_picks_earliest_start():
    # Everything in hours 10-13: every start from 2 to 10 captures it all
    values = [0.0] * 24
    for h in range(10, 14):
        values[h] = 50.0

    pattern = SLIDING.classify(values)

    assert pattern.shift_window == (2, 14)


def test_spread_out_day_is_random():
    values = [0.0] * 24
    for h in (0, 4, 8, 12, 16, 20):
        values[h] = 10.0

    assert FIXED.classify(values).category == PatternCategory.RANDOM
    assert SLIDING.classify(values).category == PatternCategory.RANDOM


def test_classify_requires_24_values():
    with pytest.raises(ValueError, match="24"):
        FIXED.classify([1.0] * 23)


def test_classify_day_uses_default_classifier():
    assert classify_day([1.0] * 24).category == PatternCategory.FLAT


def test_from_config_builds_selected_strategies():
    classifier = PatternClassifier.from_config(
        PatternConfig(flatness="pairwise_ratio", dominance="sliding_window", sliding_length=8)
    )

    assert isinstance(classifier.flatness, PairwiseRatioFlatness)
    assert isinstance(classifier.dominance, SlidingWindowDominance)
    assert classifier.dominance.length == 8


def records_for(day: date, values: list[float]) -> list[HourlyConsumption]:
    return [HourlyConsumption(day, h, v) for h, v in enumerate(values) if v]


def test_classify_days_fills_missing_hours():
    records = records_for(date(2025, 10, 1), day_heavy(1.0))

    patterns = classify_days(records, FIXED)

    assert len(patterns) == 1
    assert patterns[0].day == date(2025, 10, 1)
    assert patterns[0].category == PatternCategory.DAY_DOMINANT


def test_summarize_patterns_counts_and_modal_window():
    late = day_heavy(0.95, start=10, end=22)
    records = (
        records_for(date(2025, 10, 1), day_heavy(0.95))
        + records_for(date(2025, 10, 2), late)
        + records_for(date(2025, 10, 3), late)
        + records_for(date(2025, 10, 4), [3.0] * 24)
    )

    summary = summarize_patterns("C1", records, SLIDING)

    assert summary.days_of_data == 4
    assert summary.counts[PatternCategory.SHIFT] == 3
    assert summary.counts[PatternCategory.FLAT] == 1
    assert summary.shift_window == (10, 22)
    assert summary.dominant_category == PatternCategory.SHIFT


def test_summarize_patterns_window_tie_keeps_first_seen():
    records = records_for(date(2025, 10, 1), day_heavy(0.95)) + records_for(
        date(2025, 10, 2), day_heavy(0.95, start=10, end=22)
    )

    summary = summarize_patterns("C1", records, SLIDING)

    assert summary.shift_window == (9, 21)
