"""Percentage change between paired hours around the peak tariff windows."""

from typing import Iterable

from ..models import HourlyConsumption
from .rollup import hour_label, hourly_means


def slot_label(h1: int, h2: int) -> str:
    """Label like "05:00 - 06:00"."""
    return f"{hour_label(h1)} - {hour_label(h2)}"


def peak_variance(
    hourly_averages: dict[int, float], pairs: Iterable[tuple[int, int]]
) -> dict[str, float]:
    """Signed % change from the first to the second hour of each pair.

    A pair is left out when either hour has no average or the first is zero.
    """
    result = {}
    for h1, h2 in pairs:
        avg1 = hourly_averages.get(h1)
        avg2 = hourly_averages.get(h2)
        if avg1 is None or avg2 is None or avg1 == 0:
            continue
        result[slot_label(h1, h2)] = (avg2 - avg1) / avg1 * 100
    return result


def consumer_peak_variance(
    records: Iterable[HourlyConsumption],
    morning_pairs: Iterable[tuple[int, int]],
    evening_pairs: Iterable[tuple[int, int]],
) -> dict[str, dict[str, float]]:
    """Morning and evening ramp percentages from long-run hourly means."""
    averages = hourly_means(records)
    return {
        "morning": peak_variance(averages, morning_pairs),
        "evening": peak_variance(averages, evening_pairs),
    }
