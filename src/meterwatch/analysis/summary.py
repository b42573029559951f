"""Build JSON-friendly consumption reports from stored meter readings.

Each function reads what it needs from the database, runs the pure
analysis steps and returns plain dicts and lists. An empty result means
there was no data; deciding how to show that is up to the caller.
"""

import logging
from datetime import date
from pathlib import Path

from .. import db
from ..config import AppConfig
from ..models import HourlyConsumption, MeterReading, PeriodAggregate
from ..tariffs import (
    TOTAL_KEY,
    TariffClassifier,
    hour_of_day_costs,
    monthly_breakdown,
    peak_share,
    weekly_breakdown,
)
from .hourly import derive_hourly, readings_date_span
from .patterns import PatternClassifier, summarize_patterns
from .peak_variance import consumer_peak_variance
from .ranking import ScoredConsumer, parse_group, rank
from .rollup import (
    Granularity,
    Window,
    WeekdayType,
    hour_label,
    hourly_means,
    presum,
    rollup,
    window_bounds,
)

logger = logging.getLogger(__name__)

HOUR_LABELS = [hour_label(h) for h in range(24)]
DAY_TYPES = (WeekdayType.MON_FRI, WeekdayType.SAT, WeekdayType.SUN)


def _round(value: float | None, digits: int = 2) -> float | None:
    return round(value, digits) if value is not None else None


def _hourly(
    readings: list[MeterReading], start: date, end: date, config: AppConfig
) -> list[HourlyConsumption]:
    return list(derive_hourly(readings, start, end, config.missing_samples))


def _history(readings: list[MeterReading], config: AppConfig) -> list[HourlyConsumption]:
    """Hourly values over the whole span covered by the readings."""
    span = readings_date_span(readings)
    if span is None:
        return []
    return _hourly(readings, span[0], span[1], config)


def consumer_hourly(
    consumer_id: str, start: date, end: date, config: AppConfig, db_path: Path | None = None
) -> list[HourlyConsumption]:
    readings = db.fetch_readings(consumer_id, start, end, db_path)
    return _hourly(readings, start, end, config)


def format_variance(aggregate: PeriodAggregate) -> dict | None:
    """High/low/average in the shape the dashboard charts expect."""
    if aggregate.count == 0:
        return None
    return {
        "high": {
            "hour": aggregate.high.key,
            "consumption": _round(aggregate.high.value),
            "percent_increase_from_avg": _round(aggregate.percent_increase),
        },
        "low": {
            "hour": aggregate.low.key,
            "consumption": _round(aggregate.low.value),
            "percent_decrease_from_avg": _round(aggregate.percent_decrease),
        },
        "average": {"consumption": _round(aggregate.mean)},
    }


def hour_of_day_variance(
    records: list[HourlyConsumption], weekday_type: WeekdayType = WeekdayType.ALL
) -> PeriodAggregate:
    """Roll up hour-of-day sums; hours without data count as zero."""
    return rollup(presum(records, Granularity.HOUR, weekday_type, seed_labels=HOUR_LABELS))


def _day_type_variance(records: list[HourlyConsumption], weekday_type: WeekdayType) -> dict | None:
    """Variance over the days of one type, None when there are no such days."""
    if not any(weekday_type.matches(r.day) for r in records):
        return None
    return format_variance(hour_of_day_variance(records, weekday_type))


def hourly_for_date(
    consumer_id: str, day: date, config: AppConfig, db_path: Path | None = None
) -> list[dict]:
    """Hourly kWh of one day. Hours without samples are absent."""
    start, end = window_bounds(day, Window.DAY)
    return [
        {"hour": hour_label(r.hour), "consumption": _round(r.kwh, 3)}
        for r in consumer_hourly(consumer_id, start, end, config, db_path)
    ]


def hourly_cost_for_date(
    consumer_id: str, day: date, config: AppConfig, db_path: Path | None = None
) -> list[dict]:
    """Hourly kWh and cost of one day, priced by the tariff window rates."""
    classifier = TariffClassifier(config.tariff_windows)
    start, end = window_bounds(day, Window.DAY)
    return [
        {
            "hour": hour_label(r.hour),
            "consumption": _round(r.kwh, 3),
            "cost": _round(classifier.cost(r)),
        }
        for r in consumer_hourly(consumer_id, start, end, config, db_path)
    ]


def hourly_cost_sums(
    consumer_id: str, anchor: date, window: Window, config: AppConfig, db_path: Path | None = None
) -> list[dict]:
    """kWh and cost per hour of day, summed over the days of a week or month."""
    start, end = window_bounds(anchor, window)
    records = consumer_hourly(consumer_id, start, end, config, db_path)
    sums = hour_of_day_costs(records, TariffClassifier(config.tariff_windows))
    return [
        {
            "hour": hour_label(hour),
            TOTAL_KEY: _round(row[TOTAL_KEY], 3),
            "cost": _round(row["cost"]),
        }
        for hour, row in sums.items()
    ]


def tariff_breakdown_month(
    consumer_id: str, year: int, month: int, config: AppConfig, db_path: Path | None = None
) -> dict | None:
    """Weekly tariff breakdown of a month, or None without readings."""
    start, end = window_bounds(date(year, month, 1), Window.MONTH)
    records = consumer_hourly(consumer_id, start, end, config, db_path)
    if not records:
        return None
    return weekly_breakdown(records, TariffClassifier(config.tariff_windows), year, month)


def tariff_breakdown_year(
    consumer_id: str, year: int, config: AppConfig, db_path: Path | None = None
) -> dict | None:
    """Monthly tariff breakdown of a year, or None without readings."""
    start, end = window_bounds(date(year, 1, 1), Window.YEAR)
    records = consumer_hourly(consumer_id, start, end, config, db_path)
    if not records:
        return None
    return monthly_breakdown(records, TariffClassifier(config.tariff_windows))


def variance_report(
    consumer_id: str, anchor: date, window: Window, config: AppConfig, db_path: Path | None = None
) -> dict | None:
    """High/low/average hour of a day, week or month of one consumer."""
    start, end = window_bounds(anchor, window)
    records = consumer_hourly(consumer_id, start, end, config, db_path)
    if not records:
        return None
    report = format_variance(hour_of_day_variance(records))
    report["period"] = {"window": window.value, "start": start.isoformat(), "end": end.isoformat()}
    return report


def _records_in(
    readings: list[MeterReading], config: AppConfig, anchor: date | None, window: Window
) -> list[HourlyConsumption]:
    """Hourly values of the window around `anchor`, or the full history without one."""
    if anchor is None:
        return _history(readings, config)
    start, end = window_bounds(anchor, window)
    return _hourly(readings, start, end, config)


def variance_all(
    config: AppConfig,
    db_path: Path | None = None,
    anchor: date | None = None,
    window: Window = Window.YEAR,
    weekday_type: WeekdayType = WeekdayType.ALL,
) -> dict:
    """High/low/average hour of every consumer.

    Covers the full history, or the year or month containing `anchor`.
    Consumers without days of the requested type are left out.
    """
    names = db.list_consumers(db_path)
    results = {}
    for consumer_id, readings in db.fetch_all_readings(db_path).items():
        report = _day_type_variance(_records_in(readings, config, anchor, window), weekday_type)
        if report is None:
            continue
        results[consumer_id] = {"name": names.get(consumer_id), **report}
    return results


def variance_by_day_type(
    config: AppConfig,
    db_path: Path | None = None,
    anchor: date | None = None,
    window: Window = Window.YEAR,
) -> dict:
    """High/low/average hour of every consumer, split into Mon-Fri, Sat and Sun.

    A day type the consumer has no data for maps to None.
    """
    names = db.list_consumers(db_path)
    results = {}
    for consumer_id, readings in db.fetch_all_readings(db_path).items():
        records = _records_in(readings, config, anchor, window)
        if not records:
            continue
        entry = {"name": names.get(consumer_id)}
        for day_type in DAY_TYPES:
            entry[day_type.value] = _day_type_variance(records, day_type)
        results[consumer_id] = entry
    return results


def demand_profile(
    consumer_id: str, year: int, month: int, config: AppConfig, db_path: Path | None = None
) -> dict | None:
    """Average kWh per hour of day for weekdays, Saturdays and Sundays of a month."""
    start, end = window_bounds(date(year, month, 1), Window.MONTH)
    records = consumer_hourly(consumer_id, start, end, config, db_path)
    if not records:
        return None
    profile = {}
    for day_type in DAY_TYPES:
        means = hourly_means(records, day_type)
        profile[day_type.value] = {hour_label(h): _round(v) for h, v in means.items()}
    return profile


def pattern_table(
    config: AppConfig, db_path: Path | None = None, consumer_id: str | None = None
) -> list[dict]:
    """Pattern counts per consumer over their full history."""
    classifier = PatternClassifier.from_config(config.patterns)
    names = db.list_consumers(db_path)
    if consumer_id is not None:
        history = {consumer_id: db.fetch_readings(consumer_id, db_path=db_path)}
    else:
        history = db.fetch_all_readings(db_path)

    rows = []
    for cid, readings in history.items():
        records = _history(readings, config)
        if not records:
            continue
        summary = summarize_patterns(cid, records, classifier)
        dominant = summary.dominant_category
        rows.append({
            "short_name": names.get(cid),
            **summary.to_dict(),
            "dominant": dominant.value if dominant else None,
        })
    return rows


def group_consumers(group: str, config: AppConfig, db_path: Path | None = None) -> list[dict]:
    """Consumers whose most frequent day pattern is the requested group."""
    category = parse_group(group)
    rows = pattern_table(config, db_path)
    if category is None:
        return rows
    return [row for row in rows if row["dominant"] == category.value]


def peak_variance_report(
    config: AppConfig, db_path: Path | None = None, consumer_id: str | None = None
) -> dict:
    """Morning/evening ramp percentages per consumer."""
    if consumer_id is not None:
        history = {consumer_id: db.fetch_readings(consumer_id, db_path=db_path)}
    else:
        history = db.fetch_all_readings(db_path)

    results = {}
    for cid, readings in history.items():
        records = _history(readings, config)
        if not records:
            continue
        variance = consumer_peak_variance(records, config.morning_pairs, config.evening_pairs)
        results[cid] = {
            section: {slot: _round(pct) for slot, pct in slots.items()}
            for section, slots in variance.items()
        }
    return results


def compute_metric(
    records: list[HourlyConsumption], metric: str, classifier: TariffClassifier
) -> float | None:
    """Scalar ranking score of one consumer, None when it is undefined."""
    if metric == "total_kwh":
        return sum(r.kwh for r in records)
    if metric == "load_factor":
        means = list(hourly_means(records).values())
        if not means or max(means) == 0:
            return None
        return (sum(means) / len(means)) / max(means)
    return peak_share(records, classifier)


def ranking_report(
    config: AppConfig,
    db_path: Path | None = None,
    group: str | None = None,
    direction: str | None = None,
) -> list[dict]:
    """Rank consumers by the configured metric, grouped by dominant pattern."""
    # Validate the filter before any work is done
    parse_group(group)

    tariff_classifier = TariffClassifier(config.tariff_windows)
    pattern_classifier = PatternClassifier.from_config(config.patterns)
    names = db.list_consumers(db_path)

    entries = []
    for cid, readings in db.fetch_all_readings(db_path).items():
        records = _history(readings, config)
        score = compute_metric(records, config.ranking.metric, tariff_classifier)
        if score is None:
            logger.debug("No %s score for %s", config.ranking.metric, cid)
            continue
        dominant = summarize_patterns(cid, records, pattern_classifier).dominant_category
        entries.append(ScoredConsumer(cid, score, dominant.value if dominant else None))

    ranked = rank(
        entries,
        direction or config.ranking.direction,
        group,
        config.ranking.tie_policy,
    )
    return [
        {**entry.to_dict(), "short_name": names.get(entry.consumer_id)}
        for entry in ranked
    ]

