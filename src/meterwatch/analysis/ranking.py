"""Ranking of consumers by a scalar metric."""

from dataclasses import dataclass

from ..config import DIRECTIONS, TIE_POLICIES, ConfigurationError
from ..models import ConsumerRankEntry, PatternCategory

ALL_GROUPS = "all"

# Group filter values accepted from callers, mapped to pattern categories
GROUP_ALIASES = {
    "flat": PatternCategory.FLAT,
    "day": PatternCategory.DAY_DOMINANT,
    "daydominant": PatternCategory.DAY_DOMINANT,
    "night": PatternCategory.NIGHT_DOMINANT,
    "nightdominant": PatternCategory.NIGHT_DOMINANT,
    "shift": PatternCategory.SHIFT,
    "random": PatternCategory.RANDOM,
}


@dataclass(frozen=True)
class ScoredConsumer:
    """Input to the ranking: a consumer, its score and optional group."""

    consumer_id: str
    metric_score: float
    group: str | None = None


def parse_group(value: str | PatternCategory | None) -> PatternCategory | None:
    """Resolve a group filter; None means all groups."""
    if value is None or isinstance(value, PatternCategory):
        return value
    key = value.strip().lower()
    if key == ALL_GROUPS:
        return None
    if key not in GROUP_ALIASES:
        raise ConfigurationError(f"Unknown group: {value}")
    return GROUP_ALIASES[key]


def rank(
    entries: list[ScoredConsumer],
    direction: str = "desc",
    group_filter: str | PatternCategory | None = None,
    tie_policy: str = "dense",
) -> list[ConsumerRankEntry]:
    """Order consumers by score and number them from 1.

    The sort is stable, so equal scores keep their input order. With the
    "dense" tie policy equal scores share a rank and ranks have no gaps
    ([70, 70, 50] -> 1, 1, 2); "ordinal" numbers every entry (1, 2, 3).

    Without a group filter each entry carries its group; with one, only
    that group is ranked and the group is left out.
    """
    if direction not in DIRECTIONS:
        raise ConfigurationError(f"Unknown sort direction: {direction}")
    if tie_policy not in TIE_POLICIES:
        raise ConfigurationError(f"Unknown tie policy: {tie_policy}")
    group = parse_group(group_filter)

    if group is not None:
        entries = [e for e in entries if e.group == group.value]

    ordered = sorted(entries, key=lambda e: e.metric_score, reverse=direction == "desc")

    ranked = []
    current_rank = 0
    previous_score = None
    for position, entry in enumerate(ordered, start=1):
        if tie_policy == "ordinal":
            current_rank = position
        elif previous_score is None or entry.metric_score != previous_score:
            current_rank += 1
        previous_score = entry.metric_score

        ranked.append(
            ConsumerRankEntry(
                consumer_id=entry.consumer_id,
                metric_score=entry.metric_score,
                rank=current_rank,
                group=entry.group if group is None else None,
            )
        )
    return ranked
