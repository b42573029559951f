"""Configuration loading and validation.

Settings live in a YAML file (see config/meterwatch.yaml). Everything is
validated once at load so that computations never start with a bad table.
"""

import logging
import math
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from dotenv import load_dotenv

from .models import MissingSamplePolicy, TariffWindow

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "METERWATCH_CONFIG"

DEFAULT_TARIFF_WINDOWS = [
    TariffWindow(0, 6, "Off-Peak"),
    TariffWindow(6, 10, "Peak-1"),
    TariffWindow(10, 15, "Off-Peak"),
    TariffWindow(15, 18, "Normal"),
    TariffWindow(18, 22, "Peak-2"),
    TariffWindow(22, 24, "Normal"),
]

DEFAULT_MORNING_PAIRS = [(5, 6), (6, 7), (7, 8), (8, 9), (9, 10)]
DEFAULT_EVENING_PAIRS = [(17, 18), (18, 19), (19, 20), (20, 21), (21, 22)]

FLATNESS_STRATEGIES = ("mean_band", "pairwise_ratio")
DOMINANCE_STRATEGIES = ("fixed_window", "sliding_window")
RANKING_METRICS = ("peak_share", "load_factor", "total_kwh")
TIE_POLICIES = ("dense", "ordinal")
DIRECTIONS = ("desc", "asc")


class ConfigurationError(ValueError):
    """Raised for configuration that must be rejected before computing."""
    pass


def validate_tariff_windows(windows: list[TariffWindow]) -> None:
    """Check that the windows cover every hour 0-23 exactly once."""
    if not windows:
        raise ConfigurationError("Tariff table is empty")

    seen: dict[int, str] = {}
    for window in windows:
        if not window.name:
            raise ConfigurationError("Tariff window has no bucket name")
        if not (0 <= window.start_hour <= 23) or not (0 <= window.end_hour <= 24):
            raise ConfigurationError(
                f"Tariff window {window.name} has out-of-range hours "
                f"{window.start_hour}-{window.end_hour}"
            )
        if window.start_hour == window.end_hour:
            raise ConfigurationError(f"Tariff window {window.name} is empty")
        if window.rate is not None and (not math.isfinite(window.rate) or window.rate < 0):
            raise ConfigurationError(
                f"Tariff window {window.name} has an invalid rate: {window.rate}"
            )
        for hour in window.hours():
            if hour in seen:
                raise ConfigurationError(
                    f"Hour {hour} is covered by both {seen[hour]} and {window.name}"
                )
            seen[hour] = window.name

    missing = sorted(set(range(24)) - set(seen))
    if missing:
        raise ConfigurationError(f"Tariff table leaves hours uncovered: {missing}")


@dataclass
class PatternConfig:
    """Parameters of the day pattern classifier."""

    flatness: str = "mean_band"
    flat_tolerance: float = 0.15
    pairwise_low: float = 0.8
    pairwise_high: float = 1.2
    flat_min_hours: int = 18
    dominance: str = "fixed_window"
    day_window: tuple[int, int] = (9, 21)
    fixed_threshold: float = 0.8
    sliding_length: int = 12
    sliding_threshold: float = 0.9

    def __post_init__(self):
        self.day_window = tuple(self.day_window)
        if self.flatness not in FLATNESS_STRATEGIES:
            raise ConfigurationError(f"Unknown flatness strategy: {self.flatness}")
        if self.dominance not in DOMINANCE_STRATEGIES:
            raise ConfigurationError(f"Unknown dominance strategy: {self.dominance}")
        if not 0 <= self.flat_tolerance < 1:
            raise ConfigurationError("flat_tolerance must be in [0, 1)")
        if not 0 < self.pairwise_low <= 1 <= self.pairwise_high:
            raise ConfigurationError("pairwise ratio bounds must satisfy 0 < low <= 1 <= high")
        if not 0 < self.flat_min_hours <= 24:
            raise ConfigurationError("flat_min_hours must be between 1 and 24")
        if len(self.day_window) != 2 or not 0 <= self.day_window[0] < self.day_window[1] <= 24:
            raise ConfigurationError(f"Invalid day window: {self.day_window}")
        if not 1 <= self.sliding_length <= 23:
            raise ConfigurationError("sliding_length must be between 1 and 23")
        for name in ("fixed_threshold", "sliding_threshold"):
            if not 0 < getattr(self, name) <= 1:
                raise ConfigurationError(f"{name} must be in (0, 1]")


def _validate_pairs(pairs: list[tuple[int, int]]) -> list[tuple[int, int]]:
    if not isinstance(pairs, (list, tuple)):
        raise ConfigurationError(f"Hour pairs must be a list, got {pairs!r}")
    result = []
    for pair in pairs:
        if (
            not isinstance(pair, (list, tuple))
            or len(pair) != 2
            or not all(isinstance(h, int) and 0 <= h <= 23 for h in pair)
        ):
            raise ConfigurationError(f"Invalid hour pair: {pair!r}")
        result.append((pair[0], pair[1]))
    return result


@dataclass
class RankingConfig:
    """How consumers are scored and ordered."""

    metric: str = "peak_share"
    tie_policy: str = "dense"
    direction: str = "desc"

    def __post_init__(self):
        if self.metric not in RANKING_METRICS:
            raise ConfigurationError(f"Unknown ranking metric: {self.metric}")
        if self.tie_policy not in TIE_POLICIES:
            raise ConfigurationError(f"Unknown tie policy: {self.tie_policy}")
        if self.direction not in DIRECTIONS:
            raise ConfigurationError(f"Unknown sort direction: {self.direction}")


@dataclass
class AppConfig:
    """All settings used by the analysis commands."""

    tariff_windows: list[TariffWindow] = field(
        default_factory=lambda: list(DEFAULT_TARIFF_WINDOWS)
    )
    patterns: PatternConfig = field(default_factory=PatternConfig)
    morning_pairs: list[tuple[int, int]] = field(
        default_factory=lambda: list(DEFAULT_MORNING_PAIRS)
    )
    evening_pairs: list[tuple[int, int]] = field(
        default_factory=lambda: list(DEFAULT_EVENING_PAIRS)
    )
    ranking: RankingConfig = field(default_factory=RankingConfig)
    missing_samples: MissingSamplePolicy = MissingSamplePolicy.ZERO_FILL_PARTIAL

    def __post_init__(self):
        validate_tariff_windows(self.tariff_windows)
        self.morning_pairs = _validate_pairs(self.morning_pairs)
        self.evening_pairs = _validate_pairs(self.evening_pairs)


def _section(data: dict, key: str) -> dict:
    section = data.get(key) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Config section '{key}' must be a mapping")
    return section


def _tariff_window(w: dict) -> TariffWindow:
    rate = w.get("rate")
    return TariffWindow(
        int(w["start"]),
        int(w["end"]),
        str(w["name"]),
        float(rate) if rate is not None else None,
    )


def config_from_dict(data: dict | None) -> AppConfig:
    """Build an AppConfig from parsed YAML, falling back to defaults per section."""
    data = data or {}
    if not isinstance(data, dict):
        raise ConfigurationError("Config file must contain a mapping of sections")
    kwargs = {}

    tariff = _section(data, "tariff")
    if "windows" in tariff:
        try:
            kwargs["tariff_windows"] = [_tariff_window(w) for w in tariff["windows"]]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ConfigurationError(f"Malformed tariff window: {e}")

    patterns = _section(data, "patterns")
    try:
        kwargs["patterns"] = PatternConfig(**patterns)
    except TypeError as e:
        raise ConfigurationError(f"Unknown pattern setting: {e}")

    peak = _section(data, "peak_variance")
    if "morning" in peak:
        kwargs["morning_pairs"] = peak["morning"]
    if "evening" in peak:
        kwargs["evening_pairs"] = peak["evening"]

    ranking = _section(data, "ranking")
    try:
        kwargs["ranking"] = RankingConfig(**ranking)
    except TypeError as e:
        raise ConfigurationError(f"Unknown ranking setting: {e}")

    if "missing_samples" in data:
        try:
            kwargs["missing_samples"] = MissingSamplePolicy(data["missing_samples"])
        except (ValueError, TypeError):
            raise ConfigurationError(f"Unknown missing sample policy: {data['missing_samples']}")

    return AppConfig(**kwargs)


def get_config_path(explicit: Path | None = None) -> Path | None:
    """Find the config file, or None when only defaults apply."""
    if explicit is not None:
        if not explicit.exists():
            raise FileNotFoundError(f"Config file not found: {explicit}")
        return explicit

    candidates = []
    if os.environ.get(CONFIG_ENV_VAR):
        candidates.append(Path(os.environ[CONFIG_ENV_VAR]))
    candidates += [
        Path.cwd() / "config" / "meterwatch.yaml",
        Path.home() / ".config" / "meterwatch" / "meterwatch.yaml",
    ]
    for path in candidates:
        if path.exists():
            return path
    return None


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load settings from YAML, or the built-in defaults when there is no file."""
    path = get_config_path(config_path)
    if path is None:
        logger.debug("No config file found, using defaults")
        return AppConfig()

    logger.debug("Loading config from %s", path)
    with open(path) as f:
        data = yaml.safe_load(f)
    return config_from_dict(data)
