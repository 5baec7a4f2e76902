# solar_roi_engine/profile_generator.py

from __future__ import annotations
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple
import logging

from .hours import HOURS_PER_DAY, Season, parse_season
from .types import HourlyProfile, ProviderConfig, TimeOfUseRule

logger = logging.getLogger(__name__)


# ------------------------------------------------------------
# Fixed TOU windows, used when a provider defines no peak or shoulder rule
# ------------------------------------------------------------

DEFAULT_PEAK_HOURS: FrozenSet[int] = frozenset(list(range(7, 10)) + list(range(16, 22)))
DEFAULT_SHOULDER_HOURS: FrozenSet[int] = frozenset(range(10, 16))


# ------------------------------------------------------------
# Solar shapes (24h distribution) — normalised to 1.0 below
# ------------------------------------------------------------

SOLAR_SHAPES: Dict[Season, List[float]] = {
    # high, long curve
    Season.SUMMER: [
        0, 0, 0, 0, 0, 0,
        0.01, 0.04, 0.08, 0.12, 0.15, 0.18,
        0.19, 0.15, 0.12, 0.08, 0.04, 0.01,
        0, 0, 0, 0, 0, 0,
    ],
    # low, short curve
    Season.WINTER: [
        0, 0, 0, 0, 0, 0,
        0, 0, 0.05, 0.10, 0.18, 0.22,
        0.20, 0.15, 0.10, 0, 0, 0,
        0, 0, 0, 0, 0, 0,
    ],
    # autumn and spring
    Season.AUTUMN: [
        0, 0, 0, 0, 0, 0,
        0, 0.02, 0.06, 0.11, 0.16, 0.19,
        0.19, 0.16, 0.11, 0.06, 0.02, 0,
        0, 0, 0, 0, 0, 0,
    ],
    # annual average, for a single manual input
    Season.MANUAL: [
        0, 0, 0, 0, 0, 0,
        0, 0.01, 0.05, 0.10, 0.15, 0.19,
        0.20, 0.15, 0.10, 0.04, 0.01, 0,
        0, 0, 0, 0, 0, 0,
    ],
}
SOLAR_SHAPES[Season.SPRING] = SOLAR_SHAPES[Season.AUTUMN]


def _normalize(vec: List[float]) -> List[float]:
    s = sum(vec)
    if s <= 0:
        return vec
    return [v / s for v in vec]


# ============================================================
# TOU windows
# ============================================================

def is_peak_name(name: str) -> bool:
    """'Peak' matches, 'Off-Peak' / 'Offpeak' does not."""
    lowered = name.lower()
    if "peak" not in lowered:
        return False
    compact = lowered.replace("-", "").replace(" ", "").replace("_", "")
    return "offpeak" not in compact


def is_shoulder_name(name: str) -> bool:
    return "shoulder" in name.lower()


def find_band_rules(rules: Iterable) -> Tuple[Optional[TimeOfUseRule], Optional[TimeOfUseRule]]:
    """First TOU rule named like peak and first named like shoulder."""
    peak_rule = None
    shoulder_rule = None
    for rule in rules:
        if not isinstance(rule, TimeOfUseRule):
            continue
        if peak_rule is None and is_peak_name(rule.name):
            peak_rule = rule
        elif shoulder_rule is None and is_shoulder_name(rule.name):
            shoulder_rule = rule
    return peak_rule, shoulder_rule


def band_hours(rules: Iterable) -> Tuple[FrozenSet[int], FrozenSet[int]]:
    peak_rule, shoulder_rule = find_band_rules(rules)
    peak = peak_rule.hour_set if peak_rule else frozenset()
    shoulder = shoulder_rule.hour_set if shoulder_rule else frozenset()
    return peak, shoulder


def tou_windows(provider: Optional[ProviderConfig]) -> Tuple[FrozenSet[int], FrozenSet[int]]:
    """
    Peak and shoulder hours for expanding daily TOU totals.
    Rule derived when the provider has a peak or shoulder rule, otherwise
    the fixed windows (peak 7-10 & 16-22, shoulder 10-16).
    """
    if provider is not None:
        peak, shoulder = band_hours(provider.import_rules)
        if peak or shoulder:
            return peak, shoulder
    return DEFAULT_PEAK_HOURS, DEFAULT_SHOULDER_HOURS


# ============================================================
# Consumption
# ============================================================

def expand_consumption(
    daily_peak_kwh: float,
    daily_shoulder_kwh: float,
    daily_off_peak_kwh: float,
    peak_hours: Iterable[int] = DEFAULT_PEAK_HOURS,
    shoulder_hours: Iterable[int] = DEFAULT_SHOULDER_HOURS,
) -> HourlyProfile:
    """
    Spreads each daily band total evenly over the hours of that band.
    Hours in neither set are off-peak; peak wins over shoulder. A band
    without hours adds nothing to any hour.
    """
    peak = frozenset(h for h in peak_hours if 0 <= h < HOURS_PER_DAY)
    shoulder = frozenset(h for h in shoulder_hours if 0 <= h < HOURS_PER_DAY) - peak
    off_peak = frozenset(range(HOURS_PER_DAY)) - peak - shoulder

    profile = [0.0] * HOURS_PER_DAY
    for total, hours, label in (
        (daily_peak_kwh, peak, "peak"),
        (daily_shoulder_kwh, shoulder, "shoulder"),
        (daily_off_peak_kwh, off_peak, "off-peak"),
    ):
        if total <= 0:
            continue
        if not hours:
            logger.debug("No %s hours defined; dropping %.3f kWh/day", label, total)
            continue
        per_hour = total / len(hours)
        for h in hours:
            profile[h] = per_hour

    return profile


# ============================================================
# Solar
# ============================================================

def expand_solar(daily_total_kwh: float, season=Season.MANUAL) -> HourlyProfile:
    """Distributes a daily solar total over 24 hours with the season's curve."""
    if daily_total_kwh <= 0:
        return [0.0] * HOURS_PER_DAY

    shape = _normalize(SOLAR_SHAPES[parse_season(season)])
    return [daily_total_kwh * f for f in shape]
