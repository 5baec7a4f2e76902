# solar_roi_engine/sizing.py

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence
import math

from .hours import HOURS_PER_DAY, Season, get_season, parse_season
from .profile_generator import expand_solar
from .types import DayRecord, SolarDay, validate_profile


STANDARD_BATTERY_SIZES = [5, 10, 13.5, 16, 20, 24, 32, 40, 48]

SIZING_PERCENTILE = 0.90

# Days per season used to weight the seasonal averages
_SEASON_WEIGHTS = {
    Season.SUMMER: 90,
    Season.AUTUMN: 91,
    Season.WINTER: 92,
    Season.SPRING: 92,
    Season.MANUAL: 365,
}


# ============================================================
# Results
# ============================================================

@dataclass
class HeuristicSizing:
    solar_kw: float
    battery_kwh: float
    inverter_kw: float
    coverage_target: float

    def to_dict(self):
        return {
            "solar_kw": self.solar_kw,
            "battery_kwh": self.battery_kwh,
            "inverter_kw": self.inverter_kw,
            "coverage_target": self.coverage_target,
        }


@dataclass
class BlackoutSizing:
    required_reserve_kwh: float
    total_calculated_kwh: float
    practical_size_kwh: float

    def to_dict(self):
        return {
            "required_reserve_kwh": self.required_reserve_kwh,
            "total_calculated_kwh": self.total_calculated_kwh,
            "practical_size_kwh": self.practical_size_kwh,
        }


@dataclass
class DetailedSizing:
    battery_kwh: float
    inverter_kw: float
    battery_coverage_days: int
    inverter_coverage_days: int
    total_days: int
    peak_period_distribution: List[float] = field(default_factory=list)
    max_hourly_distribution: List[float] = field(default_factory=list)
    blackout: Optional[BlackoutSizing] = None

    def to_dict(self):
        return {
            "battery_kwh": self.battery_kwh,
            "inverter_kw": self.inverter_kw,
            "battery_coverage_days": self.battery_coverage_days,
            "inverter_coverage_days": self.inverter_coverage_days,
            "total_days": self.total_days,
            "distributions": {
                "peak_period": self.peak_period_distribution,
                "max_hourly": self.max_hourly_distribution,
            },
            "blackout": self.blackout.to_dict() if self.blackout else None,
        }


# ============================================================
# Helpers
# ============================================================

def percentile(values: Sequence[float], fraction: float) -> float:
    """Nearest-rank percentile (ceil index); 0.0 for no data."""
    if not values:
        return 0.0
    ordered = sorted(values)
    index = math.ceil(fraction * len(ordered)) - 1
    return ordered[max(0, min(index, len(ordered) - 1))]


def snap_battery_size(kwh: float) -> float:
    """Smallest standard battery that holds kwh; beyond the menu, round up."""
    for size in STANDARD_BATTERY_SIZES:
        if size >= kwh:
            return size
    return float(math.ceil(kwh))


def inverter_for_solar(solar_kw: float) -> float:
    if solar_kw <= 6.6:
        return 5.0
    if solar_kw <= 10:
        return 8.0
    return 10.0


# ============================================================
# HEURISTIC — seasonal averages + coverage target
# ============================================================

def heuristic_sizing(
    coverage_target: float,
    seasonal: Mapping,
    avg_daily_generation_per_kw: float = 4.0,
) -> HeuristicSizing:
    """
    Sizing from seasonal averages:
    - solar: covers coverage_target % of annual use, nearest 0.5 kW
    - battery: evening use (peak + half of off-peak), scaled by the
      target relative to 90 %, snapped to a standard size
    - inverter: stepped on the solar size
    """
    total_kwh = 0.0
    evening_kwh = 0.0
    total_days = 0

    for key, avg in (seasonal or {}).items():
        days = _SEASON_WEIGHTS[parse_season(key)]
        total_kwh += (avg.avg_peak + avg.avg_shoulder + avg.avg_off_peak) * days
        evening_kwh += (avg.avg_peak + avg.avg_off_peak * 0.5) * days
        total_days += days

    if total_days == 0:
        return HeuristicSizing(0.0, 0.0, 0.0, coverage_target)

    annual_kwh = total_kwh / total_days * 365
    target_generation = annual_kwh * coverage_target / 100.0

    solar_kw = 0.0
    if avg_daily_generation_per_kw > 0:
        solar_kw = target_generation / (avg_daily_generation_per_kw * 365)
    solar_kw = round(solar_kw * 2) / 2

    target_evening = evening_kwh / total_days * (coverage_target / 90.0)
    battery_kwh = snap_battery_size(target_evening)

    return HeuristicSizing(
        solar_kw=solar_kw,
        battery_kwh=battery_kwh,
        inverter_kw=inverter_for_solar(solar_kw),
        coverage_target=coverage_target,
    )


def generation_per_kw(solar_days: Iterable, existing_solar_kw: float, default: float = 4.0) -> float:
    """Average daily generation per installed kW from measured solar days."""
    days = list(solar_days or [])
    if not days or existing_solar_kw <= 0:
        return default
    total = sum(sum(d.hourly) for d in days)
    return total / len(days) / existing_solar_kw


def proposed_solar_by_date(
    days: Sequence[DayRecord],
    solar_days: Optional[Iterable[SolarDay]],
    existing_solar_kw: float,
    new_solar_kw: float,
    replace_existing: bool = False,
    manual_solar_profile: float = 4.0,
) -> Dict[str, List[float]]:
    """
    Hourly generation of the proposed array for each date. Measured solar
    is scaled from the existing array to the proposed size; without it each
    day gets the seasonal curve for size * manual_solar_profile.
    """
    total_kw = new_solar_kw if replace_existing else existing_solar_kw + new_solar_kw
    measured = list(solar_days or [])

    out: Dict[str, List[float]] = {}
    if measured:
        source_kw = existing_solar_kw if existing_solar_kw > 0 else 1.0
        for s in measured:
            hourly = validate_profile(s.hourly, f"solar[{s.date}]")
            out[s.date] = [h / source_kw * total_kw for h in hourly]
        return out

    for day in days:
        out[day.date] = expand_solar(total_kw * manual_solar_profile, get_season(day.date))
    return out


# ============================================================
# DETAILED — percentile analysis of historical days
# ============================================================

def blackout_sizing(
    days: Sequence[DayRecord],
    base_battery_kwh: float,
    duration_hours: int,
    coverage: float,
) -> Optional[BlackoutSizing]:
    """Reserve for the heaviest rolling window of duration_hours."""
    if duration_hours <= 0 or coverage <= 0:
        return None

    all_hours: List[float] = []
    for day in days:
        all_hours.extend(day.consumption)

    worst = 0.0
    if len(all_hours) >= duration_hours:
        window = sum(all_hours[:duration_hours])
        worst = window
        for i in range(duration_hours, len(all_hours)):
            window += all_hours[i] - all_hours[i - duration_hours]
            worst = max(worst, window)

    reserve = worst * coverage
    total = base_battery_kwh + reserve
    return BlackoutSizing(
        required_reserve_kwh=reserve,
        total_calculated_kwh=total,
        practical_size_kwh=snap_battery_size(total),
    )


def detailed_sizing(
    days: Sequence[DayRecord],
    hourly_solar_by_date: Optional[Dict[str, Sequence[float]]] = None,
    peak_hours: Iterable[int] = (),
    blackout_hours: int = 0,
    blackout_coverage: float = 0.0,
) -> Optional[DetailedSizing]:
    """
    Per day: household load in peak hours (what the battery must hold)
    and the largest single hour not covered by the proposed array (what the
    inverter must deliver). Recommends the 90th percentile day of each.
    """
    if not days:
        return None

    peak = frozenset(peak_hours)
    solar_map = hourly_solar_by_date or {}

    peak_period: List[float] = []
    max_hourly: List[float] = []

    for day in days:
        consumption = validate_profile(day.consumption, f"consumption[{day.date}]")
        solar = solar_map.get(day.date)
        solar = validate_profile(solar, f"solar[{day.date}]") if solar is not None else [0.0] * HOURS_PER_DAY

        day_peak = 0.0
        day_max = 0.0
        for h in range(HOURS_PER_DAY):
            unmet = consumption[h] - min(consumption[h], solar[h])
            day_max = max(day_max, unmet)
            if h in peak:
                day_peak += consumption[h]

        peak_period.append(day_peak)
        max_hourly.append(day_max)

    battery = float(math.ceil(percentile(peak_period, SIZING_PERCENTILE)))
    inverter = math.ceil(percentile(max_hourly, SIZING_PERCENTILE) * 2) / 2

    return DetailedSizing(
        battery_kwh=battery,
        inverter_kw=inverter,
        battery_coverage_days=sum(1 for d in peak_period if d <= battery),
        inverter_coverage_days=sum(1 for d in max_hourly if d <= inverter),
        total_days=len(days),
        peak_period_distribution=peak_period,
        max_hourly_distribution=max_hourly,
        blackout=blackout_sizing(days, battery, blackout_hours, blackout_coverage),
    )
