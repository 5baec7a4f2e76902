# solar_roi_engine/scenario_runner.py

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple
import logging
import math

from .battery_model import BatteryModel, degradation_factor
from .battery_simulator import DaySimulator
from .cost_engine import CostEngine
from .errors import ContractViolation, InvalidConfiguration, MissingData
from .hours import HOURS_PER_DAY, Season, get_season, parse_season
from .profile_generator import expand_consumption, expand_solar, tou_windows
from .roi_engine import ROITracker
from .settings import settings
from .types import (
    AnalysisConfig,
    BatteryConfig,
    DayRecord,
    ProviderConfig,
    ProviderFinancials,
    SeasonalAverage,
    SeasonTable,
    SeasonTotals,
    SimulationOutput,
    SimulationYearResult,
    SolarDay,
    validate_profile,
)

logger = logging.getLogger(__name__)


DAYS_PER_YEAR = 365

# Days represented by one simulated average day per season
SEASON_DAYS = {
    Season.SUMMER: 90,
    Season.AUTUMN: 91,
    Season.WINTER: 92,
    Season.SPRING: 92,
    Season.MANUAL: 365,
}

# Mid-season date handed to the special conditions in seasonal mode
SEASON_DATES = {
    Season.SUMMER: "2025-01-15",
    Season.AUTUMN: "2025-04-15",
    Season.WINTER: "2025-07-15",
    Season.SPRING: "2025-10-15",
    Season.MANUAL: "2025-01-15",
}

SEASON_ORDER = [Season.SUMMER, Season.AUTUMN, Season.WINTER, Season.SPRING, Season.MANUAL]


# ============================================================
# REPRESENTATIVE PERIOD
# ============================================================

@dataclass(frozen=True)
class Period:
    """One simulated day and the number of calendar days it stands for."""
    date: str
    season: Season
    consumption: Tuple[float, ...]
    existing_solar: Tuple[float, ...]   # before degradation
    new_solar_per_kw: Tuple[float, ...] # hourly kWh per kW of new panels
    weight: float


def _empty_table(seasons) -> SeasonTable:
    return {s.value: SeasonTotals() for s in seasons}


# ============================================================
# SCENARIO RUNNER
# ============================================================

class ScenarioRunner:
    """
    Runs the baseline and every provider's with-system scenario over the
    analysis horizon:
    - per year: degradation factors, battery capacity, escalation
    - per period: day simulation → tariff engines → special conditions
    - per provider: savings, cumulative cash flow, payback, NPV, IRR
    """

    def __init__(
        self,
        config: AnalysisConfig,
        providers: Sequence[ProviderConfig],
        seasonal: Optional[Mapping] = None,
        days: Optional[Sequence[DayRecord]] = None,
        solar_days: Optional[Sequence[SolarDay]] = None,
        initial_soc_fraction: Optional[float] = None,
    ):
        self.config = config
        self.providers = list(providers)
        self.seasonal = seasonal
        self.days = days
        self.solar_days = solar_days
        self.initial_soc_fraction = (
            settings.INITIAL_SOC_FRACTION if initial_soc_fraction is None else initial_soc_fraction
        )

        self._validate()
        self.baseline_provider = self._baseline_provider()
        self.battery_model = BatteryModel.from_analysis(config)

    # =================================================
    # VALIDATION
    # =================================================
    def _validate(self) -> None:
        if not self.providers:
            raise InvalidConfiguration("At least one provider is required")
        if self.config.num_years < 1:
            raise InvalidConfiguration(f"num_years must be >= 1 (got {self.config.num_years})")

        ids = [p.id for p in self.providers]
        if len(set(ids)) != len(ids):
            raise InvalidConfiguration(f"Duplicate provider ids: {ids}")

        for p in self.providers:
            if not p.import_rules:
                raise InvalidConfiguration(f"Provider {p.id!r} has no import rules")

        if (self.seasonal is None) == (self.days is None):
            raise InvalidConfiguration("Provide either seasonal averages or historical days")

    def _baseline_provider(self) -> ProviderConfig:
        wanted = self.config.baseline_provider_id
        if wanted is None:
            return self.providers[0]
        for p in self.providers:
            if p.id == wanted:
                return p
        raise InvalidConfiguration(f"Unknown baseline provider: {wanted!r}")

    # =================================================
    # PERIODS
    # =================================================
    def build_periods(self) -> Tuple[List[Period], float]:
        """Representative periods plus the factor that annualises their sum."""
        if self.seasonal is not None:
            return self._seasonal_periods(), 1.0
        periods = self._historical_periods()
        return periods, DAYS_PER_YEAR / len(periods)

    def _seasonal_periods(self) -> List[Period]:
        cfg = self.config
        by_season: Dict[Season, SeasonalAverage] = {}
        for key, avg in self.seasonal.items():
            by_season[parse_season(key)] = avg

        if not by_season:
            raise MissingData("No seasonal averages supplied")
        if Season.MANUAL in by_season and len(by_season) > 1:
            raise InvalidConfiguration("A manual (whole year) average cannot be mixed with seasons")

        peak_hours, shoulder_hours = tou_windows(self.baseline_provider)

        periods = []
        for season in SEASON_ORDER:
            avg = by_season.get(season)
            if avg is None:
                continue

            consumption = expand_consumption(
                avg.avg_peak, avg.avg_shoulder, avg.avg_off_peak, peak_hours, shoulder_hours
            )

            # Measured generation wins over the per-kW assumption
            if avg.avg_solar > 0:
                existing_daily = avg.avg_solar
                per_kw = (
                    avg.avg_solar / cfg.existing_solar_kw
                    if cfg.existing_solar_kw > 0
                    else cfg.manual_solar_profile
                )
            else:
                existing_daily = cfg.existing_solar_kw * cfg.manual_solar_profile
                per_kw = cfg.manual_solar_profile

            periods.append(Period(
                date=SEASON_DATES[season],
                season=season,
                consumption=tuple(consumption),
                existing_solar=tuple(expand_solar(existing_daily, season)),
                new_solar_per_kw=tuple(expand_solar(per_kw, season)),
                weight=SEASON_DAYS[season],
            ))

        return periods

    def _historical_periods(self) -> List[Period]:
        cfg = self.config
        if not self.days:
            raise MissingData("No historical consumption data supplied")

        solar_by_date = None
        if self.solar_days is not None:
            solar_by_date = {s.date: s.hourly for s in self.solar_days}

        periods = []
        skipped = 0
        for day in self.days:
            consumption = validate_profile(day.consumption, f"consumption[{day.date}]")
            feed_in = validate_profile(day.feed_in, f"feed_in[{day.date}]")

            if solar_by_date is None:
                solar = [0.0] * HOURS_PER_DAY
            else:
                raw = solar_by_date.get(day.date)
                if raw is None:
                    skipped += 1
                    continue
                solar = validate_profile(raw, f"solar[{day.date}]")

            season = get_season(day.date)
            periods.append(Period(
                date=day.date,
                season=season,
                consumption=tuple(true_consumption(consumption, solar, feed_in)),
                existing_solar=tuple(solar),
                new_solar_per_kw=tuple(expand_solar(cfg.manual_solar_profile, season)),
                weight=1.0,
            ))

        if skipped:
            logger.debug("Skipped %d day(s) without matching solar data", skipped)
        if not periods:
            raise MissingData("Consumption and solar data have no dates in common")

        return periods

    # =================================================
    # ONE YEAR OF ONE SCENARIO
    # =================================================
    def _hourly_solar(self, period: Period, year: int, with_system: bool) -> List[float]:
        cfg = self.config
        existing_factor = degradation_factor(cfg.solar_degradation, cfg.existing_system_age + year - 1)
        new_factor = degradation_factor(cfg.solar_degradation, year - 1)

        if with_system and cfg.replace_existing_system:
            existing = [0.0] * HOURS_PER_DAY
        else:
            existing = [s * existing_factor for s in period.existing_solar]

        if not with_system:
            return existing

        new_kw = cfg.new_solar_kw * new_factor
        return [e + n * new_kw for e, n in zip(existing, period.new_solar_per_kw)]

    def _run_year(
        self,
        provider: ProviderConfig,
        year: int,
        periods: List[Period],
        annualise: float,
        battery: Optional[BatteryConfig],
        with_system: bool,
        raw: Optional[SeasonTable] = None,
    ) -> Tuple[float, float]:
        """Returns (annual cost, weighted average SOC at 6am in kWh)."""
        engine = CostEngine(provider, self.config.tariff_escalation, self.config.fit_degradation)

        soc = battery.capacity_kwh * self.initial_soc_fraction if battery else 0.0
        total = 0.0
        soc6_total = 0.0
        weight_total = 0.0

        for period in periods:
            solar = self._hourly_solar(period, year, with_system)
            result = DaySimulator(period.consumption, solar, provider, battery).simulate(soc)
            soc = result.ending_soc

            daily = engine.daily_cost(result.breakdown, year, period.date)
            total += daily * period.weight
            soc6_total += result.soc_at_6am * period.weight
            weight_total += period.weight

            if raw is not None:
                raw[period.season.value].add(result.breakdown, period.weight)

        annual = total * annualise + engine.annual_fees(year)
        if not math.isfinite(annual):
            raise ContractViolation(
                f"Non-finite annual cost for provider {provider.id!r} in year {year}"
            )

        avg_soc6 = soc6_total / weight_total if weight_total > 0 else 0.0
        return annual, avg_soc6

    # =================================================
    # MAIN RUNNER
    # =================================================
    def run(self) -> SimulationOutput:
        cfg = self.config
        periods, annualise = self.build_periods()
        seasons = [s for s in SEASON_ORDER if any(p.season == s for p in periods)]

        raw_baseline = _empty_table(seasons)
        raw_system: Dict[str, SeasonTable] = {p.id: _empty_table(seasons) for p in self.providers}

        financials: Dict[str, ProviderFinancials] = {}
        trackers: Dict[str, ROITracker] = {}
        for p in self.providers:
            financials[p.id] = ProviderFinancials(provider_id=p.id)
            trackers[p.id] = ROITracker(
                net_cost=cfg.initial_system_cost - p.rebate,
                discount_rate=cfg.discount_rate,
                loan_term=cfg.loan_term,
                annual_loan_repayment=cfg.annual_loan_repayment,
            )

        baseline_costs: List[float] = []

        for year in range(1, cfg.num_years + 1):
            first = year == 1

            baseline_cost, _ = self._run_year(
                self.baseline_provider, year, periods, annualise,
                battery=None, with_system=False,
                raw=raw_baseline if first else None,
            )

            battery = self.battery_model.for_year(year)

            # whole year first, so a failure never leaves a partial year behind
            year_costs = {}
            for p in self.providers:
                year_costs[p.id] = self._run_year(
                    p, year, periods, annualise,
                    battery=battery, with_system=True,
                    raw=raw_system[p.id] if first else None,
                )

            baseline_costs.append(baseline_cost)
            for p in self.providers:
                annual_cost, soc6 = year_costs[p.id]
                savings = baseline_cost - annual_cost
                net_cf, cumulative, contribution = trackers[p.id].add_year(year, savings)

                financials[p.id].years.append(SimulationYearResult(
                    year=year,
                    baseline_cost=baseline_cost,
                    annual_cost=annual_cost,
                    savings=savings,
                    net_cash_flow=net_cf,
                    cumulative_net_cash_flow=cumulative,
                    npv_contribution=contribution,
                ))

                if first and battery is not None and battery.capacity_kwh > 0:
                    financials[p.id].average_soc_at_6am = soc6 / battery.capacity_kwh * 100.0

        for p in self.providers:
            tracker = trackers[p.id]
            financials[p.id].payback_year = tracker.payback_year
            financials[p.id].npv = tracker.npv
            financials[p.id].irr = tracker.irr()

            logger.info(
                "Provider %s: payback year %s, NPV %.2f, IRR %s",
                p.id, tracker.payback_year, tracker.npv, financials[p.id].irr,
            )

        return SimulationOutput(
            baseline_costs=baseline_costs,
            providers=financials,
            raw_year1_baseline=raw_baseline,
            raw_year1_system=raw_system,
        )


def run_simulation(
    config: AnalysisConfig,
    providers: Sequence[ProviderConfig],
    seasonal: Optional[Mapping] = None,
    days: Optional[Sequence[DayRecord]] = None,
    solar_days: Optional[Sequence[SolarDay]] = None,
) -> SimulationOutput:
    return ScenarioRunner(config, providers, seasonal=seasonal, days=days, solar_days=solar_days).run()


# ============================================================
# HELPER — HOUSEHOLD LOAD BEHIND THE METER
# ============================================================

def true_consumption(
    consumption: Sequence[float],
    solar: Sequence[float],
    feed_in: Sequence[float],
) -> List[float]:
    """Grid import plus the part of the existing panels' output used on site."""
    return [c + max(0.0, s - f) for c, s, f in zip(consumption, solar, feed_in)]


def reconstruct_days(
    days: Sequence[DayRecord],
    solar_days: Optional[Sequence[SolarDay]],
) -> List[DayRecord]:
    """
    Replaces each day's grid import with the household load wherever a
    solar record exists for that date. Days without one are kept as they are.
    """
    solar_by_date = {s.date: s.hourly for s in (solar_days or [])}

    out = []
    for day in days:
        raw = solar_by_date.get(day.date)
        if raw is None:
            out.append(day)
            continue
        consumption = validate_profile(day.consumption, f"consumption[{day.date}]")
        feed_in = validate_profile(day.feed_in, f"feed_in[{day.date}]")
        solar = validate_profile(raw, f"solar[{day.date}]")
        out.append(DayRecord(
            date=day.date,
            consumption=tuple(true_consumption(consumption, solar, feed_in)),
            feed_in=tuple(feed_in),
        ))
    return out


# ============================================================
# HELPER — SEASONAL AVERAGES FROM HISTORICAL DAYS
# ============================================================

def seasonal_averages(
    days: Sequence[DayRecord],
    solar_days: Optional[Sequence[SolarDay]] = None,
    provider: Optional[ProviderConfig] = None,
) -> Dict[Season, SeasonalAverage]:
    """
    Average daily peak/shoulder/off-peak consumption and solar per season.
    Seasons without data are left out.
    """
    peak_hours, shoulder_hours = tou_windows(provider)
    solar_by_date = {s.date: sum(s.hourly) for s in (solar_days or [])}

    sums: Dict[Season, List[float]] = {}
    for day in days:
        consumption = validate_profile(day.consumption, f"consumption[{day.date}]")
        peak = shoulder = off_peak = 0.0
        for h, kwh in enumerate(consumption):
            if h in peak_hours:
                peak += kwh
            elif h in shoulder_hours:
                shoulder += kwh
            else:
                off_peak += kwh

        acc = sums.setdefault(get_season(day.date), [0.0, 0.0, 0.0, 0.0, 0])
        acc[0] += peak
        acc[1] += shoulder
        acc[2] += off_peak
        acc[3] += solar_by_date.get(day.date, 0.0)
        acc[4] += 1

    out = {}
    for season in SEASON_ORDER:
        acc = sums.get(season)
        if not acc:
            continue
        n = acc[4]
        out[season] = SeasonalAverage(
            avg_peak=acc[0] / n,
            avg_shoulder=acc[1] / n,
            avg_off_peak=acc[2] / n,
            avg_solar=acc[3] / n,
        )
    return out


def average_soc_at_6am(
    provider: ProviderConfig,
    battery: Optional[BatteryConfig],
    seasonal: Mapping,
) -> float:
    """
    Morning SOC diagnostic: each season's average day is simulated without
    solar from an empty battery, so only overnight grid charging shows up.
    Days-weighted over the year, as % of capacity.
    """
    if battery is None or battery.capacity_kwh <= 0:
        return 0.0

    peak_hours, shoulder_hours = tou_windows(provider)
    total = 0.0
    for key, avg in (seasonal or {}).items():
        season = parse_season(key)
        if season == Season.MANUAL:
            continue
        consumption = expand_consumption(
            avg.avg_peak, avg.avg_shoulder, avg.avg_off_peak, peak_hours, shoulder_hours
        )
        result = DaySimulator(consumption, [0.0] * HOURS_PER_DAY, provider, battery).simulate(0.0)
        total += result.soc_at_6am * SEASON_DAYS[season]

    return total / DAYS_PER_YEAR / battery.capacity_kwh * 100.0
