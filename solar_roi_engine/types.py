# solar_roi_engine/types.py

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple, Union
import math

from .errors import ContractViolation
from .hours import HOURS_PER_DAY, parse_ranges_to_hours


# ============================================================
# HourlyProfile — 24 kWh values, index = hour of day
# ============================================================

HourlyProfile = List[float]


def validate_profile(values: Sequence[float], name: str = "profile") -> List[float]:
    """Returns a float copy of a 24-hour profile or raises ContractViolation."""
    if values is None:
        raise ContractViolation(f"{name}: missing hourly profile")
    if len(values) != HOURS_PER_DAY:
        raise ContractViolation(
            f"{name}: expected {HOURS_PER_DAY} hourly values, got {len(values)}"
        )

    out = []
    for h, v in enumerate(values):
        v = float(v)
        if not math.isfinite(v) or v < 0:
            raise ContractViolation(f"{name}[{h}] must be a finite value >= 0 (got {v})")
        out.append(v)
    return out


# ============================================================
# Tariff rules — TimeOfUse / Tiered / Flat
# ============================================================

@dataclass(frozen=True)
class TimeOfUseRule:
    name: str
    rate: float                 # currency/kWh
    hours: str                  # "7am-10am, 4pm-10pm"
    kind: str = field(default="tou", init=False)
    hour_set: FrozenSet[int] = field(default=frozenset(), init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "hour_set", frozenset(parse_ranges_to_hours(self.hours)))

    def to_dict(self):
        return {"type": self.kind, "name": self.name, "rate": self.rate, "hours": self.hours}


@dataclass(frozen=True)
class TieredRule:
    name: str
    rate: float                 # currency/kWh
    limit: float                # kWh per day claimed by this tier
    kind: str = field(default="tiered", init=False)

    def to_dict(self):
        return {"type": self.kind, "name": self.name, "rate": self.rate, "limit": self.limit}


@dataclass(frozen=True)
class FlatRule:
    name: str
    rate: float                 # currency/kWh
    kind: str = field(default="flat", init=False)

    def to_dict(self):
        return {"type": self.kind, "name": self.name, "rate": self.rate}


TariffRule = Union[TimeOfUseRule, TieredRule, FlatRule]


# ============================================================
# Grid charging & special conditions
# ============================================================

@dataclass(frozen=True)
class GridChargeConfig:
    enabled: bool = False
    start_hour: int = 23
    end_hour: int = 5

    def to_dict(self):
        return {"enabled": self.enabled, "start_hour": self.start_hour, "end_hour": self.end_hour}


class ConditionMetric(str, Enum):
    PEAK_IMPORT = "peak_import"
    NET_GRID_USAGE = "net_grid_usage"
    IMPORT_IN_WINDOW = "import_in_window"


class ComparisonOperator(str, Enum):
    LESS_THAN = "less_than"
    LESS_THAN_OR_EQUAL = "less_than_or_equal_to"
    GREATER_THAN = "greater_than"
    GREATER_THAN_OR_EQUAL = "greater_than_or_equal_to"

    @classmethod
    def parse(cls, value: Union[str, "ComparisonOperator"]) -> "ComparisonOperator":
        if isinstance(value, cls):
            return value
        symbols = {
            "<": cls.LESS_THAN,
            "<=": cls.LESS_THAN_OR_EQUAL,
            ">": cls.GREATER_THAN,
            ">=": cls.GREATER_THAN_OR_EQUAL,
        }
        if value in symbols:
            return symbols[value]
        try:
            return cls(value)
        except ValueError:
            raise ContractViolation(f"Unknown comparison operator: {value!r}")


class ConditionAction(str, Enum):
    FLAT_CREDIT = "flat_credit"
    FLAT_CHARGE = "flat_charge"


@dataclass(frozen=True)
class SpecialCondition:
    """
    Conditional credit/charge, e.g. "$1 credit when net grid usage is
    below 5 kWh on a winter day".
    """
    name: str
    metric: ConditionMetric
    operator: ComparisonOperator
    value: float
    action: ConditionAction
    amount: float
    months: Tuple[int, ...] = ()    # empty = all year
    hours: str = ""                 # only for import_in_window

    def to_dict(self):
        return {
            "name": self.name,
            "months": list(self.months),
            "metric": self.metric.value,
            "hours": self.hours,
            "operator": self.operator.value,
            "value": self.value,
            "action": self.action.value,
            "amount": self.amount,
        }


# ============================================================
# ProviderConfig — one retail plan
# ============================================================

@dataclass(frozen=True)
class ProviderConfig:
    id: str
    name: str
    daily_charge: float = 0.0
    monthly_fee: float = 0.0
    rebate: float = 0.0
    import_rules: Tuple[TariffRule, ...] = ()
    export_rules: Tuple[TariffRule, ...] = ()
    grid_charge: GridChargeConfig = field(default_factory=GridChargeConfig)
    special_conditions: Tuple[SpecialCondition, ...] = ()

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "daily_charge": self.daily_charge,
            "monthly_fee": self.monthly_fee,
            "rebate": self.rebate,
            "import_rules": [r.to_dict() for r in self.import_rules],
            "export_rules": [r.to_dict() for r in self.export_rules],
            "grid_charge": self.grid_charge.to_dict(),
            "special_conditions": [c.to_dict() for c in self.special_conditions],
        }


# ============================================================
# BatteryConfig — capacity after degradation, for one analysis year
# ============================================================

@dataclass(frozen=True)
class BatteryConfig:
    capacity_kwh: float
    inverter_kw: float
    grid_charge_threshold: float = 80.0     # % target SOC for grid charging
    soc_charge_trigger: float = 50.0        # % SOC below which grid charging starts

    def to_dict(self):
        return {
            "capacity_kwh": self.capacity_kwh,
            "inverter_kw": self.inverter_kw,
            "grid_charge_threshold": self.grid_charge_threshold,
            "soc_charge_trigger": self.soc_charge_trigger,
        }


# ============================================================
# DailyBreakdown — output of the day simulator
# ============================================================

@dataclass(frozen=True)
class DailyBreakdown:
    peak_kwh: float
    shoulder_kwh: float
    off_peak_kwh: float
    tier1_export_kwh: float
    tier2_export_kwh: float
    grid_charge_kwh: float
    grid_charge_cost: float
    hourly_imports: Tuple[float, ...]
    hourly_exports: Tuple[float, ...]

    @property
    def total_import_kwh(self) -> float:
        return self.peak_kwh + self.shoulder_kwh + self.off_peak_kwh

    @property
    def total_export_kwh(self) -> float:
        return self.tier1_export_kwh + self.tier2_export_kwh

    @classmethod
    def from_flows(
        cls,
        hourly_imports: Sequence[float],
        hourly_exports: Sequence[float],
        peak_hours: FrozenSet[int] = frozenset(),
        shoulder_hours: FrozenSet[int] = frozenset(),
        tier1_limit: Optional[float] = None,
        grid_charge_kwh: float = 0.0,
        grid_charge_cost: float = 0.0,
    ) -> "DailyBreakdown":
        """
        Folds hourly flows into the TOU/tier totals. Peak wins over
        shoulder, everything else is off-peak; with a tier1 limit the daily
        export is split at that limit, otherwise it is all tier 1.
        """
        peak = shoulder = off_peak = 0.0
        for h, kwh in enumerate(hourly_imports):
            if h in peak_hours:
                peak += kwh
            elif h in shoulder_hours:
                shoulder += kwh
            else:
                off_peak += kwh

        total_export = sum(hourly_exports)
        if tier1_limit is not None:
            tier1 = min(total_export, max(0.0, tier1_limit))
        else:
            tier1 = total_export

        return cls(
            peak_kwh=peak,
            shoulder_kwh=shoulder,
            off_peak_kwh=off_peak,
            tier1_export_kwh=tier1,
            tier2_export_kwh=total_export - tier1,
            grid_charge_kwh=grid_charge_kwh,
            grid_charge_cost=grid_charge_cost,
            hourly_imports=tuple(hourly_imports),
            hourly_exports=tuple(hourly_exports),
        )

    def to_dict(self):
        return {
            "peak_kwh": self.peak_kwh,
            "shoulder_kwh": self.shoulder_kwh,
            "off_peak_kwh": self.off_peak_kwh,
            "tier1_export_kwh": self.tier1_export_kwh,
            "tier2_export_kwh": self.tier2_export_kwh,
            "grid_charge_kwh": self.grid_charge_kwh,
            "grid_charge_cost": self.grid_charge_cost,
            "hourly_imports": list(self.hourly_imports),
            "hourly_exports": list(self.hourly_exports),
        }


@dataclass(frozen=True)
class DayResult:
    breakdown: DailyBreakdown
    ending_soc: float
    soc_at_6am: float = 0.0
    soc_profile: Tuple[float, ...] = ()     # SOC at the end of each hour


# ============================================================
# Rate adjustments over the analysis horizon
# ============================================================

@dataclass(frozen=True)
class EscalationConfig:
    rate: float = 0.0
    year: int = 1


@dataclass(frozen=True)
class FitDegradationConfig:
    start_year: float = 1
    end_year: float = 10
    minimum_rate: float = 0.0

    def to_dict(self):
        return {
            "start_year": self.start_year,
            "end_year": self.end_year,
            "minimum_rate": self.minimum_rate,
        }


# ============================================================
# Input data — seasonal averages or historical days
# ============================================================

@dataclass(frozen=True)
class SeasonalAverage:
    avg_peak: float
    avg_shoulder: float
    avg_off_peak: float
    avg_solar: float = 0.0

    def to_dict(self):
        return {
            "avg_peak": self.avg_peak,
            "avg_shoulder": self.avg_shoulder,
            "avg_off_peak": self.avg_off_peak,
            "avg_solar": self.avg_solar,
        }


@dataclass(frozen=True)
class DayRecord:
    date: str                       # ISO 'YYYY-MM-DD'
    consumption: Tuple[float, ...]  # grid import per hour (kWh)
    feed_in: Tuple[float, ...]      # grid export per hour (kWh)


@dataclass(frozen=True)
class SolarDay:
    date: str
    hourly: Tuple[float, ...]


# ============================================================
# Analysis configuration
# ============================================================

@dataclass(frozen=True)
class AnalysisConfig:
    num_years: int = 15

    solar_degradation: float = 0.005
    battery_degradation: float = 0.02
    tariff_escalation: float = 0.02
    discount_rate: float = 0.0

    loan_term: int = 0
    annual_loan_repayment: float = 0.0
    initial_system_cost: float = 0.0

    fit_degradation: FitDegradationConfig = field(default_factory=FitDegradationConfig)

    # System (nameplate)
    existing_solar_kw: float = 0.0
    existing_system_age: int = 0
    existing_battery_kwh: float = 0.0
    new_solar_kw: float = 0.0
    new_battery_kwh: float = 0.0
    new_battery_inverter_kw: float = 0.0
    replace_existing_system: bool = False

    manual_solar_profile: float = 4.0       # kWh per kW per day
    grid_charge_threshold: float = 80.0
    soc_charge_trigger: float = 50.0

    baseline_provider_id: Optional[str] = None

    def to_dict(self):
        return {
            "num_years": self.num_years,
            "solar_degradation": self.solar_degradation,
            "battery_degradation": self.battery_degradation,
            "tariff_escalation": self.tariff_escalation,
            "discount_rate": self.discount_rate,
            "loan_term": self.loan_term,
            "annual_loan_repayment": self.annual_loan_repayment,
            "initial_system_cost": self.initial_system_cost,
            "fit_degradation": self.fit_degradation.to_dict(),
            "existing_solar_kw": self.existing_solar_kw,
            "existing_system_age": self.existing_system_age,
            "existing_battery_kwh": self.existing_battery_kwh,
            "new_solar_kw": self.new_solar_kw,
            "new_battery_kwh": self.new_battery_kwh,
            "new_battery_inverter_kw": self.new_battery_inverter_kw,
            "replace_existing_system": self.replace_existing_system,
            "manual_solar_profile": self.manual_solar_profile,
            "grid_charge_threshold": self.grid_charge_threshold,
            "soc_charge_trigger": self.soc_charge_trigger,
            "baseline_provider_id": self.baseline_provider_id,
        }


# ============================================================
# Results
# ============================================================

@dataclass
class SimulationYearResult:
    year: int
    baseline_cost: float
    annual_cost: float
    savings: float
    net_cash_flow: float
    cumulative_net_cash_flow: float
    npv_contribution: float

    def to_dict(self):
        return {
            "year": self.year,
            "baseline_cost": self.baseline_cost,
            "annual_cost": self.annual_cost,
            "savings": self.savings,
            "net_cash_flow": self.net_cash_flow,
            "cumulative_net_cash_flow": self.cumulative_net_cash_flow,
            "npv_contribution": self.npv_contribution,
        }


@dataclass
class ProviderFinancials:
    provider_id: str
    years: List[SimulationYearResult] = field(default_factory=list)
    payback_year: Optional[int] = None
    npv: float = 0.0
    irr: Optional[float] = None             # decimal, 0.12 = 12 %
    average_soc_at_6am: float = 0.0         # % of capacity

    @property
    def annual_costs(self) -> List[float]:
        return [y.annual_cost for y in self.years]

    @property
    def annual_savings(self) -> List[float]:
        return [y.savings for y in self.years]

    @property
    def cumulative_savings(self) -> List[float]:
        return [y.cumulative_net_cash_flow for y in self.years]

    def to_dict(self):
        return {
            "provider_id": self.provider_id,
            "years": [y.to_dict() for y in self.years],
            "annual_costs": self.annual_costs,
            "cumulative_savings": self.cumulative_savings,
            "payback_year": self.payback_year,
            "npv": self.npv,
            "irr": self.irr,
            "irr_percent": self.irr * 100.0 if self.irr is not None else None,
            "average_soc_at_6am": self.average_soc_at_6am,
        }


@dataclass
class SeasonTotals:
    days: float = 0.0
    peak_kwh: float = 0.0
    shoulder_kwh: float = 0.0
    off_peak_kwh: float = 0.0
    tier1_export_kwh: float = 0.0
    tier2_export_kwh: float = 0.0
    grid_charge_kwh: float = 0.0
    grid_charge_cost: float = 0.0

    def add(self, breakdown: DailyBreakdown, days: float) -> None:
        self.days += days
        self.peak_kwh += breakdown.peak_kwh * days
        self.shoulder_kwh += breakdown.shoulder_kwh * days
        self.off_peak_kwh += breakdown.off_peak_kwh * days
        self.tier1_export_kwh += breakdown.tier1_export_kwh * days
        self.tier2_export_kwh += breakdown.tier2_export_kwh * days
        self.grid_charge_kwh += breakdown.grid_charge_kwh * days
        self.grid_charge_cost += breakdown.grid_charge_cost * days

    def to_dict(self):
        return {
            "days": self.days,
            "peak_kwh": self.peak_kwh,
            "shoulder_kwh": self.shoulder_kwh,
            "off_peak_kwh": self.off_peak_kwh,
            "tier1_export_kwh": self.tier1_export_kwh,
            "tier2_export_kwh": self.tier2_export_kwh,
            "grid_charge_kwh": self.grid_charge_kwh,
            "grid_charge_cost": self.grid_charge_cost,
        }


SeasonTable = Dict[str, SeasonTotals]


@dataclass
class SimulationOutput:
    baseline_costs: List[float]
    providers: Dict[str, ProviderFinancials]
    raw_year1_baseline: SeasonTable
    raw_year1_system: Dict[str, SeasonTable]

    def to_dict(self):
        return {
            "financials": {
                "baseline_costs": self.baseline_costs,
                "providers": {pid: f.to_dict() for pid, f in self.providers.items()},
            },
            "raw_year1_data": {
                "baseline": {s: t.to_dict() for s, t in self.raw_year1_baseline.items()},
                "system": {
                    pid: {s: t.to_dict() for s, t in table.items()}
                    for pid, table in self.raw_year1_system.items()
                },
            },
        }
