# solar_roi_engine/cost_engine.py

from __future__ import annotations
from typing import Callable, List, Optional, Sequence
import math

from .errors import ContractViolation
from .hours import DateLike, HOURS_PER_DAY, escalate
from .special_conditions import apply_special_conditions
from .types import (
    DailyBreakdown,
    EscalationConfig,
    FitDegradationConfig,
    FlatRule,
    ProviderConfig,
    TariffRule,
    TieredRule,
    TimeOfUseRule,
)


# Remaining energy below this counts as fully claimed
_EPSILON = 1e-12


# ============================================================
# FIT DEGRADATION
# ============================================================

def get_degraded_fit_rate(base_rate: float, year: float, config: FitDegradationConfig) -> float:
    """
    Feed-in rate for an analysis year.

    Nameplate rate up to the start year, then a straight line down to the
    minimum rate, reached at the end year and held afterwards. An end year
    that is not after the start year means the minimum applies from the
    start year on.
    """
    start = config.start_year
    end = config.end_year

    if year < start:
        return base_rate
    if end <= start or year >= end:
        return config.minimum_rate

    fraction = (year - start) / (end - start)
    return base_rate - (base_rate - config.minimum_rate) * fraction


# ============================================================
# RULE CONSUMPTION (shared by import and export)
# ============================================================

def _hourly(values: Sequence[float], name: str) -> List[float]:
    if values is None or len(values) != HOURS_PER_DAY:
        got = None if values is None else len(values)
        raise ContractViolation(f"{name}: expected {HOURS_PER_DAY} hourly values, got {got}")
    return [float(v) for v in values]


def _apply_rules(
    rules: Sequence[TariffRule],
    hourly: List[float],
    rate_for: Callable[[TariffRule], float],
) -> float:
    """
    Walks the rules in order, each one claiming part of the remaining energy:
    - TOU claims whatever is left in its hours
    - Tiered claims up to its limit of the remaining total, and scales the
      remaining hours down by the same proportion
    - Flat claims everything that is left
    Stops once nothing is left.
    """
    remaining_hourly = list(hourly)
    remaining = sum(remaining_hourly)
    total = 0.0

    for rule in rules:
        if remaining <= _EPSILON:
            break
        if not isinstance(rule, (TimeOfUseRule, TieredRule, FlatRule)):
            raise ContractViolation(f"Unknown tariff rule: {rule!r}")

        rate = rate_for(rule)

        if isinstance(rule, TimeOfUseRule):
            claimed = 0.0
            for h in sorted(rule.hour_set):
                if remaining_hourly[h] > 0:
                    claimed += remaining_hourly[h]
                    remaining_hourly[h] = 0.0
            claimed = min(claimed, remaining)
            total += claimed * rate
            remaining -= claimed

        elif isinstance(rule, TieredRule):
            limit = rule.limit if rule.limit is not None else math.inf
            claimed = min(remaining, max(0.0, limit))
            total += claimed * rate
            before = remaining
            remaining -= claimed
            factor = remaining / before if before > 0 else 0.0
            remaining_hourly = [v * factor for v in remaining_hourly]

        else:
            total += remaining * rate
            remaining = 0.0
            remaining_hourly = [0.0] * HOURS_PER_DAY

        remaining = max(0.0, remaining)

    return total


# ============================================================
# IMPORT COST ENGINE
# ============================================================

def calculate_import_cost(
    rules: Sequence[TariffRule],
    breakdown: DailyBreakdown,
    escalation: Optional[EscalationConfig] = None,
) -> float:
    """Import cost of one day; each rate escalated to the analysis year."""
    escalation = escalation or EscalationConfig()
    hourly = _hourly(breakdown.hourly_imports, "hourly_imports")

    return _apply_rules(
        rules,
        hourly,
        lambda rule: escalate(rule.rate, escalation.rate, escalation.year),
    )


# ============================================================
# EXPORT CREDIT ENGINE
# ============================================================

def calculate_export_credit(
    rules: Sequence[TariffRule],
    breakdown: DailyBreakdown,
    year: float = 1,
    fit_config: Optional[FitDegradationConfig] = None,
) -> float:
    """Export credit of one day; each rate degraded to the analysis year."""
    fit_config = fit_config or FitDegradationConfig()
    hourly = _hourly(breakdown.hourly_exports, "hourly_exports")

    return _apply_rules(
        rules,
        hourly,
        lambda rule: get_degraded_fit_rate(rule.rate, year, fit_config),
    )


# ============================================================
# COST ENGINE — one provider, one day
# ============================================================

class CostEngine:
    def __init__(
        self,
        provider: ProviderConfig,
        escalation_rate: float = 0.0,
        fit_config: Optional[FitDegradationConfig] = None,
    ):
        self.provider = provider
        self.escalation_rate = escalation_rate
        self.fit_config = fit_config or FitDegradationConfig()

    def energy_cost(self, breakdown: DailyBreakdown, year: int) -> float:
        imp = calculate_import_cost(
            self.provider.import_rules,
            breakdown,
            EscalationConfig(rate=self.escalation_rate, year=year),
        )
        exp = calculate_export_credit(
            self.provider.export_rules,
            breakdown,
            year,
            self.fit_config,
        )
        return imp - exp

    def daily_cost(self, breakdown: DailyBreakdown, year: int, day: DateLike) -> float:
        """
        Supply charge + import cost - export credit, then the provider's
        special conditions. Grid charging is already part of the import.
        """
        supply = escalate(self.provider.daily_charge, self.escalation_rate, year)
        cost = supply + self.energy_cost(breakdown, year)

        return apply_special_conditions(
            cost,
            breakdown,
            self.provider.special_conditions,
            day,
        )

    def annual_fees(self, year: int) -> float:
        return escalate(self.provider.monthly_fee * 12.0, self.escalation_rate, year)
