# solar_roi_engine/battery_simulator.py

from __future__ import annotations
from typing import List, Optional, Sequence
import math

from .errors import ContractViolation
from .hours import HOURS_PER_DAY, hours_in_window
from .profile_generator import band_hours
from .types import (
    BatteryConfig,
    DailyBreakdown,
    DayResult,
    FlatRule,
    ProviderConfig,
    TieredRule,
    TimeOfUseRule,
    validate_profile,
)


SOC_REPORT_HOUR = 6


def import_rate_for_hour(provider: ProviderConfig, hour: int) -> float:
    """
    Unescalated import rate governing one hour: the first TOU rule covering
    the hour, otherwise the first flat rule, otherwise the first tier.
    """
    rules = provider.import_rules
    for rule in rules:
        if isinstance(rule, TimeOfUseRule) and hour in rule.hour_set:
            return rule.rate
    for kind in (FlatRule, TieredRule):
        for rule in rules:
            if isinstance(rule, kind):
                return rule.rate
    return 0.0


# ============================================================
# DAY SIMULATOR
# ============================================================

class DaySimulator:
    """
    Simulates one day of energy flows, hour 0 to 23:
    - without battery: plain net metering
    - with battery: solar → house, solar → battery, battery → house,
      and optional scheduled grid charging
    """

    def __init__(
        self,
        consumption: Sequence[float],
        solar: Sequence[float],
        provider: ProviderConfig,
        battery: Optional[BatteryConfig] = None,
    ):
        self.consumption = validate_profile(consumption, "consumption")
        self.solar = validate_profile(solar, "solar")
        self.provider = provider
        self.battery = battery

        if battery is not None:
            if not math.isfinite(battery.capacity_kwh) or battery.capacity_kwh < 0:
                raise ContractViolation(f"Battery capacity must be >= 0 (got {battery.capacity_kwh})")
            if not math.isfinite(battery.inverter_kw) or battery.inverter_kw < 0:
                raise ContractViolation(f"Inverter power must be >= 0 (got {battery.inverter_kw})")

    # -------------------------------------------------
    # ENTRY POINT
    # -------------------------------------------------
    def simulate(self, starting_soc: float = 0.0) -> DayResult:
        if self.battery is None:
            return self.simulate_no_battery()
        return self.simulate_with_battery(starting_soc)

    # -------------------------------------------------
    # WITHOUT BATTERY
    # -------------------------------------------------
    def simulate_no_battery(self) -> DayResult:
        import_p = []
        export_p = []

        for load, pv in zip(self.consumption, self.solar):
            net = load - pv
            import_p.append(max(0.0, net))
            export_p.append(max(0.0, -net))

        return DayResult(
            breakdown=self._breakdown(import_p, export_p, 0.0, 0.0),
            ending_soc=0.0,
            soc_at_6am=0.0,
            soc_profile=tuple([0.0] * HOURS_PER_DAY),
        )

    # -------------------------------------------------
    # WITH BATTERY
    # -------------------------------------------------
    def simulate_with_battery(self, starting_soc: float = 0.0) -> DayResult:
        """
        Per hour, in this order:
        1. solar covers the house first
        2. excess solar charges the battery, the rest is exported
        3. the battery covers remaining load, the rest is imported
        4. inside the grid-charge window, below the SOC trigger, the
           battery is topped up from the grid towards the target SOC
        """
        batt = self.battery
        capacity = batt.capacity_kwh
        power = batt.inverter_kw

        soc = min(max(float(starting_soc), 0.0), capacity)
        soc_at_6am = soc

        grid = self.provider.grid_charge
        window = hours_in_window(grid.start_hour, grid.end_hour) if grid.enabled else frozenset()
        trigger_soc = capacity * batt.soc_charge_trigger / 100.0
        target_soc = capacity * batt.grid_charge_threshold / 100.0

        import_profile: List[float] = []
        export_profile: List[float] = []
        soc_profile: List[float] = []
        grid_charge_kwh = 0.0
        grid_charge_cost = 0.0

        for h, (load_kwh, pv_kwh) in enumerate(zip(self.consumption, self.solar)):
            if h == SOC_REPORT_HOUR:
                soc_at_6am = soc

            # =========================
            # 1) SOLAR → HOUSE
            # =========================
            self_consumption = min(load_kwh, pv_kwh)
            load_remaining = load_kwh - self_consumption
            pv_surplus = pv_kwh - self_consumption

            # =========================
            # 2) SOLAR → BATTERY
            # =========================
            pv_to_batt = 0.0
            if pv_surplus > 0 and soc < capacity:
                pv_to_batt = min(pv_surplus, power, capacity - soc)
                soc += pv_to_batt
            export_kwh = pv_surplus - pv_to_batt

            # =========================
            # 3) BATTERY → HOUSE
            # =========================
            if load_remaining > 0 and soc > 0:
                batt_to_load = min(load_remaining, power, soc)
                soc -= batt_to_load
                load_remaining -= batt_to_load
            import_kwh = load_remaining

            # =========================
            # 4) GRID → BATTERY
            # =========================
            if h in window and soc < trigger_soc:
                headroom = max(0.0, power - pv_to_batt)
                grid_to_batt = min(target_soc - soc, headroom, capacity - soc)
                if grid_to_batt > 0:
                    soc += grid_to_batt
                    import_kwh += grid_to_batt
                    grid_charge_kwh += grid_to_batt
                    grid_charge_cost += grid_to_batt * import_rate_for_hour(self.provider, h)

            import_profile.append(import_kwh)
            export_profile.append(export_kwh)
            soc_profile.append(soc)

        return DayResult(
            breakdown=self._breakdown(import_profile, export_profile, grid_charge_kwh, grid_charge_cost),
            ending_soc=soc,
            soc_at_6am=soc_at_6am,
            soc_profile=tuple(soc_profile),
        )

    # -------------------------------------------------
    # CATEGORISATION
    # -------------------------------------------------
    def _breakdown(self, imports, exports, grid_charge_kwh, grid_charge_cost) -> DailyBreakdown:
        peak_hours, shoulder_hours = band_hours(self.provider.import_rules)

        tier1_limit = None
        if self.provider.export_rules and isinstance(self.provider.export_rules[0], TieredRule):
            tier1_limit = self.provider.export_rules[0].limit

        return DailyBreakdown.from_flows(
            imports,
            exports,
            peak_hours=peak_hours,
            shoulder_hours=shoulder_hours,
            tier1_limit=tier1_limit,
            grid_charge_kwh=grid_charge_kwh,
            grid_charge_cost=grid_charge_cost,
        )


def simulate_day(
    consumption: Sequence[float],
    solar: Sequence[float],
    provider: ProviderConfig,
    battery: Optional[BatteryConfig] = None,
    starting_soc: float = 0.0,
) -> DayResult:
    return DaySimulator(consumption, solar, provider, battery).simulate(starting_soc)
