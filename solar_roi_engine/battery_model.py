# solar_roi_engine/battery_model.py

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from .types import AnalysisConfig, BatteryConfig


def degradation_factor(rate: float, age: float) -> float:
    """(1 - rate)^age; age below zero counts as a new system."""
    return (1.0 - rate) ** max(0.0, age)


@dataclass
class BatteryModel:
    """
    Nameplate battery of the analysed system.

    Capacity for an analysis year is always recomputed from the nameplate
    values, never from last year's degraded figure.
    """

    new_capacity_kwh: float
    inverter_kw: float
    degradation: float = 0.02
    existing_capacity_kwh: float = 0.0
    existing_age_years: int = 0
    replace_existing: bool = False
    grid_charge_threshold: float = 80.0
    soc_charge_trigger: float = 50.0

    def __post_init__(self) -> None:

        # -----------------------------
        # Bounds
        # -----------------------------
        self.new_capacity_kwh = max(0.0, float(self.new_capacity_kwh))
        self.existing_capacity_kwh = max(0.0, float(self.existing_capacity_kwh))
        self.inverter_kw = max(0.0, float(self.inverter_kw))
        self.degradation = min(max(float(self.degradation), 0.0), 1.0)
        self.existing_age_years = max(0, int(self.existing_age_years))

        self.grid_charge_threshold = min(max(float(self.grid_charge_threshold), 0.0), 100.0)
        self.soc_charge_trigger = min(max(float(self.soc_charge_trigger), 0.0), 100.0)

    @classmethod
    def from_analysis(cls, cfg: AnalysisConfig) -> "BatteryModel":
        return cls(
            new_capacity_kwh=cfg.new_battery_kwh,
            inverter_kw=cfg.new_battery_inverter_kw,
            degradation=cfg.battery_degradation,
            existing_capacity_kwh=cfg.existing_battery_kwh,
            existing_age_years=cfg.existing_system_age,
            replace_existing=cfg.replace_existing_system,
            grid_charge_threshold=cfg.grid_charge_threshold,
            soc_charge_trigger=cfg.soc_charge_trigger,
        )

    def capacity_for_year(self, year: int) -> float:
        new_age = year - 1
        capacity = self.new_capacity_kwh * degradation_factor(self.degradation, new_age)

        if not self.replace_existing:
            existing_age = self.existing_age_years + year - 1
            capacity += self.existing_capacity_kwh * degradation_factor(self.degradation, existing_age)

        return capacity

    def for_year(self, year: int) -> Optional[BatteryConfig]:
        """BatteryConfig for an analysis year, None when there is no storage."""
        capacity = self.capacity_for_year(year)
        if capacity <= 0:
            return None

        return BatteryConfig(
            capacity_kwh=capacity,
            inverter_kw=self.inverter_kw,
            grid_charge_threshold=self.grid_charge_threshold,
            soc_charge_trigger=self.soc_charge_trigger,
        )
