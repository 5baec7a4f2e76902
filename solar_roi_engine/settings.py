# solar_roi_engine/settings.py

from __future__ import annotations
import os

from dotenv import load_dotenv

load_dotenv()


# ============================================================
# Analysis defaults (same values the calculator form starts with)
# ============================================================

DEFAULT_NUM_YEARS = 15
DEFAULT_TARIFF_ESCALATION = 0.02
DEFAULT_SOLAR_DEGRADATION = 0.005
DEFAULT_BATTERY_DEGRADATION = 0.02

DEFAULT_FIT_DEGRADATION_START_YEAR = 1
DEFAULT_FIT_DEGRADATION_END_YEAR = 10
DEFAULT_FIT_MINIMUM_RATE = 0.0

DEFAULT_GRID_CHARGE_THRESHOLD = 80.0   # % target SOC
DEFAULT_SOC_CHARGE_TRIGGER = 50.0      # % SOC below which grid charging starts

DEFAULT_MANUAL_SOLAR_PROFILE = 4.0     # kWh per kW per day
DEFAULT_COVERAGE_TARGET = 90.0         # % of annual consumption


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


class Settings:
    CORS_ORIGINS = [
        o.strip()
        for o in os.getenv("ROI_CORS_ORIGINS", "*").split(",")
        if o.strip()
    ]
    LOG_LEVEL = os.getenv("ROI_LOG_LEVEL", "INFO").upper()

    DEFAULT_YEARS = int(os.getenv("ROI_DEFAULT_YEARS", str(DEFAULT_NUM_YEARS)))

    # SOC at the start of every analysis year, as a fraction of capacity
    INITIAL_SOC_FRACTION = _float_env("ROI_INITIAL_SOC_FRACTION", 0.5)


settings = Settings()
