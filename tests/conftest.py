import pytest

from solar_roi_engine.types import (
    AnalysisConfig,
    BatteryConfig,
    FlatRule,
    ProviderConfig,
    SeasonalAverage,
    TieredRule,
    TimeOfUseRule,
)


@pytest.fixture
def flat_provider():
    return ProviderConfig(
        id="flat",
        name="Flat Plan",
        daily_charge=1.0,
        import_rules=(FlatRule("Import", 0.30),),
        export_rules=(FlatRule("FIT", 0.05),),
    )


@pytest.fixture
def tou_provider():
    return ProviderConfig(
        id="tou",
        name="TOU Plan",
        daily_charge=1.2,
        import_rules=(
            TimeOfUseRule("Peak", 0.50, "7am-10am, 4pm-10pm"),
            TimeOfUseRule("Shoulder", 0.25, "10am-4pm"),
            TimeOfUseRule("Off-Peak", 0.15, "10pm-7am"),
        ),
        export_rules=(
            TieredRule("Tier 1", 0.10, 5),
            FlatRule("Tier 2", 0.02),
        ),
    )


@pytest.fixture
def battery():
    return BatteryConfig(capacity_kwh=10.0, inverter_kw=5.0)


@pytest.fixture
def seasonal():
    return {
        "Q1_Summer": SeasonalAverage(avg_peak=8.0, avg_shoulder=5.0, avg_off_peak=7.0),
        "Q2_Autumn": SeasonalAverage(avg_peak=9.0, avg_shoulder=5.0, avg_off_peak=8.0),
        "Q3_Winter": SeasonalAverage(avg_peak=11.0, avg_shoulder=6.0, avg_off_peak=10.0),
        "Q4_Spring": SeasonalAverage(avg_peak=8.5, avg_shoulder=5.0, avg_off_peak=7.5),
    }


@pytest.fixture
def analysis():
    return AnalysisConfig(
        num_years=10,
        new_solar_kw=6.6,
        new_battery_kwh=10.0,
        new_battery_inverter_kw=5.0,
        initial_system_cost=12000.0,
        discount_rate=0.05,
    )
