import dataclasses

import pytest

from solar_roi_engine.errors import InvalidConfiguration, MissingData
from solar_roi_engine.scenario_runner import (
    ScenarioRunner,
    average_soc_at_6am,
    reconstruct_days,
    run_simulation,
    seasonal_averages,
)
from solar_roi_engine.hours import Season
from solar_roi_engine.types import (
    AnalysisConfig,
    BatteryConfig,
    DayRecord,
    GridChargeConfig,
    SeasonalAverage,
    SolarDay,
)

from generators import build_dates, flat_profile


MANUAL_24KWH = {"Manual": SeasonalAverage(avg_peak=9.0, avg_shoulder=6.0, avg_off_peak=9.0)}


def test_baseline_cost_manual_average(flat_provider):
    cfg = AnalysisConfig(num_years=1, tariff_escalation=0.0)
    out = run_simulation(cfg, [flat_provider], seasonal=MANUAL_24KWH)

    # 24 kWh/day at 0.30 plus 1.00 supply, 365 days
    assert out.baseline_costs == [pytest.approx(8.2 * 365)]


def test_no_system_means_no_savings(tou_provider, seasonal):
    cfg = AnalysisConfig(num_years=3)
    out = run_simulation(cfg, [tou_provider], seasonal=seasonal)

    fin = out.providers["tou"]
    assert fin.annual_savings == [0.0, 0.0, 0.0]
    assert fin.payback_year == 1


def test_baseline_escalates_without_solar(tou_provider, seasonal):
    cfg = AnalysisConfig(num_years=2, tariff_escalation=0.02)
    out = run_simulation(cfg, [tou_provider], seasonal=seasonal)

    assert out.baseline_costs[1] == pytest.approx(out.baseline_costs[0] * 1.02)


def test_solar_and_battery_save_money(tou_provider, seasonal, analysis):
    out = run_simulation(analysis, [tou_provider], seasonal=seasonal)
    fin = out.providers["tou"]

    assert len(fin.years) == 10
    assert all(s > 0 for s in fin.annual_savings)
    assert 0.0 <= fin.average_soc_at_6am <= 100.0
    assert fin.irr is not None


def test_payback_is_first_year_reaching_net_cost(tou_provider, seasonal, analysis):
    fin = run_simulation(analysis, [tou_provider], seasonal=seasonal).providers["tou"]
    cumulative = fin.cumulative_savings

    if fin.payback_year is None:
        assert cumulative[-1] < 12000.0
    else:
        assert cumulative[fin.payback_year - 1] >= 12000.0
        assert all(c < 12000.0 for c in cumulative[:fin.payback_year - 1])


def test_rebate_lowers_net_cost(tou_provider, seasonal, analysis):
    with_rebate = dataclasses.replace(tou_provider, id="rebate", rebate=2000.0)
    out = run_simulation(analysis, [tou_provider, with_rebate], seasonal=seasonal)

    assert out.providers["rebate"].npv == pytest.approx(out.providers["tou"].npv + 2000.0)


def test_loan_reduces_net_cash_flow_within_term(tou_provider, seasonal, analysis):
    cfg = dataclasses.replace(analysis, loan_term=2, annual_loan_repayment=500.0)
    years = run_simulation(cfg, [tou_provider], seasonal=seasonal).providers["tou"].years

    assert years[0].net_cash_flow == pytest.approx(years[0].savings - 500.0)
    assert years[1].net_cash_flow == pytest.approx(years[1].savings - 500.0)
    assert years[2].net_cash_flow == pytest.approx(years[2].savings)


def test_run_is_idempotent(tou_provider, flat_provider, seasonal, analysis):
    first = run_simulation(analysis, [tou_provider, flat_provider], seasonal=seasonal).to_dict()
    second = run_simulation(analysis, [tou_provider, flat_provider], seasonal=seasonal).to_dict()

    assert first == second


def test_raw_year1_tables(tou_provider, flat_provider, seasonal, analysis):
    out = run_simulation(analysis, [tou_provider, flat_provider], seasonal=seasonal).to_dict()
    raw = out["raw_year1_data"]

    assert set(raw["baseline"]) == {"Summer", "Autumn", "Winter", "Spring"}
    assert raw["baseline"]["Winter"]["days"] == 92
    assert set(raw["system"]) == {"tou", "flat"}
    assert raw["system"]["tou"]["Summer"]["tier1_export_kwh"] > 0


def test_measured_solar_overrides_assumed_yield(flat_provider):
    # assumed yield: 5 kW x 4 kWh/kW = 20 kWh/day, measured: 30 kWh/day
    cfg = AnalysisConfig(num_years=1, existing_solar_kw=5.0)
    sunny = {"Manual": SeasonalAverage(9.0, 6.0, 9.0, avg_solar=30.0)}

    plain = run_simulation(cfg, [flat_provider], seasonal=MANUAL_24KWH).baseline_costs[0]
    with_solar = run_simulation(cfg, [flat_provider], seasonal=sunny).baseline_costs[0]

    assert with_solar < plain


def test_baseline_provider_selection(tou_provider, flat_provider):
    cfg = AnalysisConfig(num_years=1, tariff_escalation=0.0, baseline_provider_id="flat")
    out = run_simulation(cfg, [tou_provider, flat_provider], seasonal=MANUAL_24KWH)

    assert out.baseline_costs[0] == pytest.approx(8.2 * 365)


# ------------------------------------------------------------
# Historical data
# ------------------------------------------------------------
def test_historical_days_annualised(flat_provider):
    dates = build_dates(2)
    days = [DayRecord(d, tuple(flat_profile(1.0)), tuple(flat_profile(0.0))) for d in dates]
    solar = [SolarDay(dates[0], tuple(flat_profile(0.0)))]

    cfg = AnalysisConfig(num_years=1, tariff_escalation=0.0)
    out = run_simulation(cfg, [flat_provider], days=days, solar_days=solar)

    # second day has no solar record and is skipped, the first stands for the year
    assert out.baseline_costs[0] == pytest.approx(8.2 * 365)
    assert out.raw_year1_baseline["Summer"].days == 1


def test_historical_consumption_is_reconstructed(flat_provider):
    date = "2025-01-05"
    consumption = flat_profile(1.0)
    consumption[12] = 0.0
    feed_in = flat_profile(0.0)
    feed_in[12] = 2.0
    pv = flat_profile(0.0)
    pv[12] = 3.0

    cfg = AnalysisConfig(num_years=1)
    out = run_simulation(
        cfg, [flat_provider],
        days=[DayRecord(date, tuple(consumption), tuple(feed_in))],
        solar_days=[SolarDay(date, tuple(pv))],
    )

    summer = out.raw_year1_baseline["Summer"]
    assert summer.tier1_export_kwh == pytest.approx(2.0)
    assert summer.off_peak_kwh + summer.peak_kwh + summer.shoulder_kwh == pytest.approx(23.0)


def test_historical_without_overlap_is_missing_data(flat_provider):
    days = [DayRecord("2025-01-01", tuple(flat_profile(1.0)), tuple(flat_profile(0.0)))]
    solar = [SolarDay("2025-02-01", tuple(flat_profile(0.0)))]

    with pytest.raises(MissingData):
        run_simulation(AnalysisConfig(num_years=1), [flat_provider], days=days, solar_days=solar)


def test_empty_inputs_are_missing_data(flat_provider):
    with pytest.raises(MissingData):
        run_simulation(AnalysisConfig(num_years=1), [flat_provider], days=[])
    with pytest.raises(MissingData):
        run_simulation(AnalysisConfig(num_years=1), [flat_provider], seasonal={})


# ------------------------------------------------------------
# Configuration errors
# ------------------------------------------------------------
def test_invalid_configurations(flat_provider, tou_provider):
    cfg = AnalysisConfig(num_years=1)
    no_rules = dataclasses.replace(flat_provider, id="empty", import_rules=())

    with pytest.raises(InvalidConfiguration):
        ScenarioRunner(cfg, [], seasonal=MANUAL_24KWH)
    with pytest.raises(InvalidConfiguration):
        ScenarioRunner(cfg, [flat_provider])
    with pytest.raises(InvalidConfiguration):
        ScenarioRunner(cfg, [flat_provider], seasonal=MANUAL_24KWH, days=[])
    with pytest.raises(InvalidConfiguration):
        ScenarioRunner(cfg, [flat_provider, flat_provider], seasonal=MANUAL_24KWH)
    with pytest.raises(InvalidConfiguration):
        ScenarioRunner(cfg, [no_rules], seasonal=MANUAL_24KWH)
    with pytest.raises(InvalidConfiguration):
        ScenarioRunner(AnalysisConfig(num_years=0), [flat_provider], seasonal=MANUAL_24KWH)
    with pytest.raises(InvalidConfiguration):
        ScenarioRunner(dataclasses.replace(cfg, baseline_provider_id="nope"), [tou_provider], seasonal=MANUAL_24KWH)


def test_manual_cannot_mix_with_seasons(flat_provider, seasonal):
    mixed = dict(seasonal)
    mixed.update(MANUAL_24KWH)

    with pytest.raises(InvalidConfiguration):
        run_simulation(AnalysisConfig(num_years=1), [flat_provider], seasonal=mixed)


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------
def test_seasonal_averages_from_days():
    days = [
        DayRecord("2025-01-01", tuple(flat_profile(1.0)), tuple(flat_profile(0.0))),
        DayRecord("2025-01-02", tuple(flat_profile(2.0)), tuple(flat_profile(0.0))),
        DayRecord("2025-07-01", tuple(flat_profile(1.0)), tuple(flat_profile(0.0))),
    ]
    solar = [SolarDay("2025-01-01", tuple(flat_profile(0.5)))]

    out = seasonal_averages(days, solar)

    assert set(out) == {Season.SUMMER, Season.WINTER}
    summer = out[Season.SUMMER]
    assert summer.avg_peak == pytest.approx(9 * 1.5)
    assert summer.avg_shoulder == pytest.approx(6 * 1.5)
    assert summer.avg_off_peak == pytest.approx(9 * 1.5)
    assert summer.avg_solar == pytest.approx(6.0)


def test_average_soc_at_6am(flat_provider, seasonal):
    battery = BatteryConfig(10.0, 5.0)

    assert average_soc_at_6am(flat_provider, battery, seasonal) == 0.0
    assert average_soc_at_6am(flat_provider, None, seasonal) == 0.0

    charging = dataclasses.replace(flat_provider, grid_charge=GridChargeConfig(enabled=True, start_hour=0, end_hour=5))
    value = average_soc_at_6am(charging, battery, seasonal)
    assert 0.0 < value <= 100.0


# ------------------------------------------------------------
# Battery state across periods and years
# ------------------------------------------------------------
def _evening_days():
    # all load at midnight: 2 kWh on the first day, 3 kWh on the second
    first = [0.0] * 24
    first[0] = 2.0
    second = [0.0] * 24
    second[0] = 3.0
    return [
        DayRecord("2025-01-01", tuple(first), tuple(flat_profile(0.0))),
        DayRecord("2025-01-02", tuple(second), tuple(flat_profile(0.0))),
    ]


def _battery_only(num_years=1):
    return AnalysisConfig(
        num_years=num_years,
        tariff_escalation=0.0,
        battery_degradation=0.0,
        new_battery_kwh=10.0,
        new_battery_inverter_kw=5.0,
    )


def _system_imports(out, provider_id):
    summer = out.raw_year1_system[provider_id]["Summer"]
    return summer.peak_kwh + summer.shoulder_kwh + summer.off_peak_kwh


def test_soc_carries_over_between_days(flat_provider):
    # 4 kWh to start: day 1 uses 2, day 2 gets the remaining 2 and imports 1
    out = ScenarioRunner(
        _battery_only(), [flat_provider], days=_evening_days(), initial_soc_fraction=0.4,
    ).run()
    assert _system_imports(out, "flat") == pytest.approx(1.0)

    empty = ScenarioRunner(
        _battery_only(), [flat_provider], days=_evening_days(), initial_soc_fraction=0.0,
    ).run()
    assert _system_imports(empty, "flat") == pytest.approx(5.0)


def test_soc_is_reseeded_every_year(flat_provider):
    out = ScenarioRunner(
        _battery_only(num_years=2), [flat_provider], days=_evening_days(), initial_soc_fraction=0.4,
    ).run()

    # the battery ends year 1 empty, so year 2 only matches if it starts from 4 kWh again
    costs = out.providers["flat"].annual_costs
    assert costs[1] == pytest.approx(costs[0])


def test_each_provider_keeps_its_own_soc(flat_provider):
    charging = dataclasses.replace(
        flat_provider, id="charging",
        grid_charge=GridChargeConfig(enabled=True, start_hour=0, end_hour=1),
    )

    alone = ScenarioRunner(
        _battery_only(), [flat_provider], days=_evening_days(), initial_soc_fraction=0.4,
    ).run()
    together = ScenarioRunner(
        _battery_only(), [flat_provider, charging], days=_evening_days(), initial_soc_fraction=0.4,
    ).run()

    assert _system_imports(together, "flat") == pytest.approx(_system_imports(alone, "flat"))
    assert together.providers["flat"].annual_costs == pytest.approx(alone.providers["flat"].annual_costs)
    assert _system_imports(together, "charging") > _system_imports(together, "flat")


def test_reconstruct_days_adds_self_consumed_solar():
    imports = flat_profile(1.0)
    imports[12] = 0.0
    feed_in = flat_profile(0.0)
    feed_in[12] = 2.0
    pv = flat_profile(0.0)
    pv[12] = 3.0
    days = [
        DayRecord("2025-01-05", tuple(imports), tuple(feed_in)),
        DayRecord("2025-01-06", tuple(imports), tuple(feed_in)),
    ]

    out = reconstruct_days(days, [SolarDay("2025-01-05", tuple(pv))])

    assert out[0].consumption[12] == pytest.approx(1.0)
    assert sum(out[0].consumption) == pytest.approx(24.0)
    # no solar record, left as metered
    assert out[1] is days[1]
