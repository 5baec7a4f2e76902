# solar_roi_engine/engine.py

from __future__ import annotations
from typing import Any, Dict, List, Mapping, Optional, Sequence
import logging

from .errors import InvalidConfiguration, MissingData
from .profile_generator import tou_windows
from .providers import default_providers
from .roi_engine import annual_loan_repayment
from .scenario_runner import ScenarioRunner, average_soc_at_6am, reconstruct_days, seasonal_averages
from .settings import settings
from .sizing import detailed_sizing, generation_per_kw, heuristic_sizing, proposed_solar_by_date
from .types import (
    AnalysisConfig,
    ComparisonOperator,
    ConditionAction,
    ConditionMetric,
    DayRecord,
    FitDegradationConfig,
    FlatRule,
    GridChargeConfig,
    ProviderConfig,
    SeasonalAverage,
    SolarDay,
    SpecialCondition,
    TariffRule,
    TieredRule,
    TimeOfUseRule,
)

logger = logging.getLogger(__name__)


# ============================================================
# PLAIN DICTS → DOMAIN OBJECTS
# ============================================================

def rule_from_dict(data: Mapping[str, Any]) -> TariffRule:
    kind = data.get("type")
    name = data.get("name", "")
    rate = float(data.get("rate", 0.0))

    if kind == "tou":
        return TimeOfUseRule(name, rate, data.get("hours", ""))
    if kind == "tiered":
        return TieredRule(name, rate, float(data.get("limit", 0.0)))
    if kind == "flat":
        return FlatRule(name, rate)

    raise InvalidConfiguration(f"Unknown tariff rule type: {kind!r}")


def condition_from_dict(data: Mapping[str, Any]) -> SpecialCondition:
    try:
        metric = ConditionMetric(data["metric"])
        action = ConditionAction(data["action"])
    except (KeyError, ValueError) as e:
        raise InvalidConfiguration(f"Invalid special condition {data.get('name')!r}: {e}")

    return SpecialCondition(
        name=data.get("name", ""),
        metric=metric,
        operator=ComparisonOperator.parse(data.get("operator")),
        value=float(data.get("value", 0.0)),
        action=action,
        amount=float(data.get("amount", 0.0)),
        months=tuple(int(m) for m in data.get("months") or ()),
        hours=data.get("hours") or "",
    )


def provider_from_dict(data: Mapping[str, Any]) -> ProviderConfig:
    grid = data.get("grid_charge") or {}
    return ProviderConfig(
        id=data["id"],
        name=data.get("name") or data["id"],
        daily_charge=float(data.get("daily_charge", 0.0)),
        monthly_fee=float(data.get("monthly_fee", 0.0)),
        rebate=float(data.get("rebate", 0.0)),
        import_rules=tuple(rule_from_dict(r) for r in data.get("import_rules") or ()),
        export_rules=tuple(rule_from_dict(r) for r in data.get("export_rules") or ()),
        grid_charge=GridChargeConfig(
            enabled=bool(grid.get("enabled", False)),
            start_hour=int(grid.get("start_hour", 23)),
            end_hour=int(grid.get("end_hour", 5)),
        ),
        special_conditions=tuple(
            condition_from_dict(c) for c in data.get("special_conditions") or ()
        ),
    )


def analysis_from_dict(data: Mapping[str, Any]) -> AnalysisConfig:
    """
    Builds the AnalysisConfig. A loan given as amount + interest rate is
    turned into its annual repayment when no repayment is supplied.
    """
    fields = dict(data)
    fit = fields.pop("fit_degradation", None) or {}
    loan_amount = float(fields.pop("loan_amount", 0.0) or 0.0)
    loan_rate = float(fields.pop("loan_interest_rate", 0.0) or 0.0)

    fields.setdefault("num_years", settings.DEFAULT_YEARS)

    if not fields.get("annual_loan_repayment") and loan_amount > 0:
        fields["annual_loan_repayment"] = annual_loan_repayment(
            loan_amount, loan_rate, int(fields.get("loan_term", 0))
        )

    known = set(AnalysisConfig.__dataclass_fields__)
    unknown = set(fields) - known
    if unknown:
        raise InvalidConfiguration(f"Unknown analysis fields: {sorted(unknown)}")

    return AnalysisConfig(fit_degradation=FitDegradationConfig(**fit), **fields)


def seasonal_from_dict(data: Optional[Mapping[str, Any]]) -> Optional[Dict[str, SeasonalAverage]]:
    if data is None:
        return None
    return {
        key: SeasonalAverage(
            avg_peak=float(v.get("avg_peak", 0.0)),
            avg_shoulder=float(v.get("avg_shoulder", 0.0)),
            avg_off_peak=float(v.get("avg_off_peak", 0.0)),
            avg_solar=float(v.get("avg_solar", 0.0)),
        )
        for key, v in data.items()
    }


def days_from_dicts(rows: Optional[Sequence[Mapping[str, Any]]]) -> Optional[List[DayRecord]]:
    if rows is None:
        return None
    return [
        DayRecord(
            date=r["date"],
            consumption=tuple(r.get("consumption") or ()),
            feed_in=tuple(r.get("feed_in") or [0.0] * 24),
        )
        for r in rows
    ]


def solar_days_from_dicts(rows: Optional[Sequence[Mapping[str, Any]]]) -> Optional[List[SolarDay]]:
    if rows is None:
        return None
    return [SolarDay(date=r["date"], hourly=tuple(r.get("hourly") or ())) for r in rows]


# ============================================================
# PUBLIC INTERFACE
# ============================================================

class SolarRoiEngine:
    """
    Public interface of the engine, called by the FastAPI app in main.py.
    Takes plain dicts (request bodies), returns API-ready dicts.
    """

    @staticmethod
    def simulate(payload: Mapping[str, Any]) -> Dict[str, Any]:
        config = analysis_from_dict(payload.get("config") or {})

        provider_rows = payload.get("providers")
        if provider_rows:
            providers = [provider_from_dict(p) for p in provider_rows]
        else:
            providers = default_providers()

        seasonal = seasonal_from_dict(payload.get("seasonal"))
        runner = ScenarioRunner(
            config,
            providers,
            seasonal=seasonal,
            days=days_from_dicts(payload.get("days")),
            solar_days=solar_days_from_dicts(payload.get("solar_days")),
        )
        result = runner.run().to_dict()

        # Morning SOC diagnostic is only defined for seasonal averages
        if seasonal:
            battery = runner.battery_model.for_year(1)
            result["diagnostics"] = {
                "average_soc_at_6am": {
                    p.id: average_soc_at_6am(p, battery, seasonal) for p in providers
                }
            }

        return result

    @staticmethod
    def size(payload: Mapping[str, Any]) -> Dict[str, Any]:
        coverage = float(payload.get("coverage_target", 90.0))
        days = days_from_dicts(payload.get("days"))
        solar_days = solar_days_from_dicts(payload.get("solar_days"))
        provider = provider_from_dict(payload["provider"]) if payload.get("provider") else None
        existing_kw = float(payload.get("existing_solar_kw", 0.0))

        # Sizing works on household load, not on what the meter saw
        if days and solar_days:
            days = reconstruct_days(days, solar_days)

        seasonal = seasonal_from_dict(payload.get("seasonal"))
        if seasonal is None and days:
            seasonal = {s.value: avg for s, avg in seasonal_averages(days, solar_days, provider).items()}
        if not seasonal and not days:
            raise MissingData("Sizing needs seasonal averages or historical days")

        per_kw = generation_per_kw(solar_days, existing_kw)
        heuristic = heuristic_sizing(coverage, seasonal or {}, per_kw)

        detailed = None
        if days:
            solar_by_date = proposed_solar_by_date(
                days,
                solar_days,
                existing_kw,
                float(payload.get("new_solar_kw", 0.0)),
                replace_existing=bool(payload.get("replace_existing_system", False)),
                manual_solar_profile=float(payload.get("manual_solar_profile", 4.0)),
            )
            peak_hours, _ = tou_windows(provider)
            result = detailed_sizing(
                days,
                solar_by_date,
                peak_hours,
                blackout_hours=int(payload.get("blackout_hours", 0)),
                blackout_coverage=float(payload.get("blackout_coverage", 0.0)),
            )
            detailed = result.to_dict() if result else None

        logger.info(
            "Sizing: solar %.1f kW, battery %.1f kWh, inverter %.1f kW",
            heuristic.solar_kw, heuristic.battery_kwh, heuristic.inverter_kw,
        )

        return {"heuristic": heuristic.to_dict(), "detailed": detailed}

    @staticmethod
    def providers() -> List[Dict[str, Any]]:
        return [p.to_dict() for p in default_providers()]
