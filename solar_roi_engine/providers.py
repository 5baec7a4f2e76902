# solar_roi_engine/providers.py

from __future__ import annotations
from typing import List

from .errors import InvalidConfiguration
from .types import (
    ComparisonOperator,
    ConditionAction,
    ConditionMetric,
    FlatRule,
    GridChargeConfig,
    ProviderConfig,
    SpecialCondition,
    TieredRule,
    TimeOfUseRule,
)


# ============================================================
# DEFAULT RETAIL PLANS (rates in $/kWh, charges in $/day)
# ============================================================

def _origin() -> ProviderConfig:
    return ProviderConfig(
        id="Origin",
        name="Origin Energy",
        daily_charge=1.1605,
        import_rules=(
            TimeOfUseRule("Peak", 0.59653, "7am-10am, 4pm-10pm"),
            TimeOfUseRule("Shoulder", 0.29425, "10am-4pm"),
            TimeOfUseRule("Off-Peak", 0.35233, "10pm-7am"),
        ),
        export_rules=(
            TieredRule("Tier 1 FIT", 0.10, 14),
            FlatRule("Tier 2 FIT", 0.02),
        ),
    )


def _globird() -> ProviderConfig:
    return ProviderConfig(
        id="GloBird",
        name="GloBird",
        daily_charge=1.364,
        import_rules=(
            TimeOfUseRule("Peak", 0.528, "3pm-11pm"),
            TimeOfUseRule("Shoulder", 0.396, "7am-11am, 10pm-12am"),
            TimeOfUseRule("Off-Peak", 0.0, "12am-7am, 11am-3pm"),
        ),
        export_rules=(
            TieredRule("Super Export", 0.12, 10),
            TimeOfUseRule("Evening FIT", 0.03, "4pm-9pm"),
            TimeOfUseRule("Shoulder FIT", 0.003, "9pm-10am, 2pm-4pm"),
            TimeOfUseRule("Midday FIT", 0.0, "10am-2pm"),
        ),
        special_conditions=(
            # ZeroHero: $1 back on days with (almost) no evening import
            SpecialCondition(
                name="ZeroHero Credit",
                metric=ConditionMetric.IMPORT_IN_WINDOW,
                operator=ComparisonOperator.LESS_THAN_OR_EQUAL,
                value=0.03,
                action=ConditionAction.FLAT_CREDIT,
                amount=1.00,
                hours="6pm-9pm",
            ),
        ),
    )


def _amber() -> ProviderConfig:
    return ProviderConfig(
        id="Amber",
        name="Amber",
        daily_charge=1.091,
        monthly_fee=25.0,
        import_rules=(FlatRule("Import", 0.355),),
        export_rules=(FlatRule("FIT", 0.007),),
    )


def _agl() -> ProviderConfig:
    return ProviderConfig(
        id="AGL",
        name="AGL Energy",
        daily_charge=1.2,
        import_rules=(
            TimeOfUseRule("Peak", 0.5, "3pm-11pm"),
            TimeOfUseRule("Shoulder", 0.3, "7am-11am, 10pm-12am"),
            TimeOfUseRule("Off-Peak", 0.2, "12am-7am, 11am-3pm"),
        ),
        export_rules=(FlatRule("FIT", 0.05),),
        grid_charge=GridChargeConfig(enabled=False, start_hour=23, end_hour=5),
    )


def default_providers() -> List[ProviderConfig]:
    """The reference plans, in display order."""
    return [_origin(), _globird(), _amber(), _agl()]


def get_provider(provider_id: str) -> ProviderConfig:
    for provider in default_providers():
        if provider.id == provider_id:
            return provider
    raise InvalidConfiguration(f"Unknown provider: {provider_id!r}")
