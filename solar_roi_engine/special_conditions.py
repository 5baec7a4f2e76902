# solar_roi_engine/special_conditions.py

from __future__ import annotations
from typing import Sequence

from .errors import ContractViolation
from .hours import DateLike, month_of, parse_ranges_to_hours
from .types import (
    ComparisonOperator,
    ConditionAction,
    ConditionMetric,
    DailyBreakdown,
    SpecialCondition,
)


def metric_value(condition: SpecialCondition, breakdown: DailyBreakdown) -> float:
    metric = condition.metric

    if metric == ConditionMetric.PEAK_IMPORT:
        return breakdown.peak_kwh
    if metric == ConditionMetric.NET_GRID_USAGE:
        return breakdown.total_import_kwh - breakdown.total_export_kwh
    if metric == ConditionMetric.IMPORT_IN_WINDOW:
        return sum(breakdown.hourly_imports[h] for h in parse_ranges_to_hours(condition.hours))

    raise ContractViolation(f"Unknown condition metric: {metric!r}")


def _compare(value: float, operator: ComparisonOperator, threshold: float) -> bool:
    if operator == ComparisonOperator.LESS_THAN:
        return value < threshold
    if operator == ComparisonOperator.LESS_THAN_OR_EQUAL:
        return value <= threshold
    if operator == ComparisonOperator.GREATER_THAN:
        return value > threshold
    if operator == ComparisonOperator.GREATER_THAN_OR_EQUAL:
        return value >= threshold

    raise ContractViolation(f"Unknown comparison operator: {operator!r}")


def apply_special_conditions(
    daily_cost: float,
    breakdown: DailyBreakdown,
    conditions: Sequence[SpecialCondition],
    day: DateLike,
) -> float:
    """
    Applies conditional credits/charges to a day's cost, e.g. a $1 credit
    when net grid usage stays under 5 kWh in winter. Every condition that
    holds is applied, in order.
    """
    adjusted = daily_cost
    if not conditions:
        return adjusted

    month = month_of(day)

    for condition in conditions:
        if condition.months and month not in condition.months:
            continue

        if not _compare(metric_value(condition, breakdown), condition.operator, condition.value):
            continue

        if condition.action == ConditionAction.FLAT_CREDIT:
            adjusted -= condition.amount
        elif condition.action == ConditionAction.FLAT_CHARGE:
            adjusted += condition.amount
        else:
            raise ContractViolation(f"Unknown condition action: {condition.action!r}")

    return adjusted
