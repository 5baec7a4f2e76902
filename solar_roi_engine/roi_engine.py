# solar_roi_engine/roi_engine.py

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional, Sequence
import math


IRR_MAX_ITERATIONS = 100
IRR_TOLERANCE = 1e-6


def npv(rate: float, cash_flows: Sequence[float]) -> float:
    """Net present value; cash_flows[0] falls at t=0 and is not discounted."""
    return sum(cf / (1.0 + rate) ** t for t, cf in enumerate(cash_flows))


def calculate_irr(cash_flows: Sequence[float], guess: float = 0.1) -> Optional[float]:
    """
    Internal rate of return via Newton-Raphson.

    Returns the rate as a decimal, or None when there is nothing to earn
    back (no positive flow after t=0) or the iteration does not converge.
    """
    if len(cash_flows) < 2 or not any(cf > 0 for cf in cash_flows[1:]):
        return None

    rate = guess
    for _ in range(IRR_MAX_ITERATIONS):
        if rate <= -1.0:
            return None

        value = 0.0
        derivative = 0.0
        for t, cf in enumerate(cash_flows):
            value += cf / (1.0 + rate) ** t
            if t > 0:
                derivative -= t * cf / (1.0 + rate) ** (t + 1)

        if derivative == 0:
            return None

        new_rate = rate - value / derivative
        if not math.isfinite(new_rate):
            return None
        if abs(new_rate - rate) < IRR_TOLERANCE:
            return new_rate
        rate = new_rate

    return None


def annual_loan_repayment(amount: float, annual_rate: float, term_years: int) -> float:
    """Yearly total of a monthly annuity repayment; 0 without a valid loan."""
    if amount <= 0 or annual_rate <= 0 or term_years <= 0:
        return 0.0

    i = annual_rate / 12.0
    n = term_years * 12
    monthly = amount * i * (1.0 + i) ** n / ((1.0 + i) ** n - 1.0)
    return monthly * 12.0


# ============================================================
# ROI TRACKER — cumulative cash flow, payback, NPV
# ============================================================

@dataclass
class ROITracker:
    """
    Accumulates one provider's yearly results:
    - net cash flow = savings - loan repayment (within the loan term)
    - payback = first year cumulative net cash flow >= net system cost
    - npv = discounted net cash flows - net system cost
    """
    net_cost: float
    discount_rate: float = 0.0
    loan_term: int = 0
    annual_loan_repayment: float = 0.0

    cumulative: float = 0.0
    payback_year: Optional[int] = None
    discounted_total: float = 0.0
    savings: List[float] = field(default_factory=list)

    def add_year(self, year: int, savings: float):
        """Returns (net_cash_flow, cumulative, npv_contribution)."""
        repayment = self.annual_loan_repayment if year <= self.loan_term else 0.0
        net_cash_flow = savings - repayment

        self.cumulative += net_cash_flow
        if self.payback_year is None and self.cumulative >= self.net_cost:
            self.payback_year = year

        contribution = net_cash_flow / (1.0 + self.discount_rate) ** year
        self.discounted_total += contribution
        self.savings.append(savings)

        return net_cash_flow, self.cumulative, contribution

    @property
    def npv(self) -> float:
        return self.discounted_total - self.net_cost

    def irr(self) -> Optional[float]:
        return calculate_irr([-self.net_cost] + self.savings)
