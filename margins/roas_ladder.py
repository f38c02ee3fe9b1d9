"""ROAS ladder: profitability of one price across a range of ad efficiencies.

The price is solved with advertising left out, then every integer ROAS
from 1 up to ``max_roas`` is tried with ``ads = price / roas``. Each rung
is measured two ways: platform-only (commission, fixed fee, product cost
and ads) and full cost (also tax and operational costs).
"""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field, replace

import numpy as np
import pandas as pd

from .domain_models import CalculationInputs
from .fee_tiers import DEFAULT_TIER_TABLE, FeeTierTable
from .pricing_engine import evaluate

LADDER_MAX_ROAS = 30
MINIMUM_NET_MARGIN = 10.0
IDEAL_NET_MARGIN = 15.0


@dataclass
class RoasRow:
    roas: int
    ads_amount: float
    profit_platform_only: float
    profit_full_costs: float
    gross_margin_platform_only: float
    gross_margin_full_costs: float
    net_margin_platform_only: float
    net_margin_full_costs: float
    variant: str  # danger / warning / success


@dataclass
class RoasMarkers:
    break_even: int | None
    minimum: int | None
    ideal: int | None


@dataclass
class RoasLadder:
    price: float
    base_profit: float
    base_gross_margin: float
    base_net_margin: float
    rows: list[RoasRow] = field(default_factory=list)
    current_roas: int | None = None


def _safe_ratio(numerator: np.ndarray, denominator: np.ndarray) -> np.ndarray:
    return np.divide(
        numerator * 100,
        denominator,
        out=np.zeros_like(numerator, dtype=float),
        where=denominator > 0,
    )


def build_roas_ladder(
    inputs: CalculationInputs,
    table: FeeTierTable = DEFAULT_TIER_TABLE,
    max_roas: int = LADDER_MAX_ROAS,
    current_roas_7d: float | None = None,
) -> RoasLadder:
    result = evaluate(replace(inputs, ads_percent=0), table)
    price = result.final_price

    if not result.is_valid:
        return RoasLadder(price=0.0, base_profit=0.0, base_gross_margin=0.0, base_net_margin=0.0)

    fees = result.applied_fees
    fixed_fee = fees.fixed_fee
    commission_amount = price * (fees.commission_percent / 100)
    tax_amount = price * (inputs.effective_tax_percent / 100)
    op_percent_amount = price * (inputs.op_cost_percent / 100)

    base_profit = (
        price
        - commission_amount
        - fixed_fee
        - inputs.cost_product
        - inputs.op_cost_absolute
        - tax_amount
        - op_percent_amount
    )
    # Everything but the product cost and ads comes off first.
    base_before_product = (
        price
        - commission_amount
        - fixed_fee
        - tax_amount
        - inputs.op_cost_absolute
        - op_percent_amount
    )
    base_net_margin = (
        base_profit / base_before_product * 100 if base_before_product > 0 else 0.0
    )

    roas = np.arange(1, max_roas + 1)
    ads = price / roas
    prices = np.full(roas.shape, price, dtype=float)

    platform_base = price - commission_amount - fixed_fee
    profit_platform = platform_base - inputs.cost_product - ads
    net_margin_platform = _safe_ratio(profit_platform, platform_base - ads)
    gross_margin_platform = _safe_ratio(profit_platform, prices)

    profit_full = base_profit - ads
    net_margin_full = _safe_ratio(profit_full, base_before_product - ads)
    gross_margin_full = _safe_ratio(profit_full, prices)

    variants = np.select(
        [profit_platform < 0, net_margin_platform >= IDEAL_NET_MARGIN],
        ["danger", "success"],
        default="warning",
    )

    rows = [
        RoasRow(
            roas=int(roas[i]),
            ads_amount=float(ads[i]),
            profit_platform_only=float(profit_platform[i]),
            profit_full_costs=float(profit_full[i]),
            gross_margin_platform_only=float(gross_margin_platform[i]),
            gross_margin_full_costs=float(gross_margin_full[i]),
            net_margin_platform_only=float(net_margin_platform[i]),
            net_margin_full_costs=float(net_margin_full[i]),
            variant=str(variants[i]),
        )
        for i in range(len(roas))
    ]

    current_roas = None
    if current_roas_7d is not None and current_roas_7d > 0:
        current_roas = math.floor(current_roas_7d)

    return RoasLadder(
        price=price,
        base_profit=base_profit,
        base_gross_margin=base_profit / price * 100,
        base_net_margin=base_net_margin,
        rows=rows,
        current_roas=current_roas,
    )


def ladder_markers(rows: list[RoasRow], platform_only: bool = False) -> RoasMarkers:
    """First ROAS that breaks even, reaches the minimum and reaches the ideal net margin."""

    break_even = minimum = ideal = None

    for row in rows:
        if platform_only:
            profit, net_margin = row.profit_platform_only, row.net_margin_platform_only
        else:
            profit, net_margin = row.profit_full_costs, row.net_margin_full_costs

        if break_even is None and profit >= 0:
            break_even = row.roas
        if minimum is None and net_margin >= MINIMUM_NET_MARGIN:
            minimum = row.roas
        if ideal is None and net_margin >= IDEAL_NET_MARGIN:
            ideal = row.roas

    return RoasMarkers(break_even=break_even, minimum=minimum, ideal=ideal)


def ladder_frame(ladder: RoasLadder) -> pd.DataFrame:
    """Return the ladder rows as a DataFrame indexed by ROAS."""

    columns = [name for name in RoasRow.__dataclass_fields__]
    frame = pd.DataFrame([asdict(row) for row in ladder.rows], columns=columns)
    return frame.set_index("roas")


__all__ = [
    "IDEAL_NET_MARGIN",
    "LADDER_MAX_ROAS",
    "MINIMUM_NET_MARGIN",
    "RoasLadder",
    "RoasMarkers",
    "RoasRow",
    "build_roas_ladder",
    "ladder_frame",
    "ladder_markers",
]
