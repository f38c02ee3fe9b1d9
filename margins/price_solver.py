"""Sale price calculation for each pricing mode.

Three modes are closed-form. ``NET_MARGIN_DYNAMIC`` measures the margin
against the net base (price minus commission and fixed fee), so the price
shows up on both sides of the equation and has to be found numerically.

The net margin grows with price whenever there are fixed costs, so the
root is bracketed first (the guess starts at twice the fixed costs and is
doubled or halved until the margin error changes sign) and then narrowed
with the Illinois variant of false position. A guess whose net base is not
positive is treated as "price too low". The search stops as soon as the
margin is within ``NET_MARGIN_TOLERANCE`` of the target, or after
``MAX_ITERATIONS`` margin evaluations with the last guess returned as a
best effort.
"""
from __future__ import annotations

import logging
import math
from typing import Callable

from .domain_models import CalculationInputs, PricingMode, SolveOutcome

logger = logging.getLogger(__name__)

NET_MARGIN_TOLERANCE = 0.0001  # 0.01 percentage points, as a ratio
MAX_ITERATIONS = 100


def _solve_price_fixed(inputs: CalculationInputs) -> SolveOutcome:
    return SolveOutcome(price=inputs.target_value)


def _solve_profit_fixed(inputs: CalculationInputs) -> SolveOutcome:
    denominator = 1 - inputs.percent_costs / 100 - inputs.op_cost_percent / 100
    if denominator <= 0:
        return SolveOutcome(price=0.0)
    return SolveOutcome(price=(inputs.fixed_costs + inputs.target_value) / denominator)


def _solve_gross_margin_fixed(inputs: CalculationInputs) -> SolveOutcome:
    denominator = (
        1
        - inputs.percent_costs / 100
        - inputs.op_cost_percent / 100
        - inputs.target_value / 100
    )
    if denominator <= 0:
        return SolveOutcome(price=0.0)
    return SolveOutcome(price=inputs.fixed_costs / denominator)


def net_margin_error(price: float, inputs: CalculationInputs, target_ratio: float) -> float | None:
    """Net margin at ``price`` minus the target, or None when the net base is not positive."""

    commission_amount = price * (inputs.commission_percent / 100)
    net_base = price - commission_amount - inputs.fixed_cost_or_shipping
    if net_base <= 0:
        return None

    tax_amount = price * (inputs.effective_tax_percent / 100)
    ads_amount = price * (inputs.ads_percent / 100)
    op_amount = price * (inputs.op_cost_percent / 100)

    net_profit = (
        net_base
        - inputs.cost_product
        - inputs.op_cost_absolute
        - tax_amount
        - ads_amount
        - op_amount
    )
    return net_profit / net_base - target_ratio


def _next_guess(
    low: float | None,
    low_error: float | None,
    high: float | None,
    high_error: float | None,
) -> float:
    if high is None:
        return low * 2
    if low is None:
        return high / 2
    if low_error is None:
        return (low + high) / 2

    guess = high - high_error * (high - low) / (high_error - low_error)
    if not low < guess < high:
        return (low + high) / 2
    return guess


def _solve_net_margin_dynamic(inputs: CalculationInputs) -> SolveOutcome:
    fixed_costs = inputs.fixed_costs
    if fixed_costs <= 0:
        # Without fixed costs the margin does not depend on price.
        return SolveOutcome(price=0.0, converged=False)

    target_ratio = inputs.target_value / 100

    low = low_error = high = high_error = None
    last_side = None
    price = 2 * fixed_costs
    last_price = price
    iterations = 0

    while iterations < MAX_ITERATIONS:
        if not math.isfinite(price):
            break

        iterations += 1
        last_price = price
        error = net_margin_error(price, inputs, target_ratio)

        if error is not None and abs(error) < NET_MARGIN_TOLERANCE:
            logger.debug("Net margin solved at %.4f after %d iterations", price, iterations)
            return SolveOutcome(price=price, converged=True, iterations=iterations)

        if error is None or error < 0:
            low, low_error = price, error
            if last_side == "low" and high_error is not None:
                high_error /= 2
            last_side = "low"
        else:
            high, high_error = price, error
            if last_side == "high" and low_error is not None:
                low_error /= 2
            last_side = "high"

        price = _next_guess(low, low_error, high, high_error)

    logger.debug(
        "Net margin target %.4f%% not reached after %d iterations (last price %.4f)",
        inputs.target_value,
        iterations,
        last_price,
    )
    return SolveOutcome(price=last_price, converged=False, iterations=iterations)


_SOLVERS: dict[PricingMode, Callable[[CalculationInputs], SolveOutcome]] = {
    PricingMode.PRICE_FIXED: _solve_price_fixed,
    PricingMode.PROFIT_FIXED: _solve_profit_fixed,
    PricingMode.GROSS_MARGIN_FIXED: _solve_gross_margin_fixed,
    PricingMode.NET_MARGIN_DYNAMIC: _solve_net_margin_dynamic,
}


def solve_price(inputs: CalculationInputs) -> SolveOutcome:
    """Compute the sale price for ``inputs.mode`` using the fees already on ``inputs``."""
    return _SOLVERS[inputs.mode](inputs)


__all__ = [
    "MAX_ITERATIONS",
    "NET_MARGIN_TOLERANCE",
    "net_margin_error",
    "solve_price",
]
