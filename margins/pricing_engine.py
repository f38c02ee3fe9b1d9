"""Core pricing calculations."""
from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Iterable

from .domain_models import (
    CalculationInputs,
    CalculationResult,
    FeeMode,
    PricingMode,
    ScenarioResult,
)
from .fee_tiers import DEFAULT_TIER_TABLE, FeeTierTable, resolve_fees
from .price_solver import solve_price

logger = logging.getLogger(__name__)


def round_up(value: float, decimals: int) -> float:
    """Round towards positive infinity at ``decimals`` places."""
    multiplier = 10**decimals
    return math.ceil(value * multiplier) / multiplier


def _roas(price: float, denominator: float) -> float:
    """Price over ``denominator`` rounded up, or 0 when that ratio is not a usable number."""
    if not denominator > 0:
        return 0.0
    ratio = price / denominator
    if not math.isfinite(ratio * 100):
        return 0.0
    return round_up(ratio, 2)


def compute_result(price: float, inputs: CalculationInputs) -> CalculationResult:
    """Derive profit, margins and ROAS figures for a sale at ``price``.

    ``inputs`` must already carry the commission and fixed fee that apply
    at this price.
    """

    if not math.isfinite(price) or price <= 0:
        return CalculationResult.zeroed(inputs.ads_percent)

    commission_amount = price * (inputs.commission_percent / 100)
    tax_amount = price * (inputs.effective_tax_percent / 100)
    ads_amount = price * (inputs.ads_percent / 100)
    op_cost_percent_amount = price * (inputs.op_cost_percent / 100)

    net_profit = (
        price
        - commission_amount
        - inputs.fixed_cost_or_shipping
        - inputs.cost_product
        - inputs.op_cost_absolute
        - tax_amount
        - ads_amount
        - op_cost_percent_amount
    )
    gross_margin_percent = net_profit / price * 100

    net_base = price - commission_amount - inputs.fixed_cost_or_shipping
    net_margin_percent = net_profit / net_base * 100 if net_base > 0 else 0.0

    total_cost = (
        inputs.cost_product
        + inputs.op_cost_absolute
        + inputs.fixed_cost_or_shipping
        + op_cost_percent_amount
    )

    # Profit before paying for ads.
    ads_free_base = (
        net_base
        - inputs.cost_product
        - inputs.op_cost_absolute
        - tax_amount
        - op_cost_percent_amount
    )
    break_even_roas = _roas(price, ads_free_base)

    ideal_denominator = ads_free_base - net_profit
    if inputs.ads_percent == 0:
        ideal_roas = math.inf
    else:
        ideal_roas = _roas(price, ideal_denominator)

    if inputs.discount_percent > 0:
        pre_discount_price = price / (1 - inputs.discount_percent / 100)
    else:
        pre_discount_price = price

    return CalculationResult(
        final_price=price,
        net_profit=net_profit,
        gross_margin_percent=gross_margin_percent,
        net_margin_percent=net_margin_percent,
        break_even_roas=break_even_roas,
        ideal_roas=ideal_roas,
        pre_discount_price=pre_discount_price,
        total_cost=total_cost,
        commission_amount=commission_amount,
        tax_amount=tax_amount,
        ads_amount=ads_amount,
        op_cost_percent_amount=op_cost_percent_amount,
    )


def evaluate(
    inputs: CalculationInputs,
    table: FeeTierTable = DEFAULT_TIER_TABLE,
) -> CalculationResult:
    """Resolve fees, solve the price and compute the result for one snapshot.

    With tiered fees the first resolution uses the target price in
    ``PRICE_FIXED`` mode and the lowest band otherwise. If the solved price
    falls in a different band, fees are resolved again at that price and
    the price is solved once more. There is no third pass; if the price
    still lands outside the applied band, ``tier_stable`` is False.

    A net margin target the solver cannot reach is reported as an invalid,
    zeroed result with ``converged=False``. The solver's last guess is kept
    in ``best_effort_price`` rather than priced out.
    """

    first_price = inputs.target_value if inputs.mode == PricingMode.PRICE_FIXED else 0.0
    fees = resolve_fees(
        first_price,
        inputs.fee_mode,
        inputs.commission_percent,
        inputs.fixed_cost_or_shipping,
        table,
    )
    priced_inputs = inputs.with_fees(fees.commission_percent, fees.fixed_fee)
    outcome = solve_price(priced_inputs)

    tier_stable = True
    if inputs.fee_mode == FeeMode.TIERED:
        if outcome.price > 0 and table.tier_for(outcome.price) != fees.tier:
            logger.debug(
                "Price %.4f left the %s band, resolving fees again",
                outcome.price,
                fees.tier,
            )
            fees = resolve_fees(
                outcome.price,
                inputs.fee_mode,
                inputs.commission_percent,
                inputs.fixed_cost_or_shipping,
                table,
            )
            priced_inputs = inputs.with_fees(fees.commission_percent, fees.fixed_fee)
            outcome = solve_price(priced_inputs)

        tier_stable = outcome.price <= 0 or table.tier_for(outcome.price) == fees.tier
        if not tier_stable:
            logger.warning(
                "Fee tier did not settle: price %.4f resolves to %s but %s was applied",
                outcome.price,
                table.tier_for(outcome.price),
                fees.tier,
            )

    if not outcome.converged:
        logger.warning(
            "Net margin target %.2f%% is not reachable with the current costs",
            inputs.target_value,
        )
        return replace(
            CalculationResult.zeroed(inputs.ads_percent),
            applied_fees=fees,
            converged=False,
            solver_iterations=outcome.iterations,
            tier_stable=tier_stable,
            best_effort_price=outcome.price,
        )

    result = compute_result(outcome.price, priced_inputs)
    return replace(
        result,
        applied_fees=fees,
        solver_iterations=outcome.iterations,
        tier_stable=tier_stable,
    )


def simulate_prices_for_targets(
    inputs: CalculationInputs,
    targets: Iterable[float],
    table: FeeTierTable = DEFAULT_TIER_TABLE,
) -> list[ScenarioResult]:
    """Evaluate the same costs across several target values."""

    results: list[ScenarioResult] = []

    for target in targets:
        result = evaluate(replace(inputs, target_value=target), table)
        results.append(
            ScenarioResult(
                target_value=target,
                final_price=result.final_price,
                net_profit=result.net_profit,
                net_margin_percent=result.net_margin_percent,
                converged=result.converged,
            )
        )

    return results


__all__ = [
    "compute_result",
    "evaluate",
    "round_up",
    "simulate_prices_for_targets",
]
