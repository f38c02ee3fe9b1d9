"""Domain models for marketplace pricing inputs and results."""
from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum


class PricingMode(str, Enum):
    PRICE_FIXED = "PRICE_FIXED"
    PROFIT_FIXED = "PROFIT_FIXED"
    GROSS_MARGIN_FIXED = "GROSS_MARGIN_FIXED"
    NET_MARGIN_DYNAMIC = "NET_MARGIN_DYNAMIC"


class FeeMode(str, Enum):
    MANUAL = "MANUAL"
    TIERED = "TIERED"


def _coerce_enum(enum_cls, value, field_name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().upper())
    except ValueError as exc:
        choices = ", ".join(member.value for member in enum_cls)
        raise ValueError(f"{field_name} must be one of: {choices}") from exc


@dataclass(frozen=True)
class CalculationInputs:
    """Everything one evaluation needs.

    Currency fields are plain amounts, percent fields are on the 0-100
    scale. ``tax_emitted_percent`` is the share of the sale that is
    invoiced; ``None`` means the whole sale.
    """

    cost_product: float
    op_cost_absolute: float
    op_cost_percent: float
    fixed_cost_or_shipping: float
    commission_percent: float
    tax_percent: float
    ads_percent: float
    mode: PricingMode
    target_value: float
    tax_emitted_percent: float | None = None
    discount_percent: float = 0.0
    fee_mode: FeeMode = FeeMode.MANUAL

    def __post_init__(self) -> None:
        object.__setattr__(self, "mode", _coerce_enum(PricingMode, self.mode, "mode"))
        object.__setattr__(
            self, "fee_mode", _coerce_enum(FeeMode, self.fee_mode, "fee_mode")
        )

    @property
    def invoiced_percent(self) -> float:
        if self.tax_emitted_percent is None:
            return 100.0
        return max(0.0, min(100.0, self.tax_emitted_percent))

    @property
    def effective_tax_percent(self) -> float:
        return self.tax_percent * (self.invoiced_percent / 100)

    @property
    def fixed_costs(self) -> float:
        """Costs that do not scale with price (K)."""
        return self.cost_product + self.op_cost_absolute + self.fixed_cost_or_shipping

    @property
    def percent_costs(self) -> float:
        """Percentage costs charged on the price, excluding operational (F%)."""
        return self.commission_percent + self.ads_percent + self.effective_tax_percent

    def with_fees(self, commission_percent: float, fixed_fee: float) -> "CalculationInputs":
        return replace(
            self,
            commission_percent=commission_percent,
            fixed_cost_or_shipping=fixed_fee,
        )


def validate_inputs(inputs: CalculationInputs) -> None:
    """Reject values the engine would silently accept but callers should not send."""

    numeric_fields = (
        "cost_product",
        "op_cost_absolute",
        "op_cost_percent",
        "fixed_cost_or_shipping",
        "commission_percent",
        "tax_percent",
        "ads_percent",
        "target_value",
        "discount_percent",
    )
    for field_name in numeric_fields:
        if not math.isfinite(getattr(inputs, field_name)):
            raise ValueError(f"{field_name} must be a finite number.")

    if inputs.tax_emitted_percent is not None and not math.isfinite(inputs.tax_emitted_percent):
        raise ValueError("tax_emitted_percent must be a finite number.")

    currency_fields = ("cost_product", "op_cost_absolute", "fixed_cost_or_shipping")
    for field_name in currency_fields:
        value = getattr(inputs, field_name)
        if value < 0:
            raise ValueError(f"{field_name} must be a non-negative amount.")

    if not 0 <= inputs.discount_percent < 100:
        raise ValueError("discount_percent must be between 0 and 100 (exclusive).")


@dataclass(frozen=True)
class FeeTier:
    lower_bound: float
    commission_percent: float
    fixed_fee: float


@dataclass(frozen=True)
class FeeResolution:
    commission_percent: float
    fixed_fee: float
    tier: FeeTier | None = None


@dataclass(frozen=True)
class SolveOutcome:
    price: float
    converged: bool = True
    iterations: int = 0


@dataclass(frozen=True)
class CalculationResult:
    final_price: float
    net_profit: float
    gross_margin_percent: float
    net_margin_percent: float
    break_even_roas: float
    ideal_roas: float
    pre_discount_price: float
    total_cost: float
    commission_amount: float
    tax_amount: float
    ads_amount: float
    op_cost_percent_amount: float
    applied_fees: FeeResolution | None = None
    converged: bool = True
    solver_iterations: int = 0
    tier_stable: bool = True
    best_effort_price: float | None = None

    @property
    def is_valid(self) -> bool:
        return self.final_price > 0

    @classmethod
    def zeroed(cls, ads_percent: float) -> "CalculationResult":
        return cls(
            final_price=0.0,
            net_profit=0.0,
            gross_margin_percent=0.0,
            net_margin_percent=0.0,
            break_even_roas=0.0,
            ideal_roas=math.inf if ads_percent == 0 else 0.0,
            pre_discount_price=0.0,
            total_cost=0.0,
            commission_amount=0.0,
            tax_amount=0.0,
            ads_amount=0.0,
            op_cost_percent_amount=0.0,
        )


@dataclass
class ScenarioResult:
    target_value: float
    final_price: float
    net_profit: float
    net_margin_percent: float
    converged: bool
