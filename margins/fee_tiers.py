"""Commission and fixed-fee resolution for marketplaces with price bands."""
from __future__ import annotations

from typing import Iterable

from .domain_models import FeeMode, FeeResolution, FeeTier


class FeeTierTable:
    """Price-banded fee rows, kept sorted from the highest lower bound down."""

    def __init__(self, tiers: Iterable[FeeTier]):
        self.tiers: tuple[FeeTier, ...] = tuple(
            sorted(tiers, key=lambda tier: tier.lower_bound, reverse=True)
        )
        if not self.tiers:
            raise ValueError("A fee tier table needs at least one row.")

    @property
    def default(self) -> FeeTier:
        """The lowest band, used when no bound is at or below the price."""
        return self.tiers[-1]

    def tier_for(self, price: float) -> FeeTier:
        for tier in self.tiers:
            if tier.lower_bound <= price:
                return tier
        return self.default

    def __iter__(self):
        return iter(self.tiers)

    def __len__(self) -> int:
        return len(self.tiers)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FeeTierTable):
            return NotImplemented
        return self.tiers == other.tiers

    def __repr__(self) -> str:
        return f"FeeTierTable({list(self.tiers)!r})"


SHOPEE_TIERS = FeeTierTable(
    [
        FeeTier(lower_bound=500, commission_percent=14, fixed_fee=26),
        FeeTier(lower_bound=200, commission_percent=14, fixed_fee=26),
        FeeTier(lower_bound=100, commission_percent=14, fixed_fee=20),
        FeeTier(lower_bound=0, commission_percent=20, fixed_fee=4),
    ]
)

DEFAULT_TIER_TABLE = SHOPEE_TIERS

# Starting commission / fixed fee shown when a marketplace is picked.
MARKETPLACE_PRESETS: dict[str, FeeResolution] = {
    "MANUAL": FeeResolution(commission_percent=20, fixed_fee=0),
    "SHOPEE": FeeResolution(commission_percent=20, fixed_fee=4),
}


def resolve_fees(
    price: float,
    fee_mode: FeeMode,
    manual_commission: float,
    manual_fixed_fee: float,
    table: FeeTierTable = DEFAULT_TIER_TABLE,
) -> FeeResolution:
    """Return the commission and fixed fee that apply at ``price``.

    Manual mode ignores the price and hands back the entered values.
    """

    if fee_mode == FeeMode.MANUAL:
        return FeeResolution(
            commission_percent=manual_commission,
            fixed_fee=manual_fixed_fee,
        )

    tier = table.tier_for(price)
    return FeeResolution(
        commission_percent=tier.commission_percent,
        fixed_fee=tier.fixed_fee,
        tier=tier,
    )


__all__ = [
    "DEFAULT_TIER_TABLE",
    "FeeTierTable",
    "MARKETPLACE_PRESETS",
    "SHOPEE_TIERS",
    "resolve_fees",
]
