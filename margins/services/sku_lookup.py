"""Filling the product cost from a SKU catalogue.

The lookup itself belongs to the caller's product catalogue; this module
only defines what a lookup must provide and how its answer changes the
inputs of a calculation.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Dict, Iterable, Protocol

from margins.domain_models import CalculationInputs

logger = logging.getLogger(__name__)

NOT_FOUND_WARNING = "Product not found. Enter the cost manually."
LOOKUP_ERROR_WARNING = "Could not look up the product. Enter the cost manually."


class SkuNotFound(Exception):
    """Raised by a lookup when no product carries the SKU."""


class SkuLookupError(Exception):
    """Raised by a lookup when the catalogue could not be queried."""


@dataclass(frozen=True)
class SkuProduct:
    sku: str
    name: str
    cost_price: float


class SkuLookup(Protocol):
    def lookup(self, sku: str) -> SkuProduct:
        ...


class InMemorySkuCatalog:
    """SKU catalogue held in a dict, matched case-insensitively."""

    def __init__(self, products: Iterable[SkuProduct] = ()):
        self._products: Dict[str, SkuProduct] = {}
        for product in products:
            self.add(product)

    def add(self, product: SkuProduct) -> None:
        self._products[product.sku.strip().upper()] = product

    def lookup(self, sku: str) -> SkuProduct:
        try:
            return self._products[sku.strip().upper()]
        except KeyError:
            raise SkuNotFound(sku) from None

    def __len__(self) -> int:
        return len(self._products)


@dataclass(frozen=True)
class SkuCostOutcome:
    inputs: CalculationInputs
    product_name: str = ""
    cost_locked: bool = False
    warning: str = ""


def apply_sku_cost(inputs: CalculationInputs, sku: str, lookup: SkuLookup) -> SkuCostOutcome:
    """Set ``cost_product`` from the catalogue entry for ``sku``.

    A blank SKU clears the cost. When the product is found its cost is
    locked until the SKU is cleared; otherwise the manually entered cost is
    kept and a warning is returned for the caller to show.
    """

    if not sku.strip():
        return SkuCostOutcome(inputs=replace(inputs, cost_product=0.0))

    try:
        product = lookup.lookup(sku)
    except SkuNotFound:
        return SkuCostOutcome(inputs=inputs, warning=NOT_FOUND_WARNING)
    except SkuLookupError:
        logger.exception("SKU lookup failed for %r", sku)
        return SkuCostOutcome(inputs=inputs, warning=LOOKUP_ERROR_WARNING)

    return SkuCostOutcome(
        inputs=replace(inputs, cost_product=product.cost_price or 0.0),
        product_name=product.name or "Unnamed product",
        cost_locked=True,
    )


__all__ = [
    "InMemorySkuCatalog",
    "SkuCostOutcome",
    "SkuLookup",
    "SkuLookupError",
    "SkuNotFound",
    "SkuProduct",
    "apply_sku_cost",
]
