"""Simple in-memory storage for marketplace tier tables and the SKU catalogue."""
from __future__ import annotations

from typing import Dict

from .fee_tiers import SHOPEE_TIERS, FeeTierTable
from .services.sku_lookup import InMemorySkuCatalog

# Maps marketplace names to their fee tier tables
TIER_STORE: Dict[str, FeeTierTable] = {"SHOPEE": SHOPEE_TIERS}

SKU_CATALOG = InMemorySkuCatalog()


def _key(marketplace: str) -> str:
    return marketplace.strip().upper()


def set_tier_table(marketplace: str, table: FeeTierTable) -> None:
    """Register (or replace) the tier table of a marketplace."""
    TIER_STORE[_key(marketplace)] = table


def get_tier_table(marketplace: str) -> FeeTierTable | None:
    """Return the tier table for a marketplace, or None if unknown."""
    return TIER_STORE.get(_key(marketplace))


def get_all_marketplaces() -> list[str]:
    """Return all marketplaces with a tier table, sorted."""
    return sorted(TIER_STORE.keys())


def reset_tier_tables() -> None:
    """Drop uploaded tables and keep only the built-in ones."""
    TIER_STORE.clear()
    TIER_STORE["SHOPEE"] = SHOPEE_TIERS


def set_sku_catalog(catalog: InMemorySkuCatalog) -> None:
    """Replace the in-memory SKU catalogue."""
    global SKU_CATALOG
    SKU_CATALOG = catalog


def get_sku_catalog() -> InMemorySkuCatalog:
    return SKU_CATALOG
