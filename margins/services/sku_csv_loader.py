from __future__ import annotations

import csv
from typing import IO, List

from margins.services.sku_lookup import InMemorySkuCatalog, SkuProduct


class SkuCsvError(Exception):
    """Custom exception for SKU catalogue CSV parsing errors."""


def _is_header_row(row: List[str]) -> bool:
    normalized = [value.strip().lower() for value in row]
    return normalized == ["sku", "name", "cost_price"]


def load_sku_catalog_from_csv(file_obj: IO) -> InMemorySkuCatalog:
    """
    Parse a SKU catalogue CSV file into an in-memory catalogue.

    The expected CSV format is:
    sku,name,cost_price
    CAB-USB-C,USB-C cable 1m,12.50
    """

    raw = file_obj.read()
    text = raw.decode("utf-8") if isinstance(raw, bytes) else str(raw)
    reader = csv.reader(text.splitlines())
    catalog = InMemorySkuCatalog()

    for index, row in enumerate(reader, start=1):
        if not row or all(cell.strip() == "" for cell in row):
            continue

        if index == 1 and _is_header_row(row):
            continue

        if len(row) != 3:
            raise SkuCsvError(f"Row {index} has {len(row)} columns; expected 3")

        sku, name, cost_price_str = (cell.strip() for cell in row)

        if not sku:
            raise SkuCsvError(f"Row {index} is missing the SKU")

        try:
            cost_price = float(cost_price_str)
        except ValueError as exc:
            raise SkuCsvError(f"Row {index} has invalid cost_price: {cost_price_str}") from exc

        if cost_price < 0:
            raise SkuCsvError(f"Row {index} has a negative cost_price")

        catalog.add(SkuProduct(sku=sku, name=name, cost_price=cost_price))

    return catalog
