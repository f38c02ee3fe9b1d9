from __future__ import annotations

import csv
from typing import IO, List

from margins.domain_models import FeeTier
from margins.fee_tiers import FeeTierTable


class TierCsvError(Exception):
    """Raised when the fee tier CSV file is invalid."""


REQUIRED_COLUMNS = {"lower_bound", "commission_percent", "fixed_fee"}


def load_tier_table_from_csv(file_obj: IO) -> FeeTierTable:
    """
    Parse a CSV file with a marketplace's price bands.

    Expected columns:
      - lower_bound  (price from which the band applies)
      - commission_percent
      - fixed_fee

    Rows may come in any order; the table sorts them by bound.
    """
    raw = file_obj.read()
    if isinstance(raw, bytes):
        text = raw.decode("utf-8")
    else:
        text = str(raw)

    reader = csv.DictReader(text.splitlines())
    fieldnames = {name.strip() for name in reader.fieldnames or []}
    if not REQUIRED_COLUMNS.issubset(fieldnames):
        missing = REQUIRED_COLUMNS - fieldnames
        raise TierCsvError(f"Missing required columns in tier CSV: {', '.join(sorted(missing))}")

    tiers: List[FeeTier] = []
    for line_number, row in enumerate(reader, start=2):
        row = {(key or "").strip(): value for key, value in row.items()}
        try:
            tier = FeeTier(
                lower_bound=float(row["lower_bound"].strip()),
                commission_percent=float(row["commission_percent"].strip()),
                fixed_fee=float(row["fixed_fee"].strip()),
            )
        except (AttributeError, KeyError, ValueError) as exc:
            raise TierCsvError(f"Row {line_number}: invalid tier values") from exc

        if tier.lower_bound < 0 or tier.commission_percent < 0 or tier.fixed_fee < 0:
            raise TierCsvError(f"Row {line_number}: tier values must not be negative")

        tiers.append(tier)

    if not tiers:
        raise TierCsvError("Tier CSV contains no rows.")
    return FeeTierTable(tiers)


__all__ = ["TierCsvError", "load_tier_table_from_csv"]
