from __future__ import annotations

from decimal import Decimal
from typing import Optional

ZERO = Decimal("0")


def to_money(value) -> Optional[float]:
    """Serialize a Numeric column value for JSON output."""
    if value is None:
        return None
    return float(value)


def sum_money(values) -> Decimal:
    """Sum Numeric values, treating None as zero."""
    total = ZERO
    for value in values:
        if value is not None:
            total += Decimal(value)
    return total
