"""Time and money helpers.

Timestamps are stored as naive UTC so that SQLite and Postgres compare them
the same way.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

Number = Union[Decimal, int, float, str]


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_cents(value: Number) -> int:
    """Convert a major-unit amount (``"20.00"``, ``20``, ``Decimal("20")``) to minor units."""
    amount = Decimal(str(value)) * 100
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(value: int) -> Decimal:
    return (Decimal(value) / 100).quantize(Decimal("0.01"))
