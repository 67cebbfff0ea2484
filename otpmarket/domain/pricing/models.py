"""Pricing value objects."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any


class MarkupType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FLAT = "FLAT"


@dataclass(slots=True, frozen=True)
class Quote:
    base_cost_cents: int
    markup_cents: int
    final_price_cents: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Quote":
        return cls(
            base_cost_cents=int(data["base_cost_cents"]),
            markup_cents=int(data["markup_cents"]),
            final_price_cents=int(data["final_price_cents"]),
        )
