"""Provider adapter contract and shared state holders."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Generic, Optional, Protocol, TypeVar

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class Reservation:
    external_id: str
    phone_number: Optional[str]
    cost: Optional[Decimal] = None


@dataclass(slots=True, frozen=True)
class CodeCheck:
    found: bool
    code: Optional[str] = None
    raw_text: Optional[str] = None

    @classmethod
    def not_found(cls) -> "CodeCheck":
        return cls(found=False)


@dataclass
class TimedValue(Generic[T]):
    """A value with an explicit monotonic expiry."""

    value: Optional[T] = None
    expires_at: float = 0.0
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    def get(self) -> Optional[T]:
        if self.value is not None and self.clock() < self.expires_at:
            return self.value
        return None

    def store(self, value: T, ttl: float) -> T:
        self.value = value
        self.expires_at = self.clock() + ttl
        return value

    def invalidate(self) -> None:
        self.value = None
        self.expires_at = 0.0


class ProviderAdapter(Protocol):
    provider_id: str
    priority: int

    def serves_country(self, country: str) -> bool:
        ...

    async def supports(self, service_code: str, country: str) -> bool:
        ...

    async def reserve_number(self, service_code: str, country: str) -> Reservation:
        ...

    async def check_for_code(self, external_id: str) -> CodeCheck:
        ...

    async def cancel(self, external_id: str) -> None:
        ...

    async def refresh_reservation(self, external_id: str) -> Optional[str]:
        """Phone number for a reservation created without one, if the provider has it now."""
        ...

    async def aclose(self) -> None:
        ...
