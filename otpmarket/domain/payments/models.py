"""Normalised gateway events and settlement outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class WebhookOutcome(str, Enum):
    CREDITED = "CREDITED"
    DUPLICATE = "DUPLICATE"
    IGNORED = "IGNORED"
    # the gateway has not confirmed payment yet
    PENDING = "PENDING"


@dataclass(slots=True, frozen=True)
class GatewayEvent:
    gateway: str
    event_id: str
    reference: Optional[str]
    amount_cents: Optional[int]
    successful: bool
    customer_email: Optional[str] = None
    # paid into a dedicated virtual account, so no reference was registered up front
    unregistered: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class GatewayVerification:
    """What a gateway's verify-by-reference API reports for one payment."""

    reference: str
    status: str
    paid: bool
    amount_cents: Optional[int] = None


@dataclass(slots=True, frozen=True)
class WebhookResult:
    outcome: WebhookOutcome
    reference: Optional[str] = None
    amount_cents: Optional[int] = None
    user_id: Optional[str] = None
