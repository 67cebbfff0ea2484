"""Pydantic schemas used across the project."""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TokenData(BaseModel):
    user_id: str
    role: str = "user"


class CurrentUser(BaseModel):
    id: str
    email: Optional[str] = None
    role: str = "user"
    currency: str = "NGN"


class OrderCreateRequest(BaseModel):
    service_code: str = Field(..., min_length=1, max_length=100)
    country: str = Field(..., min_length=2, max_length=8)
    preferred_provider: Optional[str] = None

    @field_validator("country")
    @classmethod
    def _upper_country(cls, value: str) -> str:
        return value.strip().upper()


class TerminalOutcomeResponse(BaseModel):
    status: str
    reason: Optional[str] = None
    refunded: bool


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    order_number: str
    service_code: str
    country: str
    provider_id: str
    phone_number: Optional[str] = None
    price_cents: int
    currency: str
    status: str
    refunded: bool = False
    sms_code: Optional[str] = None
    sms_message: Optional[str] = None
    outcome: Optional[TerminalOutcomeResponse] = None
    created_at: datetime
    expires_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class OrderListResponse(BaseModel):
    orders: list[OrderResponse] = Field(default_factory=list)


class WalletSnapshotResponse(BaseModel):
    balance_cents: int
    currency: str


class WalletTransactionResponse(BaseModel):
    id: str
    transaction_number: str
    type: str
    amount_cents: int
    balance_before_cents: Optional[int] = None
    balance_after_cents: Optional[int] = None
    status: str
    order_id: Optional[str] = None
    external_reference: Optional[str] = None
    payment_method: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None


class WalletTransactionListResponse(BaseModel):
    transactions: list[WalletTransactionResponse] = Field(default_factory=list)


class DepositInitRequest(BaseModel):
    amount_cents: int = Field(..., gt=0)
    gateway: str = Field(..., min_length=1)


class WithdrawalRequest(BaseModel):
    amount_cents: int = Field(..., gt=0)
    bank_details: dict[str, Any] = Field(default_factory=dict)


class DepositVerificationResponse(BaseModel):
    outcome: str
    reference: str
    amount_cents: Optional[int] = None


class WebhookAck(BaseModel):
    ok: bool = True
    outcome: str
    reference: Optional[str] = None


class SweepResponse(BaseModel):
    checked: int
    expired: int
    failed: int = 0


class ArchiveResponse(BaseModel):
    archived: int


class BalanceAuditItem(BaseModel):
    user_id: str
    stored_cents: int
    computed_cents: int
    difference_cents: int


class BalanceAuditResponse(BaseModel):
    checked: int
    anomalies: list[BalanceAuditItem] = Field(default_factory=list)
