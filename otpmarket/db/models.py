"""SQLAlchemy ORM models."""
import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from otpmarket.core.clock import utcnow
from otpmarket.infrastructure.database.base import Base


def generate_uuid() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"
    __table_args__ = (CheckConstraint("balance_cents >= 0", name="ck_users_balance_non_negative"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, nullable=True, index=True)
    role = Column(String(20), nullable=False, default="user")
    balance_cents = Column(Integer, nullable=False, default=0)
    currency = Column(String(10), nullable=False, default="NGN")
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, onupdate=utcnow)

    orders = relationship("Order", back_populates="user")
    transactions = relationship("Transaction", back_populates="user")


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (Index("ix_orders_status_expires_at", "status", "expires_at"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    order_number = Column(String(40), unique=True, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    service_code = Column(String(100), nullable=False)
    country = Column(String(8), nullable=False)
    provider_id = Column(String(40), nullable=False)
    external_id = Column(String(512))
    phone_number = Column(String(40))
    price_cents = Column(Integer, nullable=False)
    base_cost_cents = Column(Integer, nullable=False, default=0)
    currency = Column(String(10), nullable=False, default="NGN")
    status = Column(String(20), nullable=False, default="PENDING_CHARGE")
    refunded = Column(Boolean, nullable=False, default=False)
    terminal_reason = Column(String(30))
    sms_code = Column(String(40))
    sms_message = Column(Text)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, onupdate=utcnow)
    expires_at = Column(DateTime)
    completed_at = Column(DateTime)
    cancelled_at = Column(DateTime)
    archived_at = Column(DateTime)

    user = relationship("User", back_populates="orders")


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    transaction_number = Column(String(40), unique=True, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=True, index=True)
    type = Column(String(20), nullable=False)  # ORDER_PAYMENT, REFUND, DEPOSIT, WITHDRAWAL
    amount_cents = Column(Integer, nullable=False)
    balance_before_cents = Column(Integer)
    balance_after_cents = Column(Integer)
    status = Column(String(20), nullable=False, default="PENDING")
    external_reference = Column(String(120), unique=True, nullable=True)
    idempotency_key = Column(String(80), unique=True, nullable=True)
    payment_method = Column(String(30))
    description = Column(String(255))
    meta = Column("metadata", Text)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    completed_at = Column(DateTime)

    user = relationship("User", back_populates="transactions")


class ProviderPrice(Base):
    __tablename__ = "provider_prices"
    __table_args__ = (UniqueConstraint("provider_id", "service_code", "country", name="uq_provider_prices_key"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    provider_id = Column(String(40), nullable=False)
    service_code = Column(String(100), nullable=False)
    country = Column(String(8), nullable=False)
    base_cost_cents = Column(Integer, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class PricingRule(Base):
    __tablename__ = "pricing_rules"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(100))
    markup_type = Column(String(20), nullable=False)  # PERCENTAGE, FLAT
    markup_value = Column(Numeric(12, 4), nullable=False)
    service_code = Column(String(100), nullable=True)
    country = Column(String(8), nullable=True)
    priority = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
