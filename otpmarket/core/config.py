"""Application configuration using pydantic settings with structured sections."""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False


class DatabaseSettings(BaseModel):
    url: str = "sqlite+aiosqlite:///./otpmarket.db"
    echo: bool = False
    pool_size: Optional[int] = None
    max_overflow: Optional[int] = None
    create_all: bool = True


class SecuritySettings(BaseModel):
    secret_key: str = Field(default="change-me", min_length=8)
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24


class CacheSettings(BaseModel):
    """``url`` selects Redis; an empty value keeps the in-process cache."""

    url: Optional[str] = None
    pricing_ttl: int = 300
    order_status_ttl: int = 300
    webhook_guard_ttl: int = 600
    provider_catalog_ttl: int = 60 * 60 * 24


class OrderSettings(BaseModel):
    expiry_minutes: int = 20
    poll_interval_seconds: float = 10.0
    sweep_interval_seconds: float = 60.0
    sweep_batch_size: int = 1000
    monitor_enabled: bool = True
    sweep_enabled: bool = True
    archive_after_days: int = 90


class RetrySettings(BaseModel):
    attempts: int = 3
    backoff_seconds: float = 0.3
    request_timeout: float = 15.0
    max_retry_after: float = 30.0


class SmsManSettings(BaseModel):
    api_url: str = "https://api.sms-man.com/control"
    api_key: str = ""


class TextVerifiedSettings(BaseModel):
    api_url: str = "https://www.textverified.com/api/pub/v2"
    api_key: str = ""
    username: str = ""
    token_ttl_seconds: int = 3600


class PaystackSettings(BaseModel):
    secret_key: str = ""
    api_url: str = "https://api.paystack.co"


class FlutterwaveSettings(BaseModel):
    secret_hash: str = ""
    secret_key: str = ""
    api_url: str = "https://api.flutterwave.com/v3"


class EtegramSettings(BaseModel):
    webhook_secret: str = ""


class Settings(BaseSettings):
    """Top-level application settings with nested sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"
    project_name: str = "OTP Market Engine"
    api_prefix: str = "/api"
    currency: str = "NGN"
    min_withdrawal_cents: int = 1000

    server: ServerSettings = ServerSettings()
    database: DatabaseSettings = DatabaseSettings()
    security: SecuritySettings = SecuritySettings()
    cache: CacheSettings = CacheSettings()
    orders: OrderSettings = OrderSettings()
    retry: RetrySettings = RetrySettings()
    smsman: SmsManSettings = SmsManSettings()
    textverified: TextVerifiedSettings = TextVerifiedSettings()
    paystack: PaystackSettings = PaystackSettings()
    flutterwave: FlutterwaveSettings = FlutterwaveSettings()
    etegram: EtegramSettings = EtegramSettings()

    @property
    def database_url(self) -> str:
        return self.database.url

    @property
    def host(self) -> str:
        return self.server.host

    @property
    def port(self) -> int:
        return self.server.port

    @property
    def secret_key(self) -> str:
        return self.security.secret_key

    @property
    def algorithm(self) -> str:
        return self.security.algorithm

    @property
    def access_token_expire_minutes(self) -> int:
        return self.security.access_token_expire_minutes


@lru_cache()
def get_settings() -> Settings:
    return Settings()
