"""Provider adapters for renting numbers and reading verification codes."""

from .base import CodeCheck, ProviderAdapter, Reservation, TimedValue
from .exceptions import NoProviderAvailable, ProviderError, ProviderUnavailable, ServiceUnsupported
from .extraction import CODE_PATTERN, ExtractedCode, extract_code
from .registry import ProviderRegistry
from .smsman import SMSMAN_COUNTRY_IDS, SmsManAdapter
from .textverified import TextVerifiedAdapter, TokenState

__all__ = [
    "CODE_PATTERN",
    "CodeCheck",
    "ExtractedCode",
    "NoProviderAvailable",
    "ProviderAdapter",
    "ProviderError",
    "ProviderRegistry",
    "ProviderUnavailable",
    "Reservation",
    "SMSMAN_COUNTRY_IDS",
    "ServiceUnsupported",
    "SmsManAdapter",
    "TextVerifiedAdapter",
    "TimedValue",
    "TokenState",
    "extract_code",
]
