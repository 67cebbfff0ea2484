"""Provider domain specific exceptions."""

from __future__ import annotations


class ProviderError(Exception):
    """Base class for provider errors."""


class ProviderUnavailable(ProviderError):
    """Raised when a provider cannot serve the request right now (transport, quota, stock)."""

    def __init__(self, provider_id: str, message: str) -> None:
        super().__init__(f"{provider_id}: {message}")
        self.provider_id = provider_id
        self.message = message


class ServiceUnsupported(ProviderError):
    """Raised when a provider does not offer the service in the country."""

    def __init__(self, provider_id: str, service_code: str, country: str) -> None:
        super().__init__(f"{provider_id} does not support {service_code} in {country}")
        self.provider_id = provider_id
        self.service_code = service_code
        self.country = country


class NoProviderAvailable(ProviderError):
    """Raised when no configured provider serves the country or preference."""

    def __init__(self, service_code: str, country: str, preferred: str | None = None) -> None:
        detail = f" (preferred: {preferred})" if preferred else ""
        super().__init__(f"No providers available for {service_code} in {country}{detail}")
        self.service_code = service_code
        self.country = country
        self.preferred = preferred
