"""Pricing domain specific exceptions."""


class PricingError(Exception):
    """Base class for pricing errors."""


class PricingUnavailable(PricingError):
    """Raised when no base cost is configured for the provider/service/country."""

    def __init__(self, provider_id: str, service_code: str, country: str) -> None:
        super().__init__(f"Pricing not available for {service_code} in {country} via {provider_id}")
        self.provider_id = provider_id
        self.service_code = service_code
        self.country = country
