"""Pricing domain exports"""

from .exceptions import PricingError, PricingUnavailable
from .models import MarkupType, Quote
from .service import PricingService, compute_markup, select_rule

__all__ = [
    "MarkupType",
    "PricingError",
    "PricingService",
    "PricingUnavailable",
    "Quote",
    "compute_markup",
    "select_rule",
]
