"""Outbound HTTP helpers shared by provider and gateway adapters."""

from .retry import RetryExhausted, RetryPolicy

__all__ = ["RetryExhausted", "RetryPolicy"]
