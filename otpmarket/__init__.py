"""Virtual-number SMS marketplace: order fulfillment and balance ledger engine."""

__version__ = "0.1.0"
