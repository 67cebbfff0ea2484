"""Human-facing identifiers for orders, ledger rows and payment references."""

from __future__ import annotations

import secrets
import time


def generate_reference(prefix: str) -> str:
    """``PREFIX-<epoch ms>-<random>``; unique enough to back a unique column."""
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


def generate_order_number() -> str:
    return f"ORD-{int(time.time())}-{secrets.token_hex(3).upper()}"
