"""Historical import path for database helpers.

Scripts and migrations import from ``otpmarket.db.session``; the
implementation lives under ``otpmarket.infrastructure.database``.
"""

from __future__ import annotations

from otpmarket.infrastructure.database import Base, get_session as get_db, init_db  # noqa: F401
from otpmarket.infrastructure.database.session import get_engine, get_session_factory

__all__ = [
    "Base",
    "get_db",
    "get_engine",
    "get_session_factory",
    "init_db",
]
