"""Reconciliation results."""

from __future__ import annotations

from dataclasses import dataclass, field

from otpmarket.domain.ledger import BalanceAudit


@dataclass(slots=True, frozen=True)
class SweepResult:
    checked: int
    expired: int
    failed: int = 0


@dataclass(slots=True)
class BalanceAuditReport:
    checked: int = 0
    anomalies: list[BalanceAudit] = field(default_factory=list)
