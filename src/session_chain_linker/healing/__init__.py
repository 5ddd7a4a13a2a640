"""Orphan healing: the healer, its scheduler and the in-flight guard."""
from __future__ import annotations

from session_chain_linker.healing.guard import InFlightGuard, OperationInProgressError
from session_chain_linker.healing.healer import OrphanHealer
from session_chain_linker.healing.scheduler import HealingScheduler

__all__ = [
    "HealingScheduler",
    "InFlightGuard",
    "OperationInProgressError",
    "OrphanHealer",
]
