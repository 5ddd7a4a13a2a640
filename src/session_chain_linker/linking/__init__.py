"""Continuation linking: the relationship store and chain resolver."""
from __future__ import annotations

from session_chain_linker.linking.chain import ChainExpansion, ChainResolver, ChainValidation
from session_chain_linker.linking.store import (
    EdgeListener,
    EdgeNotFoundError,
    RelationshipStore,
)

__all__ = [
    "ChainExpansion",
    "ChainResolver",
    "ChainValidation",
    "EdgeListener",
    "EdgeNotFoundError",
    "RelationshipStore",
]
