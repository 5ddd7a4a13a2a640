"""session-chain-linker — Detect and serve session continuation chains.

When a coding-assistant conversation reaches its context limit it is
compacted and continued under a new session id.  This package finds those
parent/child continuations in JSONL transcripts, stores them, and serves
chain trees, per-session metadata and statistics.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import session_chain_linker
>>> session_chain_linker.__version__
'0.1.0'
"""
from __future__ import annotations

# Session identity and discovery
from session_chain_linker.session.registry import (
    DirectorySessionRegistry,
    InMemorySessionRegistry,
    SessionRecord,
    SessionRegistry,
)
from session_chain_linker.session.validation import InvalidSessionIdError, validate_session_id

# Records
from session_chain_linker.models import (
    ChainCacheEntry,
    ChainStats,
    ChainView,
    ContinuationEdge,
    ContinuationMetadata,
    ContinuationStats,
    DescendantNode,
    HealReport,
    ResolveReport,
    SessionGroup,
    SessionRef,
)

# Detection
from session_chain_linker.detection.detector import (
    BoundaryMarker,
    ContinuationDetector,
    DetectionResult,
    detect_continuation,
)

# Storage backends
from session_chain_linker.storage.base import EdgeBackend
from session_chain_linker.storage.memory import InMemoryEdgeBackend
from session_chain_linker.storage.sqlite import SQLiteEdgeBackend

# Linking, cache and healing
from session_chain_linker.linking.store import EdgeNotFoundError, RelationshipStore
from session_chain_linker.linking.chain import ChainResolver, ChainValidation
from session_chain_linker.cache.metadata_cache import MetadataCache
from session_chain_linker.healing.guard import InFlightGuard, OperationInProgressError
from session_chain_linker.healing.healer import OrphanHealer
from session_chain_linker.healing.scheduler import HealingScheduler

# Engine and configuration
from session_chain_linker.config import LinkerConfig, load_config
from session_chain_linker.engine import ContinuationEngine
from session_chain_linker.convenience import ChainLinker

__version__: str = "0.1.0"

__all__ = [
    "__version__",
    # Sessions
    "DirectorySessionRegistry",
    "InMemorySessionRegistry",
    "InvalidSessionIdError",
    "SessionRecord",
    "SessionRegistry",
    "validate_session_id",
    # Records
    "ChainCacheEntry",
    "ChainStats",
    "ChainView",
    "ContinuationEdge",
    "ContinuationMetadata",
    "ContinuationStats",
    "DescendantNode",
    "HealReport",
    "ResolveReport",
    "SessionGroup",
    "SessionRef",
    # Detection
    "BoundaryMarker",
    "ContinuationDetector",
    "DetectionResult",
    "detect_continuation",
    # Storage
    "EdgeBackend",
    "InMemoryEdgeBackend",
    "SQLiteEdgeBackend",
    # Linking, cache, healing
    "ChainResolver",
    "ChainValidation",
    "EdgeNotFoundError",
    "HealingScheduler",
    "InFlightGuard",
    "MetadataCache",
    "OperationInProgressError",
    "OrphanHealer",
    "RelationshipStore",
    # Engine
    "ChainLinker",
    "ContinuationEngine",
    "LinkerConfig",
    "load_config",
]
