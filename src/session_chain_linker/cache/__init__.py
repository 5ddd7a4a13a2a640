"""Continuation metadata cache."""
from __future__ import annotations

from session_chain_linker.cache.metadata_cache import MetadataCache

__all__ = ["MetadataCache"]
