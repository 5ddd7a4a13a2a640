"""Edge storage subpackage.

All backends implement the ``EdgeBackend`` ABC and are written to only by
the relationship store.

Public surface
--------------
- EdgeBackend          — abstract base class
- InMemoryEdgeBackend  — in-process dict (useful for testing)
- SQLiteEdgeBackend    — persist edges in a local SQLite database
"""
from __future__ import annotations

from session_chain_linker.storage.base import EdgeBackend
from session_chain_linker.storage.memory import InMemoryEdgeBackend
from session_chain_linker.storage.sqlite import SQLiteEdgeBackend

__all__ = [
    "EdgeBackend",
    "InMemoryEdgeBackend",
    "SQLiteEdgeBackend",
]
