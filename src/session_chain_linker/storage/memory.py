"""In-memory edge backend.

Stores edges in a plain Python dict.  All data is lost when the process
exits.  This backend is primarily useful for tests and for embedding the
engine in short-lived tools.

Classes
-------
- InMemoryEdgeBackend  — dict-backed ephemeral edge storage
"""
from __future__ import annotations

from collections.abc import Iterable

from session_chain_linker.models import ContinuationEdge
from session_chain_linker.storage.base import EdgeBackend


class InMemoryEdgeBackend(EdgeBackend):
    """Ephemeral edge storage backed by a dict keyed by child id.

    Stored edges are copied on the way in and on the way out so callers
    can never mutate backend state by holding a reference.
    """

    def __init__(self) -> None:
        self._edges: dict[str, ContinuationEdge] = {}

    def get(self, child_id: str) -> ContinuationEdge | None:
        edge = self._edges.get(child_id)
        return edge.model_copy() if edge is not None else None

    def save(self, edge: ContinuationEdge) -> None:
        self._edges[edge.child_id] = edge.model_copy()

    def save_many(self, edges: Iterable[ContinuationEdge]) -> None:
        staged = {edge.child_id: edge.model_copy() for edge in edges}
        self._edges.update(staged)

    def delete(self, child_id: str) -> bool:
        return self._edges.pop(child_id, None) is not None

    def apply(self, saves: Iterable[ContinuationEdge], deletes: Iterable[str]) -> None:
        # Build the next state aside and swap it in with one assignment.
        edges = dict(self._edges)
        edges.update({edge.child_id: edge.model_copy() for edge in saves})
        for child_id in deletes:
            edges.pop(child_id, None)
        self._edges = edges

    def children_of(self, parent_id: str) -> list[ContinuationEdge]:
        children = [e.model_copy() for e in self._edges.values() if e.parent_id == parent_id]
        return sorted(children, key=lambda e: (e.order, e.child_id))

    def list(self) -> list[ContinuationEdge]:
        return [edge.model_copy() for edge in self._edges.values()]

    def orphaned(self) -> list[ContinuationEdge]:
        return [edge.model_copy() for edge in self._edges.values() if edge.is_orphaned]

    def count(self) -> int:
        return len(self._edges)

    def clear(self) -> None:
        """Remove all stored edges."""
        self._edges.clear()

    def __len__(self) -> int:
        return len(self._edges)

    def __repr__(self) -> str:
        return f"InMemoryEdgeBackend(edges={len(self._edges)})"
