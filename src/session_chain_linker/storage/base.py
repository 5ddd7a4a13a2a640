"""Abstract base class for continuation edge backends.

Backends persist :class:`ContinuationEdge` rows keyed by ``child_id``.
They are deliberately dumb: ordering, active-branch election, orphan flags
and cache notification all live in
:class:`session_chain_linker.linking.store.RelationshipStore`, which is the
only component allowed to write through a backend.

Classes
-------
- EdgeBackend  — abstract base for all edge backends
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable

from session_chain_linker.models import ContinuationEdge


class EdgeBackend(ABC):
    """Protocol for reading and writing continuation edges.

    Backend implementations must be safe for sequential use.  The
    relationship store serialises all writers, so backends need no locking
    of their own.
    """

    @abstractmethod
    def get(self, child_id: str) -> ContinuationEdge | None:
        """Return the edge whose child is ``child_id``, or ``None``."""

    @abstractmethod
    def save(self, edge: ContinuationEdge) -> None:
        """Insert or replace ``edge`` (keyed by ``edge.child_id``)."""

    @abstractmethod
    def save_many(self, edges: Iterable[ContinuationEdge]) -> None:
        """Insert or replace several edges atomically.

        Parameters
        ----------
        edges:
            Edges to write.  Either all of them become visible or none do.
        """

    @abstractmethod
    def delete(self, child_id: str) -> bool:
        """Remove the edge for ``child_id``.

        Returns
        -------
        bool
            True if an edge existed and was removed.
        """

    @abstractmethod
    def apply(self, saves: Iterable[ContinuationEdge], deletes: Iterable[str]) -> None:
        """Write ``saves`` and remove the edges of ``deletes`` as one unit.

        Readers observe either the state before the call or the state after
        it, and a failure leaves the stored edges untouched.  The
        relationship store commits every mutation through this method.

        Parameters
        ----------
        saves:
            Edges to insert or replace.
        deletes:
            Child ids whose edges are removed.  Missing ids are ignored.
        """

    @abstractmethod
    def children_of(self, parent_id: str) -> list[ContinuationEdge]:
        """Return the edges whose parent is ``parent_id``, ordered by ``order``."""

    @abstractmethod
    def list(self) -> list[ContinuationEdge]:
        """Return every stored edge.  Order is implementation-defined."""

    @abstractmethod
    def orphaned(self) -> list[ContinuationEdge]:
        """Return every edge currently flagged as orphaned."""

    def count(self) -> int:
        """Return the number of stored edges."""
        return len(self.list())
