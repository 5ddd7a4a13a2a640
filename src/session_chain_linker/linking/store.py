"""Relationship store — the single write path for continuation edges.

Every edge mutation passes through :class:`RelationshipStore`.  It owns the
rules that keep the edge set consistent:

- ``order`` is assigned once, when a child is first attached to a parent,
  as one more than the parent's highest existing order;
- the most recently attached child of a parent is its single active
  continuation;
- an edge is orphaned while its parent has no matching session;
- deleting a session orphans its children's edges and removes its own.

Mutations are expressed as upserts and flag changes, so concurrent writers
converge on the same state.  Registered :class:`EdgeListener` objects (the
metadata cache in practice) are told synchronously which sessions were
touched before a mutation returns.

Classes
-------
- EdgeListener        — protocol for mutation observers
- EdgeNotFoundError   — raised when removing an edge that does not exist
- RelationshipStore   — ordered, orphan-aware edge persistence
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Protocol

from session_chain_linker.models import ContinuationEdge, utc_now
from session_chain_linker.storage.base import EdgeBackend

logger = logging.getLogger(__name__)

SessionExists = Callable[[str], bool]
EdgeSpec = tuple[str, str, "datetime | None"]


class EdgeListener(Protocol):
    """Receives the ids of sessions whose edges just changed."""

    def on_edges_changed(self, session_ids: set[str]) -> None:
        ...


class EdgeNotFoundError(KeyError):
    """Raised when an edge for the given child does not exist."""

    def __init__(self, child_id: str) -> None:
        self.child_id = child_id
        super().__init__(f"No continuation edge for child session {child_id!r}.")


class _Staging:
    """Overlay of pending writes on top of a backend.

    Lets a batch of upserts observe its own earlier effects (new orders,
    demoted siblings) before anything is committed.
    """

    def __init__(self, backend: EdgeBackend) -> None:
        self._backend = backend
        self.saved: dict[str, ContinuationEdge] = {}
        self.removed: set[str] = set()

    def get(self, child_id: str) -> ContinuationEdge | None:
        if child_id in self.saved:
            return self.saved[child_id]
        if child_id in self.removed:
            return None
        return self._backend.get(child_id)

    def children_of(self, parent_id: str) -> list[ContinuationEdge]:
        merged = {edge.child_id: edge for edge in self._backend.children_of(parent_id)}
        for child_id, edge in self.saved.items():
            if edge.parent_id == parent_id:
                merged[child_id] = edge
            else:
                merged.pop(child_id, None)
        for child_id in self.removed:
            merged.pop(child_id, None)
        return sorted(merged.values(), key=lambda e: (e.order, e.child_id))

    def put(self, edge: ContinuationEdge) -> None:
        self.saved[edge.child_id] = edge
        self.removed.discard(edge.child_id)

    def remove(self, child_id: str) -> None:
        self.saved.pop(child_id, None)
        self.removed.add(child_id)

    def commit(self) -> None:
        if self.saved or self.removed:
            self._backend.apply(list(self.saved.values()), sorted(self.removed))


class RelationshipStore:
    """Persist parent/child continuation edges with cascade semantics.

    All public methods are thread-safe; writers are serialised on a single
    re-entrant lock, which is never held across transcript I/O.

    Parameters
    ----------
    backend:
        Where edges are persisted.
    session_exists:
        Callable answering whether a session id is currently known.  Used
        to set ``is_orphaned`` on write.
    listeners:
        Optional observers notified after every mutation.
    """

    def __init__(
        self,
        backend: EdgeBackend,
        session_exists: SessionExists,
        listeners: Iterable[EdgeListener] | None = None,
    ) -> None:
        self._backend = backend
        self._session_exists = session_exists
        self._listeners: list[EdgeListener] = list(listeners or [])
        self._lock = threading.RLock()

    @property
    def backend(self) -> EdgeBackend:
        """The underlying edge backend."""
        return self._backend

    def add_listener(self, listener: EdgeListener) -> None:
        """Register an observer for edge mutations."""
        with self._lock:
            self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_edge(self, child_id: str) -> ContinuationEdge | None:
        """Return the edge for ``child_id`` or ``None``."""
        return self._backend.get(child_id)

    def parent_of(self, session_id: str) -> str | None:
        """Return the parent id of ``session_id`` or ``None`` for a root."""
        edge = self._backend.get(session_id)
        return edge.parent_id if edge is not None else None

    def children_of(self, parent_id: str) -> list[ContinuationEdge]:
        """Return direct children of ``parent_id`` ordered by ``order``."""
        return self._backend.children_of(parent_id)

    def all_edges(self) -> list[ContinuationEdge]:
        """Return every stored edge."""
        return self._backend.list()

    def orphaned_edges(self) -> list[ContinuationEdge]:
        """Return every edge whose parent is currently missing."""
        return self._backend.orphaned()

    def count(self) -> int:
        """Return the number of stored edges."""
        return self._backend.count()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def upsert_edge(
        self,
        child_id: str,
        parent_id: str,
        started_at: datetime | None = None,
    ) -> ContinuationEdge:
        """Insert or update the edge for ``child_id``.

        On insert the new child becomes the parent's active continuation
        and any previously active sibling is demoted.  On update the stored
        ``order`` and active flag are kept; only the orphan flag and the
        start timestamp are refreshed.  Re-pointing a child at a different
        parent is treated as an insert under the new parent.

        Parameters
        ----------
        child_id:
            The continuing session.
        parent_id:
            The continued session.
        started_at:
            When the child started.  ``None`` keeps any stored value.

        Returns
        -------
        ContinuationEdge
            The edge as stored after the call.

        Raises
        ------
        ValueError
            If ``child_id == parent_id``.
        """
        edges = self.upsert_many([(child_id, parent_id, started_at)])
        return edges[0]

    def upsert_many(self, specs: Iterable[EdgeSpec]) -> list[ContinuationEdge]:
        """Apply several upserts and commit them in one backend write.

        Parameters
        ----------
        specs:
            ``(child_id, parent_id, started_at)`` tuples, applied in order.

        Returns
        -------
        list[ContinuationEdge]
            The resulting edge for each spec, in input order.
        """
        items = list(specs)
        for child_id, parent_id, _ in items:
            if child_id == parent_id:
                raise ValueError(f"Session {child_id!r} cannot continue itself.")

        with self._lock:
            staging = _Staging(self._backend)
            affected: set[str] = set()
            results = [
                self._stage_upsert(staging, child_id, parent_id, started_at, affected)
                for child_id, parent_id, started_at in items
            ]
            staging.commit()
            self._notify(affected)
        return results

    def remove_edge(self, child_id: str) -> ContinuationEdge:
        """Delete the edge for ``child_id`` and return it.

        Raises
        ------
        EdgeNotFoundError
            If ``child_id`` has no edge.
        """
        with self._lock:
            staging = _Staging(self._backend)
            edge = staging.get(child_id)
            if edge is None:
                raise EdgeNotFoundError(child_id)
            staging.remove(child_id)
            self._reelect_active(staging, edge.parent_id)
            staging.commit()
            self._notify({child_id, edge.parent_id})
        return edge

    def on_session_deleted(self, session_id: str) -> None:
        """Cascade a session deletion.

        Edges where ``session_id`` is the parent are flagged orphaned; the
        edge where it is the child is removed.
        """
        with self._lock:
            staging = _Staging(self._backend)
            affected: set[str] = {session_id}
            now = utc_now()

            for child in staging.children_of(session_id):
                affected.add(child.child_id)
                if not child.is_orphaned:
                    staging.put(child.model_copy(update={"is_orphaned": True, "updated_at": now}))

            own = staging.get(session_id)
            if own is not None:
                affected.add(own.parent_id)
                staging.remove(session_id)
                self._reelect_active(staging, own.parent_id)

            staging.commit()
            self._notify(affected)

        logger.debug(
            "Session %s deleted: %d edges orphaned or removed",
            session_id,
            len(staging.saved) + len(staging.removed),
        )

    def on_session_created(self, session_id: str) -> int:
        """Clear the orphan flag on every edge whose parent is ``session_id``.

        Returns
        -------
        int
            Number of edges healed.
        """
        with self._lock:
            staging = _Staging(self._backend)
            now = utc_now()
            affected: set[str] = {session_id}
            for child in staging.children_of(session_id):
                if child.is_orphaned:
                    staging.put(child.model_copy(update={"is_orphaned": False, "updated_at": now}))
                    affected.add(child.child_id)
            staging.commit()
            if staging.saved:
                self._notify(affected)
            healed = len(staging.saved)

        if healed:
            logger.info("Session %s appeared: healed %d orphaned edges", session_id, healed)
        return healed

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _stage_upsert(
        self,
        staging: _Staging,
        child_id: str,
        parent_id: str,
        started_at: datetime | None,
        affected: set[str],
    ) -> ContinuationEdge:
        now = utc_now()
        orphaned = not self._session_exists(parent_id)
        existing = staging.get(child_id)

        if existing is not None and existing.parent_id == parent_id:
            started = started_at if started_at is not None else existing.child_started_at
            if existing.is_orphaned == orphaned and existing.child_started_at == started:
                return existing
            updated = existing.model_copy(
                update={"is_orphaned": orphaned, "child_started_at": started, "updated_at": now}
            )
            staging.put(updated)
            affected.update({child_id, parent_id})
            return updated

        siblings = staging.children_of(parent_id)
        order = max((s.order for s in siblings), default=0) + 1
        for sibling in siblings:
            if sibling.is_active_continuation:
                staging.put(
                    sibling.model_copy(update={"is_active_continuation": False, "updated_at": now})
                )

        if existing is None:
            edge = ContinuationEdge(
                child_id=child_id,
                parent_id=parent_id,
                order=order,
                child_started_at=started_at,
                is_active_continuation=True,
                is_orphaned=orphaned,
                discovered_at=now,
                updated_at=now,
            )
            staging.put(edge)
        else:
            old_parent = existing.parent_id
            edge = existing.model_copy(
                update={
                    "parent_id": parent_id,
                    "order": order,
                    "child_started_at": started_at or existing.child_started_at,
                    "is_active_continuation": True,
                    "is_orphaned": orphaned,
                    "updated_at": now,
                }
            )
            staging.put(edge)
            self._reelect_active(staging, old_parent)
            affected.add(old_parent)
            logger.info(
                "Session %s moved from parent %s to %s", child_id, old_parent, parent_id
            )

        affected.update({child_id, parent_id})
        return edge

    @staticmethod
    def _reelect_active(staging: _Staging, parent_id: str) -> None:
        """Ensure the highest-order remaining child of ``parent_id`` is active."""
        remaining = staging.children_of(parent_id)
        if not remaining or any(c.is_active_continuation for c in remaining):
            return
        newest = remaining[-1]
        staging.put(
            newest.model_copy(update={"is_active_continuation": True, "updated_at": utc_now()})
        )

    def _notify(self, session_ids: set[str]) -> None:
        if not session_ids:
            return
        for listener in list(self._listeners):
            listener.on_edges_changed(set(session_ids))

    def __repr__(self) -> str:
        return f"RelationshipStore(backend={self._backend!r})"
