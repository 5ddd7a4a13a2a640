"""Derived per-session continuation metadata with explicit invalidation.

The cache is a projection of the relationship store: every entry can be
recomputed from the current edges at any time.  It is kept coherent by
invalidation rather than expiry.  The relationship store calls
:meth:`MetadataCache.on_edges_changed` synchronously on every mutation and
the cache drops every entry that the change could have affected.  An
entry is therefore either absent or exactly correct.

Entries are created lazily on a read miss (:meth:`MetadataCache.get`) or in
one pass for a whole chain (:meth:`MetadataCache.populate_chain`).  Only
sessions that take part in at least one edge are kept, so looking up
arbitrary ids does not grow the cache.

Classes
-------
- MetadataCache  — O(1) per-session and per-chain continuation lookups
"""
from __future__ import annotations

import logging
import threading

from session_chain_linker.linking.chain import ChainResolver
from session_chain_linker.linking.store import RelationshipStore
from session_chain_linker.models import ChainCacheEntry, ChainStats, ContinuationEdge, utc_now

logger = logging.getLogger(__name__)


class MetadataCache:
    """In-process cache of :class:`ChainCacheEntry` records.

    The dictionary is guarded by a short lock that is never held while
    edges are read, so computing entries for one chain never blocks reads
    or writes for another.  A generation counter is bumped by every
    invalidation; entries computed across an invalidation are discarded
    instead of stored.

    Parameters
    ----------
    store:
        The relationship store the entries are derived from.
    resolver:
        Chain resolver used for root and depth computation.
    """

    def __init__(self, store: RelationshipStore, resolver: ChainResolver) -> None:
        self._store = store
        self._resolver = resolver
        self._entries: dict[str, ChainCacheEntry] = {}
        self._generation = 0
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def peek(self, session_id: str) -> ChainCacheEntry | None:
        """Return the cached entry for ``session_id`` without computing it."""
        with self._lock:
            return self._entries.get(session_id)

    def get(self, session_id: str) -> ChainCacheEntry:
        """Return the entry for ``session_id``, computing it on a miss."""
        with self._lock:
            cached = self._entries.get(session_id)
            generation = self._generation
        if cached is not None:
            logger.debug("Cache hit for session %s", session_id)
            return cached

        logger.debug("Cache miss for session %s", session_id)
        entry = self.compute(session_id)
        self._store_entries([entry], generation)
        return entry

    def compute(self, session_id: str) -> ChainCacheEntry:
        """Compute the entry for ``session_id`` from the current edges."""
        root_id = self._resolver.find_root(session_id)
        edge = self._store.get_edge(session_id)
        child_count = len(self._store.children_of(session_id))
        depth = self._resolver.depth_of(session_id, root_id)
        return self._make_entry(session_id, root_id, edge, depth, child_count)

    def chain_stats(self, root_id: str) -> ChainStats | None:
        """Aggregate the cached entries of the chain rooted at ``root_id``.

        Returns
        -------
        ChainStats | None
            ``None`` when no entry of that chain is cached; callers then fall
            back to building the chain.
        """
        with self._lock:
            members = [e for e in self._entries.values() if e.root_id == root_id]
        if not members:
            return None
        return ChainStats(
            max_depth=max(e.depth_from_root for e in members),
            total_sessions=len(members),
            has_branches=any(e.has_multiple_children for e in members),
        )

    def entries_for_root(self, root_id: str) -> list[ChainCacheEntry]:
        """Return the cached entries of one chain, ordered by depth."""
        with self._lock:
            members = [e for e in self._entries.values() if e.root_id == root_id]
        return sorted(members, key=lambda e: (e.depth_from_root, e.chain_position, e.session_id))

    # ------------------------------------------------------------------
    # Population
    # ------------------------------------------------------------------

    def populate_chain(self, root_id: str) -> int:
        """Compute and store entries for a whole chain in one pass.

        Parameters
        ----------
        root_id:
            Any session of the chain; the actual root is resolved first.

        Returns
        -------
        int
            Number of entries stored.  0 when population failed or raced
            with an invalidation; affected sessions simply stay uncached.
        """
        with self._lock:
            generation = self._generation
        try:
            root = self._resolver.find_root(root_id)
            expansion = self._resolver.expand(root)
            entries = [
                self._make_entry(
                    root,
                    root,
                    self._store.get_edge(root),
                    0,
                    expansion.child_counts.get(root, 0),
                )
            ]
            for edge, depth in expansion.descendants:
                entries.append(
                    self._make_entry(
                        edge.child_id,
                        root,
                        edge,
                        depth,
                        expansion.child_counts.get(edge.child_id, 0),
                    )
                )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to populate cache for chain %s: %s", root_id, exc)
            return 0

        stored = self._store_entries(entries, generation)
        logger.debug("Populated chain cache for %s: %d/%d sessions", root, stored, len(entries))
        return stored

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    def on_edges_changed(self, session_ids: set[str]) -> None:
        """Listener hook called by the relationship store after a mutation."""
        self.invalidate(*session_ids)

    def invalidate(self, *session_ids: str) -> int:
        """Drop every entry an edge change touching ``session_ids`` could affect.

        For each id this removes the id itself, its current parent, and
        every entry whose root is the id's cached root, its parent's cached
        root, or the chain root computed from the current edges.

        Returns
        -------
        int
            Number of entries removed.
        """
        targets: set[str] = set(session_ids)
        roots: set[str] = set(session_ids)
        for session_id in session_ids:
            parent = self._store.parent_of(session_id)
            if parent is not None:
                targets.add(parent)
            roots.add(self._resolver.find_root(session_id))

        with self._lock:
            self._generation += 1
            removed = 0
            for target in targets:
                entry = self._entries.pop(target, None)
                if entry is not None:
                    roots.add(entry.root_id)
                    removed += 1
            stale = [sid for sid, entry in self._entries.items() if entry.root_id in roots]
            for sid in stale:
                del self._entries[sid]
            removed += len(stale)

        if removed:
            logger.debug("Invalidated %d cache entries for %s", removed, sorted(session_ids))
        return removed

    def clear(self) -> int:
        """Remove every entry.  Returns the number removed."""
        with self._lock:
            self._generation += 1
            count = len(self._entries)
            self._entries.clear()
        return count

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _make_entry(
        session_id: str,
        root_id: str,
        edge: ContinuationEdge | None,
        depth: int,
        child_count: int,
    ) -> ChainCacheEntry:
        return ChainCacheEntry(
            session_id=session_id,
            root_id=root_id,
            is_child=edge is not None,
            is_parent=child_count > 0,
            child_count=child_count,
            chain_position=edge.order if edge is not None else 0,
            is_active_continuation=edge.is_active_continuation if edge is not None else False,
            depth_from_root=depth,
            has_multiple_children=child_count > 1,
            computed_at=utc_now(),
        )

    def _store_entries(self, entries: list[ChainCacheEntry], generation: int) -> int:
        # Sessions with no edges are computed on demand and never kept.
        entries = [e for e in entries if e.is_child or e.is_parent]
        if not entries:
            return 0
        with self._lock:
            if generation != self._generation:
                logger.debug("Discarding %d cache entries computed across an invalidation", len(entries))
                return 0
            for entry in entries:
                self._entries[entry.session_id] = entry
        return len(entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._entries

    def __repr__(self) -> str:
        return f"MetadataCache(entries={len(self)})"
