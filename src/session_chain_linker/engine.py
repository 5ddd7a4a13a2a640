"""Continuation engine — the operations consumed by the presentation layer.

:class:`ContinuationEngine` wires the components together:

    registry --exists--> RelationshipStore --notifies--> MetadataCache
                              ^        |
       ContinuationDetector --+        +--> ChainResolver
                              |
                        OrphanHealer

Every public method validates session ids before touching the store and
returns pydantic models that can be dumped straight to JSON.

Classes
-------
- ContinuationEngine  — chain, metadata and statistics queries, full
  resolution scans and orphan healing
"""
from __future__ import annotations

import logging

from session_chain_linker.cache.metadata_cache import MetadataCache
from session_chain_linker.config import LinkerConfig
from session_chain_linker.detection.detector import ContinuationDetector, ProgressCallback
from session_chain_linker.healing.guard import InFlightGuard
from session_chain_linker.healing.healer import OrphanHealer
from session_chain_linker.healing.scheduler import DEFAULT_INTERVAL_SECONDS, HealingScheduler
from session_chain_linker.linking.chain import ChainResolver, ChainValidation
from session_chain_linker.linking.store import EdgeSpec, RelationshipStore
from session_chain_linker.models import (
    ChainStats,
    ChainView,
    ContinuationEdge,
    ContinuationMetadata,
    ContinuationStats,
    HealReport,
    ResolveReport,
    SessionGroup,
)
from session_chain_linker.session.registry import DirectorySessionRegistry, SessionRegistry
from session_chain_linker.session.validation import is_session_id, validate_session_id
from session_chain_linker.storage.base import EdgeBackend
from session_chain_linker.storage.memory import InMemoryEdgeBackend
from session_chain_linker.storage.sqlite import SQLiteEdgeBackend

logger = logging.getLogger(__name__)


class ContinuationEngine:
    """Detect, store and serve session continuation chains.

    Parameters
    ----------
    registry:
        Source of truth for which sessions exist and where their
        transcripts live.
    backend:
        Edge persistence.  Defaults to :class:`InMemoryEdgeBackend`.
    detector:
        Transcript detector.  Defaults to ``ContinuationDetector()``.
    max_chain_depth:
        Depth limit for :meth:`validate_chain`.
    healing_interval_seconds:
        Default interval of schedulers built by :meth:`healing_scheduler`.

    Example
    -------
    ::

        engine = ContinuationEngine(DirectorySessionRegistry())
        report = engine.resolve_all()
        view = engine.get_chain(some_session_id)
    """

    def __init__(
        self,
        registry: SessionRegistry,
        backend: EdgeBackend | None = None,
        detector: ContinuationDetector | None = None,
        max_chain_depth: int = 100,
        healing_interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
    ) -> None:
        self.registry = registry
        self.backend = backend if backend is not None else InMemoryEdgeBackend()
        self.detector = detector if detector is not None else ContinuationDetector()
        self.store = RelationshipStore(self.backend, session_exists=registry.exists)
        self.resolver = ChainResolver(self.store, registry, max_depth=max_chain_depth)
        self.cache = MetadataCache(self.store, self.resolver)
        self.store.add_listener(self.cache)
        self.healer = OrphanHealer(self.store, registry, self.detector)
        self.guard = InFlightGuard()
        self.healing_interval_seconds = healing_interval_seconds

    @classmethod
    def from_config(cls, config: LinkerConfig) -> ContinuationEngine:
        """Build an engine over the transcript tree and database in ``config``."""
        return cls(
            registry=DirectorySessionRegistry(config.projects_dir),
            backend=SQLiteEdgeBackend(config.db_path),
            detector=ContinuationDetector(max_workers=config.detection_workers),
            max_chain_depth=config.max_chain_depth,
            healing_interval_seconds=config.healing_interval_seconds,
        )

    # ------------------------------------------------------------------
    # Chain queries
    # ------------------------------------------------------------------

    def get_chain(self, session_id: str) -> ChainView:
        """Return the full chain containing ``session_id``, built from its root.

        Raises
        ------
        InvalidSessionIdError
            If ``session_id`` is not a UUID.
        """
        return self.resolver.get_chain(validate_session_id(session_id))

    def get_children(self, session_id: str) -> list[ContinuationEdge]:
        """Return the direct children of ``session_id`` ordered by ``order``."""
        return self.resolver.children(validate_session_id(session_id))

    def get_session_group(self, session_id: str) -> list[str]:
        """Return the root id followed by every descendant id."""
        return self.resolver.session_group(validate_session_id(session_id))

    def get_group(self, session_id: str) -> SessionGroup:
        """Return root, members and active child of ``session_id``'s chain."""
        return self.resolver.group(validate_session_id(session_id))

    def validate_chain(self, session_id: str) -> ChainValidation:
        """Check the parent walk of ``session_id`` for cycles and excess depth."""
        return self.resolver.validate(validate_session_id(session_id))

    # ------------------------------------------------------------------
    # Metadata and statistics
    # ------------------------------------------------------------------

    def get_metadata(self, session_id: str) -> ContinuationMetadata:
        """Return continuation status for one session, served from the cache."""
        entry = self.cache.get(validate_session_id(session_id))
        return ContinuationMetadata.from_entry(entry)

    def get_chain_stats(self, session_id: str) -> ChainStats:
        """Return depth, size and branching of ``session_id``'s chain.

        Served from cached entries when the chain has been cached; otherwise
        the chain is populated first and, failing that, built directly.
        """
        root = self.resolver.find_root(validate_session_id(session_id))
        stats = self.cache.chain_stats(root)
        if stats is None and self.cache.populate_chain(root):
            stats = self.cache.chain_stats(root)
        if stats is not None:
            return stats
        chain = self.resolver.build_chain(root)
        return ChainStats(
            max_depth=chain.max_depth,
            total_sessions=chain.total_sessions,
            has_branches=chain.has_branches,
        )

    def get_stats(self) -> ContinuationStats:
        """Return statistics over the whole edge set.

        ``total_chains`` counts distinct chain roots, ``max_depth`` is the
        deepest ancestor-walk depth of any session and
        ``average_chain_length`` is relationships per chain.
        """
        edges = self.store.all_edges()
        roots: set[str] = set()
        max_depth = 0
        for edge in edges:
            entry = self.cache.get(edge.child_id)
            roots.add(entry.root_id)
            max_depth = max(max_depth, entry.depth_from_root)

        total_chains = len(roots)
        average = round(len(edges) / total_chains, 2) if total_chains else 0.0
        return ContinuationStats(
            total_chains=total_chains,
            total_relationships=len(edges),
            max_depth=max_depth,
            orphaned_count=sum(1 for edge in edges if edge.is_orphaned),
            average_chain_length=average,
        )

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    def resolve_all(self, progress: ProgressCallback | None = None) -> ResolveReport:
        """Detect continuations in every known transcript and store them.

        Detection fans out over the detector's thread pool; all detected
        edges are then written through the store in a single batch and the
        cache is populated for every affected chain.  Per-file failures are
        collected in ``errors`` and never abort the scan.

        Before detection the stored edges are reconciled with the registry:
        a directory registry is re-indexed, edges whose child session no
        longer exists are removed and orphan flags follow parent existence.
        A rescan therefore never keeps counting a deleted transcript.

        The engine does not reject overlapping calls; share :attr:`guard`
        between callers to avoid running a scan and a healing pass at once.

        Parameters
        ----------
        progress:
            Optional ``progress(done, total, path)`` callback forwarded to
            :meth:`ContinuationDetector.detect_many`.
        """
        if isinstance(self.registry, DirectorySessionRegistry):
            self.registry.refresh()
        report = ResolveReport(stale_removed=self._reconcile_edges())

        records = [r for r in self.registry.list() if r.file_path is not None]
        report.total_scanned = len(records)
        if not records:
            return report

        logger.info("Scanning %d transcripts for continuations", len(records))
        results = self.detector.detect_many([r.file_path for r in records], progress)

        specs: list[EdgeSpec] = []
        for record in records:
            result = results[record.file_path]
            if result.error is not None:
                report.errors.append(f"{record.session_id}: {result.error}")
                continue
            if not result.is_child or result.parent_id is None:
                continue
            if not is_session_id(result.parent_id):
                report.errors.append(
                    f"{record.session_id}: invalid parent id {result.parent_id!r}"
                )
                continue
            specs.append((record.session_id, result.parent_id, result.child_started_at))

        edges = self._write_edges(specs, report.errors)
        report.continuations_found = len(edges)
        report.orphans = sum(1 for edge in edges if edge.is_orphaned)

        roots = {self.resolver.find_root(edge.child_id) for edge in edges}
        report.cached_count = sum(self.cache.populate_chain(root) for root in sorted(roots))

        logger.info(
            "Resolved %d continuations across %d chains (%d orphaned, %d errors)",
            report.continuations_found,
            len(roots),
            report.orphans,
            report.error_count,
        )
        return report

    def heal_orphans(self) -> HealReport:
        """Run one orphan healing pass."""
        return self.healer.heal()

    def healing_scheduler(self, interval_seconds: float | None = None) -> HealingScheduler:
        """Return a scheduler running :meth:`heal_orphans` periodically.

        The scheduler shares :attr:`guard`, so its ticks skip while a scan
        holds it.  It is not started; the caller owns its lifecycle.
        """
        interval = (
            interval_seconds if interval_seconds is not None else self.healing_interval_seconds
        )
        return HealingScheduler(self.heal_orphans, interval_seconds=interval, guard=self.guard)

    # ------------------------------------------------------------------
    # Session lifecycle hooks
    # ------------------------------------------------------------------

    def on_session_created(self, session_id: str) -> int:
        """Heal edges waiting for ``session_id``.  Returns the number healed."""
        return self.store.on_session_created(validate_session_id(session_id))

    def on_session_deleted(self, session_id: str) -> None:
        """Orphan the children of ``session_id`` and drop its own edge."""
        self.store.on_session_deleted(validate_session_id(session_id))

    def sync_sessions(self) -> tuple[list[str], list[str]]:
        """Refresh a directory registry and apply its changes to the store.

        Returns
        -------
        tuple[list[str], list[str]]
            ``(created_ids, deleted_ids)`` reported by the registry.

        Raises
        ------
        TypeError
            If the registry cannot be refreshed.
        """
        if not isinstance(self.registry, DirectorySessionRegistry):
            raise TypeError(f"{type(self.registry).__name__} does not support refresh().")
        created, deleted = self.registry.refresh()
        for session_id in deleted:
            self.store.on_session_deleted(session_id)
        for session_id in created:
            self.store.on_session_created(session_id)
        return created, deleted

    # ------------------------------------------------------------------
    # Cache maintenance
    # ------------------------------------------------------------------

    def clear_cache(self) -> int:
        """Drop every cache entry.  Returns the number removed."""
        return self.cache.clear()

    def rebuild_cache(self) -> int:
        """Populate the cache for every chain.  Returns entries stored."""
        roots = {self.resolver.find_root(edge.child_id) for edge in self.store.all_edges()}
        stored = sum(self.cache.populate_chain(root) for root in sorted(roots))
        logger.info("Rebuilt cache for %d chains (%d entries)", len(roots), stored)
        return stored

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _reconcile_edges(self) -> int:
        """Drop edges of vanished children and re-derive orphan flags.

        Returns the number of edges removed.
        """
        edges = self.store.all_edges()
        stale = {e.child_id for e in edges if not self.registry.exists(e.child_id)}
        for child_id in sorted(stale):
            self.store.on_session_deleted(child_id)

        returned: set[str] = set()
        vanished: set[str] = set()
        for edge in edges:
            if edge.child_id in stale or edge.parent_id in stale:
                continue
            exists = self.registry.exists(edge.parent_id)
            if edge.is_orphaned and exists:
                returned.add(edge.parent_id)
            elif not edge.is_orphaned and not exists:
                vanished.add(edge.parent_id)
        for parent_id in sorted(vanished):
            self.store.on_session_deleted(parent_id)
        for parent_id in sorted(returned):
            self.store.on_session_created(parent_id)

        if stale:
            logger.info("Removed %d continuation edges of deleted sessions", len(stale))
        return len(stale)

    def _write_edges(self, specs: list[EdgeSpec], errors: list[str]) -> list[ContinuationEdge]:
        if not specs:
            return []
        try:
            return self.store.upsert_many(specs)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Batch write failed (%s); retrying edges one by one", exc)

        edges: list[ContinuationEdge] = []
        for child_id, parent_id, started_at in specs:
            try:
                edges.append(self.store.upsert_edge(child_id, parent_id, started_at))
            except Exception as exc:  # noqa: BLE001
                errors.append(f"{child_id}: {exc}")
        return edges

    def __repr__(self) -> str:
        return f"ContinuationEngine(registry={self.registry!r}, backend={self.backend!r})"
