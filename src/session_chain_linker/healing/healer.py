"""Orphan healing — re-probe edges whose parent was missing.

An edge is orphaned while its parent session is unknown.  Most orphans
heal themselves through :meth:`RelationshipStore.on_session_created`, but
a parent can also reappear without a creation notification (a restored
backup, a registry that was rebuilt offline).  The healer covers that case
by re-reading the child's transcript and re-writing the edge when the
evidence still agrees with what is stored.

Classes
-------
- OrphanHealer  — one on-demand healing pass over all orphaned edges
"""
from __future__ import annotations

import logging

from session_chain_linker.detection.detector import ContinuationDetector
from session_chain_linker.linking.store import RelationshipStore
from session_chain_linker.models import HealReport
from session_chain_linker.session.registry import SessionRegistry

logger = logging.getLogger(__name__)


class OrphanHealer:
    """Heal orphaned edges whose parent exists again.

    An orphan is healed only when re-detection of the child transcript
    reports the *same* parent that is already stored and that parent now
    exists.  Disagreeing evidence leaves the edge orphaned; it is never
    overwritten.

    Parameters
    ----------
    store:
        Relationship store holding the edges.
    registry:
        Session registry used to resolve transcript paths and parent
        existence.
    detector:
        Detector used to re-read child transcripts.
    """

    def __init__(
        self,
        store: RelationshipStore,
        registry: SessionRegistry,
        detector: ContinuationDetector | None = None,
    ) -> None:
        self._store = store
        self._registry = registry
        self._detector = detector if detector is not None else ContinuationDetector()

    def heal(self) -> HealReport:
        """Run one healing pass.

        Returns
        -------
        HealReport
            ``healed`` edges cleared in this pass, ``remaining`` orphaned
            edges afterwards, and one message per edge that failed.
        """
        healed = 0
        errors: list[str] = []
        candidates = self._store.orphaned_edges()

        for edge in candidates:
            path = self._registry.file_path(edge.child_id)
            if path is None or not path.is_file():
                logger.debug("Orphan %s has no readable transcript; skipping", edge.child_id)
                continue
            try:
                result = self._detector.detect(path, session_id=edge.child_id)
                if result.error is not None:
                    errors.append(f"{edge.child_id}: {result.error}")
                    continue
                if result.parent_id != edge.parent_id:
                    logger.warning(
                        "Not healing %s: transcript names parent %s, stored parent is %s",
                        edge.child_id,
                        result.parent_id,
                        edge.parent_id,
                    )
                    continue
                if not self._registry.exists(edge.parent_id):
                    continue
                refreshed = self._store.upsert_edge(
                    edge.child_id, edge.parent_id, result.child_started_at
                )
                if not refreshed.is_orphaned:
                    healed += 1
            except Exception as exc:  # noqa: BLE001
                logger.warning("Healing %s failed: %s", edge.child_id, exc)
                errors.append(f"{edge.child_id}: {exc}")

        remaining = len(self._store.orphaned_edges())
        logger.info(
            "Orphan healing: %d of %d healed, %d remaining", healed, len(candidates), remaining
        )
        return HealReport(healed=healed, remaining=remaining, errors=errors)

    def __repr__(self) -> str:
        return f"OrphanHealer(store={self._store!r}, registry={self._registry!r})"
