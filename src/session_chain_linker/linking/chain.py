"""Continuation chain resolution.

A chain is the tree of sessions reachable from a root by following
parent-to-child edges.  Resolution always happens from the root, so any
session inside a chain (including one on a side branch) sees the whole
tree and its siblings.

Depth is defined in exactly one way throughout the package: the number of
parent hops from a session up to its chain root.  The breadth-first
expansion in :meth:`ChainResolver.build_chain` produces the same numbers
because every node is reached through its single parent.

Classes
-------
- ChainValidation  — result of a bounded parent-pointer walk
- ChainExpansion   — descendants and child counts of one chain
- ChainResolver    — root finding and tree reconstruction
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field

from session_chain_linker.linking.store import RelationshipStore
from session_chain_linker.models import (
    ChainView,
    ContinuationEdge,
    DescendantNode,
    SessionGroup,
    SessionRef,
)
from session_chain_linker.session.registry import SessionRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChainValidation:
    """Outcome of walking a session's parent pointers.

    Parameters
    ----------
    is_valid:
        False when the walk hit a cycle or exceeded the depth limit.
    depth:
        Number of sessions visited.
    error:
        Description of the problem, empty when valid.
    """

    is_valid: bool
    depth: int
    error: str = ""


@dataclass
class ChainExpansion:
    """Raw result of expanding a chain from its root.

    Parameters
    ----------
    root_id:
        The session the expansion started from.
    descendants:
        ``(edge, depth)`` pairs ordered by depth, then by ``order``.
    child_counts:
        Number of direct children of every expanded session.
    """

    root_id: str
    descendants: list[tuple[ContinuationEdge, int]] = field(default_factory=list)
    child_counts: dict[str, int] = field(default_factory=dict)


class ChainResolver:
    """Find chain roots and reconstruct continuation trees.

    Parameters
    ----------
    store:
        Source of continuation edges.
    registry:
        Optional session registry used to decorate chain members with
        transcript paths and existence flags.
    max_depth:
        Depth limit used by :meth:`validate`.
    """

    def __init__(
        self,
        store: RelationshipStore,
        registry: SessionRegistry | None = None,
        max_depth: int = 100,
    ) -> None:
        if max_depth < 1:
            raise ValueError(f"max_depth must be >= 1, got {max_depth!r}.")
        self._store = store
        self._registry = registry
        self.max_depth = max_depth

    # ------------------------------------------------------------------
    # Upward walks
    # ------------------------------------------------------------------

    def find_root(self, session_id: str) -> str:
        """Walk parent pointers up to the root of ``session_id``'s chain.

        A cycle in the parent pointers stops the walk as soon as a session
        is re-visited.  The smallest id on the cycle is then returned, so
        every member of the cycle agrees on the same root.
        """
        current = session_id
        path: list[str] = []
        visited: set[str] = set()
        while True:
            if current in visited:
                cycle = path[path.index(current):]
                logger.warning(
                    "Circular reference detected in continuation chain for %s at %s",
                    session_id,
                    current,
                )
                return min(cycle)
            visited.add(current)
            path.append(current)
            parent = self._store.parent_of(current)
            if parent is None:
                return current
            current = parent

    def depth_of(self, session_id: str, root_id: str | None = None) -> int:
        """Return the number of parent hops from ``session_id`` to its root."""
        root = root_id if root_id is not None else self.find_root(session_id)
        depth = 0
        current = session_id
        visited = {current}
        while current != root:
            parent = self._store.parent_of(current)
            if parent is None or parent in visited:
                break
            depth += 1
            visited.add(parent)
            current = parent
        return depth

    def validate(self, session_id: str) -> ChainValidation:
        """Walk the parent pointers of ``session_id`` with cycle and depth limits."""
        visited: set[str] = set()
        current: str | None = session_id
        depth = 0
        while current is not None:
            depth += 1
            if current in visited:
                return ChainValidation(
                    False, depth, f"Circular reference detected at session {current}"
                )
            if depth > self.max_depth:
                return ChainValidation(
                    False, depth, f"Chain depth exceeded maximum ({self.max_depth})"
                )
            visited.add(current)
            current = self._store.parent_of(current)
        return ChainValidation(True, depth)

    # ------------------------------------------------------------------
    # Downward expansion
    # ------------------------------------------------------------------

    def expand(self, root_id: str) -> ChainExpansion:
        """Breadth-first expansion of every descendant of ``root_id``.

        Uses an explicit work queue, so arbitrarily long chains never hit
        a recursion limit.  A session reached a second time (only possible
        with cyclic parent pointers) is logged and not expanded again.
        """
        found: list[tuple[ContinuationEdge, int]] = []
        child_counts: dict[str, int] = {}
        visited = {root_id}
        queue: deque[tuple[str, int]] = deque([(root_id, 0)])
        while queue:
            node_id, depth = queue.popleft()
            edges = self._store.children_of(node_id)
            child_counts[node_id] = len(edges)
            for edge in edges:
                if edge.child_id in visited:
                    logger.warning(
                        "Session %s reached twice while expanding chain %s",
                        edge.child_id,
                        root_id,
                    )
                    continue
                visited.add(edge.child_id)
                found.append((edge, depth + 1))
                queue.append((edge.child_id, depth + 1))
        found.sort(key=lambda item: (item[1], item[0].order))
        return ChainExpansion(root_id=root_id, descendants=found, child_counts=child_counts)

    def descendants(self, root_id: str) -> list[tuple[ContinuationEdge, int]]:
        """Return ``(edge, depth)`` pairs below ``root_id``, by depth then ``order``."""
        return self.expand(root_id).descendants

    def build_chain(self, root_id: str) -> ChainView:
        """Reconstruct the full continuation tree below ``root_id``."""
        expansion = self.expand(root_id)
        descendants = expansion.descendants

        children: list[SessionRef] = []
        flat: list[DescendantNode] = []
        for edge, depth in descendants:
            ref = self._session_ref(edge.child_id)
            children.append(ref)
            flat.append(
                DescendantNode(
                    session=ref,
                    parent_id=edge.parent_id,
                    depth=depth,
                    order=edge.order,
                    is_active_continuation=edge.is_active_continuation,
                )
            )

        return ChainView(
            parent=self._session_ref(root_id),
            children=children,
            flat_descendants=flat,
            has_branches=any(count > 1 for count in expansion.child_counts.values()),
            total_sessions=1 + len(descendants),
            max_depth=max((depth for _, depth in descendants), default=0),
        )

    def get_chain(self, session_id: str) -> ChainView:
        """Return the whole chain containing ``session_id``, built from its root."""
        return self.build_chain(self.find_root(session_id))

    def children(self, session_id: str) -> list[ContinuationEdge]:
        """Return the direct children of ``session_id`` ordered by ``order``."""
        return self._store.children_of(session_id)

    def session_group(self, session_id: str) -> list[str]:
        """Return the root id followed by every descendant id."""
        return self.get_chain(session_id).session_ids()

    def group(self, session_id: str) -> SessionGroup:
        """Return the chain of ``session_id`` shaped for list presentation."""
        chain = self.get_chain(session_id)
        root_children = [
            node for node in chain.flat_descendants if node.parent_id == chain.root_id
        ]
        active = next((n.session for n in root_children if n.is_active_continuation), None)
        return SessionGroup(
            root=chain.parent,
            all_sessions=[chain.parent, *chain.children],
            active_child=active,
            flat_descendants=chain.flat_descendants,
            has_branches=chain.has_branches,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _session_ref(self, session_id: str) -> SessionRef:
        if self._registry is None:
            return SessionRef(session_id=session_id)
        record = self._registry.get(session_id)
        if record is None:
            return SessionRef(session_id=session_id, exists=False)
        return SessionRef(
            session_id=session_id,
            exists=True,
            file_path=str(record.file_path) if record.file_path is not None else None,
            project_path=record.project_path,
        )

    def __repr__(self) -> str:
        return f"ChainResolver(store={self._store!r}, max_depth={self.max_depth})"
