"""Continuation chain domain models.

All types are Pydantic BaseModel subclasses so that every record crossing
a layer boundary is validated and can be dumped straight to JSON for the
presentation layer.

Classes
-------
- ContinuationEdge      — one parent/child continuation relationship
- ChainCacheEntry       — derived per-session projection of the edge set
- SessionRef            — a session as seen from a chain view
- DescendantNode        — one descendant inside a ChainView
- ChainView             — full tree reconstructed from a chain root
- SessionGroup          — root, members and active child of a chain
- ContinuationMetadata  — per-session continuation status
- ChainStats            — aggregate over cached entries of one chain
- ContinuationStats     — global statistics over all edges
- ResolveReport         — outcome of a full resolution scan
- HealReport            — outcome of an orphan healing pass
"""
from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field, model_validator


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class ContinuationEdge(BaseModel):
    """A directed continuation relationship keyed by the child session.

    Parameters
    ----------
    child_id:
        The continuing session.  Unique: a child has exactly one parent.
    parent_id:
        The session that was continued.
    order:
        1-based creation order among the parent's children.
    child_started_at:
        Timestamp of the boundary record that started the child.
    is_active_continuation:
        True for the most recently created child of ``parent_id``.
    is_orphaned:
        True while ``parent_id`` has no matching session.
    discovered_at:
        When the edge was first stored (UTC).
    updated_at:
        When the edge was last modified (UTC).
    """

    child_id: str
    parent_id: str
    order: int = Field(default=1, ge=1)
    child_started_at: datetime | None = None
    is_active_continuation: bool = False
    is_orphaned: bool = False
    discovered_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    model_config = {"frozen": False}

    @model_validator(mode="after")
    def _no_self_edge(self) -> ContinuationEdge:
        if self.child_id == self.parent_id:
            raise ValueError(f"Session {self.child_id!r} cannot continue itself.")
        return self


class ChainCacheEntry(BaseModel):
    """Cached continuation facts for one session.

    Every field is a pure function of the edges reachable from
    ``root_id``; an entry can be dropped at any time and recomputed.
    """

    session_id: str
    root_id: str
    is_child: bool = False
    is_parent: bool = False
    child_count: int = Field(default=0, ge=0)
    chain_position: int = Field(default=0, ge=0)
    is_active_continuation: bool = False
    depth_from_root: int = Field(default=0, ge=0)
    has_multiple_children: bool = False
    computed_at: datetime = Field(default_factory=utc_now)


class SessionRef(BaseModel):
    """A session referenced from a chain view."""

    session_id: str
    exists: bool = True
    file_path: str | None = None
    project_path: str = ""


class DescendantNode(BaseModel):
    """One descendant of a chain root, with its position in the tree."""

    session: SessionRef
    parent_id: str
    depth: int = Field(ge=1)
    order: int = Field(ge=1)
    is_active_continuation: bool = False


class ChainView(BaseModel):
    """A continuation tree reconstructed from its root.

    ``children`` is flat and ordered by depth, then by ``order``.
    ``flat_descendants`` carries the same sessions with parent references
    so the tree can be rebuilt by the caller.
    """

    parent: SessionRef
    children: list[SessionRef] = Field(default_factory=list)
    flat_descendants: list[DescendantNode] = Field(default_factory=list)
    has_branches: bool = False
    total_sessions: int = 1
    max_depth: int = 0

    @property
    def root_id(self) -> str:
        """Session id of the chain root."""
        return self.parent.session_id

    def session_ids(self) -> list[str]:
        """Return the root id followed by every descendant id."""
        return [self.parent.session_id, *(child.session_id for child in self.children)]


class SessionGroup(BaseModel):
    """Presentation-friendly grouping of a chain."""

    root: SessionRef
    all_sessions: list[SessionRef] = Field(default_factory=list)
    active_child: SessionRef | None = None
    flat_descendants: list[DescendantNode] = Field(default_factory=list)
    has_branches: bool = False


class ContinuationMetadata(BaseModel):
    """Continuation status of a single session."""

    is_child: bool = False
    is_parent: bool = False
    depth: int = 0
    chain_position: int = 0
    is_active_continuation: bool = False
    child_count: int = 0
    has_children: bool = False

    @classmethod
    def from_entry(cls, entry: ChainCacheEntry) -> ContinuationMetadata:
        """Project a cache entry onto the public metadata shape."""
        return cls(
            is_child=entry.is_child,
            is_parent=entry.is_parent,
            depth=entry.depth_from_root,
            chain_position=entry.chain_position,
            is_active_continuation=entry.is_active_continuation,
            child_count=entry.child_count,
            has_children=entry.is_parent,
        )


class ChainStats(BaseModel):
    """Aggregate over the cached entries of one chain."""

    max_depth: int = 0
    total_sessions: int = 0
    has_branches: bool = False


class ContinuationStats(BaseModel):
    """Statistics over the whole edge set."""

    total_chains: int = 0
    total_relationships: int = 0
    max_depth: int = 0
    orphaned_count: int = 0
    average_chain_length: float = 0.0


class ResolveReport(BaseModel):
    """Outcome of a full continuation resolution scan."""

    total_scanned: int = 0
    continuations_found: int = 0
    errors: list[str] = Field(default_factory=list)
    orphans: int = 0
    cached_count: int = 0
    stale_removed: int = 0

    @property
    def error_count(self) -> int:
        """Number of per-item failures recorded during the scan."""
        return len(self.errors)


class HealReport(BaseModel):
    """Outcome of an orphan healing pass."""

    healed: int = 0
    remaining: int = 0
    errors: list[str] = Field(default_factory=list)
