"""Unit tests for session_chain_linker.cache.metadata_cache.MetadataCache."""
from __future__ import annotations

import pytest

from session_chain_linker.cache.metadata_cache import MetadataCache
from session_chain_linker.linking.chain import ChainResolver
from session_chain_linker.linking.store import RelationshipStore
from session_chain_linker.storage.memory import InMemoryEdgeBackend

R = "aaaaaaaa-0000-4000-8000-000000000001"
A = "bbbbbbbb-0000-4000-8000-000000000001"
B = "bbbbbbbb-0000-4000-8000-000000000002"
AA = "cccccccc-0000-4000-8000-000000000001"
NEW = "dddddddd-0000-4000-8000-000000000001"
OTHER_ROOT = "eeeeeeee-0000-4000-8000-000000000001"
OTHER_CHILD = "eeeeeeee-0000-4000-8000-000000000002"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def store() -> RelationshipStore:
    return RelationshipStore(InMemoryEdgeBackend(), lambda _sid: True)


@pytest.fixture()
def resolver(store: RelationshipStore) -> ChainResolver:
    return ChainResolver(store)


@pytest.fixture()
def cache(store: RelationshipStore, resolver: ChainResolver) -> MetadataCache:
    cache = MetadataCache(store, resolver)
    store.add_listener(cache)
    return cache


@pytest.fixture()
def chain(store: RelationshipStore, cache: MetadataCache) -> RelationshipStore:
    """R -> A (1), B (2); A -> AA.  Plus an unrelated OTHER_ROOT -> OTHER_CHILD."""
    store.upsert_many(
        [(A, R, None), (B, R, None), (AA, A, None), (OTHER_CHILD, OTHER_ROOT, None)]
    )
    return store


# ---------------------------------------------------------------------------
# get
# ---------------------------------------------------------------------------


class TestGet:
    def test_miss_computes_and_stores(self, chain: RelationshipStore, cache: MetadataCache) -> None:
        assert cache.peek(AA) is None
        entry = cache.get(AA)
        assert cache.peek(AA) == entry

    def test_hit_returns_same_entry(self, chain: RelationshipStore, cache: MetadataCache) -> None:
        first = cache.get(A)
        assert cache.get(A) is first

    def test_root_entry(self, chain: RelationshipStore, cache: MetadataCache) -> None:
        entry = cache.get(R)
        assert entry.root_id == R
        assert entry.is_child is False
        assert entry.is_parent is True
        assert entry.child_count == 2
        assert entry.has_multiple_children is True
        assert entry.chain_position == 0
        assert entry.depth_from_root == 0

    def test_child_entry(self, chain: RelationshipStore, cache: MetadataCache) -> None:
        entry = cache.get(B)
        assert entry.root_id == R
        assert entry.is_child is True
        assert entry.is_parent is False
        assert entry.chain_position == 2
        assert entry.is_active_continuation is True
        assert entry.depth_from_root == 1

    def test_grandchild_depth(self, chain: RelationshipStore, cache: MetadataCache) -> None:
        assert cache.get(AA).depth_from_root == 2

    def test_unknown_session(self, cache: MetadataCache) -> None:
        entry = cache.get(NEW)
        assert entry.root_id == NEW
        assert entry.is_child is False
        assert entry.child_count == 0

    def test_session_without_edges_is_not_stored(self, cache: MetadataCache) -> None:
        for _ in range(3):
            assert cache.get(NEW).root_id == NEW
        assert NEW not in cache
        assert len(cache) == 0

    def test_session_gains_entry_once_linked(
        self, store: RelationshipStore, cache: MetadataCache
    ) -> None:
        cache.get(NEW)
        store.upsert_edge(NEW, R)
        assert cache.get(NEW).is_child is True
        assert NEW in cache


# ---------------------------------------------------------------------------
# Invalidation
# ---------------------------------------------------------------------------


class TestInvalidation:
    def test_new_edge_under_root_drops_chain_entries(
        self, chain: RelationshipStore, cache: MetadataCache, resolver: ChainResolver
    ) -> None:
        for session_id in (R, A, B, AA):
            cache.get(session_id)
        chain.upsert_edge(NEW, AA)
        for session_id in (R, A, B, AA):
            assert cache.peek(session_id) is None

        view = resolver.build_chain(R)
        for node in view.flat_descendants:
            assert cache.get(node.session.session_id).depth_from_root == node.depth

    def test_unrelated_chain_untouched(
        self, chain: RelationshipStore, cache: MetadataCache
    ) -> None:
        cache.get(OTHER_CHILD)
        cache.get(A)
        chain.upsert_edge(NEW, R)
        assert cache.peek(OTHER_CHILD) is not None
        assert cache.peek(A) is None

    def test_noop_upsert_keeps_entries(
        self, chain: RelationshipStore, cache: MetadataCache
    ) -> None:
        entry = cache.get(A)
        chain.upsert_edge(A, R)
        assert cache.peek(A) is entry

    def test_attaching_root_under_new_parent(
        self, chain: RelationshipStore, cache: MetadataCache
    ) -> None:
        for session_id in (R, A, AA):
            cache.get(session_id)
        chain.upsert_edge(R, NEW)
        assert cache.peek(AA) is None
        assert cache.get(AA).root_id == NEW
        assert cache.get(AA).depth_from_root == 3

    def test_removing_edge_splits_chain(
        self, chain: RelationshipStore, cache: MetadataCache
    ) -> None:
        cache.get(AA)
        chain.remove_edge(A)
        entry = cache.get(AA)
        assert entry.root_id == A
        assert entry.depth_from_root == 1

    def test_parent_child_count_refreshed(
        self, chain: RelationshipStore, cache: MetadataCache
    ) -> None:
        assert cache.get(A).child_count == 1
        chain.upsert_edge(NEW, A)
        assert cache.get(A).child_count == 2
        assert cache.get(A).has_multiple_children is True

    def test_session_deleted_invalidates(
        self, chain: RelationshipStore, cache: MetadataCache
    ) -> None:
        cache.get(AA)
        chain.on_session_deleted(A)
        assert cache.peek(AA) is None
        assert cache.get(AA).root_id == A

    def test_invalidate_returns_removed_count(
        self, chain: RelationshipStore, cache: MetadataCache
    ) -> None:
        for session_id in (R, A, B, AA, OTHER_CHILD):
            cache.get(session_id)
        assert cache.invalidate(B) == 4
        assert len(cache) == 1

    def test_clear(self, chain: RelationshipStore, cache: MetadataCache) -> None:
        cache.get(A)
        cache.get(B)
        assert cache.clear() == 2
        assert len(cache) == 0


# ---------------------------------------------------------------------------
# populate_chain / chain_stats
# ---------------------------------------------------------------------------


class TestPopulateChain:
    def test_populates_every_member(self, chain: RelationshipStore, cache: MetadataCache) -> None:
        assert cache.populate_chain(R) == 4
        for session_id in (R, A, B, AA):
            assert session_id in cache
        assert OTHER_CHILD not in cache

    def test_any_member_resolves_root(self, chain: RelationshipStore, cache: MetadataCache) -> None:
        assert cache.populate_chain(AA) == 4
        assert cache.peek(R) is not None

    def test_populated_entries_match_lazy_computation(
        self, chain: RelationshipStore, cache: MetadataCache
    ) -> None:
        cache.populate_chain(R)
        for session_id in (R, A, B, AA):
            populated = cache.peek(session_id)
            computed = cache.compute(session_id)
            assert populated is not None
            assert populated.model_dump(exclude={"computed_at"}) == computed.model_dump(
                exclude={"computed_at"}
            )

    def test_failure_returns_zero(self, chain: RelationshipStore, cache: MetadataCache, monkeypatch: pytest.MonkeyPatch) -> None:
        def _boom(_root: str) -> None:
            raise RuntimeError("backend gone")

        monkeypatch.setattr(cache._resolver, "expand", _boom)
        assert cache.populate_chain(R) == 0
        assert len(cache) == 0

    def test_entries_for_root_ordered(self, chain: RelationshipStore, cache: MetadataCache) -> None:
        cache.populate_chain(R)
        assert [e.session_id for e in cache.entries_for_root(R)] == [R, A, B, AA]


class TestChainStats:
    def test_none_when_not_cached(self, chain: RelationshipStore, cache: MetadataCache) -> None:
        assert cache.chain_stats(R) is None

    def test_aggregates_cached_entries(
        self, chain: RelationshipStore, cache: MetadataCache
    ) -> None:
        cache.populate_chain(R)
        stats = cache.chain_stats(R)
        assert stats is not None
        assert stats.total_sessions == 4
        assert stats.max_depth == 2
        assert stats.has_branches is True

    def test_repr(self, cache: MetadataCache) -> None:
        assert "entries=0" in repr(cache)
