"""Unit tests for session_chain_linker.storage.sqlite.SQLiteEdgeBackend.

Uses tmp_path so every test gets an isolated, ephemeral SQLite file.
"""
from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path

import pytest

from session_chain_linker.models import ContinuationEdge
from session_chain_linker.storage.sqlite import SQLiteEdgeBackend

P = "aaaaaaaa-0000-4000-8000-000000000001"
C1 = "bbbbbbbb-0000-4000-8000-000000000001"
C2 = "bbbbbbbb-0000-4000-8000-000000000002"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "test_chains.db"


@pytest.fixture()
def backend(db_path: Path) -> SQLiteEdgeBackend:
    return SQLiteEdgeBackend(db_path=db_path)


def _edge(child: str, parent: str = P, order: int = 1, **kwargs: object) -> ContinuationEdge:
    return ContinuationEdge(child_id=child, parent_id=parent, order=order, **kwargs)


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestSQLiteEdgeBackendConstruction:
    def test_accepts_string_path(self, tmp_path: Path) -> None:
        backend = SQLiteEdgeBackend(db_path=str(tmp_path / "str.db"))
        assert isinstance(backend._db_path, Path)

    def test_default_none_uses_home_based_path(self) -> None:
        backend = SQLiteEdgeBackend(db_path=None)
        assert "chains.db" in str(backend._db_path)

    def test_repr_contains_db_path(self, backend: SQLiteEdgeBackend) -> None:
        assert "test_chains.db" in repr(backend)

    def test_creates_parent_directory(self, tmp_path: Path) -> None:
        nested = tmp_path / "nested" / "deep" / "chains.db"
        SQLiteEdgeBackend(db_path=nested).save(_edge(C1))
        assert nested.exists()

    def test_schema_table_exists(self, backend: SQLiteEdgeBackend, db_path: Path) -> None:
        backend.count()
        conn = sqlite3.connect(str(db_path))
        try:
            names = {
                row[0]
                for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
            }
        finally:
            conn.close()
        assert "session_continuations" in names


# ---------------------------------------------------------------------------
# save / get
# ---------------------------------------------------------------------------


class TestSQLiteEdgeBackendSaveGet:
    def test_roundtrip_preserves_fields(self, backend: SQLiteEdgeBackend) -> None:
        started = datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc)
        original = _edge(
            C1,
            order=3,
            child_started_at=started,
            is_active_continuation=True,
            is_orphaned=True,
        )
        backend.save(original)
        loaded = backend.get(C1)
        assert loaded == original

    def test_missing_started_at_roundtrips_as_none(self, backend: SQLiteEdgeBackend) -> None:
        backend.save(_edge(C1))
        assert backend.get(C1).child_started_at is None  # type: ignore[union-attr]

    def test_get_missing_returns_none(self, backend: SQLiteEdgeBackend) -> None:
        assert backend.get(C1) is None

    def test_save_upserts_existing(self, backend: SQLiteEdgeBackend) -> None:
        backend.save(_edge(C1, order=1))
        backend.save(_edge(C1, order=4))
        assert backend.count() == 1
        assert backend.get(C1).order == 4  # type: ignore[union-attr]

    def test_save_many_and_empty(self, backend: SQLiteEdgeBackend) -> None:
        backend.save_many([])
        backend.save_many([_edge(C1), _edge(C2, order=2)])
        assert backend.count() == 2

    def test_data_survives_new_instance(self, db_path: Path) -> None:
        SQLiteEdgeBackend(db_path=db_path).save(_edge(C1))
        assert SQLiteEdgeBackend(db_path=db_path).get(C1) is not None


# ---------------------------------------------------------------------------
# queries / delete
# ---------------------------------------------------------------------------


class TestSQLiteEdgeBackendQueries:
    def test_children_ordered(self, backend: SQLiteEdgeBackend) -> None:
        backend.save_many([_edge(C2, order=2), _edge(C1, order=1)])
        assert [e.child_id for e in backend.children_of(P)] == [C1, C2]

    def test_orphaned(self, backend: SQLiteEdgeBackend) -> None:
        backend.save_many([_edge(C1, is_orphaned=True), _edge(C2, order=2)])
        assert [e.child_id for e in backend.orphaned()] == [C1]

    def test_list(self, backend: SQLiteEdgeBackend) -> None:
        backend.save_many([_edge(C1), _edge(C2, order=2)])
        assert {e.child_id for e in backend.list()} == {C1, C2}

    def test_delete(self, backend: SQLiteEdgeBackend) -> None:
        backend.save(_edge(C1))
        assert backend.delete(C1) is True
        assert backend.delete(C1) is False
        assert backend.count() == 0

    def test_apply_saves_and_deletes(self, backend: SQLiteEdgeBackend) -> None:
        backend.save(_edge(C1))
        backend.apply([_edge(C2, order=2, is_active_continuation=True)], [C1])
        assert backend.get(C1) is None
        assert backend.get(C2).is_active_continuation is True  # type: ignore[union-attr]

    def test_apply_with_nothing_to_do(self, backend: SQLiteEdgeBackend) -> None:
        backend.apply([], [])
        assert backend.count() == 0

    def test_apply_rolls_back_on_failure(self, backend: SQLiteEdgeBackend) -> None:
        backend.save(_edge(C1))
        real_executemany = sqlite3.Connection.executemany

        class FailingConnection(sqlite3.Connection):
            def executemany(self, sql, rows):  # type: ignore[no-untyped-def, override]
                if sql.lstrip().startswith("DELETE"):
                    raise sqlite3.OperationalError("disk I/O error")
                return real_executemany(self, sql, rows)

        original_connect = sqlite3.connect

        def _connect(*args, **kwargs):  # type: ignore[no-untyped-def]
            return original_connect(*args, factory=FailingConnection, **kwargs)

        with pytest.MonkeyPatch.context() as mp:
            mp.setattr(sqlite3, "connect", _connect)
            with pytest.raises(sqlite3.OperationalError):
                backend.apply([_edge(C2, order=2)], [C1])
        assert backend.get(C1) is not None
        assert backend.get(C2) is None
