"""SQLite edge backend.

Stores continuation edges in a single SQLite database file using the
Python standard library ``sqlite3`` module.

Classes
-------
- SQLiteEdgeBackend  — SQLite-backed continuation edge storage
"""
from __future__ import annotations

import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from session_chain_linker.models import ContinuationEdge
from session_chain_linker.storage.base import EdgeBackend

_DEFAULT_DB_PATH: Path = Path.home() / ".session-chains" / "chains.db"
_CREATE_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS session_continuations (
    child_session_id       TEXT PRIMARY KEY,
    parent_session_id      TEXT NOT NULL,
    continuation_order     INTEGER NOT NULL DEFAULT 1,
    child_started_at       TEXT,
    is_active_continuation INTEGER NOT NULL DEFAULT 0,
    is_orphaned            INTEGER NOT NULL DEFAULT 0,
    discovered_at          TEXT NOT NULL,
    updated_at             TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_continuations_parent
    ON session_continuations(parent_session_id, continuation_order);
CREATE INDEX IF NOT EXISTS idx_continuations_orphaned
    ON session_continuations(is_orphaned) WHERE is_orphaned = 1;
"""
_UPSERT_SQL = """
INSERT INTO session_continuations (
    child_session_id, parent_session_id, continuation_order, child_started_at,
    is_active_continuation, is_orphaned, discovered_at, updated_at
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(child_session_id) DO UPDATE SET
    parent_session_id      = excluded.parent_session_id,
    continuation_order     = excluded.continuation_order,
    child_started_at       = excluded.child_started_at,
    is_active_continuation = excluded.is_active_continuation,
    is_orphaned            = excluded.is_orphaned,
    updated_at             = excluded.updated_at
"""
_SELECT_COLUMNS = (
    "SELECT child_session_id, parent_session_id, continuation_order, child_started_at, "
    "is_active_continuation, is_orphaned, discovered_at, updated_at "
    "FROM session_continuations"
)


def _to_row(edge: ContinuationEdge) -> tuple[object, ...]:
    return (
        edge.child_id,
        edge.parent_id,
        edge.order,
        edge.child_started_at.isoformat() if edge.child_started_at else None,
        int(edge.is_active_continuation),
        int(edge.is_orphaned),
        edge.discovered_at.isoformat(),
        edge.updated_at.isoformat(),
    )


def _from_row(row: sqlite3.Row) -> ContinuationEdge:
    started = row["child_started_at"]
    return ContinuationEdge(
        child_id=row["child_session_id"],
        parent_id=row["parent_session_id"],
        order=int(row["continuation_order"]),
        child_started_at=datetime.fromisoformat(started) if started else None,
        is_active_continuation=bool(row["is_active_continuation"]),
        is_orphaned=bool(row["is_orphaned"]),
        discovered_at=datetime.fromisoformat(row["discovered_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


class SQLiteEdgeBackend(EdgeBackend):
    """Persists continuation edges in a local SQLite database.

    Each edge occupies one row of ``session_continuations`` with the child
    session id as primary key.

    Parameters
    ----------
    db_path:
        Path to the SQLite file.  Defaults to
        ``~/.session-chains/chains.db``.  The parent directory and schema
        are created automatically on first use.
    """

    def __init__(self, db_path: str | Path | None = None) -> None:
        self._db_path: Path = (
            Path(db_path) if db_path is not None else _DEFAULT_DB_PATH
        )
        self._initialized = False

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, commit on success and always close it."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self._db_path))
        conn.row_factory = sqlite3.Row
        try:
            if not self._initialized:
                conn.execute("PRAGMA journal_mode=WAL")
                conn.executescript(_CREATE_SCHEMA_SQL)
                self._initialized = True
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # EdgeBackend interface
    # ------------------------------------------------------------------

    def get(self, child_id: str) -> ContinuationEdge | None:
        with self._connect() as conn:
            row = conn.execute(
                f"{_SELECT_COLUMNS} WHERE child_session_id = ?", (child_id,)
            ).fetchone()
        return _from_row(row) if row is not None else None

    def save(self, edge: ContinuationEdge) -> None:
        with self._connect() as conn:
            conn.execute(_UPSERT_SQL, _to_row(edge))

    def save_many(self, edges: Iterable[ContinuationEdge]) -> None:
        rows = [_to_row(edge) for edge in edges]
        if not rows:
            return
        with self._connect() as conn:
            conn.executemany(_UPSERT_SQL, rows)

    def delete(self, child_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM session_continuations WHERE child_session_id = ?", (child_id,)
            )
        return cursor.rowcount > 0

    def apply(self, saves: Iterable[ContinuationEdge], deletes: Iterable[str]) -> None:
        rows = [_to_row(edge) for edge in saves]
        removed = [(child_id,) for child_id in deletes]
        if not rows and not removed:
            return
        with self._connect() as conn:
            if rows:
                conn.executemany(_UPSERT_SQL, rows)
            if removed:
                conn.executemany(
                    "DELETE FROM session_continuations WHERE child_session_id = ?", removed
                )

    def children_of(self, parent_id: str) -> list[ContinuationEdge]:
        with self._connect() as conn:
            rows = conn.execute(
                f"{_SELECT_COLUMNS} WHERE parent_session_id = ? "
                "ORDER BY continuation_order ASC, child_session_id ASC",
                (parent_id,),
            ).fetchall()
        return [_from_row(row) for row in rows]

    def list(self) -> list[ContinuationEdge]:
        with self._connect() as conn:
            rows = conn.execute(_SELECT_COLUMNS).fetchall()
        return [_from_row(row) for row in rows]

    def orphaned(self) -> list[ContinuationEdge]:
        with self._connect() as conn:
            rows = conn.execute(f"{_SELECT_COLUMNS} WHERE is_orphaned = 1").fetchall()
        return [_from_row(row) for row in rows]

    def count(self) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS n FROM session_continuations").fetchone()
        return int(row["n"])

    def __repr__(self) -> str:
        return f"SQLiteEdgeBackend(db_path={str(self._db_path)!r})"
