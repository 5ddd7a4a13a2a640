#!/usr/bin/env python3
"""Example: Storage Backends

Demonstrates storing continuation edges with the in-memory and SQLite
backends, and reading them back after a restart.

Usage:
    python examples/02_storage_backends.py

Requirements:
    pip install session-chain-linker
"""
from __future__ import annotations

import tempfile
from pathlib import Path

import session_chain_linker
from session_chain_linker import (
    ContinuationEngine,
    EdgeBackend,
    InMemoryEdgeBackend,
    InMemorySessionRegistry,
    SQLiteEdgeBackend,
)

ROOT = "1b4e28ba-2fa1-41d2-883f-0016d3cca427"
FIRST = "6fa459ea-ee8a-4ca4-894e-db77e160355e"
SECOND = "16fd2706-8baf-433b-82eb-8c7fada847da"


def demo_backend(label: str, backend: EdgeBackend) -> None:
    registry = InMemorySessionRegistry()
    for session_id in (ROOT, FIRST, SECOND):
        registry.add(session_id)
    engine = ContinuationEngine(registry, backend)
    engine.store.upsert_edge(FIRST, ROOT)
    engine.store.upsert_edge(SECOND, ROOT)
    stats = engine.get_stats()
    print(f"  [{label}] {stats.total_relationships} edges, "
          f"branches={engine.get_chain(ROOT).has_branches}")


def main() -> None:
    print(f"session-chain-linker version: {session_chain_linker.__version__}")

    print("\nIn-memory backend:")
    demo_backend("memory", InMemoryEdgeBackend())

    print("\nSQLite backend:")
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "chains.db"
        demo_backend("sqlite", SQLiteEdgeBackend(db_path))

        # A fresh engine over the same file sees the stored edges; the
        # metadata cache starts cold and is rebuilt on demand.
        restarted = ContinuationEngine(InMemorySessionRegistry(), SQLiteEdgeBackend(db_path))
        print(f"  [sqlite] after restart: {restarted.store.count()} edges, "
              f"{restarted.rebuild_cache()} cache entries rebuilt")
        print(f"  DB size: {db_path.stat().st_size} bytes")


if __name__ == "__main__":
    main()
