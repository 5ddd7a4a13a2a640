#!/usr/bin/env python3
"""Example: Orphan Healing

A child transcript is scanned before its parent is known, so its edge is
stored as orphaned.  Once the parent appears, a healing pass links it.

Usage:
    python examples/03_orphan_healing.py

Requirements:
    pip install session-chain-linker
"""
from __future__ import annotations

import json
import tempfile
from pathlib import Path

from session_chain_linker import ContinuationEngine, DirectorySessionRegistry, HealingScheduler

PARENT = "1b4e28ba-2fa1-41d2-883f-0016d3cca427"
CHILD = "6fa459ea-ee8a-4ca4-894e-db77e160355e"


def main() -> None:
    with tempfile.TemporaryDirectory() as tmpdir:
        project = Path(tmpdir) / "my-project"
        project.mkdir()
        boundary = {
            "type": "system",
            "subtype": "compact_boundary",
            "sessionId": PARENT,
            "timestamp": "2025-01-15T10:30:00.000Z",
            "content": "Conversation compacted",
        }
        (project / f"{CHILD}.jsonl").write_text(json.dumps(boundary) + "\n", encoding="utf-8")

        engine = ContinuationEngine(DirectorySessionRegistry(tmpdir))
        report = engine.resolve_all()
        print(f"Orphans after first scan: {report.orphans}")

        # The parent transcript shows up later.
        (project / f"{PARENT}.jsonl").write_text("", encoding="utf-8")
        engine.registry.refresh()

        scheduler = HealingScheduler(engine.heal_orphans, interval_seconds=60, guard=engine.guard)
        heal = scheduler.run_once()
        if heal is not None:
            print(f"Healed: {heal.healed}, still orphaned: {heal.remaining}")
        print(f"Chain size: {engine.get_chain(CHILD).total_sessions}")


if __name__ == "__main__":
    main()
