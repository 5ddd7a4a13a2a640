#!/usr/bin/env python3
"""Example: Quickstart — session-chain-linker

Minimal working example: write two transcripts where the second continues
the first, resolve them, and print the chain.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install session-chain-linker
"""
from __future__ import annotations

import json
import tempfile
from pathlib import Path

import session_chain_linker
from session_chain_linker import ChainLinker

PARENT = "1b4e28ba-2fa1-41d2-883f-0016d3cca427"
CHILD = "6fa459ea-ee8a-4ca4-894e-db77e160355e"


def write_transcript(directory: Path, session_id: str, records: list[dict[str, object]]) -> Path:
    path = directory / f"{session_id}.jsonl"
    path.write_text("\n".join(json.dumps(r) for r in records) + "\n", encoding="utf-8")
    return path


def main() -> None:
    print(f"session-chain-linker version: {session_chain_linker.__version__}")

    with tempfile.TemporaryDirectory() as tmpdir:
        directory = Path(tmpdir)

        # Step 1: The parent hit its context limit; the child starts with a
        # compaction boundary that still carries the parent's session id.
        parent = write_transcript(
            directory,
            PARENT,
            [{"type": "user", "sessionId": PARENT, "message": {"content": "refactor the parser"}}],
        )
        child = write_transcript(
            directory,
            CHILD,
            [
                {
                    "type": "system",
                    "subtype": "compact_boundary",
                    "sessionId": PARENT,
                    "timestamp": "2025-01-15T10:30:00.000Z",
                    "content": f"Continuing in new session: {CHILD}",
                }
            ],
        )

        # Step 2: Register the transcripts and resolve continuations
        linker = ChainLinker()
        linker.add_transcript(parent)
        linker.add_transcript(child)
        report = linker.resolve()
        print(f"Scanned {report.total_scanned} transcripts, "
              f"found {report.continuations_found} continuation(s)")

        # Step 3: Any member of the chain returns the whole chain
        chain = linker.chain(CHILD)
        print(f"\nChain root: {chain.root_id}")
        for node in chain.flat_descendants:
            print(f"  {'  ' * node.depth}{node.session.session_id} (order {node.order})")

        # Step 4: Per-session metadata
        meta = linker.metadata(CHILD)
        print(f"\nChild depth={meta.depth} position={meta.chain_position} "
              f"active={meta.is_active_continuation}")


if __name__ == "__main__":
    main()
