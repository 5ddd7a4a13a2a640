"""Shared fixtures: JSONL transcript builders.

Transcripts are written under ``tmp_path / "projects" / <project>`` so the
same tree can be indexed by ``DirectorySessionRegistry``.
"""
from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import pytest

BoundaryFactory = Callable[..., dict[str, object]]
TranscriptWriter = Callable[..., Path]


@pytest.fixture()
def projects_dir(tmp_path: Path) -> Path:
    path = tmp_path / "projects"
    path.mkdir()
    return path


@pytest.fixture()
def boundary() -> BoundaryFactory:
    """Build a modern ``system``/``compact_boundary`` record."""

    def _make(
        session_id: str,
        content: str = "Conversation compacted",
        timestamp: str = "2025-01-15T10:30:00.000Z",
    ) -> dict[str, object]:
        return {
            "type": "system",
            "subtype": "compact_boundary",
            "sessionId": session_id,
            "timestamp": timestamp,
            "content": content,
        }

    return _make


@pytest.fixture()
def write_transcript(projects_dir: Path) -> TranscriptWriter:
    """Write ``records`` as ``<projects_dir>/<project>/<session_id>.jsonl``."""

    def _write(
        session_id: str,
        records: list[object] | None = None,
        project: str = "demo-project",
        raw_lines: list[str] | None = None,
    ) -> Path:
        directory = projects_dir / project
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{session_id}.jsonl"
        lines = [json.dumps(record) for record in records or []]
        lines.extend(raw_lines or [])
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write
