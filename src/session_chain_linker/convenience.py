"""Convenience API for session-chain-linker — 3-line quickstart.

Example
-------
::

    from session_chain_linker import ChainLinker
    linker = ChainLinker.from_directory("~/.claude/projects")
    linker.resolve()
    print(linker.chain(session_id).session_ids())

"""
from __future__ import annotations

from pathlib import Path

from session_chain_linker.engine import ContinuationEngine
from session_chain_linker.models import ChainView, ContinuationMetadata, ResolveReport
from session_chain_linker.session.registry import (
    DirectorySessionRegistry,
    InMemorySessionRegistry,
    SessionRecord,
)
from session_chain_linker.session.validation import session_id_from_path


class ChainLinker:
    """Zero-config continuation linker for the 80% use case.

    Keeps edges in memory so no database configuration is required.
    Transcripts are either added one at a time or discovered from a
    projects directory.

    Example
    -------
    ::

        from session_chain_linker import ChainLinker
        linker = ChainLinker()
        linker.add_transcript("/tmp/p/1b4e28ba-2fa1-11d2-883f-0016d3cca427.jsonl")
        linker.resolve()
    """

    def __init__(self, engine: ContinuationEngine | None = None) -> None:
        self._engine = engine if engine is not None else ContinuationEngine(InMemorySessionRegistry())

    @classmethod
    def from_directory(cls, projects_dir: str | Path) -> ChainLinker:
        """Discover transcripts under ``<projects_dir>/<project>/<uuid>.jsonl``."""
        registry = DirectorySessionRegistry(Path(projects_dir).expanduser())
        return cls(ContinuationEngine(registry))

    @property
    def engine(self) -> ContinuationEngine:
        """The underlying engine."""
        return self._engine

    def add_transcript(self, path: str | Path) -> SessionRecord:
        """Register a ``<uuid>.jsonl`` transcript.

        Raises
        ------
        ValueError
            If the file name does not encode a session id, or the linker
            was built over a directory.
        """
        registry = self._engine.registry
        if not isinstance(registry, InMemorySessionRegistry):
            raise ValueError("Transcripts are discovered from the projects directory.")
        file_path = Path(path)
        session_id = session_id_from_path(file_path)
        if session_id is None:
            raise ValueError(f"{file_path.name!r} is not named <session-uuid>.jsonl.")
        record = registry.add(session_id, file_path, project_path=file_path.parent.name)
        self._engine.on_session_created(session_id)
        return record

    def resolve(self) -> ResolveReport:
        """Detect and store continuations for every known transcript."""
        return self._engine.resolve_all()

    def chain(self, session_id: str) -> ChainView:
        """Return the continuation tree containing ``session_id``."""
        return self._engine.get_chain(session_id)

    def metadata(self, session_id: str) -> ContinuationMetadata:
        """Return the continuation status of ``session_id``."""
        return self._engine.get_metadata(session_id)

    def __repr__(self) -> str:
        return f"ChainLinker(engine={self._engine!r})"
