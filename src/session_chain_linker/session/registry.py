"""Session registries — the engine's view of which sessions exist.

Session discovery is owned by the host application.  The engine only
needs to ask whether a session exists and where its transcript lives.
Registries answer those questions; they never interpret transcripts.

Classes
-------
- SessionRecord             — one known session and its transcript path
- SessionRegistry           — abstract base for all registries
- InMemorySessionRegistry   — dict-backed registry (tests, embedding)
- DirectorySessionRegistry  — indexes ``<projects_dir>/<project>/<uuid>.jsonl``
"""
from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from session_chain_linker.session.validation import session_id_from_path, validate_session_id

logger = logging.getLogger(__name__)

_DEFAULT_PROJECTS_DIR: Path = Path.home() / ".claude" / "projects"


@dataclass(frozen=True)
class SessionRecord:
    """A session known to the registry.

    Parameters
    ----------
    session_id:
        Canonical (lower-case) session UUID.
    file_path:
        Path to the session's JSONL transcript, if known.
    project_path:
        Name of the project directory the transcript lives in.
    """

    session_id: str
    file_path: Path | None = None
    project_path: str = ""


class SessionRegistry(ABC):
    """Read-only protocol over the set of currently known sessions."""

    @abstractmethod
    def exists(self, session_id: str) -> bool:
        """Return True if ``session_id`` is a currently known session."""

    @abstractmethod
    def get(self, session_id: str) -> SessionRecord | None:
        """Return the record for ``session_id`` or ``None`` if unknown."""

    @abstractmethod
    def list(self) -> list[SessionRecord]:
        """Return every known session.  Order is implementation-defined."""

    def file_path(self, session_id: str) -> Path | None:
        """Return the transcript path for ``session_id`` when resolvable."""
        record = self.get(session_id)
        if record is None or record.file_path is None:
            return None
        return record.file_path


class InMemorySessionRegistry(SessionRegistry):
    """Registry backed by a plain dict.

    Parameters
    ----------
    records:
        Optional initial records.
    """

    def __init__(self, records: list[SessionRecord] | None = None) -> None:
        self._records: dict[str, SessionRecord] = {}
        self._lock = threading.Lock()
        for record in records or []:
            self._records[record.session_id] = record

    def add(
        self,
        session_id: str,
        file_path: str | Path | None = None,
        project_path: str = "",
    ) -> SessionRecord:
        """Register (or replace) a session and return its record."""
        record = SessionRecord(
            session_id=validate_session_id(session_id),
            file_path=Path(file_path) if file_path is not None else None,
            project_path=project_path,
        )
        with self._lock:
            self._records[record.session_id] = record
        return record

    def remove(self, session_id: str) -> bool:
        """Forget ``session_id``.  Returns True if it was known."""
        with self._lock:
            return self._records.pop(session_id.lower(), None) is not None

    def exists(self, session_id: str) -> bool:
        with self._lock:
            return session_id.lower() in self._records

    def get(self, session_id: str) -> SessionRecord | None:
        with self._lock:
            return self._records.get(session_id.lower())

    def list(self) -> list[SessionRecord]:
        with self._lock:
            return list(self._records.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __repr__(self) -> str:
        return f"InMemorySessionRegistry(sessions={len(self)})"


class DirectorySessionRegistry(SessionRegistry):
    """Registry that indexes transcripts stored one directory per project.

    The layout mirrors the coding assistant's own storage:
    ``<projects_dir>/<project>/<session-uuid>.jsonl``.  The index is built
    lazily on first access and rebuilt by :meth:`refresh`.

    Parameters
    ----------
    projects_dir:
        Root directory holding one sub-directory per project.  Defaults to
        ``~/.claude/projects``.
    """

    def __init__(self, projects_dir: str | Path | None = None) -> None:
        self._projects_dir: Path = (
            Path(projects_dir) if projects_dir is not None else _DEFAULT_PROJECTS_DIR
        )
        self._records: dict[str, SessionRecord] | None = None
        self._lock = threading.Lock()

    @property
    def projects_dir(self) -> Path:
        """Root directory being indexed."""
        return self._projects_dir

    def _scan(self) -> dict[str, SessionRecord]:
        records: dict[str, SessionRecord] = {}
        if not self._projects_dir.is_dir():
            logger.warning("Projects directory %s does not exist", self._projects_dir)
            return records
        for path in sorted(self._projects_dir.glob("*/*.jsonl")):
            session_id = session_id_from_path(path)
            if session_id is None:
                continue
            records[session_id] = SessionRecord(
                session_id=session_id,
                file_path=path,
                project_path=path.parent.name,
            )
        return records

    def _index(self) -> dict[str, SessionRecord]:
        with self._lock:
            if self._records is None:
                self._records = self._scan()
            return self._records

    def refresh(self) -> tuple[list[str], list[str]]:
        """Re-scan the projects directory.

        Returns
        -------
        tuple[list[str], list[str]]
            ``(created_ids, deleted_ids)`` relative to the previous index.
            Callers forward these to the engine's session-created and
            session-deleted hooks.
        """
        fresh = self._scan()
        with self._lock:
            previous = self._records or {}
            self._records = fresh
        created = sorted(set(fresh) - set(previous))
        deleted = sorted(set(previous) - set(fresh))
        logger.info(
            "Indexed %d sessions under %s (%d new, %d gone)",
            len(fresh),
            self._projects_dir,
            len(created),
            len(deleted),
        )
        return created, deleted

    def exists(self, session_id: str) -> bool:
        return session_id.lower() in self._index()

    def get(self, session_id: str) -> SessionRecord | None:
        return self._index().get(session_id.lower())

    def list(self) -> list[SessionRecord]:
        return list(self._index().values())

    def __repr__(self) -> str:
        return f"DirectorySessionRegistry(projects_dir={str(self._projects_dir)!r})"
