"""Continuation detection from JSONL transcripts.

When a conversation reaches the context limit the assistant writes a
``compact_boundary`` record and continues under a new session id.  The
boundary record is copied into the new transcript but keeps the *parent's*
``sessionId``.  Detection therefore compares the ``sessionId`` of every
boundary record against the id encoded in the transcript's file name:

- a mismatch means the file is a **child** and the record's ``sessionId``
  is its parent;
- a match means the file is a **parent** that spawned a child, whose id is
  pattern-matched from the boundary's free-text message.

Files are streamed line by line.  Malformed lines are skipped and unreadable
files produce an empty result, so a batch scan never aborts on one file.

Classes
-------
- BoundaryMarker       — a compaction boundary found in a transcript
- DetectionResult      — continuation signals extracted from one file
- ContinuationDetector — single-file and fan-out batch detection
"""
from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel

from session_chain_linker.session.validation import session_id_from_path

logger = logging.getLogger(__name__)

BOUNDARY_SUBTYPE = "compact_boundary"
_UUID_IN_TEXT: re.Pattern[str] = re.compile(
    r"([0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12})",
    re.IGNORECASE,
)

ProgressCallback = Callable[[int, int, Path], None]


class BoundaryMarker(BaseModel):
    """A compaction boundary written by the session that owns the file."""

    timestamp: datetime | None = None
    next_session_id: str | None = None
    message: str = ""


class DetectionResult(BaseModel):
    """Continuation signals extracted from a single transcript.

    Parameters
    ----------
    session_id:
        Id derived from the file name, or ``None`` if the name is not
        ``<uuid>.jsonl``.
    is_child:
        True if a boundary record carries a foreign ``sessionId``.
    parent_id:
        That foreign ``sessionId`` (first occurrence wins).
    child_started_at:
        Timestamp of the boundary that marked the child.
    is_parent:
        True if the file contains a boundary written under its own id.
    last_boundary:
        The most recent own-id boundary.
    error:
        Set when the file could not be read; all other fields keep their
        defaults in that case.
    """

    session_id: str | None = None
    is_child: bool = False
    parent_id: str | None = None
    child_started_at: datetime | None = None
    is_parent: bool = False
    last_boundary: BoundaryMarker | None = None
    error: str | None = None


def extract_next_session_id(message: str | None) -> str | None:
    """Return the first UUID found in ``message``, lower-cased."""
    if not message:
        return None
    match = _UUID_IN_TEXT.search(message)
    return match.group(1).lower() if match else None


def parse_timestamp(value: object) -> datetime | None:
    """Parse an ISO-8601 string or epoch-milliseconds number into UTC."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def is_boundary_record(event: dict[str, object]) -> bool:
    """Return True for both the current and the legacy boundary formats."""
    event_type = event.get("type")
    if event_type == "system" and event.get("subtype") == BOUNDARY_SUBTYPE:
        return True
    return event_type == BOUNDARY_SUBTYPE


def _boundary_text(event: dict[str, object]) -> str:
    content = event.get("content")
    if content is None:
        # Legacy records nest the text under message.content.
        message = event.get("message")
        if isinstance(message, dict):
            content = message.get("content")
        elif isinstance(message, str):
            content = message
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [
            str(block.get("text", ""))
            for block in content
            if isinstance(block, dict) and block.get("text")
        ]
        return "\n".join(parts)
    return ""


def detect_continuation(path: str | Path, session_id: str | None = None) -> DetectionResult:
    """Stream ``path`` and extract its continuation signals.

    Parameters
    ----------
    path:
        Transcript file to read.
    session_id:
        Override for the file's own id.  Defaults to the id encoded in the
        file name.

    Returns
    -------
    DetectionResult
        Never raises for I/O or parse problems; see ``error``.
    """
    file_path = Path(path)
    own_id = session_id.lower() if session_id else session_id_from_path(file_path)
    result = DetectionResult(session_id=own_id)
    if own_id is None:
        logger.warning("Could not derive a session id from %s", file_path)

    try:
        with file_path.open("r", encoding="utf-8", errors="replace") as handle:
            for line in handle:
                if not line.strip():
                    continue
                try:
                    event = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if not isinstance(event, dict) or not is_boundary_record(event):
                    continue
                _apply_boundary(result, event, own_id)
    except OSError as exc:
        logger.warning("Cannot read transcript %s: %s", file_path, exc)
        return DetectionResult(session_id=own_id, error=str(exc))

    return result


def _apply_boundary(result: DetectionResult, event: dict[str, object], own_id: str | None) -> None:
    raw_id = event.get("sessionId")
    event_session = raw_id.lower() if isinstance(raw_id, str) and raw_id else None
    timestamp = parse_timestamp(event.get("timestamp"))

    if event_session and own_id and event_session != own_id:
        if not result.is_child:
            result.is_child = True
            result.parent_id = event_session
            result.child_started_at = timestamp
        return

    if event_session and own_id and event_session == own_id:
        message = _boundary_text(event)
        result.is_parent = True
        result.last_boundary = BoundaryMarker(
            timestamp=timestamp,
            next_session_id=extract_next_session_id(message),
            message=message,
        )


class ContinuationDetector:
    """Run detection over one or many transcript files.

    Detection of separate files is independent, so batches are fanned out
    over a thread pool.  Results are returned to the caller, which writes
    them back through the relationship store in a single pass.

    Parameters
    ----------
    max_workers:
        Thread pool size for :meth:`detect_many`.  Must be >= 1.
    """

    def __init__(self, max_workers: int = 8) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers!r}.")
        self.max_workers = max_workers

    def detect(self, path: str | Path, session_id: str | None = None) -> DetectionResult:
        """Detect continuation signals for a single file."""
        return detect_continuation(path, session_id=session_id)

    def detect_many(
        self,
        paths: Iterable[str | Path],
        progress: ProgressCallback | None = None,
    ) -> dict[Path, DetectionResult]:
        """Detect continuation signals for every path concurrently.

        Parameters
        ----------
        paths:
            Transcript files to scan.
        progress:
            Optional ``progress(done, total, path)`` callback, invoked from
            the calling thread once per completed file.

        Returns
        -------
        dict[Path, DetectionResult]
            One result per input path, in input order.
        """
        ordered = [Path(p) for p in paths]
        if not ordered:
            return {}

        results: dict[Path, DetectionResult] = {}
        total = len(ordered)
        with ThreadPoolExecutor(max_workers=min(self.max_workers, total)) as pool:
            futures = {pool.submit(detect_continuation, p): p for p in ordered}
            for done, future in enumerate(as_completed(futures), start=1):
                path = futures[future]
                try:
                    results[path] = future.result()
                except Exception as exc:  # noqa: BLE001
                    logger.warning("Detection failed for %s: %s", path, exc)
                    results[path] = DetectionResult(
                        session_id=session_id_from_path(path), error=str(exc)
                    )
                if progress is not None:
                    progress(done, total, path)

        return {path: results[path] for path in ordered}

    def __repr__(self) -> str:
        return f"ContinuationDetector(max_workers={self.max_workers})"
