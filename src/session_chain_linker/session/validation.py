"""Session identifier validation.

Every session is identified by a canonical UUID string.  Identifiers that
arrive from outside the engine (CLI arguments, IPC payloads, file names)
are validated here before they are allowed to reach the relationship store.

Functions
---------
- validate_session_id   — normalise and validate a single identifier
- is_session_id         — boolean form of the above
- session_id_from_path  — extract ``<uuid>`` from a ``<uuid>.jsonl`` path
"""
from __future__ import annotations

import re
from pathlib import Path

UUID_PATTERN: re.Pattern[str] = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
_FILENAME_PATTERN: re.Pattern[str] = re.compile(
    r"^([0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12})\.jsonl$",
    re.IGNORECASE,
)


class InvalidSessionIdError(ValueError):
    """Raised when a value is not a well-formed session identifier."""

    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(f"Invalid session id {value!r}: expected a UUID.")


def validate_session_id(value: object) -> str:
    """Return ``value`` as a normalised (lower-case) session id.

    Parameters
    ----------
    value:
        Candidate identifier.

    Returns
    -------
    str
        The identifier, stripped and lower-cased.

    Raises
    ------
    InvalidSessionIdError
        If ``value`` is not a string matching the UUID pattern.
    """
    if not isinstance(value, str):
        raise InvalidSessionIdError(value)
    candidate = value.strip()
    if not UUID_PATTERN.match(candidate):
        raise InvalidSessionIdError(value)
    return candidate.lower()


def is_session_id(value: object) -> bool:
    """Return True if ``value`` is a well-formed session id."""
    return isinstance(value, str) and UUID_PATTERN.match(value.strip()) is not None


def session_id_from_path(path: str | Path) -> str | None:
    """Extract the session id from a transcript path.

    Transcript files are named exactly ``<uuid>.jsonl``.  Any other file
    name, including one that merely ends in a UUID, yields ``None``.
    """
    match = _FILENAME_PATTERN.match(Path(path).name)
    if match is None:
        return None
    return match.group(1).lower()
