"""Session identity and discovery boundary."""
from __future__ import annotations

from session_chain_linker.session.registry import (
    DirectorySessionRegistry,
    InMemorySessionRegistry,
    SessionRecord,
    SessionRegistry,
)
from session_chain_linker.session.validation import (
    InvalidSessionIdError,
    is_session_id,
    session_id_from_path,
    validate_session_id,
)

__all__ = [
    "DirectorySessionRegistry",
    "InMemorySessionRegistry",
    "InvalidSessionIdError",
    "SessionRecord",
    "SessionRegistry",
    "is_session_id",
    "session_id_from_path",
    "validate_session_id",
]
