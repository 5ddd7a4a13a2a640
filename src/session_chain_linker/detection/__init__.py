"""Continuation detection subpackage."""
from __future__ import annotations

from session_chain_linker.detection.detector import (
    BoundaryMarker,
    ContinuationDetector,
    DetectionResult,
    detect_continuation,
    extract_next_session_id,
    is_boundary_record,
    parse_timestamp,
)

__all__ = [
    "BoundaryMarker",
    "ContinuationDetector",
    "DetectionResult",
    "detect_continuation",
    "extract_next_session_id",
    "is_boundary_record",
    "parse_timestamp",
]
