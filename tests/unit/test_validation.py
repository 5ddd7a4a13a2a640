"""Unit tests for session_chain_linker.session.validation."""
from __future__ import annotations

from pathlib import Path

import pytest

from session_chain_linker.session.validation import (
    InvalidSessionIdError,
    is_session_id,
    session_id_from_path,
    validate_session_id,
)

VALID = "1b4e28ba-2fa1-11d2-883f-0016d3cca427"


# ---------------------------------------------------------------------------
# validate_session_id
# ---------------------------------------------------------------------------


class TestValidateSessionId:
    def test_valid_id_returned_unchanged(self) -> None:
        assert validate_session_id(VALID) == VALID

    def test_upper_case_is_normalised(self) -> None:
        assert validate_session_id(VALID.upper()) == VALID

    def test_surrounding_whitespace_is_stripped(self) -> None:
        assert validate_session_id(f"  {VALID}\n") == VALID

    @pytest.mark.parametrize(
        "value",
        [
            "",
            "not-a-uuid",
            VALID[:-1],
            VALID + "0",
            VALID.replace("-", ""),
            "../../etc/passwd",
            "zb4e28ba-2fa1-11d2-883f-0016d3cca427",
        ],
    )
    def test_malformed_ids_rejected(self, value: str) -> None:
        with pytest.raises(InvalidSessionIdError):
            validate_session_id(value)

    def test_non_string_rejected(self) -> None:
        with pytest.raises(InvalidSessionIdError):
            validate_session_id(12345)

    def test_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            validate_session_id("nope")

    def test_error_keeps_offending_value(self) -> None:
        with pytest.raises(InvalidSessionIdError) as exc_info:
            validate_session_id("nope")
        assert exc_info.value.value == "nope"
        assert "nope" in str(exc_info.value)


class TestIsSessionId:
    def test_true_for_valid(self) -> None:
        assert is_session_id(VALID) is True

    def test_false_for_invalid(self) -> None:
        assert is_session_id("abc") is False

    def test_false_for_none(self) -> None:
        assert is_session_id(None) is False


# ---------------------------------------------------------------------------
# session_id_from_path
# ---------------------------------------------------------------------------


class TestSessionIdFromPath:
    def test_extracts_id_from_jsonl_name(self, tmp_path: Path) -> None:
        assert session_id_from_path(tmp_path / f"{VALID}.jsonl") == VALID

    def test_accepts_string_path(self) -> None:
        assert session_id_from_path(f"/x/y/{VALID}.jsonl") == VALID

    def test_lower_cases_result(self) -> None:
        assert session_id_from_path(f"{VALID.upper()}.jsonl") == VALID

    def test_wrong_extension_returns_none(self) -> None:
        assert session_id_from_path(f"{VALID}.json") is None

    def test_non_uuid_name_returns_none(self) -> None:
        assert session_id_from_path("notes.jsonl") is None

    def test_prefixed_name_returns_none(self) -> None:
        assert session_id_from_path(f"backup-{VALID}.jsonl") is None

    def test_longer_hex_run_returns_none(self) -> None:
        assert session_id_from_path(f"/x/ab{VALID}.jsonl") is None

    def test_uuid_directory_does_not_count(self) -> None:
        assert session_id_from_path(f"/x/{VALID}/notes.jsonl") is None
