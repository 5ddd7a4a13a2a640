"""Unit tests for session_chain_linker.config."""
from __future__ import annotations

from pathlib import Path

import pytest

from session_chain_linker.config import (
    ENV_DB_PATH,
    ENV_PROJECTS_DIR,
    LinkerConfig,
    load_config,
)


# ---------------------------------------------------------------------------
# LinkerConfig
# ---------------------------------------------------------------------------


class TestLinkerConfig:
    def test_defaults(self) -> None:
        config = LinkerConfig()
        assert config.projects_dir.parts[-2:] == (".claude", "projects")
        assert config.db_path.name == "chains.db"
        assert config.healing_interval_seconds == 300.0
        assert config.detection_workers == 8
        assert config.max_chain_depth == 100
        assert config.log_level == "WARNING"

    def test_paths_are_coerced_and_expanded(self) -> None:
        config = LinkerConfig(projects_dir="~/somewhere", db_path="x.db")  # type: ignore[arg-type]
        assert isinstance(config.projects_dir, Path)
        assert "~" not in str(config.projects_dir)
        assert config.db_path == Path("x.db")

    def test_log_level_upper_cased(self) -> None:
        assert LinkerConfig(log_level="debug").log_level == "DEBUG"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"healing_interval_seconds": 0},
            {"detection_workers": 0},
            {"max_chain_depth": 0},
            {"log_level": "LOUD"},
        ],
    )
    def test_invalid_values_rejected(self, kwargs: dict[str, object]) -> None:
        with pytest.raises(ValueError):
            LinkerConfig(**kwargs)  # type: ignore[arg-type]

    def test_is_frozen(self) -> None:
        config = LinkerConfig()
        with pytest.raises(AttributeError):
            config.detection_workers = 2  # type: ignore[misc]

    def test_replace_revalidates(self) -> None:
        config = LinkerConfig()
        assert config.replace(detection_workers=2).detection_workers == 2
        with pytest.raises(ValueError):
            config.replace(detection_workers=-1)


# ---------------------------------------------------------------------------
# load_config
# ---------------------------------------------------------------------------


class TestLoadConfig:
    def test_no_file_uses_defaults(self) -> None:
        assert load_config(None, environ={}) == LinkerConfig()

    def test_reads_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            "projects_dir: /data/projects\n"
            "db_path: /data/chains.db\n"
            "detection_workers: 2\n"
            "healing_interval_seconds: 30\n"
            "log_level: info\n",
            encoding="utf-8",
        )
        config = load_config(path, environ={})
        assert config.projects_dir == Path("/data/projects")
        assert config.db_path == Path("/data/chains.db")
        assert config.detection_workers == 2
        assert config.healing_interval_seconds == 30
        assert config.log_level == "INFO"

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path, environ={}) == LinkerConfig()

    def test_unknown_keys_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("detection_workers: 2\ncolour: blue\n", encoding="utf-8")
        with pytest.raises(ValueError, match="colour"):
            load_config(path, environ={})

    def test_non_mapping_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_config(path, environ={})

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml", environ={})

    def test_environment_overrides_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("db_path: /from/file.db\n", encoding="utf-8")
        env = {ENV_DB_PATH: "/from/env.db", ENV_PROJECTS_DIR: "/env/projects"}
        config = load_config(path, environ=env)
        assert config.db_path == Path("/from/env.db")
        assert config.projects_dir == Path("/env/projects")

    def test_reads_process_environment(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv(ENV_DB_PATH, str(tmp_path / "env.db"))
        assert load_config().db_path == tmp_path / "env.db"
