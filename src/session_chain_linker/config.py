"""Engine configuration.

Configuration comes from three layers, later ones winning: the defaults
below, an optional YAML file, and environment variables.

Example YAML::

    projects_dir: ~/.claude/projects
    db_path: ~/.session-chains/chains.db
    healing_interval_seconds: 300
    detection_workers: 8
    max_chain_depth: 100
    log_level: INFO

Classes
-------
- LinkerConfig  — validated, immutable settings

Functions
---------
- load_config   — build a LinkerConfig from YAML and the environment
"""
from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

ENV_DB_PATH = "SESSION_CHAINS_DB_PATH"
ENV_PROJECTS_DIR = "SESSION_CHAINS_PROJECTS_DIR"

_DEFAULT_PROJECTS_DIR: Path = Path.home() / ".claude" / "projects"
_DEFAULT_DB_PATH: Path = Path.home() / ".session-chains" / "chains.db"
_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class LinkerConfig:
    """Immutable engine settings.

    Parameters
    ----------
    projects_dir:
        Root of the ``<project>/<uuid>.jsonl`` transcript tree.
    db_path:
        SQLite database holding continuation edges.
    healing_interval_seconds:
        Delay between scheduled orphan healing passes.  Must be > 0.
    detection_workers:
        Thread pool size for batch detection.  Must be >= 1.
    max_chain_depth:
        Depth limit for chain validation.  Must be >= 1.
    log_level:
        Name of the level the CLI logs at.

    Raises
    ------
    ValueError
        If any numeric setting is out of range or ``log_level`` is unknown.
    """

    projects_dir: Path = field(default_factory=lambda: _DEFAULT_PROJECTS_DIR)
    db_path: Path = field(default_factory=lambda: _DEFAULT_DB_PATH)
    healing_interval_seconds: float = 300.0
    detection_workers: int = 8
    max_chain_depth: int = 100
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        # Frozen dataclass: normalise through object.__setattr__.
        object.__setattr__(self, "projects_dir", Path(self.projects_dir).expanduser())
        object.__setattr__(self, "db_path", Path(self.db_path).expanduser())
        object.__setattr__(self, "log_level", str(self.log_level).upper())

        if self.healing_interval_seconds <= 0:
            raise ValueError(
                "healing_interval_seconds must be > 0, "
                f"got {self.healing_interval_seconds!r}."
            )
        if self.detection_workers < 1:
            raise ValueError(
                f"detection_workers must be >= 1, got {self.detection_workers!r}."
            )
        if self.max_chain_depth < 1:
            raise ValueError(f"max_chain_depth must be >= 1, got {self.max_chain_depth!r}.")
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {sorted(_LOG_LEVELS)}, got {self.log_level!r}."
            )

    def replace(self, **changes: object) -> LinkerConfig:
        """Return a copy with ``changes`` applied and re-validated."""
        return dataclasses.replace(self, **changes)  # type: ignore[arg-type]


def load_config(
    path: str | Path | None = None,
    environ: dict[str, str] | None = None,
) -> LinkerConfig:
    """Build a :class:`LinkerConfig` from an optional YAML file and the environment.

    Parameters
    ----------
    path:
        YAML file holding a mapping of :class:`LinkerConfig` fields.
        ``None`` uses the defaults only.
    environ:
        Environment mapping; defaults to ``os.environ``.

    Returns
    -------
    LinkerConfig

    Raises
    ------
    ValueError
        If the file is not a mapping or contains unknown keys.
    FileNotFoundError
        If ``path`` does not exist.
    """
    env = os.environ if environ is None else environ
    values: dict[str, object] = {}

    if path is not None:
        raw = Path(path).read_text(encoding="utf-8")
        data = yaml.safe_load(raw)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping, got {type(data).__name__}.")
        known = {f.name for f in dataclasses.fields(LinkerConfig)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown config keys in {path}: {', '.join(unknown)}")
        values.update(data)
        logger.debug("Loaded config from %s", path)

    if env.get(ENV_DB_PATH):
        values["db_path"] = env[ENV_DB_PATH]
    if env.get(ENV_PROJECTS_DIR):
        values["projects_dir"] = env[ENV_PROJECTS_DIR]

    return LinkerConfig(**values)  # type: ignore[arg-type]
