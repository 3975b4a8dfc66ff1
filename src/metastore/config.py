"""Metastore configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (METASTORE_DB, METASTORE_SCHEMAS_DIR, METASTORE_LOG_LEVEL)
  3. Per-project metastore.yaml
  4. Global ~/.metastore/config.yaml
  5. Hardcoded defaults

All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import logging
import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".metastore"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "metastore.yaml"

# Known top-level sections; unknown keys produce a warning
_KNOWN_SECTIONS: frozenset[str] = frozenset(["database", "schemas", "api", "logging"])

_LOG_LEVELS: frozenset[str] = frozenset(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class DatabaseCfg:
    """Record store location (metastore.yaml: database:)."""

    path: str = ".metastore.db"


@dataclass
class SchemasCfg:
    """Schema collection (metastore.yaml: schemas:).

    Attributes:
        directory: Directory of ``<schema_id>.json`` files that override the
            bundled collection. None uses the bundled schemas only.
    """

    directory: str | None = None


@dataclass
class ApiCfg:
    """Serving boundary settings (metastore.yaml: api:)."""

    base_path: str = "/api/1/metastore/schemas"
    default_range_length: int = 25


@dataclass
class LoggingCfg:
    level: str = "WARNING"


@dataclass
class MetastoreConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    database: DatabaseCfg = field(default_factory=DatabaseCfg)
    schemas: SchemasCfg = field(default_factory=SchemasCfg)
    api: ApiCfg = field(default_factory=ApiCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)

    @property
    def log_level(self) -> int:
        return getattr(logging, self.logging.level)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _validate_log_level(level: str, source: str) -> str:
    upper = level.upper()
    if upper not in _LOG_LEVELS:
        raise ConfigError(
            f"Invalid log level '{level}' in {source}.\n"
            f"  Use one of: {', '.join(sorted(_LOG_LEVELS))}"
        )
    return upper


def _validate_range_length(value: Any, source: str) -> int:
    try:
        length = int(value)
    except (TypeError, ValueError):
        length = 0
    if length < 1:
        raise ConfigError(
            f"api.default_range_length must be a positive integer in {source}, got {value!r}."
        )
    return length


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> MetastoreConfig:
    """Build a *MetastoreConfig* from a merged raw YAML dict."""
    cfg = MetastoreConfig()

    if "database" in data:
        d = data["database"] or {}
        cfg.database = DatabaseCfg(path=str(d.get("path", cfg.database.path)))

    if "schemas" in data:
        s = data["schemas"] or {}
        directory = s.get("directory")
        cfg.schemas = SchemasCfg(directory=str(directory) if directory else None)

    if "api" in data:
        a = data["api"] or {}
        cfg.api = ApiCfg(
            base_path=str(a.get("base_path", cfg.api.base_path)).rstrip("/"),
            default_range_length=_validate_range_length(
                a.get("default_range_length", cfg.api.default_range_length), "config"
            ),
        )

    if "logging" in data:
        lg = data["logging"] or {}
        cfg.logging = LoggingCfg(
            level=_validate_log_level(str(lg.get("level", cfg.logging.level)), "config"),
        )

    return cfg


def _apply_env_overrides(cfg: MetastoreConfig) -> MetastoreConfig:
    """Apply METASTORE_* environment variable overrides."""
    if path := os.environ.get("METASTORE_DB"):
        cfg.database.path = path
    if directory := os.environ.get("METASTORE_SCHEMAS_DIR"):
        cfg.schemas.directory = directory
    if level := os.environ.get("METASTORE_LOG_LEVEL"):
        cfg.logging.level = _validate_log_level(level, "METASTORE_LOG_LEVEL")
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> MetastoreConfig:
    """Load and return a merged *MetastoreConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *metastore.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If a log level or range length is invalid.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)

    # Layer 3: env var overrides
    cfg = _apply_env_overrides(cfg)

    return cfg


def write_project_config(project_dir: Path, cfg: MetastoreConfig | None = None) -> Path:
    """Write a *metastore.yaml* with the given (or default) settings.

    Returns:
        Path to the written file.
    """
    cfg = cfg or MetastoreConfig()
    data: dict[str, Any] = {
        "database": {"path": cfg.database.path},
        "api": {
            "base_path": cfg.api.base_path,
            "default_range_length": cfg.api.default_range_length,
        },
        "logging": {"level": cfg.logging.level},
    }
    if cfg.schemas.directory:
        data["schemas"] = {"directory": cfg.schemas.directory}
    target = project_dir / _PROJECT_CONFIG_NAME
    target.write_text(
        "# Metastore project configuration.\n" + yaml.safe_dump(data, sort_keys=False),
        encoding="utf-8",
    )
    return target
