"""Tests for metastore config loader."""

from __future__ import annotations

import logging
import warnings
from pathlib import Path

import pytest
import yaml

from metastore.config import (
    ApiCfg,
    ConfigError,
    MetastoreConfig,
    load_config,
    write_project_config,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_yaml(path: Path, data: dict) -> None:
    path.write_text(yaml.dump(data), encoding="utf-8")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in ("METASTORE_DB", "METASTORE_SCHEMAS_DIR", "METASTORE_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def missing_global(tmp_path: Path) -> Path:
    return tmp_path / "nonexistent" / "config.yaml"


# ---------------------------------------------------------------------------
# Defaults: no config files present
# ---------------------------------------------------------------------------


def test_load_config_defaults_no_files(tmp_path: Path, missing_global: Path) -> None:
    """No config files → all hardcoded defaults."""
    cfg = load_config(project_dir=tmp_path, global_config_path=missing_global)

    assert cfg.database.path == ".metastore.db"
    assert cfg.schemas.directory is None
    assert cfg.api.base_path == "/api/1/metastore/schemas"
    assert cfg.api.default_range_length == 25
    assert cfg.logging.level == "WARNING"
    assert cfg.log_level == logging.WARNING


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------


def test_load_config_global_overrides_defaults(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"api": {"default_range_length": 50}})

    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)
    assert cfg.api.default_range_length == 50
    assert cfg.api.base_path == "/api/1/metastore/schemas"


def test_load_config_global_empty_file(tmp_path: Path) -> None:
    """Empty global config file → defaults (no crash)."""
    global_cfg = tmp_path / "config.yaml"
    global_cfg.write_text("# nothing here\n", encoding="utf-8")

    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)
    assert cfg == MetastoreConfig()


def test_load_config_project_partial_override(tmp_path: Path) -> None:
    """Per-project can override a single field; global values for other fields survive."""
    global_cfg = tmp_path / "global.yaml"
    _write_yaml(global_cfg, {"api": {"base_path": "/g", "default_range_length": 10}})
    _write_yaml(tmp_path / "metastore.yaml", {"api": {"default_range_length": 5}})

    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)
    assert cfg.api.default_range_length == 5
    assert cfg.api.base_path == "/g"  # global value preserved


def test_load_config_base_path_trailing_slash(tmp_path: Path, missing_global: Path) -> None:
    _write_yaml(tmp_path / "metastore.yaml", {"api": {"base_path": "/api/v2/"}})
    cfg = load_config(project_dir=tmp_path, global_config_path=missing_global)
    assert cfg.api.base_path == "/api/v2"


def test_load_config_schemas_directory(tmp_path: Path, missing_global: Path) -> None:
    _write_yaml(tmp_path / "metastore.yaml", {"schemas": {"directory": "schemas"}})
    cfg = load_config(project_dir=tmp_path, global_config_path=missing_global)
    assert cfg.schemas.directory == "schemas"


# ---------------------------------------------------------------------------
# Environment overrides
# ---------------------------------------------------------------------------


def test_env_overrides_project(tmp_path: Path, missing_global: Path, monkeypatch) -> None:
    _write_yaml(tmp_path / "metastore.yaml", {"database": {"path": "project.db"}, "logging": {"level": "INFO"}})
    monkeypatch.setenv("METASTORE_DB", "env.db")
    monkeypatch.setenv("METASTORE_SCHEMAS_DIR", "/srv/schemas")
    monkeypatch.setenv("METASTORE_LOG_LEVEL", "debug")

    cfg = load_config(project_dir=tmp_path, global_config_path=missing_global)
    assert cfg.database.path == "env.db"
    assert cfg.schemas.directory == "/srv/schemas"
    assert cfg.logging.level == "DEBUG"


def test_env_invalid_log_level(tmp_path: Path, missing_global: Path, monkeypatch) -> None:
    monkeypatch.setenv("METASTORE_LOG_LEVEL", "LOUD")
    with pytest.raises(ConfigError, match="METASTORE_LOG_LEVEL"):
        load_config(project_dir=tmp_path, global_config_path=missing_global)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def test_invalid_log_level_in_file(tmp_path: Path, missing_global: Path) -> None:
    _write_yaml(tmp_path / "metastore.yaml", {"logging": {"level": "chatty"}})
    with pytest.raises(ConfigError, match="Invalid log level"):
        load_config(project_dir=tmp_path, global_config_path=missing_global)


@pytest.mark.parametrize("value", [0, -3, "many"])
def test_invalid_range_length(tmp_path: Path, missing_global: Path, value) -> None:
    _write_yaml(tmp_path / "metastore.yaml", {"api": {"default_range_length": value}})
    with pytest.raises(ConfigError, match="default_range_length"):
        load_config(project_dir=tmp_path, global_config_path=missing_global)


def test_unknown_key_warns(tmp_path: Path, missing_global: Path) -> None:
    _write_yaml(tmp_path / "metastore.yaml", {"databse": {"path": "x.db"}})
    with pytest.warns(UserWarning, match="databse"):
        cfg = load_config(project_dir=tmp_path, global_config_path=missing_global)
    assert cfg.database.path == ".metastore.db"


def test_known_keys_do_not_warn(tmp_path: Path, missing_global: Path) -> None:
    _write_yaml(tmp_path / "metastore.yaml", {"database": {"path": "x.db"}, "logging": {"level": "ERROR"}})
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        load_config(project_dir=tmp_path, global_config_path=missing_global)


# ---------------------------------------------------------------------------
# write_project_config
# ---------------------------------------------------------------------------


def test_write_project_config_round_trip(tmp_path: Path, missing_global: Path) -> None:
    cfg = MetastoreConfig(api=ApiCfg(base_path="/catalog", default_range_length=7))
    path = write_project_config(tmp_path, cfg)
    assert path.name == "metastore.yaml"

    loaded = load_config(project_dir=tmp_path, global_config_path=missing_global)
    assert loaded.api.base_path == "/catalog"
    assert loaded.api.default_range_length == 7
    assert loaded.database.path == ".metastore.db"


def test_write_project_config_defaults(tmp_path: Path) -> None:
    path = write_project_config(tmp_path)
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert set(data) == {"database", "api", "logging"}
