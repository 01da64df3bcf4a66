from __future__ import annotations

import json
from pathlib import Path

import pytest

from pbt_run.config import app_env, get_env, load_project_config, load_sys_configs
from pbt_run.errors import ConfigError


def test_load_project_config(project: Path) -> None:
    assert load_project_config(project) == {"numtests": 30}


def test_load_project_config_without_pyproject(tmp_path: Path) -> None:
    assert load_project_config(tmp_path) == {}


def test_load_project_config_invalid_toml(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text("[tool.pbt_run\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_project_config(tmp_path)


def test_sys_configs_merge_in_order(tmp_path: Path) -> None:
    (tmp_path / "base.toml").write_text('[shop]\nlimit = 1\ncurrency = "EUR"\n', encoding="utf-8")
    (tmp_path / "local.json").write_text(json.dumps({"shop": {"limit": 5}}), encoding="utf-8")

    configs = load_sys_configs(tmp_path, ("base.toml", "local.json"))

    assert configs == {"shop": {"limit": 5, "currency": "EUR"}}


def test_missing_sys_config(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_sys_configs(tmp_path, ("missing.toml",))


def test_sys_config_must_hold_tables(tmp_path: Path) -> None:
    (tmp_path / "flat.toml").write_text("limit = 1\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_sys_configs(tmp_path, ("flat.toml",))


def test_app_env_is_scoped() -> None:
    assert get_env("shop", "limit") is None

    with app_env({"shop": {"limit": 3}}):
        assert get_env("shop", "limit") == 3
        assert get_env("shop", "other", "default") == "default"

    assert get_env("shop", "limit") is None
