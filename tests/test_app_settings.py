from __future__ import annotations

import json
from pathlib import Path

import pytest

from anti_power.domain.feature_config import ManagerFeatureConfig, SidebarFeatureConfig
from anti_power.infrastructure.app_settings import (
    AppSettings,
    load_settings,
    save_settings,
    settings_path,
    user_config_root,
)


@pytest.mark.patcher
def test_config_home_override(tmp_path: Path):
    assert user_config_root({"ANTI_POWER_CONFIG_HOME": str(tmp_path)}) == tmp_path
    assert settings_path({"ANTI_POWER_CONFIG_HOME": str(tmp_path)}) == tmp_path / "config.json"


@pytest.mark.patcher
def test_missing_settings_fall_back_to_defaults(tmp_path: Path):
    assert load_settings(tmp_path / "config.json") == AppSettings()


@pytest.mark.patcher
def test_saved_settings_load_back(tmp_path: Path):
    settings = AppSettings(
        antigravity_path="/opt/Antigravity",
        features=SidebarFeatureConfig(math=False),
        manager_features=ManagerFeatureConfig(enabled=False),
    )
    target = save_settings(settings, tmp_path / "nested" / "config.json")
    assert target.is_file()
    doc = json.loads(target.read_text(encoding="utf-8"))
    assert list(doc) == ["antigravityPath", "features", "managerFeatures"]
    assert load_settings(target) == settings


@pytest.mark.patcher
@pytest.mark.parametrize("content", ["{oops", "[]", '{"features": {"fontSize": "big"}}'])
def test_malformed_settings_fall_back_to_defaults(tmp_path: Path, content: str):
    path = tmp_path / "config.json"
    path.write_text(content, encoding="utf-8")
    assert load_settings(path) == AppSettings()


@pytest.mark.patcher
def test_default_location_follows_env(tmp_path: Path):
    # conftest points ANTI_POWER_CONFIG_HOME into tmp_path
    path = save_settings(AppSettings(antigravity_path="/x"))
    assert path == tmp_path / "user-config" / "config.json"
