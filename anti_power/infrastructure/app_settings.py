"""Operator preferences persisted between runs.

Stores the last used installation path and feature toggles under the user
config directory. Unreadable or malformed settings fall back to defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import os
from pathlib import Path
import platform
from typing import Any, Mapping

from anti_power.domain.errors import ConfigParseError, classify_os_error
from anti_power.domain.feature_config import ManagerFeatureConfig, SidebarFeatureConfig
from anti_power.infrastructure.fs_atomic import atomic_write_json

APP_DIR_NAME = "anti-power"
SETTINGS_FILE_NAME = "config.json"
CONFIG_HOME_ENV = "ANTI_POWER_CONFIG_HOME"


def user_config_root(env: Mapping[str, str] | None = None) -> Path:
    """Per-user anti-power directory (settings and error logs live here)."""

    environ = os.environ if env is None else env
    override = str(environ.get(CONFIG_HOME_ENV, "")).strip()
    if override:
        return Path(override).expanduser()

    system = platform.system()
    if system == "Windows":
        appdata = str(environ.get("APPDATA", "")).strip()
        if appdata:
            return Path(appdata) / APP_DIR_NAME
        return Path.home() / "AppData" / "Roaming" / APP_DIR_NAME
    if system == "Darwin":
        return Path.home() / "Library" / "Application Support" / APP_DIR_NAME
    xdg_config = str(environ.get("XDG_CONFIG_HOME", "")).strip()
    if xdg_config:
        return Path(xdg_config) / APP_DIR_NAME
    return Path.home() / ".config" / APP_DIR_NAME


def settings_path(env: Mapping[str, str] | None = None) -> Path:
    return user_config_root(env) / SETTINGS_FILE_NAME


@dataclass(frozen=True)
class AppSettings:
    antigravity_path: str | None = None
    features: SidebarFeatureConfig = field(default_factory=SidebarFeatureConfig)
    manager_features: ManagerFeatureConfig = field(default_factory=ManagerFeatureConfig)

    def to_payload(self) -> dict[str, Any]:
        return {
            "antigravityPath": self.antigravity_path,
            "features": self.features.to_payload(),
            "managerFeatures": self.manager_features.to_payload(),
        }

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "AppSettings":
        raw_path = payload.get("antigravityPath")
        return cls(
            antigravity_path=raw_path if isinstance(raw_path, str) and raw_path.strip() else None,
            features=SidebarFeatureConfig.from_mapping(payload.get("features") or {}),
            manager_features=ManagerFeatureConfig.from_mapping(payload.get("managerFeatures") or {}),
        )


def load_settings(path: Path | None = None) -> AppSettings:
    target = path or settings_path()
    if not target.exists():
        return AppSettings()
    try:
        payload = json.loads(target.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return AppSettings()
    if not isinstance(payload, dict):
        return AppSettings()
    try:
        return AppSettings.from_mapping(payload)
    except ConfigParseError:
        return AppSettings()


def save_settings(settings: AppSettings, path: Path | None = None) -> Path:
    target = path or settings_path()
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        atomic_write_json(target, settings.to_payload())
    except OSError as exc:
        raise classify_os_error(exc, target, "Saving settings")
    return target
