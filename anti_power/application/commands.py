"""Operator-facing commands.

Every command resolves the installation root from the raw path string on
each call; nothing is cached between invocations except the static catalog.
"""

from __future__ import annotations

from pathlib import Path
from typing import cast

from anti_power.application.use_cases.patch_orchestrator import PatchOrchestrator, PatchReport
from anti_power.domain.errors import PathInvalidError
from anti_power.domain.feature_config import ManagerFeatureConfig, SidebarFeatureConfig
from anti_power.infrastructure.app_settings import AppSettings, load_settings, save_settings
from anti_power.infrastructure.install_detection import detect_install_root
from anti_power.infrastructure.path_normalizer import normalize_root_str


def _resolve(path: str | None) -> Path:
    root = normalize_root_str(path)
    if root is None:
        raise PathInvalidError(f"Not an Antigravity installation: {path!r}")
    return root


def detect_path() -> str | None:
    root = detect_install_root()
    return str(root) if root is not None else None


def normalize_path(path: str | None) -> str | None:
    root = normalize_root_str(path)
    return str(root) if root is not None else None


def install_patch(
    path: str | None,
    sidebar: SidebarFeatureConfig,
    manager: ManagerFeatureConfig,
    *,
    dry_run: bool = False,
    orchestrator: PatchOrchestrator | None = None,
) -> PatchReport:
    root = _resolve(path)
    return (orchestrator or PatchOrchestrator()).install(root, sidebar, manager, dry_run=dry_run)


def uninstall_patch(
    path: str | None,
    *,
    dry_run: bool = False,
    orchestrator: PatchOrchestrator | None = None,
) -> PatchReport:
    root = _resolve(path)
    return (orchestrator or PatchOrchestrator()).uninstall(root, dry_run=dry_run)


def update_config(
    path: str | None,
    sidebar: SidebarFeatureConfig,
    manager: ManagerFeatureConfig,
    *,
    dry_run: bool = False,
    orchestrator: PatchOrchestrator | None = None,
) -> PatchReport:
    root = _resolve(path)
    return (orchestrator or PatchOrchestrator()).update_config(root, sidebar, manager, dry_run=dry_run)


def check_patch_status(path: str | None, *, orchestrator: PatchOrchestrator | None = None) -> bool:
    return (orchestrator or PatchOrchestrator()).status(_resolve(path))


def read_patch_config(path: str | None, *, orchestrator: PatchOrchestrator | None = None) -> SidebarFeatureConfig | None:
    config = (orchestrator or PatchOrchestrator()).read_config(_resolve(path), SidebarFeatureConfig.kind)
    return cast("SidebarFeatureConfig | None", config)


def read_manager_patch_config(
    path: str | None, *, orchestrator: PatchOrchestrator | None = None
) -> ManagerFeatureConfig | None:
    config = (orchestrator or PatchOrchestrator()).read_config(_resolve(path), ManagerFeatureConfig.kind)
    return cast("ManagerFeatureConfig | None", config)


def read_config(
    path: str | None, *, orchestrator: PatchOrchestrator | None = None
) -> tuple[SidebarFeatureConfig | None, ManagerFeatureConfig | None]:
    orch = orchestrator or PatchOrchestrator()
    return read_patch_config(path, orchestrator=orch), read_manager_patch_config(path, orchestrator=orch)


def get_app_settings(settings_file: Path | None = None) -> AppSettings:
    return load_settings(settings_file)


def save_app_settings(settings: AppSettings, settings_file: Path | None = None) -> Path:
    return save_settings(settings, settings_file)
