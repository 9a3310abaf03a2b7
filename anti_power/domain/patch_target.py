"""Patch targets and their per-target Restored/Patched state machine."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Literal

TargetState = Literal["restored", "patched"]

STATE_RESTORED: TargetState = "restored"
STATE_PATCHED: TargetState = "patched"

CONFIG_FILE_NAME = "config.json"


@dataclass(frozen=True)
class PatchTarget:
    """One independently toggleable patch surface below resources/app."""

    key: str
    label: str
    root: PurePosixPath
    entry_file: str
    asset_dir: str
    backup_suffix: str
    assets: tuple[str, ...]
    primary: bool = False

    def target_dir(self, resources_app: Path) -> Path:
        return resources_app.joinpath(*self.root.parts)

    def entry_path(self, resources_app: Path) -> Path:
        return self.target_dir(resources_app) / self.entry_file

    def asset_root(self, resources_app: Path) -> Path:
        return self.target_dir(resources_app) / self.asset_dir

    def config_path(self, resources_app: Path) -> Path:
        return self.asset_root(resources_app) / CONFIG_FILE_NAME


def target_state(target: PatchTarget, resources_app: Path) -> TargetState:
    """A target is patched once its generated config.json is on disk."""

    if target.config_path(resources_app).exists():
        return STATE_PATCHED
    return STATE_RESTORED


def desired_state(enabled: bool) -> TargetState:
    return STATE_PATCHED if enabled else STATE_RESTORED
