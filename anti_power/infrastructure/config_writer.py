"""Per-target config.json persistence."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Type, TypeVar

from anti_power.domain.errors import ConfigParseError, NotInstalledError, classify_os_error
from anti_power.domain.feature_config import FeatureConfig
from anti_power.infrastructure.fs_atomic import atomic_write_json

C = TypeVar("C")


def write_feature_config(path: Path, config: FeatureConfig) -> None:
    """Overwrite `path` with the documented key set; never merges prior content."""

    if not path.parent.is_dir():
        raise NotInstalledError(f"Patch directory missing, cannot write {path.name}: {path.parent}", path=path.parent)
    try:
        atomic_write_json(path, config.to_payload())
    except OSError as exc:
        raise classify_os_error(exc, path, "Writing config")


def read_feature_config(path: Path, config_type: Type[C]) -> C | None:
    if not path.exists():
        return None
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise classify_os_error(exc, path, "Reading config")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigParseError(f"Config is not valid JSON ({path}): {exc}", path=path)
    try:
        return config_type.from_mapping(payload)  # type: ignore[attr-defined]
    except ConfigParseError as exc:
        raise ConfigParseError(f"Config invalid ({path}): {exc}", path=path)
