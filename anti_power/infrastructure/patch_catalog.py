"""Loader for the patch catalog data table.

Fail-closed loader for `anti_power/data/patch_catalog.yaml`: target layout,
asset lists, checksum removal keys and privileged-execution settings. The
catalog is parsed once per process and handed out as frozen records.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path, PurePosixPath
from typing import Any

import yaml

from anti_power.domain.errors import CatalogError
from anti_power.domain.patch_target import PatchTarget

CATALOG_SCHEMA = "anti-power.patch-catalog.v1"
DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent.parent / "data" / "patch_catalog.yaml"


@dataclass(frozen=True)
class LayoutSpec:
    resources_dir: str
    resources_dir_macos: str
    app_dir: str
    bundle_suffix: str
    bundle_internal_dir: str


@dataclass(frozen=True)
class ChecksumSpec:
    manifest: str
    section: str
    remove_keys: tuple[str, ...]


@dataclass(frozen=True)
class RemediationHint:
    platform: str
    pattern: str
    hint: str


@dataclass(frozen=True)
class PrivilegedSpec:
    helper_script: str
    timeout_seconds: float
    poll_interval_seconds: float
    system_prefixes: dict[str, tuple[str, ...]]
    remediation_hints: tuple[RemediationHint, ...]


@dataclass(frozen=True)
class PatchCatalog:
    source: Path
    host: str
    layout: LayoutSpec
    targets: tuple[PatchTarget, ...]
    checksums: ChecksumSpec
    privileged: PrivilegedSpec

    @property
    def primary(self) -> PatchTarget:
        return next(t for t in self.targets if t.primary)

    def target(self, key: str) -> PatchTarget:
        for candidate in self.targets:
            if candidate.key == key:
                return candidate
        raise KeyError(key)


def _require(mapping: Any, key: str, path: Path, *, kind: type = str) -> Any:
    if not isinstance(mapping, dict):
        raise CatalogError(f"Patch catalog section is not a mapping ({path}): expected key {key!r}", path=path)
    value = mapping.get(key)
    if kind is str and (not isinstance(value, str) or not value.strip()):
        raise CatalogError(f"Patch catalog key {key!r} missing or empty: {path}", path=path)
    if kind is not str and not isinstance(value, kind):
        raise CatalogError(f"Patch catalog key {key!r} must be {kind.__name__}: {path}", path=path)
    return value


def _relative_posix(raw: str, path: Path, label: str) -> PurePosixPath:
    rel = PurePosixPath(raw)
    if rel.is_absolute() or ".." in rel.parts:
        raise CatalogError(f"Patch catalog {label} must be a relative path without '..': {raw!r} ({path})", path=path)
    return rel


def _load_target(raw: Any, path: Path) -> PatchTarget:
    assets_raw = _require(raw, "assets", path, kind=list)
    assets = tuple(str(_relative_posix(str(item), path, "asset")) for item in assets_raw)
    entry_file = _require(raw, "entry_file", path)
    asset_dir = _require(raw, "asset_dir", path)
    if entry_file not in assets:
        raise CatalogError(f"Target {raw.get('key')!r} must ship its entry file {entry_file!r}: {path}", path=path)
    return PatchTarget(
        key=_require(raw, "key", path),
        label=_require(raw, "label", path),
        root=_relative_posix(_require(raw, "root", path), path, "target root"),
        entry_file=entry_file,
        asset_dir=asset_dir,
        backup_suffix=_require(raw, "backup_suffix", path),
        assets=assets,
        primary=bool(raw.get("primary", False)),
    )


def _load_privileged(raw: Any, path: Path) -> PrivilegedSpec:
    prefixes_raw = _require(raw, "system_prefixes", path, kind=dict)
    hints_raw = raw.get("remediation_hints") or []
    if not isinstance(hints_raw, list):
        raise CatalogError(f"remediation_hints must be a list: {path}", path=path)
    try:
        timeout = float(raw.get("timeout_seconds", 300))
        poll = float(raw.get("poll_interval_seconds", 0.5))
    except (TypeError, ValueError) as exc:
        raise CatalogError(f"Privileged timings must be numbers ({path}): {exc}", path=path)
    return PrivilegedSpec(
        helper_script=_require(raw, "helper_script", path),
        timeout_seconds=timeout,
        poll_interval_seconds=poll,
        system_prefixes={str(k): tuple(str(p) for p in (v or [])) for k, v in prefixes_raw.items()},
        remediation_hints=tuple(
            RemediationHint(
                platform=_require(item, "platform", path),
                pattern=_require(item, "pattern", path),
                hint=" ".join(_require(item, "hint", path).split()),
            )
            for item in hints_raw
        ),
    )


def load_patch_catalog(path: Path | None = None) -> PatchCatalog:
    source = path or DEFAULT_CATALOG_PATH
    try:
        data = yaml.safe_load(source.read_text(encoding="utf-8"))
    except OSError as exc:
        raise CatalogError(f"Patch catalog unreadable ({source}): {exc}", path=source)
    except yaml.YAMLError as exc:
        raise CatalogError(f"Patch catalog parse failed ({source}): {exc}", path=source)
    if not isinstance(data, dict) or not data:
        raise CatalogError(f"Patch catalog empty/invalid: {source}", path=source)

    meta = _require(data, "catalog", source, kind=dict)
    if meta.get("schema") != CATALOG_SCHEMA:
        raise CatalogError(f"Patch catalog schema must be {CATALOG_SCHEMA}: {source}", path=source)

    layout_raw = _require(data, "layout", source, kind=dict)
    layout = LayoutSpec(
        resources_dir=_require(layout_raw, "resources_dir", source),
        resources_dir_macos=_require(layout_raw, "resources_dir_macos", source),
        app_dir=_require(layout_raw, "app_dir", source),
        bundle_suffix=_require(layout_raw, "bundle_suffix", source),
        bundle_internal_dir=_require(layout_raw, "bundle_internal_dir", source),
    )

    targets = tuple(_load_target(item, source) for item in _require(data, "targets", source, kind=list))
    keys = [t.key for t in targets]
    if len(set(keys)) != len(keys):
        raise CatalogError(f"Duplicate target keys in patch catalog: {source}", path=source)
    if sum(1 for t in targets if t.primary) != 1:
        raise CatalogError(f"Patch catalog must declare exactly one primary target: {source}", path=source)

    checksums_raw = _require(data, "checksums", source, kind=dict)
    checksums = ChecksumSpec(
        manifest=_require(checksums_raw, "manifest", source),
        section=_require(checksums_raw, "section", source),
        remove_keys=tuple(str(k) for k in _require(checksums_raw, "remove_keys", source, kind=list)),
    )

    return PatchCatalog(
        source=source,
        host=_require(meta, "host", source),
        layout=layout,
        targets=targets,
        checksums=checksums,
        privileged=_load_privileged(_require(data, "privileged", source, kind=dict), source),
    )


@lru_cache(maxsize=1)
def get_patch_catalog() -> PatchCatalog:
    return load_patch_catalog()
