"""Static patch assets, partitioned by target.

Contents are read once from the packaged `assets/` directory (or from
ANTI_POWER_PATCHES_DIR while developing the panel scripts) and materialized
verbatim; only the per-target config.json is generated at patch time.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path, PurePosixPath
from typing import Iterator, Mapping

from anti_power.domain.errors import IOFailureError, classify_os_error
from anti_power.domain.patch_target import PatchTarget
from anti_power.infrastructure.fs_atomic import remove_tree
from anti_power.infrastructure.patch_catalog import PatchCatalog, get_patch_catalog

PACKAGED_ASSETS_DIR = Path(__file__).resolve().parent.parent / "assets"
PATCHES_DIR_ENV = "ANTI_POWER_PATCHES_DIR"


def resolve_assets_dir(env: Mapping[str, str] | None = None) -> Path:
    environ = os.environ if env is None else env
    override = str(environ.get(PATCHES_DIR_ENV, "")).strip()
    if override:
        return Path(override).expanduser()
    return PACKAGED_ASSETS_DIR


@dataclass(frozen=True)
class AssetEntry:
    target_key: str
    relative_path: str
    content: str


@dataclass(frozen=True)
class AssetManifest:
    source_dir: Path
    entries: tuple[AssetEntry, ...]

    def for_target(self, target: PatchTarget) -> tuple[AssetEntry, ...]:
        return tuple(e for e in self.entries if e.target_key == target.key)

    def __iter__(self) -> Iterator[AssetEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def materialize(self, target: PatchTarget, target_dir: Path) -> list[Path]:
        """Write the target's files below `target_dir`, replacing its asset subdirectory."""

        asset_root = target_dir / target.asset_dir
        try:
            remove_tree(asset_root)
            asset_root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise classify_os_error(exc, asset_root, "Preparing asset directory")

        written: list[Path] = []
        for entry in self.for_target(target):
            dst = target_dir.joinpath(*PurePosixPath(entry.relative_path).parts)
            try:
                dst.parent.mkdir(parents=True, exist_ok=True)
                dst.write_text(entry.content, encoding="utf-8", newline="\n")
            except OSError as exc:
                raise classify_os_error(exc, dst, "Writing patch file")
            written.append(dst)
        return written


def load_asset_manifest(catalog: PatchCatalog | None = None, source_dir: Path | None = None) -> AssetManifest:
    cat = catalog or get_patch_catalog()
    base = source_dir or resolve_assets_dir()
    entries: list[AssetEntry] = []
    for target in cat.targets:
        for rel in target.assets:
            src = base.joinpath(*PurePosixPath(rel).parts)
            try:
                content = src.read_text(encoding="utf-8")
            except OSError as exc:
                raise IOFailureError(f"Patch asset missing or unreadable: {src} ({exc.strerror or exc})", path=src)
            entries.append(AssetEntry(target_key=target.key, relative_path=rel, content=content))
    return AssetManifest(source_dir=base, entries=tuple(entries))
