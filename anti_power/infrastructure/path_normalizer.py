"""Installation root resolution.

Accepts the install directory itself, a macOS `.app` bundle, or any path that
already points into `resources/app`, and walks back to the canonical root.
Existence checks only; nothing here mutates the filesystem.
"""

from __future__ import annotations

import os
from pathlib import Path
import platform

from anti_power.infrastructure.patch_catalog import PatchCatalog, get_patch_catalog


def _is_macos() -> bool:
    return platform.system() == "Darwin"


def resources_app_root(root: Path, catalog: PatchCatalog | None = None) -> Path:
    layout = (catalog or get_patch_catalog()).layout
    if _is_macos():
        capitalized = root / layout.resources_dir_macos
        if capitalized.exists():
            return capitalized / layout.app_dir
    return root / layout.resources_dir / layout.app_dir


def is_valid_root(root: Path, catalog: PatchCatalog | None = None) -> bool:
    cat = catalog or get_patch_catalog()
    return cat.primary.entry_path(resources_app_root(root, cat)).exists()


def _ends_with_components_ci(path: Path, tail: tuple[str, ...]) -> bool:
    parts = [part.lower() for part in path.parts]
    if len(parts) < len(tail):
        return False
    return parts[len(parts) - len(tail):] == [item.lower() for item in tail]


def _strip_tail_ci(path: Path, tail: tuple[str, ...]) -> Path | None:
    if not _ends_with_components_ci(path, tail):
        return None
    parts = path.parts[: len(path.parts) - len(tail)]
    if not parts:
        return None
    return Path(*parts)


def _seeds(candidate: Path, catalog: PatchCatalog) -> list[Path]:
    layout = catalog.layout
    seeds = [candidate]
    if candidate.name.lower().endswith(layout.bundle_suffix.lower()):
        seeds.append(candidate / layout.bundle_internal_dir)
    for tail in ((layout.resources_dir, layout.app_dir), (layout.resources_dir,)):
        stripped = _strip_tail_ci(candidate, tail)
        if stripped is not None:
            seeds.append(stripped)
    return seeds


def normalize_root(candidate: Path, catalog: PatchCatalog | None = None) -> Path | None:
    """Return the first ancestor of any seed that is a valid installation root."""

    cat = catalog or get_patch_catalog()
    absolute = Path(os.path.abspath(str(candidate.expanduser())))
    for seed in _seeds(absolute, cat):
        for ancestor in (seed, *seed.parents):
            if is_valid_root(ancestor, cat):
                return ancestor
    return None


def normalize_root_str(raw: str | None, catalog: PatchCatalog | None = None) -> Path | None:
    token = str(raw or "").strip()
    if not token:
        return None
    return normalize_root(Path(token), catalog)
