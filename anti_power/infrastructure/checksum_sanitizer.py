"""Integrity-manifest pruning for patched files.

The host application compares files against `product.json` checksums and
reports the installation as corrupted when they differ. Removing the entries
for the files the patch overwrites silences that check; all other content of
the manifest is preserved, including key order.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable

from anti_power.domain.errors import ConfigParseError, classify_os_error
from anti_power.infrastructure.fs_atomic import atomic_write_text


def _load_manifest(manifest_path: Path) -> dict[str, Any] | None:
    if not manifest_path.exists():
        return None
    try:
        text = manifest_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise classify_os_error(exc, manifest_path, "Reading checksum manifest")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigParseError(f"Checksum manifest is not valid JSON ({manifest_path}): {exc}", path=manifest_path)
    if not isinstance(data, dict):
        raise ConfigParseError(f"Checksum manifest must be a JSON object: {manifest_path}", path=manifest_path)
    return data


def _prune(data: dict[str, Any], keys: Iterable[str], section: str) -> list[str]:
    checksums = data.get(section)
    if not isinstance(checksums, dict):
        return []
    removed: list[str] = []
    for key in keys:
        if key in checksums:
            del checksums[key]
            removed.append(key)
    return removed


def _render(data: dict[str, Any]) -> str:
    return json.dumps(data, indent="\t", ensure_ascii=False) + "\n"


def sanitized_manifest_text(manifest_path: Path, keys: Iterable[str], *, section: str = "checksums") -> str | None:
    """Cleaned manifest text, or None when nothing would change."""

    data = _load_manifest(manifest_path)
    if data is None:
        return None
    if not _prune(data, keys, section):
        return None
    return _render(data)


def clean_checksums(manifest_path: Path, keys: Iterable[str], *, section: str = "checksums") -> list[str]:
    """Remove `keys` from the manifest's checksum map; returns the keys removed.

    A missing manifest or missing checksum map is a no-op. The file is only
    rewritten when at least one key was actually removed.
    """

    data = _load_manifest(manifest_path)
    if data is None:
        return []
    removed = _prune(data, keys, section)
    if not removed:
        return []
    try:
        atomic_write_text(manifest_path, _render(data))
    except OSError as exc:
        raise classify_os_error(exc, manifest_path, "Writing checksum manifest")
    return removed
