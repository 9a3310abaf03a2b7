"""Backup and restore of the single entry file each target overwrites.

The backup is a `<entry>.bak` sibling. It is created on the first install,
never overwritten afterwards, and left in place after a restore so repeated
install/uninstall cycles always return to the pristine original.
"""

from __future__ import annotations

from pathlib import Path

from anti_power.domain.errors import classify_os_error
from anti_power.domain.patch_target import PatchTarget
from anti_power.infrastructure.fs_atomic import atomic_copy_file, remove_tree

STATUS_BACKED_UP = "backed-up"
STATUS_SKIPPED_EXISTS = "skipped-exists"
STATUS_MISSING_ENTRY = "missing-entry"
STATUS_RESTORED = "restored"
STATUS_NO_BACKUP = "no-backup"


def backup_path(target: PatchTarget, target_dir: Path) -> Path:
    return target_dir / (target.entry_file + target.backup_suffix)


def has_backup(target: PatchTarget, target_dir: Path) -> bool:
    return backup_path(target, target_dir).exists()


def backup(target: PatchTarget, target_dir: Path) -> str:
    entry = target_dir / target.entry_file
    backup_file = backup_path(target, target_dir)
    if backup_file.exists():
        return STATUS_SKIPPED_EXISTS
    if not entry.exists():
        return STATUS_MISSING_ENTRY
    try:
        atomic_copy_file(entry, backup_file)
    except OSError as exc:
        raise classify_os_error(exc, backup_file, f"Backing up {target.entry_file}")
    return STATUS_BACKED_UP


def restore(target: PatchTarget, target_dir: Path) -> str:
    """Copy the backup back over the entry file and drop all patch artifacts."""

    entry = target_dir / target.entry_file
    backup_file = backup_path(target, target_dir)
    status = STATUS_NO_BACKUP
    if backup_file.exists():
        try:
            atomic_copy_file(backup_file, entry)
        except OSError as exc:
            raise classify_os_error(exc, entry, f"Restoring {target.entry_file}")
        status = STATUS_RESTORED

    asset_root = target_dir / target.asset_dir
    try:
        remove_tree(asset_root)
    except OSError as exc:
        raise classify_os_error(exc, asset_root, "Removing patch directory")
    return status
