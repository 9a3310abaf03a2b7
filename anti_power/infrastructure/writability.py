"""Write-access probe for installation directories.

`os.access` is unreliable for this purpose (ACLs, SIP, read-only mounts), so
the probe creates and deletes a real file.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable
import uuid

from anti_power.domain.errors import IOFailureError, is_permission_error

PROBE_PREFIX = ".anti-power-probe-"


def _probe_name() -> str:
    return f"{PROBE_PREFIX}{os.getpid()}-{uuid.uuid4().hex}"


def can_write(directory: Path) -> bool:
    """True when a file can be created in `directory`.

    Permission-denied and read-only-filesystem failures return False; any
    other OSError (missing directory, disk full) raises IOFailureError.
    """

    probe = directory / _probe_name()
    try:
        fd = os.open(str(probe), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o600)
    except OSError as exc:
        if is_permission_error(exc):
            return False
        raise IOFailureError(f"Writability probe failed for {directory}: {exc.strerror or exc}", path=directory)
    os.close(fd)
    try:
        probe.unlink()
    except OSError:
        pass
    return True


def first_unwritable(directories: Iterable[Path]) -> Path | None:
    for directory in directories:
        if not can_write(directory):
            return directory
    return None
