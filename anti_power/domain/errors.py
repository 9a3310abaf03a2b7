"""Patcher error taxonomy.

Only permission-class failures trigger the privileged fallback; every other
error propagates to the caller unchanged.
"""

from __future__ import annotations

import errno
from pathlib import Path

from anti_power.domain.reason_codes import (
    BLOCKED_CATALOG_INVALID,
    BLOCKED_CONFIG_PARSE,
    BLOCKED_ELEVATION_DECLINED,
    BLOCKED_ELEVATION_EXECUTION,
    BLOCKED_ELEVATION_TIMEOUT,
    BLOCKED_IO_FAILURE,
    BLOCKED_NOT_INSTALLED,
    BLOCKED_PATH_INVALID,
    BLOCKED_PERMISSION_DENIED,
    BLOCKED_TARGET_MISSING,
)

PERMISSION_ERRNOS = frozenset({errno.EACCES, errno.EPERM, errno.EROFS})


class PatcherError(RuntimeError):
    reason_code = BLOCKED_IO_FAILURE

    def __init__(self, message: str, *, path: Path | None = None):
        super().__init__(message)
        self.path = path


class PathInvalidError(PatcherError):
    reason_code = BLOCKED_PATH_INVALID


class TargetMissingError(PatcherError):
    reason_code = BLOCKED_TARGET_MISSING


class PermissionDeniedError(PatcherError):
    reason_code = BLOCKED_PERMISSION_DENIED


class IOFailureError(PatcherError):
    reason_code = BLOCKED_IO_FAILURE


class ElevationDeclinedError(PatcherError):
    reason_code = BLOCKED_ELEVATION_DECLINED


class ElevationTimeoutError(PatcherError):
    reason_code = BLOCKED_ELEVATION_TIMEOUT


class ElevationExecutionError(PatcherError):
    reason_code = BLOCKED_ELEVATION_EXECUTION


class ConfigParseError(PatcherError):
    reason_code = BLOCKED_CONFIG_PARSE


class NotInstalledError(PatcherError):
    reason_code = BLOCKED_NOT_INSTALLED


class CatalogError(PatcherError):
    reason_code = BLOCKED_CATALOG_INVALID


def is_permission_error(exc: OSError) -> bool:
    return isinstance(exc, PermissionError) or getattr(exc, "errno", None) in PERMISSION_ERRNOS


def classify_os_error(exc: OSError, path: Path, action: str) -> PatcherError:
    """Map a raw OSError from direct filesystem work onto the taxonomy."""

    detail = exc.strerror or str(exc)
    if is_permission_error(exc):
        return PermissionDeniedError(f"{action} failed: permission denied for {path} ({detail})", path=path)
    return IOFailureError(f"{action} failed for {path}: {detail}", path=path)
