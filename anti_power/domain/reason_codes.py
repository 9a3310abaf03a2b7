"""Canonical patcher reason-code registry.

Every error raised by the patcher carries one of these codes so the CLI, the
error log and the tests can branch on a stable token instead of message text.
"""

from __future__ import annotations

from typing import Final

# Sentinel used when an operation completed without a blocking reason.
REASON_CODE_NONE: Final[str] = "none"

# Path resolution.
BLOCKED_PATH_INVALID: Final[str] = "BLOCKED-PATH-INVALID"
BLOCKED_TARGET_MISSING: Final[str] = "BLOCKED-TARGET-MISSING"

# Filesystem access.
BLOCKED_PERMISSION_DENIED: Final[str] = "BLOCKED-PERMISSION-DENIED"
BLOCKED_IO_FAILURE: Final[str] = "BLOCKED-IO-FAILURE"

# Privileged execution.
BLOCKED_ELEVATION_DECLINED: Final[str] = "BLOCKED-ELEVATION-DECLINED"
BLOCKED_ELEVATION_TIMEOUT: Final[str] = "BLOCKED-ELEVATION-TIMEOUT"
BLOCKED_ELEVATION_EXECUTION: Final[str] = "BLOCKED-ELEVATION-EXECUTION"

# Persisted documents.
BLOCKED_CONFIG_PARSE: Final[str] = "BLOCKED-CONFIG-PARSE"
BLOCKED_NOT_INSTALLED: Final[str] = "BLOCKED-NOT-INSTALLED"
BLOCKED_CATALOG_INVALID: Final[str] = "BLOCKED-CATALOG-INVALID"

# Warning reason codes.
WARN_BACKUP_MISSING: Final[str] = "WARN-BACKUP-MISSING"
WARN_TARGET_SKIPPED: Final[str] = "WARN-TARGET-SKIPPED"

CANONICAL_REASON_CODES: Final[tuple[str, ...]] = (
    BLOCKED_PATH_INVALID,
    BLOCKED_TARGET_MISSING,
    BLOCKED_PERMISSION_DENIED,
    BLOCKED_IO_FAILURE,
    BLOCKED_ELEVATION_DECLINED,
    BLOCKED_ELEVATION_TIMEOUT,
    BLOCKED_ELEVATION_EXECUTION,
    BLOCKED_CONFIG_PARSE,
    BLOCKED_NOT_INSTALLED,
    BLOCKED_CATALOG_INVALID,
    WARN_BACKUP_MISSING,
    WARN_TARGET_SKIPPED,
)


def is_registered_reason_code(reason_code: str, *, allow_none: bool = True) -> bool:
    """Return True if the reason code is in the canonical registry."""

    normalized = reason_code.strip()
    if allow_none and normalized == REASON_CODE_NONE:
        return True
    return normalized in CANONICAL_REASON_CODES


# UX hints for operator-facing messages.
REASON_CODE_HINTS: Final[dict[str, str]] = {
    BLOCKED_PATH_INVALID: (
        "The path is not an Antigravity installation. "
        "Point at the install directory, the .app bundle, or its resources/app folder, "
        "or run 'anti-power detect' to search the usual locations."
    ),
    BLOCKED_NOT_INSTALLED: (
        "The patch is not installed yet. Run 'anti-power install <path>' first."
    ),
    BLOCKED_ELEVATION_DECLINED: (
        "Administrator authorization was cancelled. Re-run and approve the prompt, "
        "or move the installation to a user-writable location."
    ),
    BLOCKED_ELEVATION_TIMEOUT: (
        "The authorization prompt was not completed in time. Re-run the command."
    ),
    BLOCKED_PERMISSION_DENIED: (
        "The installation directory is not writable by this user. "
        "Re-run from an elevated shell or unset ANTI_POWER_DISABLE_ELEVATION."
    ),
}
