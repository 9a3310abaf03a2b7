from __future__ import annotations

import json
import os
import re
import uuid
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Mapping

from anti_power.infrastructure.app_settings import user_config_root
from anti_power.infrastructure.fs_atomic import atomic_write_text

DEFAULT_RETENTION_DAYS = 30
ERROR_INDEX_FILE_NAME = "errors-index.json"
ERROR_LOG_SCHEMA = "anti-power.error-log.v1"
ERROR_INDEX_SCHEMA = "anti-power.error-index.v1"
ERROR_LOGS_ENV = "ANTI_POWER_ERROR_LOGS"


def logging_enabled(env: Mapping[str, str] | None = None) -> bool:
    environ = os.environ if env is None else env
    return str(environ.get(ERROR_LOGS_ENV, "1")).strip().lower() not in {"0", "false", "no", "off"}


def default_log_dir() -> Path:
    return user_config_root() / "logs"


def _today_iso() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _normalize_value(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, dict):
        return {str(k): _normalize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize_value(v) for v in value]
    return str(value)


def _extract_log_date(name: str) -> date | None:
    m = re.match(r"^errors-(\d{4}-\d{2}-\d{2})-[A-Fa-f0-9]{8,64}\.jsonl$", name)
    if not m:
        return None
    try:
        return datetime.strptime(m.group(1), "%Y-%m-%d").date()
    except ValueError:
        return None


def _prune_old_logs(log_dir: Path, keep_days: int) -> int:
    if keep_days <= 0:
        return 0
    cutoff = datetime.now(timezone.utc).date() - timedelta(days=keep_days)
    removed = 0
    for p in log_dir.glob("errors-*.jsonl"):
        d = _extract_log_date(p.name)
        if d is None or d >= cutoff:
            continue
        try:
            p.unlink()
            removed += 1
        except OSError:
            continue
    return removed


def _load_error_index(index_path: Path) -> dict[str, Any]:
    try:
        existing = json.loads(index_path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        existing = None
    if not isinstance(existing, dict):
        existing = {}
    by_reason = existing.get("byReason")
    total = existing.get("totalEvents")
    return {
        "schema": ERROR_INDEX_SCHEMA,
        "updatedAt": existing.get("updatedAt", _utc_now()),
        "totalEvents": total if isinstance(total, int) else 0,
        "byReason": by_reason if isinstance(by_reason, dict) else {},
        "lastEvent": existing.get("lastEvent") if isinstance(existing.get("lastEvent"), dict) else {},
        "latestLogFile": existing.get("latestLogFile") if isinstance(existing.get("latestLogFile"), str) else "",
    }


def _update_error_index(index_path: Path, log_file: Path, record: dict[str, Any]) -> None:
    idx = _load_error_index(index_path)
    reason = str(record.get("reasonKey", "unknown"))
    idx["byReason"][reason] = int(idx["byReason"].get(reason, 0)) + 1
    idx["totalEvents"] = int(idx["totalEvents"]) + 1
    idx["updatedAt"] = _utc_now()
    idx["latestLogFile"] = log_file.name
    idx["lastEvent"] = {
        "timestamp": record.get("timestamp"),
        "reasonKey": reason,
        "command": record.get("command"),
        "appPath": record.get("appPath"),
        "route": record.get("route"),
    }
    atomic_write_text(index_path, json.dumps(idx, indent=2, ensure_ascii=True) + "\n")


def write_error_event(
    *,
    reason_key: str,
    message: str,
    command: str = "unknown",
    app_path: str | None = None,
    route: str | None = None,
    remediation: str | None = None,
    details: Any = None,
    log_dir: Path | None = None,
    retention_days: int = DEFAULT_RETENTION_DAYS,
) -> Path:
    target_dir = log_dir or default_log_dir()
    target_dir.mkdir(parents=True, exist_ok=True)
    event_id = uuid.uuid4().hex
    # One file per event; appends are not atomic on Windows.
    target = target_dir / f"errors-{_today_iso()}-{event_id}.jsonl"

    record = {
        "schema": ERROR_LOG_SCHEMA,
        "eventId": event_id,
        "timestamp": _utc_now(),
        "level": "error",
        "reasonKey": str(reason_key),
        "command": str(command),
        "appPath": app_path,
        "route": route,
        "message": str(message),
        "remediation": _normalize_value(remediation),
        "details": _normalize_value(details),
    }
    atomic_write_text(target, json.dumps(record, ensure_ascii=True) + "\n")
    _update_error_index(target_dir / ERROR_INDEX_FILE_NAME, target, record)
    _prune_old_logs(target_dir, retention_days)
    return target


def safe_log_error(**kwargs: Any) -> dict[str, str]:
    """Never raises: logging must not shadow the error being reported."""

    if not logging_enabled():
        return {"status": "disabled"}
    try:
        p = write_error_event(**kwargs)
        return {"status": "logged", "path": str(p)}
    except Exception as exc:
        return {"status": "log-failed", "error": str(exc)}
