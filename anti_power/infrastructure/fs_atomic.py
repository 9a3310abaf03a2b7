from __future__ import annotations

import errno
import json
import os
from pathlib import Path
import shutil
import tempfile
import time
from typing import Any, Callable, TypeVar

T = TypeVar("T")

# Transient lock errors seen on Windows while an editor or AV scanner holds the file.
_RETRYABLE_ERRNOS = frozenset({errno.EBUSY, getattr(errno, "ETXTBSY", errno.EBUSY)})


def is_retryable_replace_error(exc: OSError) -> bool:
    if getattr(exc, "errno", None) in _RETRYABLE_ERRNOS:
        return True
    # ERROR_SHARING_VIOLATION / ERROR_LOCK_VIOLATION
    return getattr(exc, "winerror", None) in {32, 33}


def bounded_retry(fn: Callable[[], T], attempts: int = 5, backoff_ms: int = 50) -> T:
    for attempt in range(attempts):
        try:
            return fn()
        except OSError as exc:
            if attempt == attempts - 1 or not is_retryable_replace_error(exc):
                raise
            time.sleep(backoff_ms / 1000.0)
    raise RuntimeError("bounded_retry called with attempts < 1")


def fsync_dir(path: Path) -> None:
    try:
        fd = os.open(str(path), os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError:
        pass
    finally:
        os.close(fd)


def _write_via_temp(path: Path, fill: Callable[[Any], None], *, binary: bool) -> None:
    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="wb" if binary else "w",
            encoding=None if binary else "utf-8",
            newline=None if binary else "\n",
            dir=str(path.parent),
            prefix=path.name + ".",
            suffix=".tmp",
            delete=False,
        ) as tmp:
            temp_path = Path(tmp.name)
            fill(tmp)
            tmp.flush()
            os.fsync(tmp.fileno())

        def _replace() -> None:
            os.replace(str(temp_path), str(path))
            fsync_dir(path.parent)

        bounded_retry(_replace)
    finally:
        if temp_path is not None and temp_path.exists():
            temp_path.unlink(missing_ok=True)


def atomic_write_text(path: Path, text: str) -> None:
    """Replace `path` with LF-normalized UTF-8 text. The parent must exist."""

    payload = text.replace("\r\n", "\n")
    _write_via_temp(path, lambda handle: handle.write(payload), binary=False)


def atomic_write_json(path: Path, obj: Any, *, indent: int = 2) -> None:
    atomic_write_text(path, json.dumps(obj, indent=indent, ensure_ascii=False) + "\n")


def atomic_copy_file(src: Path, dst: Path) -> None:
    """Copy bytes of `src` over `dst` so readers never see a half-written file."""

    with src.open("rb") as source:
        _write_via_temp(dst, lambda handle: shutil.copyfileobj(source, handle), binary=True)
    shutil.copystat(str(src), str(dst))


def remove_tree(path: Path) -> bool:
    """Remove a directory tree; returns False when there was nothing to remove."""

    if not path.exists():
        return False
    shutil.rmtree(path)
    return True
