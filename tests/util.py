from __future__ import annotations

import hashlib
import json
import os
import subprocess
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]

CASCADE_DIR = ("resources", "app", "extensions", "antigravity")
MANAGER_DIR = ("resources", "app", "out", "vs", "code", "electron-browser", "workbench")
MANAGER_CHECKSUM_KEY = "vs/code/electron-browser/workbench/workbench-jetski-agent.html"

ORIGINAL_CASCADE_HTML = "<!doctype html><html><body>original cascade panel</body></html>\n"
ORIGINAL_MANAGER_HTML = "<!doctype html><html><body>original manager window</body></html>\n"


def run(cmd: list[str], *, env: dict[str, str] | None = None, cwd: Path | None = None) -> subprocess.CompletedProcess:
    e = os.environ.copy()
    if env:
        e.update(env)
    return subprocess.run(
        cmd,
        cwd=str(cwd or REPO_ROOT),
        env=e,
        text=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        check=False,
    )


def run_install(args: list[str], *, env: dict[str, str] | None = None) -> subprocess.CompletedProcess:
    # Always use the current interpreter (matrix python-version).
    return run([sys.executable, "-X", "utf8", "install.py", *args], env=env)


def read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def sha256_file(p: Path) -> str:
    h = hashlib.sha256()
    with p.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def snapshot_tree(root: Path) -> dict[str, str]:
    """Relative path -> sha256 for every file below root."""

    return {p.relative_to(root).as_posix(): sha256_file(p) for p in sorted(root.rglob("*")) if p.is_file()}


def make_fake_install(root: Path, *, manager: bool = True, product_json: bool = True) -> Path:
    """Create a minimal Antigravity layout below root and return root."""

    cascade = root.joinpath(*CASCADE_DIR)
    cascade.mkdir(parents=True, exist_ok=True)
    (cascade / "cascade-panel.html").write_text(ORIGINAL_CASCADE_HTML, encoding="utf-8")

    if manager:
        workbench = root.joinpath(*MANAGER_DIR)
        workbench.mkdir(parents=True, exist_ok=True)
        (workbench / "workbench-jetski-agent.html").write_text(ORIGINAL_MANAGER_HTML, encoding="utf-8")

    if product_json:
        doc = {
            "nameShort": "Antigravity",
            "checksums": {
                "vs/workbench/workbench.desktop.main.js": "abc123",
                MANAGER_CHECKSUM_KEY: "def456",
            },
            "version": "1.0.0",
        }
        (root / "resources" / "app" / "product.json").write_text(json.dumps(doc, indent=2) + "\n", encoding="utf-8")
    return root


def cascade_dir(root: Path) -> Path:
    return root.joinpath(*CASCADE_DIR)


def manager_dir(root: Path) -> Path:
    return root.joinpath(*MANAGER_DIR)


def product_json(root: Path) -> Path:
    return root / "resources" / "app" / "product.json"
