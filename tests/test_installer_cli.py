from __future__ import annotations

import json
from pathlib import Path

import pytest

from .util import ORIGINAL_CASCADE_HTML, cascade_dir, make_fake_install, read_text, run_install, snapshot_tree


def _env(tmp_path: Path) -> dict[str, str]:
    return {
        "ANTI_POWER_CONFIG_HOME": str(tmp_path / "user-config"),
        "ANTI_POWER_ERROR_LOGS": "1",
        "ANTI_POWER_DISABLE_ELEVATION": "1",
    }


@pytest.mark.installer
def test_help_lists_subcommands():
    r = run_install(["--help"])
    assert r.returncode == 0
    for name in ("detect", "normalize", "install", "uninstall", "update-config", "status", "read-config", "settings"):
        assert name in r.stdout


@pytest.mark.installer
def test_normalize_prints_root(tmp_path: Path):
    root = make_fake_install(tmp_path / "Antigravity")
    r = run_install(["normalize", str(cascade_dir(root))], env=_env(tmp_path))
    assert r.returncode == 0, r.stderr
    assert r.stdout.strip() == str(root)


@pytest.mark.installer
def test_invalid_path_exits_2_and_logs_error(tmp_path: Path):
    env = _env(tmp_path)
    r = run_install(["install", str(tmp_path / "nowhere")], env=env)
    assert r.returncode == 2
    assert "❌" in r.stderr
    logs = list((tmp_path / "user-config" / "logs").glob("errors-*.jsonl"))
    assert len(logs) == 1
    record = json.loads(read_text(logs[0]))
    assert record["reasonKey"] == "BLOCKED-PATH-INVALID"
    assert record["command"] == "install"


@pytest.mark.installer
def test_dry_run_install_writes_nothing(tmp_path: Path):
    root = make_fake_install(tmp_path / "Antigravity")
    before = snapshot_tree(root)
    r = run_install(["install", str(root), "--dry-run"], env=_env(tmp_path))
    assert r.returncode == 0, r.stderr
    assert "[DRY-RUN]" in r.stdout
    assert "DRY-RUN complete" in r.stdout
    assert snapshot_tree(root) == before
    assert not (tmp_path / "user-config" / "config.json").exists()


@pytest.mark.installer
def test_install_status_update_uninstall_cycle(tmp_path: Path):
    root = make_fake_install(tmp_path / "Antigravity")
    env = _env(tmp_path)

    r = run_install(["status", str(root)], env=env)
    assert r.returncode == 3

    r = run_install(["update-config", str(root)], env=env)
    assert r.returncode == 3
    assert "not installed" in r.stderr.lower()

    r = run_install(["install", str(root), "--no-mermaid", "--font-size", "18", "--manager-disabled"], env=env)
    assert r.returncode == 0, r.stderr
    assert "Patch installed" in r.stdout

    r = run_install(["status", str(root)], env=env)
    assert r.returncode == 0
    assert "✅" in r.stdout

    r = run_install(["read-config", str(root)], env=env)
    doc = json.loads(r.stdout)
    assert doc["features"]["mermaid"] is False
    assert doc["features"]["fontSize"] == 18.0
    assert doc["managerFeatures"] is None

    # the path and toggles are remembered, so later commands need no path
    r = run_install(["update-config", "--from-settings", "--copy-style", "icon"], env=env)
    assert r.returncode == 0, r.stderr
    doc = json.loads(run_install(["read-config"], env=env).stdout)
    assert doc["features"]["mermaid"] is False
    assert doc["features"]["copyButtonStyle"] == "icon"

    r = run_install(["uninstall"], env=env)
    assert r.returncode == 0, r.stderr
    assert read_text(cascade_dir(root) / "cascade-panel.html") == ORIGINAL_CASCADE_HTML
    assert not (cascade_dir(root) / "cascade-panel").exists()


@pytest.mark.installer
def test_settings_set_path_validates(tmp_path: Path):
    root = make_fake_install(tmp_path / "Antigravity")
    env = _env(tmp_path)
    r = run_install(["settings", "--set-path", str(tmp_path / "nope")], env=env)
    assert r.returncode == 2

    r = run_install(["settings", "--set-path", str(root / "resources")], env=env)
    assert r.returncode == 0, r.stderr
    saved = json.loads(read_text(tmp_path / "user-config" / "config.json"))
    assert saved["antigravityPath"] == str(root)


@pytest.mark.installer
def test_invalid_copy_style_is_a_usage_error(tmp_path: Path):
    root = make_fake_install(tmp_path / "Antigravity")
    r = run_install(["install", str(root), "--copy-style", "sparkle"], env=_env(tmp_path))
    assert r.returncode == 2
    assert "invalid choice" in r.stderr


@pytest.mark.installer
def test_install_without_manager_directory_prints_skip_warning(tmp_path: Path):
    root = make_fake_install(tmp_path / "Antigravity", manager=False)
    r = run_install(["install", str(root), "--manager-disabled"], env=_env(tmp_path))
    assert r.returncode == 0, r.stderr
    assert "⚠️  [WARN-TARGET-SKIPPED] Manager" in r.stdout
