"""Pytest configuration for patcher tests."""
from __future__ import annotations

from pathlib import Path

import pytest

from .util import make_fake_install


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Keep settings and error logs out of the real user profile."""
    monkeypatch.setenv("ANTI_POWER_CONFIG_HOME", str(tmp_path / "user-config"))
    monkeypatch.setenv("ANTI_POWER_ERROR_LOGS", "0")
    for name in ("ANTI_POWER_PATCHES_DIR", "ANTI_POWER_DISABLE_ELEVATION", "ANTI_POWER_ELEVATION_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def fake_install(tmp_path: Path) -> Path:
    return make_fake_install(tmp_path / "Antigravity")
