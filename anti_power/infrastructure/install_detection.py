"""Best-effort suggestion of an Antigravity installation root.

One strategy per host OS, selected at startup. Each produces zero or one
candidate; the candidate is only accepted when `normalize_root` validates it.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
import platform
from typing import Callable, Iterable, Mapping, Protocol

from anti_power.infrastructure.path_normalizer import normalize_root

UNINSTALL_KEYS = (
    r"SOFTWARE\Microsoft\Windows\CurrentVersion\Uninstall\Antigravity",
    r"SOFTWARE\WOW6432Node\Microsoft\Windows\CurrentVersion\Uninstall\Antigravity",
)


class DetectionStrategy(Protocol):
    def candidates(self) -> Iterable[Path]: ...


def _first_valid(candidates: Iterable[Path]) -> Path | None:
    for candidate in candidates:
        root = normalize_root(candidate)
        if root is not None:
            return root
    return None


def _registry_install_locations() -> list[Path]:
    import winreg

    found: list[Path] = []
    for hive in (winreg.HKEY_LOCAL_MACHINE, winreg.HKEY_CURRENT_USER):
        for sub_key in UNINSTALL_KEYS:
            try:
                with winreg.OpenKey(hive, sub_key) as key:
                    value, _ = winreg.QueryValueEx(key, "InstallLocation")
            except OSError:
                continue
            if isinstance(value, str) and value.strip():
                found.append(Path(value.strip()))
    return found


@dataclass(frozen=True)
class WindowsDetection:
    env: Mapping[str, str]
    registry: Callable[[], list[Path]] = _registry_install_locations

    def candidates(self) -> Iterable[Path]:
        yield from self.registry()
        for drive in ("C:", "D:", "E:"):
            yield Path(f"{drive}\\Program Files\\Antigravity")
        local = str(self.env.get("LOCALAPPDATA", "")).strip()
        if local:
            yield Path(local) / "Programs" / "Antigravity"


@dataclass(frozen=True)
class MacDetection:
    home: Path

    def candidates(self) -> Iterable[Path]:
        yield Path("/Applications/Antigravity.app")
        yield self.home / "Applications" / "Antigravity.app"


@dataclass(frozen=True)
class LinuxDetection:
    home: Path

    def candidates(self) -> Iterable[Path]:
        yield Path("/usr/share/antigravity")
        yield Path("/opt/Antigravity")
        yield Path("/opt/antigravity")
        yield self.home / ".local" / "share" / "antigravity"


def select_strategy(system: str | None = None, env: Mapping[str, str] | None = None) -> DetectionStrategy | None:
    name = system if system is not None else platform.system()
    environ = os.environ if env is None else env
    if name == "Windows":
        return WindowsDetection(env=environ)
    if name == "Darwin":
        return MacDetection(home=Path.home())
    if name == "Linux":
        return LinuxDetection(home=Path.home())
    return None


def detect_install_root(strategy: DetectionStrategy | None = None) -> Path | None:
    chosen = strategy if strategy is not None else select_strategy()
    if chosen is None:
        return None
    return _first_valid(chosen.candidates())
