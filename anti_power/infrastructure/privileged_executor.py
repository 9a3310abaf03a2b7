"""Privileged execution path for installations the current user cannot write.

The patch payload is staged into a private temporary directory together with
the bundled helper script, and the helper is run through the host OS
elevation mechanism with a fixed argument contract:

    --mode {install|uninstall|update-config} --app-path <resources/app>
    --cascade-enabled {true|false} --manager-enabled {true|false}

The staging directory is removed on every exit path.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path, PurePosixPath
import platform
import re
import shlex
import shutil
import subprocess
import tempfile
import time
from typing import Literal, Mapping, Protocol, Sequence

from anti_power.domain.errors import (
    ElevationDeclinedError,
    ElevationExecutionError,
    ElevationTimeoutError,
    PermissionDeniedError,
)
from anti_power.domain.feature_config import FeatureConfig
from anti_power.domain.patch_target import CONFIG_FILE_NAME
from anti_power.infrastructure.asset_manifest import PACKAGED_ASSETS_DIR, AssetManifest
from anti_power.infrastructure.config_writer import write_feature_config
from anti_power.infrastructure.fs_atomic import atomic_write_text
from anti_power.infrastructure.patch_catalog import PatchCatalog, PrivilegedSpec, get_patch_catalog

HelperMode = Literal["install", "uninstall", "update-config"]

ELEVATION_TIMEOUT_ENV = "ANTI_POWER_ELEVATION_TIMEOUT"
STAGED_PRODUCT_NAME = "product.json"
SENTINEL_NAME = ".exit-code"
HELPER_LOG_NAME = "helper.log"

# pkexec: 126 = authorization dismissed, 127 = not authorized.
_PKEXEC_DECLINED = frozenset({126, 127})


def _flag(value: bool) -> str:
    return "true" if value else "false"


@dataclass(frozen=True)
class HelperInvocation:
    mode: HelperMode
    app_path: Path
    cascade_enabled: bool
    manager_enabled: bool

    def argv(self) -> list[str]:
        return [
            "--mode",
            self.mode,
            "--app-path",
            str(self.app_path),
            "--cascade-enabled",
            _flag(self.cascade_enabled),
            "--manager-enabled",
            _flag(self.manager_enabled),
        ]


@dataclass(frozen=True)
class ElevationResult:
    returncode: int
    output: str


class ElevationMechanism(Protocol):
    def run(self, argv: Sequence[str], *, cwd: Path, timeout_seconds: float, poll_interval: float) -> ElevationResult: ...


def _read_sentinel(sentinel: Path) -> int | None:
    try:
        raw = sentinel.read_text(encoding="utf-8").strip()
    except OSError:
        return None
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _read_log(log_path: Path) -> str:
    try:
        return log_path.read_text(encoding="utf-8", errors="replace").strip()
    except OSError:
        return ""


def _applescript_quote(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


class MacAuthorizationPrompt:
    """`do shell script ... with administrator privileges` via osascript.

    osascript returns as soon as the dialog is dismissed, so completion is
    detected through a sentinel file holding the helper's exit code.
    """

    def run(self, argv: Sequence[str], *, cwd: Path, timeout_seconds: float, poll_interval: float) -> ElevationResult:
        sentinel = cwd / SENTINEL_NAME
        log_path = cwd / HELPER_LOG_NAME
        command = (
            f"cd {shlex.quote(str(cwd))} && /bin/bash {' '.join(shlex.quote(a) for a in argv)}"
            f" > {shlex.quote(str(log_path))} 2>&1; echo $? > {shlex.quote(str(sentinel))}"
        )
        script = f'do shell script "{_applescript_quote(command)}" with administrator privileges'
        proc = subprocess.Popen(
            ["osascript", "-e", script],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
        deadline = time.monotonic() + timeout_seconds
        try:
            while True:
                finished = proc.poll()
                code = _read_sentinel(sentinel)
                if code is not None:
                    return ElevationResult(returncode=code, output=_read_log(log_path))
                if finished is not None:
                    _, stderr = proc.communicate()
                    detail = (stderr or "").strip()
                    if "-128" in detail or "cancel" in detail.lower():
                        raise ElevationDeclinedError(f"Administrator authorization was cancelled ({detail or 'no detail'})")
                    raise ElevationExecutionError(
                        f"Authorization prompt exited with status {finished} before the helper reported: {detail}"
                    )
                if time.monotonic() >= deadline:
                    raise ElevationTimeoutError(
                        f"Elevation did not complete within {int(timeout_seconds)} seconds (no exit code in {sentinel})"
                    )
                time.sleep(poll_interval)
        finally:
            if proc.poll() is None:
                proc.kill()
                proc.wait()


class PolkitElevation:
    """`pkexec /bin/bash <helper> ...`; the exit status is read synchronously."""

    def run(self, argv: Sequence[str], *, cwd: Path, timeout_seconds: float, poll_interval: float) -> ElevationResult:
        _ = poll_interval
        try:
            completed = subprocess.run(
                ["pkexec", "/bin/bash", *argv],
                cwd=str(cwd),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=timeout_seconds,
                check=False,
            )
        except FileNotFoundError as exc:
            raise ElevationExecutionError(f"pkexec not found: {exc}")
        except subprocess.TimeoutExpired:
            raise ElevationTimeoutError(f"Elevation did not complete within {int(timeout_seconds)} seconds")
        output = (completed.stdout or "").strip()
        if completed.returncode in _PKEXEC_DECLINED:
            raise ElevationDeclinedError(f"Administrator authorization was not granted (pkexec exit {completed.returncode})")
        return ElevationResult(returncode=completed.returncode, output=output)


class UnsupportedElevation:
    def __init__(self, system: str):
        self._system = system or "this platform"

    def run(self, argv: Sequence[str], *, cwd: Path, timeout_seconds: float, poll_interval: float) -> ElevationResult:
        _ = argv, cwd, timeout_seconds, poll_interval
        raise PermissionDeniedError(
            f"Installation is not writable and automatic elevation is not supported on {self._system}. "
            "Re-run the command from an elevated (Administrator) shell."
        )


def select_mechanism(system: str | None = None) -> ElevationMechanism:
    name = system if system is not None else platform.system()
    if name == "Darwin":
        return MacAuthorizationPrompt()
    if name == "Linux":
        return PolkitElevation()
    return UnsupportedElevation(name)


def is_system_owned(root: Path, spec: PrivilegedSpec, system: str | None = None) -> bool:
    """Heuristic: root lies under an OS-standard installation prefix."""

    name = system if system is not None else platform.system()
    resolved = Path(os.path.abspath(str(root)))
    for prefix in spec.system_prefixes.get(name, ()):
        base = Path(prefix)
        if resolved == base or base in resolved.parents:
            return True
    return False


def remediation_hints(output: str, spec: PrivilegedSpec, system: str | None = None) -> list[str]:
    name = system if system is not None else platform.system()
    return [h.hint for h in spec.remediation_hints if h.platform == name and re.search(h.pattern, output, re.IGNORECASE)]


def with_hints(message: str, output: str, spec: PrivilegedSpec, system: str | None = None) -> str:
    for hint in remediation_hints(output, spec, system):
        message += f"\nHint: {hint}"
    return message


def resolve_timeout(spec: PrivilegedSpec, env: Mapping[str, str] | None = None) -> float:
    environ = os.environ if env is None else env
    raw = str(environ.get(ELEVATION_TIMEOUT_ENV, "")).strip()
    if raw:
        try:
            value = float(raw)
        except ValueError:
            return spec.timeout_seconds
        if value > 0:
            return value
    return spec.timeout_seconds


class PrivilegedExecutor:
    def __init__(
        self,
        manifest: AssetManifest,
        *,
        catalog: PatchCatalog | None = None,
        mechanism: ElevationMechanism | None = None,
        system: str | None = None,
        helper_source: Path | None = None,
    ):
        self._catalog = catalog or get_patch_catalog()
        self._manifest = manifest
        self._system = system if system is not None else platform.system()
        self._mechanism = mechanism or select_mechanism(self._system)
        self._helper_source = helper_source or (PACKAGED_ASSETS_DIR / self._catalog.privileged.helper_script)

    def stage(
        self,
        staging_dir: Path,
        *,
        configs: Mapping[str, FeatureConfig] | None = None,
        product_text: str | None = None,
    ) -> Path:
        """Materialize the manifest, generated configs and helper; returns the helper path."""

        for target in self._catalog.targets:
            target_dir = staging_dir.joinpath(*PurePosixPath(target.root).parts)
            self._manifest.materialize(target, target_dir)
            config = (configs or {}).get(target.key)
            if config is not None:
                write_feature_config(target_dir / target.asset_dir / CONFIG_FILE_NAME, config)
        if product_text is not None:
            atomic_write_text(staging_dir / STAGED_PRODUCT_NAME, product_text)
        helper = staging_dir / self._catalog.privileged.helper_script
        if self._helper_source.exists():
            shutil.copyfile(self._helper_source, helper)
        return helper

    def execute(
        self,
        invocation: HelperInvocation,
        *,
        configs: Mapping[str, FeatureConfig] | None = None,
        product_text: str | None = None,
    ) -> ElevationResult:
        spec = self._catalog.privileged
        staging_dir = Path(tempfile.mkdtemp(prefix=f"anti-power-{os.getpid()}-"))
        try:
            helper = self.stage(staging_dir, configs=configs, product_text=product_text)
            if not helper.is_file():
                raise ElevationExecutionError(f"Privileged helper not found in staging directory: {helper}", path=helper)
            helper.chmod(0o755)
            try:
                result = self._mechanism.run(
                    [str(helper), *invocation.argv()],
                    cwd=staging_dir,
                    timeout_seconds=resolve_timeout(spec),
                    poll_interval=spec.poll_interval_seconds,
                )
            except (ElevationExecutionError, ElevationDeclinedError) as exc:
                message = with_hints(str(exc), str(exc), spec, self._system)
                if message == str(exc):
                    raise
                raise type(exc)(message, path=exc.path or invocation.app_path) from exc
            if result.returncode != 0:
                message = f"Privileged helper failed ({invocation.mode}, exit {result.returncode})"
                if result.output:
                    message += f":\n{result.output}"
                raise ElevationExecutionError(
                    with_hints(message, result.output, spec, self._system), path=invocation.app_path
                )
            return result
        finally:
            shutil.rmtree(staging_dir, ignore_errors=True)
