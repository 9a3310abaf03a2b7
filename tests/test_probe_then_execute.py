from __future__ import annotations

from pathlib import Path

import pytest

from anti_power.application.use_cases import probe_then_execute as pte
from anti_power.domain.errors import IOFailureError, PermissionDeniedError


def _strategy(blocked: Path | None = None, *, system_owned: bool = False, allow_elevation: bool = True):
    return pte.ProbeThenExecute(
        system_owned=lambda root: system_owned,
        probe=lambda dirs: blocked,
        allow_elevation=allow_elevation,
    )


class Recorder:
    def __init__(self):
        self.calls: list[str] = []

    def direct(self) -> None:
        self.calls.append("direct")

    def privileged(self) -> None:
        self.calls.append("privileged")


@pytest.mark.patcher
def test_writable_dirs_plan_direct_route(tmp_path: Path):
    plan = _strategy().plan(tmp_path, [tmp_path])
    assert plan == pte.ExecutionPlan(route="direct", reason=pte.REASON_WRITABLE)


@pytest.mark.patcher
def test_failed_probe_plans_privileged_route(tmp_path: Path):
    plan = _strategy(blocked=tmp_path / "x").plan(tmp_path, [tmp_path / "x"])
    assert plan.route == "privileged"
    assert plan.reason == pte.REASON_PROBE_DENIED
    assert plan.blocked == tmp_path / "x"


@pytest.mark.patcher
def test_system_owned_root_plans_privileged_route(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(pte, "_running_elevated", lambda: False)
    plan = _strategy(system_owned=True).plan(tmp_path, [])
    assert plan.route == "privileged"
    assert plan.reason == pte.REASON_SYSTEM_OWNED


@pytest.mark.patcher
def test_system_owned_root_stays_direct_when_already_elevated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(pte, "_running_elevated", lambda: True)
    assert _strategy(system_owned=True).plan(tmp_path, [tmp_path]).route == "direct"


@pytest.mark.patcher
def test_direct_plan_runs_only_direct_phase(tmp_path: Path):
    rec = Recorder()
    strategy = _strategy()
    final = strategy.run(strategy.plan(tmp_path, []), rec.direct, rec.privileged)
    assert rec.calls == ["direct"]
    assert final.route == "direct"


@pytest.mark.patcher
def test_privileged_plan_never_attempts_direct_writes(tmp_path: Path):
    rec = Recorder()
    strategy = _strategy(blocked=tmp_path)
    final = strategy.run(strategy.plan(tmp_path, [tmp_path]), rec.direct, rec.privileged)
    assert rec.calls == ["privileged"]
    assert final.route == "privileged"


@pytest.mark.patcher
def test_permission_denied_during_direct_attempt_escalates(tmp_path: Path):
    calls: list[str] = []

    def direct() -> None:
        calls.append("direct")
        raise PermissionDeniedError("denied", path=tmp_path / "entry.html")

    strategy = _strategy()
    final = strategy.run(strategy.plan(tmp_path, []), direct, lambda: calls.append("privileged"))
    assert calls == ["direct", "privileged"]
    assert final.reason == pte.REASON_DIRECT_DENIED
    assert final.blocked == tmp_path / "entry.html"


@pytest.mark.patcher
def test_denial_without_a_path_still_escalates(tmp_path: Path):
    def direct() -> None:
        raise PermissionDeniedError("denied")

    strategy = _strategy()
    final = strategy.run(strategy.plan(tmp_path, []), direct, lambda: None)
    assert final.route == "privileged"
    assert final.blocked is None


@pytest.mark.patcher
def test_other_errors_do_not_escalate(tmp_path: Path):
    calls: list[str] = []

    def direct() -> None:
        raise IOFailureError("disk full")

    strategy = _strategy()
    with pytest.raises(IOFailureError):
        strategy.run(strategy.plan(tmp_path, []), direct, lambda: calls.append("privileged"))
    assert calls == []


@pytest.mark.patcher
def test_disabled_elevation_surfaces_permission_denied(tmp_path: Path):
    rec = Recorder()
    strategy = _strategy(blocked=tmp_path, allow_elevation=False)
    with pytest.raises(PermissionDeniedError, match="ANTI_POWER_DISABLE_ELEVATION"):
        strategy.run(strategy.plan(tmp_path, [tmp_path]), rec.direct, rec.privileged)
    assert rec.calls == []


@pytest.mark.patcher
def test_elevation_env_switch():
    assert pte.elevation_allowed({}) is True
    assert pte.elevation_allowed({"ANTI_POWER_DISABLE_ELEVATION": "1"}) is False
