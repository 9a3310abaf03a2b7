"""Two-phase execution strategy: probe, then write directly or escalate.

The route is decided before anything is mutated. A direct attempt that still
runs into a permission-class error is not treated as a failure; it moves the
plan to the privileged route and the privileged phase is run instead. Every
other error propagates unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
from typing import Callable, Iterable, Literal, Mapping

from anti_power.domain.errors import PermissionDeniedError
from anti_power.infrastructure.writability import first_unwritable

Route = Literal["direct", "privileged"]

DISABLE_ELEVATION_ENV = "ANTI_POWER_DISABLE_ELEVATION"

REASON_WRITABLE = "writable"
REASON_SYSTEM_OWNED = "system-owned"
REASON_PROBE_DENIED = "probe-denied"
REASON_DIRECT_DENIED = "direct-denied"


@dataclass(frozen=True)
class ExecutionPlan:
    route: Route
    reason: str
    blocked: Path | None = None


@dataclass(frozen=True)
class Attempt:
    state: Literal["done", "denied"]
    denied: PermissionDeniedError | None = None


def elevation_allowed(env: Mapping[str, str] | None = None) -> bool:
    environ = os.environ if env is None else env
    return str(environ.get(DISABLE_ELEVATION_ENV, "")).strip() != "1"


def _running_elevated() -> bool:
    geteuid = getattr(os, "geteuid", None)
    return geteuid is not None and geteuid() == 0


class ProbeThenExecute:
    def __init__(
        self,
        *,
        system_owned: Callable[[Path], bool] = lambda root: False,
        probe: Callable[[Iterable[Path]], Path | None] = first_unwritable,
        allow_elevation: bool | None = None,
    ):
        self._system_owned = system_owned
        self._probe = probe
        self._allow_elevation = elevation_allowed() if allow_elevation is None else allow_elevation

    def plan(self, root: Path, directories: Iterable[Path]) -> ExecutionPlan:
        if self._system_owned(root) and not _running_elevated():
            return ExecutionPlan(route="privileged", reason=REASON_SYSTEM_OWNED, blocked=root)
        blocked = self._probe(list(directories))
        if blocked is None:
            return ExecutionPlan(route="direct", reason=REASON_WRITABLE)
        return ExecutionPlan(route="privileged", reason=REASON_PROBE_DENIED, blocked=blocked)

    @staticmethod
    def attempt_direct(direct: Callable[[], None]) -> Attempt:
        try:
            direct()
        except PermissionDeniedError as exc:
            return Attempt(state="denied", denied=exc)
        return Attempt(state="done")

    def run(self, plan: ExecutionPlan, direct: Callable[[], None], privileged: Callable[[], None]) -> ExecutionPlan:
        """Execute `plan`; returns the plan that actually completed."""

        if plan.route == "direct":
            attempt = self.attempt_direct(direct)
            if attempt.state == "done":
                return plan
            blocked = attempt.denied.path if attempt.denied is not None else None
            plan = ExecutionPlan(route="privileged", reason=REASON_DIRECT_DENIED, blocked=blocked)

        if not self._allow_elevation:
            raise PermissionDeniedError(
                f"Write access denied ({plan.reason}) for {plan.blocked} and elevation is disabled "
                f"via {DISABLE_ELEVATION_ENV}",
                path=plan.blocked,
            )
        privileged()
        return plan
