"""Install/uninstall state machine over the patch targets.

Each target moves between `restored` (pristine entry file, no asset
directory) and `patched` (backup kept, assets and config.json written).
Mutating operations first plan their route over every directory they will
touch, then run either the direct writes or the privileged helper, never a
mix of both.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import platform
from typing import Mapping

from anti_power.application.use_cases.probe_then_execute import ExecutionPlan, ProbeThenExecute
from anti_power.domain.errors import NotInstalledError, TargetMissingError
from anti_power.domain.feature_config import (
    CONFIG_TYPES,
    FeatureConfig,
    ManagerFeatureConfig,
    SidebarFeatureConfig,
)
from anti_power.domain.patch_target import CONFIG_FILE_NAME, PatchTarget, TargetState, desired_state, target_state
from anti_power.domain.reason_codes import WARN_BACKUP_MISSING, WARN_TARGET_SKIPPED
from anti_power.infrastructure import backup_ledger
from anti_power.infrastructure.asset_manifest import AssetManifest, load_asset_manifest
from anti_power.infrastructure.checksum_sanitizer import clean_checksums, sanitized_manifest_text
from anti_power.infrastructure.config_writer import read_feature_config, write_feature_config
from anti_power.infrastructure.patch_catalog import PatchCatalog, get_patch_catalog
from anti_power.infrastructure.path_normalizer import resources_app_root
from anti_power.infrastructure.privileged_executor import (
    HelperInvocation,
    HelperMode,
    PrivilegedExecutor,
    is_system_owned,
)


@dataclass
class PatchReport:
    operation: str
    root: Path
    route: str = "direct"
    reason: str = ""
    dry_run: bool = False
    entries: list[dict[str, str]] = field(default_factory=list)
    removed_checksums: list[str] = field(default_factory=list)
    warnings: list[tuple[str, str]] = field(default_factory=list)

    def add(self, target: str, action: str, status: str, path: Path | None = None) -> None:
        self.entries.append({"target": target, "action": action, "status": status, "path": str(path) if path else ""})

    def warn(self, reason_code: str, detail: str) -> None:
        self.warnings.append((reason_code, detail))

    def apply_plan(self, plan: ExecutionPlan) -> None:
        self.route = plan.route
        self.reason = plan.reason


class PatchOrchestrator:
    def __init__(
        self,
        *,
        catalog: PatchCatalog | None = None,
        manifest: AssetManifest | None = None,
        executor: PrivilegedExecutor | None = None,
        strategy: ProbeThenExecute | None = None,
        system: str | None = None,
    ):
        self._catalog = catalog or get_patch_catalog()
        self._manifest = manifest
        self._executor = executor
        self._system = system if system is not None else platform.system()
        self._strategy = strategy or ProbeThenExecute(
            system_owned=lambda root: is_system_owned(root, self._catalog.privileged, self._system)
        )

    @property
    def catalog(self) -> PatchCatalog:
        return self._catalog

    @property
    def manifest(self) -> AssetManifest:
        if self._manifest is None:
            self._manifest = load_asset_manifest(self._catalog)
        return self._manifest

    @property
    def executor(self) -> PrivilegedExecutor:
        if self._executor is None:
            self._executor = PrivilegedExecutor(self.manifest, catalog=self._catalog, system=self._system)
        return self._executor

    def resources_app(self, root: Path) -> Path:
        return resources_app_root(root, self._catalog)

    def _configs(self, sidebar: SidebarFeatureConfig, manager: ManagerFeatureConfig) -> dict[str, FeatureConfig]:
        by_kind: dict[str, FeatureConfig] = {sidebar.kind: sidebar, manager.kind: manager}
        return {t.key: by_kind[t.key] for t in self._catalog.targets}

    def _escalate(
        self,
        mode: HelperMode,
        resources_app: Path,
        configs: Mapping[str, FeatureConfig],
        *,
        product_text: str | None = None,
    ) -> None:
        invocation = HelperInvocation(
            mode=mode,
            app_path=resources_app,
            cascade_enabled=bool(configs.get("cascade") and configs["cascade"].enabled),
            manager_enabled=bool(configs.get("manager") and configs["manager"].enabled),
        )
        self.executor.execute(invocation, configs=configs, product_text=product_text)

    # -- install -------------------------------------------------------

    def _patch_target(self, target: PatchTarget, target_dir: Path, config: FeatureConfig, report: PatchReport) -> None:
        status = backup_ledger.backup(target, target_dir)
        report.add(target.key, "backup", status, backup_ledger.backup_path(target, target_dir))
        if status == backup_ledger.STATUS_MISSING_ENTRY:
            report.warn(WARN_BACKUP_MISSING, f"{target.label}: {target.entry_file} not found, nothing to back up")
        self.manifest.materialize(target, target_dir)
        report.add(target.key, "materialize", "copied", target_dir / target.asset_dir)
        config_path = target_dir / target.asset_dir / CONFIG_FILE_NAME
        write_feature_config(config_path, config)
        report.add(target.key, "config", "written", config_path)

    @staticmethod
    def _skip(target: PatchTarget, status: str, path: Path, report: PatchReport) -> None:
        report.add(target.key, "skip", status, path)
        report.warn(WARN_TARGET_SKIPPED, f"{target.label}: {status} ({path})")

    def _restore_target(self, target: PatchTarget, target_dir: Path, report: PatchReport) -> None:
        was_patched = (target_dir / target.asset_dir / CONFIG_FILE_NAME).exists()
        status = backup_ledger.restore(target, target_dir)
        report.add(target.key, "restore", status, target_dir / target.entry_file)
        if status == backup_ledger.STATUS_NO_BACKUP and was_patched:
            report.warn(WARN_BACKUP_MISSING, f"{target.label}: no backup of {target.entry_file}, entry file left as is")

    def install(
        self,
        root: Path,
        sidebar: SidebarFeatureConfig,
        manager: ManagerFeatureConfig,
        *,
        dry_run: bool = False,
    ) -> PatchReport:
        resources_app = self.resources_app(root)
        configs = self._configs(sidebar, manager)
        report = PatchReport(operation="install", root=root, dry_run=dry_run)

        present: list[tuple[PatchTarget, Path]] = []
        for target in self._catalog.targets:
            target_dir = target.target_dir(resources_app)
            if target_dir.is_dir():
                present.append((target, target_dir))
            elif configs[target.key].enabled:
                raise TargetMissingError(f"{target.label} directory does not exist: {target_dir}", path=target_dir)
            else:
                self._skip(target, "missing-directory", target_dir, report)

        manager_enabled = configs["manager"].enabled
        manifest_path = resources_app / self._catalog.checksums.manifest
        touched = [d for _, d in present]
        if manager_enabled and manifest_path.exists():
            touched.append(resources_app)

        plan = self._strategy.plan(root, touched)
        report.apply_plan(plan)
        if dry_run:
            for target, target_dir in present:
                report.add(target.key, "plan", desired_state(configs[target.key].enabled), target_dir)
            return report

        def direct() -> None:
            for target, target_dir in present:
                if configs[target.key].enabled:
                    self._patch_target(target, target_dir, configs[target.key], report)
                else:
                    self._restore_target(target, target_dir, report)
            if manager_enabled:
                report.removed_checksums = clean_checksums(
                    manifest_path,
                    self._catalog.checksums.remove_keys,
                    section=self._catalog.checksums.section,
                )

        def privileged() -> None:
            product_text = None
            if manager_enabled:
                product_text = sanitized_manifest_text(
                    manifest_path,
                    self._catalog.checksums.remove_keys,
                    section=self._catalog.checksums.section,
                )
            staged = {key: cfg for key, cfg in configs.items() if cfg.enabled}
            self._escalate("install", resources_app, staged, product_text=product_text)
            for target, target_dir in present:
                report.add(target.key, "helper", desired_state(configs[target.key].enabled), target_dir)

        report.apply_plan(self._strategy.run(plan, direct, privileged))
        return report

    # -- uninstall -----------------------------------------------------

    def uninstall(self, root: Path, *, dry_run: bool = False) -> PatchReport:
        """Drive every target to restored, regardless of its enabled flag."""

        resources_app = self.resources_app(root)
        report = PatchReport(operation="uninstall", root=root, dry_run=dry_run)
        present: list[tuple[PatchTarget, Path]] = []
        for target in self._catalog.targets:
            target_dir = target.target_dir(resources_app)
            if target_dir.is_dir():
                present.append((target, target_dir))
            else:
                self._skip(target, "missing-directory", target_dir, report)

        plan = self._strategy.plan(root, [d for _, d in present])
        report.apply_plan(plan)
        if dry_run:
            for target, target_dir in present:
                report.add(target.key, "plan", "restored", target_dir)
            return report

        def direct() -> None:
            for target, target_dir in present:
                self._restore_target(target, target_dir, report)

        def privileged() -> None:
            self._escalate("uninstall", resources_app, {})
            for target, target_dir in present:
                report.add(target.key, "helper", "restored", target_dir)

        report.apply_plan(self._strategy.run(plan, direct, privileged))
        return report

    # -- update-config -------------------------------------------------

    def update_config(
        self,
        root: Path,
        sidebar: SidebarFeatureConfig,
        manager: ManagerFeatureConfig,
        *,
        dry_run: bool = False,
    ) -> PatchReport:
        """Rewrite config.json of already patched targets; assets and backups are untouched."""

        resources_app = self.resources_app(root)
        configs = self._configs(sidebar, manager)
        report = PatchReport(operation="update-config", root=root, dry_run=dry_run)

        primary = self._catalog.primary
        primary_assets = primary.asset_root(resources_app)
        if not primary_assets.is_dir():
            raise NotInstalledError(
                f"Patch is not installed yet ({primary_assets} missing); run install first", path=primary_assets
            )

        writable: list[tuple[PatchTarget, Path]] = []
        for target in self._catalog.targets:
            asset_root = target.asset_root(resources_app)
            if asset_root.is_dir():
                writable.append((target, asset_root))
            else:
                self._skip(target, "not-installed", asset_root, report)

        plan = self._strategy.plan(root, [d for _, d in writable])
        report.apply_plan(plan)
        if dry_run:
            for target, asset_root in writable:
                report.add(target.key, "plan", "config", asset_root / CONFIG_FILE_NAME)
            return report

        def direct() -> None:
            for target, asset_root in writable:
                config_path = asset_root / CONFIG_FILE_NAME
                write_feature_config(config_path, configs[target.key])
                report.add(target.key, "config", "written", config_path)

        def privileged() -> None:
            self._escalate("update-config", resources_app, configs)
            for target, asset_root in writable:
                report.add(target.key, "helper", "config", asset_root / CONFIG_FILE_NAME)

        report.apply_plan(self._strategy.run(plan, direct, privileged))
        return report

    # -- read-only queries ---------------------------------------------

    def status(self, root: Path) -> bool:
        return self._catalog.primary.config_path(self.resources_app(root)).exists()

    def target_state(self, root: Path, key: str) -> TargetState:
        return target_state(self._catalog.target(key), self.resources_app(root))

    def target_states(self, root: Path) -> dict[str, TargetState]:
        resources_app = self.resources_app(root)
        return {t.key: target_state(t, resources_app) for t in self._catalog.targets}

    def read_config(self, root: Path, key: str) -> FeatureConfig | None:
        target = self._catalog.target(key)
        return read_feature_config(target.config_path(self.resources_app(root)), CONFIG_TYPES[key])
