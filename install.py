#!/usr/bin/env python3
"""
Anti-Power Patcher - Command line front end
Installs, updates and removes the Anti-Power resource patches in an
Antigravity installation.

Features:
- accepts the install dir, the macOS .app bundle or any path inside resources/app
- dry-run support (prints the planned route and targets, writes nothing)
- backup of each entry file before the first patch; uninstall restores it
- automatic fallback to the OS authorization prompt when the install is not writable
- last used path and feature toggles are remembered between runs

Exit codes:
  0 success, 2 invalid path / usage, 3 not installed,
  4 permission or elevation failure, 5 other failure
"""

from __future__ import annotations

import argparse
from dataclasses import replace
import json
import sys
from typing import Any

from anti_power import VERSION
from anti_power.application import commands
from anti_power.application.use_cases.patch_orchestrator import PatchReport
from anti_power.domain.errors import (
    ElevationDeclinedError,
    ElevationExecutionError,
    ElevationTimeoutError,
    NotInstalledError,
    PatcherError,
    PathInvalidError,
    PermissionDeniedError,
)
from anti_power.domain.feature_config import (
    COPY_BUTTON_BOTTOM_VALUES,
    COPY_BUTTON_STYLE_VALUES,
    ManagerFeatureConfig,
    SidebarFeatureConfig,
)
from anti_power.domain.reason_codes import REASON_CODE_HINTS
from anti_power.infrastructure.app_settings import AppSettings
from anti_power.infrastructure.error_logs import safe_log_error

EXIT_OK = 0
EXIT_USAGE = 2
EXIT_NOT_INSTALLED = 3
EXIT_PERMISSION = 4
EXIT_FAILURE = 5

STATUS_ICONS = {
    "backed-up": "✅",
    "skipped-exists": "⏭️ ",
    "missing-entry": "⚠️ ",
    "copied": "✅",
    "written": "✅",
    "restored": "✅",
    "no-backup": "⚠️ ",
    "missing-directory": "⏭️ ",
    "not-installed": "⏭️ ",
}


def eprint(*args, **kwargs):
    print(*args, file=sys.stderr, **kwargs)


def exit_code_for(exc: PatcherError) -> int:
    if isinstance(exc, PathInvalidError):
        return EXIT_USAGE
    if isinstance(exc, NotInstalledError):
        return EXIT_NOT_INSTALLED
    if isinstance(exc, (PermissionDeniedError, ElevationDeclinedError, ElevationTimeoutError, ElevationExecutionError)):
        return EXIT_PERMISSION
    return EXIT_FAILURE


def add_feature_args(p: argparse.ArgumentParser) -> None:
    side = p.add_argument_group("sidebar panel")
    side.add_argument("--sidebar-disabled", action="store_true", help="Restore the sidebar panel instead of patching it.")
    side.add_argument("--no-mermaid", action="store_true", help="Disable Mermaid diagram rendering.")
    side.add_argument("--no-math", action="store_true", help="Disable math rendering.")
    side.add_argument("--no-copy-button", action="store_true", help="Disable the copy button.")
    side.add_argument("--no-table-color", action="store_true", help="Disable table coloring.")
    side.add_argument("--font-size", type=float, default=None, help="Enable and set the font size.")
    side.add_argument("--no-font-size", action="store_true", help="Disable the font size override.")
    side.add_argument("--copy-smart-hover", action="store_true", default=None, help="Show the copy button on hover only.")
    side.add_argument("--copy-bottom", choices=COPY_BUTTON_BOTTOM_VALUES, default=None, help="Bottom copy button placement.")
    side.add_argument("--copy-style", choices=COPY_BUTTON_STYLE_VALUES, default=None, help="Copy button style.")
    side.add_argument("--copy-text", default=None, help="Copy button text for --copy-style custom.")

    mgr = p.add_argument_group("manager panel")
    mgr.add_argument("--manager-disabled", action="store_true", help="Restore the manager panel instead of patching it.")
    mgr.add_argument("--manager-mermaid", action="store_true", default=None, help="Enable Mermaid in the manager panel.")
    mgr.add_argument("--manager-math", action="store_true", default=None, help="Enable math in the manager panel.")
    mgr.add_argument("--manager-no-copy-button", action="store_true", help="Disable the manager copy button.")
    mgr.add_argument("--manager-font-size", type=float, default=None, help="Enable and set the manager font size.")
    mgr.add_argument("--manager-copy-style", choices=COPY_BUTTON_STYLE_VALUES, default=None, help="Manager copy button style.")
    mgr.add_argument("--manager-copy-text", default=None, help="Manager copy button text for custom style.")

    p.add_argument("--from-settings", action="store_true", help="Start from the saved feature toggles instead of defaults.")


def build_sidebar(args: argparse.Namespace, base: SidebarFeatureConfig) -> SidebarFeatureConfig:
    changes: dict[str, Any] = {}
    if args.sidebar_disabled:
        changes["enabled"] = False
    if args.no_mermaid:
        changes["mermaid"] = False
    if args.no_math:
        changes["math"] = False
    if args.no_copy_button:
        changes["copy_button"] = False
    if args.no_table_color:
        changes["table_color"] = False
    if args.font_size is not None:
        changes["font_size_enabled"] = True
        changes["font_size"] = args.font_size
    if args.no_font_size:
        changes["font_size_enabled"] = False
    if args.copy_smart_hover:
        changes["copy_button_smart_hover"] = True
    if args.copy_bottom is not None:
        changes["copy_button_show_bottom"] = args.copy_bottom
    if args.copy_style is not None:
        changes["copy_button_style"] = args.copy_style
    if args.copy_text is not None:
        changes["copy_button_custom_text"] = args.copy_text
    return replace(base, **changes)


def build_manager(args: argparse.Namespace, base: ManagerFeatureConfig) -> ManagerFeatureConfig:
    changes: dict[str, Any] = {}
    if args.manager_disabled:
        changes["enabled"] = False
    if args.manager_mermaid:
        changes["mermaid"] = True
    if args.manager_math:
        changes["math"] = True
    if args.manager_no_copy_button:
        changes["copy_button"] = False
    if args.manager_font_size is not None:
        changes["font_size_enabled"] = True
        changes["font_size"] = args.manager_font_size
    if args.manager_copy_style is not None:
        changes["copy_button_style"] = args.manager_copy_style
    if args.manager_copy_text is not None:
        changes["copy_button_custom_text"] = args.manager_copy_text
    return replace(base, **changes)


def resolve_path_arg(args: argparse.Namespace, settings: AppSettings) -> str | None:
    # explicit path > remembered path > auto-detect
    if getattr(args, "path", None):
        return args.path
    if settings.antigravity_path:
        return settings.antigravity_path
    return commands.detect_path()


def print_report(report: PatchReport) -> None:
    print(f"📁 Install root: {report.root}")
    route = report.route.upper()
    print(f"🔐 Route: {route} ({report.reason})")
    for entry in report.entries:
        status = entry["status"]
        where = f" -> {entry['path']}" if entry["path"] else ""
        if report.dry_run:
            print(f"  [DRY-RUN] {entry['target']}: {entry['action']} ({status}){where}")
        else:
            icon = STATUS_ICONS.get(status, "✅")
            print(f"  {icon} {entry['target']}: {entry['action']} ({status}){where}")
    for key in report.removed_checksums:
        print(f"  🧾 Removed checksum: {key}")
    for code, detail in report.warnings:
        print(f"  ⚠️  [{code}] {detail}")


def remember(path: str, sidebar: SidebarFeatureConfig, manager: ManagerFeatureConfig) -> None:
    settings = AppSettings(antigravity_path=path, features=sidebar, manager_features=manager)
    try:
        commands.save_app_settings(settings)
    except PatcherError as e:
        eprint(f"  ⚠️  Could not save settings: {e}")


def cmd_detect(args: argparse.Namespace) -> int:
    found = commands.detect_path()
    if found is None:
        eprint("❌ No Antigravity installation found in the usual locations.")
        return EXIT_USAGE
    print(found)
    return EXIT_OK


def cmd_normalize(args: argparse.Namespace) -> int:
    root = commands.normalize_path(args.path)
    if root is None:
        eprint(f"❌ Not an Antigravity installation: {args.path}")
        return EXIT_USAGE
    print(root)
    return EXIT_OK


def cmd_install(args: argparse.Namespace, settings: AppSettings) -> int:
    base_side = settings.features if args.from_settings else SidebarFeatureConfig()
    base_mgr = settings.manager_features if args.from_settings else ManagerFeatureConfig()
    sidebar = build_sidebar(args, base_side)
    manager = build_manager(args, base_mgr)
    path = resolve_path_arg(args, settings)

    if args.command == "install":
        report = commands.install_patch(path, sidebar, manager, dry_run=args.dry_run)
    else:
        report = commands.update_config(path, sidebar, manager, dry_run=args.dry_run)
    print_report(report)

    print("\n" + "=" * 60)
    if args.dry_run:
        print("✅ DRY-RUN complete (no changes were made).")
    else:
        remember(str(report.root), sidebar, manager)
        if args.command == "install":
            print("🎉 Patch installed! Restart Antigravity to load it.")
        else:
            print("🎉 Configuration updated! Reload the Antigravity window to apply it.")
    print("=" * 60)
    return EXIT_OK


def cmd_uninstall(args: argparse.Namespace, settings: AppSettings) -> int:
    report = commands.uninstall_patch(resolve_path_arg(args, settings), dry_run=args.dry_run)
    print_report(report)
    if args.dry_run:
        print("\n✅ DRY-RUN complete (no changes were made).")
    else:
        print("\n✅ Uninstall complete.")
    return EXIT_OK


def cmd_status(args: argparse.Namespace, settings: AppSettings) -> int:
    path = resolve_path_arg(args, settings)
    if commands.check_patch_status(path):
        print(f"✅ Patched: {commands.normalize_path(path)}")
        return EXIT_OK
    print(f"ℹ️  Not patched: {commands.normalize_path(path)}")
    return EXIT_NOT_INSTALLED


def _payload(config: Any) -> Any:
    return config.to_payload() if config is not None else None


def cmd_read_config(args: argparse.Namespace, settings: AppSettings) -> int:
    sidebar, manager = commands.read_config(resolve_path_arg(args, settings))
    doc = {"features": _payload(sidebar), "managerFeatures": _payload(manager)}
    print(json.dumps(doc, indent=2, ensure_ascii=False))
    return EXIT_OK


def cmd_settings(args: argparse.Namespace, settings: AppSettings) -> int:
    if args.set_path is not None:
        root = commands.normalize_path(args.set_path)
        if root is None:
            raise PathInvalidError(f"Not an Antigravity installation: {args.set_path!r}")
        settings = replace(settings, antigravity_path=root)
        saved = commands.save_app_settings(settings)
        print(f"✅ Saved: {saved}")
    print(json.dumps(settings.to_payload(), indent=2, ensure_ascii=False))
    return EXIT_OK


def parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="anti-power",
        description="Install/Uninstall the Anti-Power patches in an Antigravity installation.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("detect", help="Search the usual install locations.")

    norm = sub.add_parser("normalize", help="Resolve a path to the installation root.")
    norm.add_argument("path", help="Install dir, .app bundle or a path inside resources/app.")

    for name, help_text in (
        ("install", "Patch (or restore) each panel according to its toggles."),
        ("update-config", "Rewrite config.json of an installed patch only."),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("path", nargs="?", default=None, help="Installation path (default: saved or detected).")
        cmd.add_argument("--dry-run", action="store_true", help="Show the planned route and targets without writing.")
        add_feature_args(cmd)

    un = sub.add_parser("uninstall", help="Restore every panel from its backup.")
    un.add_argument("path", nargs="?", default=None, help="Installation path (default: saved or detected).")
    un.add_argument("--dry-run", action="store_true", help="Show the planned route and targets without writing.")

    for name, help_text in (
        ("status", "Report whether the patch is installed."),
        ("read-config", "Print the installed config.json of both panels."),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("path", nargs="?", default=None, help="Installation path (default: saved or detected).")

    st = sub.add_parser("settings", help="Show (or update) the saved settings.")
    st.add_argument("--set-path", default=None, help="Remember this installation path.")
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)

    if args.command == "detect":
        return cmd_detect(args)
    if args.command == "normalize":
        return cmd_normalize(args)

    settings = commands.get_app_settings()
    handlers = {
        "install": cmd_install,
        "update-config": cmd_install,
        "uninstall": cmd_uninstall,
        "status": cmd_status,
        "read-config": cmd_read_config,
        "settings": cmd_settings,
    }

    if args.command in ("install", "update-config", "uninstall"):
        print("=" * 60)
        print("Anti-Power Patcher")
        print(f"Version: {VERSION}")
        print(f"Mode: {args.command.upper()} | {'DRY-RUN' if args.dry_run else 'LIVE'}")
        print("=" * 60)

    try:
        return handlers[args.command](args, settings)
    except PatcherError as e:
        eprint(f"❌ {e}")
        hint = REASON_CODE_HINTS.get(e.reason_code)
        if hint:
            eprint(f"   {hint}")
        safe_log_error(
            reason_key=e.reason_code,
            message=str(e),
            command=args.command,
            app_path=str(e.path) if e.path is not None else getattr(args, "path", None),
            remediation=hint,
        )
        return exit_code_for(e)


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
