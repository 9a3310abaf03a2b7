from __future__ import annotations

import ast
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]
PACKAGE_ROOT = REPO_ROOT / "anti_power"


_IO_MODULE_PREFIXES = {
    "os",
    "subprocess",
    "shutil",
    "tempfile",
    "yaml",
}


def _iter_python_files(root: Path):
    if not root.exists():
        return []
    return [p for p in root.rglob("*.py") if "__pycache__" not in p.parts]


def _imports(path: Path) -> set[str]:
    tree = ast.parse(path.read_text(encoding="utf-8"))
    imported: set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                imported.add(alias.name)
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                imported.add(node.module)
    return imported


def _forbidden_calls(path: Path) -> list[str]:
    tree = ast.parse(path.read_text(encoding="utf-8"))
    violations: list[str] = []

    for node in ast.walk(tree):
        if isinstance(node, ast.Call):
            func = node.func
            lineno = getattr(node, "lineno", 0)
            if isinstance(func, ast.Name) and func.id == "open":
                violations.append(f"L{lineno}:open")
            if isinstance(func, ast.Attribute):
                if isinstance(func.value, ast.Name) and func.value.id == "subprocess":
                    violations.append(f"L{lineno}:subprocess.{func.attr}")
                if func.attr in {"write_text", "write_bytes", "mkdir", "unlink", "resolve"}:
                    violations.append(f"L{lineno}:Path.{func.attr}")
        if isinstance(node, ast.Attribute):
            if isinstance(node.value, ast.Name) and node.value.id == "os" and node.attr == "environ":
                violations.append(f"L{getattr(node, 'lineno', 0)}:os.environ")

    return sorted(set(violations))


@pytest.mark.patcher
def test_domain_layer_has_no_direct_io_imports():
    for file in _iter_python_files(PACKAGE_ROOT / "domain"):
        imports = _imports(file)
        bad = sorted(
            imp
            for imp in imports
            if any(imp == prefix or imp.startswith(prefix + ".") for prefix in _IO_MODULE_PREFIXES)
        )
        assert not bad, f"domain module imports io/os deps: {file}: {bad}"


@pytest.mark.patcher
def test_domain_layer_does_not_import_outer_layers():
    forbidden_prefixes = ("anti_power.infrastructure", "anti_power.application")
    for file in _iter_python_files(PACKAGE_ROOT / "domain"):
        imports = _imports(file)
        bad = sorted(i for i in imports if any(i.startswith(prefix) for prefix in forbidden_prefixes))
        assert not bad, f"domain imports outer layers: {file}: {bad}"


@pytest.mark.patcher
def test_infrastructure_layer_does_not_import_application():
    for file in _iter_python_files(PACKAGE_ROOT / "infrastructure"):
        imports = _imports(file)
        bad = sorted(i for i in imports if i.startswith("anti_power.application"))
        assert not bad, f"infrastructure imports application layer: {file}: {bad}"


@pytest.mark.patcher
def test_domain_layer_forbids_side_effect_calls():
    violations: list[str] = []
    for file in _iter_python_files(PACKAGE_ROOT / "domain"):
        bad_calls = _forbidden_calls(file)
        if bad_calls:
            violations.append(f"{file}: {bad_calls}")

    assert not violations, "forbidden side-effect calls detected in domain:\n" + "\n".join(violations)


@pytest.mark.patcher
def test_library_layers_do_not_print():
    offenders: list[str] = []
    for file in _iter_python_files(PACKAGE_ROOT):
        tree = ast.parse(file.read_text(encoding="utf-8"))
        for node in ast.walk(tree):
            if isinstance(node, ast.Call) and isinstance(node.func, ast.Name) and node.func.id == "print":
                offenders.append(f"{file}:L{node.lineno}")
    assert not offenders, "operator output belongs in install.py:\n" + "\n".join(offenders)
