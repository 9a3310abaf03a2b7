from __future__ import annotations

from pathlib import Path

import pytest

from anti_power.infrastructure.path_normalizer import is_valid_root, normalize_root, normalize_root_str

from .util import cascade_dir, make_fake_install


@pytest.mark.patcher
@pytest.mark.parametrize(
    "suffix",
    [
        (),
        ("resources",),
        ("resources", "app"),
        ("resources", "app", "extensions", "antigravity"),
        ("resources", "app", "extensions", "antigravity", "cascade-panel.html"),
    ],
)
def test_paths_inside_the_install_resolve_to_the_root(fake_install: Path, suffix: tuple[str, ...]):
    assert normalize_root(fake_install.joinpath(*suffix)) == fake_install


@pytest.mark.patcher
def test_resources_app_tail_is_stripped_case_insensitively(fake_install: Path):
    assert normalize_root(fake_install / "RESOURCES" / "App") == fake_install


@pytest.mark.patcher
def test_mac_bundle_resolves_to_contents(tmp_path: Path):
    bundle = tmp_path / "Antigravity.app"
    contents = make_fake_install(bundle / "Contents")
    assert normalize_root(bundle) == contents


@pytest.mark.patcher
def test_normalization_is_idempotent(fake_install: Path):
    once = normalize_root(cascade_dir(fake_install))
    assert once is not None
    assert normalize_root(once) == once


@pytest.mark.patcher
def test_relative_candidates_are_made_absolute(fake_install: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.chdir(fake_install.parent)
    assert normalize_root(Path(fake_install.name)) == fake_install


@pytest.mark.patcher
def test_directory_without_entry_file_is_not_a_root(tmp_path: Path):
    (tmp_path / "resources" / "app").mkdir(parents=True)
    assert is_valid_root(tmp_path) is False
    assert normalize_root(tmp_path) is None


@pytest.mark.patcher
@pytest.mark.parametrize("raw", [None, "", "   "])
def test_blank_input_yields_none(raw):
    assert normalize_root_str(raw) is None


@pytest.mark.patcher
def test_string_input_is_trimmed(fake_install: Path):
    assert normalize_root_str(f"  {fake_install}  ") == fake_install
