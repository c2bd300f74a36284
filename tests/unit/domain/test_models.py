from __future__ import annotations

"""
Unit tests for the Domain Models.

Verifies ProjectIdentity determinism and sensitivity, and the derived
properties of the immutable value objects.
"""

import dataclasses

import pytest

from cargoplay.domain.models import (
    ManifestFragment,
    MergedManifest,
    ProjectIdentity,
    SourceFile,
    TempProject,
)


def make_source(path: str, raw: bytes) -> SourceFile:
    return SourceFile(path=path, raw=raw, fragment=ManifestFragment(origin=path), body=raw.decode())

# -----------------------------------------------------------------------------
# IDENTITY
# -----------------------------------------------------------------------------

def test_identity_is_a_pure_function_of_inputs() -> None:
    """TC-01: Equal inputs always produce equal identities."""
    sources = [make_source("/p/main.rs", b"fn main() {}\n"), make_source("/p/util.rs", b"pub fn f() {}\n")]

    first = ProjectIdentity.compute(sources, "[package]\n")
    second = ProjectIdentity.compute(list(sources), "[package]\n")

    assert first == second
    assert first.dirname == second.dirname


def test_single_byte_change_changes_identity() -> None:
    """TC-02: Any content change yields a different directory."""
    a = ProjectIdentity.compute([make_source("/p/main.rs", b"fn main() {}\n")], "m")
    b = ProjectIdentity.compute([make_source("/p/main.rs", b"fn main() {} \n")], "m")

    assert a != b
    assert a.dirname != b.dirname


def test_path_order_and_manifest_are_part_of_identity() -> None:
    x = make_source("/p/a.rs", b"x")
    y = make_source("/p/b.rs", b"y")

    base = ProjectIdentity.compute([x, y], "m")

    assert base != ProjectIdentity.compute([y, x], "m")
    assert base != ProjectIdentity.compute([x, y], "m2")
    assert base != ProjectIdentity.compute([make_source("/q/a.rs", b"x"), y], "m")


def test_identity_dirname_format() -> None:
    identity = ProjectIdentity.compute([make_source("/p/main.rs", b"")], "")

    assert identity.dirname.startswith("cargoplay.")
    assert len(identity.dirname) == len("cargoplay.") + 32
    assert len(identity.digest) == 64

# -----------------------------------------------------------------------------
# VALUE OBJECTS
# -----------------------------------------------------------------------------

def test_models_are_immutable() -> None:
    identity = ProjectIdentity(digest="0" * 64)
    project = TempProject(root="/tmp/x", identity=identity)

    with pytest.raises(dataclasses.FrozenInstanceError):
        project.root = "/tmp/y"  # type: ignore[misc]


def test_temp_project_paths() -> None:
    project = TempProject(root="/tmp/x", identity=ProjectIdentity(digest="0" * 64))

    assert project.manifest_path.endswith("Cargo.toml")
    assert project.source_dir.endswith("src")
    assert project.persistent is True
    assert project.reused is False


def test_merged_manifest_section_returns_copy() -> None:
    manifest = MergedManifest(data={"package": {"name": "x"}, "dependencies": {"rand": "0.8"}})

    deps = manifest.section("dependencies")
    deps["regex"] = "1"

    assert manifest.section("dependencies") == {"rand": "0.8"}
    assert manifest.section("features") == {}
    assert manifest.package_name == "x"


def test_render_without_package_table() -> None:
    manifest = MergedManifest(data={"dependencies": {"rand": "0.8"}})

    assert manifest.render() == '[dependencies]\nrand = "0.8"\n'


def test_source_file_content_hash_tracks_raw_bytes() -> None:
    a = make_source("/p/main.rs", b"abc")
    b = make_source("/p/other.rs", b"abc")

    assert a.content_hash == b.content_hash
    assert a.display_name == "main.rs"
