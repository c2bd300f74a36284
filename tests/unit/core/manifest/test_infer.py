from __future__ import annotations

"""
Unit tests for Dependency Inference.

Verifies crate detection from `use` / `extern crate` statements and that
declared, built-in and local names are never added.
"""

from cargoplay.core.manifest.infer import add_inferred, analyze_sources, normalize_crate_name
from cargoplay.core.manifest.merger import ManifestMerger
from cargoplay.domain.models import ManifestFragment, SourceFile


def make_source(path: str, body: str) -> SourceFile:
    return SourceFile(
        path=path,
        raw=body.encode("utf-8"),
        fragment=ManifestFragment(origin=path),
        body=body,
    )


def test_detects_use_and_extern_crate() -> None:
    body = (
        "extern crate rand;\n"
        "use serde_json::Value;\n"
        "pub use regex::Regex;\n"
        "use ::itertools::Itertools;\n"
        "fn main() {}\n"
    )

    found = analyze_sources([make_source("/p/main.rs", body)])

    assert found == {"rand", "serde_json", "regex", "itertools"}


def test_skips_builtin_and_relative_roots() -> None:
    body = (
        "use std::io;\n"
        "use core::fmt;\n"
        "use crate::util::helper;\n"
        "use self::inner::Thing;\n"
        "use super::parent;\n"
        "fn main() {}\n"
    )

    assert analyze_sources([make_source("/p/main.rs", body)]) == set()


def test_skips_local_modules_and_camel_case_roots() -> None:
    entry = make_source("/p/main.rs", "mod inner;\nmod util;\nuse util::helper;\nuse Ordering::Less;\n")
    aux = make_source("/p/inner.rs", "use inner::thing;\n")

    assert analyze_sources([entry, aux]) == set()


def test_add_inferred_uses_wildcard_and_keeps_declared() -> None:
    fragment = ManifestFragment(origin="/p/main.rs", data={"dependencies": {"serde-json": "1"}})
    manifest = ManifestMerger().merge("main", [fragment])

    result = add_inferred(manifest, {"serde_json", "rand"})

    assert result.section("dependencies") == {"serde-json": "1", "rand": "*"}
    assert result.origins["dependencies.rand"] == "<inferred>"
    # Input manifest untouched
    assert manifest.section("dependencies") == {"serde-json": "1"}


def test_add_inferred_without_crates_adds_no_section() -> None:
    manifest = ManifestMerger().merge("main", [])

    result = add_inferred(manifest, [])

    assert "dependencies" not in result.data


def test_normalize_crate_name() -> None:
    assert normalize_crate_name("serde-json") == "serde_json"
