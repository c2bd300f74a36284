from __future__ import annotations

"""
Integration tests for the orchestration pipeline.

Runs the complete extract -> merge -> materialize -> build flow against
the fake build tool and verifies exit codes, project reuse, cleanup and
that every pre-build failure happens before the build tool is started.
"""

import os
import shutil
from pathlib import Path
from typing import Any, Dict

import pytest
import toml

from cargoplay.core.pipeline.engine import load_sources, purge_cache, run_pipeline
from cargoplay.core.pipeline.runner import BuildRunner
from cargoplay.domain.errors import DirectiveParseError, InputFileError, MergeConflictError

from conftest import read_invocations

HELLO = '//# foo = "*"\n// print: hello from foo\n// exit: 3\nfn main() {}\n'


@pytest.fixture
def base_config(tmp_path: Path) -> Dict[str, Any]:
    return {"cache_dir": str(tmp_path / "cache")}


def run(config: Dict[str, Any], fake_cargo: Dict[str, Any], **overrides: Any):
    cfg = dict(config)
    cfg.update(overrides)
    return run_pipeline(cfg, runner=BuildRunner(program=fake_cargo["program"]))

# -----------------------------------------------------------------------------
# HAPPY PATH
# -----------------------------------------------------------------------------

def test_end_to_end_run_forwards_output_and_exit_code(
        base_config, fake_cargo, write_source, capfd: pytest.CaptureFixture
) -> None:
    """TC-01: Build diagnostics, then program output, then the program's exit code."""
    main = write_source("hello.rs", HELLO)

    result = run(base_config, fake_cargo, sources=[str(main)])

    out, err = capfd.readouterr()
    assert result.exit_code == 3
    assert "Compiling" in err
    assert "hello from foo" in out

    manifest = toml.load(os.path.join(result.project_dir, "Cargo.toml"))
    assert manifest["dependencies"] == {"foo": "*"}
    assert manifest["package"]["name"] == "hello"

    argv = read_invocations(fake_cargo["log"])[0]["argv"]
    assert argv[:3] == ["run", "--manifest-path", os.path.join(result.project_dir, "Cargo.toml")]


def test_second_run_reuses_cached_project(base_config, fake_cargo, write_source) -> None:
    """TC-02: Unchanged inputs map to the same directory, reused as-is."""
    main = write_source("hello.rs", HELLO)

    first = run(base_config, fake_cargo, sources=[str(main)])
    second = run(base_config, fake_cargo, sources=[str(main)])

    assert not first.reused
    assert second.reused
    assert second.project_dir == first.project_dir
    assert second.identity == first.identity
    assert len(read_invocations(fake_cargo["log"])) == 2


def test_program_arguments_and_cargo_options_are_forwarded(
        base_config, fake_cargo, write_source, capfd: pytest.CaptureFixture
) -> None:
    main = write_source("echo.rs", "// args\nfn main() {}\n")

    result = run(
        base_config, fake_cargo,
        sources=[str(main)],
        program_args=["--name", "world"],
        cargo_options=["--quiet"],
        release=True,
    )

    out, _ = capfd.readouterr()
    assert result.exit_code == 0
    assert "--name world" in out
    argv = read_invocations(fake_cargo["log"])[0]["argv"]
    assert argv[:2] == ["run", "--release"]
    assert argv[-4:] == ["--quiet", "--", "--name", "world"]


def test_multiple_files_merge_and_materialize(base_config, fake_cargo, write_source) -> None:
    main = write_source("main.rs", '//# rand = "0.8"\nmod util;\nfn main() {}\n')
    util = write_source("util.rs", '//# rand = "0.8"\n//# regex = "1"\npub fn f() {}\n')

    result = run(base_config, fake_cargo, sources=[str(main), str(util)])

    manifest = toml.load(os.path.join(result.project_dir, "Cargo.toml"))
    assert manifest["dependencies"] == {"rand": "0.8", "regex": "1"}
    util_rs = Path(result.project_dir, "src", "util.rs").read_text(encoding="utf-8")
    assert util_rs == "pub fn f() {}\n"


def test_directive_only_file_becomes_empty_module(base_config, fake_cargo, write_source) -> None:
    deps = write_source("a.rs", '//# serde = "1.0"\n')
    main = write_source("b.rs", "mod a;\nfn main() {}\n")

    result = run(base_config, fake_cargo, sources=[str(main), str(deps)])

    assert result.exit_code == 0
    manifest = toml.load(os.path.join(result.project_dir, "Cargo.toml"))
    assert manifest["dependencies"] == {"serde": "1.0"}
    assert Path(result.project_dir, "src", "a.rs").read_bytes() == b""
    assert Path(result.project_dir, "src", "main.rs").read_text(encoding="utf-8") == "mod a;\nfn main() {}\n"


def test_infer_adds_wildcard_dependencies(base_config, fake_cargo, write_source) -> None:
    main = write_source("main.rs", "use itertools::Itertools;\nfn main() {}\n")

    result = run(base_config, fake_cargo, sources=[str(main)], infer=True)

    manifest = toml.load(os.path.join(result.project_dir, "Cargo.toml"))
    assert manifest["dependencies"] == {"itertools": "*"}


def test_build_mode_runs_without_program(
        base_config, fake_cargo, write_source, capfd: pytest.CaptureFixture
) -> None:
    main = write_source("hello.rs", HELLO)

    result = run(base_config, fake_cargo, sources=[str(main)], mode="build")

    out, _ = capfd.readouterr()
    assert result.exit_code == 0
    assert "hello from foo" not in out

# -----------------------------------------------------------------------------
# LIFECYCLE
# -----------------------------------------------------------------------------

def test_uncached_project_is_removed_after_run(base_config, fake_cargo, write_source) -> None:
    main = write_source("hello.rs", HELLO)

    result = run(base_config, fake_cargo, sources=[str(main)], cache_enabled=False)

    assert result.exit_code == 3
    assert not result.retained
    assert not os.path.exists(result.project_dir)
    assert not os.path.exists(base_config["cache_dir"])


def test_uncached_project_kept_on_request(base_config, fake_cargo, write_source) -> None:
    main = write_source("hello.rs", HELLO)

    result = run(base_config, fake_cargo, sources=[str(main)], cache_enabled=False, keep=True)

    try:
        assert result.retained
        assert os.path.isdir(result.project_dir)
    finally:
        shutil.rmtree(result.project_dir, ignore_errors=True)


def test_save_exports_without_building(base_config, fake_cargo, write_source, tmp_path: Path) -> None:
    main = write_source("hello.rs", HELLO)
    dest = tmp_path / "exported"

    result = run(base_config, fake_cargo, sources=[str(main)], save_path=str(dest))

    assert result.exit_code == 0
    assert result.saved_to == str(dest)
    assert (dest / "Cargo.toml").exists()
    assert (dest / "src" / "main.rs").exists()
    assert read_invocations(fake_cargo["log"]) == []


def test_cache_is_bounded(base_config, fake_cargo, write_source) -> None:
    paths = [write_source(f"p{i}.rs", f"// exit: {i}\nfn main() {{}}\n") for i in range(3)]

    for p in paths:
        run(base_config, fake_cargo, sources=[str(p)], max_cached_projects=2)

    assert len(os.listdir(base_config["cache_dir"])) == 2


def test_purge_cache(base_config, fake_cargo, write_source) -> None:
    main = write_source("hello.rs", HELLO)
    run(base_config, fake_cargo, sources=[str(main)])

    root, count = purge_cache(base_config)

    assert root == os.path.abspath(base_config["cache_dir"])
    assert count == 1
    assert os.listdir(root) == []

# -----------------------------------------------------------------------------
# PRE-BUILD FAILURES
# -----------------------------------------------------------------------------

def test_merge_conflict_aborts_before_build(base_config, fake_cargo, write_source) -> None:
    """TC-03: Conflicting files never reach the build tool or the disk."""
    a = write_source("a.rs", '//# rand = "0.8"\nfn main() {}\n')
    b = write_source("b.rs", '//# rand = "0.7"\npub fn f() {}\n')

    with pytest.raises(MergeConflictError) as exc:
        run(base_config, fake_cargo, sources=[str(a), str(b)])

    assert exc.value.first_file == str(a)
    assert exc.value.second_file == str(b)
    assert read_invocations(fake_cargo["log"]) == []
    assert not os.path.exists(base_config["cache_dir"])


def test_malformed_directive_aborts_before_build(base_config, fake_cargo, write_source) -> None:
    main = write_source("bad.rs", '//# rand = \n//# = "1"\nfn main() {}\n')

    with pytest.raises(DirectiveParseError):
        run(base_config, fake_cargo, sources=[str(main)])

    assert read_invocations(fake_cargo["log"]) == []


def test_missing_input_file(base_config, fake_cargo, tmp_path: Path) -> None:
    with pytest.raises(InputFileError):
        run(base_config, fake_cargo, sources=[str(tmp_path / "missing.rs")])

    with pytest.raises(InputFileError):
        run(base_config, fake_cargo, sources=[])

# -----------------------------------------------------------------------------
# SOURCE LOADING
# -----------------------------------------------------------------------------

def test_load_sources_preserves_order_and_dedupes(write_source) -> None:
    paths = [str(write_source(f"f{i}.rs", f"// {i}\n")) for i in range(6)]

    sources = load_sources(paths + [paths[0]], prefix="//#")

    assert [s.path for s in sources] == [os.path.abspath(p) for p in paths]
