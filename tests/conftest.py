from __future__ import annotations

"""
Global Pytest Configuration and Fixtures.

This module sets up the testing environment, including:
1. Path manipulation to ensure the 'src' directory is importable.
2. Isolation of the user data directory ($CARGOPLAY_HOME) per test.
3. A fake `cargo` executable that records its invocation and emulates
   compiling and running the generated project.
"""

import json
import os
import stat
import sys
from pathlib import Path
from typing import Any, Dict, List

import pytest

# -----------------------------------------------------------------------------
# Path Configuration
# -----------------------------------------------------------------------------
_SRC_PATH = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if _SRC_PATH not in sys.path:
    sys.path.insert(0, _SRC_PATH)

# -----------------------------------------------------------------------------
# Fake build tool
# -----------------------------------------------------------------------------
# Emulates `cargo <mode> --manifest-path <dir>/Cargo.toml [opts] [-- args]`.
# main.rs markers drive the emulated program:
#   // print: <text>   line written to stdout
#   // args            program arguments echoed to stdout
#   // exit: <n>       program exit code
#   compile_error!     build fails with 101
FAKE_CARGO_SOURCE = '''
import json
import os
import sys

args = sys.argv[1:]
log = os.environ.get("FAKE_CARGO_LOG")
if log:
    with open(log, "a", encoding="utf-8") as f:
        f.write(json.dumps({"argv": args, "cwd": os.getcwd()}) + "\\n")

if args and args[0].startswith("+"):
    args = args[1:]
mode = args[0]
manifest = args[args.index("--manifest-path") + 1]
root = os.path.dirname(manifest)

sys.stderr.write("   Compiling fake-crate v0.1.0\\n")
sys.stderr.flush()
if not os.path.exists(manifest):
    sys.stderr.write("error: could not find Cargo.toml\\n")
    sys.exit(101)

with open(os.path.join(root, "src", "main.rs"), encoding="utf-8") as f:
    main_rs = f.read()
if "compile_error!" in main_rs:
    sys.stderr.write("error: aborting due to previous error\\n")
    sys.exit(101)
if mode != "run":
    sys.exit(0)

program_args = args[args.index("--") + 1:] if "--" in args else []
code = 0
for line in main_rs.splitlines():
    line = line.strip()
    if line.startswith("// print:"):
        print(line[len("// print:"):].strip())
    elif line == "// args":
        print(" ".join(program_args))
    elif line.startswith("// exit:"):
        code = int(line[len("// exit:"):].strip())
sys.stdout.flush()
sys.exit(code)
'''


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the user data directory at a per-test location."""
    home = tmp_path / "cargoplay-home"
    monkeypatch.setenv("CARGOPLAY_HOME", str(home))
    return home


@pytest.fixture
def fake_cargo(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Dict[str, Any]:
    """
    Write the fake build tool and return how to invoke it.

    Returns:
        Dict[str, Any]: `script` (path), `program` (argv prefix for
                        BuildRunner), `log` (JSON-lines invocation log).
    """
    script = tmp_path / "fake_cargo.py"
    script.write_text(f"#!{sys.executable}\n{FAKE_CARGO_SOURCE}", encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

    log = tmp_path / "fake_cargo.log"
    monkeypatch.setenv("FAKE_CARGO_LOG", str(log))
    return {"script": script, "program": [sys.executable, str(script)], "log": log}


def read_invocations(log: Path) -> List[Dict[str, Any]]:
    """Parse the JSON-lines log written by the fake build tool."""
    if not log.exists():
        return []
    return [json.loads(line) for line in log.read_text(encoding="utf-8").splitlines() if line]


@pytest.fixture
def write_source(tmp_path: Path):
    """Factory writing a source file under `tmp_path/src_files`."""
    base = tmp_path / "src_files"

    def _write(name: str, content: str) -> Path:
        path = base / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write
