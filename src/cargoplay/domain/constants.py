from __future__ import annotations

"""
Domain Constants and Static Data Structures.

Centralizes the fixed vocabulary of the tool: directive syntax, manifest
skeleton defaults, recognized manifest sections, supported Rust editions
and the process exit codes reported to the shell.
"""

from typing import FrozenSet, Tuple

APP_NAME = "cargoplay"
CURRENT_CONFIG_VERSION = "1.0.0"

# -----------------------------------------------------------------------------
# DIRECTIVE SYNTAX
# -----------------------------------------------------------------------------
DEFAULT_DIRECTIVE_PREFIX = "//#"
DEV_DIRECTIVE_MARKER = "dev:"

# -----------------------------------------------------------------------------
# MANIFEST SKELETON
# -----------------------------------------------------------------------------
MANIFEST_FILENAME = "Cargo.toml"
SOURCE_DIRNAME = "src"
MAIN_SOURCE_NAME = "main.rs"
TARGET_DIRNAME = "target"

DEFAULT_PACKAGE_VERSION = "0.1.0"
DEFAULT_EDITION = "2021"
SUPPORTED_EDITIONS: Tuple[str, ...] = ("2015", "2018", "2021", "2024")

# Package fields owned by the skeleton; fragments cannot override them.
# `build = false` keeps cargo from compiling a stray build.rs in the project
RESERVED_PACKAGE_KEYS: FrozenSet[str] = frozenset({"name", "version", "edition", "build"})

# Top-level keys a directive block may address as a section
FRAGMENT_SECTIONS: FrozenSet[str] = frozenset({
    "dependencies",
    "dev-dependencies",
    "build-dependencies",
    "features",
    "target",
    "patch",
    "profile",
    "package",
})

# Sections that would alter the synthesized target layout
FORBIDDEN_SECTIONS: FrozenSet[str] = frozenset({
    "bin", "lib", "workspace", "example", "test", "bench",
})

# Crate roots that never map to a registry dependency
BUILTIN_CRATES: FrozenSet[str] = frozenset({
    "std", "core", "alloc", "proc_macro", "test", "crate", "self", "super", "Self",
})

# -----------------------------------------------------------------------------
# CACHE STORE
# -----------------------------------------------------------------------------
PROJECT_DIR_PREFIX = "cargoplay."
STAGING_DIR_PREFIX = ".staging-"
IDENTITY_DIR_LENGTH = 32
DEFAULT_MAX_CACHED_PROJECTS = 32

# -----------------------------------------------------------------------------
# BUILD MODES & EXIT CODES
# -----------------------------------------------------------------------------
MODE_RUN = "run"
MODE_BUILD = "build"
MODE_TEST = "test"
BUILD_MODES: Tuple[str, ...] = (MODE_RUN, MODE_BUILD, MODE_TEST)

EXIT_OK = 0
EXIT_PREBUILD_FAILURE = 2
EXIT_SPAWN_FAILURE = 127
EXIT_INTERRUPTED = 130
