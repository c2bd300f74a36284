from __future__ import annotations

"""
Core Domain Data Models.

Immutable value objects exchanged between the extraction, merging,
materialization and build stages of the pipeline.
"""

import hashlib
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import toml

from cargoplay.domain.constants import (
    IDENTITY_DIR_LENGTH,
    MANIFEST_FILENAME,
    PROJECT_DIR_PREFIX,
    SOURCE_DIRNAME,
)

# -----------------------------------------------------------------------------
# INPUT MODELS
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class ManifestFragment:
    """
    Parsed TOML subtree extracted from one file's directive block.

    Attributes:
        origin: Path of the file the fragment was read from.
        data: Section-keyed mapping (e.g. {"dependencies": {...}}).
    """
    origin: str
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.data


@dataclass(frozen=True)
class SourceFile:
    """
    One user-supplied input file, read once.

    Attributes:
        path: Absolute path of the file.
        raw: Raw byte content.
        fragment: Directive fragment (possibly empty).
        body: Content remaining after the directive block.
    """
    path: str
    raw: bytes
    fragment: ManifestFragment
    body: str

    @property
    def content_hash(self) -> str:
        return hashlib.sha256(self.raw).hexdigest()

    @property
    def display_name(self) -> str:
        return os.path.basename(self.path)


# -----------------------------------------------------------------------------
# MANIFEST MODEL
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class MergedManifest:
    """
    Skeleton defaults merged with every fragment.

    Attributes:
        data: The full manifest document.
        origins: Dotted key path -> file that first contributed it.
    """
    data: Dict[str, Any]
    origins: Dict[str, str] = field(default_factory=dict)

    @property
    def package_name(self) -> str:
        return str(self.data.get("package", {}).get("name", ""))

    def section(self, name: str) -> Dict[str, Any]:
        value = self.data.get(name)
        return dict(value) if isinstance(value, dict) else {}

    def render(self) -> str:
        """
        Serialize the manifest as TOML with a stable key order.

        The `package` table always comes first. Every other mapping is
        emitted with sorted keys so equal manifests render to equal bytes.
        """
        rest = {k: _sorted_tree(self.data[k]) for k in sorted(self.data) if k != "package"}
        if "package" not in self.data:
            return toml.dumps(rest)
        # toml.dumps puts arrays of tables ([[bin]]) ahead of plain tables
        head = toml.dumps({"package": _sorted_tree(self.data["package"])})
        return f"{head}\n{toml.dumps(rest)}" if rest else head


def _sorted_tree(value: Any) -> Any:
    """Recursively rebuild mappings with sorted keys."""
    if isinstance(value, dict):
        return {k: _sorted_tree(value[k]) for k in sorted(value)}
    if isinstance(value, list):
        return [_sorted_tree(v) for v in value]
    return value


# -----------------------------------------------------------------------------
# PROJECT MODELS
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class ProjectIdentity:
    """
    Deterministic fingerprint of an input set.

    Attributes:
        digest: Hex SHA-256 over ordered (path, content hash) pairs and the
                rendered manifest.
    """
    digest: str

    @property
    def dirname(self) -> str:
        return f"{PROJECT_DIR_PREFIX}{self.digest[:IDENTITY_DIR_LENGTH]}"

    @classmethod
    def compute(cls, sources: List[SourceFile], rendered_manifest: str) -> "ProjectIdentity":
        h = hashlib.sha256()
        for src in sources:
            h.update(src.path.encode("utf-8"))
            h.update(b"\0")
            h.update(src.content_hash.encode("ascii"))
            h.update(b"\n")
        h.update(b"--manifest--\n")
        h.update(rendered_manifest.encode("utf-8"))
        return cls(digest=h.hexdigest())


@dataclass(frozen=True)
class TempProject:
    """
    A materialized project directory.

    Attributes:
        root: Absolute directory path.
        identity: Identity the directory was built for.
        files: Relative path -> SHA-256 of every file written.
        persistent: True when the directory belongs to the cache store.
        reused: True when an existing directory was reused without writes.
    """
    root: str
    identity: ProjectIdentity
    files: Dict[str, str] = field(default_factory=dict)
    persistent: bool = True
    reused: bool = False

    @property
    def manifest_path(self) -> str:
        return os.path.join(self.root, MANIFEST_FILENAME)

    @property
    def source_dir(self) -> str:
        return os.path.join(self.root, SOURCE_DIRNAME)


@dataclass(frozen=True)
class RunResult:
    """
    Outcome of a complete pipeline execution.

    Attributes:
        exit_code: Exit code to report (the child's own code when it ran).
        project_dir: Materialized project directory.
        identity: Identity of the input set.
        reused: Whether a cached directory was reused.
        retained: Whether the directory still exists after the run.
        saved_to: Destination of an exported project, if any.
        warnings: Configuration warnings raised during validation.
    """
    exit_code: int
    project_dir: str
    identity: Optional[ProjectIdentity] = None
    reused: bool = False
    retained: bool = False
    saved_to: str = ""
    warnings: Tuple[str, ...] = ()
