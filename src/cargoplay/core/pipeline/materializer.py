from __future__ import annotations

"""
Temporary Project Materialization.

Turns the merged manifest and the input bodies into a Cargo project on
disk:

    <dir>/Cargo.toml
    <dir>/src/main.rs          entry point body
    <dir>/src/<relative>.rs    every other input, relative to the entry point

Cached projects live in a ProjectStore under their ProjectIdentity and are
reused without writes when intact. Every file is written atomically.
"""

import logging
import os
import posixpath
import tempfile
from typing import Dict, Optional, Sequence

from cargoplay.domain.constants import (
    MAIN_SOURCE_NAME,
    MANIFEST_FILENAME,
    SOURCE_DIRNAME,
    TARGET_DIRNAME,
)
from cargoplay.domain.errors import MaterializationIOError
from cargoplay.domain.models import MergedManifest, ProjectIdentity, SourceFile, TempProject
from cargoplay.core.services.store import ProjectStore
from cargoplay.infra.fs import atomic_write_bytes, copy_tree, remove_tree, sha256_bytes

logger = logging.getLogger(__name__)

EPHEMERAL_DIR_PREFIX = "cargoplay-"


# -----------------------------------------------------------------------------
# LAYOUT
# -----------------------------------------------------------------------------

def plan_layout(sources: Sequence[SourceFile], manifest_text: str) -> Dict[str, bytes]:
    """
    Compute every file of the project, keyed by POSIX relative path.

    Raises:
        MaterializationIOError: If no sources are given or two inputs map to
                                the same destination.
    """
    if not sources:
        raise MaterializationIOError("No source files to materialize.")

    entry = sources[0]
    main_rel = posixpath.join(SOURCE_DIRNAME, MAIN_SOURCE_NAME)
    files: Dict[str, bytes] = {
        MANIFEST_FILENAME: manifest_text.encode("utf-8"),
        main_rel: entry.body.encode("utf-8"),
    }
    claimed: Dict[str, str] = {main_rel: entry.path}

    base = os.path.dirname(entry.path)
    for src in sources[1:]:
        rel = posixpath.join(SOURCE_DIRNAME, module_relpath(base, src.path))
        if rel in claimed:
            raise MaterializationIOError(
                f"'{src.path}' and '{claimed[rel]}' would both be written to {rel}"
            )
        claimed[rel] = src.path
        files[rel] = src.body.encode("utf-8")

    return files


def module_relpath(base: str, path: str) -> str:
    """
    Location of an auxiliary file inside `src/`.

    Files below the entry point's directory keep their relative layout so
    `mod` declarations resolve as they do next to the originals; anything
    else is placed at the top of `src/`.
    """
    try:
        rel = os.path.relpath(path, base)
    except ValueError:
        # Different drive on Windows
        rel = os.path.basename(path)
    if rel.startswith(os.pardir + os.sep) or rel == os.pardir or os.path.isabs(rel):
        rel = os.path.basename(path)
    return rel.replace(os.sep, "/")


# -----------------------------------------------------------------------------
# MATERIALIZER
# -----------------------------------------------------------------------------

class ProjectMaterializer:
    """
    Creates or reuses the project directory for an input set.

    Args:
        store: Cache store for persistent projects. Without a store every
               project is ephemeral.
        ephemeral_root: Parent directory for ephemeral projects (system
                        temp dir by default).
    """

    def __init__(
            self,
            store: Optional[ProjectStore] = None,
            ephemeral_root: Optional[str] = None,
    ) -> None:
        self.store = store
        self.ephemeral_root = ephemeral_root

    def materialize(
            self,
            sources: Sequence[SourceFile],
            manifest: MergedManifest,
            *,
            cached: bool = True,
            fresh: bool = False,
    ) -> TempProject:
        """
        Materialize the project for `sources`.

        Args:
            sources: Inputs, entry point first.
            manifest: The merged manifest.
            cached: Use the store (reuse + persistence) when one is set.
            fresh: Drop any cached directory for this identity first.

        Returns:
            TempProject: The ready-to-build project.

        Raises:
            MaterializationIOError: On layout conflicts or filesystem failures.
        """
        rendered = manifest.render()
        identity = ProjectIdentity.compute(list(sources), rendered)
        files = plan_layout(sources, rendered)
        digests = {rel: sha256_bytes(data) for rel, data in files.items()}

        if self.store is None or not cached:
            return self._materialize_ephemeral(identity, files, digests)

        store = self.store
        if fresh:
            store.discard(identity)

        existing = store.lookup(identity, digests)
        if existing:
            logger.info(f"Reusing cached project at {existing}")
            return TempProject(root=existing, identity=identity, files=digests, reused=True)

        if store.exists(identity):
            path = store.path_for(identity)
            logger.info(f"Repairing incomplete cached project at {path}")
            try:
                _write_files(path, files)
            except OSError as e:
                raise MaterializationIOError(f"Failed to write project at {path}: {e}") from e
            return TempProject(root=path, identity=identity, files=digests)

        try:
            staging = store.create_staging()
        except OSError as e:
            raise MaterializationIOError(
                f"Cannot create project directory in {store.root}: {e}"
            ) from e

        try:
            _write_files(staging, files)
            final = store.commit(staging, identity)
        except OSError as e:
            remove_tree(staging)
            raise MaterializationIOError(f"Failed to write project at {staging}: {e}") from e
        except BaseException:
            remove_tree(staging)
            raise

        logger.info(f"Materialized project at {final}")
        return TempProject(root=final, identity=identity, files=digests)

    def _materialize_ephemeral(
            self,
            identity: ProjectIdentity,
            files: Dict[str, bytes],
            digests: Dict[str, str],
    ) -> TempProject:
        try:
            if self.ephemeral_root:
                os.makedirs(self.ephemeral_root, exist_ok=True)
            root = tempfile.mkdtemp(prefix=EPHEMERAL_DIR_PREFIX, dir=self.ephemeral_root)
        except OSError as e:
            raise MaterializationIOError(f"Cannot create temporary directory: {e}") from e

        try:
            _write_files(root, files)
        except OSError as e:
            remove_tree(root)
            raise MaterializationIOError(f"Failed to write project at {root}: {e}") from e
        except BaseException:
            remove_tree(root)
            raise

        logger.info(f"Materialized ephemeral project at {root}")
        return TempProject(root=root, identity=identity, files=digests, persistent=False)


# -----------------------------------------------------------------------------
# EXPORT
# -----------------------------------------------------------------------------

def export_project(project: TempProject, destination: str) -> str:
    """
    Copy a materialized project (without build output) to `destination`.

    Returns:
        str: Absolute path of the exported project.

    Raises:
        MaterializationIOError: If the destination exists or the copy fails.
    """
    dest = os.path.abspath(destination)
    if os.path.exists(dest):
        raise MaterializationIOError(f"Destination already exists: {dest}")
    try:
        copy_tree(project.root, dest, exclude=(TARGET_DIRNAME,))
    except OSError as e:
        raise MaterializationIOError(f"Failed to export project to {dest}: {e}") from e
    logger.info(f"Exported project to {dest}")
    return dest


def _write_files(root: str, files: Dict[str, bytes]) -> None:
    # Manifest last: a directory with a manifest always has its sources
    for rel in sorted(files, key=lambda r: r == MANIFEST_FILENAME):
        atomic_write_bytes(os.path.join(root, *rel.split("/")), files[rel])
