from __future__ import annotations

"""
Project Cache Store.

Content-addressed store of materialized project directories, keyed by
ProjectIdentity. A directory is only reused when every expected file is
present with the expected SHA-256, so a crash during materialization can
never leave a directory that passes the reuse check. Directories are
evicted least-recently-used first once the store exceeds its capacity.
"""

import logging
import os
import tempfile
from typing import Dict, List, Optional

from cargoplay.domain.constants import (
    DEFAULT_MAX_CACHED_PROJECTS,
    PROJECT_DIR_PREFIX,
    STAGING_DIR_PREFIX,
)
from cargoplay.domain.models import ProjectIdentity
from cargoplay.infra.fs import remove_tree, sha256_file

logger = logging.getLogger(__name__)


class ProjectStore:
    """
    Directory-backed store of cached projects.

    Args:
        root: Directory holding one sub-directory per identity.
        max_entries: Number of projects kept by `evict()`.
    """

    def __init__(self, root: str, max_entries: int = DEFAULT_MAX_CACHED_PROJECTS) -> None:
        self._root = os.path.abspath(root)
        self.max_entries = max(1, int(max_entries))

    @property
    def root(self) -> str:
        return self._root

    # -------------------------------------------------------------------------
    # LOOKUP
    # -------------------------------------------------------------------------

    def path_for(self, identity: ProjectIdentity) -> str:
        return os.path.join(self._root, identity.dirname)

    def exists(self, identity: ProjectIdentity) -> bool:
        return os.path.isdir(self.path_for(identity))

    def lookup(self, identity: ProjectIdentity, expected: Dict[str, str]) -> Optional[str]:
        """
        Return the directory for `identity` if it is well-formed.

        Args:
            identity: Identity of the requested project.
            expected: Relative file path -> expected SHA-256.

        Returns:
            Optional[str]: The directory path, or None on miss or mismatch.
        """
        path = self.path_for(identity)
        if not os.path.isdir(path):
            return None

        for rel, digest in expected.items():
            actual = sha256_file(os.path.join(path, rel))
            if actual != digest:
                logger.debug(f"Cached project {identity.dirname} is stale at {rel}.")
                return None

        self._touch(path)
        return path

    # -------------------------------------------------------------------------
    # ALLOCATION
    # -------------------------------------------------------------------------

    def create_staging(self) -> str:
        """
        Allocate an exclusive, collision-free staging directory in the store.

        Raises:
            OSError: If the store root cannot be created or written.
        """
        os.makedirs(self._root, mode=0o700, exist_ok=True)
        return tempfile.mkdtemp(prefix=STAGING_DIR_PREFIX, dir=self._root)

    def commit(self, staging: str, identity: ProjectIdentity) -> str:
        """
        Publish a fully written staging directory under its identity.

        If another run published the same identity first, the staging copy
        is discarded and the existing directory is used.

        Raises:
            OSError: If the rename fails for any other reason.
        """
        final = self.path_for(identity)
        try:
            os.rename(staging, final)
        except OSError:
            if not os.path.isdir(final):
                raise
            logger.debug(f"Project {identity.dirname} was published concurrently.")
            remove_tree(staging)
        return final

    # -------------------------------------------------------------------------
    # REMOVAL
    # -------------------------------------------------------------------------

    def discard(self, identity: ProjectIdentity) -> bool:
        """Remove the cached directory of one identity."""
        path = self.path_for(identity)
        if not os.path.exists(path):
            return False
        logger.debug(f"Discarding cached project at {path}")
        return remove_tree(path)

    def entries(self) -> List[str]:
        """Absolute paths of every cached project directory."""
        if not os.path.isdir(self._root):
            return []
        return sorted(
            os.path.join(self._root, name)
            for name in os.listdir(self._root)
            if name.startswith(PROJECT_DIR_PREFIX)
            and os.path.isdir(os.path.join(self._root, name))
        )

    def evict(self, protect: Optional[ProjectIdentity] = None) -> List[str]:
        """
        Remove least-recently-used projects beyond `max_entries`.

        Args:
            protect: Identity that must survive (the one about to be used).

        Returns:
            List[str]: Paths that were removed.
        """
        keep_path = self.path_for(protect) if protect else None
        candidates = [p for p in self.entries() if p != keep_path]
        budget = self.max_entries - (1 if keep_path else 0)
        if len(candidates) <= budget:
            return []

        candidates.sort(key=_mtime, reverse=True)
        removed: List[str] = []
        for path in candidates[max(budget, 0):]:
            if remove_tree(path):
                removed.append(path)

        if removed:
            logger.info(f"Evicted {len(removed)} cached project(s) from {self._root}")
        return removed

    def purge(self) -> int:
        """
        Remove every cached project and leftover staging directory.

        Returns:
            int: Number of directories removed.
        """
        if not os.path.isdir(self._root):
            return 0

        count = 0
        for name in os.listdir(self._root):
            if not (name.startswith(PROJECT_DIR_PREFIX) or name.startswith(STAGING_DIR_PREFIX)):
                continue
            if remove_tree(os.path.join(self._root, name)):
                count += 1

        logger.info(f"Purged {count} cached project(s) from {self._root}")
        return count

    @staticmethod
    def _touch(path: str) -> None:
        try:
            os.utime(path, None)
        except OSError as e:
            logger.debug(f"Could not refresh access time of {path}: {e}")


def _mtime(path: str) -> float:
    try:
        return os.stat(path).st_mtime
    except OSError:
        return 0.0
