from __future__ import annotations

"""
Temporary Project Lifecycle.

Scopes a materialized project around the build invocation. On every exit
path (normal return, build failure, exception, interrupt) an ephemeral
project directory is removed unless retention was requested. Projects
owned by the cache store are left in place for the next run.
"""

import logging
from types import TracebackType
from typing import Optional, Sequence, Type

from cargoplay.core.pipeline.materializer import ProjectMaterializer
from cargoplay.domain.models import MergedManifest, SourceFile, TempProject
from cargoplay.infra.fs import remove_tree

logger = logging.getLogger(__name__)


class ProjectScope:
    """
    Context manager owning one TempProject.

    Usage:
        with ProjectScope(materializer, sources, manifest) as project:
            runner.run(project)

    Attributes:
        project: The materialized project, once entered.
        retained: Whether the directory survived the scope.
    """

    def __init__(
            self,
            materializer: ProjectMaterializer,
            sources: Sequence[SourceFile],
            manifest: MergedManifest,
            *,
            cached: bool = True,
            fresh: bool = False,
            retain: bool = False,
    ) -> None:
        self._materializer = materializer
        self._sources = sources
        self._manifest = manifest
        self._cached = cached
        self._fresh = fresh
        self._retain = retain
        self.project: Optional[TempProject] = None
        self.retained = False

    def __enter__(self) -> TempProject:
        self.project = self._materializer.materialize(
            self._sources, self._manifest, cached=self._cached, fresh=self._fresh,
        )
        return self.project

    def __exit__(
            self,
            exc_type: Optional[Type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType],
    ) -> None:
        if self.project is not None:
            self.retained = release_project(self.project, retain=self._retain)


def release_project(project: TempProject, *, retain: bool = False) -> bool:
    """
    Dispose of a project directory after use.

    Returns:
        bool: True if the directory was left on disk.
    """
    if project.persistent:
        logger.debug(f"Keeping cached project at {project.root}")
        return True
    if retain:
        logger.info(f"Temporary project retained at {project.root}")
        return True

    logger.debug(f"Removing temporary project at {project.root}")
    return not remove_tree(project.root)
