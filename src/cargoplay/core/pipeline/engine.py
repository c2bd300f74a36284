from __future__ import annotations

"""
Core orchestration pipeline.

This module coordinates a complete run:
1. Validates the configuration.
2. Reads every input file and extracts its directive block (in parallel).
3. Merges the fragments into one manifest (plus optional inference).
4. Materializes or reuses the project directory.
5. Invokes the build tool, or exports the project.
6. Releases the project directory and applies the cache eviction policy.

Every error is raised before the build tool is started.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Sequence, Tuple

from cargoplay.core.directives.extractor import BlankLinePolicy, DirectiveExtractor
from cargoplay.core.manifest.infer import add_inferred, analyze_sources
from cargoplay.core.manifest.merger import ManifestMerger, crate_name_for
from cargoplay.core.pipeline.lifecycle import ProjectScope
from cargoplay.core.pipeline.materializer import ProjectMaterializer, export_project
from cargoplay.core.pipeline.runner import BuildRunner
from cargoplay.core.pipeline.validator import validate_config
from cargoplay.core.services.store import ProjectStore
from cargoplay.domain.constants import DEFAULT_MAX_CACHED_PROJECTS, EXIT_OK
from cargoplay.domain.errors import InputFileError
from cargoplay.domain.models import MergedManifest, RunResult, SourceFile
from cargoplay.infra.fs import get_default_cache_dir, normalize_path

logger = logging.getLogger(__name__)

_MAX_READ_WORKERS = 4


def run_pipeline(
        config: Optional[Dict[str, Any]],
        *,
        store: Optional[ProjectStore] = None,
        runner: Optional[BuildRunner] = None,
) -> RunResult:
    """
    Execute the full extract -> merge -> materialize -> build pipeline.

    Args:
        config: The configuration dictionary (raw or partial).
        store: Cache store override (built from the config when omitted).
        runner: Build runner override (built from the config when omitted).

    Returns:
        RunResult: Exit code and project metadata.

    Raises:
        CargoPlayError: Any pre-build failure (input, directive, merge,
                        materialization) or a spawn failure.
    """
    cfg, warnings = validate_config(config, strict=False)
    for warning in warnings:
        logger.warning(f"Configuration Warning: {warning}")

    sources = load_sources(
        cfg["sources"],
        prefix=cfg["directive_prefix"],
        blank_lines=BlankLinePolicy(cfg["blank_lines"]),
    )
    manifest = build_manifest(sources, edition=cfg["edition"], infer=cfg["infer"])

    cached = bool(cfg["cache_enabled"])
    if store is None and cached:
        store = build_store(cfg)
    if runner is None:
        runner = BuildRunner(program=[cfg["cargo_program"]], toolchain=cfg["toolchain"])

    materializer = ProjectMaterializer(store=store)
    scope = ProjectScope(
        materializer, sources, manifest,
        cached=cached, fresh=bool(cfg["clean"]), retain=bool(cfg["keep"]),
    )

    saved_to = ""
    with scope as project:
        if cfg["save_path"]:
            saved_to = export_project(project, cfg["save_path"])
            exit_code = EXIT_OK
        else:
            exit_code = runner.run(
                project,
                cfg["mode"],
                release=bool(cfg["release"]),
                cargo_options=cfg["cargo_options"],
                program_args=cfg["program_args"],
            )

    if store is not None and project.persistent:
        store.evict(protect=project.identity)

    return RunResult(
        exit_code=exit_code,
        project_dir=project.root,
        identity=project.identity,
        reused=project.reused,
        retained=scope.retained,
        saved_to=saved_to,
        warnings=tuple(warnings),
    )


# -----------------------------------------------------------------------------
# STAGES
# -----------------------------------------------------------------------------

def load_sources(
        paths: Sequence[str],
        *,
        prefix: str,
        blank_lines: BlankLinePolicy = BlankLinePolicy.TOLERATE,
) -> List[SourceFile]:
    """
    Read and split every input file, preserving argument order.

    Each file depends only on its own content, so extraction runs in a
    small thread pool. Repeated paths are read once.

    Raises:
        InputFileError: If no paths are given or one cannot be read.
        DirectiveParseError: If a directive block is malformed.
    """
    unique = _dedupe(paths)
    if not unique:
        raise InputFileError("", "no input files given")

    extractor = DirectiveExtractor(prefix=prefix, blank_lines=blank_lines)
    workers = min(_MAX_READ_WORKERS, len(unique))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="DirectiveReader") as executor:
        sources = list(executor.map(extractor.read_source, unique))

    logger.debug(f"Loaded {len(sources)} source file(s); entry point: {sources[0].path}")
    return sources


def build_manifest(
        sources: Sequence[SourceFile],
        *,
        edition: str,
        infer: bool = False,
) -> MergedManifest:
    """Merge the fragments of `sources` over the skeleton."""
    merger = ManifestMerger(edition=edition)
    manifest = merger.merge(
        crate_name_for(sources[0].path),
        [src.fragment for src in sources],
    )
    if infer:
        manifest = add_inferred(manifest, analyze_sources(sources))
    return manifest


def build_store(cfg: Dict[str, Any]) -> ProjectStore:
    root = normalize_path(cfg.get("cache_dir"), get_default_cache_dir())
    return ProjectStore(root, max_entries=cfg.get("max_cached_projects", DEFAULT_MAX_CACHED_PROJECTS))


def purge_cache(config: Optional[Dict[str, Any]]) -> Tuple[str, int]:
    """
    Remove every cached project directory.

    Returns:
        Tuple[str, int]: The store root and the number of directories removed.
    """
    cfg, _ = validate_config(config, strict=False)
    store = build_store(cfg)
    return store.root, store.purge()


def _dedupe(paths: Sequence[str]) -> List[str]:
    seen = set()
    out: List[str] = []
    for p in paths:
        key = os.path.abspath(p)
        if key in seen:
            logger.warning(f"Ignoring repeated input file: {p}")
            continue
        seen.add(key)
        out.append(p)
    return out
