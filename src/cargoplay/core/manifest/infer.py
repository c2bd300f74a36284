from __future__ import annotations

"""
Dependency Inference.

Best-effort detection of crates referenced by `extern crate` and `use`
statements that no directive declared. Each inferred crate is added to
`[dependencies]` with the wildcard requirement `"*"`.
"""

import copy
import logging
import os
import re
from typing import Iterable, Sequence, Set

from cargoplay.domain.constants import BUILTIN_CRATES
from cargoplay.domain.models import MergedManifest, SourceFile

logger = logging.getLogger(__name__)

_VIS = r"(?:pub(?:\s*\([^)]*\))?\s+)?"
_EXTERN_CRATE = re.compile(r"^\s*extern\s+crate\s+([A-Za-z_][A-Za-z0-9_]*)", re.MULTILINE)
_USE_ROOT = re.compile(rf"^\s*{_VIS}use\s+(?:::)?([A-Za-z_][A-Za-z0-9_]*)\s*::", re.MULTILINE)
_MOD_DECL = re.compile(rf"^\s*{_VIS}mod\s+([A-Za-z_][A-Za-z0-9_]*)", re.MULTILINE)


def normalize_crate_name(name: str) -> str:
    return name.replace("-", "_")


def local_module_names(sources: Sequence[SourceFile]) -> Set[str]:
    """Modules defined by the input set itself."""
    names: Set[str] = set()
    for src in sources[1:]:
        names.add(os.path.splitext(os.path.basename(src.path))[0])
    for src in sources:
        names.update(_MOD_DECL.findall(src.body))
    return names


def analyze_sources(sources: Sequence[SourceFile]) -> Set[str]:
    """
    Collect external crate names referenced by the source bodies.

    Args:
        sources: Input files (entry point first).

    Returns:
        Set[str]: Crate names as written in the source (underscored).
    """
    local = local_module_names(sources)
    found: Set[str] = set()

    for src in sources:
        candidates = _EXTERN_CRATE.findall(src.body) + _USE_ROOT.findall(src.body)
        for name in candidates:
            if name in BUILTIN_CRATES or name in local:
                continue
            # Types and enum variants are imported with CamelCase roots
            if name != name.lower():
                continue
            found.add(name)

    logger.debug(f"Inferred crate references: {sorted(found)}")
    return found


def add_inferred(manifest: MergedManifest, crates: Iterable[str]) -> MergedManifest:
    """
    Return a manifest with every undeclared crate added as `name = "*"`.

    Declared dependencies are compared with dashes normalized to
    underscores, since `use` paths can only spell the underscored form.
    """
    data = copy.deepcopy(manifest.data)
    origins = dict(manifest.origins)
    dependencies = data.setdefault("dependencies", {})
    declared = {normalize_crate_name(k) for k in dependencies}

    for crate in sorted(set(crates)):
        if normalize_crate_name(crate) in declared:
            continue
        logger.info(f"Inferred dependency: {crate} = \"*\"")
        dependencies[crate] = "*"
        origins.setdefault(f"dependencies.{crate}", "<inferred>")

    if not dependencies:
        del data["dependencies"]

    return MergedManifest(data=data, origins=origins)
