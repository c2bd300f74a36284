from __future__ import annotations

"""
Manifest Merging Service.

Combines the manifest skeleton with the directive fragments of every input
file into a single Cargo manifest. Fragments are applied in input order;
a key path asserted twice with different values is a conflict and aborts
the run, identical assertions are deduplicated.
"""

import copy
import logging
import os
import re
from typing import Any, Dict, List, Sequence

from cargoplay.domain.constants import (
    DEFAULT_EDITION,
    DEFAULT_PACKAGE_VERSION,
    MAIN_SOURCE_NAME,
    RESERVED_PACKAGE_KEYS,
    SOURCE_DIRNAME,
)
from cargoplay.domain.errors import MergeConflictError
from cargoplay.domain.models import ManifestFragment, MergedManifest

logger = logging.getLogger(__name__)

SKELETON_ORIGIN = "<skeleton>"
_INVALID_CRATE_CHARS = re.compile(r"[^a-z0-9_]+")

# -----------------------------------------------------------------------------
# SKELETON
# -----------------------------------------------------------------------------

def crate_name_for(path: str) -> str:
    """
    Derive a valid package name from the entry file name.

    `Hello World.rs` becomes `hello_world`, `2048.rs` becomes `play_2048`.
    """
    stem = os.path.splitext(os.path.basename(path))[0].lower()
    name = _INVALID_CRATE_CHARS.sub("_", stem).strip("_")
    if not name:
        return "play"
    if name[0].isdigit():
        name = f"play_{name}"
    return name


def build_skeleton(
        package_name: str,
        edition: str = DEFAULT_EDITION,
        version: str = DEFAULT_PACKAGE_VERSION,
) -> Dict[str, Any]:
    """Minimal manifest every synthesized project starts from."""
    return {
        "package": {
            "name": package_name,
            "version": version,
            "edition": edition,
            "build": False,
        },
        "bin": [
            {
                "name": package_name,
                "path": f"{SOURCE_DIRNAME}/{MAIN_SOURCE_NAME}",
            }
        ],
    }

# -----------------------------------------------------------------------------
# MERGER
# -----------------------------------------------------------------------------

class ManifestMerger:
    """
    Merges directive fragments over the skeleton.

    Args:
        edition: Rust edition written into the skeleton.
        version: Package version written into the skeleton.
    """

    def __init__(
            self,
            edition: str = DEFAULT_EDITION,
            version: str = DEFAULT_PACKAGE_VERSION,
    ) -> None:
        self.edition = edition
        self.version = version

    def merge(
            self,
            package_name: str,
            fragments: Sequence[ManifestFragment],
    ) -> MergedManifest:
        """
        Produce the merged manifest.

        Args:
            package_name: Name for the package and its binary target.
            fragments: Fragments in input-file order.

        Returns:
            MergedManifest: The merged document with per-key attribution.

        Raises:
            MergeConflictError: When two files disagree on a key path.
        """
        acc = build_skeleton(package_name, self.edition, self.version)
        origins: Dict[str, str] = {}
        _record(origins, [], acc, SKELETON_ORIGIN)

        for fragment in fragments:
            if fragment.is_empty:
                continue
            data = copy.deepcopy(fragment.data)

            package = data.get("package")
            if isinstance(package, dict):
                for key in sorted(RESERVED_PACKAGE_KEYS & set(package)):
                    logger.warning(
                        f"Ignoring 'package.{key}' from {fragment.origin}: "
                        f"the generated project defines it."
                    )
                    del package[key]
                if not package:
                    del data["package"]

            _merge_into(acc, data, [], fragment.origin, origins)

        return MergedManifest(data=acc, origins=origins)


# -----------------------------------------------------------------------------
# PRIVATE HELPERS
# -----------------------------------------------------------------------------

def _dotted(path: List[str]) -> str:
    return ".".join(path)


def _record(origins: Dict[str, str], path: List[str], value: Any, origin: str) -> None:
    """Attribute `value` and every nested key under it to `origin`."""
    if path:
        origins.setdefault(_dotted(path), origin)
    if isinstance(value, dict):
        for key, sub in value.items():
            _record(origins, path + [key], sub, origin)


def _merge_into(
        target: Dict[str, Any],
        incoming: Dict[str, Any],
        path: List[str],
        origin: str,
        origins: Dict[str, str],
) -> None:
    for key, value in incoming.items():
        key_path = path + [key]
        if key not in target:
            target[key] = value
            _record(origins, key_path, value, origin)
            continue

        current = target[key]
        if isinstance(current, dict) and isinstance(value, dict):
            _merge_into(current, value, key_path, origin, origins)
            continue

        if current == value:
            continue

        dotted = _dotted(key_path)
        raise MergeConflictError(dotted, origins.get(dotted, SKELETON_ORIGIN), origin)
