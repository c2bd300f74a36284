from __future__ import annotations

"""
FileSystem Infrastructure Layer.

Provides path resolution, atomic file writes, content hashing and tree
removal/copy helpers. Acts as an abstraction over 'os', 'shutil' and
'tempfile' so the pipeline stages never touch them directly.
"""

import hashlib
import logging
import os
import shutil
import tempfile
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# GLOBAL CONSTANTS
# -----------------------------------------------------------------------------

APP_DIR_NAME = "cargoplay"
UNIX_APP_DIR_NAME = ".cargoplay"
HOME_ENV_VAR = "CARGOPLAY_HOME"
_HASH_CHUNK = 64 * 1024

# -----------------------------------------------------------------------------
# PATH RESOLUTION API
# -----------------------------------------------------------------------------

def get_user_data_dir() -> str:
    """
    Resolve the directory for persistent application data.

    Standards:
    - $CARGOPLAY_HOME when set
    - Windows: %LOCALAPPDATA%/cargoplay
    - Linux/Mac: ~/.cargoplay

    Returns:
        str: Absolute path to the application data directory.
    """
    path = os.environ.get(HOME_ENV_VAR, "")

    if not path and os.name == "nt":
        base = os.environ.get("LOCALAPPDATA") or os.environ.get("APPDATA")
        if base:
            path = os.path.join(base, APP_DIR_NAME)

    if not path:
        path = os.path.join(os.path.expanduser("~"), UNIX_APP_DIR_NAME)

    try:
        os.makedirs(path, exist_ok=True)
    except OSError:
        pass

    return os.path.abspath(path)


def get_default_cache_dir() -> str:
    """Directory holding cached project directories (under the system temp dir)."""
    return os.path.join(tempfile.gettempdir(), APP_DIR_NAME)


def normalize_path(path: Optional[str], fallback: str) -> str:
    """
    Normalize a path string into an absolute filesystem path.

    Expands environment variables and the user home shortcut. Reverts to
    fallback if the input is empty.

    Args:
        path: Raw input path string.
        fallback: Default path to use if the input is empty.

    Returns:
        str: Normalized absolute path.
    """
    p = (path or "").strip() or fallback
    p = os.path.expandvars(os.path.expanduser(p))
    return os.path.abspath(p)

# -----------------------------------------------------------------------------
# CONTENT API
# -----------------------------------------------------------------------------

def sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def sha256_file(path: str) -> Optional[str]:
    """
    Hash a file's content.

    Returns:
        Optional[str]: Hex digest, or None if the file cannot be read.
    """
    h = hashlib.sha256()
    try:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(_HASH_CHUNK), b""):
                h.update(chunk)
    except OSError:
        return None
    return h.hexdigest()


def atomic_write_bytes(path: str, data: bytes) -> None:
    """
    Write a file so that readers only ever observe the old or the new content.

    The payload is written to a temporary sibling, flushed to disk and then
    renamed over the destination.

    Args:
        path: Destination file path.
        data: Full file content.

    Raises:
        OSError: On any filesystem failure. The temporary file is removed.
    """
    parent = os.path.dirname(os.path.abspath(path))
    os.makedirs(parent, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(prefix=".tmp-", dir=parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise

# -----------------------------------------------------------------------------
# TREE API
# -----------------------------------------------------------------------------

def remove_tree(path: str) -> bool:
    """
    Recursively delete a directory.

    Returns:
        bool: True if the directory is gone afterwards.
    """
    if not os.path.exists(path):
        return True
    try:
        shutil.rmtree(path)
        return True
    except OSError as e:
        logger.warning(f"Failed to remove directory {path}: {e}")
        return not os.path.exists(path)


def copy_tree(src: str, dst: str, exclude: Iterable[str] = ()) -> None:
    """
    Copy a directory tree, skipping top-level entries named in `exclude`.

    Raises:
        FileExistsError: If the destination already exists.
        OSError: On any other copy failure.
    """
    skipped = set(exclude)

    def _ignore(directory: str, names: Iterable[str]) -> Iterable[str]:
        if os.path.abspath(directory) == os.path.abspath(src):
            return [n for n in names if n in skipped]
        return []

    shutil.copytree(src, dst, ignore=_ignore)
