from __future__ import annotations

"""
Configuration Validation Service.

Gatekeeper between raw configuration sources (defaults, the persisted
JSON file, CLI overrides) and the pipeline. Coerces types, restricts
enumerated values and injects defaults for missing keys.
"""

import logging
from typing import Any, Dict, List, Sequence, Tuple

from cargoplay.domain.config import get_default_config
from cargoplay.domain.constants import BUILD_MODES, SUPPORTED_EDITIONS

logger = logging.getLogger(__name__)

BLANK_LINE_CHOICES: Tuple[str, ...] = ("tolerate", "terminate")

# -----------------------------------------------------------------------------
# PUBLIC API
# -----------------------------------------------------------------------------

def validate_config(
        config: Any,
        *,
        strict: bool = False,
) -> Tuple[Dict[str, Any], List[str]]:
    """
    Validate and normalize a configuration dictionary.

    Args:
        config: Raw configuration data (usually a dictionary).
        strict: If True, raise on invalid values instead of falling back.

    Returns:
        Tuple[Dict[str, Any], List[str]]: The normalized configuration and
                                          a list of warnings.
    """
    warnings: List[str] = []
    defaults = get_default_config()

    if not isinstance(config, dict):
        msg = f"Invalid config type: expected dict, received {type(config).__name__}."
        if strict:
            raise TypeError(msg)
        warnings.append(f"{msg} Using defaults.")
        logger.warning(msg)
        return defaults, warnings

    merged: Dict[str, Any] = dict(defaults)
    merged.update(config)

    string_fields = [
        "directive_prefix", "cargo_program", "toolchain",
        "cache_dir", "save_path", "log_file",
    ]
    bool_fields = ["infer", "release", "cache_enabled", "keep", "clean"]
    list_fields = ["sources", "program_args", "cargo_options"]
    choice_fields = {
        "edition": SUPPORTED_EDITIONS,
        "mode": BUILD_MODES,
        "blank_lines": BLANK_LINE_CHOICES,
    }

    for field in string_fields:
        merged[field] = _as_str(merged.get(field), defaults[field], field, warnings, strict)

    for field in bool_fields:
        merged[field] = _as_bool(merged.get(field), defaults[field], field, warnings, strict)

    for field in list_fields:
        merged[field] = _as_list_str(merged.get(field), defaults[field], field, warnings, strict)

    for field, choices in choice_fields.items():
        merged[field] = _as_choice(
            merged.get(field), defaults[field], choices, field, warnings, strict
        )

    merged["max_cached_projects"] = _as_positive_int(
        merged.get("max_cached_projects"), defaults["max_cached_projects"],
        "max_cached_projects", warnings, strict,
    )

    if not merged["directive_prefix"]:
        merged["directive_prefix"] = defaults["directive_prefix"]

    return merged, warnings


# -----------------------------------------------------------------------------
# PRIVATE HELPERS: TYPE COERCION
# -----------------------------------------------------------------------------

def _fail(msg: str, warnings: List[str], strict: bool) -> None:
    if strict:
        raise TypeError(msg)
    warnings.append(f"{msg} Using fallback.")


def _as_str(value: Any, fallback: str, field: str, warnings: List[str], strict: bool) -> str:
    """Validate and sanitize string inputs."""
    if value is None:
        return fallback
    if isinstance(value, str):
        return value.strip()
    _fail(f"Invalid field '{field}': expected str, received {type(value).__name__}.", warnings, strict)
    return fallback


def _as_bool(value: Any, fallback: bool, field: str, warnings: List[str], strict: bool) -> bool:
    """Coerce various input types into native booleans."""
    if isinstance(value, bool):
        return value
    if value is None:
        return fallback

    if not strict:
        if isinstance(value, (int, float)) and value in (0, 1):
            warnings.append(f"Field '{field}' converted from number {value} to bool.")
            return bool(value)
        if isinstance(value, str):
            s = value.strip().lower()
            if s in ("true", "1", "yes", "y", "on"):
                warnings.append(f"Field '{field}' converted from '{value}' to True.")
                return True
            if s in ("false", "0", "no", "n", "off"):
                warnings.append(f"Field '{field}' converted from '{value}' to False.")
                return False

    _fail(f"Invalid field '{field}': expected bool, received {type(value).__name__}.", warnings, strict)
    return fallback


def _as_list_str(
        value: Any,
        fallback: List[str],
        field: str,
        warnings: List[str],
        strict: bool,
) -> List[str]:
    """Ensure input is a list of strings; a string is split on whitespace."""
    if value is None:
        return list(fallback)

    if isinstance(value, str) and not strict:
        warnings.append(f"Field '{field}' converted from string to list.")
        return value.split()

    if isinstance(value, (list, tuple)):
        out: List[str] = []
        for i, item in enumerate(value):
            if isinstance(item, str):
                out.append(item)
            else:
                msg = f"Invalid item in '{field}[{i}]': expected str."
                if strict:
                    raise TypeError(msg)
                warnings.append(f"{msg} Item discarded.")
        return out

    _fail(
        f"Invalid field '{field}': expected list[str], received {type(value).__name__}.",
        warnings, strict,
    )
    return list(fallback)


def _as_choice(
        value: Any,
        fallback: str,
        choices: Sequence[str],
        field: str,
        warnings: List[str],
        strict: bool,
) -> str:
    """Restrict a value to a fixed set of strings."""
    if value is None:
        return fallback
    s = str(value).strip().lower()
    if s in choices:
        return s
    msg = f"Invalid field '{field}': '{value}' is not one of {', '.join(choices)}."
    if strict:
        raise ValueError(msg)
    warnings.append(f"{msg} Using '{fallback}'.")
    return fallback


def _as_positive_int(value: Any, fallback: int, field: str, warnings: List[str], strict: bool) -> int:
    if isinstance(value, bool):
        value = None
    if value is None:
        return fallback
    try:
        n = int(value)
    except (TypeError, ValueError):
        n = 0
    if n > 0:
        return n
    msg = f"Invalid field '{field}': expected a positive integer, received {value!r}."
    if strict:
        raise ValueError(msg)
    warnings.append(f"{msg} Using {fallback}.")
    return fallback
