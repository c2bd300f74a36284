from __future__ import annotations

"""
Inline Dependency Directive Extraction.

Scans the leading lines of a source file for the directive prefix
(`//#` by default) and turns the embedded TOML text into a
ManifestFragment. Everything after the directive block is the body that
gets written into the synthesized project.

    //# serde = { version = "1", features = ["derive"] }
    //# dev: pretty_assertions = "1"
    //# [features]
    //# fast = []
    fn main() {}
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import toml

from cargoplay.domain.constants import (
    DEFAULT_DIRECTIVE_PREFIX,
    DEV_DIRECTIVE_MARKER,
    FORBIDDEN_SECTIONS,
    FRAGMENT_SECTIONS,
)
from cargoplay.domain.errors import DirectiveParseError, InputFileError
from cargoplay.domain.models import ManifestFragment, SourceFile

logger = logging.getLogger(__name__)


class BlankLinePolicy(Enum):
    """How blank lines inside a directive block are treated."""
    TOLERATE = "tolerate"
    TERMINATE = "terminate"


# -----------------------------------------------------------------------------
# SCAN MODELS
# -----------------------------------------------------------------------------

@dataclass
class _DirectiveLines:
    """Stripped directive lines plus their position in the source file."""
    text: List[str] = field(default_factory=list)
    # (1-based source line, column offset of the stripped text)
    positions: List[Tuple[int, int]] = field(default_factory=list)

    def add(self, text: str, line_no: int, offset: int) -> None:
        self.text.append(text)
        self.positions.append((line_no, offset))

    def joined(self) -> str:
        return "\n".join(self.text)


@dataclass
class DirectiveBlock:
    """Raw result of scanning a file, before TOML parsing."""
    build: _DirectiveLines
    dev: _DirectiveLines
    body: str

    @property
    def is_empty(self) -> bool:
        return not self.build.text and not self.dev.text


# -----------------------------------------------------------------------------
# EXTRACTOR
# -----------------------------------------------------------------------------

class DirectiveExtractor:
    """
    Splits source text into a directive fragment and a body.

    Args:
        prefix: Line prefix marking a directive.
        blank_lines: Whether blank lines inside the block are skipped or end it.
    """

    def __init__(
            self,
            prefix: str = DEFAULT_DIRECTIVE_PREFIX,
            blank_lines: BlankLinePolicy = BlankLinePolicy.TOLERATE,
    ) -> None:
        if not prefix:
            raise ValueError("Directive prefix must not be empty.")
        self.prefix = prefix
        self.blank_lines = blank_lines

    def scan(self, text: str) -> DirectiveBlock:
        """
        Collect the contiguous directive lines at the top of `text`.

        A leading shebang line is skipped and not part of the body. The body
        starts right after the last directive line consumed.
        """
        lines = text.splitlines(keepends=True)
        build = _DirectiveLines()
        dev = _DirectiveLines()

        start = 0
        if lines and lines[0].startswith("#!") and not lines[0].startswith("#!["):
            start = 1

        body_start = start
        idx = start
        while idx < len(lines):
            line = lines[idx].rstrip("\r\n")

            if line.startswith(self.prefix):
                remainder = line[len(self.prefix):]
                stripped = remainder.lstrip()
                offset = len(self.prefix) + len(remainder) - len(stripped)

                if stripped.startswith(DEV_DIRECTIVE_MARKER):
                    dev_text = stripped[len(DEV_DIRECTIVE_MARKER):]
                    dev_stripped = dev_text.lstrip()
                    offset += len(DEV_DIRECTIVE_MARKER) + len(dev_text) - len(dev_stripped)
                    dev.add(dev_stripped, idx + 1, offset)
                else:
                    build.add(stripped, idx + 1, offset)

                idx += 1
                body_start = idx
                continue

            if not line.strip() and self.blank_lines is BlankLinePolicy.TOLERATE:
                idx += 1
                continue

            break

        return DirectiveBlock(build=build, dev=dev, body="".join(lines[body_start:]))

    def parse(self, origin: str, text: str) -> Tuple[ManifestFragment, str]:
        """
        Extract and parse the directive block of a file's text.

        Args:
            origin: File path used for attribution in errors.
            text: Decoded file content.

        Returns:
            Tuple[ManifestFragment, str]: The fragment and the remaining body.

        Raises:
            DirectiveParseError: On malformed TOML or a forbidden section.
        """
        block = self.scan(text)
        if block.is_empty:
            return ManifestFragment(origin=origin), block.body

        data: Dict[str, Any] = {}
        if block.build.text:
            parsed = _parse_toml(origin, block.build)
            data = _interpret_sections(origin, parsed, "dependencies", block.build)

        if block.dev.text:
            parsed_dev = _parse_toml(origin, block.dev)
            dev_data = _interpret_sections(origin, parsed_dev, "dev-dependencies", block.dev)
            dev_line = block.dev.positions[0][0]
            for section, values in dev_data.items():
                target = data.setdefault(section, {})
                for key, value in values.items():
                    _put(origin, target, section, key, value, dev_line)

        logger.debug(f"Extracted directive sections {sorted(data)} from {origin}")
        return ManifestFragment(origin=origin, data=data), block.body

    def read_source(self, path: str) -> SourceFile:
        """
        Read one input file and split it into fragment and body.

        Raises:
            InputFileError: If the file is missing, unreadable or not UTF-8.
            DirectiveParseError: If its directive block is malformed.
        """
        abs_path = os.path.abspath(path)
        try:
            with open(abs_path, "rb") as f:
                raw = f.read()
        except OSError as e:
            raise InputFileError(path, e.strerror or str(e)) from e

        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InputFileError(path, f"not valid UTF-8 ({e.reason} at byte {e.start})") from e

        fragment, body = self.parse(abs_path, text)
        return SourceFile(path=abs_path, raw=raw, fragment=fragment, body=body)


# -----------------------------------------------------------------------------
# PRIVATE HELPERS
# -----------------------------------------------------------------------------

def _parse_toml(origin: str, lines: _DirectiveLines) -> Dict[str, Any]:
    """Parse directive text, mapping error positions back to the source file."""
    try:
        return toml.loads(lines.joined())
    except toml.TomlDecodeError as e:
        line, column = _map_position(lines, e.lineno, e.colno)
        raise DirectiveParseError(origin, e.msg, line=line, column=column) from e


def _map_position(
        lines: _DirectiveLines,
        lineno: Optional[int],
        colno: Optional[int],
) -> Tuple[Optional[int], Optional[int]]:
    if not lineno or not lines.positions:
        return None, None
    index = min(max(lineno, 1), len(lines.positions)) - 1
    source_line, offset = lines.positions[index]
    column = offset + colno if colno else None
    return source_line, column


def _interpret_sections(
        origin: str,
        parsed: Dict[str, Any],
        default_section: str,
        lines: _DirectiveLines,
) -> Dict[str, Any]:
    """
    Sort top-level keys into manifest sections.

    Keys naming a known section are taken as that section; every other key
    is a dependency of `default_section`.
    """
    out: Dict[str, Any] = {}
    first_line = lines.positions[0][0] if lines.positions else None

    for key, value in parsed.items():
        if key in FORBIDDEN_SECTIONS:
            raise DirectiveParseError(
                origin,
                f"section '{key}' cannot be declared in a directive block",
                line=first_line,
            )

        if key in FRAGMENT_SECTIONS:
            if not isinstance(value, dict):
                raise DirectiveParseError(
                    origin,
                    f"'{key}' must be a table, got {type(value).__name__}",
                    line=first_line,
                )
            section = out.setdefault(key, {})
            for name, spec in value.items():
                _put(origin, section, key, name, spec, first_line)
            continue

        if not isinstance(value, (str, dict)):
            raise DirectiveParseError(
                origin,
                f"dependency '{key}' must be a version string or a table",
                line=first_line,
            )
        _put(origin, out.setdefault(default_section, {}), default_section, key, value, first_line)

    return out


def _put(
        origin: str,
        section: Dict[str, Any],
        section_name: str,
        key: str,
        value: Any,
        line: Optional[int],
) -> None:
    if key in section and section[key] != value:
        raise DirectiveParseError(
            origin,
            f"'{key}' is declared twice in section '{section_name}'",
            line=line,
        )
    section[key] = value
