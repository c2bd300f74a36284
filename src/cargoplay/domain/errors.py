from __future__ import annotations

"""
Domain Error Taxonomy.

Every failure detected before the build tool is invoked is raised as a
subclass of CargoPlayError. The CLI controller maps them to exit codes.
A nonzero exit of the build tool itself is a forwarded result, not an error.
"""

from typing import Optional


class CargoPlayError(Exception):
    """Base class for all fatal errors raised by the core."""


class InputFileError(CargoPlayError):
    """An input path does not exist or cannot be read."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read input file '{path}': {reason}")


class DirectiveParseError(CargoPlayError):
    """
    Malformed directive block.

    Attributes:
        file: Source file holding the directive block.
        line: 1-based line in the source file, when known.
        column: 1-based column in the source file, when known.
        detail: Parser message.
    """

    def __init__(
            self,
            file: str,
            detail: str,
            line: Optional[int] = None,
            column: Optional[int] = None,
    ) -> None:
        self.file = file
        self.detail = detail
        self.line = line
        self.column = column
        super().__init__(self._format())

    def _format(self) -> str:
        location = self.file
        if self.line is not None:
            location += f":{self.line}"
            if self.column is not None:
                location += f":{self.column}"
        return f"Invalid dependency directive at {location}: {self.detail}"


class MergeConflictError(CargoPlayError):
    """Two input files assert different values for the same manifest key."""

    def __init__(self, key_path: str, first_file: str, second_file: str) -> None:
        self.key_path = key_path
        self.first_file = first_file
        self.second_file = second_file
        super().__init__(
            f"Conflicting values for '{key_path}' declared in "
            f"'{first_file}' and '{second_file}'"
        )


class MaterializationIOError(CargoPlayError):
    """Filesystem failure while preparing the temporary project."""


class BuildProcessError(CargoPlayError):
    """The external build tool could not be spawned."""
