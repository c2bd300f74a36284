from __future__ import annotations

"""
CLI Argument Definition and Mapping.

Defines the command-line schema and translates parsed arguments into
configuration overrides. Program arguments after `--` and a leading
`+toolchain` token are split off before argparse sees the command line,
so they are forwarded untouched.
"""

import argparse
import shlex
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from cargoplay import __version__
from cargoplay.domain.constants import APP_NAME, BUILD_MODES, SUPPORTED_EDITIONS
from cargoplay.utils.i18n import i18n

# -----------------------------------------------------------------------------
# RAW COMMAND LINE SPLITTING
# -----------------------------------------------------------------------------

@dataclass
class CommandLine:
    """Command line split into argparse input and passthrough parts."""
    options: List[str] = field(default_factory=list)
    program_args: List[str] = field(default_factory=list)
    toolchain: str = ""


def split_command_line(argv: Sequence[str]) -> CommandLine:
    """
    Separate our options from the passthrough program arguments.

    Handles invocation as a cargo subcommand (`cargo play ...`, where cargo
    passes `play` as the first argument) and `+toolchain` tokens placed
    before the first `--`.
    """
    args = list(argv)
    if args and args[0] == "play":
        args = args[1:]

    program_args: List[str] = []
    if "--" in args:
        idx = args.index("--")
        args, program_args = args[:idx], args[idx + 1:]

    toolchain = ""
    options: List[str] = []
    for token in args:
        if token.startswith("+") and len(token) > 1 and not toolchain:
            toolchain = token[1:]
            continue
        options.append(token)

    return CommandLine(options=options, program_args=program_args, toolchain=toolchain)

# -----------------------------------------------------------------------------
# ARGUMENT DEFINITION
# -----------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    """
    Construct the argument parser for the cargoplay CLI.

    Returns:
        argparse.ArgumentParser: Configured parser instance.
    """
    p = argparse.ArgumentParser(
        prog=APP_NAME,
        description=i18n.t("app.description"),
        epilog=i18n.t("app.epilog"),
    )

    p.add_argument(
        "sources",
        nargs="*",
        metavar="FILE",
        help=i18n.t("cli.args.sources"),
    )

    # --- Build invocation ---
    p.add_argument(
        "-m", "--mode",
        choices=BUILD_MODES,
        default=None,
        help=i18n.t("cli.args.mode"),
    )
    p.add_argument(
        "-r", "--release",
        action="store_true",
        help=i18n.t("cli.args.release"),
    )
    p.add_argument(
        "-e", "--edition",
        choices=SUPPORTED_EDITIONS,
        default=None,
        help=i18n.t("cli.args.edition"),
    )
    p.add_argument(
        "-t", "--toolchain",
        default=None,
        help=i18n.t("cli.args.toolchain"),
    )
    p.add_argument(
        "--cargo-option",
        dest="cargo_options",
        action="append",
        default=None,
        metavar="OPTIONS",
        help=i18n.t("cli.args.cargo_option"),
    )

    # --- Directive parsing ---
    p.add_argument(
        "-i", "--infer",
        action="store_true",
        help=i18n.t("cli.args.infer"),
    )
    p.add_argument(
        "--strict-blank-lines",
        action="store_true",
        help=i18n.t("cli.args.strict_blank_lines"),
    )
    p.add_argument(
        "--directive-prefix",
        default=None,
        help=i18n.t("cli.args.directive_prefix"),
    )

    # --- Project lifecycle ---
    p.add_argument(
        "-k", "--keep",
        action="store_true",
        help=i18n.t("cli.args.keep"),
    )
    p.add_argument(
        "--no-cache",
        action="store_true",
        help=i18n.t("cli.args.no_cache"),
    )
    p.add_argument(
        "-c", "--clean",
        action="store_true",
        help=i18n.t("cli.args.clean"),
    )
    p.add_argument(
        "--purge-cache",
        action="store_true",
        help=i18n.t("cli.args.purge_cache"),
    )
    p.add_argument(
        "--save",
        dest="save_path",
        default=None,
        metavar="DIR",
        help=i18n.t("cli.args.save"),
    )

    # --- Configuration and diagnostics ---
    p.add_argument(
        "--use-defaults",
        action="store_true",
        help=i18n.t("cli.args.use_defaults"),
    )
    p.add_argument(
        "--dump-config",
        action="store_true",
        help=i18n.t("cli.args.dump_config"),
    )
    p.add_argument(
        "--save-config",
        action="store_true",
        help=i18n.t("cli.args.save_config"),
    )
    p.add_argument(
        "-v", "--verbose",
        action="store_true",
        help=i18n.t("cli.args.verbose"),
    )
    p.add_argument(
        "--debug",
        action="store_true",
        help=i18n.t("cli.args.debug"),
    )
    p.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    return p

# -----------------------------------------------------------------------------
# ARGUMENT MAPPING
# -----------------------------------------------------------------------------

def args_to_overrides(args: argparse.Namespace, command_line: Optional[CommandLine] = None) -> Dict[str, Any]:
    """
    Translate the argparse Namespace into configuration overrides.

    Only values the user actually supplied are returned, so persisted
    settings are not clobbered by argparse defaults.

    Args:
        args: Parsed command-line arguments.
        command_line: Passthrough parts split off before parsing.

    Returns:
        Dict[str, Any]: Configuration overrides subset.
    """
    overrides: Dict[str, Any] = {}

    if args.sources:
        overrides["sources"] = list(args.sources)
    if args.mode:
        overrides["mode"] = args.mode
    if args.release:
        overrides["release"] = True
    if args.edition:
        overrides["edition"] = args.edition
    if args.cargo_options:
        overrides["cargo_options"] = _split_options(args.cargo_options)

    if args.infer:
        overrides["infer"] = True
    if args.strict_blank_lines:
        overrides["blank_lines"] = "terminate"
    if args.directive_prefix:
        overrides["directive_prefix"] = args.directive_prefix

    if args.keep:
        overrides["keep"] = True
    if args.no_cache:
        overrides["cache_enabled"] = False
    if args.clean:
        overrides["clean"] = True
    if args.save_path:
        overrides["save_path"] = args.save_path

    toolchain = args.toolchain
    if command_line is not None:
        if command_line.program_args:
            overrides["program_args"] = list(command_line.program_args)
        toolchain = toolchain or command_line.toolchain or None
    if toolchain:
        overrides["toolchain"] = toolchain

    return overrides

# -----------------------------------------------------------------------------
# HELPERS
# -----------------------------------------------------------------------------

def _split_options(values: Sequence[str]) -> List[str]:
    """Split each `--cargo-option` value with shell quoting rules."""
    out: List[str] = []
    for value in values:
        out.extend(shlex.split(value))
    return out
