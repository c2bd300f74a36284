from __future__ import annotations

"""
Command Line Interface (CLI) Application Controller.

Orchestrates the CLI lifecycle: logging bootstrap, configuration
resolution (defaults, persisted file, CLI overrides), pipeline execution
and the mapping of failures to process exit codes:

    child exit code   the build tool ran (its code is forwarded verbatim)
    2                 input, directive, merge or materialization failure
    127               the build tool could not be started
    130               interrupted before the build tool ran
"""

import json
import signal
import sys
import threading
from typing import Any, Dict, List, Optional

from cargoplay.core.pipeline.engine import purge_cache, run_pipeline
from cargoplay.core.pipeline.validator import validate_config
from cargoplay.domain.config import get_config_path, get_default_config, load_config, save_config
from cargoplay.domain.constants import (
    EXIT_INTERRUPTED,
    EXIT_OK,
    EXIT_PREBUILD_FAILURE,
    EXIT_SPAWN_FAILURE,
)
from cargoplay.domain.errors import (
    BuildProcessError,
    CargoPlayError,
    DirectiveParseError,
    InputFileError,
    MaterializationIOError,
    MergeConflictError,
)
from cargoplay.domain.models import RunResult
from cargoplay.infra.logging import LoggingConfig, configure_logging, get_logger, shutdown_logging
from cargoplay.interface.cli import args as cli_args
from cargoplay.utils.i18n import i18n

logger = get_logger(__name__)

# -----------------------------------------------------------------------------
# ENTRYPOINT ORCHESTRATOR
# -----------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    """
    Execute the CLI workflow.

    Args:
        argv: Optional list of command line arguments. Defaults to sys.argv.

    Returns:
        int: Process exit code.
    """
    command_line = cli_args.split_command_line(sys.argv[1:] if argv is None else argv)
    parser = cli_args.build_parser()
    args = parser.parse_args(command_line.options)

    level = "DEBUG" if args.debug else ("INFO" if args.verbose else "WARNING")
    configure_logging(LoggingConfig(level=level, console=True), force=True)

    try:
        return _run(args, command_line, level)
    finally:
        shutdown_logging()


def _run(args: Any, command_line: cli_args.CommandLine, level: str) -> int:
    logger.debug("CLI execution initiated. Resolving configuration hierarchy...")

    base_conf = get_default_config() if args.use_defaults else load_config()
    overrides = cli_args.args_to_overrides(args, command_line)
    clean_conf, warnings = validate_config(_merge_config(base_conf, overrides), strict=False)

    for w in warnings:
        logger.warning(f"Configuration Constraint: {w}")

    if clean_conf["log_file"]:
        configure_logging(
            LoggingConfig(level=level, console=True, log_file=clean_conf["log_file"]),
            force=True,
        )

    if args.dump_config:
        print(json.dumps(clean_conf, ensure_ascii=False, indent=2))
        return EXIT_OK

    if args.save_config:
        save_config(clean_conf)
        print(i18n.t("cli.status.config_saved", path=get_config_path()), file=sys.stderr)

    if args.purge_cache:
        root, count = purge_cache(clean_conf)
        print(i18n.t("cli.status.purged", count=count, path=root), file=sys.stderr)

    if not clean_conf["sources"]:
        if args.purge_cache or args.save_config:
            return EXIT_OK
        _report("cli.errors.no_sources")
        return EXIT_PREBUILD_FAILURE

    previous_term = _install_term_handler()
    try:
        result = run_pipeline(clean_conf)
    except KeyboardInterrupt:
        _report("cli.status.interrupted")
        return EXIT_INTERRUPTED
    except BuildProcessError as e:
        _report("cli.errors.spawn", e)
        return EXIT_SPAWN_FAILURE
    except CargoPlayError as e:
        _report(_error_key(e), e)
        return EXIT_PREBUILD_FAILURE
    finally:
        _restore_term_handler(previous_term)

    _print_summary(result, keep=bool(clean_conf["keep"]))
    return result.exit_code

# -----------------------------------------------------------------------------
# CONFIGURATION MERGING
# -----------------------------------------------------------------------------

def _merge_config(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """
    Shallow merge of CLI overrides into the base configuration.

    Only known keys are merged, so stray values cannot pollute the schema.
    """
    out = dict(base)
    for k, v in overrides.items():
        if k in base and v is not None:
            out[k] = v
    return out

# -----------------------------------------------------------------------------
# SIGNALS
# -----------------------------------------------------------------------------

def _raise_interrupt(signum: int, frame: Any) -> None:
    raise KeyboardInterrupt


def _install_term_handler() -> Optional[Any]:
    """
    Route SIGTERM through the KeyboardInterrupt path for the whole run.

    Project scopes then unwind and clean up instead of the process dying
    with the default action. Returns the previous handler, or None when
    no handler was installed.
    """
    if not hasattr(signal, "SIGTERM") or threading.current_thread() is not threading.main_thread():
        return None
    previous = signal.signal(signal.SIGTERM, _raise_interrupt)
    return previous if previous is not None else signal.SIG_DFL


def _restore_term_handler(previous: Optional[Any]) -> None:
    if previous is not None:
        signal.signal(signal.SIGTERM, previous)

# -----------------------------------------------------------------------------
# VIEW RENDERING
# -----------------------------------------------------------------------------

def _error_key(error: CargoPlayError) -> str:
    if isinstance(error, InputFileError):
        return "cli.errors.input"
    if isinstance(error, DirectiveParseError):
        return "cli.errors.directive"
    if isinstance(error, MergeConflictError):
        return "cli.errors.merge"
    if isinstance(error, MaterializationIOError):
        return "cli.errors.materialize"
    return "cli.errors.unexpected"


def _report(key: str, error: Optional[BaseException] = None) -> None:
    """Print a user-facing failure message on stderr."""
    msg = i18n.t(key, error=str(error) if error else "")
    logger.debug(f"Run aborted: {msg}", exc_info=error is not None)
    print(f"error: {msg}", file=sys.stderr)


def _print_summary(result: RunResult, keep: bool = False) -> None:
    """Report the artifacts a run leaves behind; program output is not touched."""
    if result.saved_to:
        print(i18n.t("cli.status.saved", path=result.saved_to), file=sys.stderr)
    elif keep and result.retained:
        print(i18n.t("cli.status.retained", path=result.project_dir), file=sys.stderr)

# -----------------------------------------------------------------------------
# CLI ENTRYPOINT
# -----------------------------------------------------------------------------

if __name__ == "__main__":
    sys.exit(main())
