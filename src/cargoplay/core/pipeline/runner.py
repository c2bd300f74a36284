from __future__ import annotations

"""
Build Tool Invocation.

Spawns cargo inside a materialized project with the parent's standard
streams inherited, so compiler diagnostics and program output reach the
terminal as they are produced. The wait on the child is interruptible:
SIGINT and SIGTERM received meanwhile are forwarded to the child, which is
always reaped before returning.
"""

import logging
import os
import signal
import subprocess
import threading
from typing import Any, List, Optional, Sequence

from cargoplay.domain.constants import BUILD_MODES, MODE_BUILD, MODE_RUN
from cargoplay.domain.errors import BuildProcessError
from cargoplay.domain.models import TempProject

logger = logging.getLogger(__name__)


class BuildRunner:
    """
    Runs the build tool against a TempProject.

    Args:
        program: Command prefix for the build tool (default `cargo`).
        toolchain: Optional rustup toolchain, passed as `+<toolchain>`.
    """

    def __init__(self, program: Sequence[str] = ("cargo",), toolchain: str = "") -> None:
        if not program:
            raise ValueError("Build program must not be empty.")
        self.program = list(program)
        self.toolchain = toolchain.lstrip("+")

    def build_command(
            self,
            project: TempProject,
            mode: str = MODE_RUN,
            *,
            release: bool = False,
            cargo_options: Sequence[str] = (),
            program_args: Sequence[str] = (),
    ) -> List[str]:
        """
        Assemble the argument vector for the build tool.

        Returns:
            List[str]: e.g. `cargo +nightly run --release --manifest-path
                       <dir>/Cargo.toml -- <args>`.
        """
        if mode not in BUILD_MODES:
            raise ValueError(f"Unknown build mode '{mode}'. Expected one of {BUILD_MODES}.")

        cmd = list(self.program)
        if self.toolchain:
            cmd.append(f"+{self.toolchain}")
        cmd.append(mode)
        if release:
            cmd.append("--release")
        cmd.extend(["--manifest-path", project.manifest_path])
        cmd.extend(cargo_options)

        if mode == MODE_BUILD:
            if program_args:
                logger.warning("Program arguments are ignored in build mode.")
        else:
            cmd.append("--")
            cmd.extend(program_args)
        return cmd

    def run(
            self,
            project: TempProject,
            mode: str = MODE_RUN,
            *,
            release: bool = False,
            cargo_options: Sequence[str] = (),
            program_args: Sequence[str] = (),
    ) -> int:
        """
        Run the build tool and block until it exits.

        Returns:
            int: The child's exit code; death by signal N maps to 128 + N.

        Raises:
            BuildProcessError: If the build tool cannot be spawned.
        """
        cmd = self.build_command(
            project, mode, release=release,
            cargo_options=cargo_options, program_args=program_args,
        )
        logger.debug(f"Spawning build tool: {cmd} (cwd={project.root})")

        try:
            proc = subprocess.Popen(cmd, cwd=project.root)
        except OSError as e:
            raise BuildProcessError(f"Cannot start '{self.program[0]}': {e}") from e

        code = _wait_forwarding_signals(proc)
        if code < 0:
            code = 128 - code
        logger.debug(f"Build tool exited with code {code}")
        return code


# -----------------------------------------------------------------------------
# PRIVATE HELPERS
# -----------------------------------------------------------------------------

def _forward(proc: "subprocess.Popen[Any]", sig: int) -> None:
    if proc.poll() is not None:
        return
    try:
        if os.name == "nt":
            proc.terminate()
        else:
            proc.send_signal(sig)
    except ProcessLookupError:
        pass


def _wait_forwarding_signals(proc: "subprocess.Popen[Any]") -> int:
    """
    Wait for `proc`, relaying interrupts to it instead of abandoning it.

    A first Ctrl+C is forwarded as SIGINT; a second one kills the child.
    """
    previous_term: Optional[Any] = None
    installed = False
    in_main_thread = threading.current_thread() is threading.main_thread()

    if in_main_thread and hasattr(signal, "SIGTERM"):
        def _on_term(signum: int, frame: Any) -> None:
            logger.debug("SIGTERM received; forwarding to build tool.")
            _forward(proc, signum)

        previous_term = signal.signal(signal.SIGTERM, _on_term)
        installed = True

    interrupts = 0
    try:
        while True:
            try:
                return proc.wait()
            except KeyboardInterrupt:
                interrupts += 1
                if interrupts == 1:
                    logger.debug("Interrupt received; forwarding to build tool.")
                    _forward(proc, signal.SIGINT)
                else:
                    logger.warning("Second interrupt received; killing build tool.")
                    proc.kill()
    finally:
        if installed:
            signal.signal(signal.SIGTERM, previous_term or signal.SIG_DFL)
