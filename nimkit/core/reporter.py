"""
Sequential step reporting and append-only build logging.

Every stage of an install is wrapped in a named step which prints a short
progress line to the terminal. Output of the commands a step runs goes to a
single build log file and is only shown (via dump_log) when something fails.

Example:
    reporter = StepReporter(ctx.log_file, token=ctx.token)
    reporter.section("Building Nim")
    with reporter.step("Building koch") as step:
        if koch.exists():
            step.skip()
        else:
            reporter.run(["bin/nim", "c", "koch"], cwd=src)
"""

import logging
import shlex
import subprocess
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Mapping, Optional, Sequence, TextIO, Type

from nimkit.core.exceptions import BuildFailure, NimKitError

logger = logging.getLogger(__name__)

SUCCESS_ICON = "✅"
SKIP_ICON = "❎"
FAIL_ICON = "❌"


class Step:
    """Handle for the step currently running."""

    def __init__(self, message: str):
        self.message = message
        self.skipped = False

    def skip(self):
        """Mark the step as skipped; it is reported with the skip icon."""
        self.skipped = True


class StepReporter:
    """
    Reports step progress and records command output in the build log.

    Args:
        log_file: Path of the append-only build log
        stream: Where progress lines are printed (default: stdout)
        token: Optional cancellation token checked when each step starts
    """

    def __init__(self, log_file: Path, stream: Optional[TextIO] = None, token=None):
        self.log_file = Path(log_file)
        self.stream = stream
        self.token = token
        self._open_step = False

    @property
    def out(self) -> TextIO:
        return self.stream or sys.stdout

    # ------------------------------------------------------------------
    # Log file
    # ------------------------------------------------------------------

    def write(self, text: str):
        """Append text (plus newline) to the build log."""
        with open(self.log_file, "a", encoding="utf-8") as f:
            f.write(text + "\n")

    def dump_log(self, stream: Optional[TextIO] = None):
        """Print the full build log, by default to stderr."""
        stream = stream or sys.stderr
        if not self.log_file.exists():
            return
        print("", file=stream)
        print("Build log:", file=stream)
        print("", file=stream)
        stream.write(self.log_file.read_text(encoding="utf-8", errors="replace"))
        stream.flush()

    def run(
        self,
        args: Sequence[str],
        cwd: Optional[Path] = None,
        env: Optional[Mapping[str, str]] = None,
        error: Type[NimKitError] = BuildFailure,
    ) -> None:
        """
        Run a command, appending its combined output to the build log.

        Args:
            args: Command and arguments
            cwd: Working directory
            env: Full environment for the child (default: inherit)
            error: Exception type raised on failure

        Raises:
            error: If the command cannot be started or exits non-zero
        """
        command = " ".join(shlex.quote(str(a)) for a in args)
        self.write(f"+ {command}")
        logger.debug(f"Running: {command} (cwd={cwd})")

        with open(self.log_file, "a", encoding="utf-8") as log:
            try:
                result = subprocess.run(
                    [str(a) for a in args],
                    cwd=str(cwd) if cwd else None,
                    env=dict(env) if env is not None else None,
                    stdin=subprocess.DEVNULL,
                    stdout=log,
                    stderr=subprocess.STDOUT,
                )
            except OSError as e:
                log.write(f"{e}\n")
                raise error(f"Could not run {args[0]}: {e}") from e

        if result.returncode != 0:
            raise error(f"Command failed with exit code {result.returncode}: {command}")

    # ------------------------------------------------------------------
    # Terminal output
    # ------------------------------------------------------------------

    def section(self, title: str):
        print("", file=self.out)
        print(f"# {title}", file=self.out)
        self.write(f"+ {title}")

    def info(self, message: str):
        print(message, file=self.out)

    def _finish(self, icon: str):
        if self._open_step:
            print(icon, file=self.out)
            self.out.flush()
            self._open_step = False

    def fail(self):
        """Mark the open step (if any) as failed."""
        self._finish(FAIL_ICON)

    @contextmanager
    def step(self, message: str):
        """
        Wrap one named stage with start/success/skip/fail markers.

        Yields:
            Step handle; call skip() to report the stage as skipped
        """
        if self.token is not None:
            self.token.raise_if_cancelled()

        handle = Step(message)
        print(f"- {message}… ", end="", file=self.out)
        self.out.flush()
        self._open_step = True
        self.write(f">>> STEP: {message} >>>")
        self.write("")

        try:
            yield handle
        except BaseException:
            self.fail()
            raise

        self._finish(SKIP_ICON if handle.skipped else SUCCESS_ICON)


__all__ = ["Step", "StepReporter", "SUCCESS_ICON", "SKIP_ICON", "FAIL_ICON"]
