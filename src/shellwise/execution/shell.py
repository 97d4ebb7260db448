"""Run shell commands as fresh, isolated processes.

Every call starts a new ``bash -c`` process in its own session. Nothing is
shared between calls: no shell state, no working directory changes, no
exported variables. The only inherited setting is the configured working
directory.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
from pathlib import Path
from typing import Any, Callable

from shellwise.context import Context
from shellwise.core import Action, ActionKind, Output, Recoverable, RecoverableKind
from shellwise.errors import DeadlineExceeded, UnsupportedActionError
from shellwise.execution.base import Executor
from shellwise.execution.validator import CommandValidator, default_validator
from shellwise.logging_utils import abbreviate

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

# How often a running command checks its deadline.
_POLL_INTERVAL = 0.05

# How long to keep reading once the shell has exited or been killed.
_DRAIN_TIMEOUT = 0.5

Launcher = Callable[..., Any]

_DEFAULT_VALIDATOR: Any = object()


class ShellExecutor(Executor):
    """Execute shell actions with a deadline and a safety blocklist."""

    def __init__(
        self,
        timeout: float | None = DEFAULT_TIMEOUT,
        working_dir: Path | str | None = None,
        validator: CommandValidator | None = _DEFAULT_VALIDATOR,
        launcher: Launcher | None = None,
        shell: str = "bash",
    ):
        """Initialize the executor.

        Args:
            timeout: Maximum seconds a command can run. Non-positive or None
                falls back to DEFAULT_TIMEOUT.
            working_dir: Directory commands run in. None uses the current one.
            validator: Checked before every command. Defaults to the built-in
                blocklist; pass None to run commands unconditionally.
            launcher: Callable with the ``subprocess.Popen`` signature.
            shell: Shell executable, invoked as ``<shell> -c <command>``.
        """
        if timeout is None or timeout <= 0:
            timeout = DEFAULT_TIMEOUT
        if validator is _DEFAULT_VALIDATOR:
            validator = default_validator()

        self.timeout = float(timeout)
        self.working_dir = Path(working_dir) if working_dir else None
        self.validator = validator
        self.launcher = launcher or subprocess.Popen
        self.shell = shell

    def execute(self, ctx: Context, action: Action) -> Output | Recoverable:
        """Run one command.

        Returns:
            The Output on a clean exit. Otherwise a Recoverable of kind
            ``blocked``, ``timeout`` or ``execution``; for the last two the
            captured output is attached.

        Raises:
            UnsupportedActionError: If the action is not a shell action.
        """
        if action.kind is not ActionKind.SHELL:
            raise UnsupportedActionError(f"unsupported action type: {action.kind.value}")

        if self.validator is not None:
            blocked = self.validator.validate(action.command)
            if blocked is not None:
                return blocked

        deadline = ctx.child(self.timeout)
        logger.debug(
            "cmd run command=%s cwd=%s timeout=%s",
            abbreviate(action.command),
            self.working_dir,
            self.timeout,
        )

        try:
            process = self.launcher(
                [self.shell, "-c", action.command],
                cwd=self.working_dir,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                start_new_session=True,
            )
        except OSError as exc:
            logger.warning("cmd failed to start command=%s error=%s", abbreviate(action.command), exc)
            output = Output()
            return Recoverable(
                RecoverableKind.EXECUTION,
                f"Command failed: {exc}\nOutput:\n{output}",
                output,
            )

        try:
            stdout, stderr, stopped = self._communicate(process, deadline)
        except BaseException:
            # Interrupted while waiting (e.g. Ctrl-C); don't leave it running.
            _kill(process)
            raise
        returncode = process.returncode if process.returncode is not None else 0

        if stopped and isinstance(deadline.err(), DeadlineExceeded):
            output = Output(stdout=stdout, stderr=stderr, exit_code=returncode, timed_out=True)
            logger.warning("cmd timeout seconds=%s", self.timeout)
            return Recoverable(
                RecoverableKind.TIMEOUT,
                f"Command timed out after {self.timeout:g}s. Partial output:\n{output}",
                output,
            )

        output = Output(stdout=stdout, stderr=stderr, exit_code=returncode)
        logger.debug("cmd result exit_code=%s", returncode)
        if returncode != 0:
            return Recoverable(
                RecoverableKind.EXECUTION,
                f"Command failed: {_describe_exit(returncode)}\nOutput:\n{output}",
                output,
            )

        return output

    def _communicate(self, process: Any, deadline: Context) -> tuple[str, str, bool]:
        """Collect output until the process exits or the deadline fires.

        Returns:
            (stdout, stderr, stopped) where ``stopped`` means we killed it.
        """
        while True:
            try:
                stdout, stderr = process.communicate(timeout=_POLL_INTERVAL)
                return stdout or "", stderr or "", False
            except subprocess.TimeoutExpired:
                if process.poll() is not None:
                    # The shell is gone but something it started holds the pipes.
                    stdout, stderr = _drain(process)
                    return stdout, stderr, False
                if not deadline.cancelled:
                    continue
            _kill(process)
            stdout, stderr = _drain(process)
            return stdout, stderr, True

    def __repr__(self) -> str:
        return (
            f"<ShellExecutor(shell='{self.shell}', timeout={self.timeout:g}, "
            f"working_dir={self.working_dir}, validator={self.validator!r})>"
        )


def _kill(process: Any) -> None:
    """Kill the command and everything it started."""
    if os.name == "posix":
        try:
            os.killpg(process.pid, signal.SIGKILL)
            return
        except (ProcessLookupError, PermissionError):
            pass
    try:
        process.kill()
    except ProcessLookupError:
        pass


def _describe_exit(returncode: int) -> str:
    if returncode < 0:
        try:
            return f"terminated by signal {signal.Signals(-returncode).name}"
        except ValueError:
            return f"terminated by signal {-returncode}"
    return f"exit status {returncode}"


def _drain(process: Any) -> tuple[str, str]:
    """Read what is left, closing the pipes if a detached child still holds them."""
    try:
        stdout, stderr = process.communicate(timeout=_DRAIN_TIMEOUT)
        return stdout or "", stderr or ""
    except subprocess.TimeoutExpired as exc:
        logger.warning("cmd output pipes still open after exit pid=%s", process.pid)
        stdout, stderr = _text(exc.stdout), _text(exc.stderr)

    _kill(process)
    for stream in (process.stdout, process.stderr):
        if stream is not None:
            stream.close()
    process.wait()
    return stdout, stderr


def _text(data: bytes | str | None) -> str:
    # TimeoutExpired carries raw bytes even for text-mode pipes.
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode(errors="replace")
    return data
