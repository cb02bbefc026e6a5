"""
Command runner - execute package-manager binaries and capture output.

This is the only place that spawns processes. Arguments are passed
as a list straight to exec (never through a shell), and the captured
environment is pinned to the C locale so tool output parses the same
everywhere.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import signal
import subprocess
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence

from syspkg.core.models.outcome import ExecutionResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300.0

# Caller variables that tools need to find themselves and their caches
_PASSTHROUGH_VARS = ("PATH", "HOME", "USER", "TMPDIR")
_FALLBACK_PATH = "/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin"


def base_environment() -> dict[str, str]:
    """Minimal, locale-pinned environment for captured runs."""
    env = {name: os.environ[name] for name in _PASSTHROUGH_VARS if name in os.environ}
    env.setdefault("PATH", _FALLBACK_PATH)
    env["LC_ALL"] = "C"
    env["LANG"] = "C"
    return env


def _kill_group(proc: subprocess.Popen) -> None:
    """SIGKILL the child and everything left in its session."""
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    except PermissionError:
        # A setuid helper may have left the group; still take down the child
        proc.kill()


class CommandRunner(ABC):
    """How adapters run external commands.

    ``run`` captures stdout and stderr separately and never raises for
    a nonzero exit. ``run_interactive`` connects the child to the
    caller's terminal and captures nothing.
    """

    @abstractmethod
    def run(
        self,
        program: str,
        args: Sequence[str] = (),
        extra_env: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> ExecutionResult:
        """Run a command and capture its output."""

    @abstractmethod
    def run_interactive(
        self,
        program: str,
        args: Sequence[str] = (),
        extra_env: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> ExecutionResult:
        """Run a command attached to the caller's stdin/stdout/stderr."""

    def which(self, program: str) -> str | None:
        """Resolve ``program`` on the PATH captured runs use."""
        return shutil.which(program, path=base_environment()["PATH"])


class SubprocessRunner(CommandRunner):
    """CommandRunner backed by :mod:`subprocess`."""

    def __init__(self, default_timeout: float = DEFAULT_TIMEOUT):
        self.default_timeout = default_timeout

    def run(
        self,
        program: str,
        args: Sequence[str] = (),
        extra_env: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> ExecutionResult:
        argv = (program, *args)
        env = base_environment()
        if extra_env:
            env.update(extra_env)
        timeout = timeout or self.default_timeout

        logger.debug("Executing: %s (timeout=%ss)", shlex.join(argv), timeout)
        start = time.monotonic()

        try:
            # Own session, so a timeout can kill helpers the tool spawned too
            proc = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=env,
                start_new_session=True,
            )
        except OSError as e:
            logger.debug("Cannot start %s: %s", program, e)
            return ExecutionResult(
                invocation_error=f"cannot execute {program}: {e.strerror or e}",
                command=argv,
            )

        try:
            stdout, stderr = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning("Command timed out after %ss: %s", timeout, shlex.join(argv))
            _kill_group(proc)
            stdout, stderr = proc.communicate()
            return ExecutionResult(
                stdout=stdout or b"",
                stderr=stderr or b"",
                invocation_error=f"timed out after {timeout}s",
                timed_out=True,
                command=argv,
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.debug("Exit %d from %s in %dms", proc.returncode, program, elapsed_ms)
        return ExecutionResult(
            exit_code=proc.returncode,
            stdout=stdout,
            stderr=stderr,
            command=argv,
        )

    def run_interactive(
        self,
        program: str,
        args: Sequence[str] = (),
        extra_env: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> ExecutionResult:
        argv = (program, *args)
        # Prompts are for a human: keep the caller's locale and variables
        env = dict(os.environ)
        if extra_env:
            env.update(extra_env)

        logger.debug("Executing interactively: %s", shlex.join(argv))
        try:
            proc = subprocess.run(argv, env=env, timeout=timeout, check=False)
        except subprocess.TimeoutExpired:
            return ExecutionResult(
                invocation_error=f"timed out after {timeout}s",
                timed_out=True,
                captured=False,
                command=argv,
            )
        except OSError as e:
            return ExecutionResult(
                invocation_error=f"cannot execute {program}: {e.strerror or e}",
                captured=False,
                command=argv,
            )
        return ExecutionResult(exit_code=proc.returncode, captured=False, command=argv)
