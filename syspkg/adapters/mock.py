"""
Mock runner and adapter - test doubles that never touch the system.

MockCommandRunner replays canned ExecutionResults keyed by command
line, so real adapters can be driven through their full pipeline.
MockPackageAdapter skips commands entirely and answers each
operation from configured OperationResults.
"""

from __future__ import annotations

import shlex
import time
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from syspkg.adapters.base import Options, PackageManagerAdapter
from syspkg.adapters.shell.command import CommandRunner
from syspkg.core.classifiers.base import Classifier
from syspkg.core.models.outcome import (
    ExecutionResult,
    Operation,
    OperationResult,
    OutcomeKind,
)
from syspkg.core.models.package import ManagerStatus, PackageRecord


@dataclass
class RecordedCall:
    """One command a MockCommandRunner was asked to run."""

    program: str
    args: tuple[str, ...]
    env: dict[str, str] = field(default_factory=dict)
    timeout: float | None = None
    interactive: bool = False

    @property
    def key(self) -> str:
        return shlex.join((self.program, *self.args))


class MockCommandRunner(CommandRunner):
    """CommandRunner that replays configured results.

    Results are keyed by the shell-quoted command line, e.g.
    ``"apt search vim"`` or ``"dpkg-query -W --showformat '...' bash"``.
    Unmatched commands behave like a missing binary.
    """

    def __init__(self, programs: Iterable[str] = ()):
        self._results: dict[str, ExecutionResult] = {}
        self._programs = set(programs)
        self.calls: list[RecordedCall] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def install_program(self, *programs: str) -> None:
        """Make ``which()`` find these programs."""
        self._programs.update(programs)

    def add_result(self, command: str | Sequence[str], result: ExecutionResult) -> None:
        key = command if isinstance(command, str) else shlex.join(command)
        self._results[key] = result

    def add_output(
        self,
        command: str | Sequence[str],
        stdout: str = "",
        stderr: str = "",
        exit_code: int = 0,
    ) -> None:
        self.add_result(command, ExecutionResult(
            exit_code=exit_code,
            stdout=stdout.encode(),
            stderr=stderr.encode(),
        ))

    def add_error(self, command: str | Sequence[str], message: str, timed_out: bool = False) -> None:
        """Make a command fail to start (or time out)."""
        self.add_result(command, ExecutionResult(invocation_error=message, timed_out=timed_out))

    def reset(self) -> None:
        self._results.clear()
        self.calls.clear()

    def which(self, program: str) -> str | None:
        return f"/usr/bin/{program}" if program in self._programs else None

    def run(
        self,
        program: str,
        args: Sequence[str] = (),
        extra_env: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> ExecutionResult:
        return self._replay(program, args, extra_env, timeout, interactive=False)

    def run_interactive(
        self,
        program: str,
        args: Sequence[str] = (),
        extra_env: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> ExecutionResult:
        return self._replay(program, args, extra_env, timeout, interactive=True)

    def _replay(self, program, args, extra_env, timeout, interactive: bool) -> ExecutionResult:
        call = RecordedCall(program, tuple(args), dict(extra_env or {}), timeout, interactive)
        self.calls.append(call)
        result = self._results.get(call.key)
        if result is None:
            return ExecutionResult(
                invocation_error=f"cannot execute {program}: no mock result for {call.key!r}",
                captured=not interactive,
                command=(program, *call.args),
            )
        if interactive:
            return ExecutionResult(
                exit_code=result.exit_code,
                invocation_error=result.invocation_error,
                timed_out=result.timed_out,
                captured=False,
                command=(program, *call.args),
            )
        return ExecutionResult(
            exit_code=result.exit_code,
            stdout=result.stdout,
            stderr=result.stderr,
            invocation_error=result.invocation_error,
            timed_out=result.timed_out,
            command=(program, *call.args),
        )


class MockPackageAdapter(PackageManagerAdapter):
    """Adapter double answering every operation from configuration.

    By default every operation succeeds with no packages. Responses,
    failures and exceptions can be set per operation.
    """

    classifier = Classifier("mock", ())

    def __init__(
        self,
        adapter_name: str = "mock",
        available: bool = True,
        category: str = "system",
        priority: int = 50,
        packages: Iterable[PackageRecord] = (),
    ):
        super().__init__(runner=MockCommandRunner())
        self._name = adapter_name
        self._available = available
        self.category = category
        self.priority = priority
        self._packages = list(packages)
        self._responses: dict[Operation, OperationResult] = {}
        self._raises: dict[Operation, BaseException] = {}
        self._delays: dict[Operation, float] = {}
        self.call_log: list[tuple[Operation, object]] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_count(self) -> int:
        return len(self.call_log)

    def is_available(self) -> bool:
        return self._available

    def set_available(self, available: bool) -> None:
        self._available = available

    def set_response(self, operation: Operation, result: OperationResult) -> None:
        self._responses[operation] = result

    def set_failure(
        self,
        operation: Operation,
        detail: str = "Mock failure",
        kind: OutcomeKind = OutcomeKind.GENERAL_ERROR,
    ) -> None:
        self._responses[operation] = OperationResult.failure(self._name, operation, kind, detail)

    def set_exception(self, operation: Operation, exc: BaseException) -> None:
        """Make an operation raise, to exercise the registry's isolation."""
        self._raises[operation] = exc

    def set_delay(self, operation: Operation, seconds: float) -> None:
        self._delays[operation] = seconds

    def reset(self) -> None:
        self.call_log.clear()
        self._responses.clear()
        self._raises.clear()
        self._delays.clear()

    def _answer(self, operation: Operation, arg: object = None) -> OperationResult:
        self.call_log.append((operation, arg))
        if operation in self._delays:
            time.sleep(self._delays[operation])
        if operation in self._raises:
            raise self._raises[operation]
        if operation in self._responses:
            return self._responses[operation]
        if operation == Operation.STATUS:
            status = ManagerStatus(
                manager=self._name,
                available=self._available,
                healthy=self._available,
                installed_count=len(self._packages),
            )
            return OperationResult.success(self._name, operation, manager_status=status)
        packages = self._packages if operation != Operation.REFRESH else []
        return OperationResult.success(self._name, operation, list(packages))

    def _search(self, query: str, opts: Options) -> OperationResult:
        result = self._answer(Operation.SEARCH, query)
        if Operation.SEARCH in self._responses or result.failed:
            return result
        matches = [p for p in result.packages if query in p.name]
        return result.model_copy(update={"packages": matches})

    def _list_installed(self, names: list[str], opts: Options) -> OperationResult:
        return self._answer(Operation.LIST_INSTALLED)

    def _list_upgradable(self, names: list[str], opts: Options) -> OperationResult:
        return self._answer(Operation.LIST_UPGRADABLE)

    def _install(self, names: list[str], opts: Options) -> OperationResult:
        return self._answer(Operation.INSTALL, names)

    def _remove(self, names: list[str], opts: Options) -> OperationResult:
        return self._answer(Operation.REMOVE, names)

    def _refresh(self, names: list[str], opts: Options) -> OperationResult:
        return self._answer(Operation.REFRESH)

    def _upgrade(self, names: list[str], opts: Options) -> OperationResult:
        return self._answer(Operation.UPGRADE, names)

    def _clean(self, names: list[str], opts: Options) -> OperationResult:
        return self._answer(Operation.CLEAN)

    def _autoremove(self, names: list[str], opts: Options) -> OperationResult:
        return self._answer(Operation.AUTOREMOVE)

    def _verify(self, names: list[str], opts: Options) -> OperationResult:
        return self._answer(Operation.VERIFY, names)

    def _get_info(self, name: str, opts: Options) -> OperationResult:
        return self._answer(Operation.GET_INFO, name)

    def _status(self, names: list[str], opts: Options) -> OperationResult:
        return self._answer(Operation.STATUS)
