"""
Adapter base - the normalized contract every package manager implements.

Callers only ever talk to a PackageManagerAdapter; nothing above this
layer knows which binary runs or how its output looks.

Every public operation goes through the same pipeline:

    validate -> build argv -> run -> classify -> parse -> OperationResult

Adapters never raise for a failed operation. Classified failures,
rejected input and missing binaries all come back as an
OperationResult whose ``kind`` says what went wrong.

To add a manager:
    1. Subclass PackageManagerAdapter
    2. Set ``default_binary``, ``classifier``, ``category``, ``priority``
    3. Implement ``name``, ``is_available`` and the ``_search`` ... ``_get_info`` hooks
    4. Register it in ``syspkg.adapters.builtin``
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Sequence
from enum import StrEnum

from pydantic import BaseModel, Field

from syspkg.adapters.shell.command import CommandRunner, SubprocessRunner
from syspkg.core.classifiers.base import Classifier
from syspkg.core.models.outcome import (
    Operation,
    OperationOutcome,
    OperationResult,
    OutcomeKind,
)
from syspkg.core.models.package import ManagerStatus, PackageRecord, PackageStatus
from syspkg.core.parsers.common import split_lines
from syspkg.core.validation import ValidationError, validate, validate_flags

logger = logging.getLogger(__name__)

Parser = Callable[[str], list[PackageRecord]]

CHECK_TIMEOUT = 10.0

# Floor for deadline-derived timeouts; a zero timeout would mean "use the default"
_MIN_TIMEOUT = 0.01


def single(parse: Callable[[str], PackageRecord | None]) -> Parser:
    """Adapt a one-record parser (get_info) to the list-returning shape."""
    def parse_list(text: str) -> list[PackageRecord]:
        record = parse(text)
        return [record] if record is not None else []
    return parse_list


class Options(BaseModel):
    """Per-call switches, shared by every adapter operation.

    Attributes:
        dry_run: Simulate mutating operations (tool flag or read-only substitute).
        interactive: Attach mutating commands to the caller's terminal.
        verbose: Log every parsed output line at DEBUG.
        assume_yes: Answer prompts with yes even in interactive mode.
        debug: Reserved for front-ends; adapters treat it like verbose.
        custom_args: Extra flags passed through to the tool's main command.
        timeout: Per-invocation deadline in seconds (None: adapter default).
    """

    dry_run: bool = False
    interactive: bool = False
    verbose: bool = False
    assume_yes: bool = False
    debug: bool = False
    custom_args: list[str] = Field(default_factory=list)
    timeout: float | None = None


class ListFilter(StrEnum):
    INSTALLED = "installed"
    UPGRADABLE = "upgradable"
    ALL = "all"


def _as_names(names: str | Iterable[str] | None) -> list[str]:
    if names is None:
        return []
    if isinstance(names, str):
        return [names]
    return list(names)


class PackageManagerAdapter(ABC):
    """Abstract base class for package manager adapters.

    Public methods (``search``, ``install`` ...) are the fixed interface.
    Subclasses implement the matching ``_search``, ``_install`` ...
    hooks, which receive already-validated input and a resolved
    Options instance. ``clean`` and ``autoremove`` default to a no-op
    success for managers without that concept.
    """

    #: "system" for distribution managers, "app" for sandboxed app stores
    category: str = "system"
    #: Higher wins in best-match selection
    priority: int = 50
    #: Binary run for the manager's main commands
    default_binary: str = ""
    #: Environment overrides for every captured run
    env: dict[str, str] = {}
    classifier: Classifier

    def __init__(
        self,
        runner: CommandRunner | None = None,
        binary: str | None = None,
        timeout: float | None = None,
    ):
        self.runner = runner or SubprocessRunner()
        self.binary = binary or self.default_binary
        self.timeout = timeout
        #: ``time.monotonic()`` instant no command may outlive (set by fan-out)
        self.deadline: float | None = None

    @property
    @abstractmethod
    def name(self) -> str:
        """The manager identifier (e.g. 'apt', 'snap')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check whether the manager can run on this system right now.

        Must be fast and never raise. Never cached: containers change.
        """

    # ── Public operations ───────────────────────────────────────

    def search(self, query: str, opts: Options | None = None) -> OperationResult:
        """Search repositories. No match is an empty success."""
        return self._dispatch(Operation.SEARCH, self._search, query, opts)

    def list_installed(self, opts: Options | None = None) -> OperationResult:
        return self._dispatch(Operation.LIST_INSTALLED, self._list_installed, None, opts)

    def list_upgradable(self, opts: Options | None = None) -> OperationResult:
        return self._dispatch(Operation.LIST_UPGRADABLE, self._list_upgradable, None, opts)

    def install(self, names: str | Iterable[str], opts: Options | None = None) -> OperationResult:
        """Install packages. Every returned record is INSTALLED with a version."""
        return self._dispatch(Operation.INSTALL, self._install, names, opts)

    def remove(self, names: str | Iterable[str], opts: Options | None = None) -> OperationResult:
        return self._dispatch(Operation.REMOVE, self._remove, names, opts)

    def refresh(self, opts: Options | None = None) -> OperationResult:
        """Refresh repository metadata."""
        return self._dispatch(Operation.REFRESH, self._refresh, None, opts)

    def upgrade(
        self,
        names: str | Iterable[str] | None = None,
        opts: Options | None = None,
    ) -> OperationResult:
        """Upgrade the named packages, or everything when ``names`` is empty."""
        return self._dispatch(Operation.UPGRADE, self._upgrade, names, opts, optional=True)

    def clean(self, opts: Options | None = None) -> OperationResult:
        return self._dispatch(Operation.CLEAN, self._clean, None, opts)

    def autoremove(self, opts: Options | None = None) -> OperationResult:
        return self._dispatch(Operation.AUTOREMOVE, self._autoremove, None, opts)

    def verify(self, names: str | Iterable[str], opts: Options | None = None) -> OperationResult:
        """Check that packages are installed.

        Each name yields a record: INSTALLED with ``extra["verified"] ==
        "true"``, or UNKNOWN with ``verified == "false"`` and the reason in
        ``extra["issue"]``.
        """
        return self._dispatch(Operation.VERIFY, self._verify, names, opts)

    def get_info(self, name: str, opts: Options | None = None) -> OperationResult:
        """Details for one package; ``result.package`` holds the record."""
        return self._dispatch(Operation.GET_INFO, self._get_info, name, opts)

    def status(self, opts: Options | None = None) -> OperationResult:
        """Health summary in ``result.manager_status``. Always succeeds."""
        return self._dispatch(Operation.STATUS, self._status, None, opts)

    def list_packages(
        self,
        list_filter: ListFilter | str = ListFilter.INSTALLED,
        opts: Options | None = None,
    ) -> OperationResult:
        """List packages by filter.

        ``all`` merges installed and upgradable records; for a name in
        both, the upgradable record wins. The merged result is labelled
        ``Operation.LIST_PACKAGES``.
        """
        list_filter = ListFilter(list_filter)
        if list_filter == ListFilter.INSTALLED:
            return self.list_installed(opts)
        if list_filter == ListFilter.UPGRADABLE:
            return self.list_upgradable(opts)

        started = time.monotonic()
        installed = self.list_installed(opts)
        if installed.failed:
            return installed.model_copy(update={"operation": Operation.LIST_PACKAGES})
        upgradable = self.list_upgradable(opts)
        if upgradable.failed:
            return upgradable.model_copy(update={"operation": Operation.LIST_PACKAGES})
        newer = {r.name: r for r in upgradable.packages if r.status == PackageStatus.UPGRADABLE}
        merged = [newer.pop(r.name, r) for r in installed.packages]
        merged.extend(newer.values())
        return OperationResult.success(
            self.name, Operation.LIST_PACKAGES, merged, raw=upgradable.raw,
        ).timed(started)

    def version(self) -> str:
        """The manager's version string, or empty when unknown."""
        outcome = self._run(Operation.STATUS, ["--version"], Options(), passthrough=False)
        if not outcome.ok or outcome.raw is None:
            return ""
        return self._parse_version(outcome.raw.stdout_text)

    # ── Hooks ───────────────────────────────────────────────────

    @abstractmethod
    def _search(self, query: str, opts: Options) -> OperationResult: ...

    @abstractmethod
    def _list_installed(self, names: list[str], opts: Options) -> OperationResult: ...

    @abstractmethod
    def _list_upgradable(self, names: list[str], opts: Options) -> OperationResult: ...

    @abstractmethod
    def _install(self, names: list[str], opts: Options) -> OperationResult: ...

    @abstractmethod
    def _remove(self, names: list[str], opts: Options) -> OperationResult: ...

    @abstractmethod
    def _refresh(self, names: list[str], opts: Options) -> OperationResult: ...

    @abstractmethod
    def _upgrade(self, names: list[str], opts: Options) -> OperationResult: ...

    @abstractmethod
    def _get_info(self, name: str, opts: Options) -> OperationResult: ...

    def _clean(self, names: list[str], opts: Options) -> OperationResult:
        return OperationResult.noop(self.name, Operation.CLEAN, f"{self.name} has no cache to clean")

    def _autoremove(self, names: list[str], opts: Options) -> OperationResult:
        return OperationResult.noop(
            self.name, Operation.AUTOREMOVE, f"{self.name} does not track orphaned packages"
        )

    def _verify_args(self, name: str) -> tuple[str, list[str]]:
        """(program, args) that exit 0 only when ``name`` is installed."""
        raise NotImplementedError

    def _parse_verified(self, name: str, text: str) -> PackageRecord:
        """Record for a package the verify command confirmed."""
        return PackageRecord(name=name, status=PackageStatus.INSTALLED, manager=self.name)

    def _verify(self, names: list[str], opts: Options) -> OperationResult:
        records = []
        outcome: OperationOutcome | None = None
        for name in names:
            program, args = self._verify_args(name)
            outcome = self._run(Operation.VERIFY, args, opts, program=program, passthrough=False)
            if outcome.ok and outcome.raw is not None:
                record = self._parse_verified(name, outcome.raw.stdout_text)
                if record.status == PackageStatus.INSTALLED:
                    records.append(record.evolve(extra={**record.extra, "verified": "true"}))
                else:
                    records.append(record.evolve(
                        status=PackageStatus.UNKNOWN,
                        extra={**record.extra, "verified": "false", "issue": "not fully installed"},
                    ))
            elif outcome.kind == OutcomeKind.NOT_FOUND:
                records.append(PackageRecord(
                    name=name,
                    status=PackageStatus.UNKNOWN,
                    manager=self.name,
                    extra={"verified": "false", "issue": outcome.detail or "not installed"},
                ))
            else:
                return self._failure(Operation.VERIFY, outcome)
        return OperationResult.success(
            self.name, Operation.VERIFY, records, raw=outcome.raw if outcome else None,
        )

    def _parse_version(self, text: str) -> str:
        for token in text.split():
            if token[:1].isdigit():
                return token.rstrip(",")
        return ""

    def _status(self, names: list[str], opts: Options) -> OperationResult:
        status = ManagerStatus(manager=self.name)
        status.available = self.is_available()
        if not status.available:
            status.issues.append(f"{self.binary} is not available on this system")
            return OperationResult.success(self.name, Operation.STATUS, manager_status=status)

        status.version = self.version()
        installed = self._list_installed([], opts)
        if installed.ok:
            status.installed_count = len(installed.packages)
        else:
            status.issues.append(f"cannot list installed packages: {installed.detail}")
        self._status_details(status, opts)
        status.healthy = not status.issues
        return OperationResult.success(self.name, Operation.STATUS, manager_status=status)

    def _status_details(self, status: ManagerStatus, opts: Options) -> None:
        """Fill manager-specific status fields (cache size, last refresh)."""

    # ── Execution helpers ───────────────────────────────────────

    def _dispatch(
        self,
        operation: Operation,
        impl: Callable[..., OperationResult],
        names: str | Iterable[str] | None,
        opts: Options | None,
        optional: bool = False,
    ) -> OperationResult:
        started = time.monotonic()
        opts = opts or Options()
        try:
            validate_flags(opts.custom_args)
            if operation in (Operation.SEARCH, Operation.GET_INFO):
                validate([names])
                arg = names
            else:
                arg = _as_names(names)
                if arg or (names is not None and not optional):
                    validate(arg)
        except ValidationError as e:
            logger.debug("%s %s rejected: %s", self.name, operation.value, e.detail)
            return OperationResult.failure(
                self.name, operation, OutcomeKind.USAGE_ERROR, e.detail, dry_run=opts.dry_run,
            )

        result = impl(arg, opts)
        if opts.dry_run and not result.dry_run:
            result = result.model_copy(update={"dry_run": True})
        if result.failed:
            logger.info("%s %s failed (%s): %s", self.name, operation.value, result.kind, result.detail)
        return result.timed(started)

    def _confirm(self, opts: Options, flag: str = "-y") -> list[str]:
        """The tool's assume-yes flag unless a human answers prompts."""
        if opts.interactive and not opts.assume_yes:
            return []
        return [flag]

    def _run(
        self,
        operation: Operation,
        args: Sequence[str],
        opts: Options,
        program: str | None = None,
        passthrough: bool = True,
    ) -> OperationOutcome:
        """Run one command and classify it.

        ``passthrough`` inserts ``opts.custom_args`` after the subcommand;
        secondary queries (status passes, version probes) set it False.
        Mutating operations run attached to the terminal when
        ``opts.interactive`` is set.
        """
        args = list(args)
        if passthrough and opts.custom_args:
            args = [*args[:1], *opts.custom_args, *args[1:]]
        program = program or self.binary
        timeout = self._timeout(opts)

        if opts.interactive and operation.is_mutating and passthrough:
            result = self.runner.run_interactive(program, args, self.env, timeout)
        else:
            result = self.runner.run(program, args, self.env, timeout)

        if (opts.verbose or opts.debug) and result.captured:
            for line in split_lines(result.stdout_text):
                logger.debug("[%s] %s", self.name, line)
        return self.classifier.classify(operation, result)

    def _timeout(self, opts: Options) -> float | None:
        """Per-command timeout: the call's or adapter's, cut to the deadline."""
        timeout = opts.timeout or self.timeout
        if self.deadline is None:
            return timeout
        remaining = max(self.deadline - time.monotonic(), _MIN_TIMEOUT)
        return remaining if timeout is None else min(timeout, remaining)

    def _check_timeout(self) -> float:
        """Timeout for availability and version checks."""
        return self._timeout(Options(timeout=CHECK_TIMEOUT))

    def _failure(self, operation: Operation, outcome: OperationOutcome) -> OperationResult:
        return OperationResult.failure(
            self.name, operation, outcome.kind, outcome.detail, raw=outcome.raw,
        )

    def _result(
        self,
        operation: Operation,
        outcome: OperationOutcome,
        parse: Parser | None = None,
    ) -> OperationResult:
        """Turn a classified outcome into a result, parsing only on ok."""
        if not outcome.ok:
            return self._failure(operation, outcome)
        raw = outcome.raw
        if raw is not None and not raw.captured:
            return OperationResult.success(
                self.name, operation, detail="interactive run, output not captured", raw=raw,
            )
        packages = parse(raw.stdout_text) if parse and raw is not None else []
        return OperationResult.success(self.name, operation, packages, raw=raw)

    def _call(
        self,
        operation: Operation,
        args: Sequence[str],
        opts: Options,
        parse: Parser | None = None,
    ) -> OperationResult:
        """Shorthand for ``_result(_run(...))`` on the primary command."""
        return self._result(operation, self._run(operation, args, opts), parse)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r} binary={self.binary!r}>"
