"""
Outcome models - from raw process output to a typed result.

    ExecutionResult   what one external command produced
    OperationOutcome  how a manager's classifier reads that result
    OperationResult   what an adapter hands back to its caller

Adapters return OperationResult for every classified outcome,
including failures. Exceptions are reserved for callers that ask
for them via ``OperationResult.unwrap()``.
"""

from __future__ import annotations

import shlex
import time
from dataclasses import dataclass, field
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from syspkg.core.models.package import ManagerStatus, PackageRecord


class Operation(StrEnum):
    """The normalized operation set. Values match adapter method names."""

    SEARCH = "search"
    LIST_INSTALLED = "list_installed"
    LIST_UPGRADABLE = "list_upgradable"
    LIST_PACKAGES = "list_packages"
    INSTALL = "install"
    REMOVE = "remove"
    REFRESH = "refresh"
    UPGRADE = "upgrade"
    CLEAN = "clean"
    AUTOREMOVE = "autoremove"
    VERIFY = "verify"
    GET_INFO = "get_info"
    STATUS = "status"

    @property
    def is_mutating(self) -> bool:
        return self in _MUTATING


_MUTATING = frozenset({
    Operation.INSTALL,
    Operation.REMOVE,
    Operation.REFRESH,
    Operation.UPGRADE,
    Operation.CLEAN,
    Operation.AUTOREMOVE,
})


class OutcomeKind(StrEnum):
    OK = "ok"
    NOT_FOUND = "not-found"
    PERMISSION_DENIED = "permission-denied"
    USAGE_ERROR = "usage-error"
    UNAVAILABLE = "unavailable"
    GENERAL_ERROR = "general-error"


# ── Raw execution ───────────────────────────────────────────────


@dataclass(frozen=True)
class ExecutionResult:
    """Output of one external command invocation.

    When ``invocation_error`` is set the process never ran to
    completion (missing binary, deadline hit) and ``exit_code`` is
    not meaningful. Interactive runs set ``captured=False`` and leave
    both streams empty.
    """

    exit_code: int = -1
    stdout: bytes = b""
    stderr: bytes = b""
    invocation_error: str | None = None
    timed_out: bool = False
    captured: bool = True
    command: tuple[str, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return self.invocation_error is None and self.exit_code == 0

    @property
    def stdout_text(self) -> str:
        return self.stdout.decode("utf-8", errors="replace")

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")

    @property
    def command_line(self) -> str:
        return shlex.join(self.command)


@dataclass(frozen=True)
class OperationOutcome:
    """A classifier's verdict on one ExecutionResult."""

    kind: OutcomeKind
    detail: str = ""
    raw: ExecutionResult | None = None

    @property
    def ok(self) -> bool:
        return self.kind == OutcomeKind.OK


# ── Adapter results ─────────────────────────────────────────────


class OperationError(Exception):
    """A failed operation, for callers that prefer exceptions."""

    def __init__(
        self,
        kind: OutcomeKind,
        detail: str,
        manager: str = "",
        operation: Operation | None = None,
    ):
        super().__init__(detail)
        self.kind = kind
        self.detail = detail
        self.manager = manager
        self.operation = operation

    def __str__(self) -> str:
        prefix = f"{self.manager}: " if self.manager else ""
        return f"{prefix}{self.detail} ({self.kind.value})"


class OperationResult(BaseModel):
    """Result of one adapter operation.

    ``kind`` is OK or one of the failure kinds. On failure ``detail``
    carries enough text to show the user; ``raw`` keeps the last
    ExecutionResult for diagnostics and is never serialized.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    manager: str
    operation: Operation
    kind: OutcomeKind = OutcomeKind.OK
    detail: str = ""
    packages: list[PackageRecord] = Field(default_factory=list)
    manager_status: ManagerStatus | None = None
    dry_run: bool = False
    duration_ms: int = 0
    raw: ExecutionResult | None = Field(default=None, exclude=True, repr=False)

    @property
    def ok(self) -> bool:
        return self.kind == OutcomeKind.OK

    @property
    def failed(self) -> bool:
        return not self.ok

    @property
    def package(self) -> PackageRecord | None:
        """First record, for single-package operations like get_info."""
        return self.packages[0] if self.packages else None

    def unwrap(self) -> list[PackageRecord]:
        """Return the packages, or raise OperationError on failure."""
        if self.failed:
            raise OperationError(self.kind, self.detail, self.manager, self.operation)
        return self.packages

    def timed(self, started: float) -> OperationResult:
        """Copy with duration measured from a ``time.monotonic()`` start."""
        elapsed_ms = int((time.monotonic() - started) * 1000)
        return self.model_copy(update={"duration_ms": elapsed_ms})

    # ── Factory methods ─────────────────────────────────────────

    @classmethod
    def success(
        cls,
        manager: str,
        operation: Operation,
        packages: list[PackageRecord] | None = None,
        **kwargs,
    ) -> OperationResult:
        return cls(
            manager=manager,
            operation=operation,
            packages=packages or [],
            **kwargs,
        )

    @classmethod
    def failure(
        cls,
        manager: str,
        operation: Operation,
        kind: OutcomeKind,
        detail: str,
        **kwargs,
    ) -> OperationResult:
        if kind == OutcomeKind.OK:
            raise ValueError("failure() needs a failure kind")
        return cls(
            manager=manager,
            operation=operation,
            kind=kind,
            detail=detail,
            **kwargs,
        )

    @classmethod
    def noop(
        cls,
        manager: str,
        operation: Operation,
        detail: str = "nothing to do",
        **kwargs,
    ) -> OperationResult:
        """Empty success for operations a manager has no concept of."""
        return cls(manager=manager, operation=operation, detail=detail, **kwargs)
