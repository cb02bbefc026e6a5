"""
Classifier base - ordered rules from (exit code, output) to outcome kind.

Each manager declares its own table of rules. A rule matches on any
combination of operation, exit code and case-insensitive substrings
of the captured output. The first match wins; a nonzero exit that
matches nothing is a general error. Exit code 0 is always ok.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from syspkg.core.models.outcome import (
    ExecutionResult,
    Operation,
    OperationOutcome,
    OutcomeKind,
)

# Wording used by most tools when the caller lacks privileges
PERMISSION_PATTERNS = (
    "permission denied",
    "are you root",
    "try with sudo",
    "operation not permitted",
    "access denied",
    "must be run as root",
    "requires root",
    "superuser privileges",
    "need to be root",
)

_ERROR_PREFIXES = ("E: ", "Error: ", "error: ", "ERROR: ", "W: ")


@dataclass(frozen=True)
class Rule:
    """One line of a manager's exit-code table.

    Empty ``codes`` means any nonzero exit, empty ``patterns`` means any
    output, empty ``operations`` means every operation.
    """

    kind: OutcomeKind
    codes: frozenset[int] = frozenset()
    patterns: tuple[str, ...] = ()
    operations: frozenset[Operation] = frozenset()
    detail: str = ""

    def matches(self, operation: Operation, exit_code: int, text: str) -> bool:
        if self.operations and operation not in self.operations:
            return False
        if self.codes and exit_code not in self.codes:
            return False
        if self.patterns and not any(p in text for p in self.patterns):
            return False
        return True


def rule(
    kind: OutcomeKind,
    *patterns: str,
    codes: Iterable[int] = (),
    operations: Iterable[Operation] = (),
    detail: str = "",
) -> Rule:
    """Build a Rule; patterns are matched case-insensitively."""
    return Rule(
        kind=kind,
        codes=frozenset(codes),
        patterns=tuple(p.lower() for p in patterns),
        operations=frozenset(operations),
        detail=detail,
    )


def strip_error_prefix(line: str) -> str:
    for prefix in _ERROR_PREFIXES:
        if line.startswith(prefix):
            return line[len(prefix):].strip()
    return line.strip()


def error_detail(result: ExecutionResult) -> str:
    """Human-readable excerpt explaining a failed command."""
    if result.invocation_error:
        return result.invocation_error
    for stream in (result.stderr_text, result.stdout_text):
        for line in stream.splitlines():
            # apt prints a CLI-stability warning before the real error
            if not line.strip() or "does not have a stable CLI interface" in line:
                continue
            return strip_error_prefix(line)
    program = result.command[0] if result.command else "command"
    return f"{program} exited with code {result.exit_code}"


class Classifier:
    """Maps ExecutionResults to OperationOutcomes for one manager.

    Pure: the verdict depends only on the operation and the result.
    """

    def __init__(self, manager: str, rules: Iterable[Rule]):
        self.manager = manager
        self.rules = tuple(rules)

    def classify(self, operation: Operation, result: ExecutionResult) -> OperationOutcome:
        if result.invocation_error is not None:
            kind = OutcomeKind.GENERAL_ERROR if result.timed_out else OutcomeKind.UNAVAILABLE
            return OperationOutcome(kind, result.invocation_error, result)

        if result.exit_code == 0:
            return OperationOutcome(OutcomeKind.OK, "", result)

        text = f"{result.stderr_text}\n{result.stdout_text}".lower()
        for r in self.rules:
            if r.matches(operation, result.exit_code, text):
                detail = "" if r.kind == OutcomeKind.OK else (r.detail or error_detail(result))
                return OperationOutcome(r.kind, detail, result)

        return OperationOutcome(OutcomeKind.GENERAL_ERROR, error_detail(result), result)

    def __repr__(self) -> str:
        return f"<Classifier manager={self.manager!r} rules={len(self.rules)}>"
