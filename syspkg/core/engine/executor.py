"""
Fan-out results and process exit codes.

A FanOutReport collects one OperationResult per adapter from a
concurrent dispatch. Its status mirrors how the CLI reports the
run to the operator:

    ok       every adapter succeeded
    partial  some succeeded, some failed
    failed   every adapter failed
    empty    no adapter was available
"""

from __future__ import annotations

from dataclasses import dataclass, field

from syspkg.core.models.outcome import Operation, OperationResult, OutcomeKind
from syspkg.core.models.package import PackageRecord

# ── Exit codes ──────────────────────────────────────────────────

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_PARTIAL = 3
EXIT_UNAVAILABLE = 69       # EX_UNAVAILABLE
EXIT_PERMISSION = 77        # EX_NOPERM
EXIT_INTERRUPTED = 130

_EXIT_BY_KIND = {
    OutcomeKind.OK: EXIT_OK,
    OutcomeKind.NOT_FOUND: EXIT_FAILURE,
    OutcomeKind.GENERAL_ERROR: EXIT_FAILURE,
    OutcomeKind.USAGE_ERROR: EXIT_USAGE,
    OutcomeKind.UNAVAILABLE: EXIT_UNAVAILABLE,
    OutcomeKind.PERMISSION_DENIED: EXIT_PERMISSION,
}


def exit_code_for(kind: OutcomeKind) -> int:
    """Process exit code for a single operation outcome."""
    return _EXIT_BY_KIND.get(kind, EXIT_FAILURE)


# ── Fan-out report ──────────────────────────────────────────────


@dataclass
class FanOutReport:
    """Per-adapter results of one fan-out call. Unordered by contract."""

    operation: Operation
    results: dict[str, OperationResult] = field(default_factory=dict)
    duration_ms: int = 0

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> list[str]:
        return sorted(name for name, r in self.results.items() if r.ok)

    @property
    def failed(self) -> list[str]:
        return sorted(name for name, r in self.results.items() if r.failed)

    @property
    def all_ok(self) -> bool:
        return bool(self.results) and not self.failed

    @property
    def status(self) -> str:
        if not self.results:
            return "empty"
        if not self.failed:
            return "ok"
        if self.succeeded:
            return "partial"
        return "failed"

    @property
    def exit_code(self) -> int:
        """Exit code for the whole run.

        A single failing kind keeps its own code when nothing succeeded;
        mixed outcomes are EXIT_PARTIAL. No available adapter at all is
        EXIT_UNAVAILABLE.
        """
        status = self.status
        if status == "ok":
            return EXIT_OK
        if status == "empty":
            return EXIT_UNAVAILABLE
        if status == "partial":
            return EXIT_PARTIAL
        kinds = {r.kind for r in self.results.values()}
        return exit_code_for(kinds.pop()) if len(kinds) == 1 else EXIT_FAILURE

    def get(self, name: str) -> OperationResult | None:
        return self.results.get(name)

    def packages(self) -> list[PackageRecord]:
        """All records from successful adapters, grouped by adapter name."""
        records: list[PackageRecord] = []
        for name in self.succeeded:
            records.extend(self.results[name].packages)
        return records

    def to_dict(self) -> dict:
        return {
            "operation": self.operation.value,
            "status": self.status,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "duration_ms": self.duration_ms,
            "results": {
                name: self.results[name].model_dump(mode="json")
                for name in sorted(self.results)
            },
        }
