"""
Domain models - normalized package and outcome types.

All models are re-exported here for convenient access:

    from syspkg.core.models import PackageRecord, OperationResult, OutcomeKind
"""

from syspkg.core.models.outcome import (
    ExecutionResult,
    Operation,
    OperationError,
    OperationOutcome,
    OperationResult,
    OutcomeKind,
)
from syspkg.core.models.package import ManagerStatus, PackageRecord, PackageStatus

__all__ = [
    # outcome.py
    "ExecutionResult",
    # package.py
    "ManagerStatus",
    "Operation",
    "OperationError",
    "OperationOutcome",
    "OperationResult",
    "OutcomeKind",
    "PackageRecord",
    "PackageStatus",
]
