"""
Snap classifier.

snap exits 1 for every failure, so the kind comes entirely from the
message text. Permission wording is checked before "cannot communicate
with server", which snap also prints when the socket refuses a user.
"""

from __future__ import annotations

from syspkg.core.classifiers.base import PERMISSION_PATTERNS, Classifier, rule
from syspkg.core.models.outcome import Operation, OutcomeKind

RULES = (
    rule(OutcomeKind.OK, "no matching snaps", operations=(Operation.SEARCH,)),
    rule(
        OutcomeKind.OK,
        "all snaps up to date",
        "no updates available",
        operations=(Operation.LIST_UPGRADABLE, Operation.REFRESH, Operation.UPGRADE),
    ),
    rule(OutcomeKind.PERMISSION_DENIED, *PERMISSION_PATTERNS),
    rule(
        OutcomeKind.UNAVAILABLE,
        "cannot communicate with server",
        "snapd is not running",
        "system does not fully support snapd",
    ),
    rule(
        OutcomeKind.NOT_FOUND,
        "not installed",
        "not found",
        "no such package",
        "no snap found",
        "no matching snaps",
    ),
    rule(
        OutcomeKind.USAGE_ERROR,
        "unknown command",
        "unknown flag",
        "the required argument",
        "too many arguments",
    ),
)

classifier = Classifier("snap", RULES)
classify = classifier.classify
