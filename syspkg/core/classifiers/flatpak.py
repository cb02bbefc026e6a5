"""Flatpak classifier. Failures exit 1; the message decides the kind."""

from __future__ import annotations

from syspkg.core.classifiers.base import PERMISSION_PATTERNS, Classifier, rule
from syspkg.core.models.outcome import Operation, OutcomeKind

RULES = (
    rule(OutcomeKind.OK, "no matches found", operations=(Operation.SEARCH,)),
    rule(
        OutcomeKind.OK,
        "nothing to do",
        "nothing unused to uninstall",
        "already installed",
        operations=(
            Operation.INSTALL,
            Operation.UPGRADE,
            Operation.CLEAN,
            Operation.AUTOREMOVE,
        ),
    ),
    rule(OutcomeKind.PERMISSION_DENIED, *PERMISSION_PATTERNS, "not allowed for user"),
    rule(
        OutcomeKind.NOT_FOUND,
        "not installed",
        "nothing matches",
        "no remote refs found",
        "no installed refs found",
        "unable to find",
        "not found",
    ),
    rule(
        OutcomeKind.USAGE_ERROR,
        "unknown option",
        "unknown command",
        "flatpak --help",
    ),
)

classifier = Classifier("flatpak", RULES)
classify = classifier.classify
