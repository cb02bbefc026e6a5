"""
APK classifier.

apk keeps a distinct exit code (77) for permission failures, separate
from the 1 it uses for unknown packages. An empty search exits 1.
"""

from __future__ import annotations

from syspkg.core.classifiers.base import PERMISSION_PATTERNS, Classifier, rule
from syspkg.core.models.outcome import Operation, OutcomeKind

RULES = (
    rule(OutcomeKind.OK, codes=(1,), operations=(Operation.SEARCH,)),
    rule(OutcomeKind.USAGE_ERROR, codes=(2,), operations=(Operation.SEARCH,)),
    rule(OutcomeKind.PERMISSION_DENIED, codes=(77,)),
    rule(OutcomeKind.PERMISSION_DENIED, *PERMISSION_PATTERNS, "unable to lock database"),
    rule(
        OutcomeKind.NOT_FOUND,
        "no such package",
        "unable to select packages",
        "not found",
        operations=(
            Operation.INSTALL,
            Operation.REMOVE,
            Operation.UPGRADE,
            Operation.GET_INFO,
            Operation.VERIFY,
        ),
    ),
    # apk info -e exits 1 for a name that is not installed
    rule(OutcomeKind.NOT_FOUND, codes=(1,), operations=(Operation.VERIFY,)),
    rule(OutcomeKind.USAGE_ERROR, "unrecognized option", "unknown applet", "unknown option"),
)

classifier = Classifier("apk", RULES)
classify = classifier.classify
