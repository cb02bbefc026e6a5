"""
APT classifier.

apt and apt-get exit 100 for nearly every failure, so 100 alone says
nothing: only recognized wording narrows it down. apt-cache and dpkg
use 1 for "no such package"; apt search exits 1 when nothing matched.
"""

from __future__ import annotations

from syspkg.core.classifiers.base import PERMISSION_PATTERNS, Classifier, rule
from syspkg.core.models.outcome import Operation, OutcomeKind

_TARGETED = (
    Operation.INSTALL,
    Operation.REMOVE,
    Operation.UPGRADE,
    Operation.GET_INFO,
    Operation.VERIFY,
)

RULES = (
    rule(
        OutcomeKind.OK,
        "no packages found",
        "not found",
        codes=(1,),
        operations=(Operation.SEARCH,),
    ),
    rule(OutcomeKind.PERMISSION_DENIED, *PERMISSION_PATTERNS),
    rule(
        OutcomeKind.GENERAL_ERROR,
        "could not get lock",
        detail="package database is locked by another process",
    ),
    rule(
        OutcomeKind.NOT_FOUND,
        "unable to locate package",
        "no packages found",
        "has no installation candidate",
        "is not installed",
        "no such package",
        "not found",
        operations=_TARGETED,
    ),
    # apt-cache show and dpkg -s print nothing useful for unknown names
    rule(OutcomeKind.NOT_FOUND, codes=(1,), operations=(Operation.GET_INFO, Operation.VERIFY)),
    rule(OutcomeKind.USAGE_ERROR, codes=(2,), operations=(Operation.SEARCH,)),
    rule(
        OutcomeKind.USAGE_ERROR,
        "invalid operation",
        "command line option",
        "unknown option",
        "must specify at least one",
    ),
)

classifier = Classifier("apt", RULES)
classify = classifier.classify
