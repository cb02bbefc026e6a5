"""
YUM/DNF classifier.

``yum check-update`` exits 100 when updates exist; for that query 100
is a successful answer, not a failure. Empty searches exit 1 with
"No matches found".
"""

from __future__ import annotations

from syspkg.core.classifiers.base import PERMISSION_PATTERNS, Classifier, rule
from syspkg.core.models.outcome import Operation, OutcomeKind

_QUERIES = (Operation.SEARCH, Operation.LIST_INSTALLED, Operation.LIST_UPGRADABLE)
_TARGETED = (
    Operation.INSTALL,
    Operation.REMOVE,
    Operation.UPGRADE,
    Operation.GET_INFO,
    Operation.VERIFY,
)

RULES = (
    rule(OutcomeKind.OK, codes=(100,), operations=(Operation.LIST_UPGRADABLE,)),
    rule(
        OutcomeKind.OK,
        "no matches found",
        "no matching packages",
        codes=(1,),
        operations=_QUERIES,
    ),
    # rpm -q status passes exit nonzero for each unknown name
    rule(
        OutcomeKind.OK,
        "is not installed",
        operations=(Operation.SEARCH, Operation.LIST_UPGRADABLE),
    ),
    rule(
        OutcomeKind.OK,
        "no packages marked for update",
        operations=(Operation.LIST_UPGRADABLE, Operation.UPGRADE),
    ),
    rule(
        OutcomeKind.OK,
        "nothing to do",
        "already installed",
        operations=(Operation.INSTALL, Operation.UPGRADE, Operation.AUTOREMOVE),
    ),
    rule(OutcomeKind.PERMISSION_DENIED, *PERMISSION_PATTERNS),
    rule(
        OutcomeKind.NOT_FOUND,
        "no package",
        "unable to find a match",
        "no match for argument",
        "no matching packages",
        "is not installed",
        operations=_TARGETED,
    ),
    # rpm -q exits 1 per unknown name
    rule(OutcomeKind.NOT_FOUND, codes=(1,), operations=(Operation.VERIFY,)),
    rule(
        OutcomeKind.USAGE_ERROR,
        "no such command",
        "unknown argument",
        "unrecognized arguments",
        "command line error",
    ),
)

classifier = Classifier("yum", RULES)
classify = classifier.classify
