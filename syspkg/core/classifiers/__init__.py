"""
Exit-code classifiers, one per manager.

    from syspkg.core.classifiers import CLASSIFIERS
    outcome = CLASSIFIERS["yum"].classify(Operation.LIST_UPGRADABLE, result)
"""

from syspkg.core.classifiers import apk, apt, flatpak, snap, yum
from syspkg.core.classifiers.base import Classifier, Rule, error_detail, rule

CLASSIFIERS: dict[str, Classifier] = {
    "apk": apk.classifier,
    "apt": apt.classifier,
    "flatpak": flatpak.classifier,
    "snap": snap.classifier,
    "yum": yum.classifier,
}

__all__ = [
    "CLASSIFIERS",
    "Classifier",
    "Rule",
    "error_detail",
    "rule",
]
