"""
Input validation - the single choke point before any process spawn.

Package names and extra tool flags supplied by callers are checked
against an allow-list. Arguments never pass through a shell, so this
is about keeping hostile or malformed values away from the tools'
own argument parsers.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from syspkg.core.models.outcome import OperationError, OutcomeKind

MAX_NAME_LENGTH = 255

# Alphanumerics plus . _ + : ~ = / -  (pkg:amd64, pkg=1.2-3, pkg/jammy-backports)
_NAME_RE = re.compile(r"^[A-Za-z0-9._+:~=/-]+$")

# Long or short flags with an optional simple value: --no-cache, -q, --setopt=x=y
_FLAG_RE = re.compile(r"^--?[A-Za-z0-9][A-Za-z0-9=._:/+-]*$")


class ValidationError(OperationError):
    """Raised when caller-supplied input is rejected before execution."""

    def __init__(self, detail: str, value: str | None = None):
        super().__init__(OutcomeKind.USAGE_ERROR, detail)
        self.value = value


def validate_package_name(name: str) -> None:
    """Reject a single package name that is not a safe identifier."""
    if not isinstance(name, str):
        raise ValidationError(f"package name must be a string, got {type(name).__name__}")
    if not name:
        raise ValidationError("package name cannot be empty", name)
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(
            f"package name too long ({len(name)} > {MAX_NAME_LENGTH} characters)", name
        )
    if name.startswith("-"):
        raise ValidationError(f"package name cannot start with '-': {name!r}", name)
    if not _NAME_RE.fullmatch(name):
        raise ValidationError(f"invalid package name: {name!r}", name)


def validate(names: Iterable[str]) -> None:
    """Validate a batch of package names.

    Raises:
        ValidationError: On an empty batch or the first offending name.
    """
    if isinstance(names, str):
        names = [names]
    names = list(names)
    if not names:
        raise ValidationError("no package names given")
    for name in names:
        validate_package_name(name)


def validate_flags(flags: Iterable[str]) -> None:
    """Validate extra command-line flags passed through to a tool."""
    for flag in flags:
        if not isinstance(flag, str) or not _FLAG_RE.fullmatch(flag):
            raise ValidationError(f"invalid extra argument: {flag!r}", str(flag))
