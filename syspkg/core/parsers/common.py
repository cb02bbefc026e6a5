"""
Shared parsing helpers.

Every parser here is a pure function of its input text. Lines that
do not look like records are skipped, never fatal.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from syspkg.core.models.package import PackageRecord, PackageStatus

_APK_RELEASE = re.compile(r"^r\d+$")


def split_lines(text: str) -> list[str]:
    """Split tool output into lines.

    Normalizes CRLF and drops the single trailing newline the tool
    emits, so interior blank lines survive as record separators.
    """
    text = text.replace("\r\n", "\n")
    if text.endswith("\n"):
        text = text[:-1]
    if not text:
        return []
    return text.split("\n")


def split_blocks(text: str) -> list[list[str]]:
    """Split output into blank-line separated blocks of lines."""
    blocks: list[list[str]] = []
    current: list[str] = []
    for line in split_lines(text):
        if line.strip():
            current.append(line)
        elif current:
            blocks.append(current)
            current = []
    if current:
        blocks.append(current)
    return blocks


def split_qualified(token: str, sep: str) -> tuple[str, str]:
    """Split ``name/category`` or ``name:arch`` keeping both parts."""
    head, _, tail = token.partition(sep)
    return head, tail


def parse_key_values(lines: Iterable[str], sep: str = ":") -> dict[str, str]:
    """Read ``Key: value`` lines; the first occurrence of a key wins."""
    fields: dict[str, str] = {}
    for line in lines:
        key, found, value = line.partition(sep)
        key = key.strip()
        if not found or not key:
            continue
        fields.setdefault(key, value.strip())
    return fields


def split_name_version(token: str) -> tuple[str, str]:
    """Split ``name-version`` tokens, honouring an apk ``-rN`` suffix.

        curl-8.5.0-r0        -> ("curl", "8.5.0-r0")
        py3-setuptools-70.3  -> ("py3-setuptools", "70.3")
    """
    parts = token.split("-")
    if len(parts) < 2:
        return token, ""
    if _APK_RELEASE.match(parts[-1]) and len(parts) >= 3:
        return "-".join(parts[:-2]), "-".join(parts[-2:])
    return "-".join(parts[:-1]), parts[-1]


def starts_with_digit(value: str) -> bool:
    return bool(value) and value[0].isdigit()


def tag_dry_run(
    records: Iterable[PackageRecord],
    status: PackageStatus,
) -> list[PackageRecord]:
    """Re-tag records a simulated transaction reported."""
    return [r.evolve(status=status) for r in records]


def merge_installed_versions(
    upgradable: Iterable[PackageRecord],
    installed: Iterable[PackageRecord],
) -> list[PackageRecord]:
    """Fill ``installed_version`` on upgradable records from an installed listing.

    Records whose installed version ends up equal to the available one
    are dropped: there is nothing to upgrade. Records still missing
    either version become UNKNOWN with ``extra["issue"]`` set, so every
    UPGRADABLE record carries two differing versions.
    """
    versions = {r.name: r.installed_version for r in installed}
    merged = []
    for record in upgradable:
        current = record.installed_version or versions.get(record.name, "")
        if current and current == record.available_version:
            continue
        if not current or not record.available_version:
            merged.append(record.evolve(
                installed_version=current,
                status=PackageStatus.UNKNOWN,
                extra={**record.extra, "issue": "update reported without both versions"},
            ))
            continue
        merged.append(record.evolve(installed_version=current, status=PackageStatus.UPGRADABLE))
    return merged


def dedupe(records: Iterable[PackageRecord]) -> list[PackageRecord]:
    """Drop repeated (name, arch) records, keeping the first."""
    seen: set[tuple[str, str]] = set()
    unique = []
    for record in records:
        key = (record.name, record.arch)
        if key in seen:
            continue
        seen.add(key)
        unique.append(record)
    return unique


def merge_install_state(
    records: Iterable[PackageRecord],
    states: Iterable[PackageRecord],
) -> list[PackageRecord]:
    """Resolve install state of repository records from a status pass.

    ``states`` comes from the manager's local database query (dpkg-query,
    rpm -q). Names it reports installed become INSTALLED, or UPGRADABLE
    when the repository candidate differs. Every other record is
    AVAILABLE, including names missing from the status output.
    """
    by_name = {r.name: r for r in states}
    merged = []
    for record in records:
        state = by_name.get(record.name)
        if state is None or state.status != PackageStatus.INSTALLED:
            extra = {**record.extra, **state.extra} if state else record.extra
            merged.append(record.evolve(
                status=PackageStatus.AVAILABLE,
                installed_version="",
                extra=extra,
            ))
            continue

        installed = state.installed_version
        candidate = record.available_version
        status = PackageStatus.INSTALLED
        if installed and candidate and installed != candidate:
            status = PackageStatus.UPGRADABLE
        merged.append(record.evolve(
            status=status,
            installed_version=installed,
            available_version=candidate or installed,
            arch=record.arch or state.arch,
        ))
    return merged


def base_name(target: str) -> str:
    """Strip version, architecture and release qualifiers from a target.

        vim=2:8.2.3995-1  -> vim
        libc6:amd64       -> libc6
        curl/jammy        -> curl
    """
    for sep in ("=", ":", "/"):
        target = target.split(sep, 1)[0]
    return target
