"""
APK output parsers.

apk prints packages as ``name-version-rN`` tokens; see
:func:`~syspkg.core.parsers.common.split_name_version` for the split.
"""

from __future__ import annotations

import re

from syspkg.core.models.package import PackageRecord, PackageStatus
from syspkg.core.parsers.common import split_blocks, split_lines, split_name_version

MANAGER = "apk"

_LIST_LINE = re.compile(r"^(\S+) (\S+) \{([^}]*)\} \(([^)]*)\)(?: \[([^\]]+)\])?")
_CHANGE_LINE = re.compile(
    r"^\(\d+/\d+\) (Installing|Upgrading|Downgrading|Reinstalling|Replacing|Purging|Removing)"
    r" (\S+) \((\S+?)(?: -> (\S+))?\)"
)
_INFO_HEADER = re.compile(r"^(\S+) ([a-z][a-z ]*):$")
_REMOVE_VERBS = {"Purging", "Removing"}


def parse_search(text: str) -> list[PackageRecord]:
    """Parse ``apk search -v``: ``curl-8.5.0-r0 - URL retrival utility``."""
    records = []
    for line in split_lines(text):
        token, _, description = line.strip().partition(" - ")
        if not token or " " in token:
            continue
        name, version = split_name_version(token)
        if not version:
            continue
        records.append(PackageRecord(
            name=name,
            available_version=version,
            status=PackageStatus.AVAILABLE,
            manager=MANAGER,
            extra={"description": description.strip()} if description.strip() else {},
        ))
    return records


def parse_list(text: str) -> list[PackageRecord]:
    """Parse ``apk list --installed`` / ``apk list --upgradable``.

        curl-8.5.0-r0 x86_64 {curl} (curl) [installed]
        musl-1.2.4-r2 x86_64 {musl} (MIT) [upgradable from: musl-1.2.4-r1]

    Bare ``apk info -v`` lines (``curl-8.5.0-r0``) count as installed.
    """
    records = []
    for line in split_lines(text):
        line = line.strip()
        if not line or line.startswith(("WARNING", "ERROR", "fetch ")):
            continue

        match = _LIST_LINE.match(line)
        if match is None:
            if " " in line:
                continue
            name, version = split_name_version(line)
            if version:
                records.append(PackageRecord(
                    name=name,
                    installed_version=version,
                    status=PackageStatus.INSTALLED,
                    manager=MANAGER,
                ))
            continue

        token, arch, origin, license_, marker = match.groups()
        name, version = split_name_version(token)
        installed = ""
        available = version
        status = PackageStatus.AVAILABLE
        marker = marker or ""
        if marker.startswith("upgradable from:"):
            _, installed = split_name_version(marker.split(":", 1)[1].strip())
            status = PackageStatus.UPGRADABLE
        elif marker == "installed":
            installed = version
            status = PackageStatus.INSTALLED

        extra = {"origin": origin} if origin else {}
        if license_:
            extra["license"] = license_
        records.append(PackageRecord(
            name=name,
            installed_version=installed,
            available_version=available,
            status=status,
            arch=arch,
            manager=MANAGER,
            extra=extra,
        ))
    return records


def parse_info(text: str) -> PackageRecord | None:
    """Parse ``apk info name``: blocks headed ``curl-8.5.0-r0 description:``."""
    token = ""
    fields: dict[str, str] = {}
    for block in split_blocks(text):
        match = _INFO_HEADER.match(block[0].strip())
        if not match:
            continue
        token = token or match.group(1)
        value = " ".join(line.strip() for line in block[1:])
        fields.setdefault(match.group(2), value)

    if not token:
        return None
    name, version = split_name_version(token)
    extra = {
        key.replace(" ", "_"): fields[key]
        for key in ("description", "webpage", "installed size", "license")
        if fields.get(key)
    }
    return PackageRecord(
        name=name,
        available_version=version,
        status=PackageStatus.AVAILABLE,
        manager=MANAGER,
        extra=extra,
    )


def parse_changes(text: str) -> list[PackageRecord]:
    """Parse ``apk add/del/upgrade`` progress lines.

        (1/2) Installing ca-certificates (20230506-r0)
        (1/1) Upgrading musl (1.2.4-r1 -> 1.2.4-r2)
        (1/1) Purging curl (8.5.0-r0)
    """
    records = []
    for line in split_lines(text):
        match = _CHANGE_LINE.match(line.strip())
        if not match:
            continue
        verb, name, first, second = match.groups()
        if verb in _REMOVE_VERBS:
            records.append(PackageRecord(
                name=name,
                status=PackageStatus.AVAILABLE,
                manager=MANAGER,
                extra={"removed_version": first},
            ))
            continue
        version = second or first
        extra = {"previous_version": first} if second else {}
        records.append(PackageRecord(
            name=name,
            installed_version=version,
            available_version=version,
            status=PackageStatus.INSTALLED,
            manager=MANAGER,
            extra=extra,
        ))
    return records


def parse_version(text: str) -> str:
    """``apk-tools 2.14.0, compiled for x86_64.`` -> ``2.14.0``."""
    for line in split_lines(text):
        parts = line.replace(",", " ").split()
        if len(parts) >= 2 and parts[0] == "apk-tools":
            return parts[1]
    return ""
