"""
Snap output parsers.

snap prints whitespace-aligned tables whose header row names the
columns; rows are split by that header so a changed column order
does not shift fields. Run snap with ``--unicode=never`` so
verified publishers read ``canonical**`` rather than ``canonical✓``.
"""

from __future__ import annotations

import re

from syspkg.core.models.package import PackageRecord, PackageStatus
from syspkg.core.parsers.common import split_lines

MANAGER = "snap"

_CHANGE_LINE = re.compile(
    r"^(\S+)(?: \(([^)]+)\))? (\S+) from (.+?) (installed|refreshed)$"
)
_ALREADY = re.compile(r'^snap "([^"]+)" (?:is already installed|has no updates available)')
_REMOVED = re.compile(r"^(\S+) removed")
_CLOSED_CHANNEL = {"-", "–", "^", "↑", "--"}
_VERIFIED_MARKS = ("**", "*", "✓", "✪")


def _publisher(value: str) -> tuple[str, bool]:
    for mark in _VERIFIED_MARKS:
        if value.endswith(mark):
            return value[: -len(mark)], True
    return value, False


def parse_table(text: str) -> list[dict[str, str]]:
    """Split a snap table into dicts keyed by lower-cased header names.

    The last column absorbs the remainder of the line (summaries
    contain spaces). Rows with fewer fields than the header are skipped.
    """
    header: list[str] = []
    rows = []
    for line in split_lines(text):
        if not line.strip():
            continue
        if line.startswith("Name ") and not header:
            header = [h.lower() for h in line.split()]
            continue
        if not header:
            continue
        fields = line.split(None, len(header) - 1)
        if len(fields) < len(header):
            continue
        rows.append(dict(zip(header, fields, strict=True)))
    return rows


def _extra(row: dict[str, str], *keys: str) -> dict[str, str]:
    extra = {}
    for key in keys:
        value = row.get(key, "")
        if not value or value == "-":
            continue
        if key == "publisher":
            value, verified = _publisher(value)
            if verified:
                extra["verified"] = "true"
        extra[key] = value
    return extra


def parse_search(text: str) -> list[PackageRecord]:
    """Parse ``snap find``: Name Version Publisher Notes Summary."""
    return [
        PackageRecord(
            name=row["name"],
            available_version=row.get("version", ""),
            status=PackageStatus.AVAILABLE,
            manager=MANAGER,
            extra=_extra(row, "publisher", "notes", "summary"),
        )
        for row in parse_table(text)
    ]


def parse_list(text: str) -> list[PackageRecord]:
    """Parse ``snap list``: Name Version Rev Tracking Publisher Notes."""
    return [
        PackageRecord(
            name=row["name"],
            installed_version=row.get("version", ""),
            status=PackageStatus.INSTALLED,
            category=row.get("tracking", "") if row.get("tracking") != "-" else "",
            manager=MANAGER,
            extra=_extra(row, "rev", "tracking", "publisher", "notes"),
        )
        for row in parse_table(text)
    ]


def parse_refresh_list(text: str) -> list[PackageRecord]:
    """Parse ``snap refresh --list``: Name Version Rev Size Publisher Notes.

    The version shown is the one a refresh would bring in.
    """
    return [
        PackageRecord(
            name=row["name"],
            available_version=row.get("version", ""),
            status=PackageStatus.UPGRADABLE,
            manager=MANAGER,
            extra=_extra(row, "rev", "size", "publisher", "notes"),
        )
        for row in parse_table(text)
    ]


def parse_info(text: str) -> PackageRecord | None:
    """Parse ``snap info``.

    Top-level ``key: value`` lines plus an indented ``channels:`` map.
    The tracked channel's version (else the first open channel's) is
    the available version; an ``installed:`` line marks it installed.
    """
    fields: dict[str, str] = {}
    channels: list[tuple[str, str]] = []
    in_channels = False

    for line in split_lines(text):
        if not line.strip():
            continue
        indented = line.startswith(" ")
        key, sep, value = line.strip().partition(":")
        if not indented:
            in_channels = key == "channels"
            if sep and key not in fields:
                fields[key] = value.strip()
            continue
        if in_channels and sep and "/" in key:
            version = value.split()[0] if value.split() else ""
            if version and version not in _CLOSED_CHANNEL:
                channels.append((key.strip(), version))

    name = fields.get("name", "")
    if not name:
        return None

    channel_versions = dict(channels)
    tracking = fields.get("tracking", "")
    available = channel_versions.get(tracking) or (channels[0][1] if channels else "")
    installed = fields.get("installed", "").split()[0] if fields.get("installed") else ""

    status = PackageStatus.AVAILABLE
    if installed:
        status = PackageStatus.INSTALLED
        if available and available != installed:
            status = PackageStatus.UPGRADABLE

    extra = {
        key: fields[key]
        for key in ("summary", "license", "store-url", "snap-id")
        if fields.get(key)
    }
    if fields.get("publisher"):
        publisher, verified = _publisher(fields["publisher"])
        extra["publisher"] = publisher
        if verified:
            extra["verified"] = "true"

    return PackageRecord(
        name=name,
        installed_version=installed,
        available_version=available,
        status=status,
        category=tracking,
        manager=MANAGER,
        extra=extra,
    )


def parse_changes(text: str) -> list[PackageRecord]:
    """Parse ``snap install`` / ``snap refresh`` result lines.

        firefox (latest/stable) 112.0.1-1 from Mozilla** installed
        snap "deja-dup" is already installed, see 'snap help refresh'
        All snaps up to date.
    """
    records = []
    for line in split_lines(text):
        line = line.strip()
        if match := _CHANGE_LINE.match(line):
            name, channel, version, publisher, _verb = match.groups()
            publisher, _ = _publisher(publisher)
            records.append(PackageRecord(
                name=name,
                installed_version=version,
                available_version=version,
                status=PackageStatus.INSTALLED,
                category=channel or "",
                manager=MANAGER,
                extra={"publisher": publisher},
            ))
        elif match := _ALREADY.match(line):
            records.append(PackageRecord(
                name=match.group(1),
                status=PackageStatus.INSTALLED,
                manager=MANAGER,
            ))
    return records


def parse_remove(text: str) -> list[PackageRecord]:
    """Parse ``snap remove``: ``firefox removed (snap data snapshot saved)``."""
    records = []
    for line in split_lines(text):
        match = _REMOVED.match(line.strip())
        if match and not line.startswith("snap "):
            records.append(PackageRecord(
                name=match.group(1),
                status=PackageStatus.AVAILABLE,
                manager=MANAGER,
            ))
    return records
