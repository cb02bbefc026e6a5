"""
APT output parsers.

Covers apt, apt-cache and dpkg-query text. apt search only lists
repository candidates, so search results get their install state from
a second ``dpkg-query`` pass (see :func:`parse_dpkg_status` and
:func:`~syspkg.core.parsers.common.merge_install_state`).
"""

from __future__ import annotations

import re

from syspkg.core.models.package import PackageRecord, PackageStatus
from syspkg.core.parsers.common import (
    dedupe,
    parse_key_values,
    split_blocks,
    split_lines,
    split_qualified,
)

MANAGER = "apt"

_SETTING_UP = re.compile(r"^Setting up ([\w.+-]+)(?::([\w-]+))? \(([^)]+)\)")
_REMOVING = re.compile(r"^Removing\s+(\S+?)(?::(\S+))?\s+\(([^)]+)\)")
_SIM_INST = re.compile(
    r"^Inst (\S+?)(?::(\S+))? (?:\[([^\]]+)\] )?\((\S+)(?: (.*?))?(?: \[([^\]]+)\])?\)"
)
_SIM_REMV = re.compile(r"^Remv (\S+?)(?::(\S+))?(?: \[([^\]]+)\])?$")
_MARKERS = re.compile(r"\[(.+)\]\s*$")
_BANNERS = ("Sorting...", "Full Text Search...", "Listing...", "WARNING:")

# dpkg package states that count as present on the system
_INSTALLED_STATES = {"installed", "triggers-awaited", "triggers-pending"}


# ── apt install / remove ────────────────────────────────────────


def parse_install(text: str) -> list[PackageRecord]:
    """Parse ``apt install`` output: one record per "Setting up" line."""
    records = []
    for line in split_lines(text):
        match = _SETTING_UP.match(line.strip())
        if not match:
            continue
        name, arch, version = match.groups()
        records.append(PackageRecord(
            name=name,
            arch=arch or "",
            installed_version=version,
            available_version=version,
            status=PackageStatus.INSTALLED,
            manager=MANAGER,
        ))
    return dedupe(records)


def parse_remove(text: str) -> list[PackageRecord]:
    """Parse ``apt remove`` output: one record per "Removing" line."""
    records = []
    for line in split_lines(text):
        match = _REMOVING.match(line.strip())
        if not match:
            continue
        name, arch, version = match.groups()
        records.append(PackageRecord(
            name=name,
            arch=arch or "",
            status=PackageStatus.AVAILABLE,
            manager=MANAGER,
            extra={"removed_version": version},
        ))
    return dedupe(records)


def parse_simulation(text: str) -> list[PackageRecord]:
    """Parse ``--dry-run`` transaction lines.

        Inst vim (2:8.2.3995-1ubuntu2.15 Ubuntu:22.04/jammy-updates [amd64])
        Inst libssl3 [3.0.2-0ubuntu1.9] (3.0.2-0ubuntu1.10 Ubuntu:22.04/jammy-updates [amd64])
        Remv cowsay [3.03+dfsg2-8]

    New packages become WOULD_INSTALL, packages with a current version
    UPGRADABLE, removals WOULD_REMOVE. "Conf" lines repeat "Inst" and
    are ignored.
    """
    records = []
    for line in split_lines(text):
        line = line.strip()
        if match := _SIM_INST.match(line):
            name, qualifier, current, new, origin, arch = match.groups()
            records.append(PackageRecord(
                name=name,
                arch=arch or qualifier or "",
                installed_version=current or "",
                available_version=new,
                status=PackageStatus.UPGRADABLE if current else PackageStatus.WOULD_INSTALL,
                category=_origin_suite(origin or ""),
                manager=MANAGER,
            ))
        elif match := _SIM_REMV.match(line):
            name, qualifier, current = match.groups()
            records.append(PackageRecord(
                name=name,
                arch=qualifier or "",
                installed_version=current or "",
                status=PackageStatus.WOULD_REMOVE,
                manager=MANAGER,
            ))
    return dedupe(records)


def _origin_suite(origin: str) -> str:
    # "Ubuntu:22.04/jammy-updates" -> "jammy-updates"
    first = origin.split(",")[0].strip()
    return first.rsplit("/", 1)[-1] if "/" in first else first


# ── apt search / apt list ───────────────────────────────────────


def _parse_list_line(line: str) -> PackageRecord | None:
    """Parse one ``name/suite version arch [markers]`` line."""
    parts = line.split()
    if len(parts) < 3 or "/" not in parts[0]:
        return None

    name, suites = split_qualified(parts[0], "/")
    if not name:
        return None
    category = suites.split(",")[0]
    version, arch = parts[1], parts[2]

    installed = ""
    available = version
    status = PackageStatus.UNKNOWN
    extra: dict[str, str] = {}

    match = _MARKERS.search(line)
    markers = [m.strip() for m in match.group(1).split(",")] if match else []
    for marker in markers:
        if marker.startswith("upgradable from:"):
            installed = marker.split(":", 1)[1].strip()
            status = PackageStatus.UPGRADABLE
        elif marker.startswith("upgradable to:"):
            installed = version
            available = marker.split(":", 1)[1].strip()
            status = PackageStatus.UPGRADABLE
        elif marker == "installed" and status != PackageStatus.UPGRADABLE:
            installed = version
            status = PackageStatus.INSTALLED
        elif marker == "residual-config":
            status = PackageStatus.AVAILABLE
            extra["dpkg_state"] = "config-files"
        elif marker == "automatic":
            extra["automatic"] = "true"

    return PackageRecord(
        name=name,
        installed_version=installed,
        available_version=available,
        status=status,
        category=category,
        arch=arch,
        manager=MANAGER,
        extra=extra,
    )


def parse_search(text: str) -> list[PackageRecord]:
    """Parse ``apt search`` output.

    Each hit is a two-line block separated by a blank line:

        zutty/jammy 0.11.2.20220109.192032+dfsg1-1 amd64
          Efficient full-featured X11 terminal emulator

    Returned records carry the repository candidate as
    ``available_version``; status stays UNKNOWN unless apt printed an
    install marker. Run ``merge_install_state`` to resolve it.
    """
    records = []
    for block in split_blocks(text):
        lines = [line for line in block if not line.startswith(_BANNERS)]
        if not lines:
            continue
        record = _parse_list_line(lines[0])
        if record is None:
            continue
        if len(lines) > 1:
            record = record.evolve(extra={**record.extra, "description": lines[1].strip()})
        records.append(record)
    return records


def parse_list_upgradable(text: str) -> list[PackageRecord]:
    """Parse ``apt list --upgradable``.

        Listing...
        cloudflared/unknown 2023.4.0 amd64 [upgradable from: 2023.3.1]
    """
    records = []
    for line in split_lines(text):
        if not line.strip() or line.startswith(_BANNERS):
            continue
        record = _parse_list_line(line)
        if record is None or record.status != PackageStatus.UPGRADABLE:
            continue
        records.append(record)
    return records


# ── dpkg-query ──────────────────────────────────────────────────


def parse_list_installed(text: str) -> list[PackageRecord]:
    """Parse ``dpkg-query -W -f '${binary:Package} ${Version} ${Architecture}\\n'``."""
    records = []
    for line in split_lines(text):
        parts = line.split()
        if len(parts) < 2:
            continue
        name, qualifier = split_qualified(parts[0], ":")
        if not name:
            continue
        records.append(PackageRecord(
            name=name,
            installed_version=parts[1],
            status=PackageStatus.INSTALLED,
            arch=parts[2] if len(parts) > 2 else qualifier,
            manager=MANAGER,
        ))
    return records


def parse_dpkg_status(text: str) -> list[PackageRecord]:
    """Parse ``dpkg-query -W --showformat '${binary:Package} ${Status} ${Version}\\n'``.

    Lines look like ``bash install ok installed 5.1-6ubuntu1``. Names
    dpkg does not know come back on stderr-style lines,
    ``dpkg-query: no packages found matching byobu``; those become
    UNKNOWN records so a queried name is never silently dropped.

    The ``config-files`` state (removed, configuration left behind)
    normalizes to AVAILABLE, keeping ``extra["dpkg_state"]``.
    """
    records = []
    for line in split_lines(text):
        parts = line.split()
        if len(parts) < 2:
            continue

        if parts[0].startswith("dpkg-query:"):
            name, _ = split_qualified(parts[-1], ":")
            records.append(PackageRecord(
                name=name,
                status=PackageStatus.UNKNOWN,
                manager=MANAGER,
            ))
            continue

        name, qualifier = split_qualified(parts[0], ":")
        if not name or len(parts) < 4:
            continue
        state = parts[3]
        version = parts[4] if len(parts) > 4 and parts[4][0].isdigit() else ""

        extra: dict[str, str] = {}
        if state in _INSTALLED_STATES:
            status = PackageStatus.INSTALLED
        elif state == "config-files":
            status = PackageStatus.AVAILABLE
            extra["dpkg_state"] = state
        elif state == "not-installed":
            status = PackageStatus.AVAILABLE
        else:
            # half-installed, unpacked, half-configured
            status = PackageStatus.UNKNOWN
            extra["dpkg_state"] = state

        records.append(PackageRecord(
            name=name,
            installed_version=version if status == PackageStatus.INSTALLED else "",
            status=status,
            arch=qualifier,
            manager=MANAGER,
            extra=extra,
        ))
    return records


# ── apt-cache ───────────────────────────────────────────────────


def parse_info(text: str) -> PackageRecord | None:
    """Parse the first stanza of ``apt-cache show``."""
    blocks = split_blocks(text)
    if not blocks:
        return None
    fields = parse_key_values(line for line in blocks[0] if not line.startswith(" "))
    name = fields.get("Package", "")
    if not name:
        return None

    extra = {
        key.lower(): fields[key]
        for key in ("Maintainer", "Homepage", "Description", "Priority", "Origin")
        if fields.get(key)
    }
    if "description" not in extra and fields.get("Description-en"):
        extra["description"] = fields["Description-en"]
    return PackageRecord(
        name=name,
        available_version=fields.get("Version", ""),
        status=PackageStatus.AVAILABLE,
        arch=fields.get("Architecture", ""),
        category=fields.get("Section", ""),
        manager=MANAGER,
        extra=extra,
    )


def parse_cache_stats(text: str) -> dict[str, int]:
    """Pull counters from ``apt-cache stats``."""
    stats: dict[str, int] = {}
    for line in split_lines(text):
        key, _, value = line.partition(":")
        number = value.strip().split(" ", 1)[0]
        if number.isdigit():
            stats[key.strip().lower().replace(" ", "_")] = int(number)
    return stats
