"""
Flatpak output parsers.

Listings are requested with explicit ``--columns`` so every row is
tab-separated in a known order. The application ID is the package
name; the human title goes to ``extra["title"]``.
"""

from __future__ import annotations

import re

from syspkg.core.models.package import PackageRecord, PackageStatus
from syspkg.core.parsers.common import split_lines

MANAGER = "flatpak"

SEARCH_COLUMNS = ("name", "description", "application", "version", "branch", "remotes")
LIST_COLUMNS = ("name", "application", "version", "branch", "installation")
UPDATE_COLUMNS = ("application", "version", "branch", "origin")

_HEADERS = ("Name\t", "Application ID\t", "Application\t", "ID\t")
_CHANGE_LINE = re.compile(
    r"^(Installing|Updating|Uninstalling)(?: \d+/\d+)?…?:?\s+"
    r"(?:(app|runtime)/)?([A-Za-z0-9_.-]+)(?:/([^/\s]+))?(?:/(\S+))?"
)
_MARKING_OP = re.compile(r"marking op (\S+?):(app|runtime)/([^/\s]+)/([^/\s]+)/(\S+) (resolved|\S+)")


def _rows(text: str, columns: tuple[str, ...]) -> list[dict[str, str]]:
    rows = []
    for line in split_lines(text):
        if not line.strip() or line.startswith(_HEADERS):
            continue
        fields = line.split("\t")
        if len(fields) < len(columns):
            continue
        row = {c: f.strip() for c, f in zip(columns, fields, strict=False)}
        if not row.get("application"):
            continue
        rows.append(row)
    return rows


def parse_search(text: str) -> list[PackageRecord]:
    """Parse ``flatpak search --columns=name,description,application,version,branch,remotes``."""
    records = []
    for row in _rows(text, SEARCH_COLUMNS):
        extra = {k: row[k] for k in ("branch", "description") if row.get(k)}
        if row.get("name"):
            extra["title"] = row["name"]
        records.append(PackageRecord(
            name=row["application"],
            available_version=row.get("version", ""),
            status=PackageStatus.AVAILABLE,
            category=row.get("remotes", "").split(",")[0],
            manager=MANAGER,
            extra=extra,
        ))
    return records


def parse_list(text: str) -> list[PackageRecord]:
    """Parse ``flatpak list --app --columns=name,application,version,branch,installation``."""
    records = []
    for row in _rows(text, LIST_COLUMNS):
        extra = {k: row[k] for k in ("branch", "installation") if row.get(k)}
        if row.get("name"):
            extra["title"] = row["name"]
        records.append(PackageRecord(
            name=row["application"],
            installed_version=row.get("version", ""),
            status=PackageStatus.INSTALLED,
            manager=MANAGER,
            extra=extra,
        ))
    return records


def parse_updates(text: str) -> list[PackageRecord]:
    """Parse ``flatpak remote-ls --updates --columns=application,version,branch,origin``."""
    return [
        PackageRecord(
            name=row["application"],
            available_version=row.get("version", ""),
            status=PackageStatus.UPGRADABLE,
            category=row.get("origin", ""),
            manager=MANAGER,
            extra={"branch": row["branch"]} if row.get("branch") else {},
        )
        for row in _rows(text, UPDATE_COLUMNS)
    ]


def parse_info(text: str) -> PackageRecord | None:
    """Parse ``flatpak info``: a title line, then right-aligned ``Key: value`` lines.

    flatpak only answers for installed refs, so the record is INSTALLED.
    """
    fields: dict[str, str] = {}
    title = ""
    for line in split_lines(text):
        if not line.strip():
            continue
        key, sep, value = line.strip().partition(":")
        if sep and key and " " not in key:
            fields.setdefault(key, value.strip())
        elif not title and not fields:
            title = line.strip()

    name = fields.get("ID", "")
    if not name:
        return None

    extra = {
        key.lower(): fields[key]
        for key in ("Ref", "Branch", "License", "Installation", "Runtime", "Commit")
        if fields.get(key)
    }
    if title:
        extra["title"] = title
    version = fields.get("Version", "")
    return PackageRecord(
        name=name,
        installed_version=version,
        available_version=version,
        status=PackageStatus.INSTALLED,
        arch=fields.get("Arch", ""),
        category=fields.get("Origin", ""),
        manager=MANAGER,
        extra=extra,
    )


def parse_changes(text: str) -> list[PackageRecord]:
    """Parse transaction output of ``flatpak install/update/uninstall``.

        Installing app/org.gimp.GIMP/x86_64/stable
        Uninstalling runtime/org.gnome.Platform/x86_64/45

    ``--verbose`` runs print ``marking op install:app/...`` lines instead;
    both forms are understood. Unresolved ops come back UNKNOWN.
    """
    records: dict[str, PackageRecord] = {}
    for line in split_lines(text):
        line = line.strip()
        if line.startswith("F: "):
            line = line[3:]

        if match := _MARKING_OP.match(line):
            action, kind, name, arch, branch, resolved = match.groups()
            if resolved != "resolved":
                status = PackageStatus.UNKNOWN
            elif action.startswith("uninstall"):
                status = PackageStatus.AVAILABLE
            else:
                status = PackageStatus.INSTALLED
        elif match := _CHANGE_LINE.match(line):
            verb, kind, name, arch, branch = match.groups()
            status = (
                PackageStatus.AVAILABLE if verb == "Uninstalling" else PackageStatus.INSTALLED
            )
        else:
            continue

        # Application and runtime IDs are reverse-DNS; skips "Installing in system:"
        if "." not in name:
            continue
        extra = {"kind": kind or "app"}
        if branch:
            extra["branch"] = branch
        records[name] = PackageRecord(
            name=name,
            arch=arch or "",
            status=status,
            manager=MANAGER,
            extra=extra,
        )
    return list(records.values())
