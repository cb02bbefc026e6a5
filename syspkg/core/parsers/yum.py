"""
YUM/DNF output parsers.

Listings are ``name.arch  version  repo`` tables that wrap when a
name is too long for its column; transactions print NEVRA tokens
under "Installed:", "Upgraded:" or "Removed:" headings.
"""

from __future__ import annotations

import re
from collections.abc import Iterator

from syspkg.core.models.package import PackageRecord, PackageStatus
from syspkg.core.parsers.common import (
    dedupe,
    split_blocks,
    split_lines,
    starts_with_digit,
)

MANAGER = "yum"

ARCHES = frozenset({"x86_64", "aarch64", "i686", "noarch", "ppc64le", "s390x", "armv7hl", "src"})

_SEARCH_LINE = re.compile(r"^(\S+)\.(\w+)\s+:\s*(.*)$")
_TABLE_STOP = ("Obsoleting Packages", "Security:")
_SKIP_PREFIXES = ("Last metadata", "=", "Loaded plugins", "Loading mirror", " * ")

_INSTALL_SECTIONS = {
    "Installed:",
    "Upgraded:",
    "Updated:",
    "Reinstalled:",
    "Downgraded:",
    "Dependency Installed:",
    "Dependency Updated:",
    "Installed dependencies:",
    "Installed weak dependencies:",
}
_REMOVE_SECTIONS = {"Removed:", "Erased:", "Dependency Removed:", "Removed dependencies:"}


def split_name_arch(token: str) -> tuple[str, str]:
    """``python3.11.x86_64`` -> ("python3.11", "x86_64")."""
    name, _, arch = token.rpartition(".")
    return (name, arch) if name else (token, "")


def parse_nevra(token: str) -> tuple[str, str, str] | None:
    """Split ``name-[epoch:]version-release.arch`` into (name, version, arch).

        vim-enhanced-2:8.0.1763-19.el8_6.4.x86_64
            -> ("vim-enhanced", "2:8.0.1763-19.el8_6.4", "x86_64")
    """
    base, arch = split_name_arch(token)
    pieces = base.rsplit("-", 2)
    if len(pieces) != 3 or not arch:
        return None
    name, version, release = pieces
    if not name or not (starts_with_digit(version) or ":" in version):
        return None
    return name, f"{version}-{release}", arch


def names_target(name: str, target: str) -> bool:
    """Whether install target ``target`` refers to package ``name``.

    yum accepts a bare name, ``name.arch``, ``name-version`` and the
    full NEVRA::

        names_target("vim-enhanced", "vim-enhanced.x86_64")  -> True
        names_target("pkg", "pkg-1.2")                          -> True
        names_target("vim", "vim-enhanced")                     -> False
    """
    if target == name:
        return True
    if not target.startswith(name):
        return False
    rest = target[len(name):]
    if rest.startswith("."):
        return rest[1:] in ARCHES
    return rest.startswith("-") and starts_with_digit(rest[1:])


def _table_rows(text: str) -> Iterator[tuple[str, str, str, str]]:
    """Yield (name, arch, version, repo) rows, joining wrapped lines."""
    pending: list[str] = []
    for line in split_lines(text):
        if line.startswith(_TABLE_STOP):
            break
        if not line.strip() or line.startswith(_SKIP_PREFIXES):
            pending = []
            continue
        tokens = pending + line.split()
        if len(tokens) < 3:
            # Long names push the version onto the next line
            pending = tokens if "." in tokens[0] else []
            continue
        pending = []
        name, arch = split_name_arch(tokens[0])
        if not arch or not (starts_with_digit(tokens[1]) or ":" in tokens[1]):
            continue
        yield name, arch, tokens[1], tokens[2].lstrip("@")


# ── Queries ─────────────────────────────────────────────────────


def parse_search(text: str) -> list[PackageRecord]:
    """Parse ``yum search``.

        ===== Name Exactly Matched: vim =====
        vim-enhanced.x86_64 : A version of the VIM editor which includes recent enhancements

    Status is left UNKNOWN for a second ``rpm -q`` pass.
    """
    records = []
    for line in split_lines(text):
        if line.startswith(_SKIP_PREFIXES):
            continue
        match = _SEARCH_LINE.match(line)
        if not match:
            continue
        name, arch, summary = match.groups()
        records.append(PackageRecord(
            name=name,
            arch=arch,
            status=PackageStatus.UNKNOWN,
            manager=MANAGER,
            extra={"summary": summary.strip()} if summary.strip() else {},
        ))
    return dedupe(records)


def parse_list_installed(text: str) -> list[PackageRecord]:
    """Parse ``yum list installed``.

        Installed Packages
        bash.x86_64                4.4.20-4.el8_6             @anaconda
    """
    return [
        PackageRecord(
            name=name,
            arch=arch,
            installed_version=version,
            status=PackageStatus.INSTALLED,
            category=repo,
            manager=MANAGER,
        )
        for name, arch, version, repo in _table_rows(text)
    ]


def parse_check_update(text: str) -> list[PackageRecord]:
    """Parse ``yum check-update`` (exit 100 when rows are present).

        curl.x86_64        7.61.1-34.el8_10.2        baseos

    Only the new version is listed; merge installed versions afterwards.
    """
    return [
        PackageRecord(
            name=name,
            arch=arch,
            available_version=version,
            status=PackageStatus.UPGRADABLE,
            category=repo,
            manager=MANAGER,
        )
        for name, arch, version, repo in _table_rows(text)
    ]


def parse_rpm_query(text: str) -> list[PackageRecord]:
    """Parse ``rpm -q --qf '%{NAME} %{VERSION}-%{RELEASE} %{ARCH}\\n' names``.

    ``package foo is not installed`` lines become UNKNOWN records.
    """
    records = []
    for line in split_lines(text):
        parts = line.split()
        if len(parts) >= 4 and parts[0] == "package" and line.endswith("is not installed"):
            records.append(PackageRecord(
                name=parts[1],
                status=PackageStatus.UNKNOWN,
                manager=MANAGER,
            ))
        elif len(parts) >= 2 and starts_with_digit(parts[1]):
            records.append(PackageRecord(
                name=parts[0],
                installed_version=parts[1],
                arch=parts[2] if len(parts) > 2 else "",
                status=PackageStatus.INSTALLED,
                manager=MANAGER,
            ))
    return records


def parse_info(text: str) -> PackageRecord | None:
    """Parse ``yum info``.

    yum prints one stanza under "Installed Packages" and, when a newer
    build exists, another under "Available Packages". Seeing both means
    the package is upgradable.
    """
    installed: dict[str, str] = {}
    available: dict[str, str] = {}
    section = "Available Packages"

    for block in split_blocks(text):
        fields: dict[str, str] = {}
        last_key = ""
        for line in block:
            stripped = line.strip()
            if stripped in ("Installed Packages", "Available Packages"):
                if fields:
                    _store(fields, section, installed, available)
                    fields = {}
                section = stripped
                continue
            key, sep, value = line.partition(":")
            key = key.strip()
            if not sep:
                continue
            if not key and last_key:
                fields[last_key] = f"{fields[last_key]} {value.strip()}"
                continue
            last_key = key
            fields.setdefault(key, value.strip())
        if fields:
            _store(fields, section, installed, available)

    fields = installed or available
    name = fields.get("Name", "")
    if not name:
        return None

    installed_version = _full_version(installed) if installed else ""
    available_version = _full_version(available) if available else installed_version
    status = PackageStatus.INSTALLED if installed else PackageStatus.AVAILABLE
    if installed and available and installed_version != available_version:
        status = PackageStatus.UPGRADABLE

    extra = {
        key.lower(): fields[key]
        for key in ("Summary", "URL", "License", "Description", "Size")
        if fields.get(key)
    }
    return PackageRecord(
        name=name,
        installed_version=installed_version,
        available_version=available_version,
        status=status,
        arch=fields.get("Architecture") or fields.get("Arch", ""),
        category=(
            fields.get("Repository")
            or fields.get("Repo")
            or fields.get("From repo", "")
        ).lstrip("@"),
        manager=MANAGER,
        extra=extra,
    )


def _store(fields, section, installed, available) -> None:
    target = installed if section == "Installed Packages" else available
    if not target and "Name" in fields:
        target.update(fields)


def _full_version(fields: dict[str, str]) -> str:
    version = fields.get("Version", "")
    release = fields.get("Release", "")
    epoch = fields.get("Epoch", "0")
    if release:
        version = f"{version}-{release}"
    if epoch and epoch != "0":
        version = f"{epoch}:{version}"
    return version


# ── Transactions ────────────────────────────────────────────────


def parse_transaction(text: str) -> list[PackageRecord]:
    """Parse the result sections of ``yum install/remove/update``.

    dnf lists NEVRA tokens::

        Installed:
          vim-enhanced-2:8.0.1763-19.el8_6.4.x86_64  gpm-libs-1.20.7-17.el8.x86_64

    classic yum lists ``name.arch epoch:version-release`` pairs::

        Installed:
          vim-enhanced.x86_64 2:7.4.629-8.el7_9
    """
    records: list[PackageRecord] = []
    section = ""
    for line in split_lines(text):
        stripped = line.strip()
        if stripped in _INSTALL_SECTIONS or stripped in _REMOVE_SECTIONS:
            section = stripped
            continue
        if not stripped or not line.startswith(" "):
            section = ""
            continue
        if not section:
            continue

        removed = section in _REMOVE_SECTIONS
        tokens = stripped.split()
        i = 0
        while i < len(tokens):
            token = tokens[i]
            nxt = tokens[i + 1] if i + 1 < len(tokens) else ""
            if nxt and starts_with_digit(nxt) and parse_nevra(token) is None:
                name, arch = split_name_arch(token)
                version = nxt.split(":", 1)[1] if nxt.startswith("0:") else nxt
                i += 2
            else:
                parsed = parse_nevra(token)
                i += 1
                if parsed is None:
                    continue
                name, version, arch = parsed
            records.append(_transaction_record(name, version, arch, removed))
    return dedupe(records)


def _transaction_record(name: str, version: str, arch: str, removed: bool) -> PackageRecord:
    if removed:
        return PackageRecord(
            name=name,
            arch=arch,
            status=PackageStatus.AVAILABLE,
            manager=MANAGER,
            extra={"removed_version": version},
        )
    return PackageRecord(
        name=name,
        arch=arch,
        installed_version=version,
        available_version=version,
        status=PackageStatus.INSTALLED,
        manager=MANAGER,
    )
