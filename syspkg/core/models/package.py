"""
Package models - the normalized view of one manager's packages.

A PackageRecord is a snapshot: built fresh from a tool's output on
every query, frozen after construction, never persisted.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class PackageStatus(StrEnum):
    """Normalized package state across all managers."""

    INSTALLED = "installed"
    UPGRADABLE = "upgradable"
    AVAILABLE = "available"
    UNKNOWN = "unknown"

    # Dry-run only: what a mutating call would have done
    WOULD_INSTALL = "would-install"
    WOULD_REMOVE = "would-remove"
    WOULD_UPGRADE = "would-upgrade"

    @property
    def is_dry_run(self) -> bool:
        return self.value.startswith("would-")


class PackageRecord(BaseModel):
    """One package as reported by one manager at one instant.

    Version fields:
        installed_version: empty when the package is not installed.
        available_version: empty when the repository version is unknown.

    For ``UPGRADABLE`` both versions are set and differ.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    installed_version: str = ""
    available_version: str = ""
    status: PackageStatus = PackageStatus.UNKNOWN
    category: str = ""              # repository component, section, remote
    arch: str = ""
    manager: str = ""               # origin manager, e.g. "apt"
    extra: dict[str, str] = Field(default_factory=dict)

    @property
    def version(self) -> str:
        """The most relevant version: installed if any, else available."""
        return self.installed_version or self.available_version

    def evolve(self, **changes) -> PackageRecord:
        """Return a copy with the given fields replaced."""
        return self.model_copy(update=changes)


class ManagerStatus(BaseModel):
    """Health and inventory summary for one package manager."""

    manager: str
    available: bool = False
    healthy: bool = False
    version: str = ""
    last_refresh: str = "unknown"
    cache_size: int = 0
    package_count: int = 0
    installed_count: int = 0
    issues: list[str] = Field(default_factory=list)
    metadata: dict[str, str] = Field(default_factory=dict)
