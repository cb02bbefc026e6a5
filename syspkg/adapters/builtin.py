"""
Built-in adapters and config-driven registry construction.
"""

from __future__ import annotations

import functools
import logging

from syspkg.adapters.app.flatpak import FlatpakAdapter
from syspkg.adapters.app.snap import SnapAdapter
from syspkg.adapters.base import PackageManagerAdapter
from syspkg.adapters.registry import AdapterRegistry
from syspkg.adapters.shell.command import CommandRunner
from syspkg.adapters.system.apk import ApkAdapter
from syspkg.adapters.system.apt import AptAdapter
from syspkg.adapters.system.yum import YumAdapter
from syspkg.core.config.loader import SyspkgConfig

logger = logging.getLogger(__name__)

BUILTIN_ADAPTERS: dict[str, type[PackageManagerAdapter]] = {
    "apt": AptAdapter,
    "yum": YumAdapter,
    "snap": SnapAdapter,
    "flatpak": FlatpakAdapter,
    "apk": ApkAdapter,
}


def register_builtin_adapters(
    registry: AdapterRegistry,
    config: SyspkgConfig | None = None,
    runner: CommandRunner | None = None,
) -> list[str]:
    """Register every enabled built-in adapter. Returns the names added.

    ``runner`` is shared by all factories; tests pass a MockCommandRunner.
    """
    config = config or SyspkgConfig()
    unknown = sorted(set(config.managers) - set(BUILTIN_ADAPTERS))
    if unknown:
        logger.warning("Ignoring config for unknown managers: %s", ", ".join(unknown))

    added = []
    for name, cls in BUILTIN_ADAPTERS.items():
        settings = config.manager(name)
        if not settings.enabled:
            logger.debug("Manager %s disabled by config", name)
            continue
        factory = functools.partial(
            cls,
            runner=runner,
            binary=settings.binary,
            timeout=settings.timeout or config.timeout,
        )
        priority = settings.priority if settings.priority is not None else cls.priority
        registry.register(name, factory, priority=priority, category=cls.category)
        added.append(name)
    return added


def build_registry(
    config: SyspkgConfig | None = None,
    runner: CommandRunner | None = None,
) -> AdapterRegistry:
    """A private registry populated with the built-in adapters."""
    config = config or SyspkgConfig()
    registry = AdapterRegistry(max_workers=config.max_workers)
    register_builtin_adapters(registry, config, runner)
    return registry
