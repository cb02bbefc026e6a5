"""Adapters - package manager bindings behind one interface.

Public re-exports for convenient access.
"""

from syspkg.adapters.base import ListFilter, Options, PackageManagerAdapter
from syspkg.adapters.builtin import BUILTIN_ADAPTERS, build_registry
from syspkg.adapters.mock import MockCommandRunner, MockPackageAdapter
from syspkg.adapters.registry import (
    AdapterRegistration,
    AdapterRegistry,
    RegistrationError,
    default_registry,
)

__all__ = [
    "BUILTIN_ADAPTERS",
    "AdapterRegistration",
    "AdapterRegistry",
    "ListFilter",
    "MockCommandRunner",
    "MockPackageAdapter",
    "Options",
    "PackageManagerAdapter",
    "RegistrationError",
    "build_registry",
    "default_registry",
]
