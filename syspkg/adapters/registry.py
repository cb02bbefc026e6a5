"""
Adapter registry - catalog, selection and concurrent dispatch.

The registry holds immutable AdapterRegistrations (name, factory,
priority, category). It never caches adapter instances or their
availability: every query builds fresh adapters and probes them,
because the set of usable managers can change between calls.

Reads (lookups, listings, best match, fan-out snapshots) share a
read/write lock; register and unregister take it exclusively.

    registry = AdapterRegistry()
    registry.register("apt", AptAdapter, priority=90)
    report = registry.fan_out(Operation.SEARCH, "vim")
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any

from syspkg.adapters.base import ListFilter, PackageManagerAdapter
from syspkg.core.engine.executor import FanOutReport
from syspkg.core.models.outcome import Operation, OperationResult, OutcomeKind
from syspkg.core.reliability.rwlock import ReadWriteLock

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[], PackageManagerAdapter]
AdapterCall = Callable[[PackageManagerAdapter], OperationResult]

_LIST_OPERATIONS = {
    ListFilter.INSTALLED: Operation.LIST_INSTALLED,
    ListFilter.UPGRADABLE: Operation.LIST_UPGRADABLE,
    ListFilter.ALL: Operation.LIST_PACKAGES,
}


class RegistrationError(Exception):
    """Invalid registry use: duplicate name, bad factory, unknown adapter."""


@dataclass(frozen=True)
class AdapterRegistration:
    """One catalog entry. Replace by unregister + register, never mutate."""

    name: str
    factory: AdapterFactory
    priority: int = 0
    category: str = "system"

    def create(self) -> PackageManagerAdapter:
        return self.factory()


def _ordering(reg: AdapterRegistration) -> tuple[int, str]:
    return (-reg.priority, reg.name)


def _method_call(operation: Operation, args: tuple, kwargs: dict) -> AdapterCall:
    def call(adapter: PackageManagerAdapter) -> OperationResult:
        return getattr(adapter, operation.value)(*args, **kwargs)

    return call


class AdapterRegistry:
    """Thread-safe registry and dispatcher for package manager adapters.

    Features:
        - Register/unregister adapter factories by unique name
        - Probe availability at call time (concurrently)
        - Pick the best available adapter by priority
        - Fan an operation out to every available adapter, isolating
          failures and enforcing an optional deadline
    """

    def __init__(self, max_workers: int | None = None):
        self._entries: dict[str, AdapterRegistration] = {}
        self._lock = ReadWriteLock()
        self.max_workers = max_workers

    # ── Catalog ─────────────────────────────────────────────────

    def register(
        self,
        name: str,
        factory: AdapterFactory,
        priority: int = 0,
        category: str = "system",
    ) -> AdapterRegistration:
        """Add an adapter factory.

        Raises:
            RegistrationError: Empty name, non-callable factory, or a
                name that is already registered.
        """
        if not name:
            raise RegistrationError("adapter name cannot be empty")
        if not callable(factory):
            raise RegistrationError(f"factory for {name!r} is not callable")

        registration = AdapterRegistration(name, factory, priority, category)
        with self._lock.write():
            if name in self._entries:
                raise RegistrationError(f"adapter {name!r} is already registered")
            self._entries[name] = registration
        logger.debug("Registered adapter: %s (priority=%d, category=%s)", name, priority, category)
        return registration

    def unregister(self, name: str) -> bool:
        """Remove an adapter. Returns False if it was not registered."""
        with self._lock.write():
            removed = self._entries.pop(name, None)
        if removed is not None:
            logger.debug("Unregistered adapter: %s", name)
        return removed is not None

    def get(self, name: str) -> AdapterRegistration | None:
        with self._lock.read():
            return self._entries.get(name)

    def create(self, name: str) -> PackageManagerAdapter:
        """Build a fresh adapter instance by name."""
        registration = self.get(name)
        if registration is None:
            raise RegistrationError(f"no adapter registered as {name!r}")
        return registration.create()

    def names(self) -> list[str]:
        with self._lock.read():
            return sorted(self._entries)

    def registrations(self, category: str | None = None) -> list[AdapterRegistration]:
        """Registrations by descending priority, then name."""
        with self._lock.read():
            entries = list(self._entries.values())
        if category is not None:
            entries = [e for e in entries if e.category == category]
        return sorted(entries, key=_ordering)

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)

    # ── Availability ────────────────────────────────────────────

    def _probe(self, registration: AdapterRegistration) -> PackageManagerAdapter | None:
        try:
            adapter = registration.create()
            available = adapter.is_available()
        except Exception as e:
            logger.warning("Availability probe for %s raised: %s", registration.name, e)
            return None
        logger.debug("Adapter %s available=%s", registration.name, available)
        return adapter if available else None

    def available_adapters(self, category: str | None = None) -> list[PackageManagerAdapter]:
        """Fresh instances of every adapter whose probe succeeds now.

        Probes run concurrently; the result is in priority order.
        """
        entries = self.registrations(category)
        if not entries:
            return []
        with ThreadPoolExecutor(
            max_workers=self.max_workers or len(entries),
            thread_name_prefix="syspkg-probe",
        ) as pool:
            probed = list(pool.map(self._probe, entries))
        return [adapter for adapter in probed if adapter is not None]

    def availability(self) -> dict[str, bool]:
        """Probe every registration; name -> available."""
        entries = self.registrations()
        available = {a.name for a in self.available_adapters()}
        return {e.name: e.name in available for e in entries}

    def best_match(self, category: str | None = None) -> PackageManagerAdapter | None:
        """Highest-priority available adapter, or None. Name breaks ties."""
        for registration in self.registrations(category):
            adapter = self._probe(registration)
            if adapter is not None:
                return adapter
        return None

    # ── Dispatch ────────────────────────────────────────────────

    @staticmethod
    def _invoke(
        adapter: PackageManagerAdapter,
        operation: Operation,
        call: AdapterCall,
    ) -> OperationResult:
        try:
            return call(adapter)
        except Exception as e:
            # Adapters should never raise; one that does must not take the others down
            logger.error(
                "Adapter %s raised during %s: %s", adapter.name, operation.value, e, exc_info=True,
            )
            return OperationResult.failure(
                adapter.name, operation, OutcomeKind.GENERAL_ERROR, f"Unexpected error: {e}",
            )

    def dispatch(self, name: str, operation: Operation | str, *args: Any, **kwargs: Any) -> OperationResult:
        """Run one operation on one named adapter, without availability probing."""
        operation = Operation(operation)
        adapter = self.create(name)
        return self._invoke(adapter, operation, _method_call(operation, args, kwargs))

    def fan_out(
        self,
        operation: Operation | str,
        *args: Any,
        deadline: float | None = None,
        category: str | None = None,
        **kwargs: Any,
    ) -> FanOutReport:
        """Run ``operation`` on every available adapter concurrently.

        Each adapter's outcome lands in the report independently; an
        exception or failure in one never affects another. Adapters
        still running when ``deadline`` (seconds) expires get a
        general-error entry and their results are discarded. The
        deadline also caps each adapter's command timeouts, so a child
        process still running at expiry is killed.
        """
        operation = Operation(operation)
        return self._fan_out(operation, _method_call(operation, args, kwargs), deadline, category)

    def _fan_out(
        self,
        operation: Operation,
        call: AdapterCall,
        deadline: float | None,
        category: str | None,
    ) -> FanOutReport:
        started = time.monotonic()
        report = FanOutReport(operation)

        adapters = self.available_adapters(category)
        if not adapters:
            logger.info("fan-out %s: no available adapters", operation.value)
            return report

        if deadline is not None:
            # Every command an adapter runs from here on is bounded by the time left
            expires = time.monotonic() + deadline
            for adapter in adapters:
                adapter.deadline = expires

        pool = ThreadPoolExecutor(
            max_workers=self.max_workers or len(adapters),
            thread_name_prefix="syspkg-fanout",
        )
        try:
            futures = {
                pool.submit(self._invoke, adapter, operation, call): adapter.name
                for adapter in adapters
            }
            done, pending = wait(futures, timeout=deadline)
            for future in done:
                report.results[futures[future]] = future.result()
            for future in pending:
                name = futures[future]
                future.cancel()
                logger.warning("fan-out %s: %s missed the %ss deadline", operation.value, name, deadline)
                report.results[name] = OperationResult.failure(
                    name,
                    operation,
                    OutcomeKind.GENERAL_ERROR,
                    f"no result within {deadline}s deadline",
                )
        finally:
            # Late workers return as soon as their deadline-bounded child is killed
            pool.shutdown(wait=False, cancel_futures=True)

        report.duration_ms = int((time.monotonic() - started) * 1000)
        logger.debug(
            "fan-out %s: %s in %dms (%s)",
            operation.value, report.status, report.duration_ms, ", ".join(sorted(report.results)),
        )
        return report

    # ── Convenience fan-outs ────────────────────────────────────

    def search_all(self, query: str, opts=None, **kw) -> FanOutReport:
        return self.fan_out(Operation.SEARCH, query, opts, **kw)

    def list_installed_all(self, opts=None, **kw) -> FanOutReport:
        return self.fan_out(Operation.LIST_INSTALLED, opts, **kw)

    def list_upgradable_all(self, opts=None, **kw) -> FanOutReport:
        return self.fan_out(Operation.LIST_UPGRADABLE, opts, **kw)

    def list_packages_all(self, list_filter=ListFilter.ALL, opts=None, deadline=None, category=None) -> FanOutReport:
        """Installed and/or upgradable records from every available adapter."""
        list_filter = ListFilter(list_filter)
        operation = _LIST_OPERATIONS[list_filter]
        return self._fan_out(
            operation, lambda adapter: adapter.list_packages(list_filter, opts), deadline, category,
        )

    def status_all(self, opts=None, **kw) -> FanOutReport:
        return self.fan_out(Operation.STATUS, opts, **kw)

    def refresh_all(self, opts=None, **kw) -> FanOutReport:
        return self.fan_out(Operation.REFRESH, opts, **kw)

    def upgrade_all(self, opts=None, **kw) -> FanOutReport:
        return self.fan_out(Operation.UPGRADE, None, opts, **kw)

    def clean_all(self, opts=None, **kw) -> FanOutReport:
        return self.fan_out(Operation.CLEAN, opts, **kw)

    def autoremove_all(self, opts=None, **kw) -> FanOutReport:
        return self.fan_out(Operation.AUTOREMOVE, opts, **kw)

    def verify_all(self, names, opts=None, **kw) -> FanOutReport:
        return self.fan_out(Operation.VERIFY, names, opts, **kw)

    def __repr__(self) -> str:
        return f"<AdapterRegistry adapters={self.names()}>"


# ── Process-wide default ────────────────────────────────────────

_default: AdapterRegistry | None = None
_default_lock = threading.Lock()


def default_registry() -> AdapterRegistry:
    """Lazily built registry with the built-in adapters.

    A convenience only; tests and embedders build their own with
    :func:`syspkg.adapters.builtin.build_registry`.
    """
    global _default
    with _default_lock:
        if _default is None:
            from syspkg.adapters.builtin import build_registry

            _default = build_registry()
        return _default


def reset_default_registry() -> None:
    """Drop the process-wide registry (next call rebuilds it)."""
    global _default
    with _default_lock:
        _default = None
