"""
Snap adapter - snapd application packages.

snap has no simulate flag and no cache or orphan concept.

Dry-run:
    install / remove
        ``snap info`` per name, tagged WOULD_INSTALL / WOULD_REMOVE.
    upgrade
        ``snap refresh --list``, tagged WOULD_UPGRADE.
    refresh
        ``snap refresh --list`` is read-only already; same as a real run.
clean and autoremove are no-op successes.
"""

from __future__ import annotations

from syspkg.adapters.base import Options, PackageManagerAdapter, Parser, single
from syspkg.core.classifiers import snap as snap_classifier
from syspkg.core.models.outcome import Operation, OperationResult
from syspkg.core.models.package import PackageRecord, PackageStatus
from syspkg.core.parsers import snap as parser
from syspkg.core.parsers.common import (
    merge_install_state,
    merge_installed_versions,
    tag_dry_run,
)

NO_UNICODE = "--unicode=never"


class SnapAdapter(PackageManagerAdapter):
    """Snap package manager adapter."""

    category = "app"
    priority = 80
    default_binary = "snap"
    classifier = snap_classifier.classifier

    @property
    def name(self) -> str:
        return "snap"

    def is_available(self) -> bool:
        if self.runner.which(self.binary) is None:
            return False
        # "snap version" talks to snapd, so it also proves the daemon is up
        return self.runner.run(self.binary, ["version"], self.env, self._check_timeout()).ok

    def version(self) -> str:
        outcome = self._run(Operation.STATUS, ["version"], Options(), passthrough=False)
        if not outcome.ok or outcome.raw is None:
            return ""
        for line in outcome.raw.stdout_text.splitlines():
            parts = line.split()
            if len(parts) >= 2 and parts[0] == "snap":
                return parts[1]
        return ""

    # ── Queries ─────────────────────────────────────────────────

    def _search(self, query: str, opts: Options) -> OperationResult:
        result = self._call(Operation.SEARCH, ["find", NO_UNICODE, query], opts, parser.parse_search)
        if result.failed or not result.packages:
            return result
        installed = self._list_installed([], opts)
        if installed.failed:
            return result
        merged = merge_install_state(result.packages, installed.packages)
        return result.model_copy(update={"packages": merged})

    def _list_installed(self, names: list[str], opts: Options) -> OperationResult:
        return self._call(
            Operation.LIST_INSTALLED, ["list", NO_UNICODE, *names], opts, parser.parse_list,
        )

    def _list_upgradable(self, names: list[str], opts: Options) -> OperationResult:
        result = self._call(
            Operation.LIST_UPGRADABLE, ["refresh", "--list"], opts, parser.parse_refresh_list,
        )
        if result.failed or not result.packages:
            return result
        installed = self._list_installed([], opts)
        current = installed.packages if installed.ok else []
        merged = merge_installed_versions(result.packages, current)
        return result.model_copy(update={"packages": merged})

    def _get_info(self, name: str, opts: Options) -> OperationResult:
        return self._call(
            Operation.GET_INFO, ["info", NO_UNICODE, name], opts, single(parser.parse_info),
        )

    # ── Mutations ───────────────────────────────────────────────

    def _per_package(
        self,
        operation: Operation,
        verb: str,
        names: list[str],
        opts: Options,
        parse: Parser,
    ) -> OperationResult:
        """Run ``snap <verb> <name>`` once per name; stop at the first failure.

        The failure result keeps the records of names already done.
        """
        records: list[PackageRecord] = []
        result = OperationResult.success(self.name, operation)
        for name in names:
            result = self._call(operation, [verb, name], opts, parse)
            if result.failed:
                return result.model_copy(update={"packages": records})
            records.extend(result.packages)
        return result.model_copy(update={"packages": records})

    def _preview(
        self,
        operation: Operation,
        names: list[str],
        opts: Options,
        status: PackageStatus,
    ) -> OperationResult:
        records = []
        for name in names:
            info = self._get_info(name, opts)
            if info.failed:
                return info.model_copy(update={"operation": operation, "dry_run": True})
            records.extend(tag_dry_run(info.packages, status))
        return OperationResult.success(self.name, operation, records, dry_run=True)

    def _install(self, names: list[str], opts: Options) -> OperationResult:
        if opts.dry_run:
            return self._preview(Operation.INSTALL, names, opts, PackageStatus.WOULD_INSTALL)
        result = self._per_package(Operation.INSTALL, "install", names, opts, parser.parse_changes)
        if result.failed or (result.raw is not None and not result.raw.captured):
            return result
        if all(r.installed_version for r in result.packages):
            return result

        # 'snap "x" is already installed' carries no version
        installed = self._list_installed([], opts)
        versions = {r.name: r for r in installed.packages} if installed.ok else {}
        records = []
        for record in result.packages:
            if not record.installed_version and record.name in versions:
                current = versions[record.name]
                record = record.evolve(
                    installed_version=current.installed_version,
                    available_version=current.installed_version,
                    category=current.category,
                )
            if record.installed_version:
                records.append(record)
        return result.model_copy(update={"packages": records})

    def _remove(self, names: list[str], opts: Options) -> OperationResult:
        if opts.dry_run:
            return self._preview(Operation.REMOVE, names, opts, PackageStatus.WOULD_REMOVE)
        return self._per_package(Operation.REMOVE, "remove", names, opts, parser.parse_remove)

    def _refresh(self, names: list[str], opts: Options) -> OperationResult:
        # snapd refreshes metadata itself; listing pending refreshes is the closest read
        return self._call(Operation.REFRESH, ["refresh", "--list"], opts, parser.parse_refresh_list)

    def _upgrade(self, names: list[str], opts: Options) -> OperationResult:
        if opts.dry_run:
            pending = self._list_upgradable([], opts)
            if pending.failed:
                return pending.model_copy(update={"operation": Operation.UPGRADE})
            records = [r for r in pending.packages if not names or r.name in names]
            return OperationResult.success(
                self.name,
                Operation.UPGRADE,
                tag_dry_run(records, PackageStatus.WOULD_UPGRADE),
                dry_run=True,
                raw=pending.raw,
            )
        return self._call(Operation.UPGRADE, ["refresh", *names], opts, parser.parse_changes)

    # ── Verify ──────────────────────────────────────────────────

    def _verify_args(self, name: str) -> tuple[str, list[str]]:
        return self.binary, ["list", NO_UNICODE, name]

    def _parse_verified(self, name: str, text: str) -> PackageRecord:
        for record in parser.parse_list(text):
            if record.name == name:
                return record
        return super()._parse_verified(name, text)
