"""
Flatpak adapter - sandboxed desktop applications.

Listings ask for explicit ``--columns`` so the tab-separated output
keeps one layout across flatpak versions. Application IDs
(``org.gimp.GIMP``) are the package names.

Dry-run:
    install
        ``flatpak search`` for the exact ID, tagged WOULD_INSTALL.
    remove
        ``flatpak info``, tagged WOULD_REMOVE.
    upgrade
        ``flatpak remote-ls --updates``, tagged WOULD_UPGRADE.
    refresh / clean / autoremove
        no-op success.
"""

from __future__ import annotations

from syspkg.adapters.base import Options, PackageManagerAdapter, single
from syspkg.core.classifiers import flatpak as flatpak_classifier
from syspkg.core.models.outcome import Operation, OperationResult, OutcomeKind
from syspkg.core.models.package import PackageRecord, PackageStatus
from syspkg.core.parsers import flatpak as parser
from syspkg.core.parsers.common import (
    merge_install_state,
    merge_installed_versions,
    tag_dry_run,
)

NONINTERACTIVE = "--noninteractive"


def _columns(names: tuple[str, ...]) -> str:
    return "--columns=" + ",".join(names)


class FlatpakAdapter(PackageManagerAdapter):
    """Flatpak package manager adapter."""

    category = "app"
    priority = 70
    default_binary = "flatpak"
    env = {"LANG": "C"}
    classifier = flatpak_classifier.classifier

    @property
    def name(self) -> str:
        return "flatpak"

    def is_available(self) -> bool:
        if self.runner.which(self.binary) is None:
            return False
        return self.runner.run(self.binary, ["--version"], self.env, self._check_timeout()).ok

    # ── Queries ─────────────────────────────────────────────────

    def _search(self, query: str, opts: Options) -> OperationResult:
        args = ["search", _columns(parser.SEARCH_COLUMNS), query]
        result = self._call(Operation.SEARCH, args, opts, parser.parse_search)
        if result.failed or not result.packages:
            return result
        installed = self._list_installed([], opts)
        if installed.failed:
            return result
        merged = merge_install_state(result.packages, installed.packages)
        return result.model_copy(update={"packages": merged})

    def _list_installed(self, names: list[str], opts: Options) -> OperationResult:
        args = ["list", "--app", _columns(parser.LIST_COLUMNS)]
        return self._call(Operation.LIST_INSTALLED, args, opts, parser.parse_list)

    def _list_upgradable(self, names: list[str], opts: Options) -> OperationResult:
        args = ["remote-ls", "--updates", _columns(parser.UPDATE_COLUMNS)]
        result = self._call(Operation.LIST_UPGRADABLE, args, opts, parser.parse_updates)
        if result.failed or not result.packages:
            return result
        # Updates include runtimes, so compare against every installed ref
        outcome = self._run(
            Operation.LIST_INSTALLED, ["list", _columns(parser.LIST_COLUMNS)], opts, passthrough=False,
        )
        installed = self._result(Operation.LIST_INSTALLED, outcome, parser.parse_list)
        refs = installed.packages if installed.ok else []
        merged = merge_installed_versions(result.packages, refs)
        return result.model_copy(update={"packages": merged})

    def _get_info(self, name: str, opts: Options) -> OperationResult:
        return self._call(Operation.GET_INFO, ["info", name], opts, single(parser.parse_info))

    # ── Mutations ───────────────────────────────────────────────

    def _confirm(self, opts: Options, flag: str = "-y") -> list[str]:
        flags = super()._confirm(opts, flag)
        return [*flags, NONINTERACTIVE] if flags else []

    def _install(self, names: list[str], opts: Options) -> OperationResult:
        if opts.dry_run:
            return self._preview_install(names, opts)
        args = ["install", *self._confirm(opts), *names]
        result = self._call(Operation.INSTALL, args, opts, parser.parse_changes)
        if result.failed or (result.raw is not None and not result.raw.captured):
            return result

        # Transaction lines carry no version; take them from the installed list
        installed = self._list_installed([], opts)
        current = {r.name: r for r in installed.packages} if installed.ok else {}
        wanted = {r.name for r in result.packages if r.status == PackageStatus.INSTALLED} | set(names)
        records = [
            current[name].evolve(available_version=current[name].installed_version)
            for name in sorted(wanted)
            if name in current and current[name].installed_version
        ]
        return result.model_copy(update={"packages": records})

    def _preview_install(self, names: list[str], opts: Options) -> OperationResult:
        records = []
        for name in names:
            found = self._search(name, opts)
            if found.failed:
                return found.model_copy(update={"operation": Operation.INSTALL})
            matches = [r for r in found.packages if r.name == name]
            if not matches:
                return OperationResult.failure(
                    self.name,
                    Operation.INSTALL,
                    OutcomeKind.NOT_FOUND,
                    f"no remote provides {name}",
                    dry_run=True,
                )
            records.extend(tag_dry_run(matches[:1], PackageStatus.WOULD_INSTALL))
        return OperationResult.success(self.name, Operation.INSTALL, records, dry_run=True)

    def _remove(self, names: list[str], opts: Options) -> OperationResult:
        if opts.dry_run:
            records = []
            for name in names:
                info = self._get_info(name, opts)
                if info.failed:
                    return info.model_copy(update={"operation": Operation.REMOVE})
                records.extend(tag_dry_run(info.packages, PackageStatus.WOULD_REMOVE))
            return OperationResult.success(self.name, Operation.REMOVE, records, dry_run=True)
        args = ["uninstall", *self._confirm(opts), *names]
        return self._call(Operation.REMOVE, args, opts, parser.parse_changes)

    def _refresh(self, names: list[str], opts: Options) -> OperationResult:
        if opts.dry_run:
            return OperationResult.noop(self.name, Operation.REFRESH, "dry run: appstream update skipped")
        return self._call(Operation.REFRESH, ["update", "--appstream"], opts)

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
        args = ["update", *self._confirm(opts), *names]
        return self._call(Operation.UPGRADE, args, opts, parser.parse_changes)

    def _uninstall_unused(self, operation: Operation, opts: Options) -> OperationResult:
        if opts.dry_run:
            return OperationResult.noop(self.name, operation, "dry run: unused refs kept")
        args = ["uninstall", "--unused", *self._confirm(opts)]
        return self._call(operation, args, opts, parser.parse_changes)

    def _clean(self, names: list[str], opts: Options) -> OperationResult:
        return self._uninstall_unused(Operation.CLEAN, opts)

    def _autoremove(self, names: list[str], opts: Options) -> OperationResult:
        return self._uninstall_unused(Operation.AUTOREMOVE, opts)

    # ── Verify ──────────────────────────────────────────────────

    def _verify_args(self, name: str) -> tuple[str, list[str]]:
        return self.binary, ["info", name]

    def _parse_verified(self, name: str, text: str) -> PackageRecord:
        record = parser.parse_info(text)
        return record if record is not None else super()._parse_verified(name, text)
