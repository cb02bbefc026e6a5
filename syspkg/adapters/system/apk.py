"""
APK adapter - Alpine Linux.

Dry-run:
    install / remove / upgrade
        ``--simulate``; parsed records are re-tagged WOULD_INSTALL /
        WOULD_REMOVE / WOULD_UPGRADE.
    refresh / clean
        no-op success.
autoremove is unsupported: apk removes orphans on every ``del``.
"""

from __future__ import annotations

from syspkg.adapters.base import Options, PackageManagerAdapter, single
from syspkg.core.classifiers import apk as apk_classifier
from syspkg.core.models.outcome import Operation, OperationResult, OutcomeKind
from syspkg.core.models.package import PackageStatus
from syspkg.core.parsers import apk as parser
from syspkg.core.parsers.common import merge_install_state, tag_dry_run


class ApkAdapter(PackageManagerAdapter):
    """Alpine APK package manager adapter."""

    category = "system"
    priority = 60
    default_binary = "apk"
    classifier = apk_classifier.classifier

    @property
    def name(self) -> str:
        return "apk"

    def is_available(self) -> bool:
        if self.runner.which(self.binary) is None:
            return False
        return self.runner.run(self.binary, ["--version"], self.env, self._check_timeout()).ok

    # ── Queries ─────────────────────────────────────────────────

    def _search(self, query: str, opts: Options) -> OperationResult:
        result = self._call(Operation.SEARCH, ["search", "-v", query], opts, parser.parse_search)
        if result.failed or not result.packages:
            return result
        installed = self._list_installed([], opts)
        if installed.failed:
            return result
        merged = merge_install_state(result.packages, installed.packages)
        return result.model_copy(update={"packages": merged})

    def _list_installed(self, names: list[str], opts: Options) -> OperationResult:
        return self._call(Operation.LIST_INSTALLED, ["list", "--installed"], opts, parser.parse_list)

    def _list_upgradable(self, names: list[str], opts: Options) -> OperationResult:
        return self._call(
            Operation.LIST_UPGRADABLE, ["list", "--upgradable"], opts, parser.parse_list,
        )

    def _get_info(self, name: str, opts: Options) -> OperationResult:
        result = self._call(Operation.GET_INFO, ["info", name], opts, single(parser.parse_info))
        if result.ok and not result.packages:
            # apk info prints nothing and exits 0 for unknown names
            return OperationResult.failure(
                self.name, Operation.GET_INFO,
                kind=OutcomeKind.NOT_FOUND,
                detail=f"no such package: {name}",
                raw=result.raw,
            )
        if result.failed:
            return result
        installed = self._list_installed([], opts)
        if installed.failed:
            return result
        return result.model_copy(
            update={"packages": merge_install_state(result.packages, installed.packages)}
        )

    # ── Mutations ───────────────────────────────────────────────

    def _change(
        self,
        operation: Operation,
        args: list[str],
        opts: Options,
        dry_status: PackageStatus,
    ) -> OperationResult:
        if opts.dry_run:
            run_opts = opts.model_copy(update={"interactive": False})
            simulated = [args[0], "--simulate", *args[1:]]
            result = self._call(operation, simulated, run_opts, parser.parse_changes)
            if result.ok:
                result = result.model_copy(
                    update={"packages": tag_dry_run(result.packages, dry_status)}
                )
            return result.model_copy(update={"dry_run": True})
        return self._call(operation, args, opts, parser.parse_changes)

    def _install(self, names: list[str], opts: Options) -> OperationResult:
        result = self._change(Operation.INSTALL, ["add", *names], opts, PackageStatus.WOULD_INSTALL)
        if result.failed or opts.dry_run or (result.raw is not None and not result.raw.captured):
            return result

        records = [r for r in result.packages if r.status == PackageStatus.INSTALLED]
        # Already-installed names produce no progress line
        if {r.name for r in records} >= set(names):
            return result.model_copy(update={"packages": records})
        installed = self._list_installed([], opts)
        if installed.ok:
            seen = {r.name for r in records}
            records.extend(r for r in installed.packages if r.name in names and r.name not in seen)
        return result.model_copy(update={"packages": records})

    def _remove(self, names: list[str], opts: Options) -> OperationResult:
        return self._change(Operation.REMOVE, ["del", *names], opts, PackageStatus.WOULD_REMOVE)

    def _upgrade(self, names: list[str], opts: Options) -> OperationResult:
        return self._change(Operation.UPGRADE, ["upgrade", *names], opts, PackageStatus.WOULD_UPGRADE)

    def _refresh(self, names: list[str], opts: Options) -> OperationResult:
        if opts.dry_run:
            return OperationResult.noop(self.name, Operation.REFRESH, "dry run: apk update skipped")
        return self._call(Operation.REFRESH, ["update"], opts)

    def _clean(self, names: list[str], opts: Options) -> OperationResult:
        if opts.dry_run:
            return OperationResult.noop(self.name, Operation.CLEAN, "dry run: cache clean skipped")
        return self._call(Operation.CLEAN, ["cache", "clean"], opts)

    # ── Verify / version ────────────────────────────────────────

    def _verify_args(self, name: str) -> tuple[str, list[str]]:
        return self.binary, ["info", "-e", name]

    def _parse_version(self, text: str) -> str:
        return parser.parse_version(text)
