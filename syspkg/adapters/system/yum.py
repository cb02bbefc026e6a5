"""
YUM/DNF adapter - RHEL, CentOS, Fedora and derivatives.

``yum`` is a dnf alias on current releases; both print the same
tables. Install state for search hits and current versions for
upgradable packages come from ``rpm -q``.

Dry-run:
    install / remove / upgrade
        ``--setopt=tsflags=test`` test transaction; parsed records are
        re-tagged WOULD_INSTALL / WOULD_REMOVE / WOULD_UPGRADE.
    refresh / clean / autoremove
        no-op success.
"""

from __future__ import annotations

import logging

from syspkg.adapters.base import Options, PackageManagerAdapter, single
from syspkg.core.classifiers import yum as yum_classifier
from syspkg.core.models.outcome import Operation, OperationResult
from syspkg.core.models.package import PackageRecord, PackageStatus
from syspkg.core.parsers import yum as parser
from syspkg.core.parsers.common import (
    dedupe,
    merge_install_state,
    merge_installed_versions,
    tag_dry_run,
)

logger = logging.getLogger(__name__)

RPM_FORMAT = "%{NAME} %{VERSION}-%{RELEASE} %{ARCH}\n"
TEST_TRANSACTION = "--setopt=tsflags=test"


class YumAdapter(PackageManagerAdapter):
    """YUM / DNF package manager adapter."""

    category = "system"
    priority = 80
    default_binary = "yum"
    classifier = yum_classifier.classifier

    @property
    def name(self) -> str:
        return "yum"

    def is_available(self) -> bool:
        if self.runner.which(self.binary) is None or self.runner.which("rpm") is None:
            return False
        return self.runner.run(self.binary, ["--version"], self.env, self._check_timeout()).ok

    # ── Queries ─────────────────────────────────────────────────

    def _search(self, query: str, opts: Options) -> OperationResult:
        result = self._call(Operation.SEARCH, ["search", query], opts, parser.parse_search)
        if result.failed or not result.packages:
            return result
        states = self._rpm_query(sorted({r.name for r in result.packages}), Operation.SEARCH, opts)
        if states is None:
            return result
        return result.model_copy(update={"packages": merge_install_state(result.packages, states)})

    def _list_installed(self, names: list[str], opts: Options) -> OperationResult:
        return self._call(
            Operation.LIST_INSTALLED, ["list", "installed"], opts, parser.parse_list_installed,
        )

    def _list_upgradable(self, names: list[str], opts: Options) -> OperationResult:
        result = self._call(
            Operation.LIST_UPGRADABLE, ["check-update", *names], opts, parser.parse_check_update,
        )
        if result.failed or not result.packages:
            return result
        states = self._rpm_query(
            sorted({r.name for r in result.packages}), Operation.LIST_UPGRADABLE, opts,
        )
        installed = [r for r in states or () if r.status == PackageStatus.INSTALLED]
        return result.model_copy(
            update={"packages": merge_installed_versions(result.packages, installed)}
        )

    def _get_info(self, name: str, opts: Options) -> OperationResult:
        return self._call(Operation.GET_INFO, ["info", name], opts, single(parser.parse_info))

    def _rpm_query(
        self,
        names: list[str],
        operation: Operation,
        opts: Options,
    ) -> list[PackageRecord] | None:
        """Installed state per name from ``rpm -q``; None if rpm failed."""
        outcome = self._run(
            operation, ["-q", "--qf", RPM_FORMAT, *names], opts, program="rpm", passthrough=False,
        )
        if not outcome.ok or outcome.raw is None:
            logger.debug("rpm status pass failed: %s", outcome.detail)
            return None
        return parser.parse_rpm_query(outcome.raw.stdout_text)

    # ── Mutations ───────────────────────────────────────────────

    def _transaction(
        self,
        operation: Operation,
        verb: str,
        names: list[str],
        opts: Options,
        dry_status: PackageStatus,
    ) -> OperationResult:
        if opts.dry_run:
            args = [verb, "-y", TEST_TRANSACTION, *names]
            run_opts = opts.model_copy(update={"interactive": False})
            result = self._call(operation, args, run_opts, parser.parse_transaction)
            if result.ok:
                result = result.model_copy(
                    update={"packages": tag_dry_run(result.packages, dry_status)}
                )
            return result.model_copy(update={"dry_run": True})
        args = [verb, *self._confirm(opts), *names]
        return self._call(operation, args, opts, parser.parse_transaction)

    def _install(self, names: list[str], opts: Options) -> OperationResult:
        result = self._transaction(
            Operation.INSTALL, "install", names, opts, PackageStatus.WOULD_INSTALL,
        )
        if result.failed or opts.dry_run or (result.raw is not None and not result.raw.captured):
            return result

        installed = [
            r for r in result.packages
            if r.status == PackageStatus.INSTALLED and r.installed_version
        ]
        # "Package x is already installed" lists nothing under "Installed:"
        missing = sorted({
            target for target in names
            if not any(parser.names_target(r.name, target) for r in installed)
        })
        if missing:
            states = self._rpm_query(missing, Operation.SEARCH, opts) or []
            installed.extend(
                r.evolve(available_version=r.installed_version)
                for r in states
                if r.status == PackageStatus.INSTALLED
            )
        return result.model_copy(update={"packages": dedupe(installed)})

    def _remove(self, names: list[str], opts: Options) -> OperationResult:
        return self._transaction(
            Operation.REMOVE, "remove", names, opts, PackageStatus.WOULD_REMOVE,
        )

    def _upgrade(self, names: list[str], opts: Options) -> OperationResult:
        return self._transaction(
            Operation.UPGRADE, "update", names, opts, PackageStatus.WOULD_UPGRADE,
        )

    def _refresh(self, names: list[str], opts: Options) -> OperationResult:
        if opts.dry_run:
            return OperationResult.noop(self.name, Operation.REFRESH, "dry run: makecache skipped")
        return self._call(Operation.REFRESH, ["makecache"], opts)

    def _clean(self, names: list[str], opts: Options) -> OperationResult:
        if opts.dry_run:
            return OperationResult.noop(self.name, Operation.CLEAN, "dry run: clean skipped")
        return self._call(Operation.CLEAN, ["clean", "all"], opts)

    def _autoremove(self, names: list[str], opts: Options) -> OperationResult:
        if opts.dry_run:
            return OperationResult.noop(self.name, Operation.AUTOREMOVE, "dry run: autoremove skipped")
        args = ["autoremove", *self._confirm(opts)]
        return self._call(Operation.AUTOREMOVE, args, opts, parser.parse_transaction)

    # ── Verify ──────────────────────────────────────────────────

    def _verify_args(self, name: str) -> tuple[str, list[str]]:
        return "rpm", ["-q", "--qf", RPM_FORMAT, name]

    def _parse_verified(self, name: str, text: str) -> PackageRecord:
        records = parser.parse_rpm_query(text)
        return records[0] if records else super()._parse_verified(name, text)
