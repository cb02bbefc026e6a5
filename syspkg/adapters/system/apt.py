"""
APT adapter - Debian and Ubuntu systems.

Queries go through ``apt``, ``apt-cache`` and ``dpkg-query``; mutating
commands through ``self.binary`` (``apt`` unless configured, e.g.
``apt-fast``).

Dry-run:
    install / remove / upgrade / autoremove / clean
        apt's own ``--dry-run``; "Inst"/"Remv" lines become
        WOULD_INSTALL, WOULD_REMOVE or UPGRADABLE records.
    refresh
        no-op success; ``apt update`` has no simulate mode.
"""

from __future__ import annotations

import logging

from syspkg.adapters.base import Options, PackageManagerAdapter, single
from syspkg.core.classifiers import apt as apt_classifier
from syspkg.core.models.outcome import Operation, OperationResult
from syspkg.core.models.package import ManagerStatus, PackageRecord, PackageStatus
from syspkg.core.parsers import apt as parser
from syspkg.core.parsers.common import base_name, merge_install_state, parse_key_values

logger = logging.getLogger(__name__)

APT = "apt"
DPKG_QUERY = "dpkg-query"
STATUS_FORMAT = "${binary:Package} ${Status} ${Version}\n"
LIST_FORMAT = "${binary:Package} ${Version} ${Architecture}\n"


class AptAdapter(PackageManagerAdapter):
    """APT package manager adapter."""

    category = "system"
    priority = 90
    default_binary = APT
    env = {
        "DEBIAN_FRONTEND": "noninteractive",
        "DEBCONF_NONINTERACTIVE_SEEN": "true",
    }
    classifier = apt_classifier.classifier

    @property
    def name(self) -> str:
        return "apt"

    def is_available(self) -> bool:
        for program in {APT, "dpkg", self.binary}:
            if self.runner.which(program) is None:
                return False
        probe = self.runner.run(APT, ["--version"], self.env, self._check_timeout())
        # Some distributions ship an unrelated /usr/bin/apt (Java annotation tool)
        return probe.ok and probe.stdout_text.startswith("apt ")

    # ── Queries ─────────────────────────────────────────────────

    def _search(self, query: str, opts: Options) -> OperationResult:
        outcome = self._run(Operation.SEARCH, ["search", query], opts, program=APT)
        result = self._result(Operation.SEARCH, outcome, parser.parse_search)
        if result.failed or not result.packages:
            return result

        states = self._dpkg_status(sorted({r.name for r in result.packages}), opts)
        if states is None:
            return result
        return result.model_copy(update={"packages": merge_install_state(result.packages, states)})

    def _list_installed(self, names: list[str], opts: Options) -> OperationResult:
        outcome = self._run(
            Operation.LIST_INSTALLED, ["-W", "-f", LIST_FORMAT], opts, program=DPKG_QUERY,
        )
        return self._result(Operation.LIST_INSTALLED, outcome, parser.parse_list_installed)

    def _list_upgradable(self, names: list[str], opts: Options) -> OperationResult:
        outcome = self._run(Operation.LIST_UPGRADABLE, ["list", "--upgradable"], opts, program=APT)
        return self._result(Operation.LIST_UPGRADABLE, outcome, parser.parse_list_upgradable)

    def _get_info(self, name: str, opts: Options) -> OperationResult:
        outcome = self._run(Operation.GET_INFO, ["show", name], opts, program="apt-cache")
        result = self._result(Operation.GET_INFO, outcome, single(parser.parse_info))
        if result.failed or not result.packages:
            return result
        states = self._dpkg_status([name], opts)
        if states is None:
            return result
        return result.model_copy(update={"packages": merge_install_state(result.packages, states)})

    def _dpkg_status(self, names: list[str], opts: Options) -> list[PackageRecord] | None:
        """Second pass: install state per name, or None if dpkg-query failed.

        Unknown names arrive on stderr as "no packages found matching";
        they become UNKNOWN records instead of failing the batch.
        """
        outcome = self._run(
            Operation.SEARCH,
            ["-W", "--showformat", STATUS_FORMAT, *names],
            opts,
            program=DPKG_QUERY,
            passthrough=False,
        )
        if not outcome.ok or outcome.raw is None:
            logger.debug("dpkg-query status pass failed: %s", outcome.detail)
            return None
        return parser.parse_dpkg_status(f"{outcome.raw.stdout_text}\n{outcome.raw.stderr_text}")

    # ── Mutations ───────────────────────────────────────────────

    def _install(self, names: list[str], opts: Options) -> OperationResult:
        if opts.dry_run:
            return self._simulate(Operation.INSTALL, ["install", "--dry-run", *names], opts)

        args = ["install", *self._confirm(opts), *names]
        result = self._call(Operation.INSTALL, args, opts, parser.parse_install)
        if result.failed or (result.raw is not None and not result.raw.captured):
            return result
        return result.model_copy(update={"packages": self._installed(names, result.packages, opts)})

    def _installed(
        self,
        names: list[str],
        parsed: list[PackageRecord],
        opts: Options,
    ) -> list[PackageRecord]:
        """Complete install results for names apt did not set up this run.

        "is already the newest version" prints no "Setting up" line, so
        those names are looked up in dpkg. Only installed records are kept.
        """
        seen = {r.name for r in parsed}
        missing = [base_name(n) for n in names if base_name(n) not in seen]
        records = [r for r in parsed if r.installed_version]
        if missing:
            states = self._dpkg_status(missing, opts) or []
            records.extend(
                r.evolve(available_version=r.installed_version)
                for r in states
                if r.status == PackageStatus.INSTALLED and r.installed_version
            )
        return records

    def _remove(self, names: list[str], opts: Options) -> OperationResult:
        if opts.dry_run:
            return self._simulate(Operation.REMOVE, ["remove", "--dry-run", *names], opts)
        args = ["remove", *self._confirm(opts), *names]
        return self._call(Operation.REMOVE, args, opts, parser.parse_remove)

    def _refresh(self, names: list[str], opts: Options) -> OperationResult:
        if opts.dry_run:
            return OperationResult.noop(
                self.name, Operation.REFRESH, "dry run: apt update not simulated", dry_run=True,
            )
        return self._call(Operation.REFRESH, ["update"], opts)

    def _upgrade(self, names: list[str], opts: Options) -> OperationResult:
        if names:
            base = ["install", "--only-upgrade"]
        else:
            base = ["upgrade"]
        if opts.dry_run:
            return self._simulate(Operation.UPGRADE, [*base, "--dry-run", *names], opts)
        args = [*base, *self._confirm(opts), *names]
        return self._call(Operation.UPGRADE, args, opts, parser.parse_install)

    def _clean(self, names: list[str], opts: Options) -> OperationResult:
        args = ["autoclean", "--dry-run"] if opts.dry_run else ["autoclean"]
        return self._call(Operation.CLEAN, args, opts)

    def _autoremove(self, names: list[str], opts: Options) -> OperationResult:
        if opts.dry_run:
            return self._simulate(Operation.AUTOREMOVE, ["autoremove", "--dry-run"], opts)
        args = ["autoremove", *self._confirm(opts)]
        return self._call(Operation.AUTOREMOVE, args, opts, parser.parse_remove)

    def _simulate(self, operation: Operation, args: list[str], opts: Options) -> OperationResult:
        # Simulation never prompts and needs no terminal
        outcome = self._run(operation, args, opts.model_copy(update={"interactive": False}))
        result = self._result(operation, outcome, parser.parse_simulation)
        if result.ok and operation == Operation.UPGRADE:
            upgrades = [
                r.evolve(status=PackageStatus.WOULD_UPGRADE)
                if r.status == PackageStatus.UPGRADABLE else r
                for r in result.packages
            ]
            result = result.model_copy(update={"packages": upgrades})
        return result.model_copy(update={"dry_run": True})

    # ── Verify / status ─────────────────────────────────────────

    def _verify_args(self, name: str) -> tuple[str, list[str]]:
        return "dpkg", ["-s", name]

    def _parse_verified(self, name: str, text: str) -> PackageRecord:
        fields = parse_key_values(line for line in text.splitlines() if not line.startswith(" "))
        installed = fields.get("Status", "").endswith(" installed")
        return PackageRecord(
            name=fields.get("Package", name),
            installed_version=fields.get("Version", "") if installed else "",
            status=PackageStatus.INSTALLED if installed else PackageStatus.UNKNOWN,
            arch=fields.get("Architecture", ""),
            manager=self.name,
        )

    def _parse_version(self, text: str) -> str:
        # "apt 2.4.11 (amd64)"
        parts = text.split()
        return parts[1] if len(parts) > 1 and parts[0] == "apt" else super()._parse_version(text)

    def version(self) -> str:
        outcome = self._run(Operation.STATUS, ["--version"], Options(), program=APT, passthrough=False)
        return self._parse_version(outcome.raw.stdout_text) if outcome.ok and outcome.raw else ""

    def _status_details(self, status: ManagerStatus, opts: Options) -> None:
        outcome = self._run(Operation.STATUS, ["stats"], opts, program="apt-cache", passthrough=False)
        if not outcome.ok or outcome.raw is None:
            status.issues.append(f"apt-cache stats failed: {outcome.detail}")
            return
        stats = parser.parse_cache_stats(outcome.raw.stdout_text)
        status.package_count = stats.get("normal_packages", stats.get("total_package_names", 0))
        for key, value in stats.items():
            status.metadata[key] = str(value)

