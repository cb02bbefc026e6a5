"""
Tests for the package manager adapters.

Real adapters run their full pipeline against a MockCommandRunner
replaying captured transcripts; nothing touches the host.
"""

import time

import pytest

from syspkg.adapters.app.flatpak import FlatpakAdapter
from syspkg.adapters.app.snap import SnapAdapter
from syspkg.adapters.base import ListFilter, Options
from syspkg.adapters.mock import MockCommandRunner
from syspkg.adapters.system.apk import ApkAdapter
from syspkg.adapters.system.apt import STATUS_FORMAT, AptAdapter
from syspkg.adapters.system.yum import RPM_FORMAT, YumAdapter
from syspkg.core.models.outcome import Operation, OutcomeKind
from syspkg.core.models.package import PackageStatus

UBUNTU = "ubuntu-22.04"
ROCKY = "rocky-9"
ALPINE = "alpine-3.19"
FEDORA = "fedora-39"


def _by_name(result):
    return {r.name: r for r in result.packages}


# ── Shared pipeline ──────────────────────────────────────────────────


class TestPipeline:
    def test_bad_name_never_reaches_the_runner(self, mock_runner):
        result = AptAdapter(runner=mock_runner).install(["vim; reboot"])
        assert result.kind == OutcomeKind.USAGE_ERROR
        assert mock_runner.calls == []

    def test_bad_search_query(self, mock_runner):
        result = YumAdapter(runner=mock_runner).search("$(id)")
        assert result.kind == OutcomeKind.USAGE_ERROR
        assert mock_runner.call_count == 0

    def test_bad_custom_args(self, mock_runner):
        opts = Options(custom_args=["--opt;reboot"])
        result = ApkAdapter(runner=mock_runner).list_installed(opts)
        assert result.kind == OutcomeKind.USAGE_ERROR
        assert mock_runner.calls == []

    def test_empty_install_is_usage_error(self, mock_runner):
        result = SnapAdapter(runner=mock_runner).install([])
        assert result.kind == OutcomeKind.USAGE_ERROR

    def test_missing_binary_is_unavailable(self):
        runner = MockCommandRunner()
        adapter = AptAdapter(runner=runner)
        assert not adapter.is_available()
        result = adapter.list_installed()
        assert result.kind == OutcomeKind.UNAVAILABLE

    def test_custom_args_follow_the_subcommand(self, mock_runner, load_transcript):
        clean = load_transcript("apt", f"install.normal.clean.{UBUNTU}")
        mock_runner.add_result(["apt", "install", "--no-install-recommends", "-y", "htop"], clean)
        opts = Options(custom_args=["--no-install-recommends"])
        result = AptAdapter(runner=mock_runner).install("htop", opts)
        assert result.ok
        assert mock_runner.calls[0].args == ("install", "--no-install-recommends", "-y", "htop")

    def test_timeouts(self, replay):
        runner = replay("apt", f"list-installed.normal.base.{UBUNTU}")
        adapter = AptAdapter(runner=runner, timeout=30)
        adapter.list_installed()
        adapter.list_installed(Options(timeout=5))
        assert [c.timeout for c in runner.calls] == [30, 5]

    def test_deadline_caps_timeouts(self, replay):
        runner = replay("apt", f"list-installed.normal.base.{UBUNTU}")
        adapter = AptAdapter(runner=runner, timeout=30)
        adapter.deadline = time.monotonic() + 2
        adapter.list_installed()
        adapter.list_installed(Options(timeout=1))
        capped, shorter = (c.timeout for c in runner.calls)
        assert 0 < capped <= 2
        assert shorter == 1

    def test_past_deadline_still_sets_a_timeout(self, replay):
        runner = replay("apt", f"list-installed.normal.base.{UBUNTU}")
        adapter = AptAdapter(runner=runner)
        adapter.deadline = time.monotonic() - 1
        adapter.list_installed()
        assert 0 < runner.calls[0].timeout < 1

    def test_interactive_runs_attached(self, mock_runner):
        mock_runner.add_output(["apt", "install", "htop"])
        result = AptAdapter(runner=mock_runner).install("htop", Options(interactive=True))
        assert result.ok
        assert result.detail == "interactive run, output not captured"
        assert mock_runner.calls[0].interactive

    def test_interactive_with_assume_yes(self, mock_runner):
        mock_runner.add_output(["apt", "install", "-y", "htop"])
        AptAdapter(runner=mock_runner).install("htop", Options(interactive=True, assume_yes=True))
        assert mock_runner.calls[0].args == ("install", "-y", "htop")

    def test_queries_are_never_interactive(self, replay):
        runner = replay("apt", f"list-installed.normal.base.{UBUNTU}")
        result = AptAdapter(runner=runner).list_installed(Options(interactive=True))
        assert result.ok
        assert not runner.calls[0].interactive
        assert len(result.packages) == 4

    def test_duration_recorded(self, replay):
        runner = replay("apt", f"list-installed.normal.base.{UBUNTU}")
        result = AptAdapter(runner=runner).list_installed()
        assert result.duration_ms >= 0
        assert result.manager == "apt"
        assert result.operation == Operation.LIST_INSTALLED


# ── APT ──────────────────────────────────────────────────────────────


class TestAptAdapter:
    def test_is_available(self, mock_runner):
        mock_runner.add_output(["apt", "--version"], "apt 2.4.11 (amd64)\n")
        assert AptAdapter(runner=mock_runner).is_available()

    def test_unrelated_apt_binary(self, mock_runner):
        mock_runner.add_output(["apt", "--version"], "Annotation processing tool 1.8\n")
        assert not AptAdapter(runner=mock_runner).is_available()

    def test_search_resolves_install_state(self, replay):
        runner = replay(
            "apt",
            f"search.normal.mixed.{UBUNTU}",
            f"dpkg-status.normal.mixed.{UBUNTU}",
        )
        result = AptAdapter(runner=runner).search("terminal")
        assert result.ok
        packages = _by_name(result)
        assert packages["bash"].status == PackageStatus.INSTALLED
        assert packages["byobu"].status == PackageStatus.AVAILABLE
        assert packages["cloudflared"].status == PackageStatus.UPGRADABLE
        assert packages["cloudflared"].installed_version == "2023.3.1"
        assert [c.program for c in runner.calls] == ["apt", "dpkg-query"]

    def test_search_keeps_records_when_status_pass_fails(self, replay):
        runner = replay("apt", f"search.normal.mixed.{UBUNTU}")
        result = AptAdapter(runner=runner).search("terminal")
        assert result.ok
        assert _by_name(result)["byobu"].status == PackageStatus.UNKNOWN

    def test_search_no_match(self, replay):
        runner = replay("apt", f"search.normal.no-match.{UBUNTU}")
        result = AptAdapter(runner=runner).search("zzznotapackage")
        assert result.ok
        assert result.packages == []
        assert runner.call_count == 1

    def test_list_upgradable(self, replay):
        runner = replay("apt", f"list-upgradable.normal.updates.{UBUNTU}")
        result = AptAdapter(runner=runner).list_upgradable()
        assert [r.name for r in result.packages] == ["cloudflared", "libssl3"]

    def test_list_packages_all_prefers_upgradable(self, replay):
        runner = replay(
            "apt",
            f"list-installed.normal.base.{UBUNTU}",
            f"list-upgradable.normal.updates.{UBUNTU}",
        )
        result = AptAdapter(runner=runner).list_packages(ListFilter.ALL)
        names = [r.name for r in result.packages]
        assert names == ["adduser", "bash", "cloudflared", "libc6", "libssl3"]
        assert _by_name(result)["cloudflared"].status == PackageStatus.UPGRADABLE
        assert result.operation == Operation.LIST_PACKAGES

    def test_list_packages_rejects_unknown_filter(self, mock_runner):
        with pytest.raises(ValueError):
            AptAdapter(runner=mock_runner).list_packages("everything")

    def test_install(self, replay):
        runner = replay("apt", f"install.normal.clean.{UBUNTU}")
        result = AptAdapter(runner=runner).install("htop")
        assert result.ok
        assert [r.name for r in result.packages] == ["libnl-3-200", "libnl-genl-3-200", "htop"]
        assert all(r.status == PackageStatus.INSTALLED and r.installed_version for r in result.packages)
        assert runner.calls[0].env["DEBIAN_FRONTEND"] == "noninteractive"

    def test_install_already_newest(self, mock_runner):
        mock_runner.add_output(
            ["apt", "install", "-y", "bash"],
            "bash is already the newest version (5.1-6ubuntu1).\n0 upgraded, 0 newly installed.\n",
        )
        mock_runner.add_output(
            ["dpkg-query", "-W", "--showformat", STATUS_FORMAT, "bash"],
            "bash install ok installed 5.1-6ubuntu1\n",
        )
        result = AptAdapter(runner=mock_runner).install("bash")
        (record,) = result.packages
        assert record.status == PackageStatus.INSTALLED
        assert record.installed_version == "5.1-6ubuntu1"

    def test_install_not_found(self, replay):
        runner = replay("apt", f"install.normal.not-found.{UBUNTU}")
        result = AptAdapter(runner=runner).install("nosuchpkg")
        assert result.kind == OutcomeKind.NOT_FOUND
        assert result.detail == "Unable to locate package nosuchpkg"

    def test_install_not_root(self, replay):
        runner = replay("apt", f"install.normal.not-root.{UBUNTU}")
        result = AptAdapter(runner=runner).install("htop")
        assert result.kind == OutcomeKind.PERMISSION_DENIED

    def test_install_dry_run(self, replay):
        runner = replay("apt", f"install.dry-run.clean.{UBUNTU}")
        result = AptAdapter(runner=runner).install("htop", Options(dry_run=True))
        assert result.ok
        assert result.dry_run
        assert len(result.packages) == 3
        assert all(r.status == PackageStatus.WOULD_INSTALL for r in result.packages)
        assert "-y" not in runner.calls[0].args

    def test_remove_dry_run(self, replay):
        runner = replay("apt", f"remove.dry-run.installed.{UBUNTU}")
        result = AptAdapter(runner=runner).remove("cowsay", Options(dry_run=True))
        (record,) = result.packages
        assert record.status == PackageStatus.WOULD_REMOVE
        assert result.dry_run

    def test_upgrade_dry_run(self, replay):
        runner = replay("apt", f"upgrade.dry-run.updates.{UBUNTU}")
        result = AptAdapter(runner=runner).upgrade(opts=Options(dry_run=True))
        assert {r.status for r in result.packages} == {PackageStatus.WOULD_UPGRADE}
        assert {r.name for r in result.packages} == {"cloudflared", "libssl3"}

    def test_upgrade_named_uses_only_upgrade(self, mock_runner):
        mock_runner.add_output(["apt", "install", "--only-upgrade", "-y", "curl"])
        result = AptAdapter(runner=mock_runner).upgrade(["curl"])
        assert result.ok
        assert mock_runner.calls[0].args == ("install", "--only-upgrade", "-y", "curl")

    def test_refresh_dry_run_runs_nothing(self, mock_runner):
        result = AptAdapter(runner=mock_runner).refresh(Options(dry_run=True))
        assert result.ok
        assert result.dry_run
        assert mock_runner.calls == []

    def test_get_info(self, replay, mock_runner):
        replay("apt", f"info.normal.installed.{UBUNTU}")
        mock_runner.add_output(
            ["dpkg-query", "-W", "--showformat", STATUS_FORMAT, "bash"],
            "bash install ok installed 5.1-6ubuntu1\n",
        )
        result = AptAdapter(runner=mock_runner).get_info("bash")
        assert result.package.status == PackageStatus.INSTALLED
        assert result.package.category == "shells"

    def test_get_info_unknown(self, mock_runner):
        mock_runner.add_output(
            ["apt-cache", "show", "nosuchpkg"], stderr="E: No packages found\n", exit_code=100,
        )
        result = AptAdapter(runner=mock_runner).get_info("nosuchpkg")
        assert result.kind == OutcomeKind.NOT_FOUND

    def test_verify_config_files_is_not_installed(self, replay):
        runner = replay("apt", f"verify.normal.config-files.{UBUNTU}")
        result = AptAdapter(runner=runner).verify("cowsay")
        assert result.ok
        (record,) = result.packages
        assert record.status == PackageStatus.UNKNOWN
        assert record.extra["verified"] == "false"
        assert record.extra["issue"] == "not fully installed"

    def test_verify_mixed(self, mock_runner):
        mock_runner.add_output(
            ["dpkg", "-s", "bash"],
            "Package: bash\nStatus: install ok installed\nVersion: 5.1-6ubuntu1\n",
        )
        mock_runner.add_output(
            ["dpkg", "-s", "byobu"],
            stderr="dpkg-query: package 'byobu' is not installed and no information is available\n",
            exit_code=1,
        )
        result = AptAdapter(runner=mock_runner).verify(["bash", "byobu"])
        packages = _by_name(result)
        assert packages["bash"].extra["verified"] == "true"
        assert packages["bash"].installed_version == "5.1-6ubuntu1"
        assert packages["byobu"].status == PackageStatus.UNKNOWN
        assert packages["byobu"].extra["verified"] == "false"

    def test_status(self, replay, mock_runner):
        replay("apt", f"list-installed.normal.base.{UBUNTU}")
        mock_runner.add_output(["apt", "--version"], "apt 2.4.11 (amd64)\n")
        mock_runner.add_output(
            ["apt-cache", "stats"],
            "Total package names: 68232 (1,365 k)\n  Normal packages: 53118\n",
        )
        result = AptAdapter(runner=mock_runner).status()
        status = result.manager_status
        assert status.available
        assert status.healthy
        assert status.version == "2.4.11"
        assert status.installed_count == 4
        assert status.package_count == 53118

    def test_status_unavailable_still_succeeds(self):
        result = AptAdapter(runner=MockCommandRunner()).status()
        assert result.ok
        assert not result.manager_status.available
        assert result.manager_status.issues


# ── YUM ──────────────────────────────────────────────────────────────


class TestYumAdapter:
    def test_search_resolves_install_state(self, replay):
        runner = replay("yum", f"search.normal.mixed.{ROCKY}", f"rpm-query.normal.mixed.{ROCKY}")
        result = YumAdapter(runner=runner).search("vim")
        packages = _by_name(result)
        assert packages["vim-minimal"].status == PackageStatus.INSTALLED
        assert packages["vim-minimal"].installed_version == "8.2.2637-20.el9_1"
        assert packages["vim-enhanced"].status == PackageStatus.AVAILABLE
        assert packages["vim-common"].status == PackageStatus.AVAILABLE

    def test_list_upgradable_exit_100(self, replay):
        runner = replay("yum", f"check-update.normal.updates.{ROCKY}", f"rpm-query.normal.updates.{ROCKY}")
        result = YumAdapter(runner=runner).list_upgradable()
        assert result.ok
        curl = _by_name(result)["curl"]
        assert curl.installed_version == "7.76.1-26.el9"
        assert curl.available_version == "7.76.1-26.el9_3.2"

    def test_list_upgradable_without_rpm_versions(self, replay):
        runner = replay("yum", f"check-update.normal.updates.{ROCKY}")
        result = YumAdapter(runner=runner).list_upgradable()
        assert result.ok
        assert result.packages
        # rpm gave nothing to compare against, so no record can claim UPGRADABLE
        assert {r.status for r in result.packages} == {PackageStatus.UNKNOWN}
        assert all(r.available_version for r in result.packages)

    def test_list_installed(self, replay):
        runner = replay("yum", f"list-installed.normal.base.{ROCKY}")
        result = YumAdapter(runner=runner).list_installed()
        assert len(result.packages) == 3

    def test_install(self, replay):
        runner = replay("yum", f"install.normal.clean.{ROCKY}")
        result = YumAdapter(runner=runner).install("vim-enhanced")
        assert {r.name for r in result.packages} == {"gpm-libs", "vim-enhanced"}
        assert runner.call_count == 1

    def test_install_already_installed(self, replay, mock_runner):
        replay("yum", f"install.normal.already-installed.{ROCKY}")
        mock_runner.add_output(["rpm", "-q", "--qf", RPM_FORMAT, "bash"], "bash 5.1.8-6.el9_1 x86_64\n")
        result = YumAdapter(runner=mock_runner).install("bash")
        (record,) = result.packages
        assert record.status == PackageStatus.INSTALLED
        assert record.available_version == "5.1.8-6.el9_1"

    def test_install_arch_qualified_target(self, mock_runner, load_transcript):
        clean = load_transcript("yum", f"install.normal.clean.{ROCKY}")
        mock_runner.add_result(["yum", "install", "-y", "vim-enhanced.x86_64"], clean)
        result = YumAdapter(runner=mock_runner).install("vim-enhanced.x86_64")
        assert sorted(r.name for r in result.packages) == ["gpm-libs", "vim-enhanced"]
        # the transaction already named the target; no rpm pass
        assert mock_runner.call_count == 1

    def test_install_repeated_target_reported_once(self, mock_runner):
        mock_runner.add_output(
            ["yum", "install", "-y", "bash", "bash.x86_64"],
            "Package bash-5.1.8-6.el9_1.x86_64 is already installed.\nNothing to do.\nComplete!\n",
        )
        mock_runner.add_output(
            ["rpm", "-q", "--qf", RPM_FORMAT, "bash", "bash.x86_64"],
            "bash 5.1.8-6.el9_1 x86_64\nbash 5.1.8-6.el9_1 x86_64\n",
        )
        result = YumAdapter(runner=mock_runner).install(["bash", "bash.x86_64"])
        assert [r.name for r in result.packages] == ["bash"]

    def test_install_not_found(self, replay):
        runner = replay("yum", f"install.normal.not-found.{ROCKY}")
        result = YumAdapter(runner=runner).install("nosuchpkg")
        assert result.kind == OutcomeKind.NOT_FOUND
        assert result.detail == "Unable to find a match: nosuchpkg"

    def test_remove_dry_run(self, replay):
        runner = replay("yum", f"remove.dry-run.installed.{ROCKY}")
        result = YumAdapter(runner=runner).remove("vim-enhanced", Options(dry_run=True))
        assert result.dry_run
        assert {r.status for r in result.packages} == {PackageStatus.WOULD_REMOVE}
        assert "--setopt=tsflags=test" in runner.calls[0].args

    def test_get_info(self, replay):
        runner = replay("yum", f"info.normal.upgradable.{ROCKY}")
        result = YumAdapter(runner=runner).get_info("curl")
        assert result.package.status == PackageStatus.UPGRADABLE

    @pytest.mark.parametrize("operation", ["refresh", "clean", "autoremove"])
    def test_dry_run_noops(self, mock_runner, operation):
        result = getattr(YumAdapter(runner=mock_runner), operation)(Options(dry_run=True))
        assert result.ok
        assert result.dry_run
        assert mock_runner.calls == []

    def test_verify(self, mock_runner):
        mock_runner.add_output(["rpm", "-q", "--qf", RPM_FORMAT, "bash"], "bash 5.1.8-6.el9_1 x86_64\n")
        mock_runner.add_output(
            ["rpm", "-q", "--qf", RPM_FORMAT, "nosuchpkg"],
            "package nosuchpkg is not installed\n",
            exit_code=1,
        )
        packages = _by_name(YumAdapter(runner=mock_runner).verify(["bash", "nosuchpkg"]))
        assert packages["bash"].extra["verified"] == "true"
        assert packages["nosuchpkg"].extra["verified"] == "false"


# ── APK ──────────────────────────────────────────────────────────────


class TestApkAdapter:
    def test_search_merges_installed(self, replay):
        runner = replay("apk", f"search.normal.hits.{ALPINE}", f"list-installed.normal.base.{ALPINE}")
        packages = _by_name(ApkAdapter(runner=runner).search("curl"))
        assert packages["curl"].status == PackageStatus.UPGRADABLE
        assert packages["curl"].installed_version == "8.4.0-r0"
        assert packages["curl-doc"].status == PackageStatus.AVAILABLE

    def test_get_info(self, replay):
        runner = replay("apk", f"info.normal.available.{ALPINE}", f"list-installed.normal.base.{ALPINE}")
        result = ApkAdapter(runner=runner).get_info("curl")
        assert result.package.status == PackageStatus.UPGRADABLE
        assert result.package.extra["webpage"] == "https://curl.se/"

    def test_get_info_unknown(self, replay):
        runner = replay("apk", f"info.normal.unknown.{ALPINE}")
        result = ApkAdapter(runner=runner).get_info("nosuchpkg")
        assert result.kind == OutcomeKind.NOT_FOUND
        assert result.detail == "no such package: nosuchpkg"

    def test_install(self, replay):
        runner = replay("apk", f"add.normal.clean.{ALPINE}")
        result = ApkAdapter(runner=runner).install("curl")
        assert [r.name for r in result.packages] == ["ca-certificates", "libcurl", "curl"]
        assert runner.call_count == 1

    def test_install_simulated(self, replay):
        runner = replay("apk", f"add.simulate.clean.{ALPINE}")
        result = ApkAdapter(runner=runner).install("curl", Options(dry_run=True))
        assert result.dry_run
        assert {r.status for r in result.packages} == {PackageStatus.WOULD_INSTALL}
        assert runner.calls[0].args == ("add", "--simulate", "curl")

    def test_install_not_root(self, replay):
        runner = replay("apk", f"add.normal.not-root.{ALPINE}")
        assert ApkAdapter(runner=runner).install("curl").kind == OutcomeKind.PERMISSION_DENIED

    def test_upgrade(self, replay):
        runner = replay("apk", f"upgrade.normal.updates.{ALPINE}")
        (record,) = ApkAdapter(runner=runner).upgrade().packages
        assert record.installed_version == "8.5.0-r0"

    def test_remove(self, replay):
        runner = replay("apk", f"del.normal.installed.{ALPINE}")
        result = ApkAdapter(runner=runner).remove("curl")
        assert {r.status for r in result.packages} == {PackageStatus.AVAILABLE}

    def test_autoremove_is_noop(self, mock_runner):
        result = ApkAdapter(runner=mock_runner).autoremove()
        assert result.ok
        assert "orphaned" in result.detail
        assert mock_runner.calls == []

    def test_version(self, mock_runner):
        mock_runner.add_output(["apk", "--version"], "apk-tools 2.14.0, compiled for x86_64.\n")
        assert ApkAdapter(runner=mock_runner).version() == "2.14.0"


# ── Snap ─────────────────────────────────────────────────────────────


class TestSnapAdapter:
    def test_is_available_probes_snapd(self, mock_runner):
        adapter = SnapAdapter(runner=mock_runner)
        assert not adapter.is_available()
        mock_runner.add_output(["snap", "version"], "snap    2.60.4\nsnapd   2.60.4\n")
        assert adapter.is_available()
        assert adapter.version() == "2.60.4"

    def test_search(self, replay):
        runner = replay("snap", f"find.normal.hits.{UBUNTU}", f"list.normal.base.{UBUNTU}")
        packages = _by_name(SnapAdapter(runner=runner).search("firefox"))
        assert packages["firefox"].status == PackageStatus.UPGRADABLE
        assert packages["firefox-esr"].status == PackageStatus.AVAILABLE

    def test_search_no_match(self, replay):
        runner = replay("snap", f"find.normal.no-match.{UBUNTU}")
        result = SnapAdapter(runner=runner).search("zzznotasnap")
        assert result.ok
        assert result.packages == []

    def test_list_upgradable(self, replay):
        runner = replay("snap", f"refresh-list.normal.updates.{UBUNTU}", f"list.normal.base.{UBUNTU}")
        (record,) = SnapAdapter(runner=runner).list_upgradable().packages
        assert record.installed_version == "119.0-2"
        assert record.available_version == "120.0.1-1"

    def test_list_upgradable_without_listing(self, replay):
        runner = replay("snap", f"refresh-list.normal.updates.{UBUNTU}")
        (record,) = SnapAdapter(runner=runner).list_upgradable().packages
        assert record.status == PackageStatus.UNKNOWN
        assert record.available_version == "120.0.1-1"

    def test_get_info(self, replay):
        runner = replay("snap", f"info.normal.installed.{UBUNTU}")
        result = SnapAdapter(runner=runner).get_info("firefox")
        assert result.package.status == PackageStatus.UPGRADABLE

    def test_install(self, replay):
        runner = replay("snap", f"install.normal.clean.{UBUNTU}")
        (record,) = SnapAdapter(runner=runner).install("hello-world").packages
        assert record.installed_version == "6.4"
        assert record.status == PackageStatus.INSTALLED

    def test_install_not_root(self, replay):
        runner = replay("snap", f"install.normal.not-root.{UBUNTU}")
        assert SnapAdapter(runner=runner).install("hello-world").kind == OutcomeKind.PERMISSION_DENIED

    def test_install_runs_once_per_name(self, mock_runner):
        mock_runner.add_output(["snap", "install", "a-snap"], "a-snap 1.0 from someone installed\n")
        mock_runner.add_output(["snap", "install", "b-snap"], stderr='error: snap "b-snap" not found\n', exit_code=1)
        result = SnapAdapter(runner=mock_runner).install(["a-snap", "b-snap"])
        assert result.kind == OutcomeKind.NOT_FOUND
        # names done before the failure are still reported
        assert [r.name for r in result.packages] == ["a-snap"]

    def test_remove_dry_run_uses_info(self, replay):
        runner = replay("snap", f"info.normal.installed.{UBUNTU}")
        result = SnapAdapter(runner=runner).remove("firefox", Options(dry_run=True))
        (record,) = result.packages
        assert record.status == PackageStatus.WOULD_REMOVE
        assert result.dry_run
        assert [c.args[0] for c in runner.calls] == ["info"]

    def test_clean_is_noop(self, mock_runner):
        assert SnapAdapter(runner=mock_runner).clean().ok
        assert mock_runner.calls == []

    def test_verify(self, mock_runner, load_transcript):
        listing = load_transcript("snap", f"list.normal.base.{UBUNTU}")
        mock_runner.add_result(["snap", "list", "--unicode=never", "firefox"], listing)
        (record,) = SnapAdapter(runner=mock_runner).verify("firefox").packages
        assert record.extra["verified"] == "true"
        assert record.installed_version == "119.0-2"


# ── Flatpak ──────────────────────────────────────────────────────────


class TestFlatpakAdapter:
    def test_search(self, replay):
        runner = replay("flatpak", f"search.normal.hits.{FEDORA}", f"list.normal.base.{FEDORA}")
        packages = _by_name(FlatpakAdapter(runner=runner).search("gimp"))
        assert packages["org.gimp.GIMP"].status == PackageStatus.UPGRADABLE
        assert packages["org.gimp.GIMP"].installed_version == "2.10.34"
        assert packages["org.gimp.GIMP.Manual"].status == PackageStatus.AVAILABLE
        assert runner.calls[0].env == {"LANG": "C"}

    def test_search_no_match(self, replay):
        runner = replay("flatpak", f"search.normal.no-match.{FEDORA}")
        result = FlatpakAdapter(runner=runner).search("zzznotanapp")
        assert result.ok
        assert result.packages == []

    def test_install_takes_version_from_list(self, replay):
        runner = replay("flatpak", f"install.normal.clean.{FEDORA}", f"list.normal.base.{FEDORA}")
        (record,) = FlatpakAdapter(runner=runner).install("org.mozilla.firefox").packages
        assert record.name == "org.mozilla.firefox"
        assert record.installed_version == "121.0"
        assert record.status == PackageStatus.INSTALLED

    def test_install_interactive_drops_noninteractive(self, mock_runner):
        mock_runner.add_output(["flatpak", "install", "org.mozilla.firefox"])
        FlatpakAdapter(runner=mock_runner).install("org.mozilla.firefox", Options(interactive=True))
        assert mock_runner.calls[0].args == ("install", "org.mozilla.firefox")
        assert mock_runner.calls[0].interactive

    def test_install_dry_run_needs_exact_id(self, replay, mock_runner):
        replay("flatpak", f"list.normal.base.{FEDORA}")
        mock_runner.add_output(
            ["flatpak", "search", "--columns=name,description,application,version,branch,remotes", "org.example.Missing"],
            "No matches found\n",
        )
        result = FlatpakAdapter(runner=mock_runner).install("org.example.Missing", Options(dry_run=True))
        assert result.kind == OutcomeKind.NOT_FOUND
        assert result.dry_run

    def test_get_info_not_installed(self, replay):
        runner = replay("flatpak", f"info.normal.not-installed.{FEDORA}")
        result = FlatpakAdapter(runner=runner).get_info("org.example.Missing")
        assert result.kind == OutcomeKind.NOT_FOUND

    def test_list_upgradable_covers_runtimes(self, replay):
        runner = replay("flatpak", f"remote-ls.normal.updates.{FEDORA}", f"list.normal.all.{FEDORA}")
        packages = _by_name(FlatpakAdapter(runner=runner).list_upgradable())
        assert packages["org.gimp.GIMP"].installed_version == "2.10.34"
        assert packages["org.freedesktop.Platform"].installed_version == "23.08.13"
        assert packages["org.freedesktop.Platform"].available_version == "23.08.14"
        # neither side reports a version for this runtime
        assert packages["org.gnome.Platform"].status == PackageStatus.UNKNOWN
        for record in packages.values():
            if record.status == PackageStatus.UPGRADABLE:
                assert record.installed_version and record.available_version
                assert record.installed_version != record.available_version
        assert "--app" not in runner.calls[1].args

    def test_list_upgradable_without_listing(self, replay):
        runner = replay("flatpak", f"remote-ls.normal.updates.{FEDORA}")
        result = FlatpakAdapter(runner=runner).list_upgradable()
        assert result.ok
        assert {r.status for r in result.packages} == {PackageStatus.UNKNOWN}

    def test_upgrade_dry_run(self, replay):
        runner = replay("flatpak", f"remote-ls.normal.updates.{FEDORA}", f"list.normal.all.{FEDORA}")
        result = FlatpakAdapter(runner=runner).upgrade(["org.gimp.GIMP"], Options(dry_run=True))
        (record,) = result.packages
        assert record.status == PackageStatus.WOULD_UPGRADE
        assert record.installed_version == "2.10.34"
        assert not any(c.args[0] == "update" for c in runner.calls)

    def test_verify(self, replay):
        runner = replay("flatpak", f"info.normal.installed.{FEDORA}", f"info.normal.not-installed.{FEDORA}")
        packages = _by_name(FlatpakAdapter(runner=runner).verify(["org.gimp.GIMP", "org.example.Missing"]))
        assert packages["org.gimp.GIMP"].extra["verified"] == "true"
        assert packages["org.example.Missing"].status == PackageStatus.UNKNOWN
