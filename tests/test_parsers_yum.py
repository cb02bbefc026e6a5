"""
Tests for YUM/DNF output parsers, against captured transcripts.
"""

import pytest

from syspkg.core.models.package import PackageStatus
from syspkg.core.parsers import yum

ROCKY = "rocky-9"


def _stdout(load_transcript, key):
    return load_transcript("yum", f"{key}.{ROCKY}").stdout_text


class TestNevra:
    @pytest.mark.parametrize("token,expected", [
        ("vim-enhanced-2:8.0.1763-19.el8_6.4.x86_64", ("vim-enhanced", "2:8.0.1763-19.el8_6.4", "x86_64")),
        ("gpm-libs-1.20.7-29.el9.x86_64", ("gpm-libs", "1.20.7-29.el9", "x86_64")),
        ("python3-setuptools-wheel-53.0.0-12.el9.noarch", ("python3-setuptools-wheel", "53.0.0-12.el9", "noarch")),
    ])
    def test_parse(self, token, expected):
        assert yum.parse_nevra(token) == expected

    def test_not_a_nevra(self):
        assert yum.parse_nevra("vim-enhanced.x86_64") is None

    def test_split_name_arch(self):
        assert yum.split_name_arch("python3.11.x86_64") == ("python3.11", "x86_64")
        assert yum.split_name_arch("noarch") == ("noarch", "")

    @pytest.mark.parametrize("target,expected", [
        ("vim-enhanced", True),
        ("vim-enhanced.x86_64", True),
        ("vim-enhanced-8.2.2637", True),
        ("vim-enhanced-2:8.2.2637-20.el9_1.x86_64", True),
        ("vim-enhanced-minimal", False),
        ("vim-enhanced.conf", False),
        ("vim", False),
    ])
    def test_names_target(self, target, expected):
        assert yum.names_target("vim-enhanced", target) is expected


class TestQueries:
    def test_search(self, load_transcript):
        records = yum.parse_search(_stdout(load_transcript, "search.normal.mixed"))
        assert [r.name for r in records] == ["vim-enhanced", "vim-common", "vim-minimal"]
        assert all(r.status == PackageStatus.UNKNOWN for r in records)
        assert records[2].arch == "x86_64"
        assert records[2].extra["summary"] == "A minimal version of the VIM editor"

    def test_rpm_query(self, load_transcript):
        records = {r.name: r for r in yum.parse_rpm_query(_stdout(load_transcript, "rpm-query.normal.mixed"))}
        assert records["vim-common"].status == PackageStatus.UNKNOWN
        assert records["vim-minimal"].status == PackageStatus.INSTALLED
        assert records["vim-minimal"].installed_version == "8.2.2637-20.el9_1"

    def test_list_installed_joins_wrapped_rows(self, load_transcript):
        records = yum.parse_list_installed(_stdout(load_transcript, "list-installed.normal.base"))
        assert [r.name for r in records] == ["bash", "ca-certificates", "python3-setuptools-wheel"]
        wheel = records[2]
        assert wheel.arch == "noarch"
        assert wheel.installed_version == "53.0.0-12.el9"
        assert wheel.category == "anaconda"

    def test_check_update(self, load_transcript):
        records = yum.parse_check_update(_stdout(load_transcript, "check-update.normal.updates"))
        assert [r.name for r in records] == ["curl", "libcurl", "python3-setuptools-wheel"]
        assert all(r.status == PackageStatus.UPGRADABLE for r in records)
        assert records[0].available_version == "7.76.1-26.el9_3.2"
        assert records[0].category == "baseos"

    def test_check_update_stops_at_obsoletes(self):
        text = (
            "curl.x86_64   7.76.1-26.el9_3.2   baseos\n"
            "Obsoleting Packages\n"
            "grub2-tools.x86_64   1:2.06-70.el9   baseos\n"
        )
        assert [r.name for r in yum.parse_check_update(text)] == ["curl"]


class TestInfo:
    def test_installed_and_available_is_upgradable(self, load_transcript):
        record = yum.parse_info(_stdout(load_transcript, "info.normal.upgradable"))
        assert record.name == "curl"
        assert record.status == PackageStatus.UPGRADABLE
        assert record.installed_version == "7.76.1-26.el9"
        assert record.available_version == "7.76.1-26.el9_3.2"
        assert record.arch == "x86_64"
        assert record.extra["url"] == "https://curl.se/"
        # continuation lines are joined
        assert record.extra["summary"].endswith("and others)")

    def test_available_only(self):
        text = (
            "Available Packages\n"
            "Name         : htop\n"
            "Epoch        : 0\n"
            "Version      : 3.2.1\n"
            "Release      : 1.el9\n"
            "Architecture : x86_64\n"
            "Repository   : epel\n"
        )
        record = yum.parse_info(text)
        assert record.status == PackageStatus.AVAILABLE
        assert record.available_version == "3.2.1-1.el9"
        assert record.installed_version == ""
        assert record.category == "epel"

    def test_epoch(self):
        text = "Installed Packages\nName : vim-enhanced\nEpoch : 2\nVersion : 8.2.2637\nRelease : 20.el9_1\n"
        record = yum.parse_info(text)
        assert record.installed_version == "2:8.2.2637-20.el9_1"
        assert record.status == PackageStatus.INSTALLED

    def test_nothing(self):
        assert yum.parse_info("Error: No matching Packages to list\n") is None


class TestTransactions:
    def test_dnf_install(self, load_transcript):
        records = yum.parse_transaction(_stdout(load_transcript, "install.normal.clean"))
        by_name = {r.name: r for r in records}
        assert set(by_name) == {"gpm-libs", "vim-enhanced"}
        assert by_name["vim-enhanced"].installed_version == "2:8.2.2637-20.el9_1"
        assert by_name["gpm-libs"].status == PackageStatus.INSTALLED

    def test_remove_test_transaction(self, load_transcript):
        records = yum.parse_transaction(_stdout(load_transcript, "remove.dry-run.installed"))
        assert {r.name for r in records} == {"gpm-libs", "vim-enhanced"}
        assert all(r.status == PackageStatus.AVAILABLE for r in records)
        assert all("removed_version" in r.extra for r in records)

    def test_classic_yum_pairs(self):
        text = "Installed:\n  vim-enhanced.x86_64 2:7.4.629-8.el7_9\n\nComplete!\n"
        (record,) = yum.parse_transaction(text)
        assert record.name == "vim-enhanced"
        assert record.arch == "x86_64"
        assert record.installed_version == "2:7.4.629-8.el7_9"

    def test_nothing_to_do(self, load_transcript):
        assert yum.parse_transaction(_stdout(load_transcript, "install.normal.already-installed")) == []
