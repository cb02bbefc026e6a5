"""
Tests for configuration loading — syspkg.yml parsing and validation.
"""

import textwrap
from pathlib import Path

import pytest

from syspkg.core.config.loader import (
    ConfigError,
    ManagerConfig,
    SyspkgConfig,
    find_config_file,
    load_config,
)


@pytest.fixture(autouse=True)
def _no_env_config(monkeypatch):
    monkeypatch.delenv("SYSPKG_CONFIG", raising=False)


@pytest.fixture
def valid_config_yml(tmp_path: Path) -> Path:
    """Create a valid syspkg.yml in a temp directory."""
    content = textwrap.dedent("""\
        timeout: 300
        max_workers: 2
        managers:
          apt:
            binary: apt-fast
            timeout: 60
          snap:
            enabled: false
          flatpak:
            priority: 95
          apk:
    """)
    path = tmp_path / "syspkg.yml"
    path.write_text(content)
    return path


# ── Loading ──────────────────────────────────────────────────────────


class TestLoadConfig:
    def test_valid(self, valid_config_yml: Path):
        config = load_config(valid_config_yml)
        assert config.timeout == 300
        assert config.max_workers == 2
        assert config.manager("apt").binary == "apt-fast"
        assert config.manager("apt").timeout == 60
        assert not config.manager("snap").enabled
        assert config.manager("flatpak").priority == 95

    def test_empty_manager_entry(self, valid_config_yml: Path):
        apk = load_config(valid_config_yml).manager("apk")
        assert apk == ManagerConfig()

    def test_unconfigured_manager_gets_defaults(self, valid_config_yml: Path):
        yum = load_config(valid_config_yml).manager("yum")
        assert yum.enabled
        assert yum.priority is None
        assert yum.binary is None

    def test_empty_file(self, tmp_path: Path):
        path = tmp_path / "syspkg.yml"
        path.write_text("")
        assert load_config(path) == SyspkgConfig()

    def test_missing_explicit_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.yml")

    def test_missing_env_file(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("SYSPKG_CONFIG", str(tmp_path / "nope.yml"))
        with pytest.raises(ConfigError, match="not found"):
            load_config()

    def test_env_file(self, valid_config_yml: Path, monkeypatch):
        monkeypatch.setenv("SYSPKG_CONFIG", str(valid_config_yml))
        assert load_config().max_workers == 2

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "syspkg.yml"
        path.write_text("managers: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path)

    def test_not_a_mapping(self, tmp_path: Path):
        path = tmp_path / "syspkg.yml"
        path.write_text("- apt\n- yum\n")
        with pytest.raises(ConfigError, match="Expected a YAML mapping"):
            load_config(path)

    def test_unknown_key(self, tmp_path: Path):
        path = tmp_path / "syspkg.yml"
        path.write_text("timeout: 10\nretries: 3\n")
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(path)

    def test_unknown_manager_key(self, tmp_path: Path):
        path = tmp_path / "syspkg.yml"
        path.write_text("managers:\n  apt:\n    enable: false\n")
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(path)

    @pytest.mark.parametrize("body", ["timeout: 0\n", "timeout: -5\n", "max_workers: 0\n"])
    def test_out_of_range(self, tmp_path: Path, body):
        path = tmp_path / "syspkg.yml"
        path.write_text(body)
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(path)


# ── Discovery ────────────────────────────────────────────────────────


class TestFindConfigFile:
    def test_env_wins(self, valid_config_yml: Path, tmp_path: Path, monkeypatch):
        other = tmp_path / "elsewhere.yml"
        monkeypatch.setenv("SYSPKG_CONFIG", str(other))
        assert find_config_file(tmp_path) == other

    def test_walks_up(self, valid_config_yml: Path, tmp_path: Path):
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_config_file(nested) == valid_config_yml.resolve()

    def test_user_config_dir(self, tmp_path: Path, monkeypatch):
        home = tmp_path / "home"
        user_config = home / ".config" / "syspkg" / "syspkg.yml"
        user_config.parent.mkdir(parents=True)
        user_config.write_text("timeout: 5\n")
        monkeypatch.setenv("HOME", str(home))

        workdir = tmp_path / "work"
        workdir.mkdir()
        assert find_config_file(workdir) == user_config
