"""
Shared test fixtures and configuration.

Captured tool transcripts live under ``fixtures/<manager>/<key>.yml``,
keyed ``{operation}.{mode}.{system-state}.{distro}-{version}``::

    command: [apt, search, vim]
    exit_code: 0
    stdout: |
      ...
    stderr: ""
"""

import time
from pathlib import Path

import pytest
import yaml

from syspkg.adapters.mock import MockCommandRunner
from syspkg.core.models.outcome import ExecutionResult

FIXTURES = Path(__file__).parent / "fixtures"


def read_transcript(manager: str, key: str) -> ExecutionResult:
    data = yaml.safe_load((FIXTURES / manager / f"{key}.yml").read_text(encoding="utf-8"))
    return ExecutionResult(
        exit_code=data.get("exit_code", 0),
        stdout=(data.get("stdout") or "").encode(),
        stderr=(data.get("stderr") or "").encode(),
        command=tuple(data.get("command") or ()),
    )


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the test fixtures directory."""
    return FIXTURES


@pytest.fixture
def load_transcript():
    """Return a loader: ``load_transcript("apt", "search.normal.mixed.ubuntu-22.04")``."""
    return read_transcript


@pytest.fixture
def mock_runner() -> MockCommandRunner:
    """A runner that finds every built-in manager binary on PATH."""
    return MockCommandRunner(programs=(
        "apt", "dpkg", "dpkg-query", "apt-cache",
        "yum", "rpm",
        "snap",
        "flatpak",
        "apk",
    ))


@pytest.fixture
def replay(mock_runner: MockCommandRunner):
    """Register captured transcripts on ``mock_runner`` by their command."""
    def _replay(manager: str, *keys: str) -> MockCommandRunner:
        for key in keys:
            result = read_transcript(manager, key)
            mock_runner.add_result(list(result.command), result)
        return mock_runner
    return _replay


def _running(pid: int) -> bool:
    try:
        stat = Path(f"/proc/{pid}/stat").read_text()
    except OSError:
        return False
    # Field 3 is the state; a zombie has already been killed
    return stat.rsplit(")", 1)[1].split()[0] != "Z"


@pytest.fixture
def process_gone():
    """Return a waiter: ``process_gone(pid)`` is True once pid stops running."""
    if not Path("/proc/self/stat").exists():
        pytest.skip("needs /proc")

    def _wait(pid: int, within: float = 3.0) -> bool:
        give_up = time.monotonic() + within
        while time.monotonic() < give_up:
            if not _running(pid):
                return True
            time.sleep(0.05)
        return not _running(pid)
    return _wait
