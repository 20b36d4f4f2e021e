"""
Shared pytest fixtures and configuration for perfspine tests.

This module provides:
- Isolated cache directories per test
- A deterministic clock and sleep recorder for resilience tests
- Console logging configured once so log output lands in captured stderr

Helpers that are not fixtures (CSV builders, the fake fetcher) live in
``tests/_support``.
"""

import os
import sys
from pathlib import Path

import pytest

# Ensure perfspine and the test helpers are importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from _support import FakeClock, RecordingSleep  # noqa: E402

from perfspine.core.logging import clear_context, configure_logging  # noqa: E402


def pytest_configure(config: pytest.Config) -> None:
    configure_logging(level="DEBUG", json_format=False)


@pytest.fixture(autouse=True)
def _clean_log_context():
    """Drop structlog context left behind by a failed test."""
    yield
    clear_context()


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    """Empty cache root for one test."""
    root = tmp_path / "cache"
    root.mkdir()
    return root


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Keep PERFSPINE_* variables and a stray .env from leaking into settings."""
    for name in list(os.environ):
        if name.startswith("PERFSPINE_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
