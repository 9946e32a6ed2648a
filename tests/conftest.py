"""
Shared pytest fixtures for cluster-healer tests.

This module provides:
- A fresh in-memory ZooKeeper tree per test (``zk``)
- Settings pointing at it (``settings``)
- Recording / registering launchers
- Settings cache isolation

Usage:
    Fixtures are auto-discovered by pytest. Use them as test arguments.
"""

from pathlib import Path

import pytest

from healer.core.settings import HealerSettings, clear_settings_cache
from tests._support.fake_zk import FakeZooKeeper
from tests._support.launchers import RecordingLauncher, RegisteringLauncher


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)
        if "integration" in str(test_path) or "scenario" in item.name:
            item.add_marker(pytest.mark.integration)
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch):
    """Keep HEALER_* variables from the host out of tests and reset the cache."""
    import os

    for key in list(os.environ):
        if key.startswith("HEALER_"):
            monkeypatch.delenv(key, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture()
def zk() -> FakeZooKeeper:
    """Empty ZooKeeper tree (only ``/``)."""
    return FakeZooKeeper()


@pytest.fixture()
def settings(tmp_path) -> HealerSettings:
    program = tmp_path / "worker.jar"
    program.write_bytes(b"")
    return HealerSettings(
        hosts="fake:2181",
        session_timeout_ms=3000,
        connect_timeout=1.0,
        parent_path="/workers",
        desired_workers=3,
        program_path=program,
    )


@pytest.fixture()
def recording_launcher() -> RecordingLauncher:
    return RecordingLauncher()


@pytest.fixture()
def registering_launcher(zk) -> RegisteringLauncher:
    return RegisteringLauncher(zk, "/workers")
