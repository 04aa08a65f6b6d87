"""Shared test fixtures for DevRhythm."""

from pathlib import Path

import pytest

from dev_rhythm.config import EngineSettings
from dev_rhythm.engine import ActivityEngine
from dev_rhythm.publisher import EventBus
from helpers import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def project_root(tmp_path) -> Path:
    root = tmp_path / "myapp"
    root.mkdir()
    return root


@pytest.fixture
def ledger_path(tmp_path) -> Path:
    return tmp_path / "ledger" / "alice_myapp_idle_stats.csv"


@pytest.fixture
def make_engine(clock, project_root, ledger_path):
    """Build engines that deliver events inline and never touch the home dir."""

    def factory(**overrides) -> ActivityEngine:
        options = dict(
            project="myapp",
            project_root=project_root,
            ledger_path=ledger_path,
            settings=EngineSettings(),
            clock=clock,
            username="alice",
            bus=EventBus(synchronous=True),
        )
        options.update(overrides)
        return ActivityEngine(**options)

    return factory
