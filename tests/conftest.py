"""Shared pytest fixtures for FocusPair tests."""

import sys
import pytest

from PyQt6.QtCore import QCoreApplication

from focuspair.database.db import Database
from focuspair.store.session_store import SessionStore
from focuspair.timer.clock import ManualClock
from focuspair.timer.engine import TimerEngine
from focuspair.timer.phases import TimerConfig

from helpers import FakeNow


@pytest.fixture(scope="session")
def qapp():
    """A single QCoreApplication instance shared across the entire test run."""
    app = QCoreApplication.instance() or QCoreApplication(sys.argv)
    yield app


@pytest.fixture
def database():
    """A fresh in-memory SQLite database."""
    db = Database("sqlite:///:memory:")
    db.init()
    yield db
    db.dispose()


@pytest.fixture
def fake_now():
    return FakeNow()


@pytest.fixture
def store(qapp, database, fake_now):
    s = SessionStore(database, now=fake_now)
    s.load()
    return s


@pytest.fixture
def clock():
    return ManualClock(interval=1.0)


@pytest.fixture
def scenario_config():
    """30s active / 10s short rest / 20s long rest, 3 units per cycle."""
    return TimerConfig(
        active_duration=30,
        short_rest_duration=10,
        long_rest_duration=20,
        cycle_length=3,
    )


@pytest.fixture
def engine(qapp, clock, scenario_config):
    """Open-ended engine on a manual clock."""
    return TimerEngine(scenario_config, clock)
