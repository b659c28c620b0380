"""Pytest configuration - add project root to path and shared fixtures."""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT))


class FakeClock:
    """Controllable clock for lifecycle and duration tests."""

    def __init__(self, start=None):
        self.now = start or datetime(2025, 10, 6, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(clock):
    from src.experimentation import ExperimentEngine, InMemoryStore
    return ExperimentEngine(InMemoryStore(), clock=clock)


@pytest.fixture
def three_arm_config():
    from src.experimentation import ExperimentConfig
    return ExperimentConfig(
        name="Script Template Optimization",
        scope_key="script:investing",
        variants={"control": 50, "variantA": 30, "variantB": 20},
        secondary_metrics={"published"},
        planned_duration_days=14,
    )
