"""
Pytest configuration and shared fixtures for all duskload tests.

Every test gets fresh resolver state: a Loader owns all of its registries,
so there is nothing global to reset between tests.
"""

import sys
import pytest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
from duskload.resolver import Loader, SimulatedUnitLoader
from tests.test_utils import RecordingUnitLoader


# =============================================================================
# Unit loaders
# =============================================================================

@pytest.fixture
def sim():
    """Queued simulated loader: units run when the test calls run_pending()/run_all()."""
    return SimulatedUnitLoader()


@pytest.fixture
def immediate_sim():
    """Simulated loader that provides synchronously from inside load()."""
    return SimulatedUnitLoader(immediate=True)


@pytest.fixture
def recording():
    """Loader double that only records dispatches; the test provides by hand."""
    return RecordingUnitLoader()


# =============================================================================
# Loaders
# =============================================================================

@pytest.fixture
def loader(sim):
    return Loader(sim)


@pytest.fixture
def immediate_loader(immediate_sim):
    return Loader(immediate_sim)


@pytest.fixture
def manual_loader(recording):
    return Loader(recording)


# =============================================================================
# Environment
# =============================================================================

@pytest.fixture(autouse=True)
def no_color(monkeypatch):
    """Plain diagnostics so assertions can match text."""
    monkeypatch.setenv("NO_COLOR", "1")


def pytest_configure(config):
    """Register custom markers for test organization."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
