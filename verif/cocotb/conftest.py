"""
Convpipe Verification - Global pytest configuration and fixtures.

This module provides common fixtures and configuration for the cocotb tests
of the generated layer RTL.
"""

import os
import shutil
import sys
from pathlib import Path

import pytest

# Add project paths to Python path
PROJECT_ROOT = Path(__file__).parent.parent.parent
sys.path.insert(0, str(PROJECT_ROOT))
sys.path.insert(0, str(PROJECT_ROOT / "src"))
sys.path.insert(0, str(PROJECT_ROOT / "verif" / "cocotb"))

SIMULATOR_BINARIES = {
    "verilator": "verilator",
    "icarus": "iverilog",
}


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "slow: marks tests as slow")


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture(scope="session")
def gen_dir(project_root) -> Path:
    """Return the generated RTL directory."""
    return project_root / "gen"


@pytest.fixture(scope="session")
def sim_name() -> str:
    """Return the current simulator name, skipping if it is not installed."""
    sim = os.environ.get("SIM", "verilator").lower()
    binary = SIMULATOR_BINARIES.get(sim, sim)
    if shutil.which(binary) is None:
        pytest.skip(f"{sim} simulator not found")
    return sim
