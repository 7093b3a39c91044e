"""
Pytest configuration file.

Ensures the repo root is on sys.path so that 'import src...' works, keeps
loguru output out of test runs, and provides shared market-data fixtures.
"""
import sys
from pathlib import Path

import pandas as pd
import pytest
from loguru import logger

# Add the repo root to sys.path
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from src.data.schemas import Asset  # noqa: E402


@pytest.fixture(autouse=True)
def quiet_logs():
    """Silence library logging for each test; tests that assert on logs add their own sink."""
    logger.disable("src")
    yield
    logger.enable("src")


@pytest.fixture
def asset():
    return Asset("TEST")


@pytest.fixture
def t0():
    return pd.Timestamp("2024-01-15 14:30:00", tz="UTC")

