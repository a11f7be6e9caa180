"""
Root conftest.py: sys.path, env vars, shared fixtures.

Sets up the test environment so all production code can be imported
without a database or any collaborator endpoints.
"""

import os
import sys
from datetime import datetime, timezone

import pytest

# Add project root to sys.path so 'core', 'config', 'infrastructure', etc. are importable
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


@pytest.fixture(autouse=True, scope="session")
def set_minimal_env_vars():
    """
    Set minimal environment variables to prevent import crashes.

    Config is read from the environment; in-memory storage keeps tests
    away from PostgreSQL.
    """
    defaults = {
        "STORAGE_BACKEND": "memory",
        "ENVIRONMENT": "dev",
        "INSTANCE_ID": "test-instance",
        "CRON_SHARED_SECRET": "test-cron-secret",
        "SCHEDULER_TYPE": "external",
    }
    for key, value in defaults.items():
        os.environ.setdefault(key, value)


class FixedClock:
    """Callable clock tests can move forward."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta) -> datetime:
        self.now = self.now + delta
        return self.now


@pytest.fixture
def clock():
    """Clock fixed at a Monday morning (UTC)."""
    return FixedClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))
