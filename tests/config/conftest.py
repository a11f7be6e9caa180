"""
Config test fixtures: clean environment via monkeypatch.
"""

import pytest

from config import reset_config


@pytest.fixture
def clean_env(monkeypatch):
    """Remove all env vars that config modules might read, for isolation."""
    env_vars_to_clear = [
        "STORAGE_BACKEND", "ENVIRONMENT", "DEBUG_MODE", "LOG_LEVEL",
        "POSTGRES_HOST", "POSTGRES_PORT", "POSTGRES_USER", "POSTGRES_PASSWORD",
        "POSTGRES_DATABASE", "APP_SCHEMA", "DB_CONNECTION_TIMEOUT",
        "SCHEDULER_TYPE", "SCHEDULER_INTERVAL_MS", "LOCK_TIMEOUT_SECONDS",
        "TICK_MAX_PARALLEL_RELEASES", "CRON_SHARED_SECRET", "CRON_SECRET_HEADER",
        "INSTANCE_ID", "WEBSITE_INSTANCE_ID", "KICKOFF_REMINDER_LEAD_HOURS",
        "INTEGRATION_BASE_URL", "STORE_API_BASE_URL", "INTEGRATION_API_KEY",
        "INTEGRATION_TIMEOUT_SECONDS", "INTEGRATION_MAX_ATTEMPTS",
        "INTEGRATION_RETRY_BASE_DELAY", "INTEGRATION_RETRY_MAX_DELAY",
        "NOTIFICATION_WEBHOOK_URL",
        "WORKFLOW_POLLER_BASE_URL", "WORKFLOW_POLLER_API_KEY",
        "WORKFLOW_POLLER_INTERVAL_MINUTES", "WORKFLOW_POLLER_CALLBACK_URL",
    ]
    for var in env_vars_to_clear:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


@pytest.fixture(autouse=True)
def fresh_config():
    """Drop the config singleton before and after each test."""
    reset_config()
    yield
    reset_config()
