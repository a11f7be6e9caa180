"""
AppConfig loading from environment variables.

Defaults, range checks, cross-domain rules and secret masking.
"""

import pytest

from config import AppConfig, debug_config, get_config
from exceptions import ConfigurationError


class TestDefaults:

    def test_minimal_environment(self, clean_env):
        clean_env.setenv("INSTANCE_ID", "func-01")

        config = AppConfig.from_environment()

        assert config.storage_backend == "postgres"
        assert config.environment == "dev"
        assert config.scheduler.scheduler_type == "external"
        assert config.scheduler.interval_ms == 60000
        assert config.scheduler.lock_timeout_seconds == 300
        assert config.scheduler.max_parallel_releases == 4
        assert config.scheduler.cron_secret_header == "X-Cron-Secret"
        assert config.scheduler.cron_shared_secret is None
        assert config.scheduler.instance_id == "func-01"
        assert config.integrations.base_url is None
        assert config.integrations.timeout_seconds == 30.0
        assert config.pollers.interval_minutes == 5

    def test_instance_id_from_functions_runtime(self, clean_env):
        clean_env.setenv("WEBSITE_INSTANCE_ID", "0123456789abcdef0123456789abcdef")

        config = AppConfig.from_environment()

        assert config.scheduler.instance_id == "0123456789abcdef"

    def test_instance_id_falls_back_to_hostname(self, clean_env):
        config = AppConfig.from_environment()
        assert config.scheduler.instance_id

    def test_storage_backend_case_insensitive(self, clean_env):
        clean_env.setenv("STORAGE_BACKEND", "MEMORY")
        assert AppConfig.from_environment().storage_backend == "memory"


class TestValidation:

    @pytest.mark.parametrize("var,value", [
        ("SCHEDULER_INTERVAL_MS", "5000"),
        ("SCHEDULER_INTERVAL_MS", "every minute"),
        ("LOCK_TIMEOUT_SECONDS", "10"),
        ("LOCK_TIMEOUT_SECONDS", "7200"),
        ("TICK_MAX_PARALLEL_RELEASES", "0"),
        ("TICK_MAX_PARALLEL_RELEASES", "64"),
        ("SCHEDULER_TYPE", "cron"),
        ("STORAGE_BACKEND", "sqlite"),
        ("WORKFLOW_POLLER_INTERVAL_MINUTES", "0"),
        ("WORKFLOW_POLLER_INTERVAL_MINUTES", "60"),
        ("INTEGRATION_MAX_ATTEMPTS", "0"),
        ("POSTGRES_PORT", "five-four-three-two"),
    ])
    def test_bad_value_rejected(self, clean_env, var, value):
        clean_env.setenv(var, value)
        with pytest.raises(ConfigurationError):
            AppConfig.from_environment()

    def test_integration_timeout_must_be_below_lock_timeout(self, clean_env):
        clean_env.setenv("LOCK_TIMEOUT_SECONDS", "60")
        clean_env.setenv("INTEGRATION_TIMEOUT_SECONDS", "60")

        with pytest.raises(ConfigurationError) as exc_info:
            AppConfig.from_environment()
        assert "INTEGRATION_TIMEOUT_SECONDS" in str(exc_info.value)

    def test_timer_interval_accepted(self, clean_env):
        clean_env.setenv("SCHEDULER_TYPE", "timer")
        clean_env.setenv("SCHEDULER_INTERVAL_MS", "30000")

        scheduler = AppConfig.from_environment().scheduler

        assert scheduler.scheduler_type == "timer"
        assert scheduler.interval_ms == 30000


class TestSingleton:

    def test_get_config_cached(self, clean_env):
        clean_env.setenv("INSTANCE_ID", "first")
        first = get_config()
        clean_env.setenv("INSTANCE_ID", "second")

        assert get_config() is first
        assert get_config().scheduler.instance_id == "first"


class TestDebugConfig:

    def test_secrets_masked(self, clean_env):
        clean_env.setenv("POSTGRES_PASSWORD", "hunter2")
        clean_env.setenv("CRON_SHARED_SECRET", "tick-secret")
        clean_env.setenv("INTEGRATION_API_KEY", "ci-token")
        clean_env.setenv("WORKFLOW_POLLER_API_KEY", "poller-token")

        info = debug_config()

        assert info["database"]["password"] == "***MASKED***"
        assert info["scheduler"]["cron_shared_secret"] == "***MASKED***"
        assert info["integrations"]["api_key"] == "***MASKED***"
        assert info["pollers"]["api_key"] == "***MASKED***"
        for secret in ("hunter2", "tick-secret", "ci-token", "poller-token"):
            assert secret not in repr(info)

    def test_unset_secrets_reported_as_none(self, clean_env):
        info = debug_config()
        assert info["scheduler"]["cron_shared_secret"] is None
        assert info["database"]["password"] is None
