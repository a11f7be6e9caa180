"""
Configuration Defaults - Single source of truth for all default values.

Organization:
    - AppDefaults: Environment, logging, storage backend
    - DatabaseDefaults: PostgreSQL connection and schema
    - SchedulerDefaults: Tick cadence, lock timeout, parallelism
    - IntegrationDefaults: Collaborator timeouts and retry backoff
    - PollerDefaults: Workflow poller interval bounds

Usage:
    from config.defaults import SchedulerDefaults

    # In Pydantic Field definitions:
    lock_timeout_seconds: int = Field(default=SchedulerDefaults.LOCK_TIMEOUT_SECONDS, ...)
"""


# =============================================================================
# APPLICATION DEFAULTS
# =============================================================================

class AppDefaults:
    """Core application settings."""

    DEBUG_MODE = False
    ENVIRONMENT = "dev"
    LOG_LEVEL = "INFO"

    # "postgres" in deployed environments, "memory" for local runs and tests
    STORAGE_BACKEND = "postgres"


# =============================================================================
# DATABASE DEFAULTS
# =============================================================================

class DatabaseDefaults:
    """PostgreSQL connection reference values."""

    HOST = "localhost"
    PORT = 5432
    DATABASE = "releases"
    APP_SCHEMA = "release"
    CONNECTION_TIMEOUT_SECONDS = 30


# =============================================================================
# SCHEDULER DEFAULTS
# =============================================================================

class SchedulerDefaults:
    """
    Tick scheduling and per-release locking.

    The lock timeout bounds how long a crashed instance can wedge a
    release; collaborator timeouts must stay below it.
    """

    # "external": only POST /internal/cron/releases ticks
    # "timer": the in-app timer trigger ticks as well
    SCHEDULER_TYPE = "external"
    SCHEDULER_INTERVAL_MS = 60000
    SCHEDULER_INTERVAL_MS_MIN = 10000

    LOCK_TIMEOUT_SECONDS = 300
    MAX_PARALLEL_RELEASES = 4

    CRON_SECRET_HEADER = "X-Cron-Secret"

    # Start a release this long before kickoff when the kickoff reminder is on
    KICKOFF_REMINDER_LEAD_HOURS = 24


# =============================================================================
# INTEGRATION DEFAULTS
# =============================================================================

class IntegrationDefaults:
    """Outbound collaborator calls (task dispatch, notifications, stores)."""

    TIMEOUT_SECONDS = 30.0
    MAX_ATTEMPTS = 3
    RETRY_BASE_DELAY_SECONDS = 1.0
    RETRY_MAX_DELAY_SECONDS = 10.0


# =============================================================================
# WORKFLOW POLLER DEFAULTS
# =============================================================================

class PollerDefaults:
    """Per-release CI status pollers."""

    INTERVAL_MINUTES = 5
    INTERVAL_MINUTES_MIN = 1
    INTERVAL_MINUTES_MAX = 59

    PENDING_POLLER_PREFIX = "pending-poller-"
    RUNNING_POLLER_PREFIX = "running-poller-"
