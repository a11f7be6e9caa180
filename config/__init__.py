"""
Configuration Package - Domain-Specific Configuration Modules

This package provides application configuration using a composition-based approach.

Structure:
    config/
    ├── __init__.py              # This file - exports and singleton
    ├── app_config.py            # Main config (composes domain configs)
    ├── database_config.py       # PostgreSQL
    ├── scheduler_config.py      # Tick cadence, locks, shared secret
    ├── integration_config.py    # Collaborators and workflow pollers
    └── defaults.py              # Default values

Usage:
    # Singleton pattern (preferred)
    from config import get_config
    config = get_config()
    timeout = config.scheduler.lock_timeout_seconds

    # Debug output
    from config import debug_config
    info = debug_config()  # Secrets masked
"""

from typing import Optional

from .database_config import DatabaseConfig
from .scheduler_config import SchedulerConfig
from .integration_config import IntegrationConfig, PollerConfig
from .app_config import AppConfig


# ============================================================================
# SINGLETON PATTERN
# ============================================================================

_config_instance: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Get global configuration singleton.

    Only entry points (function_app, triggers) call this; everything below
    them receives its config through constructors.
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = AppConfig.from_environment()
    return _config_instance


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() reloads it."""
    global _config_instance
    _config_instance = None


def debug_config() -> dict:
    """
    Get sanitized configuration for debugging (masks sensitive values).

    Usage:
        info = debug_config()
        print(info['scheduler']['cron_shared_secret'])  # Shows "***MASKED***"
    """
    try:
        config = get_config()
        return {
            'database': config.database.debug_dict(),
            'scheduler': config.scheduler.debug_dict(),
            'integrations': config.integrations.debug_dict(),
            'pollers': config.pollers.debug_dict(),

            # Application
            'debug_mode': config.debug_mode,
            'environment': config.environment,
            'log_level': config.log_level,
            'storage_backend': config.storage_backend,
        }
    except Exception as e:
        return {'error': f'Configuration validation failed: {e}'}


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    'AppConfig',
    'get_config',
    'reset_config',
    'debug_config',
    'DatabaseConfig',
    'SchedulerConfig',
    'IntegrationConfig',
    'PollerConfig',
]
