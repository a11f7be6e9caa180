"""
Application Configuration - composition of domain configs.

Exports:
    AppConfig: Top-level configuration model
"""

import os
from typing import Literal

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, model_validator

from exceptions import ConfigurationError
from .defaults import AppDefaults
from .database_config import DatabaseConfig
from .integration_config import IntegrationConfig, PollerConfig
from .scheduler_config import SchedulerConfig


class AppConfig(BaseModel):
    """
    Application configuration - composition of domain configs.

    Each domain config manages its own validation and defaults; rules
    spanning domains are checked here.
    """

    # ========================================================================
    # Core Application Settings
    # ========================================================================

    debug_mode: bool = Field(
        default=AppDefaults.DEBUG_MODE,
        description="Enable debug mode for verbose diagnostics. "
                    "Set DEBUG_MODE=true in environment to enable.",
        examples=[True, False]
    )

    environment: str = Field(
        default=AppDefaults.ENVIRONMENT,
        description="Environment name (dev, qa, prod)",
        examples=["dev", "qa", "prod"]
    )

    log_level: str = Field(
        default=AppDefaults.LOG_LEVEL,
        description="Logging level for application diagnostics",
        examples=["DEBUG", "INFO", "WARNING", "ERROR"]
    )

    storage_backend: Literal["postgres", "memory"] = Field(
        default=AppDefaults.STORAGE_BACKEND,
        description="postgres for deployments, memory for local runs and tests"
    )

    # ========================================================================
    # Domain Configs
    # ========================================================================

    database: DatabaseConfig = Field(
        default_factory=DatabaseConfig,
        description="PostgreSQL configuration"
    )

    scheduler: SchedulerConfig = Field(
        ...,
        description="Tick scheduler and lock configuration"
    )

    integrations: IntegrationConfig = Field(
        default_factory=IntegrationConfig,
        description="Outbound collaborator configuration"
    )

    pollers: PollerConfig = Field(
        default_factory=PollerConfig,
        description="Workflow poller configuration"
    )

    @model_validator(mode="after")
    def _integration_timeout_below_lock_timeout(self) -> "AppConfig":
        # A hung collaborator call must not outlive the lock it runs under
        if self.integrations.timeout_seconds >= self.scheduler.lock_timeout_seconds:
            raise ValueError(
                f"INTEGRATION_TIMEOUT_SECONDS ({self.integrations.timeout_seconds}) must be "
                f"shorter than LOCK_TIMEOUT_SECONDS ({self.scheduler.lock_timeout_seconds})"
            )
        return self

    @classmethod
    def from_environment(cls):
        """
        Load all configs from environment.

        Raises:
            ConfigurationError: Any value missing, malformed or out of range
        """
        try:
            return cls(
                debug_mode=os.environ.get("DEBUG_MODE", str(AppDefaults.DEBUG_MODE).lower()).lower() == "true",
                environment=os.environ.get("ENVIRONMENT", AppDefaults.ENVIRONMENT),
                log_level=os.environ.get("LOG_LEVEL", AppDefaults.LOG_LEVEL),
                storage_backend=os.environ.get("STORAGE_BACKEND", AppDefaults.STORAGE_BACKEND).lower(),

                database=DatabaseConfig.from_environment(),
                scheduler=SchedulerConfig.from_environment(),
                integrations=IntegrationConfig.from_environment(),
                pollers=PollerConfig.from_environment(),
            )
        except (PydanticValidationError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e


__all__ = ['AppConfig']
