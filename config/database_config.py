"""
PostgreSQL Database Configuration.

Connection settings for the orchestrator's tables (cron jobs, releases,
tasks, uploads, submissions), all living in one application schema.

Exports:
    DatabaseConfig: Pydantic database configuration model
"""

import os
from typing import Optional

from pydantic import BaseModel, Field

from .defaults import DatabaseDefaults


class DatabaseConfig(BaseModel):
    """PostgreSQL configuration with password authentication."""

    host: str = Field(
        default=DatabaseDefaults.HOST,
        description="PostgreSQL server hostname",
        examples=["release-db.postgres.database.azure.com"]
    )

    port: int = Field(
        default=DatabaseDefaults.PORT,
        description="PostgreSQL server port number"
    )

    user: Optional[str] = Field(
        default=None,
        description="PostgreSQL username"
    )

    password: Optional[str] = Field(
        default=None,
        repr=False,
        description="PostgreSQL password from POSTGRES_PASSWORD"
    )

    database: str = Field(
        default=DatabaseDefaults.DATABASE,
        description="Database name"
    )

    app_schema: str = Field(
        default=DatabaseDefaults.APP_SCHEMA,
        description="Schema holding the orchestrator tables"
    )

    connection_timeout_seconds: int = Field(
        default=DatabaseDefaults.CONNECTION_TIMEOUT_SECONDS,
        ge=1,
        le=300,
        description="Connection timeout in seconds"
    )

    @property
    def connection_string(self) -> str:
        """Build a libpq keyword/value connection string."""
        if not self.user:
            raise ValueError("POSTGRES_USER is required for password authentication")
        password_part = f" password={self.password}" if self.password else ""
        return (
            f"host={self.host} port={self.port} dbname={self.database} "
            f"user={self.user}{password_part} connect_timeout={self.connection_timeout_seconds}"
        )

    def debug_dict(self) -> dict:
        """Debug output with masked password."""
        return {
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "database": self.database,
            "password": "***MASKED***" if self.password else None,
            "app_schema": self.app_schema,
            "connection_timeout_seconds": self.connection_timeout_seconds,
        }

    @classmethod
    def from_environment(cls):
        """Load from environment variables."""
        return cls(
            host=os.environ.get("POSTGRES_HOST", DatabaseDefaults.HOST),
            port=int(os.environ.get("POSTGRES_PORT", str(DatabaseDefaults.PORT))),
            user=os.environ.get("POSTGRES_USER"),
            password=os.environ.get("POSTGRES_PASSWORD"),
            database=os.environ.get("POSTGRES_DATABASE", DatabaseDefaults.DATABASE),
            app_schema=os.environ.get("APP_SCHEMA", DatabaseDefaults.APP_SCHEMA),
            connection_timeout_seconds=int(os.environ.get(
                "DB_CONNECTION_TIMEOUT", str(DatabaseDefaults.CONNECTION_TIMEOUT_SECONDS)
            )),
        )


__all__ = ['DatabaseConfig']
