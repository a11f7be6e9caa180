"""
Infrastructure Package - Lazy Loading Implementation.

Provides all repository implementations with lazy loading to prevent
premature initialization of loggers, psycopg and environment variable
reads.

Azure Functions loads function_app.py on every cold start, before the
host guarantees application settings are available. Nothing here touches
configuration or opens a connection until a repository class is first
accessed, which is normally inside RepositoryFactory.create_repositories()
called from a trigger.
"""

from typing import TYPE_CHECKING

# For type checking only - doesn't actually import at runtime
if TYPE_CHECKING:
    from .factory import RepositoryFactory as _RepositoryFactory
    from .factory import ReleaseRepositories as _ReleaseRepositories
    from .postgresql import PostgreSQLRepository as _PostgreSQLRepository
    from .memory_repository import InMemoryStore as _InMemoryStore


def __getattr__(name: str):
    """
    Lazy import mechanism - only imports when actually accessed.
    """
    # Factory - most common import
    if name == "RepositoryFactory":
        from .factory import RepositoryFactory
        return RepositoryFactory
    elif name == "ReleaseRepositories":
        from .factory import ReleaseRepositories
        return ReleaseRepositories

    # Storage bases
    elif name == "PostgreSQLRepository":
        from .postgresql import PostgreSQLRepository
        return PostgreSQLRepository
    elif name == "BaseRepository":
        from .base import BaseRepository
        return BaseRepository
    elif name == "InMemoryStore":
        from .memory_repository import InMemoryStore
        return InMemoryStore

    # PostgreSQL repositories
    elif name == "CronJobRepository":
        from .cron_job_repository import CronJobRepository
        return CronJobRepository
    elif name == "ReleaseRepository":
        from .release_repository import ReleaseRepository
        return ReleaseRepository
    elif name == "TaskRepository":
        from .task_repository import TaskRepository
        return TaskRepository
    elif name == "UploadRepository":
        from .upload_repository import UploadRepository
        return UploadRepository
    elif name == "SubmissionRepository":
        from .submission_repository import SubmissionRepository
        return SubmissionRepository

    # Interfaces
    elif name in ("ICronJobRepository", "IReleaseRepository", "ITaskRepository",
                  "IUploadRepository", "ISubmissionRepository"):
        from . import interface_repository
        return getattr(interface_repository, name)

    # Schema
    elif name == "deploy_schema":
        from .release_schema import deploy_schema
        return deploy_schema

    else:
        raise AttributeError(f"module 'infrastructure' has no attribute '{name}'")


__all__ = [
    "RepositoryFactory",
    "ReleaseRepositories",
    "PostgreSQLRepository",
    "BaseRepository",
    "InMemoryStore",
    "CronJobRepository",
    "ReleaseRepository",
    "TaskRepository",
    "UploadRepository",
    "SubmissionRepository",
    "ICronJobRepository",
    "IReleaseRepository",
    "ITaskRepository",
    "IUploadRepository",
    "ISubmissionRepository",
    "deploy_schema",
]
