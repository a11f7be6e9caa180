"""
Repository Factory - Central Creation Point.

Creates the five orchestration repositories for the configured storage
backend and bundles them with the transaction boundary they share.

Current Support:
- PostgreSQL repositories (STORAGE_BACKEND=postgres)
- In-memory repositories (STORAGE_BACKEND=memory, local runs and tests)

Exports:
    ReleaseRepositories: Repository bundle with a shared transaction()
    RepositoryFactory: Static factory methods
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from config import AppConfig
from util_logger import LoggerFactory, ComponentType
from .interface_repository import (
    ICronJobRepository,
    IReleaseRepository,
    ITaskRepository,
    IUploadRepository,
    ISubmissionRepository,
)

logger = LoggerFactory.create_logger(ComponentType.FACTORY, "RepositoryFactory")


@dataclass
class ReleaseRepositories:
    """
    The repositories one orchestrator instance works with.

    transaction() groups every write made through these repositories on
    the current thread into one unit: all commit or none do.
    """

    cron_jobs: ICronJobRepository
    releases: IReleaseRepository
    tasks: ITaskRepository
    uploads: IUploadRepository
    submissions: ISubmissionRepository
    _transaction_factory: Callable[[], Any] = field(repr=False, default=None)

    @contextmanager
    def transaction(self):
        with self._transaction_factory():
            yield self


class RepositoryFactory:
    """
    Factory for creating repository instances.

    Backend selection is configuration-driven; callers only ever see the
    repository interfaces.
    """

    @staticmethod
    def create_repositories(config: AppConfig) -> ReleaseRepositories:
        """
        Create all repositories for the configured storage backend.

        Example:
            repos = RepositoryFactory.create_repositories(get_config())
            with repos.transaction():
                repos.cron_jobs.save_cron_job(cron_job)
        """
        if config.storage_backend == "memory":
            return RepositoryFactory.create_memory_repositories()
        return RepositoryFactory.create_postgres_repositories(config)

    @staticmethod
    def create_postgres_repositories(config: AppConfig,
                                     connection_string: Optional[str] = None) -> ReleaseRepositories:
        from .postgresql import ConnectionScope
        from .cron_job_repository import CronJobRepository
        from .release_repository import ReleaseRepository
        from .task_repository import TaskRepository
        from .upload_repository import UploadRepository
        from .submission_repository import SubmissionRepository

        logger.info("🏭 Creating PostgreSQL repositories")
        logger.debug(f"  Schema name: {config.database.app_schema}")

        scope = ConnectionScope(connection_string or config.database.connection_string)
        kwargs = dict(
            connection_string=scope.conn_string,
            schema_name=config.database.app_schema,
            scope=scope,
        )

        repos = ReleaseRepositories(
            cron_jobs=CronJobRepository(**kwargs),
            releases=ReleaseRepository(**kwargs),
            tasks=TaskRepository(**kwargs),
            uploads=UploadRepository(**kwargs),
            submissions=SubmissionRepository(**kwargs),
            _transaction_factory=scope.transaction,
        )
        logger.info("✅ All repositories created successfully")
        return repos

    @staticmethod
    def create_memory_repositories(store=None) -> ReleaseRepositories:
        """
        Create in-memory repositories, optionally over an existing store.

        Two bundles over the same store behave like two instances sharing
        one database.
        """
        from .memory_repository import (
            InMemoryStore,
            InMemoryCronJobRepository,
            InMemoryReleaseRepository,
            InMemoryTaskRepository,
            InMemoryUploadRepository,
            InMemorySubmissionRepository,
        )

        logger.info("🏭 Creating in-memory repositories")
        store = store or InMemoryStore()
        return ReleaseRepositories(
            cron_jobs=InMemoryCronJobRepository(store),
            releases=InMemoryReleaseRepository(store),
            tasks=InMemoryTaskRepository(store),
            uploads=InMemoryUploadRepository(store),
            submissions=InMemorySubmissionRepository(store),
            _transaction_factory=store.transaction,
        )


__all__ = ['ReleaseRepositories', 'RepositoryFactory']
