"""
PostgreSQL Repository Base - Connection and Transaction Management.

Architecture:
    BaseRepository (abstract)
        ↓
    PostgreSQLRepository (this file)
        ↓
    CronJobRepository, ReleaseRepository, TaskRepository,
    UploadRepository, SubmissionRepository

Key Features:
- Direct PostgreSQL access using psycopg3
- SQL composition for injection safety
- Shared per-thread transaction so every write of one release's tick
  commits or rolls back together

Exports:
    ConnectionScope: Per-thread shared connection for a transaction
    PostgreSQLRepository: Base class for PostgreSQL repositories
"""

import threading
from contextlib import contextmanager
from typing import Any, Optional, Tuple

import psycopg
from psycopg import sql
from psycopg.rows import dict_row

from config import AppConfig, get_config
from exceptions import DatabaseError
from util_logger import LoggerFactory, ComponentType
from .base import BaseRepository

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "PostgreSQLRepository")


# ============================================================================
# CONNECTION SCOPE - One transaction per release tick
# ============================================================================

class ConnectionScope:
    """
    Holds the connection of the transaction open on the current thread.

    Repositories built by the same factory share one scope. Inside
    transaction() they reuse the open connection and skip their own
    commits; outside it each call opens, commits and closes its own.
    """

    def __init__(self, conn_string: str):
        self.conn_string = conn_string
        self._local = threading.local()

    @property
    def current(self) -> Optional[psycopg.Connection]:
        return getattr(self._local, "conn", None)

    @contextmanager
    def transaction(self):
        """
        Open a transaction on this thread; nested calls join the outer one.

        Commits on normal exit, rolls back on any exception and re-raises.
        """
        if self.current is not None:
            yield self.current
            return

        conn = psycopg.connect(self.conn_string, row_factory=dict_row)
        self._local.conn = conn
        try:
            yield conn
            conn.commit()
            logger.debug("✅ Release transaction committed")
        except Exception:
            conn.rollback()
            logger.info("🔄 Release transaction rolled back")
            raise
        finally:
            self._local.conn = None
            conn.close()


# ============================================================================
# POSTGRESQL BASE REPOSITORY
# ============================================================================

class PostgreSQLRepository(BaseRepository):
    """
    PostgreSQL-specific repository base class with connection management.

    Configuration priority:
    1. Explicit parameters (connection_string, schema_name)
    2. Provided AppConfig object
    3. Global configuration from get_config()
    """

    def __init__(self, connection_string: Optional[str] = None,
                 schema_name: Optional[str] = None,
                 config: Optional[AppConfig] = None,
                 scope: Optional[ConnectionScope] = None):
        super().__init__()

        if connection_string is None or schema_name is None:
            config = config or get_config()

        self.schema = schema_name or config.database.app_schema
        conn_string = connection_string or config.database.connection_string
        self.scope = scope or ConnectionScope(conn_string)

        logger.debug(f"✅ {self.__class__.__name__} initialized with schema: {self.schema}")

    @property
    def conn_string(self) -> str:
        return self.scope.conn_string

    @contextmanager
    def _get_connection(self):
        """
        Yield the open transaction's connection, or a fresh one.

        A fresh connection is rolled back on psycopg errors and always
        closed. The shared one is left to ConnectionScope.transaction().
        """
        shared = self.scope.current
        if shared is not None:
            yield shared
            return

        conn = None
        try:
            conn = psycopg.connect(self.conn_string, row_factory=dict_row)
            yield conn
        except psycopg.Error as e:
            logger.error(f"❌ PostgreSQL error: {type(e).__name__}: {e}")
            if conn:
                conn.rollback()
            raise DatabaseError(str(e)) from e
        finally:
            if conn:
                conn.close()

    def _commit(self, conn: psycopg.Connection) -> None:
        """Commit unless the connection belongs to an open release transaction."""
        if self.scope.current is None:
            conn.commit()

    @contextmanager
    def transaction(self):
        with self.scope.transaction() as conn:
            yield conn

    def _execute_query(self, query: sql.Composed, params: Optional[Tuple] = None,
                       fetch: Optional[str] = None) -> Optional[Any]:
        """
        Execute a composed query and commit.

        Returns:
            Fetched row(s) when fetch is 'one' or 'all', otherwise the
            number of affected rows.

        Raises:
            TypeError: Query is not sql.Composed
            ValueError: Unknown fetch mode
            DatabaseError: Any psycopg failure
        """
        if not isinstance(query, sql.Composed):
            raise TypeError(f"❌ SECURITY: Query must be sql.Composed, got {type(query)}")

        if fetch and fetch not in ('one', 'all'):
            raise ValueError(f"❌ INVALID FETCH MODE: {fetch}")

        with self._get_connection() as conn:
            with conn.cursor() as cursor:
                try:
                    cursor.execute(query, params)
                except psycopg.Error as e:
                    logger.error(f"❌ QUERY EXECUTION FAILED: {e}")
                    logger.error(f"   SQL State: {e.sqlstate}")
                    raise DatabaseError(f"Query execution failed: {e}") from e

                if fetch == 'one':
                    result = cursor.fetchone()
                elif fetch == 'all':
                    result = cursor.fetchall()
                else:
                    result = cursor.rowcount

            self._commit(conn)
            return result

    def _table(self, name: str) -> sql.Composed:
        return sql.SQL("{}.{}").format(sql.Identifier(self.schema), sql.Identifier(name))


__all__ = ['ConnectionScope', 'PostgreSQLRepository']
