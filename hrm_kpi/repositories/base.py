"""
Base Repository - HRM KPI Engine
hrm_kpi/repositories/base.py

Base repository class with Snowflake connection management and common utilities.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Generator, Iterator, List, Optional

import snowflake.connector
from snowflake.connector import DictCursor
from snowflake.connector.errors import DatabaseError, InterfaceError, ProgrammingError

from hrm_kpi.core.exceptions import (
    DatabaseConnectionException,
    DuplicateEntityException,
    ForeignKeyViolationException,
    RepositoryException,
)
from hrm_kpi.services.snowflake import get_snowflake_connection


class BaseRepository:
    """Base repository with Snowflake connection management."""

    FETCH_BATCH_SIZE = 500

    @contextmanager
    def get_connection(self) -> Generator[snowflake.connector.SnowflakeConnection, None, None]:
        """Context manager for Snowflake connections."""
        conn = None
        try:
            conn = get_snowflake_connection()
            yield conn
        except InterfaceError as e:
            raise DatabaseConnectionException(f"Failed to connect to Snowflake: {e}")
        finally:
            if conn:
                conn.close()

    @contextmanager
    def get_cursor(self, dict_cursor: bool = True) -> Generator[Any, None, None]:
        """Context manager for Snowflake cursors with automatic connection cleanup."""
        with self.get_connection() as conn:
            cursor = conn.cursor(DictCursor) if dict_cursor else conn.cursor()
            try:
                yield cursor
            finally:
                cursor.close()

    @contextmanager
    def transaction(self) -> Generator[Any, None, None]:
        """
        Explicit transaction spanning several statements.

        Yields a cursor that repository write methods accept via their
        ``cursor`` argument; commits on normal exit, rolls back on any error.
        """
        with self.get_connection() as conn:
            cursor = conn.cursor(DictCursor)
            try:
                cursor.execute("BEGIN")
                yield cursor
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                cursor.close()

    def _run(self, cursor: Any, sql: str, params: Optional[tuple]) -> None:
        try:
            cursor.execute(sql, params or ())
        except ProgrammingError as e:
            error_msg = str(e).upper()
            if "UNIQUE" in error_msg or "DUPLICATE" in error_msg:
                raise DuplicateEntityException(str(e))
            elif "FOREIGN KEY" in error_msg:
                raise ForeignKeyViolationException(str(e))
            raise RepositoryException(f"Query error: {e}")
        except DatabaseError as e:
            raise RepositoryException(f"Database error: {e}")

    def execute_query(
        self,
        sql: str,
        params: Optional[tuple] = None,
        fetch_one: bool = False,
        fetch_all: bool = False,
        commit: bool = False,
        cursor: Any = None,
    ) -> Optional[Any]:
        """
        Execute a SQL query with error handling.

        Args:
            sql: SQL query string
            params: Query parameters
            fetch_one: Return single row
            fetch_all: Return all rows
            commit: Commit transaction after execution (ignored inside a transaction)
            cursor: Cursor from transaction(); runs inside that transaction

        Returns:
            Query results or None
        """
        if cursor is not None:
            self._run(cursor, sql, params)
            if fetch_one:
                return cursor.fetchone()
            elif fetch_all:
                return cursor.fetchall()
            return cursor.rowcount

        with self.get_cursor() as own_cursor:
            self._run(own_cursor, sql, params)

            if commit:
                own_cursor.connection.commit()

            if fetch_one:
                return own_cursor.fetchone()
            elif fetch_all:
                return own_cursor.fetchall()

            return own_cursor.rowcount

    def iter_query(self, sql: str, params: Optional[tuple] = None) -> Iterator[Dict[str, Any]]:
        """Stream every row of a query in fetchmany batches (no result-size cap)."""
        with self.get_cursor() as cursor:
            self._run(cursor, sql, params)
            while True:
                rows = cursor.fetchmany(self.FETCH_BATCH_SIZE)
                if not rows:
                    break
                for row in rows:
                    yield row

    def normalize_timestamp(self, dt: Optional[datetime]) -> Optional[datetime]:
        """Ensure timestamp is UTC-aware."""
        if dt is None:
            return None
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)

    def to_decimal(self, value: Any) -> Optional[Decimal]:
        """Snowflake NUMBER columns come back as Decimal or int; keep Decimal."""
        if value is None:
            return None
        return value if isinstance(value, Decimal) else Decimal(str(value))

    def row_to_dict(self, row: Dict[str, Any]) -> Dict[str, Any]:
        """Convert Snowflake row (uppercase keys) to lowercase dict."""
        if row is None:
            return {}
        return {k.lower(): v for k, v in row.items()}

    def in_clause(self, values: List[Any]) -> str:
        """Placeholder list for an IN (...) clause."""
        return ", ".join(["%s"] * len(values))
