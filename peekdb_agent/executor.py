"""
Query Executor

Runs one statement against the shared database handle and packs the
outcome into a result message. Failures never escape; they become the
result's error text.
"""

import time
from typing import Any, List, Optional, Sequence, Tuple

from loguru import logger
from sqlalchemy.exc import DBAPIError

from .codec import convert_row
from .database import LocalDatabase
from .exceptions import QueryError
from .schemas import QueryResult, Scalar

SQL_LOG_LIMIT = 100


def truncate(s: str, n: int) -> str:
    """
    Shorten s to at most n bytes, appending "..." when anything was cut

    Lengths are counted in UTF-8 bytes; a multi-byte character split by
    the cut is dropped.
    """
    encoded = s.encode("utf-8")
    if len(encoded) <= n:
        return s
    return encoded[:n].decode("utf-8", errors="ignore") + "..."


def driver_message(exc: Exception) -> str:
    """Raw driver error text, without SQLAlchemy's statement/background suffix"""
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        exc = exc.orig
    return str(exc) or type(exc).__name__


class QueryExecutor:
    """Executes hub queries on the local database"""

    def __init__(self, database: LocalDatabase):
        self.database = database

    def execute(self, query_id: str, sql: str, params: Optional[Sequence[Any]] = None) -> QueryResult:
        """
        Execute a SQL statement and return its typed result

        Args:
            query_id: Hub-assigned id, echoed in the result
            sql: SQL statement
            params: Positional parameters

        Returns:
            QueryResult with columns and rows, or with error set
        """
        logger.info(f"[query:{query_id}] Executing: {truncate(sql, SQL_LOG_LIMIT)}")
        start = time.perf_counter()

        try:
            columns, rows = self._fetch(sql, params or [])
        except QueryError as e:
            logger.error(f"[query:{query_id}] Error: {e.message}")
            return QueryResult.failure(query_id, e.message)

        elapsed = time.perf_counter() - start
        logger.info(f"[query:{query_id}] Completed in {elapsed * 1000:.1f}ms, {len(rows)} rows")
        return QueryResult.success(query_id, columns, rows)

    def _fetch(self, sql: str, params: Sequence[Any]) -> Tuple[List[str], List[List[Scalar]]]:
        stage = "execute"
        try:
            with self.database.query(sql, params) as result:
                # Statements without a result set (INSERT, UPDATE, DDL)
                if not result.returns_rows:
                    return [], []

                stage = "columns"
                columns = [str(name) for name in result.keys()]

                stage = "scan"
                rows = []
                for record in result:
                    rows.append(convert_row(record))
                return columns, rows
        except Exception as e:
            raise QueryError(driver_message(e), {"stage": stage}) from e
