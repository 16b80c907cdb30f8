"""
Local Database Connection Manager

Owns the SQLAlchemy engine for the local database. The engine and its
connection pool are created once at startup and shared by reference.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Sequence
from urllib.parse import quote_plus

from loguru import logger
from sqlalchemy import create_engine, text
from sqlalchemy.engine import CursorResult, Engine
from sqlalchemy.engine.url import URL, make_url
from sqlalchemy.pool import QueuePool, StaticPool

from .config import ConnectionConfig


def build_engine_url(database_url: str) -> str:
    """
    Normalise the configured database URL for SQLAlchemy

    SQLAlchemy URLs are used as-is. A raw ODBC connection string
    (DRIVER=...;SERVER=...) is routed through pyodbc.
    """
    if "://" in database_url:
        return database_url
    return f"mssql+pyodbc:///?odbc_connect={quote_plus(database_url)}"


def pool_options(url: URL, max_open: int, max_idle: int) -> Dict[str, Any]:
    """
    Engine keyword arguments for the dialect's connection pool

    Only QueuePool takes size limits. An in-memory SQLite database lives
    in a single connection, which every worker thread has to share.
    """
    options: Dict[str, Any] = {"pool_pre_ping": True}  # Drop stale connections before use
    pool_class = url.get_dialect().get_pool_class(url)
    if issubclass(pool_class, QueuePool):
        max_idle = max(max_idle, 1)
        options["pool_size"] = max_idle
        options["max_overflow"] = max(max_open - max_idle, 0)
    elif url.get_backend_name() == "sqlite":
        options["poolclass"] = StaticPool
        options["connect_args"] = {"check_same_thread": False}
    return options


class LocalDatabase:
    """Manages the pooled connection to the local database"""

    def __init__(self, config: ConnectionConfig):
        self.config = config
        self._engine: Optional[Engine] = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database not connected. Call connect() first")
        return self._engine

    def connect(self):
        """
        Create the connection pool and verify connectivity

        Raises:
            Exception: If the engine cannot be created or the ping fails
        """
        if self._engine is not None:
            logger.warning("Database already connected")
            return

        url = make_url(build_engine_url(self.config.database_url))
        self._engine = create_engine(
            url,
            **pool_options(url, self.config.max_open_conns, self.config.max_idle_conns),
        )
        try:
            self.ping()
        except Exception:
            self.close()
            raise
        logger.info(f"Connected to database ({self._engine.dialect.name})")

    def ping(self):
        """Round-trip a trivial statement"""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()

    @contextmanager
    def query(self, sql: str, params: Sequence[Any] = ()) -> Iterator[CursorResult]:
        """
        Run a statement with positional parameters

        Parameters use the driver's own placeholder style. The statement
        runs in a transaction that commits when the block exits cleanly
        and rolls back otherwise.

        Yields:
            Cursor result; iterate it for rows
        """
        with self.engine.begin() as conn:
            if params:
                result = conn.exec_driver_sql(sql, tuple(params))
            else:
                result = conn.exec_driver_sql(sql)
            try:
                yield result
            finally:
                result.close()

    def close(self):
        """Dispose of all pooled connections"""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            logger.info("Database connections closed")

    def test_connection(self) -> Dict[str, Any]:
        """
        Test the database connection

        Returns:
            Dict with success status and dialect name
        """
        try:
            dialect = make_url(build_engine_url(self.config.database_url)).get_backend_name()
            if self._engine is None:
                self.connect()
            else:
                self.ping()
            return {"success": True, "dialect": dialect}
        except Exception as e:
            return {"success": False, "error": str(e)}
