"""
RDBMS Database Connector Module
Handles connections and the ListNodes-style queries used by the traversal engine
"""

from datetime import datetime
from typing import Any, Optional, Sequence
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from config.settings import RDBMSConfig
from traversal.exceptions import QueryExecutionError
import logging

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class RecordArray:
    """Tabular query result with random row access and typed column access"""

    def __init__(self, columns: Sequence[str], rows: Sequence[Sequence[Any]]):
        """
        Initialize record array

        Args:
            columns: Column names in result order
            rows: Row tuples, one value per column
        """
        self.columns = list(columns)
        self.rows = [tuple(row) for row in rows]
        self._index = {name.lower(): i for i, name in enumerate(self.columns)}

    def __len__(self) -> int:
        return len(self.rows)

    def size(self) -> int:
        """Get the number of rows"""
        return len(self.rows)

    def has_column(self, column: str) -> bool:
        return column.lower() in self._index

    def value(self, row: int, column: str) -> Any:
        """
        Get a raw value

        Args:
            row: Row index
            column: Column name (case-insensitive)

        Returns:
            The value as returned by the driver
        """
        try:
            position = self._index[column.lower()]
        except KeyError:
            raise KeyError(f"No column '{column}' in result {self.columns}")
        return self.rows[row][position]

    def to_integer(self, row: int, column: str) -> Optional[int]:
        value = self.value(row, column)
        return None if value is None else int(value)

    def to_string(self, row: int, column: str) -> Optional[str]:
        value = self.value(row, column)
        return None if value is None else str(value)

    def to_date(self, row: int, column: str) -> Optional[datetime]:
        """Get a value as a datetime, parsing driver strings if needed"""
        value = self.value(row, column)
        if value is None or isinstance(value, datetime):
            return value
        text_value = str(value)
        try:
            return datetime.strptime(text_value[:19], DATE_FORMAT)
        except ValueError:
            return datetime.fromisoformat(text_value)


class RDBMSConnector:
    """Manages RDBMS database connections and operations"""

    def __init__(self, config: RDBMSConfig, connection_string: Optional[str] = None):
        """
        Initialize RDBMS connector

        Args:
            config: RDBMS configuration object
            connection_string: Overrides config.connection_string, used
                for the traversal identity
        """
        self.config = config
        self.connection_string = connection_string or config.connection_string
        self._engine: Optional[Engine] = None

    @property
    def engine(self) -> Engine:
        """Get or create SQLAlchemy engine"""
        if self._engine is None:
            options = {"echo": self.config.echo, "pool_pre_ping": True}
            if not self.connection_string.startswith("sqlite"):
                options["pool_size"] = self.config.pool_size
                options["max_overflow"] = self.config.max_overflow
            self._engine = create_engine(self.connection_string, **options)
            logger.info("RDBMS engine created")
        return self._engine

    def execute(self, where: str, view: str, columns: Sequence[str]) -> RecordArray:
        """
        Execute a query of the form SELECT columns FROM view WHERE where

        Args:
            where: WHERE clause, which may carry a trailing ORDER BY
            view: Table, view or parenthesized subquery
            columns: Select list items

        Returns:
            RecordArray with the result rows

        Raises:
            QueryExecutionError: on any backend failure
        """
        statement = f"SELECT {', '.join(columns)} FROM {view} WHERE {where}"
        logger.debug(f"EXECUTE: {statement}")
        try:
            with self.engine.connect() as conn:
                result = conn.execute(text(statement))
                return RecordArray(list(result.keys()), result.fetchall())
        except SQLAlchemyError as e:
            raise QueryExecutionError(f"Query failed: {e}", statement) from e

    def test_connection(self) -> bool:
        """Test database connection"""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("RDBMS connection test successful")
            return True
        except SQLAlchemyError as e:
            logger.error(f"RDBMS connection test failed: {e}")
            return False

    def close(self):
        """Close database connections"""
        if self._engine:
            self._engine.dispose()
            logger.info("RDBMS engine disposed")
            self._engine = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


_default_connector: Optional[RDBMSConnector] = None
_traversal_connector: Optional[RDBMSConnector] = None


def get_rdbms_connector(config: Optional[RDBMSConfig] = None) -> RDBMSConnector:
    """
    Get or create the default (sysadmin identity) RDBMS connector

    Args:
        config: Optional config, uses default if not provided

    Returns:
        RDBMSConnector instance
    """
    global _default_connector

    if _default_connector is None:
        if config is None:
            config = RDBMSConfig.from_env()
        _default_connector = RDBMSConnector(config)

    return _default_connector


def get_traversal_connector(config: Optional[RDBMSConfig] = None) -> RDBMSConnector:
    """
    Get or create the connector for the traversal (end-user) identity.
    Falls back to the sysadmin connector when no separate URL is configured.
    """
    global _traversal_connector

    if config is None:
        config = RDBMSConfig.from_env()
    if not config.traversal_connection_string:
        return get_rdbms_connector(config)
    if _traversal_connector is None:
        _traversal_connector = RDBMSConnector(config, config.traversal_connection_string)
    return _traversal_connector


def reset_connectors():
    """Dispose and forget the module-level connectors"""
    global _default_connector, _traversal_connector
    for connector in (_traversal_connector, _default_connector):
        if connector is not None:
            connector.close()
    _default_connector = None
    _traversal_connector = None
