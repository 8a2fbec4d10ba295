"""
SQL Dialects Module
Row-limiting and literal syntax for the two supported backends
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from .exceptions import QueryExecutionError

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class SqlDialect(ABC):
    """Abstract base class for backend dialects"""

    name = ""

    def format_timestamp(self, value: datetime) -> str:
        return value.strftime(DATE_FORMAT)

    @abstractmethod
    def timestamp_literal(self, value: datetime) -> str:
        """Render a timestamp as a SQL literal"""
        pass

    @abstractmethod
    def limit(self, columns: Sequence[str], view: str, where: Optional[str],
              order_by: str, limit: int) -> Tuple[str, str, List[str]]:
        """
        Build an ordered query returning at most `limit` rows

        Returns:
            (where, view, columns) arguments for RDBMSConnector.execute
        """
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class SqlServerDialect(SqlDialect):
    """SQL Server: TOP N on the select list, unprefixed timestamp literals"""

    name = "MSSQL"

    def timestamp_literal(self, value: datetime) -> str:
        return f"'{self.format_timestamp(value)}'"

    def limit(self, columns, view, where, order_by, limit):
        columns = list(columns)
        columns[0] = f"top {limit} {columns[0]}"
        return f"{where or '1=1'} order by {order_by}", view, columns


class OracleDialect(SqlDialect):
    """
    Oracle: ROWNUM limits rows before ORDER BY is applied, so the ordered
    query becomes a subquery and the limit is applied outside it.
    """

    name = "Oracle"

    def timestamp_literal(self, value: datetime) -> str:
        return f"TIMESTAMP'{self.format_timestamp(value)}'"

    def limit(self, columns, view, where, order_by, limit):
        inner = f"select {', '.join(columns)} from {view}"
        if where:
            inner += f" where {where}"
        inner += f" order by {order_by}"
        return f"rownum <= {limit}", f"({inner})", ["*"]


def get_dialect(servtype: str) -> SqlDialect:
    """Select a dialect from a configured server type name"""
    if servtype.strip().upper().startswith("MSSQL"):
        dialect = SqlServerDialect()
    else:
        dialect = OracleDialect()
    logger.info(f"CONFIGURED SERVTYPE: {dialect.name}")
    return dialect


def detect_dialect(client) -> SqlDialect:
    """
    Autodetect the backend dialect.

    Runs a trivial query against KDual first so that generic connection
    errors propagate, then probes the Oracle-only dual table.
    """
    client.execute("1=1", "KDual", ["42"])
    try:
        client.execute("1=1", "dual", ["42"])
        dialect = OracleDialect()
    except QueryExecutionError:
        dialect = SqlServerDialect()
    logger.info(f"AUTO DETECT SERVTYPE: {dialect.name}")
    return dialect
