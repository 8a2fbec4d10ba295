"""Shared fixtures: fake relational clients and a Livelink-style SQLite database."""

import re
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence

import pytest
from sqlalchemy import create_engine, text

from config.settings import RDBMSConfig, TraversalConfig
from database.rdbms_connector import RDBMSConnector, RecordArray
from traversal.dialects import SqlDialect

BASE_DATE = datetime(2024, 1, 1, 10, 0, 0)


def records(columns: Sequence[str], rows: Sequence[Sequence[Any]]) -> RecordArray:
    return RecordArray(columns, rows)


def parse_ids(where: str) -> List[int]:
    """Pull the first 'DataID in (...)' list out of a where clause."""
    match = re.search(r"DataID in \(([\d,\s-]+)\)", where)
    return [int(i) for i in match.group(1).split(",")] if match else []


class ScriptedClient:
    """Fake relational client answering every query through a handler."""

    def __init__(self, handler: Optional[Callable] = None):
        self.handler = handler or (lambda where, view, columns: records([], []))
        self.calls = []

    def execute(self, where, view, columns):
        self.calls.append((where, view, list(columns)))
        return self.handler(where, view, list(columns))


class SqliteDialect(SqlDialect):
    """LIMIT-based dialect so the engine's queries run on SQLite."""

    name = "SQLite"

    def timestamp_literal(self, value):
        return f"'{self.format_timestamp(value)}'"

    def limit(self, columns, view, where, order_by, limit):
        return f"{where or '1=1'} order by {order_by} limit {limit}", view, list(columns)


class ExpiringDeadline:
    """Deadline that expires after a number of checks."""

    def __init__(self, checks: int):
        self.remaining = checks
        self.checks = 0

    def expired(self) -> bool:
        self.checks += 1
        self.remaining -= 1
        return self.remaining < 0


class NeverDeadline:
    def expired(self) -> bool:
        return False


SCHEMA = [
    """CREATE TABLE DTree (
        DataID INTEGER PRIMARY KEY, ParentID INTEGER, OwnerID INTEGER,
        SubType INTEGER, Name TEXT, ModifyDate TEXT, CreateDate TEXT,
        DComment TEXT, OwnerName TEXT, UserID TEXT, MimeType TEXT,
        DataSize INTEGER, PermID INTEGER)""",
    "CREATE VIEW WebNodes AS SELECT * FROM DTree",
    "CREATE TABLE DTreeAncestors (DataID INTEGER, AncestorID INTEGER)",
    """CREATE TABLE DAuditNew (
        EventID INTEGER PRIMARY KEY, AuditID INTEGER, DataID INTEGER, AuditDate TEXT)""",
]


class LivelinkDatabase:
    """Minimal DTree / WebNodes / DTreeAncestors / DAuditNew schema on SQLite."""

    def __init__(self, url: str):
        self.url = url
        self.engine = create_engine(url)
        self.parents: Dict[int, int] = {}
        with self.engine.begin() as conn:
            for statement in SCHEMA:
                conn.execute(text(statement))
        self.connector = RDBMSConnector(RDBMSConfig(connection_string=url))

    def ancestors(self, data_id: int) -> List[int]:
        chain = []
        parent = self.parents.get(data_id, -1)
        while parent != -1:
            chain.append(parent)
            parent = self.parents.get(parent, -1)
        return chain

    def add_node(self, data_id: int, parent_id: int = -1, modify_date: datetime = BASE_DATE,
                 name: Optional[str] = None, subtype: int = 144):
        self.parents[data_id] = parent_id
        with self.engine.begin() as conn:
            conn.execute(
                text("INSERT INTO DTree (DataID, ParentID, OwnerID, SubType, Name, ModifyDate, "
                     "CreateDate, DComment, OwnerName, UserID, MimeType, DataSize, PermID) "
                     "VALUES (:id, :parent, -2000, :subtype, :name, :modified, :modified, "
                     "'', 'Admin', '1000', 'text/plain', 10, :id)"),
                {"id": data_id, "parent": parent_id, "subtype": subtype,
                 "name": name or f"node-{data_id}",
                 "modified": modify_date.strftime("%Y-%m-%d %H:%M:%S")})
            for ancestor in self.ancestors(data_id):
                conn.execute(text("INSERT INTO DTreeAncestors (DataID, AncestorID) VALUES (:d, :a)"),
                             {"d": data_id, "a": ancestor})

    def add_delete(self, data_id: int, audit_date: datetime, event_id: Optional[int] = None):
        with self.engine.begin() as conn:
            conn.execute(
                text("INSERT INTO DAuditNew (EventID, AuditID, DataID, AuditDate) "
                     "VALUES (:event, 2, :id, :date)"),
                {"event": event_id, "id": data_id,
                 "date": audit_date.strftime("%Y-%m-%d %H:%M:%S")})

    def close(self):
        self.connector.close()
        self.engine.dispose()


@pytest.fixture
def livelink_db(tmp_path):
    db = LivelinkDatabase(f"sqlite:///{tmp_path / 'livelink.db'}")
    yield db
    db.close()


@pytest.fixture
def traversal_config() -> TraversalConfig:
    return TraversalConfig(servtype="MSSQL", track_deletes=False, traversal_time_limit=5.0)


def minutes(n: int) -> datetime:
    return BASE_DATE + timedelta(minutes=n)
