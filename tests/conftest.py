"""
Shared fixtures for PeekDB Agent tests
"""

import asyncio
import json
from contextlib import contextmanager

import pytest

from peekdb_agent.config import ConnectionConfig
from peekdb_agent.database import LocalDatabase
from peekdb_agent.executor import QueryExecutor
from peekdb_agent.schemas import to_wire


class FakeResult:
    """Cursor result stand-in; raises when iteration reaches fail_at"""

    def __init__(self, columns, rows, fail_at=None, keys_error=None):
        self.columns = columns
        self.rows = rows
        self.fail_at = fail_at
        self.keys_error = keys_error
        self.returns_rows = columns is not None

    def keys(self):
        if self.keys_error:
            raise self.keys_error
        return self.columns

    def __iter__(self):
        for index, row in enumerate(self.rows):
            if self.fail_at == index:
                raise RuntimeError("sql: Scan error on column index 0")
            yield row


class FakeDatabase:
    """Database handle stand-in keyed by SQL text"""

    def __init__(self, results=None, errors=None):
        self.results = results or {}
        self.errors = errors or {}
        self.calls = []

    @contextmanager
    def query(self, sql, params=()):
        self.calls.append((sql, list(params)))
        if sql in self.errors:
            raise self.errors[sql]
        yield self.results[sql]


class FakeChannel:
    """
    Scripted hub channel

    Incoming items are dicts to deliver or exceptions to raise. Once the
    script runs out, receive() behaves like a closed connection.
    """

    def __init__(self, incoming=(), fail_send_after=None, block_when_empty=False):
        self.incoming = list(incoming)
        self.sent = []
        self.closed = False
        self.fail_send_after = fail_send_after
        self.block_when_empty = block_when_empty

    async def send(self, message):
        if self.fail_send_after is not None and len(self.sent) >= self.fail_send_after:
            raise ConnectionResetError("broken pipe")
        self.sent.append(json.loads(to_wire(message)))

    async def receive(self):
        if not self.incoming:
            if self.block_when_empty:
                await asyncio.Event().wait()
            raise ConnectionResetError("connection closed")
        item = self.incoming.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self):
        self.closed = True


@pytest.fixture
def config():
    return ConnectionConfig(
        hub_url="ws://hub.test/agent",
        token="test-token",
        database_url="sqlite://",
        auth_timeout=0.5,
    )


@pytest.fixture
def sqlite_config(tmp_path):
    return ConnectionConfig(
        token="test-token",
        database_url=f"sqlite:///{tmp_path / 'agent.db'}",
    )


@pytest.fixture
def database(sqlite_config):
    db = LocalDatabase(sqlite_config)
    db.connect()
    yield db
    db.close()


@pytest.fixture
def executor(database):
    return QueryExecutor(database)


@pytest.fixture
def make_channel():
    return FakeChannel


@pytest.fixture
def make_database():
    return FakeDatabase


@pytest.fixture
def make_result():
    return FakeResult
