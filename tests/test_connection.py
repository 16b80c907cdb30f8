"""
Unit Tests for Session
Tests the handshake, the message loop and session termination
"""

import threading
from dataclasses import replace

import pytest

from peekdb_agent.connection import Session, SessionState, run_blocking
from peekdb_agent.exceptions import (
    AuthenticationError,
    ChannelError,
    DialError,
    HandshakeError,
    ProtocolError,
)
from peekdb_agent.executor import QueryExecutor
from peekdb_agent.schemas import QueryResult

AUTH_OK = {"type": "auth", "success": True}


class RecordingExecutor:
    """Executor stand-in that records calls and echoes the id"""

    def __init__(self):
        self.calls = []

    def execute(self, query_id, sql, params=None):
        self.calls.append((query_id, sql, params))
        return QueryResult.success(query_id, ["sql"], [[sql]])


def dial_to(channel):
    async def dial(config):
        return channel
    return dial


@pytest.fixture
def recorder():
    return RecordingExecutor()


class TestHandshake:
    """Test suite for the authentication handshake"""

    @pytest.mark.asyncio
    async def test_sends_token_first(self, config, recorder, make_channel):
        channel = make_channel([AUTH_OK])
        session = Session(config, recorder, dial=dial_to(channel))

        await session.run()

        assert channel.sent[0] == {"type": "auth", "token": "test-token"}

    @pytest.mark.asyncio
    async def test_display_name_sent(self, config, recorder, make_channel):
        channel = make_channel([AUTH_OK])
        session = Session(replace(config, display_name="warehouse"), recorder, dial=dial_to(channel))

        await session.run()

        assert channel.sent[0] == {"type": "auth", "token": "test-token", "name": "warehouse"}

    @pytest.mark.asyncio
    async def test_dial_failure(self, config, recorder):
        async def dial(config):
            raise ConnectionRefusedError("connection refused")

        session = Session(config, recorder, dial=dial)
        reason = await session.run()

        assert isinstance(reason, DialError)
        assert "connection refused" in reason.message
        assert not session.reached_ready
        assert session.state == SessionState.TERMINATED

    @pytest.mark.asyncio
    async def test_rejected_token(self, config, recorder, make_channel):
        channel = make_channel([{"type": "auth", "success": False, "error": "invalid token"}])
        session = Session(config, recorder, dial=dial_to(channel))

        reason = await session.run()

        assert isinstance(reason, AuthenticationError)
        assert "invalid token" in reason.message
        assert reason.details["hub_error"] == "invalid token"
        assert not session.reached_ready
        assert channel.closed

    @pytest.mark.asyncio
    async def test_closed_before_auth_response(self, config, recorder, make_channel):
        channel = make_channel([])
        reason = await Session(config, recorder, dial=dial_to(channel)).run()

        assert isinstance(reason, HandshakeError)
        assert channel.closed

    @pytest.mark.asyncio
    async def test_malformed_auth_response(self, config, recorder, make_channel):
        channel = make_channel([ProtocolError("Invalid JSON message")])
        reason = await Session(config, recorder, dial=dial_to(channel)).run()

        assert isinstance(reason, HandshakeError)

    @pytest.mark.asyncio
    async def test_query_before_auth_rejected(self, config, recorder, make_channel):
        channel = make_channel([{"type": "query", "id": "q1", "sql": "SELECT 1"}, AUTH_OK])
        session = Session(config, recorder, dial=dial_to(channel))

        reason = await session.run()

        assert isinstance(reason, HandshakeError)
        assert recorder.calls == []
        assert not session.reached_ready

    @pytest.mark.asyncio
    async def test_auth_timeout(self, config, recorder, make_channel):
        channel = make_channel([], block_when_empty=True)
        reason = await Session(config, recorder, dial=dial_to(channel)).run()

        assert isinstance(reason, HandshakeError)
        assert "timed out" in reason.message

    @pytest.mark.asyncio
    async def test_auth_send_failure(self, config, recorder, make_channel):
        channel = make_channel([AUTH_OK], fail_send_after=0)
        reason = await Session(config, recorder, dial=dial_to(channel)).run()

        assert isinstance(reason, HandshakeError)


class TestMessageLoop:
    """Test suite for query processing after the handshake"""

    @pytest.mark.asyncio
    async def test_results_follow_arrival_order(self, config, recorder, make_channel):
        channel = make_channel([
            AUTH_OK,
            {"type": "query", "id": "q1", "sql": "SELECT 1", "params": []},
            {"type": "query", "id": "q2", "sql": "SELECT 2", "params": [5]},
        ])
        session = Session(config, recorder, dial=dial_to(channel))

        reason = await session.run()

        assert [message["id"] for message in channel.sent[1:]] == ["q1", "q2"]
        assert recorder.calls == [("q1", "SELECT 1", []), ("q2", "SELECT 2", [5])]
        assert session.queries_executed == 2
        assert session.reached_ready
        assert isinstance(reason, ChannelError)
        assert channel.closed

    @pytest.mark.asyncio
    async def test_unknown_messages_ignored(self, config, recorder, make_channel):
        channel = make_channel([
            AUTH_OK,
            {"type": "heartbeat"},
            {"note": "no type"},
            {"type": "query", "id": "q1", "sql": "SELECT 1"},
        ])

        await Session(config, recorder, dial=dial_to(channel)).run()

        assert [message["id"] for message in channel.sent[1:]] == ["q1"]

    @pytest.mark.asyncio
    async def test_query_error_keeps_session_open(self, config, make_database, make_channel):
        database = make_database(errors={"SELECT broken": RuntimeError("syntax error at or near \"broken\"")})
        channel = make_channel([
            AUTH_OK,
            {"type": "query", "id": "bad", "sql": "SELECT broken"},
            {"type": "query", "id": "next", "sql": "SELECT broken"},
        ])

        await Session(config, QueryExecutor(database), dial=dial_to(channel)).run()

        assert channel.sent[1] == {"type": "result", "id": "bad", "error": "syntax error at or near \"broken\""}
        assert channel.sent[2]["id"] == "next"

    @pytest.mark.asyncio
    async def test_malformed_frame_ends_session(self, config, recorder, make_channel):
        channel = make_channel([
            AUTH_OK,
            ProtocolError("Invalid JSON message"),
            {"type": "query", "id": "q1", "sql": "SELECT 1"},
        ])

        reason = await Session(config, recorder, dial=dial_to(channel)).run()

        assert isinstance(reason, ChannelError)
        assert recorder.calls == []

    @pytest.mark.asyncio
    async def test_invalid_query_schema_ends_session(self, config, recorder, make_channel):
        channel = make_channel([AUTH_OK, {"type": "query", "sql": "SELECT 1"}])

        reason = await Session(config, recorder, dial=dial_to(channel)).run()

        assert isinstance(reason, ChannelError)

    @pytest.mark.asyncio
    async def test_write_failure_ends_session(self, config, recorder, make_channel):
        channel = make_channel(
            [
                AUTH_OK,
                {"type": "query", "id": "q1", "sql": "SELECT 1"},
                {"type": "query", "id": "q2", "sql": "SELECT 2"},
            ],
            fail_send_after=1,
        )
        session = Session(config, recorder, dial=dial_to(channel))

        reason = await session.run()

        assert isinstance(reason, ChannelError)
        assert "write failed" in reason.message
        assert [call[0] for call in recorder.calls] == ["q1"]
        assert session.reached_ready
        assert channel.closed


class TestRunBlocking:
    """Test suite for off-loop execution of blocking calls"""

    @pytest.mark.asyncio
    async def test_returns_value(self):
        assert await run_blocking(lambda a, b: a + b, 2, 3) == 5

    @pytest.mark.asyncio
    async def test_raises_error(self):
        def fail():
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            await run_blocking(fail)

    @pytest.mark.asyncio
    async def test_runs_on_daemon_thread(self):
        thread = await run_blocking(threading.current_thread)

        assert thread is not threading.main_thread()
        assert thread.daemon
