"""
WebSocket Connection to the PeekDB hub

Handles one outbound connection attempt: dialing, the authentication
handshake and the query message loop.
"""

import asyncio
import json
import ssl
import threading
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from loguru import logger
from pydantic import BaseModel
from websockets.asyncio.client import ClientConnection, connect

from .config import ConnectionConfig
from .exceptions import (
    AuthenticationError,
    ChannelError,
    DialError,
    HandshakeError,
    ProtocolError,
    SessionError,
)
from .executor import QueryExecutor
from .schemas import AuthRequest, parse_auth_result, parse_hub_message, to_wire


class HubChannel:
    """JSON message framing over a WebSocket connection"""

    def __init__(self, websocket: ClientConnection):
        self._websocket = websocket

    async def send(self, message: BaseModel):
        await self._websocket.send(to_wire(message))

    async def receive(self) -> dict:
        """
        Read one message

        Raises:
            websockets.ConnectionClosed: If the channel closed
            ProtocolError: If the frame is not a JSON object
        """
        raw = await self._websocket.recv()
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise ProtocolError(f"Invalid JSON message: {e}") from e
        if not isinstance(data, dict):
            raise ProtocolError("Message is not a JSON object")
        return data

    async def close(self):
        await self._websocket.close()


async def open_channel(config: ConnectionConfig) -> HubChannel:
    """Dial the hub and wrap the connection"""
    ssl_context = None
    if config.hub_url.startswith("wss://"):
        ssl_context = ssl.create_default_context()
        if not config.ssl_verify:
            ssl_context.check_hostname = False
            ssl_context.verify_mode = ssl.CERT_NONE

    websocket = await connect(
        config.hub_url,
        ssl=ssl_context,
        open_timeout=config.auth_timeout,
        close_timeout=10,
        max_size=None,
    )
    return HubChannel(websocket)


Dialer = Callable[[ConnectionConfig], Awaitable[HubChannel]]


async def run_blocking(func: Callable[..., Any], *args: Any) -> Any:
    """
    Run a blocking call on a daemon thread and await its return value

    Neither asyncio.run nor interpreter exit joins daemon threads, so a
    shutdown is not held up by a database call that is still running.
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def deliver(outcome, error):
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(outcome)

    def worker():
        outcome, error = None, None
        try:
            outcome = func(*args)
        except Exception as e:
            error = e
        try:
            loop.call_soon_threadsafe(deliver, outcome, error)
        except RuntimeError:
            # Loop already closed by shutdown; nobody is waiting
            logger.debug("Discarding result of blocking call after shutdown")

    threading.Thread(target=worker, name="peekdb-query", daemon=True).start()
    return await future


class SessionState(str, Enum):
    """Lifecycle of a single connection attempt"""
    CONNECTING = "connecting"
    AWAITING_AUTH = "awaiting_auth"
    READY = "ready"
    TERMINATED = "terminated"


class Session:
    """
    One connection attempt to the hub

    Responsibilities:
    - Dial the hub and authenticate with the connection token
    - Execute incoming queries one at a time, in arrival order
    - Send exactly one result per query before reading the next message
    - Close the channel on every exit path
    """

    def __init__(
        self,
        config: ConnectionConfig,
        executor: QueryExecutor,
        dial: Dialer = open_channel,
    ):
        self.config = config
        self.executor = executor
        self._dial = dial
        self.state = SessionState.CONNECTING
        self.queries_executed = 0
        self._reached_ready = False

    @property
    def reached_ready(self) -> bool:
        """True once the handshake completed"""
        return self._reached_ready

    async def run(self) -> SessionError:
        """
        Run the session until it terminates

        Returns:
            The error that ended the session
        """
        channel: Optional[HubChannel] = None
        try:
            channel = await self._open()
            await self._handshake(channel)
            await self._message_loop(channel)
        except SessionError as e:
            return e
        finally:
            self.state = SessionState.TERMINATED
            if channel is not None:
                try:
                    await channel.close()
                except Exception as e:
                    logger.debug(f"Error closing channel: {e}")

    async def _open(self) -> HubChannel:
        logger.info(f"Connecting to hub: {self.config.hub_url}")
        try:
            return await self._dial(self.config)
        except Exception as e:
            raise DialError(f"dial failed: {e}") from e

    async def _handshake(self, channel: HubChannel):
        self.state = SessionState.AWAITING_AUTH
        logger.info("Authenticating...")

        try:
            await channel.send(AuthRequest(token=self.config.token, name=self.config.display_name))
        except Exception as e:
            raise HandshakeError(f"auth send failed: {e}") from e

        try:
            data = await asyncio.wait_for(channel.receive(), timeout=self.config.auth_timeout)
            response = parse_auth_result(data)
        except asyncio.TimeoutError as e:
            raise HandshakeError("auth read failed: timed out waiting for auth response") from e
        except Exception as e:
            raise HandshakeError(f"auth read failed: {e}") from e

        if not response.success:
            raise AuthenticationError(
                f"authentication failed: {response.error or 'unknown error'}",
                {"hub_error": response.error},
            )

        self.state = SessionState.READY
        self._reached_ready = True
        logger.info("Authenticated successfully")
        logger.info("Ready and waiting for queries...")

    async def _message_loop(self, channel: HubChannel):
        while True:
            try:
                data = await channel.receive()
                request = parse_hub_message(data)
            except Exception as e:
                raise ChannelError(f"read failed: {e}") from e

            if request is None:
                logger.debug(f"Ignoring message type: {data.get('type')!r}")
                continue

            # Awaited before the next read: one query in flight at a time
            result = await run_blocking(
                self.executor.execute, request.id, request.sql, request.params
            )

            try:
                await channel.send(result)
            except Exception as e:
                raise ChannelError(f"write failed: {e}") from e
            self.queries_executed += 1
