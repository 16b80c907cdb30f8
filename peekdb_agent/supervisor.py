"""
Connection Supervisor

Keeps the agent connected: runs sessions back to back with exponential
backoff between attempts. Runs until its task is cancelled.
"""

import asyncio
from typing import Awaitable, Callable

from loguru import logger

from .config import ConnectionConfig
from .connection import Dialer, Session, open_channel
from .executor import QueryExecutor

INITIAL_BACKOFF = 1
MAX_BACKOFF = 60


class Backoff:
    """Doubling delay with an upper bound"""

    def __init__(self, initial: float = INITIAL_BACKOFF, maximum: float = MAX_BACKOFF, factor: float = 2):
        self.initial = initial
        self.maximum = maximum
        self.factor = factor
        self.current = initial

    def next_delay(self) -> float:
        """Return the delay to wait now and grow the next one"""
        delay = self.current
        self.current = min(self.current * self.factor, self.maximum)
        return delay

    def reset(self):
        self.current = self.initial


class ConnectionSupervisor:
    """
    Outer reconnect loop

    Every kind of session failure (dial, handshake, rejected token, broken
    channel) goes through the same backoff path. Backoff resets after any
    session that completed its handshake.
    """

    def __init__(
        self,
        config: ConnectionConfig,
        executor: QueryExecutor,
        dial: Dialer = open_channel,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self.executor = executor
        self._dial = dial
        self._sleep = sleep
        self.backoff = Backoff()
        self.attempts = 0

    def new_session(self) -> Session:
        return Session(self.config, self.executor, dial=self._dial)

    async def run_forever(self):
        """Connect, serve, back off, repeat; only cancellation stops it"""
        while True:
            self.attempts += 1
            session = self.new_session()
            try:
                reason = await session.run()
                logger.warning(f"Connection error: {reason}")
            except Exception as e:
                logger.error(f"Unexpected session failure: {e}")

            if session.reached_ready:
                self.backoff.reset()

            delay = self.backoff.next_delay()
            logger.info(f"Reconnecting in {delay}s...")
            await self._sleep(delay)
