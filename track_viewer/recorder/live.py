"""
Live location updates from the recorder websocket.

The channel keeps one connection to the recorder's ``/ws/last`` endpoint,
asks for the current last locations on every connect and hands location
messages to a callback, one at a time. Lost connections are retried after a
fixed delay, forever, until stop() is called.
"""
import asyncio
import inspect
import json
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

import websockets
from websockets.exceptions import WebSocketException

logger = logging.getLogger(__name__)

# Sent after connecting; the recorder answers with the last locations.
# Some recorder versions echo it back verbatim.
LAST_REQUEST = "LAST"

RECONNECT_DELAY_SECONDS = 1.0

# Called with the decoded message; may be a coroutine function
LocationCallback = Callable[[dict[str, Any]], Any]


class ChannelState(Enum):
    """Connection state of a LiveUpdateChannel."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class LiveUpdateChannel:
    """
    Websocket client for recorder live updates.

    Example:
        channel = LiveUpdateChannel(client.get_live_url(), on_location)
        task = asyncio.create_task(channel.connect())
        # ... later, from the same event loop ...
        channel.stop()
        await task

    Args:
        url: Websocket URL (ws:// or wss://)
        callback: Invoked for each ``location`` message
        reconnect_delay: Seconds to wait before reconnecting
        connect: Connection factory, ``websockets.connect`` by default
    """

    def __init__(
        self,
        url: str,
        callback: LocationCallback | None = None,
        *,
        reconnect_delay: float = RECONNECT_DELAY_SECONDS,
        connect: Callable[[str], Any] = websockets.connect,
    ) -> None:
        self.url = url
        self.callback = callback
        self.reconnect_delay = reconnect_delay
        self._connect = connect
        self._connection: Any = None
        self._state = ChannelState.DISCONNECTED
        self._stopped = asyncio.Event()

    @property
    def state(self) -> ChannelState:
        """Current connection state."""
        return self._state

    @property
    def is_stopped(self) -> bool:
        return self._stopped.is_set()

    def stop(self) -> None:
        """
        Stop reconnecting and close the current connection.

        Must be called from the event loop running connect(); other threads
        should go through ``loop.call_soon_threadsafe``.
        """
        self._stopped.set()
        if self._connection is not None:
            asyncio.ensure_future(self._connection.close())

    async def connect(self) -> None:
        """Connect and keep reconnecting until stop() is called."""
        while not self._stopped.is_set():
            await self._run_connection()
            if self._stopped.is_set():
                break
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.reconnect_delay)
            except asyncio.TimeoutError:
                pass
        logger.info("Live updates stopped")

    async def _run_connection(self) -> None:
        """Open one connection and consume it until it closes."""
        self._state = ChannelState.CONNECTING
        logger.info("Connecting to %s", self.url)
        reason = "unknown"
        try:
            async with self._connect(self.url) as connection:
                self._connection = connection
                self._state = ChannelState.CONNECTED
                logger.info("Connected")
                await connection.send(LAST_REQUEST)
                async for data in connection:
                    await self.handle_message(data)
                reason = getattr(connection, "close_reason", None) or reason
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            reason = str(e) or type(e).__name__
        except Exception as e:
            logger.exception("Live update connection failed")
            reason = str(e) or type(e).__name__
        finally:
            self._connection = None
            self._state = ChannelState.DISCONNECTED

        if not self._stopped.is_set():
            logger.warning(
                "Disconnected unexpectedly (reason: %s). Reconnecting in %s second(s).",
                reason,
                self.reconnect_delay,
            )

    async def handle_message(self, data: str | bytes | None) -> None:
        """
        Classify one inbound message.

        Empty messages are keep-alives. Messages that fail to parse are
        logged and dropped without affecting the connection. Parsed messages
        with ``_type`` ``location`` are passed to the callback, which is
        awaited before the next message is read.
        """
        if isinstance(data, bytes):
            data = data.decode("utf-8", errors="replace")
        if not data:
            logger.debug("Ping")
            return

        try:
            message = json.loads(data)
        except (ValueError, RecursionError) as e:
            if data != LAST_REQUEST:
                logger.error("Malformed live update %r: %s", data[:100], e)
            return

        if not isinstance(message, dict) or message.get("_type") != "location":
            logger.debug("Ignoring live message: %r", data[:100])
            return

        logger.info("Location update received")
        if self.callback is None:
            return
        try:
            result = self.callback(message)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Error in location callback")
