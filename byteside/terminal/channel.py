"""Loopback WebSocket client that feeds server messages to the renderer."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

import aiohttp

from byteside.exceptions import ChannelLostError
from byteside.logging_config import log_failure
from byteside.protocol import encode_ping, websocket_url

logger = logging.getLogger(__name__)

RECONNECT_DELAY = 1.0
PING_INTERVAL = 30.0

MessageHandler = Callable[[str], None]


class StateChannel:
    """Keeps a WebSocket open to the server's ``/_ws`` endpoint.

    Every text frame is handed to ``on_message``. The channel pings every
    ``ping_interval`` seconds and, after any disconnect or connection error,
    reconnects after a fixed ``reconnect_delay`` until :meth:`close` is called.

    Example:
        channel = StateChannel("http://localhost:3333", print)
        channel.start()
        ...
        await channel.close()
    """

    def __init__(
        self,
        server_url: str,
        on_message: MessageHandler,
        *,
        reconnect_delay: float = RECONNECT_DELAY,
        ping_interval: float = PING_INTERVAL,
    ) -> None:
        self.url = websocket_url(server_url)
        self.on_message = on_message
        self.reconnect_delay = reconnect_delay
        self.ping_interval = ping_interval
        self.connect_count = 0
        self._closed = False
        self._task: asyncio.Task[None] | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None

    @property
    def is_open(self) -> bool:
        return self._ws is not None and not self._ws.closed

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        if self._task is None and not self._closed:
            self._task = asyncio.create_task(self._run(), name="byteside-state-channel")

    async def send(self, data: str) -> None:
        if self._ws is None or self._ws.closed:
            raise ChannelLostError("Channel is not connected", url=self.url)
        await self._ws.send_str(data)

    async def close(self) -> None:
        """Stop reconnecting and close the socket. Safe to call twice."""
        self._closed = True
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        async with aiohttp.ClientSession() as session:
            while not self._closed:
                try:
                    await self._connect_once(session)
                except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as e:
                    logger.debug("State channel to %s failed: %s", self.url, e)

                if self._closed:
                    break
                await asyncio.sleep(self.reconnect_delay)

    async def _connect_once(self, session: aiohttp.ClientSession) -> None:
        async with session.ws_connect(self.url) as ws:
            self._ws = ws
            self.connect_count += 1
            logger.debug("State channel connected to %s", self.url)
            pinger = asyncio.create_task(self._ping_loop(ws))
            try:
                async for msg in ws:
                    if msg.type == aiohttp.WSMsgType.TEXT:
                        self._deliver(msg.data)
                    elif msg.type == aiohttp.WSMsgType.ERROR:
                        logger.debug("State channel error: %s", ws.exception())
                        break
            finally:
                pinger.cancel()
                try:
                    await pinger
                except asyncio.CancelledError:
                    pass
                self._ws = None
        logger.debug("State channel to %s closed", self.url)

    def _deliver(self, raw: str) -> None:
        try:
            self.on_message(raw)
        except Exception as e:
            log_failure(logger, e, "State channel message handler failed", level=logging.DEBUG)

    async def _ping_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        while not ws.closed:
            await asyncio.sleep(self.ping_interval)
            try:
                await ws.send_str(encode_ping())
            except (aiohttp.ClientError, ConnectionResetError) as e:
                logger.debug("Keepalive ping failed: %s", e)
                return
