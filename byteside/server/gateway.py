"""Real-time fan-out of state changes to viewer connections.

The gateway subscribes to the :class:`~byteside.state.StateStore` and turns
every write into one ``state`` message pushed to each open connection. New
connections are resynchronized with a ``welcome`` snapshot. Delivery is best
effort per connection: a failing connection is dropped, the rest still
receive the message.

Notification runs synchronously inside ``StateStore.set_state``, so nothing
here awaits. :class:`WebSocketConnection` hands messages to a per-connection
queue drained by its own writer task, which keeps each connection's messages
in write order without blocking the notification pass.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Iterable, Iterator, Protocol, runtime_checkable

from fastapi import WebSocket, WebSocketDisconnect

from byteside.exceptions import SendError, record_error
from byteside.logging_config import log_failure
from byteside.protocol import (
    MessageType,
    encode_pong,
    encode_state,
    encode_welcome,
    parse_message,
)
from byteside.state import StateStore, Subscription

logger = logging.getLogger(__name__)

DEFAULT_MAX_QUEUE = 256


@runtime_checkable
class Connection(Protocol):
    """One live bidirectional channel to a viewer."""

    @property
    def is_open(self) -> bool: ...

    def send(self, data: str) -> None: ...

    def close(self) -> None: ...


class ConnectionRegistry:
    """Set of live connections; add and discard are idempotent."""

    def __init__(self) -> None:
        self._connections: set[Connection] = set()

    def add(self, connection: Connection) -> None:
        self._connections.add(connection)

    def discard(self, connection: Connection) -> bool:
        """Remove a connection. Returns True if it was registered."""
        if connection in self._connections:
            self._connections.discard(connection)
            return True
        return False

    def snapshot(self) -> list[Connection]:
        return list(self._connections)

    def __contains__(self, connection: object) -> bool:
        return connection in self._connections

    def __iter__(self) -> Iterator[Connection]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        return len(self._connections)


def broadcast(connections: Iterable[Connection], data: str) -> list[Connection]:
    """Push ``data`` to every open connection.

    Args:
        connections: Connections to deliver to. Iterated once, up front.
        data: Serialized message.

    Returns:
        Connections that were closed or failed to accept the message.
    """
    failed: list[Connection] = []
    for connection in list(connections):
        if not connection.is_open:
            failed.append(connection)
            continue
        try:
            connection.send(data)
        except Exception as e:
            log_failure(logger, e, f"Dropping connection {connection!r} after send failure")
            record_error(e if isinstance(e, SendError) else SendError(cause=e))
            failed.append(connection)
    return failed


class TransportGateway:
    """Bridges store writes to the set of connected viewers."""

    def __init__(self, store: StateStore) -> None:
        self.store = store
        self.registry = ConnectionRegistry()
        self._subscription: Subscription | None = None

    @property
    def attached(self) -> bool:
        return self._subscription is not None and self._subscription.active

    @property
    def connection_count(self) -> int:
        return len(self.registry)

    def attach(self) -> None:
        """Start forwarding store writes. Calling twice has no effect."""
        if self.attached:
            return
        self._subscription = self.store.subscribe(self._on_state_change)

    def detach(self) -> None:
        """Stop forwarding store writes."""
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def open(self, connection: Connection) -> bool:
        """Send the welcome snapshot and register the connection.

        Both steps run without yielding, so no write can land between the
        snapshot and registration.

        Returns:
            False if the welcome could not be sent (connection not registered).
        """
        record = self.store.get_state()
        try:
            connection.send(encode_welcome(record.state, record.timestamp))
        except Exception as e:
            log_failure(logger, e, f"Failed to welcome connection {connection!r}")
            record_error(e if isinstance(e, SendError) else SendError(cause=e))
            connection.close()
            return False

        self.registry.add(connection)
        logger.info("Viewer connected (%d total)", len(self.registry))
        return True

    def receive(self, connection: Connection, raw: str | bytes | None) -> None:
        """Handle one inbound frame. Only ``ping`` gets a reply."""
        data = parse_message(raw) if raw is not None else None
        if data is None or data["type"] != MessageType.PING.value:
            return

        try:
            connection.send(encode_pong())
        except Exception as e:
            logger.debug("Failed to answer ping on %r: %s", connection, e)
            self.close(connection)

    def close(self, connection: Connection) -> None:
        """Forget a connection and close it. Safe to call more than once."""
        removed = self.registry.discard(connection)
        connection.close()
        if removed:
            logger.info("Viewer disconnected (%d remaining)", len(self.registry))

    def close_all(self) -> None:
        for connection in self.registry.snapshot():
            self.close(connection)

    def _on_state_change(self, state: str, timestamp: int) -> None:
        for connection in broadcast(self.registry, encode_state(state, timestamp)):
            self.close(connection)


class WebSocketConnection:
    """:class:`Connection` backed by a Starlette/FastAPI WebSocket.

    ``send`` only enqueues. Call :meth:`start` from the event loop before the
    first send is expected to reach the peer.
    """

    def __init__(self, websocket: WebSocket, *, max_queue: int = DEFAULT_MAX_QUEUE) -> None:
        self.id = uuid.uuid4().hex[:8]
        self._websocket = websocket
        self._queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize=max_queue)
        self._open = True
        self._writer: asyncio.Task[None] | None = None

    def __repr__(self) -> str:
        return f"WebSocketConnection(id={self.id}, open={self._open})"

    @property
    def is_open(self) -> bool:
        return self._open

    def start(self) -> None:
        if self._writer is None:
            self._writer = asyncio.create_task(
                self._write_loop(), name=f"byteside-ws-writer-{self.id}"
            )

    def send(self, data: str) -> None:
        if not self._open:
            raise SendError("Connection is closed", connection_id=self.id)
        try:
            self._queue.put_nowait(data)
        except asyncio.QueueFull as e:
            raise SendError("Outbound queue is full", connection_id=self.id, cause=e) from e

    def close(self) -> None:
        if not self._open:
            return
        self._open = False
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            if self._writer is not None:
                self._writer.cancel()

    async def wait_closed(self) -> None:
        """Wait for the writer task to flush and finish."""
        if self._writer is None:
            return
        try:
            await self._writer
        except asyncio.CancelledError:
            pass

    async def _write_loop(self) -> None:
        try:
            while True:
                data = await self._queue.get()
                if data is None:
                    break
                await self._websocket.send_text(data)
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            logger.debug("Writer for %s stopped: %s", self.id, e)
            self._open = False
            return

        try:
            await self._websocket.close()
        except (RuntimeError, OSError) as e:
            logger.debug("Close for %s ignored: %s", self.id, e)
