"""HTTP and WebSocket server package."""

from byteside.server.app import BytesideServer, BytesideUvicornServer, create_app, run_server
from byteside.server.gateway import (
    Connection,
    ConnectionRegistry,
    TransportGateway,
    WebSocketConnection,
    broadcast,
)
from byteside.server.ingress import IngressResult, UpdateIngress, legal_state_set

__all__ = [
    "BytesideServer",
    "BytesideUvicornServer",
    "Connection",
    "ConnectionRegistry",
    "IngressResult",
    "TransportGateway",
    "UpdateIngress",
    "WebSocketConnection",
    "broadcast",
    "create_app",
    "legal_state_set",
    "run_server",
]
