"""byteside: an animated avatar companion for AI coding agents.

A local server tracks one current activity state for the agent and pushes
every change to browser and terminal viewers in real time. Agent hooks
report state changes with ``byteside trigger <state>``.

Public API Usage:
    from byteside import BytesideServer, create_app, load_config

    server = BytesideServer.from_config(load_config())
    app = create_app(server)  # ASGI app for uvicorn

    # Driving the state directly
    server.ingress.submit("thinking")
    server.store.get_state()
"""

__version__ = "0.1.0"

from byteside.config import load_config
from byteside.exceptions import BytesideError, InvalidStateError
from byteside.models import (
    CANONICAL_STATES,
    AvatarManifest,
    AvatarState,
    BytesideConfig,
    StateRecord,
)
from byteside.server import BytesideServer, TransportGateway, UpdateIngress, create_app
from byteside.state import StateStore, Subscription

__all__ = [
    "__version__",
    "AvatarManifest",
    "AvatarState",
    "BytesideConfig",
    "BytesideError",
    "BytesideServer",
    "CANONICAL_STATES",
    "InvalidStateError",
    "StateRecord",
    "StateStore",
    "Subscription",
    "TransportGateway",
    "UpdateIngress",
    "create_app",
    "load_config",
]
