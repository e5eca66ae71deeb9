"""JSON messages exchanged over the ``/_ws`` real-time channel.

Server to client:
    {"type": "welcome", "state": <state>, "timestamp": <epoch-ms>}
    {"type": "state", "state": <state>, "timestamp": <epoch-ms>}
    {"type": "pong"}

Client to server:
    {"type": "ping"}
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

WS_PATH = "/_ws"


class MessageType(str, Enum):
    """Message ``type`` discriminator values."""

    WELCOME = "welcome"
    STATE = "state"
    PING = "ping"
    PONG = "pong"


def _encode(payload: dict[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"))


def encode_welcome(state: str, timestamp: int) -> str:
    return _encode({"type": MessageType.WELCOME.value, "state": state, "timestamp": timestamp})


def encode_state(state: str, timestamp: int) -> str:
    return _encode({"type": MessageType.STATE.value, "state": state, "timestamp": timestamp})


def encode_ping() -> str:
    return _encode({"type": MessageType.PING.value})


def encode_pong() -> str:
    return _encode({"type": MessageType.PONG.value})


def parse_message(raw: str | bytes) -> dict[str, Any] | None:
    """Decode one inbound frame.

    Returns:
        The decoded object when it is a JSON object with a string ``type``,
        otherwise None. Never raises.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(data, dict) or not isinstance(data.get("type"), str):
        return None
    return data


def state_from_message(data: dict[str, Any] | None) -> str | None:
    """Extract the carried state from a welcome or state message."""
    if data is None:
        return None
    if data.get("type") not in (MessageType.WELCOME.value, MessageType.STATE.value):
        return None
    state = data.get("state")
    if not isinstance(state, str) or not state:
        return None
    return state


def websocket_url(server_url: str) -> str:
    """Turn ``http://host:port`` into ``ws://host:port/_ws``."""
    base = server_url.rstrip("/")
    if base.startswith("https://"):
        base = "wss://" + base[len("https://"):]
    elif base.startswith("http://"):
        base = "ws://" + base[len("http://"):]
    return base + WS_PATH
