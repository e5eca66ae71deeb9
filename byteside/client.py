"""HTTP client used by ``byteside trigger`` to report a state change."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

import httpx

logger = logging.getLogger(__name__)

TRIGGER_TIMEOUT = 1.0


class TriggerOutcome(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    UNREACHABLE = "unreachable"


@dataclass
class TriggerResult:
    outcome: TriggerOutcome
    previous: str | None = None
    error: str | None = None
    valid_states: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """False only when the server rejected the state.

        An unreachable server is not an error: hooks fire whether or not
        byteside is running.
        """
        return self.outcome is not TriggerOutcome.REJECTED


def server_url(host: str, port: int) -> str:
    return f"http://{host}:{port}"


async def post_state(
    base_url: str,
    state: str,
    *,
    timeout: float = TRIGGER_TIMEOUT,
    client: httpx.AsyncClient | None = None,
) -> TriggerResult:
    """POST ``{"state": state}`` to ``<base_url>/state``.

    Args:
        base_url: Server URL, e.g. ``http://localhost:3333``.
        state: State label to report.
        timeout: Overall request timeout in seconds.
        client: Client to use; a temporary one is created if omitted.
    """
    should_close = client is None
    if client is None:
        client = httpx.AsyncClient()

    try:
        response = await client.post(
            f"{base_url.rstrip('/')}/state",
            json={"state": state},
            timeout=timeout,
        )
    except (httpx.ConnectError, httpx.TimeoutException) as e:
        logger.debug("Server at %s not reachable: %s", base_url, e)
        return TriggerResult(outcome=TriggerOutcome.UNREACHABLE)
    except httpx.HTTPError as e:
        logger.debug("Trigger request to %s failed: %s", base_url, e)
        return TriggerResult(outcome=TriggerOutcome.UNREACHABLE)
    finally:
        if should_close:
            await client.aclose()

    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    if response.status_code == 200 and body.get("ok"):
        return TriggerResult(outcome=TriggerOutcome.ACCEPTED, previous=body.get("previous"))

    return TriggerResult(
        outcome=TriggerOutcome.REJECTED,
        error=body.get("error") or f"HTTP {response.status_code}",
        valid_states=list(body.get("validStates") or []),
    )
