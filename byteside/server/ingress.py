"""Validated entry point for state changes.

Every external request to change the avatar state (HTTP ``POST /state``,
which is what ``byteside trigger`` calls) goes through :class:`UpdateIngress`.
Calls are independent and stateless; racing calls are serialized by the store
in call order, last write wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from byteside.exceptions import InvalidStateError
from byteside.models import CANONICAL_STATES
from byteside.state import StateStore

logger = logging.getLogger(__name__)


@dataclass
class IngressResult:
    """Outcome of one proposed state change."""

    ok: bool
    state: str | None = None
    previous: str | None = None
    error: str | None = None
    valid_states: list[str] = field(default_factory=list)

    @classmethod
    def accepted(cls, state: str, previous: str) -> "IngressResult":
        return cls(ok=True, state=state, previous=previous)

    @classmethod
    def rejected(cls, error: InvalidStateError) -> "IngressResult":
        return cls(ok=False, error=error.message, valid_states=list(error.valid_states))

    def to_dict(self) -> dict[str, Any]:
        """Response body in the wire shape used by ``POST /state``."""
        if self.ok:
            return {"ok": True, "state": self.state, "previous": self.previous}
        return {"ok": False, "error": self.error, "validStates": self.valid_states}


def legal_state_set(custom_states: Iterable[str] = ()) -> list[str]:
    """Canonical states in declaration order, then extra labels sorted."""
    extras = sorted(set(custom_states) - set(CANONICAL_STATES))
    return [*CANONICAL_STATES, *extras]


class UpdateIngress:
    """Checks a candidate label and writes it to the store when legal."""

    def __init__(self, store: StateStore, legal_states: Iterable[str] = CANONICAL_STATES) -> None:
        self.store = store
        self.legal_states = legal_state_set(legal_states)

    def is_valid(self, candidate: object) -> bool:
        return isinstance(candidate, str) and candidate in self.legal_states

    def apply(self, candidate: object) -> IngressResult:
        """Write ``candidate`` to the store.

        Raises:
            InvalidStateError: If the label is not legal. The store is untouched.
        """
        if not isinstance(candidate, str) or candidate not in self.legal_states:
            raise InvalidStateError(candidate, self.legal_states)

        previous = self.store.set_state(candidate)
        logger.info("State changed: %s -> %s", previous, candidate)
        return IngressResult.accepted(candidate, previous)

    def submit(self, candidate: object) -> IngressResult:
        """Like :meth:`apply` but reports rejection as a result instead of raising."""
        try:
            return self.apply(candidate)
        except InvalidStateError as e:
            logger.info("Rejected state update: %r", candidate)
            return IngressResult.rejected(e)
