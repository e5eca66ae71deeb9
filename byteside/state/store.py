"""In-memory store for the single current avatar state."""

from __future__ import annotations

import logging
import time
from typing import Callable

from byteside.models import DEFAULT_STATE, StateRecord
from byteside.state.notifier import ChangeNotifier, StateListener, Subscription

logger = logging.getLogger(__name__)


def epoch_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class StateStore:
    """Owns the current :class:`StateRecord` and notifies on every write.

    The store performs no validation; deciding which labels are legal is the
    ingress layer's job. Writes never coalesce: each ``set_state`` call
    produces exactly one notification pass, completed before it returns.

    Example:
        store = StateStore()
        sub = store.subscribe(lambda state, ts: print(state, ts))
        previous = store.set_state("thinking")  # prints "thinking <ts>"
        sub.unsubscribe()
    """

    def __init__(
        self,
        initial_state: str = DEFAULT_STATE,
        *,
        clock: Callable[[], int] = epoch_ms,
    ) -> None:
        self._clock = clock
        self._record = StateRecord(state=initial_state, timestamp=clock())
        self._notifier = ChangeNotifier()

    @property
    def subscriber_count(self) -> int:
        return len(self._notifier)

    def get_state(self) -> StateRecord:
        """Return the current record."""
        return self._record

    def set_state(self, next_state: str) -> str:
        """Replace the current state and notify all subscribers.

        Args:
            next_state: The new state label.

        Returns:
            The state label that was current immediately before the call.
        """
        previous = self._record.state
        # Wall clocks can step backwards; timestamps must not.
        timestamp = max(self._clock(), self._record.timestamp)
        self._record = StateRecord(state=next_state, timestamp=timestamp)
        logger.debug("State %s -> %s at %d", previous, next_state, timestamp)

        self._notifier.notify(next_state, timestamp)
        return previous

    def subscribe(self, listener: StateListener) -> Subscription:
        """Register ``listener(state, timestamp)`` for every future write.

        Returns:
            A handle whose ``unsubscribe()`` is safe to call repeatedly.
        """
        return self._notifier.add(listener)
