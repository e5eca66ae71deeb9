"""Observer registry for state changes.

The store notifies synchronously on every write; this module owns the
listener list so the store stays independent of how changes are delivered.
"""

from __future__ import annotations

import logging
from typing import Callable

from byteside.exceptions import ListenerError, record_error
from byteside.logging_config import log_failure

logger = logging.getLogger(__name__)

StateListener = Callable[[str, int], None]


class Subscription:
    """Handle for one registered listener.

    ``unsubscribe()`` may be called any number of times; only the first call
    has an effect. Calling the handle itself is the same as ``unsubscribe()``.
    """

    def __init__(self, notifier: ChangeNotifier, listener: StateListener) -> None:
        self._notifier = notifier
        self.listener = listener
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._notifier._remove(self)

    def __call__(self) -> None:
        self.unsubscribe()

    def __repr__(self) -> str:
        return f"Subscription(listener={_listener_name(self.listener)}, active={self._active})"


class ChangeNotifier:
    """Ordered set of listeners invoked with ``(state, timestamp)``."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []

    def __len__(self) -> int:
        return len(self._subscriptions)

    def add(self, listener: StateListener) -> Subscription:
        """Register a listener and return its handle."""
        subscription = Subscription(self, listener)
        self._subscriptions.append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            pass

    def notify(self, state: str, timestamp: int) -> None:
        """Invoke every listener registered when the pass starts.

        Iterates over a copy so a listener may unsubscribe itself or others.
        A listener removed mid-pass is skipped. Listener failures are logged
        and isolated.
        """
        for subscription in list(self._subscriptions):
            if not subscription.active:
                continue
            try:
                subscription.listener(state, timestamp)
            except Exception as e:
                name = _listener_name(subscription.listener)
                log_failure(
                    logger,
                    e,
                    f"State listener {name} failed for state {state}",
                    level=logging.ERROR,
                )
                record_error(ListenerError(listener=name, cause=e))

    def clear(self) -> None:
        """Deactivate and drop every subscription."""
        for subscription in list(self._subscriptions):
            subscription.unsubscribe()


def _listener_name(listener: StateListener) -> str:
    return getattr(listener, "__qualname__", None) or repr(listener)
