"""State management package.

Holds the single current avatar state and the listener registry that fans
every write out to transports.
"""

from byteside.state.notifier import ChangeNotifier, StateListener, Subscription
from byteside.state.store import StateStore, epoch_ms

__all__ = [
    "ChangeNotifier",
    "StateListener",
    "StateStore",
    "Subscription",
    "epoch_ms",
]
