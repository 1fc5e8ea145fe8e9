"""Minimal signal/subscription primitives.

Listeners are registered through `Signal.connect`, which hands back a
`Subscription`. Owners collect subscriptions and release them on teardown.
"""

from __future__ import annotations

from typing import Any, Callable, List, Optional


class Subscription:
    def __init__(self, signal: "Signal", callback: Callable[..., Any]):
        self._signal: Optional[Signal] = signal
        self.callback = callback

    @property
    def active(self) -> bool:
        return self._signal is not None

    def release(self) -> None:
        if self._signal is not None:
            self._signal._disconnect(self)
            self._signal = None


class Signal:
    """Synchronous multi-listener event."""

    def __init__(self, name: str = ""):
        self.name = name
        self._subs: List[Subscription] = []

    def connect(self, callback: Callable[..., Any]) -> Subscription:
        sub = Subscription(self, callback)
        self._subs.append(sub)
        return sub

    def _disconnect(self, sub: Subscription) -> None:
        if sub in self._subs:
            self._subs.remove(sub)

    def emit(self, *args: Any) -> None:
        for sub in list(self._subs):
            sub.callback(*args)

    def clear(self) -> None:
        for sub in list(self._subs):
            sub.release()

    def __len__(self) -> int:
        return len(self._subs)


class SubscriptionList:
    """Scoped collection of subscriptions released together."""

    def __init__(self) -> None:
        self._items: List[Subscription] = []

    def add(self, sub: Subscription) -> Subscription:
        self._items.append(sub)
        return sub

    def release_all(self) -> None:
        while self._items:
            self._items.pop().release()

    def __len__(self) -> int:
        return len(self._items)
