"""Deferred work on the event loop."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional, Tuple


class Debouncer:
    """Trailing-edge debounce: run `fn` once `interval` seconds after the last call.

    Calls made while no event loop is running execute immediately.
    """

    def __init__(self, fn: Callable[..., Any], interval: float = 1.0):
        self.fn = fn
        self.interval = float(interval)
        self._handle: Optional[asyncio.TimerHandle] = None
        self._args: Tuple[Any, ...] = ()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def __call__(self, *args: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.cancel()
            self.fn(*args)
            return
        self._args = args
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self.interval, self._fire)

    def _fire(self) -> None:
        self._handle = None
        args, self._args = self._args, ()
        self.fn(*args)

    def flush(self) -> None:
        """Run a pending call now."""
        if self._handle is not None:
            self._handle.cancel()
            self._fire()

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._args = ()
