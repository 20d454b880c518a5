"""Deferred-data registry: values produced by replies, and callbacks waiting on them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

# A dependency on this key is always satisfied.
ALWAYS = ""

_MISSING = object()


@dataclass(eq=False)
class Waiter:
    """A callback gated on one or more data keys."""

    keys: tuple[str, ...]
    callback: Callable[[], None]


class DeferredData:
    """Published data plus the waiters that consume it.

    A waiter is pending for exactly as long as it sits in the pending list;
    firing removes it, and nothing else marks it done.
    """

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}
        self._waiters: list[Waiter] = []

    def publish(self, key: str, value: Any) -> None:
        """Mark key as available with value; re-publishing overwrites."""
        self._data[key] = value

    def is_ready(self, key: str) -> bool:
        return key == ALWAYS or key in self._data

    def get(self, key: str, default: Any = _MISSING) -> Any:
        """Return a published value.

        Raises:
            KeyError: If the key was never published and no default is given.
        """
        if key in self._data:
            return self._data[key]
        if default is _MISSING:
            raise KeyError(key)
        return default

    def when_ready(self, keys: list[str] | tuple[str, ...], callback: Callable[[], None]) -> Waiter:
        """Register callback to run once every key is published.

        An empty key list, or one holding only ``ALWAYS``, makes the callback
        eligible at the next resolution.
        """
        waiter = Waiter(keys=tuple(keys), callback=callback)
        self._waiters.append(waiter)
        return waiter

    def _ready(self, waiter: Waiter) -> bool:
        return all(self.is_ready(key) for key in waiter.keys)

    def resolve_pending(self) -> int:
        """Fire every waiter whose keys are all available, in registration order.

        Passes repeat until one fires nothing, so waiters registered by a
        callback are considered in the same resolution. A callback error
        propagates and stops resolution.

        Returns:
            The number of waiters fired.
        """
        fired = 0
        progress = True
        while progress:
            progress = False
            for waiter in list(self._waiters):
                if waiter not in self._waiters or not self._ready(waiter):
                    continue
                self._waiters.remove(waiter)
                waiter.callback()
                fired += 1
                progress = True
        return fired

    @property
    def waiting(self) -> int:
        """Number of waiters that have not fired."""
        return len(self._waiters)

    def pending_keys(self) -> list[str]:
        """Keys that pending waiters need but that were never published."""
        pending: list[str] = []
        for waiter in self._waiters:
            for key in waiter.keys:
                if not self.is_ready(key) and key not in pending:
                    pending.append(key)
        return pending

    def clear(self) -> None:
        self._data.clear()
        self._waiters.clear()
