"""Observable state slices shared between the engine and the widgets.

A slice holds one value. Widgets subscribe and keep the returned handle;
calling ``unsubscribe()`` on it detaches the callback again.
"""

from typing import Any, Callable, Generic, List, TypeVar

T = TypeVar("T")


class Subscription:
    """Handle returned by :meth:`StateSlice.subscribe`."""

    def __init__(self, slice_: "StateSlice", callback: Callable[[Any], None]):
        self._slice = slice_
        self._callback = callback
        self.active = True

    def unsubscribe(self):
        if self.active:
            self._slice._remove(self._callback)
            self.active = False


class StateSlice(Generic[T]):
    """A value plus the callbacks interested in its changes."""

    def __init__(self, value: T):
        self._value = value
        self._callbacks: List[Callable[[T], None]] = []

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> bool:
        """Store a new value. Returns True if subscribers were notified."""
        if value == self._value:
            return False
        self._value = value
        for callback in list(self._callbacks):
            callback(value)
        return True

    def subscribe(self, callback: Callable[[T], None]) -> Subscription:
        self._callbacks.append(callback)
        return Subscription(self, callback)

    def _remove(self, callback: Callable[[T], None]):
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def __repr__(self) -> str:
        return f"StateSlice({self._value!r})"
