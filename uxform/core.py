from typing import Any, Callable, Tuple

from uxform.exceptions import report_error


class Signal:
    """
    Observable value holder.

    Subscribers are called with ``(old_value, new_value)`` after every write that
    changes the value. Writes of an equal value are ignored.
    """
    __slots__ = ('_subscribers', '_value', '__weakref__')

    def __init__(self, initial_value: Any):
        self._subscribers = set()
        self._value = initial_value

    def __call__(self) -> Any:
        return self._value

    # Alias get to __call__
    get = __call__

    def peek(self) -> Any:
        return self._value

    def set(self, new_value: Any) -> None:
        if self._value == new_value:
            return

        old_value = self._value
        self._value = new_value

        subscribers_snapshot = list(self._subscribers)
        for subscriber in subscribers_snapshot:
            # Skip subscribers removed by an earlier subscriber in this round
            if subscriber not in self._subscribers:
                continue
            try:
                subscriber(old_value, new_value)
            except Exception as e:
                self._handle_error(e, f"Error notifying subscriber: {subscriber}")

    def subscribe(self, callback: Callable[[Any, Any], None]) -> Callable[[], None]:
        """Registers ``callback`` and returns an idempotent unsubscribe function."""
        self._subscribers.add(callback)

        def unsubscribe():
            self._subscribers.discard(callback)

        return unsubscribe

    def _handle_error(self, error, message):
        report_error(error, message)

def create_signal(initial_value: Any) -> Tuple[Signal, Callable[[Any], None]]:
    signal = Signal(initial_value)
    return signal, signal.set
