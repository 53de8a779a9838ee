from typing import Callable, Dict, Iterable, Set

from uxform.exceptions import report_error

Listener = Callable[[], None]


class CallbackRegistry:
    """
    Per-field sets of zero-argument listeners.

    Adding or removing the same listener twice is harmless. A listener removed
    while a notification is in progress is not called for that notification.
    """

    def __init__(self, names: Iterable[str]):
        self._callbacks: Dict[str, Set[Listener]] = {name: set() for name in names}

    def add(self, name: str, callback: Listener) -> None:
        self._callbacks[name].add(callback)

    def discard(self, name: str, callback: Listener) -> None:
        self._callbacks[name].discard(callback)

    def count(self, name: str) -> int:
        return len(self._callbacks[name])

    def notify(self, name: str) -> None:
        callbacks = self._callbacks[name]

        for callback in list(callbacks):
            if callback not in callbacks:
                continue
            try:
                callback()
            except Exception as e:
                report_error(e, f"Error in listener of field '{name}'")
