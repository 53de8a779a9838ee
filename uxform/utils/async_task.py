import asyncio
import inspect
from typing import Any, Awaitable, Callable, List, Optional


class ScheduledTask:
    """
    A callback scheduled to run once after a delay on the running event loop.

    Cancelling is idempotent: cancelling a task that already fired or was
    already cancelled does nothing.
    """

    PENDING = "pending"
    FIRED = "fired"
    CANCELLED = "cancelled"

    def __init__(self, delay_ms: float, callback: Callable[[], Any]):
        loop = asyncio.get_running_loop()
        self._callback = callback
        self.state = self.PENDING
        self._handle = loop.call_later(delay_ms / 1000, self._fire)  # Convert ms to seconds

    def _fire(self) -> None:
        if self.state != self.PENDING:
            return
        self.state = self.FIRED
        self._callback()

    @property
    def pending(self) -> bool:
        return self.state == self.PENDING

    def cancel(self) -> bool:
        """
        Cancel the task if it has not fired yet.

        Returns:
            True if the task was pending and is now cancelled, False otherwise
        """
        if self.state != self.PENDING:
            return False

        self.state = self.CANCELLED
        self._handle.cancel()
        return True


class AsyncTask:
    """
    Helpers for values that may be either immediate or deferred (awaitable).
    """

    @staticmethod
    def is_deferred(value: Any) -> bool:
        """Checks whether ``value`` is an awaitable that has to be waited on."""
        return inspect.isawaitable(value)

    @staticmethod
    def ensure(value: Awaitable) -> asyncio.Future:
        """
        Schedules a coroutine (or wraps any awaitable) as a future on the running loop.

        Raises:
            RuntimeError: If no event loop is running
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(value):
                value.close()
            raise RuntimeError("Async validation and submission need a running asyncio event loop.") from None
        return asyncio.ensure_future(value, loop=loop)

    @staticmethod
    def run_later(delay_ms: float, callback: Callable[[], Any]) -> ScheduledTask:
        """
        Run ``callback`` once after ``delay_ms`` milliseconds.

        Args:
            delay_ms: Delay in milliseconds
            callback: Zero-argument callable to invoke

        Returns:
            The ScheduledTask, which can be cancelled
        """
        return ScheduledTask(delay_ms, callback)

    @staticmethod
    async def gather(values: List[Any]) -> List[Any]:
        """
        Wait for every deferred entry of ``values`` and return the settled values.

        Immediate entries are kept as they are. The index of each value is preserved
        whatever order the deferred entries settle in.
        """
        results = list(values)
        deferred_indexes = [index for index, value in enumerate(values) if AsyncTask.is_deferred(value)]

        if deferred_indexes:
            settled = await asyncio.gather(*(values[index] for index in deferred_indexes))
            for index, value in zip(deferred_indexes, settled):
                results[index] = value

        return results

    @staticmethod
    def cancel_task(task: Optional[ScheduledTask]) -> bool:
        """
        Cancel a scheduled task if there is one.

        Returns:
            True if a task was given (whether or not it was still pending)
        """
        if task is None:
            return False

        task.cancel()
        return True

# Create a simpler alias
is_deferred = AsyncTask.is_deferred
