import asyncio
import unittest

from uxform.utils.async_task import AsyncTask


class TestScheduledTask(unittest.IsolatedAsyncioTestCase):
    async def test_fires_once(self):
        calls = []
        task = AsyncTask.run_later(5, lambda: calls.append(1))
        self.assertTrue(task.pending)

        await asyncio.sleep(0.03)

        self.assertEqual(calls, [1])
        self.assertFalse(task.pending)
        self.assertFalse(task.cancel())

    async def test_cancel_is_idempotent(self):
        calls = []
        task = AsyncTask.run_later(5, lambda: calls.append(1))

        self.assertTrue(task.cancel())
        self.assertFalse(task.cancel())
        await asyncio.sleep(0.03)

        self.assertEqual(calls, [])
        self.assertEqual(task.state, task.CANCELLED)

    async def test_gather_preserves_order(self):
        loop = asyncio.get_running_loop()
        first, second = loop.create_future(), loop.create_future()

        joined = asyncio.ensure_future(AsyncTask.gather([first, "immediate", second, None]))
        second.set_result("b")
        first.set_result("a")

        self.assertEqual(await joined, ["a", "immediate", "b", None])


class TestEnsure(unittest.TestCase):
    def test_needs_running_loop(self):
        async def validate():
            return None

        with self.assertRaises(RuntimeError):
            AsyncTask.ensure(validate())
