"""Tests for the CancellationToken class."""

import asyncio
import time
import unittest

from adaptive_crawler.cancellation import CancellationToken
from adaptive_crawler.errors import RunCancelledError


class TestCancellationToken(unittest.IsolatedAsyncioTestCase):
    """Verify cooperative cancellation."""

    async def test_sleep_completes_when_not_cancelled(self):
        token = CancellationToken()
        self.assertTrue(await token.sleep(0.01))

    async def test_sleep_returns_early_on_cancel(self):
        token = CancellationToken()

        async def cancel_soon():
            await asyncio.sleep(0.05)
            token.cancel()

        start = time.monotonic()
        completed, _ = await asyncio.gather(token.sleep(5), cancel_soon())
        self.assertFalse(completed)
        self.assertLess(time.monotonic() - start, 1.0)

    async def test_sleep_after_cancel_returns_immediately(self):
        token = CancellationToken()
        token.cancel()
        self.assertFalse(await token.sleep(5))

    async def test_wait_returns_once_cancelled(self):
        token = CancellationToken()
        waiter = asyncio.ensure_future(token.wait())
        await asyncio.sleep(0)
        self.assertFalse(waiter.done())
        token.cancel()
        await asyncio.wait_for(waiter, timeout=1)
        self.assertTrue(token.cancelled)

    def test_raise_if_cancelled(self):
        token = CancellationToken()
        token.raise_if_cancelled()
        token.cancel()
        with self.assertRaises(RunCancelledError):
            token.raise_if_cancelled()


if __name__ == "__main__":
    unittest.main()
