from __future__ import annotations

import asyncio

from .errors import RunCancelledError


class CancellationToken:
    """Cooperative cancellation signal shared by everything in one run.

    Cancelling never interrupts anyone; waiters observe the signal and return.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        """Suspend until the token is cancelled."""
        await self._event.wait()

    async def sleep(self, seconds: float) -> bool:
        """Sleep for ``seconds``; return False if cancelled before it elapsed."""
        if self.cancelled:
            return False
        if seconds <= 0:
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return True
        return False

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise RunCancelledError("run was cancelled")
