"""
Time source for the scheduler and executor

Tests swap SystemClock for a fake that advances virtual time instantly.
"""

import asyncio


class Clock:
    """Monotonic time + async sleep"""

    def monotonic(self) -> float:
        raise NotImplementedError

    async def sleep(self, seconds: float):
        raise NotImplementedError


class SystemClock(Clock):
    """Event loop clock"""

    def monotonic(self) -> float:
        return asyncio.get_running_loop().time()

    async def sleep(self, seconds: float):
        await asyncio.sleep(seconds)
