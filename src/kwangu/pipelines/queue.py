import asyncio
import time
from collections import deque
from typing import Any, Awaitable, Callable, Iterable, List


class RateLimitedQueue:
    """
    Runs coroutines with at most `concurrency` in flight and at most
    `interval_cap` starts in any rolling `interval` seconds.
    """

    def __init__(self, concurrency: int = 3, interval: float = 1.0, interval_cap: int = 3):
        if concurrency < 1 or interval_cap < 1:
            raise ValueError("concurrency and interval_cap must be >= 1")
        self.concurrency = concurrency
        self.interval = interval
        self.interval_cap = interval_cap
        self._slots = asyncio.Semaphore(concurrency)
        self._window_lock = asyncio.Lock()
        self._starts: deque = deque()

    async def _wait_for_window(self) -> None:
        async with self._window_lock:
            while True:
                now = time.monotonic()
                while self._starts and now - self._starts[0] >= self.interval:
                    self._starts.popleft()
                if len(self._starts) < self.interval_cap:
                    self._starts.append(now)
                    return
                await asyncio.sleep(self.interval - (now - self._starts[0]))

    async def run(self, fn: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        async with self._slots:
            await self._wait_for_window()
            return await fn(*args)

    async def map(self, fn: Callable[[Any], Awaitable[Any]], items: Iterable[Any]) -> List[Any]:
        return await asyncio.gather(*(self.run(fn, item) for item in items))
