import asyncio
import heapq
import itertools

import pytest

from processing.notifier import SendResult


class ManualTimer:
    def __init__(self, due_ms, callback, args):
        self.due_ms = due_ms
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Virtual-time scheduler. Time only moves when advance() is called."""

    def __init__(self):
        self.now_ms = 0
        self._queue = []
        self._seq = itertools.count()

    def now(self):
        return self.now_ms / 1000

    def call_later(self, delay, callback, *args):
        timer = ManualTimer(self.now_ms + round(delay * 1000), callback, args)
        heapq.heappush(self._queue, (timer.due_ms, next(self._seq), timer))
        return timer

    def spawn(self, coro):
        return asyncio.get_running_loop().create_task(coro)

    def advance(self, ms):
        target = self.now_ms + ms
        while self._queue and self._queue[0][0] <= target:
            due_ms, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self.now_ms = due_ms
            timer.callback(*timer.args)
        self.now_ms = target

    def advance_to(self, ms):
        self.advance(ms - self.now_ms)

    @property
    def pending(self):
        return [timer for _, _, timer in self._queue if not timer.cancelled]


class FakeSender:
    """Records calls. With a fixed result it answers at once, otherwise the
    test resolves each call through `pending` futures."""

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []
        self.pending = []

    async def send(self, destination, payload):
        self.calls.append((destination, payload))
        if self.error is not None:
            raise self.error
        if self.result is not None:
            return self.result
        future = asyncio.get_running_loop().create_future()
        self.pending.append(future)
        return await future


async def drain():
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def ok_sender():
    return FakeSender(result=SendResult.success())
