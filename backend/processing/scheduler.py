import asyncio
import logging
from typing import Any, Callable, Coroutine, Protocol

logger = logging.getLogger("uvicorn.error")


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Timer source used by the blink core. Delays and times are in seconds."""

    def now(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> Cancellable: ...

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task: ...


class AsyncioScheduler:
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop or asyncio.get_running_loop()

    def now(self) -> float:
        return self._loop.time()

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> asyncio.TimerHandle:
        return self._loop.call_later(delay, callback, *args)

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        return self._loop.create_task(coro)


class RearmableTimer:
    """Single-shot timer keyed by a generation counter.

    Every arm() or cancel() bumps the generation, and a callback only runs if
    it carries the current one. A timeout that was already queued on the loop
    when it got cancelled therefore cannot touch state afterwards.
    """

    def __init__(self, scheduler: Scheduler, callback: Callable[[], None], name: str = "timer"):
        self._scheduler = scheduler
        self._callback = callback
        self._name = name
        self._generation = 0
        self._handle: Cancellable | None = None

    @property
    def armed(self) -> bool:
        return self._handle is not None

    @property
    def generation(self) -> int:
        return self._generation

    def arm(self, delay: float):
        self.cancel()
        self._handle = self._scheduler.call_later(delay, self._fire, self._generation)

    def cancel(self):
        self._generation += 1
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, generation: int):
        if generation != self._generation:
            logger.debug(f"[{self._name}] dropped stale firing (gen {generation}, current {self._generation})")
            return
        self._handle = None
        self._generation += 1
        self._callback()
