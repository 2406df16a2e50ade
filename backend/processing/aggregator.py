import logging
from typing import Callable

from config import SEQUENCE_GAP_MS
from processing.scheduler import RearmableTimer, Scheduler
from state.session import SequenceState

logger = logging.getLogger("uvicorn.error")


class SequenceAggregator:
    """Groups blinks into sequences separated by a silence of at least gap_ms.

    The completion timeout is rearmed on every blink, so a slow but steady
    sequence is never cut short.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        on_complete: Callable[[int], None],
        gap_ms: int = SEQUENCE_GAP_MS,
    ):
        self.state = SequenceState()
        self.gap_ms = gap_ms
        self._scheduler = scheduler
        self._on_complete = on_complete
        self._timer = RearmableTimer(scheduler, self._complete, name="sequence")

    @property
    def pending(self) -> bool:
        return self._timer.armed

    def on_blink(self):
        self.state.count += 1
        self.state.last_event_time = self._scheduler.now()
        self._timer.arm(self.gap_ms / 1000)

    def reset(self):
        """Drop the sequence in progress without emitting a completion."""
        self._timer.cancel()
        if self.state.count:
            logger.info(f"[Sequence] discarded {self.state.count} pending blink(s)")
        self.state.reset()

    def on_source_stopped(self):
        self.reset()

    def _complete(self):
        count = self.state.count
        self.state.reset()
        if count == 0:
            logger.warning("[Sequence] timeout fired with no blinks, ignoring")
            return
        logger.info(f"[Sequence] completed: {count} blink(s)")
        self._on_complete(count)
