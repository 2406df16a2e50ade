import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable

from config import COUNTDOWN_SECONDS, TICK_INTERVAL_MS
from processing.notifier import NotificationSender, SendResult, build_alert_payload
from processing.scheduler import RearmableTimer, Scheduler
from state.emergency import (
    EmergencyState, Phase, transition,
    Trigger, Tick, Pause, Resume, EditDestination, SendNow, SendSucceeded, SendFailed, Dismiss,
)

logger = logging.getLogger("uvicorn.error")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EmergencyWorkflow:
    """Drives the emergency state machine: countdown tick, auto-send, manual actions.

    All decisions are made by state.emergency.transition; this class only
    arms/cancels the tick and runs the send coroutine when the phase changes.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        sender: NotificationSender,
        on_change: Callable[[EmergencyState], None] | None = None,
        countdown_seconds: int = COUNTDOWN_SECONDS,
        tick_interval_ms: int = TICK_INTERVAL_MS,
        wall_clock: Callable[[], datetime] = _utcnow,
    ):
        self.state = EmergencyState()
        self.countdown_seconds = countdown_seconds
        self.tick_interval_ms = tick_interval_ms
        self._scheduler = scheduler
        self._sender = sender
        self._on_change = on_change
        self._wall_clock = wall_clock
        self._tick = RearmableTimer(scheduler, self._on_tick, name="countdown")
        self._send_task: asyncio.Task | None = None

    @property
    def phase(self) -> Phase:
        return self.state.phase

    @property
    def send_in_flight(self) -> bool:
        return self._send_task is not None and not self._send_task.done()

    # --- User / dispatcher actions ---

    def trigger(self, destination: str | None = None):
        self._apply(Trigger(
            destination=destination or "",
            triggered_at=self._wall_clock(),
            countdown_seconds=self.countdown_seconds,
        ))

    def pause(self):
        self._apply(Pause())

    def resume(self):
        self._apply(Resume())

    def edit_destination(self, destination: str):
        self._apply(EditDestination(destination=destination))

    def send_now(self):
        self._apply(SendNow())

    def dismiss(self):
        self._apply(Dismiss())

    def close(self):
        self._tick.cancel()
        if self.send_in_flight:
            self._send_task.cancel()
        self._send_task = None

    # --- Internals ---

    def _apply(self, event):
        previous = self.state
        self.state = transition(previous, event)
        if self.state is previous:
            logger.debug(f"[Emergency] {type(event).__name__} ignored in {previous.phase.value}")
            return

        if previous.phase != self.state.phase:
            logger.info(
                f"[Emergency] #{self.state.activation} {previous.phase.value} -> {self.state.phase.value} "
                f"({type(event).__name__}, remaining={self.state.remaining_seconds})"
            )
        if self.state.error and self.state.error != previous.error:
            logger.warning(f"[Emergency] #{self.state.activation} {self.state.error}")

        self._sync_tick(previous, event)

        if self.state.phase == Phase.SENDING and previous.phase != Phase.SENDING:
            self._start_send()

        if self._on_change is not None:
            self._on_change(self.state)

    def _sync_tick(self, previous: EmergencyState, event):
        counting = self.state.phase == Phase.COUNTING and self.state.remaining_seconds > 0
        if not counting:
            self._tick.cancel()
        elif previous.phase != Phase.COUNTING or isinstance(event, Tick):
            self._tick.arm(self.tick_interval_ms / 1000)

    def _on_tick(self):
        self._apply(Tick())

    def _start_send(self):
        activation = self.state.activation
        destination = self.state.destination
        payload = build_alert_payload(self.state.triggered_at or self._wall_clock())
        self._send_task = self._scheduler.spawn(self._send(activation, destination, payload))

    async def _send(self, activation: int, destination: str, payload):
        logger.info(f"[Emergency] #{activation} sending alert to {destination}")
        try:
            result = await self._sender.send(destination, payload)
        except Exception as e:
            logger.exception(f"[Emergency] #{activation} sender raised")
            result = SendResult.failure(str(e) or type(e).__name__)

        if self.state.activation != activation or self.state.phase != Phase.SENDING:
            logger.warning(f"[Emergency] #{activation} send result arrived after the activation ended")
            return

        if result.ok:
            self._apply(SendSucceeded())
        else:
            self._apply(SendFailed(reason=result.reason or "Failed to send alert"))
