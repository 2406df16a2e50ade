import logging
from typing import Callable

from processing.aggregator import SequenceAggregator
from processing.commands import Command, dispatch
from processing.emergency import EmergencyWorkflow
from processing.notifier import NotificationSender
from processing.scheduler import Scheduler
from schemas.messages import (
    ClientMessage, ControlStateResponse, EmergencyView, SequenceResponse,
    HistoryEntry, HistoryResponse,
)
from state.emergency import EmergencyState
from state.session import ApplianceState

logger = logging.getLogger("uvicorn.error")


class BlinkController:
    """One control session: blink stream in, appliance/emergency state out.

    Outbound messages are handed to `publish` as JSON-serializable dicts.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        sender: NotificationSender,
        publish: Callable[[dict], None] | None = None,
        prefill_destination: str | None = None,
        gap_ms: int | None = None,
        countdown_seconds: int | None = None,
    ):
        self.appliances = ApplianceState()
        self.camera_active = False
        self.prefill_destination = prefill_destination or ""
        self._publish = publish or (lambda message: None)

        aggregator_kwargs = {} if gap_ms is None else {"gap_ms": gap_ms}
        self.aggregator = SequenceAggregator(scheduler, self._on_sequence_completed, **aggregator_kwargs)

        workflow_kwargs = {} if countdown_seconds is None else {"countdown_seconds": countdown_seconds}
        self.emergency = EmergencyWorkflow(
            scheduler, sender, on_change=self._on_emergency_change, **workflow_kwargs
        )

    # --- Blink source ---

    def start_camera(self):
        self.camera_active = True
        logger.info("[Controller] blink source started")
        self.publish_state()

    def stop_camera(self):
        self.camera_active = False
        self.aggregator.on_source_stopped()
        logger.info("[Controller] blink source stopped")
        self.publish_state()

    def blink(self):
        if not self.camera_active:
            logger.debug("[Controller] blink ignored, source stopped")
            return
        self.appliances.record_blink()
        self.aggregator.on_blink()
        self.publish_state()

    def reset(self):
        self.aggregator.reset()
        self.appliances.reset_count()
        self.publish_state()

    # --- Client protocol ---

    def handle(self, message: ClientMessage):
        kind = message.type
        if kind == "blink":
            self.blink()
        elif kind == "camera_start":
            self.start_camera()
        elif kind == "camera_stop":
            self.stop_camera()
        elif kind == "reset":
            self.reset()
        elif kind == "pause":
            self.emergency.pause()
        elif kind == "resume":
            self.emergency.resume()
        elif kind == "set_destination":
            self.emergency.edit_destination(message.destination or "")
        elif kind == "send_now":
            self.emergency.send_now()
        elif kind == "dismiss":
            self.emergency.dismiss()
        elif kind == "get_history":
            self._publish(self.history().model_dump(mode="json"))

    def close(self):
        self.aggregator.reset()
        self.emergency.close()

    # --- Views ---

    def snapshot(self) -> ControlStateResponse:
        em = self.emergency.state
        return ControlStateResponse(
            camera_active=self.camera_active,
            light_on=self.appliances.light_on,
            fan_on=self.appliances.fan_on,
            blink_total=self.appliances.blink_total,
            sequence_count=self.aggregator.state.count,
            last_blink_at=self.appliances.last_blink_at,
            emergency=EmergencyView(
                phase=em.phase.value,
                remaining_seconds=em.remaining_seconds,
                destination=em.destination,
                sent=em.sent,
                activation=em.activation,
                triggered_at=em.triggered_at,
                error=em.error,
            ),
        )

    def history(self) -> HistoryResponse:
        return HistoryResponse(events=[
            HistoryEntry(command=event.command.value, label=event.command.label, timestamp=event.timestamp)
            for event in self.appliances.history
        ])

    def publish_state(self):
        self._publish(self.snapshot().model_dump(mode="json"))

    # --- Callbacks ---

    def _on_sequence_completed(self, count: int):
        command = dispatch(count)
        self._publish(SequenceResponse(
            count=count,
            command=command.value if command else None,
            label=command.label if command else None,
        ).model_dump(mode="json"))

        if command is None:
            logger.info(f"[Controller] no command for {count} blink(s)")
            self.publish_state()
            return

        logger.info(f"[Controller] {count} blink(s) -> {command.label}")
        if command == Command.EMERGENCY:
            activation = self.emergency.state.activation
            self.emergency.trigger(self.prefill_destination)
            if self.emergency.state.activation == activation:
                logger.info(f"[Controller] emergency already {self.emergency.phase.value}, not logged")
                self.publish_state()
                return
        self.appliances.apply(command)
        self.publish_state()

    def _on_emergency_change(self, state: EmergencyState):
        self.publish_state()
