from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone

from config import HISTORY_LIMIT
from processing.commands import Command


@dataclass
class SequenceState:
    """Blinks counted towards the sequence currently in progress.

    The pending completion timeout lives in the aggregator's RearmableTimer.
    """
    count: int = 0
    last_event_time: float | None = None

    def reset(self):
        self.count = 0
        self.last_event_time = None


@dataclass
class HistoryEvent:
    command: Command
    timestamp: datetime


@dataclass
class ApplianceState:
    light_on: bool = False
    fan_on: bool = False

    # Lifetime blink counter shown on the dashboard
    blink_total: int = 0
    last_blink_at: datetime | None = None

    history: deque = field(default_factory=lambda: deque(maxlen=HISTORY_LIMIT))

    def record_blink(self, at: datetime | None = None):
        self.blink_total += 1
        self.last_blink_at = at or datetime.now(timezone.utc)

    def apply(self, command: Command, at: datetime | None = None):
        if command == Command.LIGHT_ON:
            self.light_on = True
        elif command == Command.LIGHT_OFF:
            self.light_on = False
        elif command == Command.FAN_ON:
            self.fan_on = True
        elif command == Command.FAN_OFF:
            self.fan_on = False
        self.history.append(HistoryEvent(command=command, timestamp=at or datetime.now(timezone.utc)))

    def reset_count(self):
        self.blink_total = 0
