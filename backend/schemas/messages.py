from datetime import datetime
from typing import Literal

from pydantic import BaseModel


# --- Inbound (client -> server) ---

class ClientMessage(BaseModel):
    type: Literal[
        "blink",
        "camera_start",
        "camera_stop",
        "reset",
        "pause",
        "resume",
        "set_destination",
        "send_now",
        "dismiss",
        "get_history",
    ]
    destination: str | None = None


# --- Notification contract ---

class AlertPayload(BaseModel):
    triggered_at: datetime
    alert_kind: str
    system_name: str
    message: str


# --- Outbound (server -> client) ---

class EmergencyView(BaseModel):
    phase: str
    remaining_seconds: int
    destination: str
    sent: bool
    activation: int
    triggered_at: datetime | None = None
    error: str | None = None


class ControlStateResponse(BaseModel):
    type: str = "state"
    camera_active: bool
    light_on: bool
    fan_on: bool
    blink_total: int
    sequence_count: int
    last_blink_at: datetime | None = None
    emergency: EmergencyView


class SequenceResponse(BaseModel):
    type: str = "sequence_completed"
    count: int
    command: str | None = None
    label: str | None = None


class HistoryEntry(BaseModel):
    command: str
    label: str
    timestamp: datetime


class HistoryResponse(BaseModel):
    type: str = "history"
    events: list[HistoryEntry]


class ErrorResponse(BaseModel):
    type: str = "error"
    message: str
