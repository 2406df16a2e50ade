"""Emergency confirmation state machine.

Pure transitions only: transition(state, event) returns the next state and
never touches timers or the network. The workflow in processing/emergency.py
reacts to the phase changes. An event that does not apply in the current
phase returns the very same state object.
"""

import re
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum


class Phase(str, Enum):
    IDLE = "IDLE"
    COUNTING = "COUNTING"
    PAUSED = "PAUSED"
    SENDING = "SENDING"
    RESOLVED = "RESOLVED"


ADDRESS_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

INVALID_ADDRESS = "Please enter a valid email address"


def is_plausible_address(address: str) -> bool:
    return bool(ADDRESS_PATTERN.match(address.strip()))


@dataclass(frozen=True)
class EmergencyState:
    phase: Phase = Phase.IDLE
    remaining_seconds: int = 0
    destination: str = ""
    sent: bool = False
    activation: int = 0
    triggered_at: datetime | None = None
    # Phase a failed send returns to (COUNTING or PAUSED)
    resume_phase: Phase | None = None
    error: str | None = None


# --- Events ---

@dataclass(frozen=True)
class Trigger:
    destination: str
    triggered_at: datetime
    countdown_seconds: int


@dataclass(frozen=True)
class Tick:
    pass


@dataclass(frozen=True)
class Pause:
    pass


@dataclass(frozen=True)
class Resume:
    pass


@dataclass(frozen=True)
class EditDestination:
    destination: str


@dataclass(frozen=True)
class SendNow:
    pass


@dataclass(frozen=True)
class SendSucceeded:
    pass


@dataclass(frozen=True)
class SendFailed:
    reason: str


@dataclass(frozen=True)
class Dismiss:
    pass


Event = Trigger | Tick | Pause | Resume | EditDestination | SendNow | SendSucceeded | SendFailed | Dismiss


LIVE_PHASES = (Phase.COUNTING, Phase.PAUSED)


def _begin_send(state: EmergencyState) -> EmergencyState:
    """Validate and move to SENDING, or stay put with the validation error."""
    if not is_plausible_address(state.destination):
        return replace(state, error=INVALID_ADDRESS)
    return replace(
        state,
        phase=Phase.SENDING,
        destination=state.destination.strip(),
        resume_phase=state.phase,
        error=None,
    )


def transition(state: EmergencyState, event: Event) -> EmergencyState:
    if isinstance(event, Trigger):
        if state.phase not in (Phase.IDLE, Phase.RESOLVED):
            return state
        state = EmergencyState(
            phase=Phase.COUNTING,
            remaining_seconds=max(event.countdown_seconds, 0),
            destination=event.destination,
            activation=state.activation + 1,
            triggered_at=event.triggered_at,
        )
        # A zero-length countdown escalates straight away
        if state.remaining_seconds == 0:
            return _begin_send(state)
        return state

    if isinstance(event, Tick):
        if state.phase != Phase.COUNTING or state.remaining_seconds <= 0:
            return state
        state = replace(state, remaining_seconds=state.remaining_seconds - 1)
        if state.remaining_seconds == 0:
            return _begin_send(state)
        return state

    if isinstance(event, Pause):
        if state.phase != Phase.COUNTING:
            return state
        return replace(state, phase=Phase.PAUSED)

    if isinstance(event, Resume):
        if state.phase != Phase.PAUSED:
            return state
        state = replace(state, phase=Phase.COUNTING, error=None)
        if state.remaining_seconds == 0:
            return _begin_send(state)
        return state

    if isinstance(event, EditDestination):
        if state.phase not in LIVE_PHASES:
            return state
        return replace(state, phase=Phase.PAUSED, destination=event.destination, error=None)

    if isinstance(event, SendNow):
        if state.phase not in LIVE_PHASES:
            return state
        return _begin_send(state)

    if isinstance(event, SendSucceeded):
        if state.phase != Phase.SENDING:
            return state
        return replace(state, phase=Phase.RESOLVED, sent=True, resume_phase=None, error=None)

    if isinstance(event, SendFailed):
        if state.phase != Phase.SENDING:
            return state
        return replace(state, phase=state.resume_phase or Phase.PAUSED, resume_phase=None, error=event.reason)

    if isinstance(event, Dismiss):
        if state.phase in (Phase.IDLE, Phase.SENDING):
            return state
        return EmergencyState(activation=state.activation)

    raise TypeError(f"Unknown emergency event: {event!r}")
