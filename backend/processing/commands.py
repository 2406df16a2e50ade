from enum import Enum


class Command(str, Enum):
    LIGHT_ON = "light_on"
    LIGHT_OFF = "light_off"
    FAN_ON = "fan_on"
    FAN_OFF = "fan_off"
    EMERGENCY = "emergency"

    @property
    def label(self) -> str:
        return COMMAND_LABELS[self]


COMMAND_LABELS = {
    Command.LIGHT_ON: "Light ON",
    Command.LIGHT_OFF: "Light OFF",
    Command.FAN_ON: "Fan ON",
    Command.FAN_OFF: "Fan OFF",
    Command.EMERGENCY: "Emergency Alert",
}

# Sequence length -> command. Any other length is ignored.
COMMAND_TABLE = {
    1: Command.LIGHT_ON,
    2: Command.LIGHT_OFF,
    3: Command.FAN_ON,
    4: Command.FAN_OFF,
    5: Command.EMERGENCY,
}


def dispatch(count: int) -> Command | None:
    """Map a completed sequence length to its command, or None if unmapped."""
    return COMMAND_TABLE.get(count)
