"""Message layout shared by the controller clients: actor, sensor and pulse ids."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import IntEnum

ACTOR_COUNT = 12
SENSOR_COUNT = 12
BLINK_COUNT = 3
CLIENT_COUNT = 5

SERIAL_DISCONNECTED = 0
SERIAL_CONNECTED = 1


class Actor(IntEnum):
    """Index of an actor flag in a message."""

    MOTOR_RIGHT = 0
    MOTOR_LEFT = 1
    MOTOR_SLOW = 2
    MOTOR_STOP = 3
    LAMP_RED = 4
    LAMP_YELLOW = 5
    LAMP_GREEN = 6
    SWITCH = 7
    LED_START = 8
    LED_RESET = 9
    LED_Q1 = 10
    LED_Q2 = 11


class Sensor(IntEnum):
    """Index of a sensor or button flag in a message."""

    LB_START = 0
    LB_HEIGHT = 1
    HEIGHT_OK = 2
    LB_SWITCH = 3
    METAL = 4
    SWITCH_OPEN = 5
    LB_RAMP = 6
    LB_END = 7
    BTN_START = 8
    BTN_STOP = 9
    BTN_RESET = 10
    BTN_EMERGENCY = 11


class Blink(IntEnum):
    """Index of a blinking lamp flag."""

    RED = 0
    YELLOW = 1
    GREEN = 2


class PulseType(IntEnum):
    """Kind of pulse that produced a message."""

    NONE = -1
    AL_TIMER = 0
    TIK_TIMER = 1
    SERIAL = 2
    GPIO_ISR = 3
    ADC_ISR = 4


class ClientId(IntEnum):
    """Identity of a message sender or receiver."""

    EMPTY = -1
    HARDWARE = 0
    MAIN = 1
    ACTIVITY_LIGHT = 2
    TIMER = 3
    PULSE_RECEIVER = 4
    ISR_ADC = 6
    ISR_GPIO = 7
    ISR_TIMER = 8


class PulseCode(IntEnum):
    """Code carried by a raw pulse."""

    ISR = 0
    TIMER_AL = 1
    TIMER_TIK = 2
    SERIAL = 3


class IsrSource(IntEnum):
    """Value carried by an interrupt pulse, naming its source."""

    GPIO = 4
    ADC = 5


@dataclass
class Message:
    """A message passed between the controller clients."""

    sender_id: int = ClientId.EMPTY
    receiver_id: int = ClientId.EMPTY
    actor_status: list[bool] = field(default_factory=lambda: [False] * ACTOR_COUNT)
    blink: list[bool] = field(default_factory=lambda: [False] * BLINK_COUNT)
    sensor_data: list[bool] = field(default_factory=lambda: [False] * SENSOR_COUNT)
    adc_enable: bool = False
    height_sensor: int = 0
    pulse_type: int = PulseType.NONE

    def copy(self) -> Message:
        """Return an independent copy of this message."""
        return replace(
            self,
            actor_status=list(self.actor_status),
            blink=list(self.blink),
            sensor_data=list(self.sensor_data),
        )