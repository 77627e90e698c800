"""Belt devices (motor, lamps, LEDs, switch, sensors) driven through GPIO bits."""

from __future__ import annotations

from enum import Enum
from typing import Protocol

SENSOR_PORT = 0
ACTOR_PORT = 1
LED_PORT = 2


class _Hal(Protocol):
    def write_bit(self, port: int, bit: int) -> None: ...

    def clear_bit(self, port: int, bit: int) -> None: ...

    def get_pin_value(self, bit: int) -> int: ...


class Pin(Enum):
    """A GPIO line: the port it is on and its bit number."""

    LB_ENTRY = (0, 2)
    LB_IN_HEIGHT = (0, 3)
    HEIGHT_OK = (0, 4)
    SWITCH_IN = (0, 5)
    METAL = (0, 7)
    SWITCH_OPEN = (0, 14)
    LB_RAMP = (0, 15)
    LB_OUT = (0, 20)
    BTN_START = (0, 22)
    BTN_STOP = (0, 23)
    BTN_RESET = (0, 26)
    BTN_E_STOP = (0, 27)

    MOTOR_RIGHT = (1, 12)
    MOTOR_LEFT = (1, 13)
    MOTOR_SLOW = (1, 14)
    MOTOR_STOP = (1, 15)
    LAMP_RED = (1, 16)
    LAMP_YELLOW = (1, 17)
    LAMP_GREEN = (1, 18)
    SWITCH = (1, 19)

    LED_START = (2, 2)
    LED_RESET = (2, 3)
    LED_Q1 = (2, 4)
    LED_Q2 = (2, 5)

    def __init__(self, port: int, bit: int) -> None:
        self.port = port
        self.bit = bit

    @property
    def mask(self) -> int:
        """The pin as a bit mask within its port."""
        return 1 << self.bit


def _write(hal: _Hal, pin: Pin, on: bool) -> None:
    if on:
        hal.write_bit(pin.port, pin.bit)
    else:
        hal.clear_bit(pin.port, pin.bit)


class Motor:
    """The belt motor; it is reset to stopped when created."""

    def __init__(self, hal: _Hal) -> None:
        self._hal = hal
        self.reset()

    def set_left(self) -> None:
        _write(self._hal, Pin.MOTOR_RIGHT, False)
        _write(self._hal, Pin.MOTOR_LEFT, True)

    def set_right(self) -> None:
        _write(self._hal, Pin.MOTOR_LEFT, False)
        _write(self._hal, Pin.MOTOR_RIGHT, True)

    def set_slow(self) -> None:
        _write(self._hal, Pin.MOTOR_SLOW, True)

    def reset_slow(self) -> None:
        _write(self._hal, Pin.MOTOR_SLOW, False)

    def start(self) -> None:
        _write(self._hal, Pin.MOTOR_STOP, False)

    def hold(self) -> None:
        """Keep the stop state but clear the direction."""
        _write(self._hal, Pin.MOTOR_LEFT, False)
        _write(self._hal, Pin.MOTOR_RIGHT, False)

    def stop(self) -> None:
        _write(self._hal, Pin.MOTOR_STOP, True)

    def reset(self) -> None:
        """Stop and clear direction and slow mode."""
        _write(self._hal, Pin.MOTOR_STOP, True)
        _write(self._hal, Pin.MOTOR_LEFT, False)
        _write(self._hal, Pin.MOTOR_RIGHT, False)
        _write(self._hal, Pin.MOTOR_SLOW, False)


class ActivityLight:
    """The red, yellow and green signal lamps."""

    def __init__(self, hal: _Hal) -> None:
        self._hal = hal

    def set_green(self, on: bool) -> None:
        _write(self._hal, Pin.LAMP_GREEN, on)

    def set_yellow(self, on: bool) -> None:
        _write(self._hal, Pin.LAMP_YELLOW, on)

    def set_red(self, on: bool) -> None:
        _write(self._hal, Pin.LAMP_RED, on)


class Led:
    """A push-button or signal LED on the LED port."""

    def __init__(self, hal: _Hal, pin: Pin) -> None:
        if pin.port != LED_PORT:
            raise ValueError(f"{pin.name} is not an LED pin")
        self._hal = hal
        self.pin = pin

    def on(self) -> None:
        _write(self._hal, self.pin, True)

    def off(self) -> None:
        _write(self._hal, self.pin, False)


class Switch:
    """The gate that lets workpieces pass to the end of the belt."""

    def __init__(self, hal: _Hal) -> None:
        self._hal = hal

    def open(self) -> None:
        _write(self._hal, Pin.SWITCH, True)

    def close(self) -> None:
        _write(self._hal, Pin.SWITCH, False)


class SensorBool:
    """A digital sensor or button on the sensor port, read from the last sample."""

    def __init__(self, hal: _Hal, pin: Pin) -> None:
        if pin.port != SENSOR_PORT:
            raise ValueError(f"{pin.name} is not a sensor pin")
        self._hal = hal
        self.pin = pin

    def is_true(self) -> bool:
        """Whether the pin was high in the last sample."""
        return bool(self._hal.get_pin_value(self.pin.bit))