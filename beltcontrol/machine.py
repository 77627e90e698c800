"""Common behaviour of the belt state machines: start, stop, reset and errors."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields
from enum import Enum, IntEnum, auto
from typing import Sequence

from .height import HeightMeasureStateMachine
from .messages import ACTOR_COUNT, BLINK_COUNT, SENSOR_COUNT, Actor, Blink, PulseType
from .puk import Puk

DEFAULT_FAST_STEP = 0.17331
DEFAULT_SLOW_STEP = 0.0719942
DEFAULT_HALF_PUK_LENGTH = 8.31889
DEFAULT_WORST_HEIGHT = 50.6066
DEFAULT_BEST_HEIGHT = 40.5546
DEFAULT_REACH_SWITCH = 61.5251
DEFAULT_REACH_RAMP = 88.9081
DEFAULT_LEAVE_RAMP = 93.0676
DEFAULT_NORM_QUOTIENT = 0.0525
DEFAULT_HEIGHT_NO_PUK_RAW = 3639

TIK_TOLERANCE = 5
PUK_HEIGHT_MICM = 28000


class MachineType(IntEnum):
    FIRST = 0
    SECOND = 1
    CALIBRATION = 2


class MachineState(Enum):
    INIT = auto()
    START = auto()
    RESET = auto()
    ERROR = auto()
    QUIT_ERROR = auto()


@dataclass
class OtherMachine:
    """What is known about the machine on the other belt."""

    belt_free: bool = False
    ramp_full: bool = False
    metal_expected: bool = True
    emergency: bool = False


@dataclass
class CalibrationData:
    """Belt geometry in percent of the belt length per tick or position."""

    fast_step: float = DEFAULT_FAST_STEP
    slow_step: float = DEFAULT_SLOW_STEP
    half_puk_length: float = DEFAULT_HALF_PUK_LENGTH
    reach_height_best: float = DEFAULT_BEST_HEIGHT
    reach_height_worst: float = DEFAULT_WORST_HEIGHT
    reach_switch: float = DEFAULT_REACH_SWITCH
    reach_ramp: float = DEFAULT_REACH_RAMP
    leave_ramp: float = DEFAULT_LEAVE_RAMP
    height_norm_quotient: float = DEFAULT_NORM_QUOTIENT
    height_no_puk_raw: int = DEFAULT_HEIGHT_NO_PUK_RAW

    def reset(self) -> None:
        """Restore the built-in defaults."""
        defaults = CalibrationData()
        for f in fields(self):
            setattr(self, f.name, getattr(defaults, f.name))


@dataclass
class SensorData:
    """Sensor and button levels, in the order of ``Sensor``."""

    lb_start: bool = False
    lb_height: bool = False
    height_ok: bool = False
    lb_switch: bool = False
    metal: bool = False
    switch_open: bool = False
    lb_ramp: bool = False
    lb_end: bool = False
    btn_start: bool = False
    btn_stop: bool = False
    btn_reset: bool = False
    btn_emergency: bool = False

    @classmethod
    def from_flags(cls, flags: Sequence[bool]) -> SensorData:
        """Build from a sequence indexed by ``Sensor``."""
        if len(flags) != SENSOR_COUNT:
            raise ValueError(f"expected {SENSOR_COUNT} sensor flags, got {len(flags)}")
        return cls(*(bool(flag) for flag in flags))


class StateMachine(ABC):
    """Base of the belt machines; subclasses supply the belt-specific steps."""

    def __init__(self, cal_data: CalibrationData) -> None:
        self.cal_data = cal_data
        self.actual_state = MachineState.INIT
        self.ramp_full = False
        self.belt_free = True
        self.metal_expected = True
        self.e_stop = False
        self.height = -1
        self.pulse_type = int(PulseType.NONE)
        self.adc_enable = False
        self.machine_complete = False
        self.other = OtherMachine(belt_free=False, ramp_full=False, metal_expected=True)
        self.sensors = SensorData()
        self.puk = Puk()
        self.height_machine = HeightMeasureStateMachine()
        self.actor_state = [False] * ACTOR_COUNT
        self.blink = [False] * BLINK_COUNT

    @property
    @abstractmethod
    def machine_type(self) -> MachineType:
        """Which kind of machine this is."""

    @abstractmethod
    def update_states(self) -> None:
        """Advance the belt-specific states from the current sensors."""

    @abstractmethod
    def run_states(self) -> None:
        """Set the actors for the belt-specific states."""

    @abstractmethod
    def make_tik_step(self) -> None:
        """Advance the machine by one timer tick."""

    def update_sensor_data(self, flags: Sequence[bool], height: int, pulse_type: int) -> None:
        self.sensors = SensorData.from_flags(flags)
        self.height = height
        self.pulse_type = pulse_type

    def set_other_belt_free(self, free: bool) -> None:
        self.other.belt_free = free

    def set_other_metal_expected(self, expected: bool) -> None:
        self.other.metal_expected = expected

    def set_other_ramp_full(self, full: bool) -> None:
        self.other.ramp_full = full

    def set_other_emergency(self, emergency: bool) -> None:
        self.other.emergency = emergency

    def _set_lamps(self, red: bool, yellow: bool, green: bool) -> None:
        self.actor_state[Actor.LAMP_RED] = red
        self.actor_state[Actor.LAMP_YELLOW] = yellow
        self.actor_state[Actor.LAMP_GREEN] = green

    def _set_blink(self, red: bool, yellow: bool, green: bool) -> None:
        self.blink[Blink.RED] = red
        self.blink[Blink.YELLOW] = yellow
        self.blink[Blink.GREEN] = green

    def _set_leds(self, start: bool, reset: bool, q1: bool, q2: bool) -> None:
        self.actor_state[Actor.LED_START] = start
        self.actor_state[Actor.LED_RESET] = reset
        self.actor_state[Actor.LED_Q1] = q1
        self.actor_state[Actor.LED_Q2] = q2

    def automaton_step(self) -> None:
        """Run one step of the start/stop/reset/error automaton."""
        s = self.sensors
        if s.btn_reset and self.e_stop:
            self.actual_state = MachineState.QUIT_ERROR
        elif s.btn_reset:
            self.actual_state = MachineState.RESET
        elif not s.btn_stop:
            self.actual_state = MachineState.INIT

        calibrating = self.machine_type == MachineType.CALIBRATION
        state = self.actual_state
        if state is MachineState.INIT:
            if s.btn_start:
                self.actual_state = MachineState.START
            self.actor_state[Actor.MOTOR_STOP] = True
            self._set_lamps(False, False, calibrating)
            self._set_blink(False, False, calibrating)
            self._set_leds(start=True, reset=False, q1=False, q2=False)
        elif state is MachineState.START:
            self.actor_state[Actor.MOTOR_STOP] = False
            self.update_states()
            self.run_states()
            self._set_lamps(False, False, True)
            self._set_blink(False, False, calibrating)
            if self.ramp_full:
                self.actor_state[Actor.LAMP_YELLOW] = True
                self.blink[Blink.YELLOW] = True
            self._set_leds(start=False, reset=False, q1=False, q2=False)
        elif state is MachineState.RESET:
            self.reset()
        elif state is MachineState.ERROR:
            self._set_lamps(True, False, False)
            self._set_blink(True, False, False)
            self._set_leds(start=False, reset=True, q1=False, q2=False)
        elif state is MachineState.QUIT_ERROR:
            self.e_stop = False
            self._set_lamps(True, True, False)
            self._set_blink(True, False, False)
            self._set_leds(start=False, reset=True, q1=False, q2=False)

    def reset(self) -> None:
        """Clear actors and flags and return to the initial state."""
        self.actor_state = [False] * ACTOR_COUNT
        self.blink = [False] * BLINK_COUNT
        self.actor_state[Actor.MOTOR_STOP] = True
        self.actual_state = MachineState.INIT
        self.ramp_full = False
        self.belt_free = True
        self.metal_expected = True
        self.e_stop = False
        self.height = 0
        self.adc_enable = False
        self.machine_complete = False
        self.pulse_type = int(PulseType.NONE)
        self.height_machine.reset()

    def check_error(self) -> bool:
        """Return True if the machine must stop because of an error."""
        s = self.sensors
        if s.lb_ramp and self.ramp_full:
            self.ramp_full = False
        if self.other.ramp_full and self.ramp_full:
            return True
        if self.ramp_full:
            self.actor_state[Actor.LAMP_YELLOW] = True
            self.blink[Blink.YELLOW] = True
        if not s.btn_emergency or self.e_stop:
            self.e_stop = True
            return True
        if self.other.emergency:
            return True
        if self.actual_state is MachineState.INIT:
            self.automaton_step()
        return False

    def error_state(self, error: bool) -> None:
        """Enter the error state, or leave it once the error is gone."""
        if error:
            self.actual_state = MachineState.ERROR
        elif self.actual_state is MachineState.ERROR:
            self.actual_state = MachineState.INIT