"""Calibration run that measures belt timing and the raw height of a workpiece."""

from __future__ import annotations

import logging
import math
from collections import deque
from enum import Enum, auto

from .machine import CalibrationData, MachineType, StateMachine
from .messages import Actor, PulseType

log = logging.getLogger(__name__)

MAX_HEIGHT_RESULTS = 20
HEIGHT_TOLERANCE = 100
PUK_HEIGHT_MICM_CALC = 25000
FULL_RUN = 100


class CalState(Enum):
    INIT_CAL = auto()
    START_WORST_CASE = auto()
    FAST_WORST_CASE = auto()
    BACK_TO_START1 = auto()
    FAST_BEST_CASE = auto()
    TO_HEIGHT = auto()
    TO_SWITCH = auto()
    TO_END = auto()
    BACK_TO_START2 = auto()
    SLOW_RUN = auto()
    BACK_TO_START3 = auto()
    TO_RAMP = auto()
    WAIT_FOR_LEAVE_RAMP = auto()
    END_CAL = auto()


# right, left, stop, slow, switch, label
_DRIVE = {
    CalState.INIT_CAL: (False, False, True, False, False, "initCal"),
    CalState.START_WORST_CASE: (True, False, False, False, False, "startWorstCase"),
    CalState.FAST_WORST_CASE: (True, False, False, False, False, "fastRun1"),
    CalState.BACK_TO_START1: (False, True, False, False, False, "backToStart1"),
    CalState.FAST_BEST_CASE: (True, False, False, False, False, "fastRun2"),
    CalState.TO_HEIGHT: (True, False, False, False, False, "toHight"),
    CalState.TO_SWITCH: (True, False, False, False, False, "toSwitch"),
    CalState.TO_END: (True, False, False, False, True, "toEnd1"),
    CalState.BACK_TO_START2: (False, True, False, False, True, "backToStart2"),
    CalState.SLOW_RUN: (True, False, False, True, True, "slowRun"),
    CalState.BACK_TO_START3: (False, True, False, False, True, "backToStart3"),
    CalState.TO_RAMP: (True, False, False, False, False, "toRamp"),
    CalState.WAIT_FOR_LEAVE_RAMP: (False, False, True, False, False, "waitForLeaveRamp"),
    CalState.END_CAL: (False, False, True, False, False, "endCal"),
}


def _cdiv(a: int, b: int) -> int:
    q = abs(a) // b
    return q if a >= 0 else -q


def _per_tick(ticks: int) -> float:
    return FULL_RUN / ticks if ticks else math.inf


class CalibrationMachine(StateMachine):
    """Drives one workpiece over the belt and derives the calibration data.

    The results are written into the shared ``CalibrationData`` when the
    workpiece has left the ramp; ``machine_complete`` is then set.
    """

    def __init__(self, cal_data: CalibrationData) -> None:
        super().__init__(cal_data)
        self.tik_counter = 0
        self.fast_tiks_to_leave_start = 0
        self.fast_tiks_to_height_best = 0
        self.fast_tiks_to_height_worst = 0
        self.fast_tiks_to_reach_switch = 0
        self.fast_tiks_to_reach_end = 0
        self.slow_tiks_to_reach_end = 0
        self.tiks_to_reach_ramp = 0
        self.tiks_to_pass_ramp = 0
        self.cal_state = CalState.INIT_CAL
        self.last_cal_state = CalState.INIT_CAL
        self.state_label = "initCal"
        self._raw_heights: deque[int] = deque()

    @property
    def machine_type(self) -> MachineType:
        return MachineType.CALIBRATION

    def check_error(self) -> bool:
        """Calibration never reports an error."""
        return False

    def make_tik_step(self) -> None:
        self.tik_counter += 1

    def _calculate(self) -> None:
        cal = self.cal_data
        cal.fast_step = _per_tick(self.fast_tiks_to_reach_end)
        cal.slow_step = _per_tick(self.slow_tiks_to_reach_end)
        cal.reach_height_best = cal.fast_step * self.fast_tiks_to_height_best
        cal.reach_height_worst = cal.fast_step * self.fast_tiks_to_height_worst
        cal.reach_switch = cal.fast_step * self.fast_tiks_to_reach_switch
        cal.leave_ramp = cal.fast_step * self.tiks_to_pass_ramp
        cal.reach_ramp = cal.fast_step * self.tiks_to_reach_ramp
        cal.half_puk_length = cal.fast_step * self.fast_tiks_to_leave_start

        no_puk = 0
        puk = 0
        while self._raw_heights:
            if len(self._raw_heights) > MAX_HEIGHT_RESULTS:
                no_puk += self._raw_heights.popleft()
            else:
                puk += self._raw_heights.popleft()
        no_puk = _cdiv(no_puk, MAX_HEIGHT_RESULTS)
        puk = _cdiv(puk, MAX_HEIGHT_RESULTS)
        cal.height_no_puk_raw = no_puk
        log.info("raw height of the workpiece: %d", puk)
        cal.height_norm_quotient = (no_puk - puk) / PUK_HEIGHT_MICM_CALC

    def update_states(self) -> None:
        """Advance the calibration run from the current sensor levels."""
        s = self.sensors
        state = self.cal_state
        if state is CalState.INIT_CAL:
            if not s.lb_start and s.btn_start:
                self.cal_state = CalState.START_WORST_CASE
                self.tik_counter = 0
        elif state is CalState.START_WORST_CASE:
            if s.lb_start:
                self.fast_tiks_to_leave_start = self.tik_counter
                self.cal_state = CalState.FAST_WORST_CASE
        elif state is CalState.FAST_WORST_CASE:
            if not s.lb_height:
                self.cal_state = CalState.BACK_TO_START1
                self.fast_tiks_to_height_worst = self.tik_counter
        elif state is CalState.BACK_TO_START1:
            if not s.lb_start:
                self.cal_state = CalState.FAST_BEST_CASE
                self.tik_counter = 0
        elif state is CalState.FAST_BEST_CASE:
            if s.lb_start:
                self.cal_state = CalState.TO_HEIGHT
        elif state is CalState.TO_HEIGHT:
            if not s.lb_height:
                self.cal_state = CalState.TO_SWITCH
                self.fast_tiks_to_height_best = self.tik_counter
        elif state is CalState.TO_SWITCH:
            if not s.lb_switch:
                self.cal_state = CalState.TO_END
                self.fast_tiks_to_reach_switch = self.tik_counter
        elif state is CalState.TO_END:
            if not s.lb_end:
                self.cal_state = CalState.BACK_TO_START2
                self.fast_tiks_to_reach_end = self.tik_counter
        elif state is CalState.BACK_TO_START2:
            if not s.lb_start:
                self.cal_state = CalState.SLOW_RUN
                self.tik_counter = 0
        elif state is CalState.SLOW_RUN:
            if not s.lb_end:
                self.cal_state = CalState.BACK_TO_START3
                self.slow_tiks_to_reach_end = self.tik_counter
        elif state is CalState.BACK_TO_START3:
            if not s.lb_start:
                self.cal_state = CalState.TO_RAMP
                self.tik_counter = 0
        elif state is CalState.TO_RAMP:
            if not s.lb_ramp:
                self.cal_state = CalState.WAIT_FOR_LEAVE_RAMP
                self.tiks_to_reach_ramp = self.tik_counter
        elif state is CalState.WAIT_FOR_LEAVE_RAMP:
            if s.lb_ramp:
                self.cal_state = CalState.END_CAL
                self.tiks_to_pass_ramp = self.tik_counter
                self._calculate()
                self.machine_complete = True

    def run_states(self) -> None:
        """Set the actors for the current calibration step."""
        state = self.cal_state
        right, left, stop, slow, switch, label = _DRIVE[state]
        a = self.actor_state
        a[Actor.MOTOR_RIGHT] = right
        a[Actor.MOTOR_LEFT] = left
        a[Actor.MOTOR_STOP] = stop
        a[Actor.MOTOR_SLOW] = slow
        a[Actor.SWITCH] = switch
        self.state_label = label

        if state is CalState.FAST_BEST_CASE:
            self.adc_enable = True
        elif state is CalState.TO_HEIGHT:
            self._add_height()
        elif state is CalState.TO_SWITCH:
            if self.sensors.lb_height:
                self.adc_enable = False
            else:
                self._add_height()

        if self.last_cal_state is not state and state is CalState.END_CAL:
            self._log_results()
        self.last_cal_state = state

    def _add_height(self) -> None:
        if self.pulse_type != PulseType.ADC_ISR:
            return
        count = len(self._raw_heights)
        if count < MAX_HEIGHT_RESULTS:
            self._raw_heights.append(self.height)
            log.debug("sample without workpiece %d: %d", count + 1, self.height)
        elif not self.sensors.lb_height and count < MAX_HEIGHT_RESULTS * 2:
            self._raw_heights.append(self.height)
            log.debug("sample with workpiece %d: %d", count + 1, self.height)

    def _log_results(self) -> None:
        cal = self.cal_data
        log.info(
            "ticks: leave start %d, height best %d, height worst %d, switch %d, "
            "end fast %d, end slow %d, reach ramp %d, pass ramp %d",
            self.fast_tiks_to_leave_start,
            self.fast_tiks_to_height_best,
            self.fast_tiks_to_height_worst,
            self.fast_tiks_to_reach_switch,
            self.fast_tiks_to_reach_end,
            self.slow_tiks_to_reach_end,
            self.tiks_to_reach_ramp,
            self.tiks_to_pass_ramp,
        )
        log.info("calibration: %s", cal)

    def reset(self) -> None:
        """Reset the machine and restart the calibration run."""
        super().reset()
        self.cal_state = CalState.INIT_CAL