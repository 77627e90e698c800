"""Controller for the second belt, which takes one workpiece at a time."""

from __future__ import annotations

import logging
from enum import Enum, auto
from typing import NamedTuple

from .height import PUK_HEIGHT_TOLERANCE
from .machine import (
    PUK_HEIGHT_MICM,
    TIK_TOLERANCE,
    CalibrationData,
    MachineState,
    MachineType,
    StateMachine,
)
from .messages import Actor

log = logging.getLogger(__name__)

FULL_RUN = 100
RAMP_FULL_TIKS = 100


class SecondBeltState(Enum):
    START1 = auto()
    LS1_1 = auto()
    HS1 = auto()
    MS1 = auto()
    RAMP1 = auto()
    RAMP_FULL1 = auto()
    TRANS_TO_LS2_1 = auto()
    LS2_1 = auto()

    START2 = auto()
    LS1_2 = auto()
    HS2 = auto()
    MS2 = auto()
    RAMP2 = auto()
    RAMP_FULL2 = auto()
    TRANS_TO_LS2_2 = auto()
    LS2_2 = auto()

    START3 = auto()
    LS1_3 = auto()
    HS3 = auto()
    MS3 = auto()
    RAMP3 = auto()
    RAMP_FULL3 = auto()
    TRANS_TO_LS2_3 = auto()
    LS2_3 = auto()


class _Cycle(NamedTuple):
    start: SecondBeltState
    ls1: SecondBeltState
    hs: SecondBeltState
    ms: SecondBeltState
    ramp: SecondBeltState
    ramp_full: SecondBeltState
    trans: SecondBeltState
    ls2: SecondBeltState


_S = SecondBeltState
_CYCLES = (
    _Cycle(_S.START1, _S.LS1_1, _S.HS1, _S.MS1, _S.RAMP1, _S.RAMP_FULL1, _S.TRANS_TO_LS2_1, _S.LS2_1),
    _Cycle(_S.START2, _S.LS1_2, _S.HS2, _S.MS2, _S.RAMP2, _S.RAMP_FULL2, _S.TRANS_TO_LS2_2, _S.LS2_2),
    _Cycle(_S.START3, _S.LS1_3, _S.HS3, _S.MS3, _S.RAMP3, _S.RAMP_FULL3, _S.TRANS_TO_LS2_3, _S.LS2_3),
)

_ROLES = {
    state: (index, role)
    for index, cycle in enumerate(_CYCLES)
    for role, state in cycle._asdict().items()
}


class SecondBeltMachine(StateMachine):
    """Follows the single workpiece on the second belt through three cycles.

    The first cycle lets metal workpieces through; the second and third let
    through only non-metal workpieces without a height code.
    """

    def __init__(self, cal_data: CalibrationData) -> None:
        super().__init__(cal_data)
        self.progress = 0.0
        self.belt_state = SecondBeltState.START1
        self.out = True
        self.tik_error = False
        self.hole = False
        self.tik_ramp_full = 0

    @property
    def machine_type(self) -> MachineType:
        return MachineType.SECOND

    def update_states(self) -> None:
        """Advance the belt state from the current sensor levels."""
        s = self.sensors
        if s.lb_ramp:
            self.ramp_full = False
        index, role = _ROLES[self.belt_state]
        cycle = _CYCLES[index]

        if role == "start":
            if not s.lb_start:
                self.belt_state = cycle.ls1
                self.out = False
                self.progress = 0.0
                self.hole = False
        elif role == "ls1":
            if not s.lb_height:
                self.belt_state = cycle.hs
                if index > 0:
                    self.progress = self.cal_data.reach_height_best
        elif role == "hs":
            if s.height_ok and not s.lb_height and self.hole:
                self.belt_state = cycle.ms
            elif not s.height_ok and s.lb_height:
                self.belt_state = cycle.ramp
            elif s.lb_height:
                self.belt_state = SecondBeltState.RAMP1
        elif role == "ms":
            if s.lb_switch:
                return
            if index == 0:
                if s.metal:
                    self.belt_state = cycle.trans
                    self.out = False
                else:
                    self.belt_state = cycle.ramp
            elif s.metal or self.puk.code_second != -1:
                self.belt_state = cycle.ramp
            else:
                self.belt_state = cycle.trans
                self.out = False
        elif role == "ramp":
            if not s.lb_ramp:
                self.belt_state = cycle.ramp_full
        elif role == "ramp_full":
            if s.lb_ramp:
                self.belt_state = cycle.start
        elif role == "trans":
            if not s.lb_end:
                self.belt_state = cycle.ls2
        elif role == "ls2":
            if s.lb_end:
                self.belt_state = _CYCLES[(index + 1) % len(_CYCLES)].start
                self.progress = 0.0

    def run_states(self) -> None:
        """Set the actors for the current belt state."""
        if self.adc_enable:
            self.height_machine.update_states(self.height)
            self.height_machine.run_states()

        s = self.sensors
        a = self.actor_state
        index, role = _ROLES[self.belt_state]

        if role == "start":
            if index == 0:
                a[Actor.LED_START] = False
            a[Actor.MOTOR_STOP] = True
            self.belt_free = True
            self.tik_ramp_full = 0
            self.metal_expected = index == 0
        elif role == "ls1":
            a[Actor.MOTOR_RIGHT] = True
            a[Actor.MOTOR_LEFT] = False
            a[Actor.MOTOR_STOP] = False
            a[Actor.MOTOR_SLOW] = False
            if s.lb_start and not self.out:
                self.out = True
            self.belt_free = False
        elif role == "hs":
            if not s.height_ok:
                self.hole = True
            self.adc_enable = True
        elif role == "ms":
            if s.lb_height and self.adc_enable:
                self._read_code()
        elif role == "ramp":
            if s.lb_height and self.adc_enable:
                self.adc_enable = False
            a[Actor.SWITCH] = False
        elif role == "ramp_full":
            self.tik_ramp_full = self.puk.tiks_second
        elif role == "trans":
            a[Actor.MOTOR_SLOW] = False
            a[Actor.SWITCH] = True
            if s.lb_switch and not self.out:
                self.out = True
        elif role == "ls2":
            a[Actor.MOTOR_STOP] = True
            a[Actor.SWITCH] = False
            log.info(
                "puk %d, type %d, heights belt 1 %s, heights belt 2 %s",
                self.puk.id,
                self.puk.code_second,
                self.puk.height_first,
                self.puk.height_second,
            )

    def _read_code(self) -> None:
        hm = self.height_machine
        self.adc_enable = False
        self.puk.code_second = hm.result
        self.puk.height_second = [hm.height_output(i) for i in range(3)]
        hm.reset()
        log.info("puk code: %d", self.puk.code_second)
        if self.puk.code_second != -1:
            log.info(
                "time %d s, puk %d, code %d, heights %s",
                (self.puk.tiks_first + self.puk.height_tik_second) // 100,
                self.puk.id,
                self.puk.code_second,
                self.puk.height_second,
            )

    def check_error(self) -> bool:
        """Return True if the belt must stop."""
        if super().check_error():
            return True

        s = self.sensors
        cal = self.cal_data
        index, role = _ROLES[self.belt_state]

        if role == "ls1":
            if (not s.lb_start and self.out) or not s.lb_switch or not s.lb_end:
                log.warning("sensor error while entering")
                return True
            if self.progress - TIK_TOLERANCE > cal.reach_height_worst:
                log.warning("workpiece reached the height sensor too late")
                return True
        elif role == "hs":
            if not s.lb_start or not s.lb_switch or not s.lb_end:
                log.warning("sensor error at the height sensor")
                return True
            if self.progress + TIK_TOLERANCE < cal.reach_height_best or self.tik_error:
                log.warning("workpiece reached the height sensor too early")
                self.tik_error = True
                return True
            self.progress = cal.reach_height_best
        elif role == "ms":
            if not s.lb_start or not s.lb_end:
                log.warning("sensor error at the metal sensor")
                return True
            if self.height > PUK_HEIGHT_MICM + PUK_HEIGHT_TOLERANCE:
                log.warning("height too large at the metal sensor: %d", self.height)
                return True
            if self.progress - TIK_TOLERANCE > cal.reach_switch:
                log.warning("workpiece reached the switch too late")
                return True
        elif role == "trans":
            if not s.lb_start or not s.lb_height or (not s.lb_switch and self.out):
                return True
            if self.progress + TIK_TOLERANCE < cal.reach_switch or self.tik_error:
                log.warning("workpiece reached the switch too early")
                self.tik_error = True
                return True
            if self.progress - TIK_TOLERANCE > FULL_RUN:
                log.warning("workpiece reached the end too late")
                return True
        elif role == "ls2":
            if not s.lb_start or not s.lb_switch or not s.lb_height:
                return True
            if self.progress + TIK_TOLERANCE < FULL_RUN or self.tik_error:
                log.warning("workpiece reached the end too early")
                self.tik_error = True
                return True
        elif role == "ramp":
            if not s.lb_start or not s.lb_end:
                return True
            if self.ramp_full:
                return True
        elif role == "ramp_full":
            if self.puk.tiks_second - self.tik_ramp_full >= RAMP_FULL_TIKS:
                self.ramp_full = True
                self.belt_state = SecondBeltState.START1
                self.actor_state[Actor.MOTOR_STOP] = True
                if index == 2:
                    self.belt_free = True
        return False

    def make_tik_step(self) -> None:
        """Advance the workpiece by one tick while the belt runs."""
        if self.actual_state is MachineState.START:
            self.progress += self.cal_data.fast_step
        self.puk.height_tik_second += 1
        self.puk.tiks_second += 1

    def reset(self) -> None:
        """Reset the machine and return to the first cycle."""
        super().reset()
        self.belt_state = SecondBeltState.START1