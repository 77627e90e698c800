"""State machine that follows a single workpiece along the first belt."""

from __future__ import annotations

import logging
from enum import Enum, auto
from typing import Callable, Optional

from .machine import CalibrationData, OtherMachine, SensorData
from .messages import ACTOR_COUNT, Actor
from .puk import Puk

log = logging.getLogger(__name__)

FULL_RUN = 100
TOLERANCE = 10


class PukState(Enum):
    START_PUK = auto()
    LS1 = auto()
    TRANS_TO_HS = auto()
    HS = auto()
    TO_RAMP1 = auto()
    RAMP = auto()
    MS = auto()
    TRANS_TO_MS = auto()
    TRANS_TO_LS2 = auto()
    LS2 = auto()
    RAMP_FULL = auto()
    TRANS_TO_FESTO2 = auto()
    ERROR = auto()
    END = auto()


class PukStateMachine:
    """Tracks one workpiece: where it is, how far it went and what it needs.

    ``ramp_full`` is asked whether this belt's own ramp is full; ``other``
    describes the machine on the next belt.
    """

    def __init__(
        self,
        puk_id: int = 0,
        cal_data: Optional[CalibrationData] = None,
        other: Optional[OtherMachine] = None,
        ramp_full: Optional[Callable[[], bool]] = None,
        system_time: int = 0,
    ) -> None:
        self.puk_id = puk_id
        self.cal_data = cal_data if cal_data is not None else CalibrationData()
        self.other = other if other is not None else OtherMachine()
        self._ramp_full = ramp_full if ramp_full is not None else (lambda: False)
        self.state = PukState.START_PUK
        self.puk_code = 0
        self.tik_counter = 0
        self.progress = 0.0
        self.progress_ls2 = 0.0
        self.sort_out = True
        self.hole = False
        self.puk = Puk(start_time=system_time, id=puk_id)
        self._actors = [False] * ACTOR_COUNT

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PukStateMachine):
            return NotImplemented
        return self.puk_id == other.puk_id

    def __hash__(self) -> int:
        return hash(self.puk_id)

    def _in_time(self, minimal: float, maximal: float, tolerance: float = TOLERANCE) -> bool:
        return minimal - tolerance < self.progress < maximal + tolerance

    def update_states(self, sensors: SensorData) -> None:
        """Advance the workpiece state from the current sensor levels."""
        cal = self.cal_data
        state = self.state
        if state is PukState.START_PUK:
            self.state = PukState.LS1
            self.sort_out = True
            self.hole = False
        elif state is PukState.LS1:
            if sensors.lb_start:
                self.state = PukState.TRANS_TO_HS
        elif state is PukState.TRANS_TO_HS:
            if not sensors.lb_height:
                self.state = PukState.HS
                if not self._in_time(cal.reach_height_best, cal.reach_height_worst):
                    self.state = PukState.ERROR
                self.progress = cal.reach_height_best
                if not sensors.height_ok:
                    self.hole = True
        elif state is PukState.HS:
            if sensors.height_ok and self.hole:
                self.sort_out = False
            if not self.other.ramp_full and self._ramp_full() and sensors.lb_height:
                self.state = PukState.TRANS_TO_MS
                self.sort_out = False
                log.info("ramp full, workpiece goes on to the metal sensor")
            elif self.sort_out and sensors.lb_height:
                self.state = PukState.TO_RAMP1
            elif sensors.lb_height:
                self.state = PukState.TRANS_TO_MS
        elif state is PukState.TRANS_TO_MS:
            if self.puk_code >= 0:
                log.info(
                    "start %d s, puk %d, code %d, height at %d s",
                    self.puk.start_time // 100,
                    self.puk.id,
                    self.puk.code_first,
                    (self.puk.start_time + self.puk.height_tik_first) // 100,
                )
            if self.other.ramp_full and self.puk_code >= 0:
                self.state = PukState.TO_RAMP1
            elif self.puk_code in (1, 4):
                self.state = PukState.TO_RAMP1
            elif not sensors.lb_switch:
                if self.other.ramp_full and sensors.metal != self.other.metal_expected:
                    self.state = PukState.TO_RAMP1
                else:
                    self.state = PukState.MS
        elif state is PukState.MS:
            if sensors.lb_switch:
                self.state = PukState.TRANS_TO_LS2
        elif state is PukState.TO_RAMP1:
            if not sensors.lb_ramp:
                self.state = PukState.RAMP
        elif state in (PukState.RAMP, PukState.RAMP_FULL):
            if sensors.lb_ramp:
                self.state = PukState.END
        elif state is PukState.TRANS_TO_LS2:
            if not sensors.lb_end:
                self.state = PukState.LS2
        elif state is PukState.LS2:
            if not self.other.belt_free and sensors.lb_end:
                self.state = PukState.ERROR
                log.warning("workpiece disappeared at the end barrier")
            if self.other.belt_free and sensors.lb_end:
                self.state = PukState.TRANS_TO_FESTO2
                self.other.belt_free = False
                self.progress_ls2 = self.progress
                self.puk.tiks_first = self.tik_counter

    def _drive(
        self, right: bool, stop: bool, switch: Optional[bool] = None
    ) -> None:
        self._actors[Actor.MOTOR_RIGHT] = right
        self._actors[Actor.MOTOR_LEFT] = False
        self._actors[Actor.MOTOR_SLOW] = False
        self._actors[Actor.MOTOR_STOP] = stop
        if switch is not None:
            self._actors[Actor.SWITCH] = switch

    def run_states(self) -> None:
        """Set the actors this workpiece needs in its current state."""
        cal = self.cal_data
        state = self.state
        if state in (
            PukState.START_PUK,
            PukState.LS1,
            PukState.TRANS_TO_HS,
            PukState.HS,
            PukState.TRANS_TO_MS,
            PukState.TO_RAMP1,
        ):
            self._drive(right=True, stop=False, switch=False)
        elif state is PukState.MS:
            self._drive(right=True, stop=False, switch=not self.sort_out)
        elif state in (PukState.RAMP, PukState.RAMP_FULL):
            self._drive(right=False, stop=False, switch=False)
        elif state is PukState.TRANS_TO_LS2:
            past_switch = self.progress > cal.reach_switch + 2 * cal.half_puk_length
            self._drive(right=True, stop=False, switch=not past_switch)
        elif state is PukState.LS2:
            if self.other.belt_free:
                self._drive(right=True, stop=False)
            else:
                self._drive(right=False, stop=True)
        elif state is PukState.TRANS_TO_FESTO2:
            self._drive(right=True, stop=False)
            if self.progress > self.progress_ls2 + 2 * cal.half_puk_length:
                self.state = PukState.END
        elif state is PukState.END:
            self._drive(right=False, stop=True)
        elif state is PukState.ERROR:
            self._drive(right=False, stop=True, switch=False)

    def update_progress(self, speed: float) -> None:
        """Move the workpiece by ``speed`` percent of the belt for one tick."""
        self.progress += speed
        self.tik_counter += 1
        self.run_states()

    def _window(self) -> Optional[tuple[float, float]]:
        cal = self.cal_data
        half = cal.half_puk_length
        return {
            PukState.LS1: (0, half * 2.5),
            PukState.TRANS_TO_HS: (0, cal.reach_height_worst),
            PukState.HS: (cal.reach_height_best, cal.reach_height_best + 2 * half),
            PukState.TRANS_TO_MS: (cal.reach_height_best + half, cal.reach_switch),
            PukState.MS: (cal.reach_switch, cal.reach_switch + 2 * half),
            PukState.TO_RAMP1: (cal.reach_height_best, cal.reach_ramp * 2),
            PukState.RAMP: (cal.reach_ramp, cal.leave_ramp),
            PukState.TRANS_TO_LS2: (cal.reach_switch, FULL_RUN),
            PukState.LS2: (FULL_RUN, FULL_RUN + 2 * half),
        }.get(self.state)

    def check_error(self) -> bool:
        """Check the progress against the expected window; True on error.

        A workpiece that stays too long on the ramp marks the ramp as full
        instead of raising an error.
        """
        window = self._window()
        if window is not None and not self._in_time(*window):
            log.warning(
                "puk %d late or early in %s: window %s, progress %s",
                self.puk_id,
                self.state.name,
                window,
                self.progress,
            )
            self.state = PukState.RAMP_FULL if self.state is PukState.RAMP else PukState.ERROR
        return self.state is PukState.ERROR

    def set_puk_code(self, code: int, height1: int, height2: int, height3: int) -> None:
        """Record the decoded height code and the three step heights."""
        self.puk_code = code
        self.puk.code_first = code
        self.puk.height_first = [height1, height2, height3]
        self.puk.height_tik_first = self.tik_counter

    def actor(self, index: int) -> bool:
        """Whether this workpiece wants actor ``index`` on."""
        return self._actors[index]