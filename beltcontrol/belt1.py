"""Controller for the first belt, which may carry several workpieces at once."""

from __future__ import annotations

import copy
import logging
from collections import deque
from typing import Iterable, Optional

from .height import PUK_HEIGHT_TOLERANCE
from .machine import (
    PUK_HEIGHT_MICM,
    CalibrationData,
    MachineState,
    MachineType,
    StateMachine,
)
from .messages import Actor
from .puk_machine import PukState, PukStateMachine

log = logging.getLogger(__name__)

MAX_PUK_COUNT = 11
IDLE = 0.0

_MOTOR = (Actor.MOTOR_RIGHT, Actor.MOTOR_LEFT, Actor.MOTOR_SLOW, Actor.MOTOR_STOP)
_MOTOR_AND_SWITCH = _MOTOR + (Actor.SWITCH,)


class FirstBeltMachine(StateMachine):
    """Follows every workpiece on the first belt, one queue per belt section.

    The front workpiece of each section reacts to the sensors; the actors are
    the union of what the workpieces want.
    """

    def __init__(self, cal_data: CalibrationData) -> None:
        super().__init__(cal_data)
        self.queue_start: deque[PukStateMachine] = deque()
        self.queue_height: deque[PukStateMachine] = deque()
        self.queue_switch: deque[PukStateMachine] = deque()
        self.queue_ramp: deque[PukStateMachine] = deque()
        self.queue_end: deque[PukStateMachine] = deque()
        self.out_puk: Optional[PukStateMachine] = None
        self.old_lb_start = True
        self.error = False
        self.next_puk_id = 0
        self.system_time = 0
        self.puk.id = -1

    @property
    def machine_type(self) -> MachineType:
        return MachineType.FIRST

    def _queues(self) -> tuple[deque[PukStateMachine], ...]:
        return (
            self.queue_start,
            self.queue_height,
            self.queue_switch,
            self.queue_ramp,
            self.queue_end,
        )

    def update_states(self) -> None:
        """Register new workpieces and advance the front workpiece of each section."""
        s = self.sensors
        if not s.lb_start and s.lb_start != self.old_lb_start:
            self.queue_start.append(
                PukStateMachine(
                    self.next_puk_id,
                    self.cal_data,
                    self.other,
                    lambda: self.ramp_full,
                    self.system_time,
                )
            )
            self.next_puk_id += 1
        if s.lb_ramp:
            self.ramp_full = False

        for queue in self._queues():
            if queue:
                queue[0].update_states(s)
        if self.out_puk is not None:
            self.out_puk.update_states(s)

        self._advance_queues()
        self.old_lb_start = s.lb_start

    def _advance_queues(self) -> None:
        self._move_from_start()
        self._move_from_height()
        self._move_from_switch()
        self._move_from_ramp()
        self._move_from_end()

    def _move_from_start(self) -> None:
        if self.queue_start and self.queue_start[0].state is PukState.TRANS_TO_HS:
            self.queue_height.append(self.queue_start.popleft())

    def _move_from_height(self) -> None:
        if self.queue_height and self.queue_height[0].state in (
            PukState.TRANS_TO_MS,
            PukState.TO_RAMP1,
        ):
            puk = self.queue_height.popleft()
            hm = self.height_machine
            puk.set_puk_code(
                hm.result, hm.height_output(0), hm.height_output(1), hm.height_output(2)
            )
            self.queue_switch.append(puk)
            self.adc_enable = False
            hm.reset()

    def _move_from_switch(self) -> None:
        if not self.queue_switch:
            return
        state = self.queue_switch[0].state
        if state is PukState.RAMP:
            self.queue_ramp.append(self.queue_switch.popleft())
        elif state is PukState.TRANS_TO_LS2:
            self.queue_end.append(self.queue_switch.popleft())

    def _move_from_ramp(self) -> None:
        if not self.queue_ramp:
            return
        state = self.queue_ramp[0].state
        if state is PukState.END:
            self.queue_ramp.popleft()
        elif state is PukState.RAMP_FULL:
            self.ramp_full = True
            self.queue_ramp.popleft()

    def _move_from_end(self) -> None:
        if self.out_puk is not None and self.out_puk.state is PukState.END:
            self.out_puk = None
        if (
            self.queue_end
            and self.out_puk is None
            and self.queue_end[0].state is PukState.TRANS_TO_FESTO2
        ):
            self.out_puk = self.queue_end.popleft()
            self.puk = copy.deepcopy(self.out_puk.puk)

    def run_states(self) -> None:
        """Move workpieces between sections, read heights and set the actors."""
        self._advance_queues()
        if self.adc_enable:
            self.height_machine.update_states(self.height)
            self.height_machine.run_states()
        for actor in _MOTOR_AND_SWITCH:
            self.actor_state[actor] = False
        if self.is_belt_empty():
            self.actor_state[Actor.MOTOR_STOP] = True
        self._set_actors()

    def _merge(self, queue: deque[PukStateMachine], actors: Iterable[Actor]) -> None:
        if not queue:
            return
        actors = tuple(actors)
        front = queue[0]
        for _ in queue:
            front.run_states()
            for actor in actors:
                self.actor_state[actor] = self.actor_state[actor] or front.actor(actor)

    def _set_actors(self) -> None:
        self._merge(self.queue_start, _MOTOR)
        self.actor_state[Actor.SWITCH] = bool(
            (self.queue_switch and self.queue_switch[0].actor(Actor.SWITCH))
            or (self.queue_end and self.queue_end[-1].actor(Actor.SWITCH))
        )
        self._merge(self.queue_height, _MOTOR_AND_SWITCH)
        if self.queue_height and self.queue_height[0].state is PukState.HS:
            self.adc_enable = True
        self._merge(self.queue_switch, _MOTOR_AND_SWITCH)
        self._merge(self.queue_ramp, _MOTOR_AND_SWITCH)
        self._merge(self.queue_end, _MOTOR_AND_SWITCH)

    def _update_puk_progress(self) -> None:
        self._set_actors()
        speed = self.speed()
        for queue in self._queues():
            for puk in queue:
                puk.update_progress(speed)
        if self.out_puk is not None:
            self.out_puk.update_progress(speed)

    def is_belt_empty(self) -> bool:
        """True when no workpiece is on the belt or being handed over."""
        return not any(self._queues()) and self.out_puk is None

    def speed(self) -> float:
        """Belt movement per tick, in percent of the belt, for the current actors."""
        a = self.actor_state
        if a[Actor.MOTOR_STOP]:
            return IDLE
        if a[Actor.MOTOR_SLOW] and a[Actor.MOTOR_RIGHT]:
            return self.cal_data.slow_step
        if a[Actor.MOTOR_SLOW] and a[Actor.MOTOR_LEFT]:
            return -self.cal_data.slow_step
        if a[Actor.MOTOR_LEFT]:
            return -self.cal_data.fast_step
        return self.cal_data.fast_step

    def check_error(self) -> bool:
        """Return True if the belt must stop."""
        if super().check_error():
            return True

        s = self.sensors
        self.error = False
        self.ramp_full = False

        if self.adc_enable and self.height > PUK_HEIGHT_MICM + PUK_HEIGHT_TOLERANCE:
            return True
        if (
            not s.lb_start
            and self.queue_height
            and self.queue_height[-1].progress < self.cal_data.half_puk_length * 3
        ):
            self.error = True
            log.warning("workpieces too close together at the entry")
        if not self.queue_height and not s.lb_height:
            self.error = True
        if not self.queue_switch and not s.lb_switch:
            self.error = True
        if not self.queue_ramp and not s.lb_ramp:
            self.ramp_full = True
        if not self.queue_end and not s.lb_end:
            self.error = True

        if sum(len(queue) for queue in self._queues()) > MAX_PUK_COUNT:
            return True
        if any(puk.check_error() for queue in self._queues() for puk in queue):
            return True
        return self.error

    def make_tik_step(self) -> None:
        """Advance every workpiece by one tick while the belt runs."""
        if self.actual_state is MachineState.START:
            self._update_puk_progress()
            self.run_states()
        self.system_time += 1

    def reset(self) -> None:
        """Reset the machine and forget every workpiece in the sections."""
        super().reset()
        self.next_puk_id = 0
        self.error = False
        for queue in self._queues():
            queue.clear()