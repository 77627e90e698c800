"""Main controller client: runs the belt machine and talks to the other belt."""

from __future__ import annotations

import copy
import logging
from typing import Protocol

from .belt1 import FirstBeltMachine
from .belt2 import SecondBeltMachine
from .calibration import CalibrationMachine
from .machine import CalibrationData, MachineType, StateMachine
from .messages import ACTOR_COUNT, Actor, ClientId, Message, PulseType, Sensor
from .puk import MsgHeader, MsgType, Puk, SerialMsg

log = logging.getLogger(__name__)

TIK_COUNTER_CALIBRATION = 300
NORM_ROUND_TOLERANCE = 500


class _SerialLink(Protocol):
    def send_msg(self, msg: SerialMsg) -> None: ...

    def next_msg(self) -> SerialMsg: ...

    def receive_empty(self) -> bool: ...

    def is_connected(self) -> bool: ...

    def reset(self) -> None: ...


def _round_thousand(value: int) -> int:
    base = (abs(value) // 1000) * 1000
    if value < 0:
        base = -base
    return base + 1000 if value - base >= NORM_ROUND_TOLERANCE else base


def _frame(msg_type: int) -> SerialMsg:
    return SerialMsg(header=MsgHeader(type=msg_type, version=0))


class MachineSupervisor:
    """Feeds messages into the active belt machine and reports changes over serial.

    Holding the stop button for more than 300 ticks switches between the belt
    machine and the calibration machine. The serial link's own send/receive
    loop is run by the caller.
    """

    def __init__(self, serial: _SerialLink, second_belt: bool = False) -> None:
        self.serial = serial
        self.cal_data = CalibrationData()
        self.machine: StateMachine = (
            SecondBeltMachine(self.cal_data) if second_belt else FirstBeltMachine(self.cal_data)
        )
        self.belt_machine = self.machine
        self.calibrate_machine = CalibrationMachine(self.cal_data)
        self.calibrate_counter = 0
        self.send_data_counter = 0
        self.save_stop_button = False
        self.ramp_full = False
        self.belt_free = False
        self.metal_expected = True
        self.e_stop = False
        self.send_puk = Puk(id=-1)
        self._toggle = False
        self._actor_save = [False] * ACTOR_COUNT

    def work(self, msg: Message) -> Message:
        """Handle one message and return the reply to send on."""
        out = msg.copy()
        machine = self.machine
        if out.sender_id == ClientId.HARDWARE:
            self.save_stop_button = out.sensor_data[Sensor.BTN_STOP]
            if machine.machine_type == MachineType.CALIBRATION:
                machine.update_sensor_data(out.sensor_data, out.height_sensor, out.pulse_type)
            else:
                if out.height_sensor == -1:
                    out.height_sensor = self.cal_data.height_no_puk_raw
                machine.update_sensor_data(
                    out.sensor_data, self.normalize_height(out.height_sensor), out.pulse_type
                )
            out.actor_status = list(machine.actor_state)
            if machine.check_error() or not self.serial.is_connected():
                out.actor_status[Actor.MOTOR_STOP] = True
                machine.error_state(True)
            else:
                machine.error_state(False)
            machine.automaton_step()
            self._update_actor_data(out)
            if out.sensor_data[Sensor.BTN_RESET]:
                self.ramp_full = not machine.ramp_full
                self.belt_free = not machine.belt_free
                self.metal_expected = not machine.metal_expected
                self.e_stop = not machine.e_stop
                self.serial.reset()
            if machine.machine_type == MachineType.FIRST and not out.sensor_data[Sensor.LB_END]:
                self.serial.send_msg(_frame(MsgType.BELT_STATUS_REQUEST))
            out.receiver_id = ClientId.HARDWARE
        elif out.sender_id == ClientId.PULSE_RECEIVER and out.pulse_type == PulseType.TIK_TIMER:
            out.actor_status = list(machine.actor_state)
            if machine.check_error() or not self.serial.is_connected():
                machine.error_state(True)
                machine.automaton_step()
                self._update_actor_data(out)
                out.actor_status[Actor.MOTOR_STOP] = True
                out.receiver_id = ClientId.HARDWARE
            else:
                machine.make_tik_step()
                machine.error_state(False)
                self._update_actor_data(out)
                self._choose_machine()
                out.receiver_id = (
                    ClientId.HARDWARE if self._actors_changed() else ClientId.EMPTY
                )
            self.send_data_counter += 1
        elif out.sender_id == ClientId.PULSE_RECEIVER and out.pulse_type == PulseType.SERIAL:
            if self.serial.is_connected() and not self.serial.receive_empty():
                self._handle_serial(self.serial.next_msg())
                out.receiver_id = ClientId.EMPTY
        else:
            out.receiver_id = ClientId.EMPTY
        self.send()
        out.sender_id = ClientId.MAIN
        return out

    def _handle_serial(self, frame: SerialMsg) -> None:
        machine = self.machine
        msg_type = frame.header.type
        if msg_type == MsgType.PUK:
            machine.puk = copy.deepcopy(frame.puk)
        elif msg_type == MsgType.EMERGENCY_STOP:
            machine.set_other_emergency(True)
        elif msg_type == MsgType.EMERGENCY_STOP_CLEAR:
            machine.set_other_emergency(False)
        elif msg_type == MsgType.RAMP_FULL:
            machine.set_other_ramp_full(True)
        elif msg_type == MsgType.RAMP_FREE:
            machine.set_other_ramp_full(False)
        elif msg_type == MsgType.BELT_FREE:
            machine.set_other_belt_free(True)
        elif msg_type == MsgType.BELT_FULL:
            machine.set_other_belt_free(False)
        elif msg_type == MsgType.METAL_REJECTED:
            machine.set_other_metal_expected(False)
        elif msg_type == MsgType.METAL_ACCEPTED:
            machine.set_other_metal_expected(True)
        elif msg_type == MsgType.BELT_STATUS_REQUEST:
            frame.header.type = MsgType.BELT_FREE if machine.belt_free else MsgType.BELT_FULL
            frame.header.version = 0
            self.serial.send_msg(frame)

    def send(self) -> None:
        """Queue a frame for every status change since the last call, if connected."""
        if not self.serial.is_connected():
            return
        machine = self.machine
        if self.ramp_full != machine.ramp_full:
            self.serial.send_msg(
                _frame(MsgType.RAMP_FULL if machine.ramp_full else MsgType.RAMP_FREE)
            )
        if self.belt_free != machine.belt_free:
            self.serial.send_msg(
                _frame(MsgType.BELT_FREE if machine.belt_free else MsgType.BELT_FULL)
            )
        if self.metal_expected != machine.metal_expected:
            self.serial.send_msg(
                _frame(
                    MsgType.METAL_ACCEPTED if machine.metal_expected else MsgType.METAL_REJECTED
                )
            )
        if self.e_stop != machine.e_stop:
            self.serial.send_msg(
                _frame(
                    MsgType.EMERGENCY_STOP if machine.e_stop else MsgType.EMERGENCY_STOP_CLEAR
                )
            )
        if self.send_puk.id != machine.puk.id and machine.machine_type == MachineType.FIRST:
            frame = _frame(MsgType.PUK)
            frame.puk = copy.deepcopy(machine.puk)
            self.serial.send_msg(frame)

        self.ramp_full = machine.ramp_full
        self.belt_free = machine.belt_free
        self.metal_expected = machine.metal_expected
        self.e_stop = machine.e_stop
        self.send_puk = copy.deepcopy(machine.puk)

    def _choose_machine(self) -> None:
        if self.save_stop_button:
            self.calibrate_counter = 0
        else:
            if self.calibrate_counter > TIK_COUNTER_CALIBRATION:
                self.save_stop_button = True
                if self.machine.machine_type in (MachineType.FIRST, MachineType.SECOND):
                    log.info("switching to the calibration machine")
                    self.machine = self.calibrate_machine
                    self.belt_machine.reset()
                elif self.machine.machine_type == MachineType.CALIBRATION:
                    log.info("switching to the belt machine")
                    self.machine = self.belt_machine
                    self.calibrate_machine.reset()
            self.calibrate_counter += 1

        if (
            self.machine.machine_type == MachineType.CALIBRATION
            and self.machine.machine_complete
        ):
            log.info("calibration complete, switching to the belt machine")
            self.calibrate_machine.reset()
            self.machine = self.belt_machine

    def _actors_changed(self) -> bool:
        current = list(self.machine.actor_state)
        changed = current != self._actor_save
        self._actor_save = current
        return changed

    def _update_actor_data(self, out: Message) -> None:
        out.actor_status = list(self.machine.actor_state)
        out.blink = list(self.machine.blink)
        out.adc_enable = self.machine.adc_enable

    def normalize_height(self, raw: int) -> int:
        """Convert a raw ADC reading into a height rounded to the nearest thousand."""
        cal = self.cal_data
        if raw == -1:
            raw = cal.height_no_puk_raw
        result = int((cal.height_no_puk_raw - raw) / cal.height_norm_quotient)
        return _round_thousand(result)

    def send_msg(self, msg_type: int) -> None:
        """Queue a bare frame of ``msg_type`` for the other belt."""
        self.serial.send_msg(_frame(msg_type))

    def set_belt2exp(self, metal: bool) -> None:
        """Toggle the other belt's emergency flag (a manual test hook)."""
        self._toggle = not self._toggle
        self.machine.set_other_emergency(self._toggle)