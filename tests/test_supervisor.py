from collections import deque

import pytest

from beltcontrol.clients import initial_message, route_pulse
from beltcontrol.machine import MachineType
from beltcontrol.messages import Actor, ClientId, PulseCode, PulseType, Sensor
from beltcontrol.puk import MsgHeader, MsgType, Puk, SerialMsg
from beltcontrol.supervisor import MachineSupervisor


class FakeSerial:
    def __init__(self, connected=False):
        self.connected = connected
        self.sent = []
        self.incoming = deque()
        self.resets = 0

    def send_msg(self, msg):
        self.sent.append(msg)

    def next_msg(self):
        return self.incoming.popleft()

    def receive_empty(self):
        return not self.incoming

    def is_connected(self):
        return self.connected

    def reset(self):
        self.resets += 1


def _types(serial):
    return [m.header.type for m in serial.sent]


def _hardware_msg(**overrides):
    msg = initial_message()
    msg.sender_id = ClientId.HARDWARE
    msg.height_sensor = -1
    for sensor in (
        Sensor.LB_START,
        Sensor.LB_HEIGHT,
        Sensor.LB_SWITCH,
        Sensor.LB_RAMP,
        Sensor.LB_END,
        Sensor.BTN_EMERGENCY,
    ):
        msg.sensor_data[sensor] = True
    for name, value in overrides.items():
        msg.sensor_data[Sensor[name]] = value
    return msg


def _serial_pulse():
    return route_pulse(initial_message(), PulseCode.SERIAL, 0)


def test_machine_kind_selection():
    assert MachineSupervisor(FakeSerial()).machine.machine_type == MachineType.FIRST
    assert MachineSupervisor(FakeSerial(), True).machine.machine_type == MachineType.SECOND


def test_normalize_no_puk_is_zero():
    sup = MachineSupervisor(FakeSerial())
    raw = sup.cal_data.height_no_puk_raw
    assert sup.normalize_height(raw) == 0
    assert sup.normalize_height(-1) == 0


@pytest.mark.parametrize("raw", [3400, 3600, 4500, 4999, 1234])
def test_normalize_rounds_to_thousand(raw):
    sup = MachineSupervisor(FakeSerial())
    sup.cal_data.height_no_puk_raw = 5000
    sup.cal_data.height_norm_quotient = 1.0
    result = sup.normalize_height(raw)
    assert result % 1000 == 0
    assert abs(result - (5000 - raw)) <= 500


def test_hardware_message_when_disconnected_stops():
    serial = FakeSerial(connected=False)
    sup = MachineSupervisor(serial)
    msg = initial_message()
    msg.sender_id = ClientId.HARDWARE
    out = sup.work(msg)
    assert out.sender_id == ClientId.MAIN
    assert out.receiver_id == ClientId.HARDWARE
    assert out.actor_status[Actor.MOTOR_STOP] is True
    assert _types(serial) == [MsgType.BELT_STATUS_REQUEST]


def test_reset_button_clears_serial_and_inverts_flags():
    serial = FakeSerial(connected=False)
    sup = MachineSupervisor(serial)
    sup.work(_hardware_msg(BTN_RESET=True))
    assert serial.resets == 1
    assert sup.belt_free is (not sup.machine.belt_free)
    assert sup.ramp_full is (not sup.machine.ramp_full)


def test_send_reports_only_changes():
    serial = FakeSerial(connected=True)
    sup = MachineSupervisor(serial)
    sup.send()
    assert _types(serial) == [MsgType.BELT_FREE]
    sup.send()
    assert _types(serial) == [MsgType.BELT_FREE]


def test_send_nothing_when_disconnected():
    serial = FakeSerial(connected=False)
    sup = MachineSupervisor(serial)
    sup.send()
    assert serial.sent == []


def test_serial_ramp_full_sets_other_machine():
    serial = FakeSerial(connected=True)
    serial.incoming.append(SerialMsg(header=MsgHeader(type=MsgType.RAMP_FULL)))
    sup = MachineSupervisor(serial)
    out = sup.work(_serial_pulse())
    assert sup.machine.other.ramp_full is True
    assert out.receiver_id == ClientId.EMPTY


def test_belt_status_request_is_answered():
    serial = FakeSerial(connected=True)
    serial.incoming.append(SerialMsg(header=MsgHeader(type=MsgType.BELT_STATUS_REQUEST)))
    sup = MachineSupervisor(serial)
    sup.work(_serial_pulse())
    assert serial.sent[0].header.type == MsgType.BELT_FREE


def test_puk_frame_is_stored():
    serial = FakeSerial(connected=True)
    serial.incoming.append(SerialMsg(header=MsgHeader(type=MsgType.PUK), puk=Puk(id=7)))
    sup = MachineSupervisor(serial, second_belt=True)
    sup.work(_serial_pulse())
    assert sup.machine.puk.id == 7


def test_tik_when_disconnected_goes_to_hardware():
    sup = MachineSupervisor(FakeSerial(connected=False))
    out = sup.work(route_pulse(initial_message(), PulseCode.TIMER_TIK, 0))
    assert out.receiver_id == ClientId.HARDWARE
    assert out.actor_status[Actor.MOTOR_STOP] is True


def test_holding_stop_switches_to_calibration():
    serial = FakeSerial(connected=True)
    sup = MachineSupervisor(serial)
    sup.work(_hardware_msg(BTN_STOP=False))
    tik = route_pulse(initial_message(), PulseCode.TIMER_TIK, 0)
    assert tik.pulse_type == PulseType.TIK_TIMER
    for _ in range(305):
        sup.work(tik)
    assert sup.machine is sup.calibrate_machine
    assert sup.machine.machine_type == MachineType.CALIBRATION


def test_send_msg_queues_frame():
    serial = FakeSerial()
    sup = MachineSupervisor(serial)
    sup.send_msg(MsgType.SEND_WARNING)
    assert _types(serial) == [MsgType.SEND_WARNING]
    assert serial.sent[0].header.version == 0


def test_set_belt2exp_toggles_other_emergency():
    sup = MachineSupervisor(FakeSerial())
    sup.set_belt2exp(True)
    assert sup.machine.other.emergency is True
    sup.set_belt2exp(True)
    assert sup.machine.other.emergency is False


def test_unknown_sender_gets_empty_receiver():
    sup = MachineSupervisor(FakeSerial())
    msg = initial_message()
    msg.sender_id = ClientId.TIMER
    out = sup.work(msg)
    assert out.receiver_id == ClientId.EMPTY
    assert out.sender_id == ClientId.MAIN