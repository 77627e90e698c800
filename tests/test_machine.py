import pytest

from beltcontrol.machine import (
    DEFAULT_FAST_STEP,
    CalibrationData,
    MachineState,
    MachineType,
    SensorData,
    StateMachine,
)
from beltcontrol.messages import SENSOR_COUNT, Actor, Blink, Sensor


class _Dummy(StateMachine):
    def __init__(self, cal, kind=MachineType.FIRST):
        self._kind = kind
        self.calls = []
        super().__init__(cal)

    @property
    def machine_type(self):
        return self._kind

    def update_states(self):
        self.calls.append("update")

    def run_states(self):
        self.calls.append("run")

    def make_tik_step(self):
        self.calls.append("tik")


def _flags(**overrides):
    levels = {s: True for s in Sensor}
    levels[Sensor.BTN_START] = False
    levels[Sensor.BTN_RESET] = False
    for name, value in overrides.items():
        levels[Sensor[name.upper()]] = value
    return [levels[s] for s in sorted(Sensor)]


def _machine(kind=MachineType.FIRST, **overrides):
    machine = _Dummy(CalibrationData(), kind)
    machine.update_sensor_data(_flags(**overrides), 0, -1)
    return machine


def test_start_button_starts_machine():
    machine = _machine(btn_start=True)
    machine.automaton_step()
    assert machine.actual_state is MachineState.START
    assert machine.actor_state[Actor.MOTOR_STOP] is True
    assert machine.actor_state[Actor.LED_START] is True
    assert machine.calls == []

    machine.update_sensor_data(_flags(), 0, -1)
    machine.automaton_step()
    assert machine.calls == ["update", "run"]
    assert machine.actor_state[Actor.MOTOR_STOP] is False
    assert machine.actor_state[Actor.LAMP_GREEN] is True
    assert machine.actor_state[Actor.LED_START] is False


def test_stop_button_returns_to_init():
    machine = _machine()
    machine.actual_state = MachineState.START
    machine.update_sensor_data(_flags(btn_stop=False), 0, -1)
    machine.automaton_step()
    assert machine.actual_state is MachineState.INIT
    assert machine.actor_state[Actor.MOTOR_STOP] is True


def test_emergency_latches_until_reset():
    machine = _machine(btn_emergency=False)
    assert machine.check_error() is True
    assert machine.e_stop is True

    machine.update_sensor_data(_flags(), 0, -1)
    assert machine.check_error() is True

    machine.update_sensor_data(_flags(btn_reset=True), 0, -1)
    machine.automaton_step()
    assert machine.actual_state is MachineState.QUIT_ERROR
    assert machine.e_stop is False
    assert machine.actor_state[Actor.LAMP_RED] is True
    assert machine.actor_state[Actor.LAMP_YELLOW] is True
    assert machine.blink[Blink.RED] is True


def test_reset_button_resets_machine():
    machine = _machine(btn_reset=True)
    machine.actual_state = MachineState.START
    machine.actor_state[Actor.SWITCH] = True
    machine.ramp_full = True
    machine.automaton_step()
    assert machine.actual_state is MachineState.INIT
    assert [i for i, on in enumerate(machine.actor_state) if on] == [Actor.MOTOR_STOP]
    assert machine.ramp_full is False
    assert machine.height == 0
    assert machine.pulse_type == -1


def test_error_state_enter_and_leave():
    machine = _machine()
    machine.error_state(True)
    assert machine.actual_state is MachineState.ERROR
    machine.automaton_step()
    assert machine.actor_state[Actor.LAMP_RED] is True
    assert machine.blink[Blink.RED] is True
    assert machine.actor_state[Actor.LED_RESET] is True
    machine.error_state(False)
    assert machine.actual_state is MachineState.INIT


def test_error_state_false_keeps_running_state():
    machine = _machine()
    machine.actual_state = MachineState.START
    machine.error_state(False)
    assert machine.actual_state is MachineState.START


def test_both_ramps_full_is_error():
    machine = _machine(lb_ramp=False)
    machine.ramp_full = True
    machine.set_other_ramp_full(True)
    assert machine.check_error() is True


def test_own_ramp_full_warns_only():
    machine = _machine(lb_ramp=False)
    machine.actual_state = MachineState.START
    machine.ramp_full = True
    assert machine.check_error() is False
    assert machine.actor_state[Actor.LAMP_YELLOW] is True
    assert machine.blink[Blink.YELLOW] is True


def test_free_ramp_clears_ramp_full():
    machine = _machine(lb_ramp=True)
    machine.ramp_full = True
    machine.set_other_ramp_full(True)
    assert machine.check_error() is False
    assert machine.ramp_full is False


def test_other_emergency_is_error():
    machine = _machine()
    machine.set_other_emergency(True)
    assert machine.check_error() is True
    assert machine.e_stop is False


def test_check_error_steps_automaton_in_init():
    machine = _machine(btn_start=True)
    assert machine.check_error() is False
    assert machine.actual_state is MachineState.START


def test_calibration_machine_blinks_green_in_init():
    machine = _machine(MachineType.CALIBRATION)
    machine.automaton_step()
    assert machine.actor_state[Actor.LAMP_GREEN] is True
    assert machine.blink[Blink.GREEN] is True


def test_other_machine_setters():
    machine = _machine()
    machine.set_other_belt_free(True)
    machine.set_other_metal_expected(False)
    assert machine.other.belt_free is True
    assert machine.other.metal_expected is False


def test_calibration_data_reset():
    data = CalibrationData()
    data.fast_step = 1.0
    data.height_no_puk_raw = 1
    data.reset()
    assert data == CalibrationData()
    assert data.fast_step == DEFAULT_FAST_STEP


def test_sensor_data_from_flags_maps_indices():
    flags = [False] * SENSOR_COUNT
    flags[Sensor.METAL] = True
    flags[Sensor.BTN_EMERGENCY] = True
    data = SensorData.from_flags(flags)
    assert data.metal is True
    assert data.btn_emergency is True
    assert data.lb_start is False


def test_sensor_data_wrong_length():
    with pytest.raises(ValueError):
        SensorData.from_flags([True] * (SENSOR_COUNT - 1))


def test_base_is_abstract():
    with pytest.raises(TypeError):
        StateMachine(CalibrationData())