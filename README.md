# beltcontrol

Control logic for a two-belt sorting line. Workpieces ("puks") enter the
first belt. Their height profile is measured and decoded into a three-bit
code, they pass a metal sensor and a switch, and are then either sorted out
onto a ramp or handed over to the second belt. The two belts keep each other
informed over a serial link.

The package holds the decision-making part of such a line. It is plain
Python with no dependencies beyond the standard library.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Modules

- `beltcontrol.messages`: the `Actor`, `Sensor` and `Blink` indices, the
  `PulseType`, `ClientId`, `PulseCode` and `IsrSource` enums, and the
  `Message` record passed between the controller clients (`Message.copy()`
  returns an independent copy).
- `beltcontrol.puk`: the `Puk` record and the serial frame types `MsgType`,
  `MsgHeader` and `SerialMsg`. Each record has `to_bytes()` and
  `from_bytes()` for the packed little-endian wire layout. A value that does
  not fit, or data of the wrong length, raises `ValueError`.
- `beltcontrol.height`: `HeightMeasureStateMachine`. It samples the height
  sensor across the three code steps of a workpiece and decodes them into
  `result`, which is -1 when there is no code. `height_output(i)` gives the
  rounded mean height of step `i`.
- `beltcontrol.machine`: `CalibrationData` with built-in defaults and
  `reset()`, `SensorData` with `from_flags()`, `OtherMachine`, the
  `MachineType` and `MachineState` enums, and the abstract `StateMachine`
  base. The base handles the start, stop, reset, error and emergency-stop
  steps (`automaton_step()`, `check_error()`, `error_state()`, `reset()`).
- `beltcontrol.puk_machine`: `PukStateMachine` and `PukState`. The machine
  follows one workpiece on the first belt, checks its progress against the
  calibrated windows and says which actors it needs (`actor(index)`).
- `beltcontrol.belt1`: `FirstBeltMachine`. It keeps one queue of
  `PukStateMachine`s per belt section and merges their actor requests.
  `speed()` gives the belt movement per tick.
- `beltcontrol.belt2`: `SecondBeltMachine` and `SecondBeltState`. The second
  belt takes one workpiece at a time and runs through three sorting cycles.
- `beltcontrol.calibration`: `CalibrationMachine` and `CalState`. The machine
  drives one workpiece over the belt, measures travel times and raw heights,
  and writes the results into the shared `CalibrationData`.
- `beltcontrol.clients`: `ActivityLightClient`, which toggles the blinking
  lamps on each timer pulse, `initial_message()`, and `route_pulse()`, which
  addresses a message according to a pulse code.
- `beltcontrol.serial_link`: `MsgQueue`, a thread-safe frame queue, and
  `SerialController`. The controller sends queued frames (or pings) until
  they are acknowledged and collects incoming frames. It works over any
  object with `read(size)` and `write(data)`, and it can be used as a
  context manager that closes the port.
- `beltcontrol.devices`: `Pin`, plus `Motor`, `ActivityLight`, `Led`,
  `Switch` and `SensorBool`. These drive GPIO bits through an object you
  supply with `write_bit(port, bit)`, `clear_bit(port, bit)` and
  `get_pin_value(bit)`.
- `beltcontrol.supervisor`: `MachineSupervisor`. It feeds messages into the
  active belt machine and queues a serial frame for each status change. Holding
  the stop button for more than 300 ticks switches between the belt machine and
  the calibration machine.

## Example

Decoding a height profile (eight samples per code step, a gap between
steps):

```python
from beltcontrol.height import HeightMeasureStateMachine

machine = HeightMeasureStateMachine()
samples = (
    [19000] * 8 + [25000]
    + [22000] * 8 + [25000]
    + [19000] * 8 + [25000]
)
for height in samples:
    machine.update_states(height)
    machine.run_states()
print(machine.result)                                    # 5
print([machine.height_output(i) for i in range(3)])      # [19000, 22000, 19000]
```

Driving the supervisor needs a serial link object with `send_msg`,
`next_msg`, `receive_empty`, `is_connected` and `reset`. A
`SerialController` has all of these:

```python
from beltcontrol.messages import ClientId, Message, PulseType
from beltcontrol.serial_link import SerialController
from beltcontrol.supervisor import MachineSupervisor

link = SerialController(port)            # port: any object with read() and write()
supervisor = MachineSupervisor(link, second_belt=False)
reply = supervisor.work(
    Message(sender_id=ClientId.PULSE_RECEIVER, pulse_type=PulseType.TIK_TIMER)
)
```

## What it does not do

- It has no hardware access of its own. It does not map GPIO registers, read
  the ADC, attach interrupt handlers or open a serial device. You pass in the
  port objects used by `beltcontrol.devices` and `SerialController`.
- It has no dispatcher, timers or threads to connect the clients. You call
  `MachineSupervisor.work`, `ActivityLightClient.work` and
  `SerialController.run` (or `send`/`receive`) from your own loop.
- It has no command-line program.