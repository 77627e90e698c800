"""Message handling of the activity light and pulse receiver clients."""

from __future__ import annotations

from .messages import (
    BLINK_COUNT,
    Actor,
    Blink,
    ClientId,
    IsrSource,
    Message,
    PulseCode,
    PulseType,
    Sensor,
)

_LAMPS = {
    Blink.RED: Actor.LAMP_RED,
    Blink.YELLOW: Actor.LAMP_YELLOW,
    Blink.GREEN: Actor.LAMP_GREEN,
}


def initial_message() -> Message:
    """The message a client starts with: nothing set, emergency button released."""
    msg = Message()
    msg.sensor_data[Sensor.BTN_EMERGENCY] = True
    msg.height_sensor = 0
    msg.pulse_type = int(PulseType.NONE)
    return msg


def route_pulse(msg: Message, code: int, value: int) -> Message:
    """Address a message according to a received pulse ``code`` and ``value``."""
    out = msg.copy()
    out.sender_id = ClientId.PULSE_RECEIVER
    if code == PulseCode.ISR:
        out.receiver_id = ClientId.HARDWARE
        if value == IsrSource.GPIO:
            out.pulse_type = PulseType.GPIO_ISR
        elif value == IsrSource.ADC:
            out.pulse_type = PulseType.ADC_ISR
    elif code == PulseCode.TIMER_AL:
        out.receiver_id = ClientId.ACTIVITY_LIGHT
        out.pulse_type = PulseType.AL_TIMER
    elif code == PulseCode.TIMER_TIK:
        out.receiver_id = ClientId.MAIN
        out.pulse_type = PulseType.TIK_TIMER
    elif code == PulseCode.SERIAL:
        out.receiver_id = ClientId.MAIN
        out.pulse_type = PulseType.SERIAL
    return out


class ActivityLightClient:
    """Keeps the signal lamps and makes the blinking ones toggle on each timer pulse."""

    def __init__(self) -> None:
        self.blink = [False] * BLINK_COUNT
        self.lamp_status = [False] * BLINK_COUNT

    def work(self, msg: Message) -> Message:
        """Handle one message and return the reply to send on."""
        out = msg.copy()
        if out.sender_id == ClientId.HARDWARE:
            for lamp, actor in _LAMPS.items():
                self.blink[lamp] = out.blink[lamp]
                if self.blink[lamp]:
                    out.actor_status[actor] = self.lamp_status[lamp]
                else:
                    self.lamp_status[lamp] = out.actor_status[actor]
            out.receiver_id = ClientId.HARDWARE
        elif out.sender_id == ClientId.PULSE_RECEIVER:
            for lamp, actor in _LAMPS.items():
                if self.blink[lamp]:
                    self.lamp_status[lamp] = not self.lamp_status[lamp]
                out.actor_status[actor] = self.lamp_status[lamp]
            out.receiver_id = ClientId.HARDWARE
        else:
            out.receiver_id = ClientId.EMPTY
        out.sender_id = ClientId.ACTIVITY_LIGHT
        return out