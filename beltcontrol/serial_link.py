"""Acknowledged exchange of frames with the controller of the other belt."""

from __future__ import annotations

import copy
import threading
from collections import deque
from typing import Callable, Optional, Protocol

from .puk import MsgHeader, MsgType, SerialMsg

CHECK_SUM = 15


class SerialPort(Protocol):
    """A byte stream whose ``read`` returns what arrived before its timeout."""

    def read(self, size: int) -> bytes: ...

    def write(self, data: bytes) -> object: ...


class MsgQueue:
    """Thread-safe queue of serial frames, holding copies."""

    def __init__(self) -> None:
        self._items: deque[SerialMsg] = deque()
        self._lock = threading.Lock()

    def front(self) -> SerialMsg:
        """A copy of the oldest frame, or a frame of type -1 if there is none."""
        with self._lock:
            if self._items:
                return copy.deepcopy(self._items[0])
        return SerialMsg(header=MsgHeader(type=-1))

    def pop(self) -> None:
        """Drop the oldest frame, if any."""
        with self._lock:
            if self._items:
                self._items.popleft()

    def push(self, msg: SerialMsg) -> None:
        with self._lock:
            self._items.append(copy.deepcopy(msg))

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class SerialController:
    """Sends queued frames until they are acknowledged and collects incoming ones.

    Every ``send`` writes one frame: the oldest unacknowledged one, or a ping.
    ``notify`` is called whenever a frame other than a ping has arrived.
    """

    def __init__(self, port: SerialPort, notify: Optional[Callable[[], None]] = None) -> None:
        self._port = port
        self._notify = notify if notify is not None else (lambda: None)
        while port.read(SerialMsg.SIZE):
            pass
        self._send_queue = MsgQueue()
        self._received_queue = MsgQueue()
        self._lock = threading.Lock()
        self._connected = False
        self._running = True
        self.ack_number = -1
        self.msg_number = 0
        self.version = 0

    def send_msg(self, msg: SerialMsg) -> None:
        """Queue a frame for sending."""
        self._send_queue.push(msg)

    def send(self) -> None:
        """Write the pending frame, or a ping if nothing is pending."""
        if len(self._send_queue):
            msg = self._send_queue.front()
            msg.header.msg_number = self.msg_number
        else:
            msg = SerialMsg(header=MsgHeader(type=MsgType.PING, version=0))
        msg.header.ack_number = self.ack_number
        msg.header.check_sum = CHECK_SUM
        self._port.write(msg.to_bytes())

    def _set_connected(self, connected: bool) -> None:
        with self._lock:
            self._connected = connected

    def _acknowledge(self, ack_number: int) -> None:
        if self.msg_number == ack_number:
            self._send_queue.pop()
            self.msg_number += 1

    def receive(self) -> None:
        """Read one frame and act on it."""
        data = self._port.read(SerialMsg.SIZE)
        if not data:
            self._set_connected(False)
            return
        if len(data) != SerialMsg.SIZE:
            self._set_connected(True)
            return
        received = SerialMsg.from_bytes(bytes(data))
        if received.header.check_sum != CHECK_SUM:
            return
        self._set_connected(True)
        msg_type = received.header.type
        if msg_type == MsgType.PING:
            self._acknowledge(received.header.ack_number)
        elif MsgType.PING < msg_type <= MsgType.METAL_REJECTED:
            self._acknowledge(received.header.ack_number)
            self.ack_number = received.header.msg_number
            self._received_queue.push(received)
            self._notify()

    def run(self) -> None:
        """Send and receive in turn until stopped."""
        while self._running:
            self.send()
            self.receive()

    def stop(self) -> None:
        self._running = False

    def next_msg(self) -> SerialMsg:
        """Take the oldest received frame, or an empty frame if there is none."""
        if len(self._received_queue):
            msg = self._received_queue.front()
            self._received_queue.pop()
            return msg
        return SerialMsg()

    def receive_empty(self) -> bool:
        return len(self._received_queue) == 0

    def is_connected(self) -> bool:
        with self._lock:
            return self._connected

    def reset(self) -> None:
        """Forget all pending and received frames."""
        self._send_queue.clear()
        self._received_queue.clear()

    def close(self) -> None:
        """Close the underlying port if it can be closed."""
        closer = getattr(self._port, "close", None)
        if closer is not None:
            closer()

    def __enter__(self) -> SerialController:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()