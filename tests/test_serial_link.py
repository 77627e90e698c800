from collections import deque

from beltcontrol.puk import MsgHeader, MsgType, Puk, SerialMsg
from beltcontrol.serial_link import CHECK_SUM, MsgQueue, SerialController


class FakePort:
    def __init__(self, incoming=()):
        self.incoming = deque(incoming)
        self.written = []
        self.closed = False

    def read(self, size):
        return self.incoming.popleft() if self.incoming else b""

    def write(self, data):
        self.written.append(data)
        return len(data)

    def close(self):
        self.closed = True


def frame(msg_type, msg_number=0, ack_number=0, check_sum=CHECK_SUM, puk_id=0):
    return SerialMsg(
        MsgHeader(type=msg_type, msg_number=msg_number, ack_number=ack_number, check_sum=check_sum),
        Puk(id=puk_id),
    ).to_bytes()


def last_written(port):
    return SerialMsg.from_bytes(port.written[-1])


def test_queue_front_of_empty_queue_has_type_minus_one():
    assert MsgQueue().front().header.type == -1


def test_queue_is_fifo():
    queue = MsgQueue()
    queue.push(SerialMsg(MsgHeader(type=MsgType.RAMP_FULL)))
    queue.push(SerialMsg(MsgHeader(type=MsgType.RAMP_FREE)))
    assert len(queue) == 2
    assert queue.front().header.type == MsgType.RAMP_FULL
    queue.pop()
    assert queue.front().header.type == MsgType.RAMP_FREE


def test_queue_stores_copies():
    queue = MsgQueue()
    msg = SerialMsg(MsgHeader(type=MsgType.BELT_FREE))
    queue.push(msg)
    msg.header.type = MsgType.BELT_FULL
    assert queue.front().header.type == MsgType.BELT_FREE


def test_queue_pop_and_clear():
    queue = MsgQueue()
    queue.pop()
    queue.push(SerialMsg())
    queue.push(SerialMsg())
    queue.clear()
    assert len(queue) == 0


def test_constructor_drains_pending_input():
    port = FakePort([frame(MsgType.PUK), frame(MsgType.RAMP_FULL)])
    controller = SerialController(port)
    assert not port.incoming
    assert controller.receive_empty()
    assert not controller.is_connected()


def test_send_ping_when_idle():
    port = FakePort()
    controller = SerialController(port)
    controller.send()
    assert len(port.written[-1]) == SerialMsg.SIZE
    sent = last_written(port)
    assert sent.header.type == MsgType.PING
    assert sent.header.ack_number == -1
    assert sent.header.check_sum == CHECK_SUM


def test_send_queued_message_with_number():
    port = FakePort()
    controller = SerialController(port)
    controller.send_msg(SerialMsg(MsgHeader(type=MsgType.PUK), Puk(id=7)))
    controller.send()
    sent = last_written(port)
    assert sent.header.type == MsgType.PUK
    assert sent.header.msg_number == controller.msg_number
    assert sent.puk.id == 7


def test_receive_nothing_disconnects():
    port = FakePort()
    controller = SerialController(port)
    controller.receive()
    assert controller.is_connected() is False


def test_receive_partial_frame_counts_as_connected():
    port = FakePort()
    controller = SerialController(port)
    port.incoming.append(frame(MsgType.PUK)[:5])
    controller.receive()
    assert controller.is_connected() is True
    assert controller.receive_empty()


def test_receive_bad_checksum_is_ignored():
    port = FakePort()
    controller = SerialController(port)
    port.incoming.append(frame(MsgType.PUK, check_sum=CHECK_SUM + 1))
    controller.receive()
    assert controller.is_connected() is False
    assert controller.receive_empty()


def test_receive_message_acknowledges_and_queues():
    calls = []
    port = FakePort()
    controller = SerialController(port, notify=lambda: calls.append(1))
    controller.send_msg(SerialMsg(MsgHeader(type=MsgType.BELT_FREE)))
    before = controller.msg_number
    port.incoming.append(frame(MsgType.PUK, msg_number=42, ack_number=before, puk_id=9))
    controller.receive()
    assert calls == [1]
    assert controller.msg_number == before + 1
    controller.send()
    sent = last_written(port)
    assert sent.header.type == MsgType.PING
    assert sent.header.ack_number == 42
    received = controller.next_msg()
    assert received.header.type == MsgType.PUK
    assert received.puk.id == 9
    assert controller.receive_empty()


def test_ping_with_other_ack_keeps_message():
    port = FakePort()
    controller = SerialController(port)
    controller.send_msg(SerialMsg(MsgHeader(type=MsgType.RAMP_FULL)))
    port.incoming.append(frame(MsgType.PING, ack_number=controller.msg_number + 5))
    controller.receive()
    controller.send()
    assert last_written(port).header.type == MsgType.RAMP_FULL


def test_ping_with_matching_ack_releases_message():
    port = FakePort()
    controller = SerialController(port)
    controller.send_msg(SerialMsg(MsgHeader(type=MsgType.RAMP_FULL)))
    port.incoming.append(frame(MsgType.PING, ack_number=controller.msg_number))
    controller.receive()
    controller.send()
    assert last_written(port).header.type == MsgType.PING
    assert controller.receive_empty()


def test_unknown_type_is_ignored():
    calls = []
    port = FakePort()
    controller = SerialController(port, notify=lambda: calls.append(1))
    port.incoming.append(frame(MsgType.METAL_REJECTED + 1))
    controller.receive()
    assert controller.is_connected() is True
    assert controller.receive_empty()
    assert calls == []


def test_next_msg_without_messages_is_default():
    controller = SerialController(FakePort())
    assert controller.next_msg() == SerialMsg()


def test_reset_clears_queues():
    port = FakePort()
    controller = SerialController(port)
    controller.send_msg(SerialMsg(MsgHeader(type=MsgType.RAMP_FULL)))
    port.incoming.append(frame(MsgType.BELT_FULL, ack_number=controller.msg_number + 1))
    controller.receive()
    controller.reset()
    assert controller.receive_empty()
    controller.send()
    assert last_written(port).header.type == MsgType.PING


def test_run_until_stopped():
    holder = []
    port = FakePort()
    controller = SerialController(port, notify=lambda: holder[0].stop())
    holder.append(controller)
    port.incoming.append(frame(MsgType.EMERGENCY_STOP, ack_number=-7))
    controller.run()
    assert len(port.written) == 1
    assert controller.next_msg().header.type == MsgType.EMERGENCY_STOP


def test_context_manager_closes_port():
    port = FakePort()
    with SerialController(port) as controller:
        controller.send()
    assert port.closed is True