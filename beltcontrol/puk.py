"""Puk record and the serial message frame that carries it."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import ClassVar

_PUK = struct.Struct("<14i")
_HEADER = struct.Struct("<bbiii")


def _check_size(data: bytes, size: int, what: str) -> None:
    if len(data) != size:
        raise ValueError(f"{what} needs {size} bytes, got {len(data)}")


@dataclass
class Puk:
    """Everything recorded about one workpiece on its way over both belts."""

    start_time: int = 0
    id: int = 0
    code_first: int = 0
    code_second: int = 0
    height_first: list[int] = field(default_factory=lambda: [0, 0, 0])
    height_second: list[int] = field(default_factory=lambda: [0, 0, 0])
    height_tik_first: int = 0
    height_tik_second: int = 0
    tiks_first: int = 0
    tiks_second: int = 0

    SIZE: ClassVar[int] = _PUK.size

    def to_bytes(self) -> bytes:
        """Pack the record in its packed wire layout."""
        if len(self.height_first) != 3 or len(self.height_second) != 3:
            raise ValueError("height lists must hold exactly three values")
        try:
            return _PUK.pack(
                self.start_time,
                self.id,
                self.code_first,
                self.code_second,
                *self.height_first,
                *self.height_second,
                self.height_tik_first,
                self.height_tik_second,
                self.tiks_first,
                self.tiks_second,
            )
        except struct.error as exc:
            raise ValueError(str(exc)) from exc

    @classmethod
    def from_bytes(cls, data: bytes) -> Puk:
        """Unpack a record from its wire layout."""
        _check_size(data, cls.SIZE, "Puk")
        v = _PUK.unpack(data)
        return cls(v[0], v[1], v[2], v[3], list(v[4:7]), list(v[7:10]), *v[10:])


class MsgType(IntEnum):
    """Type of a serial message."""

    PING = 0
    PUK = 1
    EMERGENCY_STOP = 2
    EMERGENCY_STOP_CLEAR = 3
    RAMP_FULL = 4
    RAMP_FREE = 5
    BELT_FREE = 6
    BELT_FULL = 7
    BELT_STATUS_REQUEST = 8
    SEND_WARNING = 9
    METAL_ACCEPTED = 10
    METAL_REJECTED = 11


@dataclass
class MsgHeader:
    """Header of a serial frame."""

    type: int = MsgType.PING
    version: int = 0
    msg_number: int = 0
    ack_number: int = 0
    check_sum: int = 0

    SIZE: ClassVar[int] = _HEADER.size

    def to_bytes(self) -> bytes:
        """Pack the header in its wire layout."""
        try:
            return _HEADER.pack(
                self.type, self.version, self.msg_number, self.ack_number, self.check_sum
            )
        except struct.error as exc:
            raise ValueError(str(exc)) from exc

    @classmethod
    def from_bytes(cls, data: bytes) -> MsgHeader:
        """Unpack a header from its wire layout."""
        _check_size(data, cls.SIZE, "MsgHeader")
        return cls(*_HEADER.unpack(data))


@dataclass
class SerialMsg:
    """A full serial frame: header followed by a puk record."""

    header: MsgHeader = field(default_factory=MsgHeader)
    puk: Puk = field(default_factory=Puk)

    SIZE: ClassVar[int] = MsgHeader.SIZE + Puk.SIZE

    def to_bytes(self) -> bytes:
        """Pack the frame in its wire layout."""
        return self.header.to_bytes() + self.puk.to_bytes()

    @classmethod
    def from_bytes(cls, data: bytes) -> SerialMsg:
        """Unpack a frame from its wire layout."""
        _check_size(data, cls.SIZE, "SerialMsg")
        return cls(
            MsgHeader.from_bytes(data[: MsgHeader.SIZE]),
            Puk.from_bytes(data[MsgHeader.SIZE :]),
        )