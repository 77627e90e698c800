"""Decoding of the three-bit height code milled into a workpiece."""

from __future__ import annotations

from collections import deque
from enum import Enum, auto

BIN0 = 22000
BIN1 = 19000
MAX_HEIGHT = 25000
MAX_VALUE_NUMBER = 8
NORM_ROUND_TOLERANCE = 500
PUK_HEIGHT_TOLERANCE = 1000


class HeightState(Enum):
    ENTRY = auto()
    VALUE1 = auto()
    TRANS1 = auto()
    VALUE2 = auto()
    TRANS2 = auto()
    VALUE3 = auto()
    CALC = auto()
    NO_CODE = auto()
    END = auto()


_AFTER = {
    HeightState.VALUE1: HeightState.TRANS1,
    HeightState.TRANS1: HeightState.VALUE2,
    HeightState.VALUE2: HeightState.TRANS2,
    HeightState.TRANS2: HeightState.VALUE3,
    HeightState.VALUE3: HeightState.CALC,
}

_SAMPLE_LIMIT = {
    HeightState.VALUE1: MAX_VALUE_NUMBER,
    HeightState.VALUE2: MAX_VALUE_NUMBER * 2,
    HeightState.VALUE3: MAX_VALUE_NUMBER * 3,
}


def _cdiv(a: int, b: int) -> int:
    """Integer division truncating toward zero."""
    q = abs(a) // b
    return q if a >= 0 else -q


def _round_thousand(value: int) -> int:
    base = _cdiv(value, 1000) * 1000
    return base + 1000 if value - base >= NORM_ROUND_TOLERANCE else base


def _in_code_band(height: int) -> bool:
    return BIN1 - PUK_HEIGHT_TOLERANCE <= height < MAX_HEIGHT - PUK_HEIGHT_TOLERANCE


def _is_gap(height: int) -> bool:
    return height >= MAX_HEIGHT - PUK_HEIGHT_TOLERANCE


def _bit_of(height: int) -> bool:
    if BIN0 - PUK_HEIGHT_TOLERANCE <= height <= BIN0 + PUK_HEIGHT_TOLERANCE:
        return False
    return BIN1 - PUK_HEIGHT_TOLERANCE <= height <= BIN1 + PUK_HEIGHT_TOLERANCE


class HeightMeasureStateMachine:
    """Collects height samples over three code steps and decodes the result.

    ``result`` is -1 while no code has been read or the workpiece carries none.
    """

    def __init__(self) -> None:
        self.state = HeightState.ENTRY
        self.height = -1
        self.result = -1
        self._bits = [False, False, False]
        self._samples: deque[int] = deque()
        self._output = [0, 0, 0]

    def update_states(self, height: int) -> None:
        """Advance the state for a new height sample."""
        self.height = height
        state = self.state
        if state is HeightState.ENTRY:
            self.state = HeightState.VALUE1 if _in_code_band(height) else HeightState.NO_CODE
        elif state in (HeightState.VALUE1, HeightState.VALUE2, HeightState.VALUE3):
            if _is_gap(height):
                self.state = _AFTER[state]
        elif state in (HeightState.TRANS1, HeightState.TRANS2):
            if _in_code_band(height):
                self.state = _AFTER[state]
        elif state in (HeightState.CALC, HeightState.NO_CODE):
            self.state = HeightState.END

    def run_states(self) -> None:
        """Act on the current state: record a sample or compute the code."""
        state = self.state
        limit = _SAMPLE_LIMIT.get(state)
        if limit is not None:
            if len(self._samples) < limit:
                self._samples.append(self.height)
        elif state is HeightState.CALC:
            self._calculate()
        elif state is HeightState.NO_CODE:
            self.result = -1

    def _calculate(self) -> None:
        for index, keep, bit in ((0, MAX_VALUE_NUMBER * 2, 2), (1, MAX_VALUE_NUMBER, 1), (2, 0, 0)):
            total = 0
            while len(self._samples) > keep:
                total += self._samples.popleft()
            mid = _round_thousand(_cdiv(total, MAX_VALUE_NUMBER))
            self._output[index] = mid
            self._bits[bit] = _bit_of(mid)
        result = 0
        for bit in self._bits:
            result = (result << 1) | int(bit)
        self.result = result

    def reset(self) -> None:
        """Return to the entry state and forget the last result."""
        self.state = HeightState.ENTRY
        self.result = -1

    def height_output(self, index: int) -> int:
        """Rounded mean height of code step ``index`` (0, 1 or 2)."""
        return self._output[index]