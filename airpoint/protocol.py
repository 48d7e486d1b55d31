"""
Binary command protocol shared by the Wi-Fi and Bluetooth transports.

Every frame starts with a one-byte opcode. Numeric fields are little-endian
float32/int32 at fixed offsets; text payloads are an int32 length followed
by that many UTF-8 bytes. The decoder is the trust boundary for untrusted
client bytes and never raises.
"""

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Union

_FLOAT = struct.Struct("<f")
_INT = struct.Struct("<i")
_PAIR = struct.Struct("<ff")


class Opcode(IntEnum):
    MOVE = 1
    LEFT_CLICK = 2
    RIGHT_CLICK = 3
    SCROLL = 4
    SHORTCUT = 5
    OPEN_TARGET = 6
    SHUTDOWN = 7
    LEFT_DOWN = 8
    LEFT_UP = 9
    ZOOM = 10
    RESTART = 11
    LOCK = 12
    TEXT_INPUT = 20
    KEY_COMMAND = 21


@dataclass(frozen=True)
class Move:
    dx: float
    dy: float


@dataclass(frozen=True)
class LeftClick:
    pass


@dataclass(frozen=True)
class RightClick:
    pass


@dataclass(frozen=True)
class Scroll:
    amount: float


@dataclass(frozen=True)
class Shortcut:
    code: int


@dataclass(frozen=True)
class OpenTarget:
    text: str


@dataclass(frozen=True)
class Shutdown:
    pass


@dataclass(frozen=True)
class LeftDown:
    pass


@dataclass(frozen=True)
class LeftUp:
    pass


@dataclass(frozen=True)
class Zoom:
    delta: float


@dataclass(frozen=True)
class Restart:
    pass


@dataclass(frozen=True)
class Lock:
    pass


@dataclass(frozen=True)
class TextInput:
    text: str


@dataclass(frozen=True)
class KeyCommand:
    code: int


Command = Union[
    Move, LeftClick, RightClick, Scroll, Shortcut, OpenTarget, Shutdown,
    LeftDown, LeftUp, Zoom, Restart, Lock, TextInput, KeyCommand,
]

# Opcodes whose frame is just the opcode byte
_BARE = {
    Opcode.LEFT_CLICK: LeftClick(),
    Opcode.RIGHT_CLICK: RightClick(),
    Opcode.SHUTDOWN: Shutdown(),
    Opcode.LEFT_DOWN: LeftDown(),
    Opcode.LEFT_UP: LeftUp(),
    Opcode.RESTART: Restart(),
    Opcode.LOCK: Lock(),
}

# Minimum frame length, opcode byte included. Text frames additionally
# need the declared payload length.
MIN_LENGTH = {
    Opcode.MOVE: 9,
    Opcode.SCROLL: 5,
    Opcode.SHORTCUT: 2,
    Opcode.OPEN_TARGET: 5,
    Opcode.ZOOM: 5,
    Opcode.TEXT_INPUT: 5,
    Opcode.KEY_COMMAND: 5,
    **{op: 1 for op in _BARE},
}


def _read_text(buffer: bytes, length: int) -> Optional[str]:
    (size,) = _INT.unpack_from(buffer, 1)
    if size < 0 or length < 5 + size:
        return None
    return bytes(buffer[5:5 + size]).decode("utf-8", errors="replace")


def decode(opcode: int, buffer: bytes, length: int) -> Optional[Command]:
    """
    Decode one command from the first `length` bytes of `buffer`.

    Args:
        opcode: Opcode byte (normally ``buffer[0]``)
        buffer: Raw receive buffer; may be larger than `length`
        length: Number of valid bytes in `buffer`

    Returns:
        The decoded command, or None for unknown opcodes and frames
        shorter than the opcode requires.
    """
    length = min(length, len(buffer))
    try:
        op = Opcode(opcode)
    except ValueError:
        return None

    if length < MIN_LENGTH[op]:
        return None

    if op in _BARE:
        return _BARE[op]
    if op == Opcode.MOVE:
        dx, dy = _PAIR.unpack_from(buffer, 1)
        return Move(dx, dy)
    if op == Opcode.SCROLL:
        return Scroll(_FLOAT.unpack_from(buffer, 1)[0])
    if op == Opcode.ZOOM:
        return Zoom(_FLOAT.unpack_from(buffer, 1)[0])
    if op == Opcode.SHORTCUT:
        return Shortcut(buffer[1])
    if op == Opcode.KEY_COMMAND:
        return KeyCommand(_INT.unpack_from(buffer, 1)[0])

    text = _read_text(buffer, length)
    if text is None:
        return None
    if op == Opcode.OPEN_TARGET:
        return OpenTarget(text)
    return TextInput(text)


def _text_frame(op: Opcode, text: str) -> bytes:
    data = text.encode("utf-8")
    return bytes([op]) + _INT.pack(len(data)) + data


def encode(command: Command) -> bytes:
    """Encode a command into its wire frame (client side of the protocol)."""
    if isinstance(command, Move):
        return bytes([Opcode.MOVE]) + _PAIR.pack(command.dx, command.dy)
    if isinstance(command, Scroll):
        return bytes([Opcode.SCROLL]) + _FLOAT.pack(command.amount)
    if isinstance(command, Zoom):
        return bytes([Opcode.ZOOM]) + _FLOAT.pack(command.delta)
    if isinstance(command, Shortcut):
        return bytes([Opcode.SHORTCUT, command.code & 0xFF])
    if isinstance(command, KeyCommand):
        return bytes([Opcode.KEY_COMMAND]) + _INT.pack(command.code)
    if isinstance(command, OpenTarget):
        return _text_frame(Opcode.OPEN_TARGET, command.text)
    if isinstance(command, TextInput):
        return _text_frame(Opcode.TEXT_INPUT, command.text)
    for op, bare in _BARE.items():
        if command == bare:
            return bytes([op])
    raise TypeError(f"Not a command: {command!r}")
