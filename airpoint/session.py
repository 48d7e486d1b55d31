"""
One accepted connection: read, decode, dispatch until the peer goes away.
"""

import asyncio
import logging
import socket
from enum import Enum
from typing import Callable, Optional, Protocol

from . import protocol
from .dispatcher import CommandDispatcher

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 8192
WAITING_TEXT = "Waiting for connection..."


class Stream(Protocol):
    async def read_into(self, buffer: bytearray) -> int: ...

    def close(self) -> None: ...


class SocketStream:
    """Adapt a connected non-blocking socket (TCP or RFCOMM) to Stream."""

    def __init__(self, sock: socket.socket):
        self.sock = sock
        self.sock.setblocking(False)

    async def read_into(self, buffer: bytearray) -> int:
        loop = asyncio.get_running_loop()
        return await loop.sock_recv_into(self.sock, buffer)

    def close(self) -> None:
        self.sock.close()


class SessionState(Enum):
    IDLE = "idle"
    READING = "reading"
    DECODING = "decoding"
    DISPATCHING = "dispatching"
    CLOSED = "closed"


class ConnectionSession:
    """
    Service one peer until its stream ends.

    Each read is decoded on its own: byte 0 is the opcode and the frame is
    whatever that read returned. A command split across two reads is not
    reassembled and its tail is dropped.

    The receive buffer is reused; its contents are only valid until the
    next read starts.
    """

    def __init__(
        self,
        stream: Stream,
        dispatcher: CommandDispatcher,
        report: Callable[[str, bool], None],
        is_running: Callable[[], bool],
        buffer_size: int = DEFAULT_BUFFER_SIZE,
    ):
        self.stream = stream
        self.dispatcher = dispatcher
        self.report = report
        self.is_running = is_running
        self.buffer = bytearray(buffer_size)
        self.state = SessionState.IDLE
        self.commands_seen = 0

    async def run(self) -> None:
        """Read until end of data or an I/O error, then close."""
        try:
            while True:
                self.state = SessionState.READING
                n = await self.stream.read_into(self.buffer)
                if n <= 0:
                    break
                self._handle(n)
        except (OSError, ConnectionError) as e:
            logger.debug("Stream closed: %s", e)
        finally:
            self._close()

    def _handle(self, length: int) -> None:
        self.state = SessionState.DECODING
        command: Optional[protocol.Command] = protocol.decode(self.buffer[0], self.buffer, length)
        if command is None:
            return
        self.state = SessionState.DISPATCHING
        self.commands_seen += 1
        self.dispatcher.dispatch(command)

    def _close(self) -> None:
        self.state = SessionState.CLOSED
        try:
            self.stream.close()
        except OSError:
            pass
        if self.is_running():
            self.report(WAITING_TEXT, False)
