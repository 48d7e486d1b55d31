"""
Transport acceptors: a TCP listener for Wi-Fi and an RFCOMM listener for
Bluetooth. Both run the same sequential accept loop and speak the same
binary protocol.
"""

import asyncio
import logging
import re
import shutil
import socket
import subprocess
import uuid
from enum import Enum
from typing import Callable, List, Optional

from .dispatcher import CommandDispatcher
from .session import DEFAULT_BUFFER_SIZE, ConnectionSession, SocketStream, Stream

logger = logging.getLogger(__name__)

DEFAULT_PORT = 45000
# Serial Port Profile; any SPP client can discover it
SPP_UUID = uuid.UUID("00001101-0000-1000-8000-00805F9B34FB")

StatusCallback = Callable[[str, bool], None]


class StartResult(Enum):
    STARTED = "started"
    FAILED = "failed"
    RADIO_OFF = "radio_off"
    NO_ADAPTER = "no_adapter"


class RadioState(Enum):
    READY = "ready"
    NO_ADAPTER = "no_adapter"
    RADIO_OFF = "radio_off"
    UNKNOWN = "unknown"


class Acceptor:
    """
    Accept peers one at a time and run each session to completion.

    Subclasses provide `_open()`, `_accept()` and `_close_listener()`.
    """

    name = "acceptor"
    ready_text = "Ready for connection"
    connected_text = "Connected!"

    def __init__(
        self,
        dispatcher: CommandDispatcher,
        report: StatusCallback,
        retry_delay: float = 1.0,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
    ):
        self.dispatcher = dispatcher
        self.report = report
        self.retry_delay = retry_delay
        self.buffer_size = buffer_size
        self.running = False
        self.connected = False
        self._task: Optional[asyncio.Task] = None

    async def _open(self) -> StartResult:
        raise NotImplementedError

    async def _accept(self) -> Stream:
        raise NotImplementedError

    def _close_listener(self) -> None:
        pass

    async def start(self) -> StartResult:
        """Open the listener and spawn the accept loop."""
        if self.running:
            return StartResult.STARTED
        result = await self._open()
        if result is not StartResult.STARTED:
            return result

        self.running = True
        self.report(self.ready_text, False)
        self._task = asyncio.create_task(self._accept_loop(), name=f"{self.name}-accept")
        return result

    async def stop(self) -> None:
        """Stop accepting, drop the active peer and release the listener. Idempotent."""
        self.running = False
        self.connected = False
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        self._close_listener()

    async def _accept_loop(self) -> None:
        while self.running:
            try:
                stream = await self._accept()
            except OSError as e:
                if not self.running:
                    break
                logger.warning("%s accept failed: %s", self.name, e)
                self.report(f"Accept failed: {e}", False)
                await asyncio.sleep(self.retry_delay)
                continue

            self.connected = True
            self.report(self.connected_text, True)
            session = ConnectionSession(
                stream,
                self.dispatcher,
                self.report,
                lambda: self.running,
                buffer_size=self.buffer_size,
            )
            try:
                await session.run()
            finally:
                self.connected = False
            logger.info("%s session ended after %d commands", self.name, session.commands_seen)


class TcpAcceptor(Acceptor):
    """Wi-Fi transport: TCP listener on a fixed port, all interfaces."""

    name = "wifi"
    ready_text = "Ready for Wi-Fi Connection"
    connected_text = "Connected via Wi-Fi!"

    def __init__(self, dispatcher, report, host: str = "0.0.0.0", port: int = DEFAULT_PORT, **kwargs):
        super().__init__(dispatcher, report, **kwargs)
        self.host = host
        self.port = port
        self._listener: Optional[socket.socket] = None

    @property
    def bound_port(self) -> int:
        if self._listener is None:
            return self.port
        return self._listener.getsockname()[1]

    async def _open(self) -> StartResult:
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            listener.bind((self.host, self.port))
            listener.listen(1)
            listener.setblocking(False)
        except OSError as e:
            listener.close()
            logger.error("Cannot listen on %s:%d: %s", self.host, self.port, e)
            self.report(f"Wi-Fi Error: {e}", False)
            return StartResult.FAILED
        self._listener = listener
        logger.info("Listening on %s:%d", self.host, self.bound_port)
        return StartResult.STARTED

    async def _accept(self) -> Stream:
        if self._listener is None:
            raise OSError("listener closed")
        loop = asyncio.get_running_loop()
        conn, addr = await loop.sock_accept(self._listener)
        try:
            conn.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except OSError:
            conn.close()
            raise
        logger.info("Wi-Fi peer connected: %s:%d", addr[0], addr[1])
        return SocketStream(conn)

    def _close_listener(self) -> None:
        if self._listener is not None:
            self._listener.close()
            self._listener = None


class BluezRadio:
    """Bluetooth adapter queries and SDP advertisement through BlueZ tools."""

    def power_state(self) -> RadioState:
        """Report whether a controller exists and is powered."""
        path = shutil.which("bluetoothctl")
        if not path:
            return RadioState.NO_ADAPTER
        try:
            result = subprocess.run(
                [path, "show"],
                capture_output=True,
                text=True,
                timeout=5,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug("bluetoothctl failed: %s", e)
            return RadioState.UNKNOWN
        return parse_show(result.stdout + result.stderr)

    def advertise(self, service_uuid: uuid.UUID, channel: int) -> bool:
        """Publish the service record so clients can find the channel."""
        if service_uuid != SPP_UUID:
            logger.warning("Cannot advertise custom service %s; clients must use channel %d",
                           service_uuid, channel)
            return False
        path = shutil.which("sdptool")
        if not path:
            logger.warning("sdptool not found; service %s not advertised", service_uuid)
            return False
        # Drop records left behind by an earlier run on this channel
        self.unadvertise(channel)
        try:
            subprocess.run(
                [path, "add", f"--channel={channel}", "SP"],
                check=True,
                capture_output=True,
                timeout=5,
            )
            return True
        except (OSError, subprocess.CalledProcessError, subprocess.TimeoutExpired) as e:
            logger.warning("Service advertisement failed: %s", e)
            return False

    def unadvertise(self, channel: int) -> int:
        """
        Remove the Serial Port records published for `channel`.

        Returns:
            Number of records removed
        """
        path = shutil.which("sdptool")
        if not path:
            return 0
        try:
            result = subprocess.run(
                [path, "browse", "local"],
                capture_output=True,
                text=True,
                timeout=5,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning("Cannot list service records: %s", e)
            return 0

        removed = 0
        for handle in find_spp_handles(result.stdout, channel):
            try:
                subprocess.run(
                    [path, "del", handle],
                    check=True,
                    capture_output=True,
                    timeout=5,
                )
                removed += 1
            except (OSError, subprocess.CalledProcessError, subprocess.TimeoutExpired) as e:
                logger.warning("Cannot remove service record %s: %s", handle, e)
        return removed


def find_spp_handles(output: str, channel: int) -> List[str]:
    """Record handles of Serial Port services on `channel` in `sdptool browse` output."""
    handles = []
    for block in re.split(r"\n\s*\n", output):
        handle = re.search(r"Service RecHandle:\s*(0x[0-9A-Fa-f]+)", block)
        on_channel = re.search(rf"Channel:\s*{channel}\b", block)
        if handle and on_channel and "(0x1101)" in block:
            handles.append(handle.group(1))
    return handles


def parse_show(output: str) -> RadioState:
    """Map `bluetoothctl show` output to a radio state."""
    if "No default controller" in output:
        return RadioState.NO_ADAPTER
    for line in output.splitlines():
        line = line.strip()
        if line.startswith("Powered:"):
            value = line.split(":", 1)[1].strip().lower()
            if value == "yes":
                return RadioState.READY
            if value == "no":
                return RadioState.RADIO_OFF
    return RadioState.UNKNOWN


class BluetoothAcceptor(Acceptor):
    """Bluetooth transport: RFCOMM listener advertised under a fixed UUID."""

    name = "bluetooth"
    ready_text = "Ready for Bluetooth Connection"
    connected_text = "Connected via Bluetooth!"

    def __init__(self, dispatcher, report, service_uuid: uuid.UUID = SPP_UUID,
                 channel: int = 1, radio: Optional[BluezRadio] = None, **kwargs):
        super().__init__(dispatcher, report, **kwargs)
        self.service_uuid = service_uuid
        self.service_name = str(service_uuid)
        self.channel = channel
        self.radio = radio or BluezRadio()
        self._listener: Optional[socket.socket] = None
        self._advertised = False

    async def check_radio(self) -> RadioState:
        state = await asyncio.to_thread(self.radio.power_state)
        if state is RadioState.NO_ADAPTER:
            self.report("Error: No Bluetooth Adapter found.", False)
        elif state is RadioState.RADIO_OFF:
            self.report("Bluetooth is OFF or Unavailable.", False)
        return state

    def _make_listener(self) -> socket.socket:
        family = getattr(socket, "AF_BLUETOOTH", None)
        if family is None:
            raise OSError("RFCOMM sockets are not supported on this platform")
        listener = socket.socket(family, socket.SOCK_STREAM, socket.BTPROTO_RFCOMM)
        try:
            listener.bind((socket.BDADDR_ANY, self.channel))
            listener.listen(1)
            listener.setblocking(False)
        except OSError:
            listener.close()
            raise
        return listener

    async def _open(self) -> StartResult:
        state = await self.check_radio()
        if state is RadioState.NO_ADAPTER:
            return StartResult.NO_ADAPTER
        if state is RadioState.RADIO_OFF:
            return StartResult.RADIO_OFF

        try:
            self._listener = self._make_listener()
        except OSError as e:
            logger.error("Cannot open RFCOMM channel %d: %s", self.channel, e)
            self.report(f"Bluetooth Error: {e}", False)
            return StartResult.FAILED

        self._advertised = await asyncio.to_thread(self.radio.advertise, self.service_uuid, self.channel)
        logger.info("Advertising %s on RFCOMM channel %d", self.service_name, self.channel)
        return StartResult.STARTED

    async def _accept(self) -> Stream:
        if self._listener is None:
            raise OSError("listener closed")
        loop = asyncio.get_running_loop()
        conn, addr = await loop.sock_accept(self._listener)
        logger.info("Bluetooth peer connected: %s", addr[0])
        return SocketStream(conn)

    async def stop(self) -> None:
        """Stop listening and withdraw the service record."""
        await super().stop()
        if self._advertised:
            self._advertised = False
            await asyncio.to_thread(self.radio.unadvertise, self.channel)

    def _close_listener(self) -> None:
        if self._listener is not None:
            self._listener.close()
            self._listener = None
