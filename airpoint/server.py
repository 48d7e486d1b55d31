"""
AirPoint server supervisor.
Runs exactly one transport acceptor (Wi-Fi or Bluetooth) at a time and
reports status and pairing information to the UI.
"""

import asyncio
import logging
import signal
from dataclasses import dataclass
from typing import Callable, Optional

from .config import Config, TransportMode, get_config, get_local_ip
from .dispatcher import CommandDispatcher
from .input_handler import InputActuator, InputHandler
from .launcher import Launcher, ProcessLauncher
from .transport import Acceptor, BluetoothAcceptor, StartResult, TcpAcceptor

logger = logging.getLogger(__name__)

BLUETOOTH_PAYLOAD = "BLUETOOTH_MODE"


@dataclass(frozen=True)
class StatusEvent:
    text: str
    connected: bool


def print_status(event: StatusEvent) -> None:
    marker = "🟢" if event.connected else "🟠"
    print(f"{marker} {event.text}")


def print_pairing(address: str, payload: str) -> None:
    print(f"\n📍 {address}")
    if payload:
        print(f"   Pairing code: {payload}")
    print()


class ServerSupervisor:
    """
    Owns the active acceptor and its lifecycle.

    Switching transport always stops the running acceptor before the
    next one starts, so the two listeners never run together.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        actuator: Optional[InputActuator] = None,
        launcher: Optional[Launcher] = None,
        on_status: Callable[[StatusEvent], None] = print_status,
        on_pairing: Callable[[str, str], None] = print_pairing,
        preference: Optional[Callable[[], TransportMode]] = None,
        acceptor_factory: Optional[Callable[[TransportMode], Acceptor]] = None,
        config_loader: Optional[Callable[[], Config]] = None,
    ):
        """
        Initialize the supervisor.

        Args:
            preference: Returns the transport to run; defaults to the config
            config_loader: Re-reads configuration on reload; None keeps the
                current config and only re-reads the preference
        """
        self.config = config or get_config()
        self.config_loader = config_loader
        self.preference = preference or (lambda: self.config.transport_mode)
        self.on_status = on_status
        self.on_pairing = on_pairing
        self.acceptor_factory = acceptor_factory or self._make_acceptor

        # Actuator and launcher instances (lazy loaded)
        self._actuator = actuator
        self._launcher = launcher
        self._dispatcher: Optional[CommandDispatcher] = None

        self.acceptor: Optional[Acceptor] = None
        self.mode: Optional[TransportMode] = None
        self.last_status: Optional[StatusEvent] = None

        self._switch_lock = asyncio.Lock()
        self._reload_task: Optional[asyncio.Task] = None
        self.shutdown_event = asyncio.Event()

    @property
    def connected(self) -> bool:
        return self.acceptor is not None and self.acceptor.connected

    def _get_dispatcher(self) -> CommandDispatcher:
        """Get or create the dispatcher and its collaborators."""
        if self._dispatcher is None:
            if self._actuator is None:
                self._actuator = InputHandler()
            if self._launcher is None:
                self._launcher = ProcessLauncher()
            self._dispatcher = CommandDispatcher(self._actuator, self._launcher)
        return self._dispatcher

    def report(self, text: str, connected: bool) -> None:
        """Push a status event to the UI. May be called from any task."""
        event = StatusEvent(text, connected)
        self.last_status = event
        logger.debug("Status: %s (connected=%s)", text, connected)
        self.on_status(event)

    def _make_acceptor(self, mode: TransportMode) -> Acceptor:
        kwargs = dict(
            retry_delay=self.config.accept_retry_seconds,
            buffer_size=self.config.buffer_size,
        )
        if mode is TransportMode.STREAM_SOCKET:
            return TcpAcceptor(
                self._get_dispatcher(), self.report,
                host=self.config.host, port=self.config.port, **kwargs,
            )
        return BluetoothAcceptor(
            self._get_dispatcher(), self.report,
            service_uuid=self.config.service_uuid, channel=self.config.channel, **kwargs,
        )

    async def stop_acceptor(self) -> None:
        """Stop the active acceptor, if any."""
        acceptor, self.acceptor = self.acceptor, None
        if acceptor is not None:
            logger.info("Stopping %s transport", acceptor.name)
            await acceptor.stop()

    async def switch_mode(self) -> StartResult:
        """
        Restart on the currently preferred transport.

        Returns:
            Result of starting the new acceptor.
        """
        async with self._switch_lock:
            await self.stop_acceptor()

            mode = self.preference()
            self.mode = mode
            logger.info("Starting %s transport", mode.value)

            if mode is TransportMode.STREAM_SOCKET:
                ip = get_local_ip()
                self.on_pairing(ip, f"{ip}:{self.config.port}")

            acceptor = self.acceptor_factory(mode)
            result = await acceptor.start()

            if mode is TransportMode.SHORT_RANGE_WIRELESS:
                if result in (StartResult.RADIO_OFF, StartResult.NO_ADAPTER):
                    self.on_pairing("Bluetooth is OFF", "")
                elif result is StartResult.STARTED:
                    self.on_pairing("Bluetooth Mode", BLUETOOTH_PAYLOAD)

            if result is StartResult.STARTED:
                self.acceptor = acceptor
            return result

    async def start(self) -> StartResult:
        return await self.switch_mode()

    async def reload(self) -> StartResult:
        """Re-read configuration and restart on the preferred transport."""
        if self.config_loader is not None:
            try:
                self.config = self.config_loader()
            except (OSError, ValueError) as e:
                logger.error("Config reload failed, keeping current settings: %s", e)
        logger.info("Reloading transport")
        return await self.switch_mode()

    def request_reload(self) -> None:
        """Schedule a reload from a signal handler or another thread of control."""
        self._reload_task = asyncio.get_running_loop().create_task(self.reload())

    async def stop(self) -> None:
        async with self._switch_lock:
            await self.stop_acceptor()
        print("\n🛰️  AirPoint stopped.\n")

    async def run_forever(self) -> None:
        """Run the server until interrupted."""
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGTERM, self.shutdown_event.set)
            loop.add_signal_handler(signal.SIGHUP, self.request_reload)
        except (NotImplementedError, RuntimeError, AttributeError):
            pass

        await self.start()
        print("\n🛰️  AirPoint started!")
        print("   Scan the pairing code or enter the address in the AirPoint app.\n")

        try:
            await self.shutdown_event.wait()
        except asyncio.CancelledError:
            pass
        finally:
            if self._reload_task is not None:
                self._reload_task.cancel()
                await asyncio.gather(self._reload_task, return_exceptions=True)
            await self.stop()


def run_server(config: Optional[Config] = None,
               config_loader: Optional[Callable[[], Config]] = None) -> None:
    """Run the server (blocking). SIGHUP reloads, SIGTERM stops."""
    server = ServerSupervisor(config, config_loader=config_loader)

    try:
        asyncio.run(server.run_forever())
    except KeyboardInterrupt:
        print("\nShutting down...")
