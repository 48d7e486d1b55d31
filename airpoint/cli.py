#!/usr/bin/env python3
"""
AirPoint CLI - Command line interface for starting/stopping the server.
"""

import argparse
import logging
import os
import signal
import sys
from pathlib import Path

# PID file location
PID_FILE = Path("/tmp/airpoint.pid")


def get_pid() -> int | None:
    """Get PID from file if exists."""
    if PID_FILE.exists():
        try:
            pid = int(PID_FILE.read_text().splitlines()[0].strip())
            # Check if process is running
            os.kill(pid, 0)
            return pid
        except (ValueError, IndexError, OSError):
            PID_FILE.unlink(missing_ok=True)
    return None


def write_pid(config_path: Path | None = None) -> None:
    """Write current PID to file, followed by the config file in use."""
    lines = [str(os.getpid())]
    if config_path:
        lines.append(str(Path(config_path).resolve()))
    PID_FILE.write_text("\n".join(lines))


def get_started_config_path() -> Path | None:
    """Config file the running server was started with, if any."""
    if get_pid() is None:
        return None
    lines = PID_FILE.read_text().splitlines()
    if len(lines) > 1 and lines[1].strip():
        return Path(lines[1].strip())
    return None


def load_cli_config(args):
    """Config for read-only commands: --config, else the running server's file."""
    from .config import reload_config

    path = getattr(args, "config", None) or get_started_config_path()
    return reload_config(path)


def remove_pid() -> None:
    """Remove PID file."""
    PID_FILE.unlink(missing_ok=True)


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def cmd_start(args) -> int:
    """Start the server."""
    existing_pid = get_pid()
    if existing_pid:
        print(f"❌ AirPoint is already running (PID: {existing_pid})")
        print(f"   Run 'airpoint stop' first")
        return 1

    # Import here to avoid loading when not needed
    from .config import TransportMode, reload_config
    from .server import run_server

    def load():
        # Reloads re-read the file (including the transport preference);
        # only the port override is sticky
        config = reload_config(args.config)
        if args.port:
            config._config["server"]["port"] = args.port
        return config

    config = load()

    # Override with CLI args if provided
    if args.wifi:
        config.set_transport_mode(TransportMode.STREAM_SOCKET)
    elif args.bluetooth:
        config.set_transport_mode(TransportMode.SHORT_RANGE_WIRELESS)

    setup_logging(args.log_level or config.log_level)

    write_pid(args.config)

    try:
        run_server(config, config_loader=load)
    except RuntimeError as e:
        print(f"❌ {e}")
        return 1
    except KeyboardInterrupt:
        pass
    finally:
        remove_pid()

    return 0


def cmd_stop(args) -> int:
    """Stop the server."""
    pid = get_pid()

    if not pid:
        print("ℹ️  AirPoint is not running")
        return 0

    try:
        os.kill(pid, signal.SIGTERM)
        print(f"✅ Stopped AirPoint (PID: {pid})")
        remove_pid()
        return 0
    except OSError as e:
        print(f"❌ Failed to stop: {e}")
        remove_pid()
        return 1


def cmd_reload(args) -> int:
    """Ask the running server to re-read its config and restart its transport."""
    pid = get_pid()

    if not pid:
        print("ℹ️  AirPoint is not running")
        return 1

    try:
        os.kill(pid, signal.SIGHUP)
        print(f"🔄 Reloading AirPoint (PID: {pid})")
        return 0
    except (OSError, AttributeError) as e:
        print(f"❌ Failed to reload: {e}")
        return 1


def cmd_status(args) -> int:
    """Check server status."""
    pid = get_pid()

    if pid:
        print(f"✅ AirPoint is running (PID: {pid})")

        from .config import TransportMode, get_local_ip
        config = load_cli_config(args)
        if config.transport_mode is TransportMode.STREAM_SOCKET:
            print(f"   Address: {get_local_ip()}:{config.port}")
        else:
            print("   Mode: Bluetooth")

        return 0
    else:
        print("❌ AirPoint is not running")
        return 1


def cmd_ip(args) -> int:
    """Show the address a client should pair with."""
    from .config import get_local_ip

    ip = get_local_ip()
    print(f"📍 Local IP: {ip}")
    print(f"   Pairing code: {ip}:{load_cli_config(args).port}")
    return 0


def cmd_config(args) -> int:
    """Show current configuration."""
    from .config import get_config_paths

    print("📝 Configuration:")
    print()

    print("   Config file search paths:")
    for path in get_config_paths():
        exists = "✓" if path.exists() else " "
        print(f"   [{exists}] {path}")
    print()

    config = load_cli_config(args)
    print("   Current settings:")
    print(f"   - Transport: {config.transport_mode.value}")
    print(f"   - Host: {config.host}")
    print(f"   - Port: {config.port}")
    print(f"   - Bluetooth service: {config.service_uuid}")
    print(f"   - RFCOMM channel: {config.channel}")
    print(f"   - Buffer size: {config.buffer_size}")
    print(f"   - Accept retry: {config.accept_retry_seconds}s")
    print(f"   - Log level: {config.log_level}")

    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="airpoint",
        description="Control this computer from your phone",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  airpoint start                # Start on the preferred transport
  airpoint start --bluetooth    # Start in Bluetooth mode
  airpoint start --port 46000   # Start Wi-Fi mode on another port
  airpoint stop                 # Stop the server
  airpoint reload               # Re-read config, switch transport
  airpoint status               # Check if running
  airpoint ip                   # Show the pairing address
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Start command
    start_parser = subparsers.add_parser("start", help="Start the server")
    start_parser.add_argument("--port", "-p", type=int, help="TCP port (default: 45000)")
    mode = start_parser.add_mutually_exclusive_group()
    mode.add_argument("--wifi", action="store_true", help="Use the Wi-Fi (TCP) transport")
    mode.add_argument("--bluetooth", action="store_true", help="Use the Bluetooth (RFCOMM) transport")
    start_parser.add_argument("--config", "-c", type=Path, help="Config file path")
    start_parser.add_argument("--log-level", type=str.upper,
                              choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Log level")
    start_parser.set_defaults(func=cmd_start)

    # Stop command
    stop_parser = subparsers.add_parser("stop", help="Stop the server")
    stop_parser.set_defaults(func=cmd_stop)

    # Reload command
    reload_parser = subparsers.add_parser("reload", help="Re-read config and restart the transport")
    reload_parser.set_defaults(func=cmd_reload)

    # Status command
    status_parser = subparsers.add_parser("status", help="Check server status")
    status_parser.add_argument("--config", "-c", type=Path, help="Config file path")
    status_parser.set_defaults(func=cmd_status)

    # IP command
    ip_parser = subparsers.add_parser("ip", help="Show local IP address")
    ip_parser.add_argument("--config", "-c", type=Path, help="Config file path")
    ip_parser.set_defaults(func=cmd_ip)

    # Config command
    config_parser = subparsers.add_parser("config", help="Show configuration")
    config_parser.add_argument("--config", "-c", type=Path, help="Config file path")
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv=None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
