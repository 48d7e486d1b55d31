"""
Configuration loader for AirPoint.
Supports YAML config files with sensible defaults.
"""

import copy
import logging
import os
import uuid
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)


class TransportMode(Enum):
    STREAM_SOCKET = "wifi"
    SHORT_RANGE_WIRELESS = "bluetooth"


# Default configuration
DEFAULT_CONFIG = {
    "transport": {
        "prefer_wifi": True,
    },
    "server": {
        "host": "0.0.0.0",
        "port": 45000,
    },
    "bluetooth": {
        "service_uuid": "00001101-0000-1000-8000-00805F9B34FB",
        "channel": 1,
    },
    "session": {
        "buffer_size": 8192,
        "accept_retry_seconds": 1.0,
    },
    "logging": {
        "level": "INFO",
    },
}

# Interface name prefixes tried first, wired before wireless
PREFERRED_PREFIXES = ["eth", "enp", "eno", "ens", "wlan", "wlp"]
VIRTUAL_PREFIXES = ["lo", "docker", "veth", "br-", "virbr", "vmnet", "vbox", "tun", "tap"]


def get_config_paths() -> list[Path]:
    """Get list of possible config file locations (in priority order)."""
    paths = []

    # 1. Current directory
    paths.append(Path.cwd() / "config.yaml")

    # 2. XDG config directory
    xdg_config = os.environ.get("XDG_CONFIG_HOME", "")
    if xdg_config:
        paths.append(Path(xdg_config) / "airpoint" / "config.yaml")

    # 3. ~/.config/airpoint/
    paths.append(Path.home() / ".config" / "airpoint" / "config.yaml")

    # 4. ~/.airpoint.yaml
    paths.append(Path.home() / ".airpoint.yaml")

    return paths


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration from file.

    Args:
        config_path: Explicit config file path. If None, searches default locations.

    Returns:
        Configuration dictionary with defaults filled in.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if config_path:
        paths = [config_path]
    else:
        paths = get_config_paths()

    for path in paths:
        if path.exists():
            try:
                with open(path, "r") as f:
                    file_config = yaml.safe_load(f) or {}
                config = deep_merge(config, file_config)
                logger.debug("Loaded config from %s", path)
                break
            except (OSError, yaml.YAMLError) as e:
                logger.warning("Failed to load config from %s: %s", path, e)

    return config


def _is_virtual(iface: str) -> bool:
    name = iface.lower()
    return "virtual" in name or any(name.startswith(p) for p in VIRTUAL_PREFIXES)


def _usable_ipv4(netifaces, iface: str) -> Optional[str]:
    addrs = netifaces.ifaddresses(iface)
    for addr in addrs.get(netifaces.AF_INET, []):
        ip = addr.get("addr", "")
        if ip and not ip.startswith("127.") and not ip.startswith("169.254."):
            return ip
    return None


def get_local_ip() -> str:
    """
    Get the local network IP address to advertise to clients.

    Physical wired/wireless interfaces win over anything else; loopback,
    virtual adapters and link-local addresses are never picked.

    Returns:
        Local IP address string (e.g., "192.168.1.100")
    """
    try:
        import netifaces

        interfaces = [i for i in netifaces.interfaces() if not _is_virtual(i)]

        for prefix in PREFERRED_PREFIXES:
            for iface in interfaces:
                if iface.startswith(prefix):
                    ip = _usable_ipv4(netifaces, iface)
                    if ip:
                        return ip

        # Fallback: any other non-virtual interface
        for iface in interfaces:
            ip = _usable_ipv4(netifaces, iface)
            if ip:
                return ip

    except (ImportError, OSError, ValueError) as e:
        logger.debug("Address lookup failed: %s", e)

    # Final fallback
    return "127.0.0.1"


class Config:
    """Configuration wrapper with easy access to settings."""

    def __init__(self, config_path: Optional[Path] = None):
        self._config = load_config(config_path)

    @property
    def prefer_wifi(self) -> bool:
        return bool(self._config["transport"]["prefer_wifi"])

    @property
    def transport_mode(self) -> TransportMode:
        if self.prefer_wifi:
            return TransportMode.STREAM_SOCKET
        return TransportMode.SHORT_RANGE_WIRELESS

    def set_transport_mode(self, mode: TransportMode) -> None:
        self._config["transport"]["prefer_wifi"] = mode is TransportMode.STREAM_SOCKET

    @property
    def host(self) -> str:
        return self._config["server"]["host"]

    @property
    def port(self) -> int:
        return int(self._config["server"]["port"])

    @property
    def service_uuid(self) -> uuid.UUID:
        return uuid.UUID(str(self._config["bluetooth"]["service_uuid"]))

    @property
    def channel(self) -> int:
        return int(self._config["bluetooth"]["channel"])

    @property
    def buffer_size(self) -> int:
        return max(8192, int(self._config["session"]["buffer_size"]))

    @property
    def accept_retry_seconds(self) -> float:
        return float(self._config["session"]["accept_retry_seconds"])

    @property
    def log_level(self) -> str:
        return str(self._config["logging"]["level"]).upper()

    def to_dict(self) -> Dict[str, Any]:
        """Return config as dictionary."""
        return copy.deepcopy(self._config)


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reload_config(config_path: Optional[Path] = None) -> Config:
    """Reload configuration from file."""
    global _config
    _config = Config(config_path)
    return _config
