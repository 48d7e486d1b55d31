"""
Process launcher: opens files, URLs and protocol handlers, and performs
host power actions (shutdown, restart, lock).
"""

import logging
import os
import shlex
import shutil
import subprocess
import sys
from enum import Enum
from typing import List, Protocol

from .resolver import LaunchSpec, TargetKind

logger = logging.getLogger(__name__)


class PowerAction(Enum):
    SHUTDOWN = "shutdown"
    RESTART = "restart"
    LOCK = "lock"


class Launcher(Protocol):
    def launch(self, spec: LaunchSpec) -> None: ...

    def power_action(self, action: PowerAction) -> None: ...


_POWER_COMMANDS = {
    "linux": {
        PowerAction.SHUTDOWN: ["systemctl", "poweroff"],
        PowerAction.RESTART: ["systemctl", "reboot"],
        PowerAction.LOCK: ["loginctl", "lock-session"],
    },
    "darwin": {
        PowerAction.SHUTDOWN: ["osascript", "-e", 'tell app "System Events" to shut down'],
        PowerAction.RESTART: ["osascript", "-e", 'tell app "System Events" to restart'],
        PowerAction.LOCK: ["pmset", "displaysleepnow"],
    },
    "win32": {
        PowerAction.SHUTDOWN: ["shutdown", "/s", "/t", "0"],
        PowerAction.RESTART: ["shutdown", "/r", "/t", "0"],
        PowerAction.LOCK: ["rundll32.exe", "user32.dll,LockWorkStation"],
    },
}


def _platform_key() -> str:
    if sys.platform.startswith("linux"):
        return "linux"
    return sys.platform


class ProcessLauncher:
    """
    Launch processes detached from the server.

    Shell-open semantics hand the target to the desktop's opener
    (xdg-open, open, or the Windows shell) so registered protocol
    handlers and file associations apply.
    """

    def __init__(self, platform: str = ""):
        self.platform = platform or _platform_key()

    def _opener(self) -> List[str]:
        if self.platform == "darwin":
            return ["open"]
        opener = shutil.which("xdg-open")
        if not opener:
            raise RuntimeError("xdg-open not found. Please install xdg-utils")
        return [opener]

    def _spawn(self, argv: List[str], cwd: str = "") -> None:
        logger.debug("Launching %s (cwd=%r)", argv, cwd)
        subprocess.Popen(
            argv,
            cwd=cwd or None,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=self.platform != "win32",
        )

    def launch(self, spec: LaunchSpec) -> None:
        """
        Launch a resolved target.

        Raises:
            OSError / RuntimeError if the process cannot be started.
        """
        if not spec:
            return

        # Quoted command lines always run the executable itself
        if spec.kind is TargetKind.COMMAND or spec.arguments or not spec.use_shell:
            args = shlex.split(spec.arguments, posix=self.platform != "win32")
            self._spawn([spec.target, *args], spec.working_dir)
        elif self.platform == "win32":
            os.startfile(spec.target)  # type: ignore[attr-defined]
        else:
            self._spawn([*self._opener(), spec.target], spec.working_dir)

    def power_action(self, action: PowerAction) -> None:
        """Shut down, restart or lock the host."""
        commands = _POWER_COMMANDS.get(self.platform, _POWER_COMMANDS["linux"])
        logger.info("Power action: %s", action.value)
        self._spawn(commands[action])
