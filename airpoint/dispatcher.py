"""
Map decoded commands onto input actuator and launcher calls.
"""

import logging
from typing import Callable, Dict, Tuple

from . import protocol
from .input_handler import InputActuator
from .launcher import Launcher, PowerAction
from .resolver import open_target

logger = logging.getLogger(__name__)

# Shortcut code -> (modifier, key); a modifier of None means a single key press
SHORTCUTS: Dict[int, Tuple[str | None, str]] = {
    1: ("super", "d"),      # show desktop
    2: (None, "super"),     # start menu
    3: ("alt", "Tab"),      # switch window
    4: ("ctrl", "c"),       # copy
    5: ("ctrl", "v"),       # paste
    6: ("super", "Tab"),    # task view
}

KEY_COMMANDS: Dict[int, str] = {
    1: "BackSpace",
    2: "Return",
}

SCROLL_FACTOR = 20
ZOOM_FACTOR = 50


class CommandDispatcher:
    """
    Translate protocol commands into side effects.

    Shutdown, restart and lock are host power actions handed to the
    launcher; everything else is simulated input. Failures from either
    collaborator are logged and the command is dropped.
    """

    def __init__(self, actuator: InputActuator, launcher: Launcher):
        self.actuator = actuator
        self.launcher = launcher
        self._handlers: Dict[type, Callable] = {
            protocol.Move: self._move,
            protocol.LeftClick: lambda cmd: self.actuator.left_click(),
            protocol.RightClick: lambda cmd: self.actuator.right_click(),
            protocol.LeftDown: lambda cmd: self.actuator.left_down(),
            protocol.LeftUp: lambda cmd: self.actuator.left_up(),
            protocol.Scroll: self._scroll,
            protocol.Zoom: self._zoom,
            protocol.Shortcut: self._shortcut,
            protocol.KeyCommand: self._key_command,
            protocol.TextInput: lambda cmd: self.actuator.type_text(cmd.text),
            protocol.OpenTarget: lambda cmd: open_target(cmd.text, self.launcher),
            protocol.Shutdown: lambda cmd: self.launcher.power_action(PowerAction.SHUTDOWN),
            protocol.Restart: lambda cmd: self.launcher.power_action(PowerAction.RESTART),
            protocol.Lock: lambda cmd: self.launcher.power_action(PowerAction.LOCK),
        }

    def dispatch(self, command: protocol.Command) -> bool:
        """
        Execute one command.

        Returns:
            True if a handler ran to completion, False if the command was
            unknown, reported failure, or was dropped because a collaborator
            raised.
        """
        handler = self._handlers.get(type(command))
        if handler is None:
            return False
        try:
            ok = handler(command)
        except Exception as e:
            logger.debug("Dropped %r: %s", command, e)
            return False
        if ok is False:
            logger.debug("Actuator reported failure for %r", command)
            return False
        return True

    def _move(self, cmd: protocol.Move) -> None:
        self.actuator.move_relative(int(cmd.dx), int(cmd.dy))

    def _scroll(self, cmd: protocol.Scroll) -> None:
        self.actuator.scroll(int(cmd.amount * SCROLL_FACTOR))

    def _zoom(self, cmd: protocol.Zoom) -> None:
        self.actuator.key_down("ctrl")
        try:
            self.actuator.scroll(int(cmd.delta * ZOOM_FACTOR))
        finally:
            self.actuator.key_up("ctrl")

    def _shortcut(self, cmd: protocol.Shortcut) -> None:
        combo = SHORTCUTS.get(cmd.code)
        if combo is None:
            return
        modifier, key = combo
        if modifier is None:
            self.actuator.key_press(key)
        else:
            self.actuator.key_combo(modifier, key)

    def _key_command(self, cmd: protocol.KeyCommand) -> None:
        key = KEY_COMMANDS.get(cmd.code)
        if key is not None:
            self.actuator.key_press(key)
