"""
Input actuator using xdotool for mouse and keyboard control.
Uses subprocess calls so no input library stays resident.
"""

import shutil
import subprocess
from typing import Protocol

TYPE_DELAY_MS = 12
# Per-character budget for `xdotool type`, above the typing delay
TYPE_SECONDS_PER_CHAR = 0.02


class InputActuator(Protocol):
    """Pointer and keyboard operations the dispatcher relies on."""

    def move_relative(self, dx: int, dy: int) -> bool: ...

    def left_down(self) -> bool: ...

    def left_up(self) -> bool: ...

    def left_click(self) -> bool: ...

    def right_click(self) -> bool: ...

    def scroll(self, clicks: int) -> bool: ...

    def key_down(self, key: str) -> bool: ...

    def key_up(self, key: str) -> bool: ...

    def key_press(self, key: str) -> bool: ...

    def key_combo(self, modifier: str, key: str) -> bool: ...

    def type_text(self, text: str) -> bool: ...


class InputHandler:
    """
    Drive the host pointer and keyboard through xdotool.

    One instance is shared by every connection; it keeps no input state
    of its own, so calls from the single active session need no locking.
    """

    def __init__(self):
        """Locate xdotool."""
        self._xdotool_path = shutil.which("xdotool")

        if not self._xdotool_path:
            raise RuntimeError(
                "xdotool not found. Please install it:\n"
                "  sudo apt install xdotool"
            )

    def _run_xdotool(self, *args, timeout: float = 2.0) -> bool:
        """
        Run xdotool with given arguments.

        Args:
            timeout: Seconds before the xdotool process is killed

        Returns:
            True if successful, False otherwise
        """
        try:
            subprocess.run(
                [self._xdotool_path, *args],
                check=True,
                capture_output=True,
                timeout=timeout
            )
            return True
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired):
            return False

    def move_relative(self, dx: int, dy: int) -> bool:
        """Move the pointer by a pixel offset from its current position."""
        if dx == 0 and dy == 0:
            return True
        return self._run_xdotool("mousemove_relative", "--", str(dx), str(dy))

    def left_click(self) -> bool:
        return self._run_xdotool("click", "1")

    def right_click(self) -> bool:
        return self._run_xdotool("click", "3")

    def left_down(self) -> bool:
        """Press the left button down (start of a drag)."""
        return self._run_xdotool("mousedown", "1")

    def left_up(self) -> bool:
        """Release the left button."""
        return self._run_xdotool("mouseup", "1")

    def scroll(self, clicks: int) -> bool:
        """
        Scroll the mouse wheel vertically.

        Args:
            clicks: Wheel notches; positive scrolls up, negative down

        Returns:
            True if successful
        """
        if clicks == 0:
            return True
        button = "4" if clicks > 0 else "5"
        return self._run_xdotool("click", "--repeat", str(abs(clicks)), "--delay", "0", button)

    def type_text(self, text: str) -> bool:
        """
        Type text using keyboard.

        Args:
            text: Text to type

        Returns:
            True if successful
        """
        if not text:
            return True

        # Use xdotool type with delay for reliability; the timeout grows
        # with the text so long input is not cut off mid-way
        timeout = 2.0 + len(text) * TYPE_SECONDS_PER_CHAR
        return self._run_xdotool("type", "--delay", str(TYPE_DELAY_MS), "--", text, timeout=timeout)

    def key_press(self, key: str) -> bool:
        """
        Press and release a key.

        Args:
            key: xdotool key name (e.g., "Return", "BackSpace", "super")

        Returns:
            True if successful
        """
        return self._run_xdotool("key", "--", key)

    def key_combo(self, modifier: str, key: str) -> bool:
        """Press `key` while `modifier` is held (e.g. ctrl+c)."""
        return self._run_xdotool("key", "--", f"{modifier}+{key}")

    def key_down(self, key: str) -> bool:
        """Press key down (without release)."""
        return self._run_xdotool("keydown", "--", key)

    def key_up(self, key: str) -> bool:
        """Release key."""
        return self._run_xdotool("keyup", "--", key)
