from __future__ import annotations

import asyncio

import pytest

from airpoint.dispatcher import CommandDispatcher


class RecordingActuator:
    """Input actuator that records every call as (name, *args)."""

    def __init__(self, fail: bool = False) -> None:
        self.calls: list[tuple] = []
        self.fail = fail

    def _record(self, *call) -> bool:
        self.calls.append(call)
        if self.fail:
            raise OSError("actuator unavailable")
        return True

    def move_relative(self, dx, dy):
        return self._record("move_relative", dx, dy)

    def left_down(self):
        return self._record("left_down")

    def left_up(self):
        return self._record("left_up")

    def left_click(self):
        return self._record("left_click")

    def right_click(self):
        return self._record("right_click")

    def scroll(self, clicks):
        return self._record("scroll", clicks)

    def key_down(self, key):
        return self._record("key_down", key)

    def key_up(self, key):
        return self._record("key_up", key)

    def key_press(self, key):
        return self._record("key_press", key)

    def key_combo(self, modifier, key):
        return self._record("key_combo", modifier, key)

    def type_text(self, text):
        return self._record("type_text", text)


class RecordingLauncher:
    def __init__(self, fail: bool = False) -> None:
        self.launched = []
        self.power = []
        self.fail = fail

    def launch(self, spec) -> None:
        self.launched.append(spec)
        if self.fail:
            raise OSError("cannot launch")

    def power_action(self, action) -> None:
        self.power.append(action)


class ScriptedStream:
    """Stream that hands out pre-recorded reads, then end of data."""

    def __init__(self, chunks, on_read=None, error: Exception | None = None) -> None:
        self.chunks = list(chunks)
        self.on_read = on_read
        self.error = error
        self.reads = 0
        self.closed = False

    async def read_into(self, buffer: bytearray) -> int:
        self.reads += 1
        if self.on_read is not None:
            self.on_read(self)
        if self.chunks:
            chunk = self.chunks.pop(0)
            buffer[: len(chunk)] = chunk
            return len(chunk)
        if self.error is not None:
            raise self.error
        return 0

    def close(self) -> None:
        self.closed = True


class StatusLog:
    def __init__(self) -> None:
        self.events: list[tuple[str, bool]] = []

    def __call__(self, text: str, connected: bool) -> None:
        self.events.append((text, connected))


@pytest.fixture
def actuator() -> RecordingActuator:
    return RecordingActuator()


@pytest.fixture
def launcher() -> RecordingLauncher:
    return RecordingLauncher()


@pytest.fixture
def dispatcher(actuator, launcher) -> CommandDispatcher:
    return CommandDispatcher(actuator, launcher)


@pytest.fixture
def status() -> StatusLog:
    return StatusLog()


async def wait_until(predicate, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.001)
