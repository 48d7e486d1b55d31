import os
import shutil
import subprocess

import pytest

from airpoint import input_handler
from airpoint.input_handler import InputHandler


@pytest.fixture
def xdotool(monkeypatch):
    calls = []

    def fake_run(argv, **kwargs):
        calls.append(argv[1:])
        return subprocess.CompletedProcess(argv, 0)

    monkeypatch.setattr(input_handler.shutil, "which", lambda name: "/usr/bin/xdotool")
    monkeypatch.setattr(subprocess, "run", fake_run)
    return calls


def test_missing_xdotool_raises(monkeypatch):
    monkeypatch.setattr(input_handler.shutil, "which", lambda name: None)
    with pytest.raises(RuntimeError):
        InputHandler()


def test_relative_move(xdotool):
    InputHandler().move_relative(5, -3)
    assert xdotool == [["mousemove_relative", "--", "5", "-3"]]


def test_zero_move_and_scroll_are_skipped(xdotool):
    handler = InputHandler()
    assert handler.move_relative(0, 0)
    assert handler.scroll(0)
    assert xdotool == []


@pytest.mark.parametrize("clicks,button,repeat", [(3, "4", "3"), (-2, "5", "2")])
def test_scroll_direction(xdotool, clicks, button, repeat):
    InputHandler().scroll(clicks)
    assert xdotool == [["click", "--repeat", repeat, "--delay", "0", button]]


def test_key_combo(xdotool):
    InputHandler().key_combo("ctrl", "c")
    assert xdotool == [["key", "--", "ctrl+c"]]


def test_failure_returns_false(monkeypatch):
    def failing_run(argv, **kwargs):
        raise subprocess.CalledProcessError(1, argv)

    monkeypatch.setattr(input_handler.shutil, "which", lambda name: "/usr/bin/xdotool")
    monkeypatch.setattr(subprocess, "run", failing_run)
    assert InputHandler().left_click() is False


@pytest.fixture
def slow_xdotool(tmp_path, monkeypatch):
    """xdotool stand-in that takes 8 ms per typed character, then logs the text."""
    log = tmp_path / "typed.txt"
    script = tmp_path / "xdotool"
    script.write_text(
        "#!/bin/sh\n"
        'for last; do :; done\n'
        'sleep "$(awk -v n="${#last}" \'BEGIN { print n * 0.008 }\')"\n'
        'printf %s "$last" > "$TYPED_LOG"\n'
    )
    script.chmod(0o755)
    monkeypatch.setenv("PATH", f"{tmp_path}{os.pathsep}{os.environ.get('PATH', '')}")
    monkeypatch.setenv("TYPED_LOG", str(log))
    return log


@pytest.mark.skipif(shutil.which("sh") is None or shutil.which("awk") is None,
                    reason="needs a POSIX shell")
def test_long_text_is_typed_completely(slow_xdotool):
    from airpoint import protocol
    from airpoint.dispatcher import CommandDispatcher
    from conftest import RecordingLauncher

    dispatcher = CommandDispatcher(InputHandler(), RecordingLauncher())
    assert dispatcher.dispatch(protocol.TextInput("x" * 300))
    assert slow_xdotool.read_text() == "x" * 300


def test_type_timeout_scales_with_length(monkeypatch):
    timeouts = []

    def fake_run(argv, **kwargs):
        timeouts.append(kwargs["timeout"])
        return subprocess.CompletedProcess(argv, 0)

    monkeypatch.setattr(input_handler.shutil, "which", lambda name: "/usr/bin/xdotool")
    monkeypatch.setattr(subprocess, "run", fake_run)
    handler = InputHandler()
    handler.type_text("a")
    handler.type_text("a" * 1000)
    assert timeouts[0] >= 2.0
    assert timeouts[1] > 1000 * input_handler.TYPE_DELAY_MS / 1000


def test_actuator_failure_return_drops_command(monkeypatch):
    from airpoint import protocol
    from airpoint.dispatcher import CommandDispatcher
    from conftest import RecordingLauncher

    def timed_out(argv, **kwargs):
        raise subprocess.TimeoutExpired(argv, kwargs["timeout"])

    monkeypatch.setattr(input_handler.shutil, "which", lambda name: "/usr/bin/xdotool")
    monkeypatch.setattr(subprocess, "run", timed_out)
    dispatcher = CommandDispatcher(InputHandler(), RecordingLauncher())
    assert dispatcher.dispatch(protocol.TextInput("hello")) is False
