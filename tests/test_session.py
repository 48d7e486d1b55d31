import asyncio
import struct

from airpoint import protocol
from airpoint.session import WAITING_TEXT, ConnectionSession, SessionState
from conftest import ScriptedStream


def run_session(stream, dispatcher, status, running=True):
    session = ConnectionSession(stream, dispatcher, status, lambda: running)
    asyncio.run(session.run())
    return session


def test_each_read_is_one_command(dispatcher, actuator, status):
    stream = ScriptedStream([
        protocol.encode(protocol.Move(10.0, 5.0)),
        protocol.encode(protocol.LeftClick()),
        protocol.encode(protocol.TextInput("abc")),
    ])
    session = run_session(stream, dispatcher, status)
    assert actuator.calls == [
        ("move_relative", 10, 5),
        ("left_click",),
        ("type_text", "abc"),
    ]
    assert session.commands_seen == 3
    assert session.state is SessionState.CLOSED
    assert stream.closed


def test_close_reports_waiting_when_running(dispatcher, status):
    run_session(ScriptedStream([]), dispatcher, status, running=True)
    assert status.events == [(WAITING_TEXT, False)]


def test_close_is_silent_when_stopped(dispatcher, status):
    run_session(ScriptedStream([]), dispatcher, status, running=False)
    assert status.events == []


def test_read_error_closes_session(dispatcher, actuator, status):
    stream = ScriptedStream([protocol.encode(protocol.RightClick())],
                            error=ConnectionResetError("reset"))
    session = run_session(stream, dispatcher, status)
    assert actuator.calls == [("right_click",)]
    assert session.state is SessionState.CLOSED
    assert status.events == [(WAITING_TEXT, False)]


def test_unknown_opcode_keeps_reading(dispatcher, actuator, status):
    stream = ScriptedStream([bytes([99, 1, 2, 3]), protocol.encode(protocol.LeftUp())])
    session = run_session(stream, dispatcher, status)
    assert actuator.calls == [("left_up",)]
    assert session.commands_seen == 1
    assert stream.reads == 3


def test_malformed_frame_is_dropped_silently(dispatcher, actuator, status):
    stream = ScriptedStream([bytes([1, 0, 0]), protocol.encode(protocol.Scroll(0.5))])
    run_session(stream, dispatcher, status)
    assert actuator.calls == [("scroll", 10)]
    assert status.events == [(WAITING_TEXT, False)]


def test_split_command_is_not_reassembled(dispatcher, actuator, status):
    data = protocol.encode(protocol.TextInput("hello world"))
    stream = ScriptedStream([data[:8], data[8:]])
    run_session(stream, dispatcher, status)
    assert actuator.calls == []


def test_stale_bytes_from_previous_read_are_ignored(dispatcher, actuator, status):
    # second read is shorter than the first; leftover bytes must not count
    stream = ScriptedStream([
        protocol.encode(protocol.Move(1.0, 1.0)),
        bytes([4]) + struct.pack("<f", 1.0)[:2],
    ])
    run_session(stream, dispatcher, status)
    assert actuator.calls == [("move_relative", 1, 1)]


def test_buffer_is_at_least_8k(dispatcher, status):
    session = ConnectionSession(ScriptedStream([]), dispatcher, status, lambda: True)
    assert len(session.buffer) >= 8192
    assert session.state is SessionState.IDLE
