import subprocess

import pytest

from airpoint import launcher as launcher_mod
from airpoint.launcher import PowerAction, ProcessLauncher
from airpoint.resolver import LaunchSpec, TargetKind


@pytest.fixture
def spawned(monkeypatch):
    calls = []

    def fake_popen(argv, **kwargs):
        calls.append((argv, kwargs))

    monkeypatch.setattr(subprocess, "Popen", fake_popen)
    monkeypatch.setattr(launcher_mod.shutil, "which", lambda name: f"/usr/bin/{name}")
    return calls


def test_url_uses_opener(spawned):
    ProcessLauncher("linux").launch(LaunchSpec(target="https://example.com", kind=TargetKind.URL))
    argv, kwargs = spawned[0]
    assert argv == ["/usr/bin/xdg-open", "https://example.com"]
    assert kwargs["cwd"] is None


def test_command_runs_directly_with_arguments(spawned):
    spec = LaunchSpec(target="/opt/tool/run", arguments='--flag "two words"',
                      working_dir="/opt/tool", kind=TargetKind.COMMAND)
    ProcessLauncher("linux").launch(spec)
    argv, kwargs = spawned[0]
    assert argv == ["/opt/tool/run", "--flag", "two words"]
    assert kwargs["cwd"] == "/opt/tool"


def test_empty_spec_is_ignored(spawned):
    ProcessLauncher("linux").launch(LaunchSpec())
    assert spawned == []


def test_missing_opener_raises(monkeypatch):
    monkeypatch.setattr(launcher_mod.shutil, "which", lambda name: None)
    with pytest.raises(RuntimeError):
        ProcessLauncher("linux").launch(LaunchSpec(target="https://x.org", kind=TargetKind.URL))


@pytest.mark.parametrize("action,argv", [
    (PowerAction.SHUTDOWN, ["systemctl", "poweroff"]),
    (PowerAction.RESTART, ["systemctl", "reboot"]),
    (PowerAction.LOCK, ["loginctl", "lock-session"]),
])
def test_linux_power_actions(spawned, action, argv):
    ProcessLauncher("linux").power_action(action)
    assert spawned[0][0] == argv


def test_windows_lock(spawned):
    ProcessLauncher("win32").power_action(PowerAction.LOCK)
    assert spawned[0][0] == ["rundll32.exe", "user32.dll,LockWorkStation"]


def test_quoted_command_without_arguments_runs_directly(spawned):
    spec = LaunchSpec(target="/usr/bin/gedit", working_dir="/usr/bin", kind=TargetKind.COMMAND)
    ProcessLauncher("linux").launch(spec)
    argv, kwargs = spawned[0]
    assert argv == ["/usr/bin/gedit"]
    assert kwargs["cwd"] == "/usr/bin"
