"""Tests for the PID-file based gateway lifecycle."""

import os
import signal
import subprocess
import sys

import pytest

from model_switch import daemon


@pytest.fixture
def pid_file(tmp_path):
    return tmp_path / "proxy.pid"


@pytest.fixture
def dead_pid():
    """PID of a process that has already exited and been reaped."""
    child = subprocess.Popen([sys.executable, "-c", "pass"])
    child.wait()
    return child.pid


class FakePopen:
    instances = []

    def __init__(self, command, **kwargs):
        self.command = command
        self.kwargs = kwargs
        self.pid = 31337
        self.sighup_handler = signal.getsignal(signal.SIGHUP)
        FakePopen.instances.append(self)


@pytest.fixture
def fake_popen(monkeypatch):
    FakePopen.instances = []
    monkeypatch.setattr(daemon.subprocess, "Popen", FakePopen)
    return FakePopen


class TestPidFile:
    def test_default_location(self, isolated_home):
        assert daemon.pid_file_path() == isolated_home / ".claude" / "model-switch-proxy.pid"

    def test_env_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CLAUDE_MODEL_SWITCH_PID_FILE", str(tmp_path / "x.pid"))
        assert daemon.pid_file_path() == tmp_path / "x.pid"

    def test_write_read_remove(self, pid_file):
        daemon.write_pid(123, pid_file)
        assert daemon.read_pid(pid_file) == 123

        daemon.remove_pid_file(pid_file)
        assert daemon.read_pid(pid_file) is None
        daemon.remove_pid_file(pid_file)

    def test_garbage_pid_file(self, pid_file):
        pid_file.write_text("not-a-pid")
        assert daemon.read_pid(pid_file) is None


class TestLiveness:
    def test_current_process_is_alive(self):
        assert daemon.process_alive(os.getpid())

    def test_exited_process_is_dead(self, dead_pid):
        assert not daemon.process_alive(dead_pid)

    def test_is_running(self, pid_file, dead_pid):
        assert not daemon.is_running(pid_file)
        daemon.write_pid(os.getpid(), pid_file)
        assert daemon.is_running(pid_file)
        daemon.write_pid(dead_pid, pid_file)
        assert not daemon.is_running(pid_file)


class TestStartDaemon:
    def test_spawns_detached_foreground_gateway(self, pid_file, fake_popen):
        pid = daemon.start_daemon(4100, host="0.0.0.0", path=pid_file)

        assert pid == 31337
        assert daemon.read_pid(pid_file) == 31337
        [child] = fake_popen.instances
        assert child.command[1:] == [
            "-m",
            "model_switch",
            "start",
            "--foreground",
            "--host",
            "0.0.0.0",
            "--port",
            "4100",
        ]
        assert child.kwargs["start_new_session"] is True

    def test_child_spawned_ignoring_sighup(self, pid_file, fake_popen):
        before = signal.getsignal(signal.SIGHUP)

        daemon.start_daemon(4000, path=pid_file)

        [child] = fake_popen.instances
        assert child.sighup_handler is signal.SIG_IGN
        assert signal.getsignal(signal.SIGHUP) == before

    def test_refuses_when_running(self, pid_file, fake_popen):
        daemon.write_pid(os.getpid(), pid_file)

        with pytest.raises(daemon.DaemonError, match="already running"):
            daemon.start_daemon(4000, path=pid_file)
        assert fake_popen.instances == []

    def test_replaces_stale_pid_file(self, pid_file, dead_pid, fake_popen):
        daemon.write_pid(dead_pid, pid_file)

        daemon.start_daemon(4000, path=pid_file)

        assert daemon.read_pid(pid_file) == 31337

    def test_spawn_failure(self, pid_file, monkeypatch):
        def broken_popen(*args, **kwargs):
            raise OSError("no such interpreter")

        monkeypatch.setattr(daemon.subprocess, "Popen", broken_popen)

        with pytest.raises(daemon.DaemonError, match="Failed to spawn"):
            daemon.start_daemon(4000, path=pid_file)
        assert not pid_file.exists()


class TestStopDaemon:
    def test_no_pid_file(self, pid_file):
        with pytest.raises(daemon.DaemonError, match="no PID file"):
            daemon.stop_daemon(pid_file)

    def test_invalid_pid_file(self, pid_file):
        pid_file.write_text("junk")
        with pytest.raises(daemon.DaemonError, match="Invalid PID file"):
            daemon.stop_daemon(pid_file)
        assert not pid_file.exists()

    def test_dead_process_cleans_up(self, pid_file, dead_pid):
        daemon.write_pid(dead_pid, pid_file)

        assert daemon.stop_daemon(pid_file) == (dead_pid, False)
        assert not pid_file.exists()

    def test_sends_sigterm(self, pid_file, monkeypatch):
        sent = []
        monkeypatch.setattr(daemon.os, "kill", lambda pid, sig: sent.append((pid, sig)))
        daemon.write_pid(777, pid_file)

        assert daemon.stop_daemon(pid_file) == (777, True)
        assert sent == [(777, signal.SIGTERM)]


class TestNotifyReload:
    def test_no_pid_file(self, pid_file):
        assert daemon.notify_reload(pid_file) is False

    def test_dead_process(self, pid_file, dead_pid):
        daemon.write_pid(dead_pid, pid_file)
        assert daemon.notify_reload(pid_file) is False

    def test_sends_sighup(self, pid_file, monkeypatch):
        sent = []
        monkeypatch.setattr(daemon.os, "kill", lambda pid, sig: sent.append((pid, sig)))
        daemon.write_pid(777, pid_file)

        assert daemon.notify_reload(pid_file) is True
        assert sent == [(777, signal.SIGHUP)]
