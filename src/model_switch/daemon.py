"""Background gateway lifecycle via a PID file.

The CLI starts the gateway as a detached ``start --foreground`` child and
records its PID. Later invocations use that PID to check liveness, stop the
gateway (SIGTERM) or ask it to reload its profiles (SIGHUP).
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

PID_FILE_ENV_VAR = "CLAUDE_MODEL_SWITCH_PID_FILE"


class DaemonError(Exception):
    """The background gateway could not be started or stopped."""

    pass


def pid_file_path() -> Path:
    """Location of the PID file (env override > ~/.claude)."""
    override = os.environ.get(PID_FILE_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".claude" / "model-switch-proxy.pid"


def read_pid(path: Path | None = None) -> int | None:
    """PID recorded in the PID file, or None if absent or unreadable."""
    path = path or pid_file_path()
    try:
        return int(path.read_text().strip())
    except (OSError, ValueError):
        return None


def write_pid(pid: int, path: Path | None = None) -> Path:
    path = path or pid_file_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(str(pid))
    return path


def remove_pid_file(path: Path | None = None) -> None:
    path = path or pid_file_path()
    path.unlink(missing_ok=True)


def process_alive(pid: int) -> bool:
    """Whether a process with this PID exists (signal 0 probe)."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, owned by someone else
        return True
    return True


def is_running(path: Path | None = None) -> bool:
    """Whether the gateway recorded in the PID file is alive."""
    pid = read_pid(path)
    return pid is not None and process_alive(pid)


def start_daemon(port: int, host: str = "127.0.0.1", path: Path | None = None) -> int:
    """Spawn the gateway in the background.

    A PID file left behind by a dead process is removed first.

    Returns:
        PID of the spawned gateway.

    Raises:
        DaemonError: If a gateway is already running or spawning fails.
    """
    path = path or pid_file_path()
    pid = read_pid(path)
    if pid is not None:
        if process_alive(pid):
            raise DaemonError(
                f"Proxy already running (PID {pid}). Stop it first with: claude-model-switch stop"
            )
        logger.debug("Removing stale PID file for PID %d", pid)
    remove_pid_file(path)

    command = [
        sys.executable,
        "-m",
        "model_switch",
        "start",
        "--foreground",
        "--host",
        host,
        "--port",
        str(port),
    ]
    # The child inherits SIG_IGN for SIGHUP, so a reload request arriving
    # before the gateway installs its handler cannot kill it
    previous = signal.signal(signal.SIGHUP, signal.SIG_IGN)
    try:
        child = subprocess.Popen(
            command,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as e:
        raise DaemonError(f"Failed to spawn proxy process: {e}") from e
    finally:
        signal.signal(signal.SIGHUP, previous)

    write_pid(child.pid, path)
    logger.info("Spawned gateway (PID %d) on %s:%d", child.pid, host, port)
    return child.pid


def stop_daemon(path: Path | None = None) -> tuple[int, bool]:
    """Stop the background gateway.

    Returns:
        (pid, was_running).

    Raises:
        DaemonError: If there is no usable PID file.
    """
    path = path or pid_file_path()
    if not path.exists():
        raise DaemonError("Proxy is not running (no PID file found).")
    pid = read_pid(path)
    if pid is None:
        remove_pid_file(path)
        raise DaemonError("Invalid PID file, removed it.")

    try:
        os.kill(pid, signal.SIGTERM)
        was_running = True
    except ProcessLookupError:
        was_running = False
    except PermissionError as e:
        raise DaemonError(f"Not allowed to signal proxy process {pid}: {e}") from e
    finally:
        remove_pid_file(path)
    return pid, was_running


def notify_reload(path: Path | None = None) -> bool:
    """Ask a running gateway to reload its profiles.

    Returns:
        True if a SIGHUP was delivered.
    """
    pid = read_pid(path)
    if pid is None:
        return False
    try:
        os.kill(pid, signal.SIGHUP)
    except ProcessLookupError:
        logger.debug("Gateway PID %d is gone, nothing to reload", pid)
        return False
    except PermissionError:
        logger.warning("Not allowed to signal gateway PID %d", pid)
        return False
    logger.debug("Sent SIGHUP to gateway PID %d", pid)
    return True
