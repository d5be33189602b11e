"""PID file helpers for background processes."""

import logging
import os
import signal
import time
from pathlib import Path

import psutil

logger = logging.getLogger(__name__)


def write_pid(pid_file: Path, pid: int) -> None:
    """Write a PID to a file, creating parent directories."""
    pid_file.parent.mkdir(parents=True, exist_ok=True)
    pid_file.write_text(str(pid))


def read_pid(pid_file: Path) -> int | None:
    """Read a PID from a file.

    Returns:
        PID, or None if the file is missing or malformed
    """
    try:
        return int(pid_file.read_text().strip())
    except (OSError, ValueError):
        return None


def is_process_running(pid_file: Path) -> tuple[bool, int | None]:
    """Check whether the process recorded in a PID file is alive.

    Returns:
        Tuple of (is_running, pid or None)
    """
    pid = read_pid(pid_file)
    if pid is None:
        return False, None
    if not psutil.pid_exists(pid):
        return False, pid
    try:
        return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE, pid
    except psutil.NoSuchProcess:
        return False, pid


def stop_process(pid_file: Path, timeout: float = 5.0) -> bool:
    """Stop the process recorded in a PID file.

    Sends SIGTERM, then SIGKILL if it has not exited after ``timeout``.
    The PID file is removed in every case.

    Returns:
        True if the process was stopped, False if it was not running
    """
    running, pid = is_process_running(pid_file)
    if not running or pid is None:
        logger.warning(f"Process from {pid_file} is not running, removing stale PID file")
        pid_file.unlink(missing_ok=True)
        return False

    try:
        os.kill(pid, signal.SIGTERM)
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if not psutil.pid_exists(pid):
                break
            time.sleep(0.1)
        else:
            logger.warning(f"Process {pid} did not exit, sending SIGKILL")
            os.kill(pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    finally:
        pid_file.unlink(missing_ok=True)

    logger.info(f"Stopped process {pid}")
    return True
