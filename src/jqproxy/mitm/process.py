"""Process management for the mitmdump host."""

import logging
import os
import subprocess
import sys
from pathlib import Path

from jqproxy.config import MitmConfig
from jqproxy.process import is_process_running as shared_is_process_running
from jqproxy.process import stop_process as shared_stop_process
from jqproxy.process import write_pid

logger = logging.getLogger(__name__)


def get_pid_file(config_dir: Path) -> Path:
    """Get the path to the mitmdump PID file."""
    return config_dir / ".mitm.lock"


def get_log_file(config_dir: Path) -> Path:
    """Get the path to the mitmdump log file."""
    return config_dir / "mitm.log"


def is_running(config_dir: Path) -> tuple[bool, int | None]:
    """Check if mitmdump is currently running.

    Returns:
        Tuple of (is_running, pid or None)
    """
    return shared_is_process_running(get_pid_file(config_dir))


def build_command(mitmdump_path: Path, script_path: Path, config: MitmConfig) -> list[str]:
    """Build the mitmdump command line.

    Args:
        mitmdump_path: mitmdump executable
        script_path: Addon script
        config: Host configuration

    Returns:
        Argument list
    """
    cmd = [
        str(mitmdump_path),
        "--mode",
        f"reverse:{config.upstream}",
        "--listen-host",
        config.listen_host,
        "--listen-port",
        str(config.port),
    ]
    if config.stream_large_bodies:
        cmd += ["--set", f"stream_large_bodies={config.stream_large_bodies}"]
    cmd += ["-s", str(script_path)]
    return cmd


def start_mitm(config_dir: Path, config: MitmConfig, detach: bool = False) -> None:
    """Start mitmdump with the jqproxy addon.

    Args:
        config_dir: Configuration directory for PID and log files
        config: Host configuration
        detach: Run in background mode
    """
    running, pid = is_running(config_dir)
    if running:
        logger.error(f"jqproxy is already running with PID {pid}")
        sys.exit(1)

    pid_file = get_pid_file(config_dir)
    log_file = get_log_file(config_dir)

    # Get the bin directory from the current Python interpreter's location
    mitmdump_path = Path(sys.executable).parent / "mitmdump"
    if not mitmdump_path.exists():
        logger.error(f"mitmdump not found at {mitmdump_path}")
        logger.error("Make sure mitmproxy is installed: pip install mitmproxy")
        sys.exit(1)

    script_path = Path(__file__).parent / "script.py"
    cmd = build_command(mitmdump_path, script_path, config)

    env = os.environ.copy()
    env["JQPROXY_CONFIG_DIR"] = str(config_dir)

    logger.info(f"Starting jqproxy on {config.listen_host}:{config.port} → {config.upstream}")

    if detach:
        logger.info(f"Log file: {log_file}")
        try:
            config_dir.mkdir(parents=True, exist_ok=True)
            with log_file.open("w") as log:
                # S603: Command construction is safe - we control the mitmdump path
                process = subprocess.Popen(  # noqa: S603
                    cmd,
                    stdout=log,
                    stderr=subprocess.STDOUT,
                    start_new_session=True,
                    env=env,
                )
            write_pid(pid_file, process.pid)
            logger.info(f"jqproxy started with PID {process.pid}")
        except FileNotFoundError:
            logger.error("mitmdump command not found")
            sys.exit(1)
    else:
        try:
            # S603: Command construction is safe - we control the mitmdump path
            result = subprocess.run(cmd, env=env)  # noqa: S603
            sys.exit(result.returncode)
        except FileNotFoundError:
            logger.error("mitmdump command not found")
            sys.exit(1)
        except KeyboardInterrupt:
            sys.exit(130)


def stop_mitm(config_dir: Path) -> bool:
    """Stop a detached mitmdump.

    Returns:
        True if it was stopped, False otherwise
    """
    pid_file = get_pid_file(config_dir)
    if not pid_file.exists():
        logger.error("No jqproxy server is running (PID file not found)")
        return False
    return shared_stop_process(pid_file)


def get_mitm_status(config_dir: Path) -> dict[str, bool | int | str | None]:
    """Get the status of the mitmdump host."""
    running, pid = is_running(config_dir)
    status: dict[str, bool | int | str | None] = {"running": running, "pid": pid}
    if running:
        log_file = get_log_file(config_dir)
        status["pid_file"] = str(get_pid_file(config_dir))
        status["log_file"] = str(log_file) if log_file.exists() else None
    return status
