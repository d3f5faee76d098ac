"""
Spawner for supervised commands.

Starts one child process through a shell with the supervisor's own
stdin/stdout/stderr, so interactive programs behave normally, and waits for
it to exit without blocking the event loop.
"""

import asyncio
import logging
import signal
import subprocess
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional

from .errors import SpawnError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessResult:
    """How a child process terminated."""

    exit_code: int
    signal: Optional[str] = None

    @property
    def interrupted(self) -> bool:
        """True if the child was killed by SIGINT (Ctrl-C)."""
        return self.signal == "SIGINT"

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0 and self.signal is None


def signal_name(signum: int) -> str:
    """Get the name of a signal number, e.g. 2 -> 'SIGINT'."""
    try:
        return signal.Signals(signum).name
    except ValueError:
        return f"SIG{signum}"


def exit_code_for_signal(signum: int) -> int:
    """Map a terminating signal to an exit code the way POSIX shells do (128 + n)."""
    return 128 + signum


def result_from_returncode(returncode: int) -> ProcessResult:
    """
    Build a ProcessResult from a Popen returncode.

    Popen reports a child killed by signal N as -N. That has no exit status of
    its own, so it is reported as 128 + N alongside the signal name.
    """
    if returncode < 0:
        signum = -returncode
        return ProcessResult(
            exit_code=exit_code_for_signal(signum),
            signal=signal_name(signum),
        )
    return ProcessResult(exit_code=returncode)


@contextmanager
def ignore_interrupts():
    """
    Ignore SIGINT in this process while the block runs.

    Ctrl-C is delivered to the whole foreground process group. While a child
    runs, the child decides what an interrupt means and the supervisor only
    observes how it exited. Signal handlers can only be changed from the
    main thread, elsewhere this is a no-op.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    previous = signal.signal(signal.SIGINT, signal.SIG_IGN)
    try:
        yield
    finally:
        # None means the handler was not installed from Python
        if previous is not None:
            signal.signal(signal.SIGINT, previous)


def start(command: str, shell: str) -> subprocess.Popen:
    """Start a command through a shell with inherited stdio, cwd and environment."""
    try:
        process = subprocess.Popen(command, shell=True, executable=shell)
    except OSError as e:
        logger.debug(f"Failed to start {command!r} with {shell}: {e}")
        raise SpawnError(command, shell, e) from e

    logger.debug(f"Started {command!r} with PID {process.pid}")
    return process


async def wait(process: subprocess.Popen) -> ProcessResult:
    """Wait for a process to exit in a worker thread."""
    loop = asyncio.get_running_loop()

    with ignore_interrupts():
        returncode = await loop.run_in_executor(None, process.wait)

    result = result_from_returncode(returncode)
    logger.debug(f"PID {process.pid} exited: {result}")
    return result


async def spawn(command: str, shell: str) -> ProcessResult:
    """
    Run a command once and wait for it to terminate.

    Raises SpawnError if the shell cannot be started at all.
    """
    # SIGINT is only ignored from wait() on: the child must not inherit an
    # ignored SIGINT, so it cannot be set before Popen. A Ctrl-C between the
    # two reaches the child through the process group as well.
    process = start(command, shell)
    return await wait(process)
