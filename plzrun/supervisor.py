"""
Supervision loop.

Runs the configured command, inspects how it terminated, and decides whether
to run it again, how long to wait first, and which exit code plzrun should
report. The loop never exits the process itself: it returns a RunResult that
the command line layer turns into an exit code.
"""

import asyncio
import logging
import math
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, TextIO

from .config import BACKOFF_EXPONENT, SPAWN_FAILURE_EXIT_CODE, RunConfig
from .errors import SpawnError
from .logs import ERROR, INTERRUPTED, NOTE, SUCCESS
from .process import ProcessResult, spawn

logger = logging.getLogger(__name__)

# Clear the visible screen and move the cursor home, leaving scrollback intact
CLEAR_SCREEN = "\033[2J\033[H"

Spawner = Callable[[str, str], Awaitable[ProcessResult]]
Sleeper = Callable[[float], Awaitable[None]]


class Outcome(Enum):
    SUCCEEDED = "succeeded"
    INTERRUPTED = "interrupted"
    EXHAUSTED = "exhausted"
    SPAWN_FAILED = "spawn_failed"


@dataclass(frozen=True)
class RunResult:
    """Terminal state of a supervision run."""

    outcome: Outcome
    exit_code: int
    attempts: int


def sleep_duration(base: float, multiplier: float) -> int:
    """Seconds to pause before the next attempt. Zero base never waits."""
    if base <= 0:
        return 0
    return math.ceil(base * multiplier)


class Supervisor:
    """Runs a command until it succeeds, runs out of retries, or is interrupted."""

    def __init__(
        self,
        config: RunConfig,
        spawner: Spawner = spawn,
        sleeper: Sleeper = asyncio.sleep,
        screen: TextIO = None,
    ):
        self.config = config
        self._spawner = spawner
        self._sleeper = sleeper
        self._screen = screen

    def _clear_screen(self):
        screen = self._screen or sys.stdout
        screen.write(CLEAR_SCREEN)
        screen.flush()

    def _exhausted(self, attempt: int) -> bool:
        if self.config.unbounded:
            return False
        return attempt > self.config.max_retries

    async def run(self) -> RunResult:
        """Supervise the command and return how the run ended."""
        config = self.config
        attempt = 0
        sleep_multiplier = 1.0
        last_exit_code = 0

        while True:
            attempt += 1

            if config.clear:
                self._clear_screen()

            logger.info(
                f"Run {attempt}/{config.max_attempts_label} using {config.shell}: {config.command}",
                extra=NOTE,
            )

            try:
                result = await self._spawner(config.command, config.shell)
            except SpawnError as e:
                logger.error(f"{e} - aborting", extra=ERROR)
                return RunResult(Outcome.SPAWN_FAILED, SPAWN_FAILURE_EXIT_CODE, attempt)

            last_exit_code = result.exit_code

            if result.interrupted:
                logger.info("Terminated by SIGINT (Ctrl-C)", extra=INTERRUPTED)
                return RunResult(Outcome.INTERRUPTED, result.exit_code, attempt)

            if result.succeeded:
                logger.info("Exited with success (exit code 0)", extra=SUCCESS)
                return RunResult(Outcome.SUCCEEDED, 0, attempt)

            if result.signal:
                logger.warning(f"Exited with code {result.exit_code} ({result.signal})")
            else:
                logger.warning(f"Exited with code {result.exit_code}")

            if self._exhausted(attempt):
                logger.error("Retry limit hit - aborting", extra=ERROR)
                return RunResult(Outcome.EXHAUSTED, last_exit_code, attempt)

            duration = sleep_duration(config.sleep, sleep_multiplier)
            if duration > 0:
                logger.info(f"Pausing for {duration}s between executions", extra=NOTE)
                await self._sleeper(duration)

            if config.exponential:
                sleep_multiplier *= BACKOFF_EXPONENT
