import asyncio
import io
import logging

import pytest

from plzrun.config import SPAWN_FAILURE_EXIT_CODE, UNBOUNDED, RunConfig
from plzrun.errors import SpawnError
from plzrun.process import ProcessResult
from plzrun.supervisor import CLEAR_SCREEN, Outcome, Supervisor, sleep_duration

FAIL = ProcessResult(exit_code=1)
OK = ProcessResult(exit_code=0)
SIGINT = ProcessResult(exit_code=130, signal="SIGINT")
SIGTERM = ProcessResult(exit_code=143, signal="SIGTERM")


class ScriptedSpawner:
    """Returns results in order, repeating the last one forever."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []

    async def __call__(self, command, shell):
        self.calls.append((command, shell))
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


class RecordingSleeper:
    def __init__(self):
        self.durations = []

    async def __call__(self, seconds):
        self.durations.append(seconds)


def supervise(config, spawner, sleeper=None, screen=None):
    sleeper = sleeper or RecordingSleeper()
    supervisor = Supervisor(config, spawner=spawner, sleeper=sleeper, screen=screen)
    return asyncio.run(supervisor.run())


def make_config(**overrides) -> RunConfig:
    values = {"command": "flaky", "shell": "/bin/sh", "max_retries": 2}
    values.update(overrides)
    return RunConfig(**values)


def test_sleep_duration_rounds_up():
    assert sleep_duration(1, 1.5) == 2
    assert sleep_duration(3, 1.0) == 3
    assert sleep_duration(2, 2.25) == 5


def test_sleep_duration_zero_base_never_waits():
    assert sleep_duration(0, 1.0) == 0
    assert sleep_duration(0, 1.5**10) == 0


def test_success_on_first_attempt():
    spawner = ScriptedSpawner(OK)
    result = supervise(make_config(), spawner)

    assert result.outcome is Outcome.SUCCEEDED
    assert result.exit_code == 0
    assert result.attempts == 1
    assert spawner.calls == [("flaky", "/bin/sh")]


@pytest.mark.parametrize("retries", [0, 1, 2, 5])
def test_always_failing_command_runs_retries_plus_one_times(retries):
    spawner = ScriptedSpawner(ProcessResult(exit_code=7))
    result = supervise(make_config(max_retries=retries), spawner)

    assert result.outcome is Outcome.EXHAUSTED
    assert result.exit_code == 7
    assert result.attempts == retries + 1
    assert len(spawner.calls) == retries + 1


def test_success_on_kth_attempt():
    spawner = ScriptedSpawner(FAIL, FAIL, FAIL, OK)
    result = supervise(make_config(max_retries=5), spawner)

    assert result.outcome is Outcome.SUCCEEDED
    assert result.exit_code == 0
    assert result.attempts == 4


def test_success_on_last_allowed_attempt():
    spawner = ScriptedSpawner(FAIL, FAIL, OK)
    result = supervise(make_config(max_retries=2), spawner)

    assert result.outcome is Outcome.SUCCEEDED
    assert result.attempts == 3


def test_exhausted_reports_last_exit_code():
    spawner = ScriptedSpawner(ProcessResult(exit_code=3), ProcessResult(exit_code=9))
    result = supervise(make_config(max_retries=1), spawner)

    assert result.outcome is Outcome.EXHAUSTED
    assert result.exit_code == 9


def test_retry_limit_logged(caplog):
    caplog.set_level(logging.INFO)
    result = supervise(make_config(max_retries=2), ScriptedSpawner(FAIL))

    assert result.attempts == 3
    assert result.exit_code == 1
    assert "Run 3/3 using /bin/sh: flaky" in caplog.text
    assert "Exited with code 1" in caplog.text
    assert "Retry limit hit - aborting" in caplog.text


def test_unbounded_keeps_retrying_until_interrupted(caplog):
    caplog.set_level(logging.INFO)
    spawner = ScriptedSpawner(*([FAIL] * 50), SIGINT)
    result = supervise(make_config(max_retries=UNBOUNDED), spawner)

    assert result.outcome is Outcome.INTERRUPTED
    assert result.attempts == 51
    assert result.exit_code == 130
    assert "Run 1/∞ using /bin/sh: flaky" in caplog.text
    assert "Retry limit hit" not in caplog.text


def test_interrupt_stops_despite_remaining_budget(caplog):
    caplog.set_level(logging.INFO)
    sleeper = RecordingSleeper()
    spawner = ScriptedSpawner(FAIL, SIGINT, OK)
    result = supervise(make_config(max_retries=10, sleep=5), spawner, sleeper)

    assert result.outcome is Outcome.INTERRUPTED
    assert result.exit_code == 130
    assert result.attempts == 2
    assert sleeper.durations == [5]
    assert "Terminated by SIGINT (Ctrl-C)" in caplog.text


def test_other_signals_are_retried(caplog):
    caplog.set_level(logging.INFO)
    spawner = ScriptedSpawner(SIGTERM, OK)
    result = supervise(make_config(), spawner)

    assert result.outcome is Outcome.SUCCEEDED
    assert result.attempts == 2
    assert "Exited with code 143 (SIGTERM)" in caplog.text


def test_signal_exit_code_reported_when_exhausted():
    result = supervise(make_config(max_retries=0), ScriptedSpawner(SIGTERM))

    assert result.outcome is Outcome.EXHAUSTED
    assert result.exit_code == 143


def test_spawn_failure_aborts_without_retry(caplog):
    caplog.set_level(logging.INFO)
    sleeper = RecordingSleeper()
    error = SpawnError("flaky", "/no/such/shell", FileNotFoundError(2, "No such file or directory"))
    spawner = ScriptedSpawner(error)
    result = supervise(make_config(max_retries=UNBOUNDED, sleep=1), spawner, sleeper)

    assert result.outcome is Outcome.SPAWN_FAILED
    assert result.exit_code == SPAWN_FAILURE_EXIT_CODE
    assert result.attempts == 1
    assert len(spawner.calls) == 1
    assert sleeper.durations == []
    assert "Could not start '/no/such/shell'" in caplog.text


def test_zero_sleep_never_waits_even_with_backoff():
    sleeper = RecordingSleeper()
    supervise(make_config(max_retries=3, sleep=0, exponential=True), ScriptedSpawner(FAIL), sleeper)

    assert sleeper.durations == []


def test_constant_sleep_between_attempts(caplog):
    caplog.set_level(logging.INFO)
    sleeper = RecordingSleeper()
    supervise(make_config(max_retries=2, sleep=3), ScriptedSpawner(FAIL), sleeper)

    # No pause after the final attempt
    assert sleeper.durations == [3, 3]
    assert "Pausing for 3s between executions" in caplog.text


def test_exponential_backoff_waits():
    sleeper = RecordingSleeper()
    supervise(
        make_config(max_retries=4, sleep=2, exponential=True),
        ScriptedSpawner(FAIL),
        sleeper,
    )

    # ceil(2 * 1.5 ** (n - 2)) before attempt n
    assert sleeper.durations == [2, 3, 5, 7]


def test_exponential_backoff_until_success():
    sleeper = RecordingSleeper()
    result = supervise(
        make_config(max_retries=UNBOUNDED, sleep=1, exponential=True),
        ScriptedSpawner(FAIL, FAIL, OK),
        sleeper,
    )

    assert result.outcome is Outcome.SUCCEEDED
    assert result.exit_code == 0
    assert result.attempts == 3
    assert sleeper.durations == [1, 2]


def test_clear_resets_screen_before_each_attempt():
    screen = io.StringIO()
    supervise(make_config(max_retries=2, clear=True), ScriptedSpawner(FAIL, FAIL, OK), screen=screen)

    assert screen.getvalue() == CLEAR_SCREEN * 3


def test_no_clear_by_default():
    screen = io.StringIO()
    supervise(make_config(), ScriptedSpawner(OK), screen=screen)

    assert screen.getvalue() == ""
