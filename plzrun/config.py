"""
Configuration for plzrun.

Settings come from environment variables, with PLZRUN_* fallbacks read from
a .env file in the working directory, and only provide defaults for the
command line. The parsed command line becomes a frozen RunConfig that is
passed to the supervision loop.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from dotenv import dotenv_values

from .errors import ConfigurationError

# Sentinel for an unbounded retry budget
UNBOUNDED = -1

# Factor applied to the sleep multiplier after each failed attempt
BACKOFF_EXPONENT = 1.5

# Exit code reported when the command could never be spawned
SPAWN_FAILURE_EXIT_CODE = 125

# Exit code for Ctrl-C, matching a child killed by SIGINT (128 + 2)
INTERRUPTED_EXIT_CODE = 130

INFINITY_LABEL = "∞"


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


def default_shell(environ: Mapping[str, str] = None) -> str:
    """Get the shell used to interpret commands: $SHELL, else the platform default."""
    if environ is None:
        environ = os.environ
    shell = environ.get("SHELL", "").strip()
    if shell:
        return shell
    if os.name == "nt":
        return environ.get("COMSPEC") or "cmd.exe"
    return "/bin/sh"


def read_dotenv(path: Path) -> dict[str, str]:
    """Read PLZRUN_* settings from a .env file, if there is one."""
    if not path.is_file():
        return {}
    return {
        key: value
        for key, value in dotenv_values(path).items()
        if key.startswith("PLZRUN_") and value is not None
    }


@dataclass(frozen=True)
class Settings:
    """Environment-backed defaults."""

    # Command line defaults
    retries: int = UNBOUNDED
    sleep: int = 0
    shell: str = "/bin/sh"

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None
    log_max_bytes: int = 10 * 1024 * 1024  # 10MB
    log_backup_count: int = 5
    color: bool = True

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = None) -> "Settings":
        """
        Build settings from the environment.

        Without an explicit mapping, PLZRUN_* values from a .env file in the
        working directory are used as fallbacks for os.environ. The file is
        only read, never loaded into os.environ, so the supervised command
        sees the caller's environment unchanged.
        """
        if environ is None:
            environ = {**read_dotenv(Path.cwd() / ".env"), **os.environ}

        log_file = environ.get("PLZRUN_LOG_FILE", "").strip()

        return cls(
            retries=_env_int(environ, "PLZRUN_RETRIES", UNBOUNDED),
            sleep=_env_int(environ, "PLZRUN_SLEEP", 0),
            shell=default_shell(environ),
            log_level=environ.get("PLZRUN_LOG_LEVEL", "INFO").strip().upper() or "INFO",
            log_file=Path(log_file).expanduser() if log_file else None,
            log_max_bytes=_env_int(environ, "PLZRUN_LOG_MAX_BYTES", 10 * 1024 * 1024),
            log_backup_count=_env_int(environ, "PLZRUN_LOG_BACKUP_COUNT", 5),
            color="NO_COLOR" not in environ,
        )


@dataclass(frozen=True)
class RunConfig:
    """What to run and how to retry it. Immutable for the lifetime of a run."""

    command: str
    max_retries: int = UNBOUNDED
    sleep: int = 0
    exponential: bool = False
    clear: bool = False
    shell: str = field(default_factory=default_shell)

    def __post_init__(self):
        if not self.command or not self.command.strip():
            raise ConfigurationError("command must not be empty")
        if not self.shell:
            raise ConfigurationError("shell must not be empty")
        if self.max_retries < UNBOUNDED:
            raise ConfigurationError(
                f"retries must be -1 (unbounded) or greater, got {self.max_retries}"
            )
        if self.sleep < 0:
            raise ConfigurationError(f"sleep must not be negative, got {self.sleep}")

    @property
    def unbounded(self) -> bool:
        return self.max_retries == UNBOUNDED

    @property
    def max_attempts(self) -> Optional[int]:
        """Total number of attempts, or None when unbounded."""
        if self.unbounded:
            return None
        return self.max_retries + 1

    @property
    def max_attempts_label(self) -> str:
        if self.unbounded:
            return INFINITY_LABEL
        return str(self.max_attempts)
