"""Exceptions raised by plzrun."""


class PlzrunError(Exception):
    """Base class for plzrun errors."""


class ConfigurationError(PlzrunError, ValueError):
    """A flag or environment value is malformed or out of range."""


class SpawnError(PlzrunError):
    """The command could not be started at all."""

    def __init__(self, command: str, shell: str, reason: OSError):
        self.command = command
        self.shell = shell
        self.reason = reason
        super().__init__(f"Could not start {shell!r}: {reason.strerror or reason}")
