"""
plzrun - run a command until it succeeds.

Supervises an external command, re-running it on failure with optional
sleep and exponential backoff until it succeeds, the retry budget runs out,
or the user interrupts it with Ctrl-C.
"""

__version__ = "1.1.0"
