"""
Command line interface.

Parses options into a RunConfig, configures logging, runs the supervision
loop and returns the exit code for the process. Options must come before the
command; everything from the first non-option token (or after "--") is part
of the command line.
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from . import __version__
from .config import INTERRUPTED_EXIT_CODE, UNBOUNDED, RunConfig, Settings
from .errors import ConfigurationError
from .logs import INTERRUPTED, setup_logging
from .supervisor import Supervisor

logger = logging.getLogger(__name__)

DESCRIPTION = (
    "A tool for supervising and retrying command line executions. "
    "Runs something until it succeeds."
)

EPILOG = """\
The command is run with the shell in $SHELL (/bin/sh if unset).

environment:
  PLZRUN_RETRIES           default for --retries
  PLZRUN_SLEEP             default for --sleep
  PLZRUN_LOG_LEVEL         log level (default: INFO)
  PLZRUN_LOG_FILE          also write log lines to this file
  NO_COLOR                 disable colored output
"""


def retries_value(value: str) -> int:
    """Parse --retries: an integer, -1 meaning unbounded."""
    try:
        retries = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {value!r}") from None
    if retries < UNBOUNDED:
        raise argparse.ArgumentTypeError(f"must be -1 (infinite) or greater: {retries}")
    return retries


def sleep_value(value: str) -> int:
    """Parse --sleep: a non-negative number of seconds."""
    try:
        sleep = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {value!r}") from None
    if sleep < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {sleep}")
    return sleep


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="plzrun",
        usage="%(prog)s [options] COMMAND",
        description=DESCRIPTION,
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-r",
        "--retries",
        type=retries_value,
        default=settings.retries,
        metavar="number",
        help="How many times to retry the command if it fails "
        "(-1 is infinite tries, default: %(default)s)",
    )
    parser.add_argument(
        "-s",
        "--sleep",
        type=sleep_value,
        default=settings.sleep,
        metavar="number",
        help="How long to wait in between executions (in seconds, default: %(default)s)",
    )
    parser.add_argument(
        "-e",
        "--exponential",
        action="store_true",
        help="Apply exponential backoff to sleep durations (using exponent 1.5). "
        "If a sleep duration is not set, use of -e will apply an automatic "
        "base sleep duration of 1s.",
    )
    parser.add_argument(
        "-c",
        "--clear",
        action="store_true",
        help="Behave in a semi watch-like manner, resetting the terminal in between "
        "executions. In contrast to watch(1), all output will remain visible in "
        "scrollback and the screen will not be cleared at exit.",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=__version__,
        help="Display version information",
    )
    parser.add_argument(
        "command",
        nargs=argparse.REMAINDER,
        help="Command line to run",
    )
    return parser


def parse_config(
    parser: argparse.ArgumentParser,
    argv: Optional[Sequence[str]],
    settings: Settings,
) -> Optional[RunConfig]:
    """
    Parse arguments into a RunConfig.

    Returns None when no command was given. Exits through the parser on
    malformed arguments, --help and --version.
    """
    args = parser.parse_args(argv)

    tokens = list(args.command)
    if tokens and tokens[0] == "--":
        tokens = tokens[1:]
    if not tokens:
        return None

    # Exponential backoff needs a base to multiply
    sleep = args.sleep
    if args.exponential and not sleep:
        sleep = 1

    try:
        return RunConfig(
            command=" ".join(tokens),
            max_retries=args.retries,
            sleep=sleep,
            exponential=args.exponential,
            clear=args.clear,
            shell=settings.shell,
        )
    except ConfigurationError as e:
        parser.error(str(e))


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run plzrun and return the process exit code."""
    try:
        settings = Settings.from_env()
    except ConfigurationError as e:
        print(f"plzrun: error: {e}", file=sys.stderr)
        return 2

    parser = build_parser(settings)
    try:
        config = parse_config(parser, argv, settings)
    except SystemExit as e:
        # argparse exits on --help, --version and usage errors
        return e.code or 0

    if config is None:
        parser.print_help()
        return 0

    setup_logging(settings)

    supervisor = Supervisor(config)
    try:
        result = asyncio.run(supervisor.run())
    except KeyboardInterrupt:
        # Ctrl-C while no child holds the interrupt, i.e. during a pause
        logger.info("Interrupted while pausing", extra=INTERRUPTED)
        return INTERRUPTED_EXIT_CODE

    logger.debug(f"Finished after {result.attempts} attempt(s): {result.outcome.value}")
    return result.exit_code
