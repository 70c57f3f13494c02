"""
cli.py
~~~~~~

Process entry point of the ``fannc`` program.

Usage:
    fannc COMMAND ARGS...
    fannc help
    fannc COMMAND --help
"""

import os
import sys
import logging
from typing import List, Optional

from fannc.commands import PROGRAM, Streams, banner, dispatch

# Configure module logger
logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """
    Set up logging based on environment.

    Logs go to stderr so they never mix with artifacts written to stdout.
    The level comes from FANNC_LOG_LEVEL and defaults to WARNING.
    """
    log_level_str = os.getenv('FANNC_LOG_LEVEL', 'WARNING').upper()
    log_level = getattr(logging, log_level_str, logging.WARNING)

    logging.basicConfig(
        level=log_level,
        stream=sys.stderr,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def main(argv: Optional[List[str]] = None, streams: Optional[Streams] = None) -> int:
    """
    Run fannc with the given arguments (defaults to sys.argv[1:]).

    Returns:
        int: Process exit code
    """
    if argv is None:
        argv = sys.argv[1:]
    if streams is None:
        streams = Streams.system()

    if not argv:
        streams.stderr.write(banner())
        streams.stderr.write(f"Usage: {PROGRAM} COMMAND ARGS...\n")
        streams.stderr.write(
            f"Type `{PROGRAM} help` for a list of commands or "
            f"`{PROGRAM} COMMAND --help` for help on a command.\n"
        )
        return 1

    logger.debug(f"{PROGRAM} {' '.join(argv)}")
    return dispatch(argv[0], argv[1:], streams)


def run() -> None:
    """Console script entry point."""
    configure_logging()
    sys.exit(main())


if __name__ == '__main__':
    run()
