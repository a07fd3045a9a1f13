"""Loguru sink configuration for qtlstats.

The package calls setup_logging() on import. Call it again to switch to
DEBUG output or to add a JSON log file. The file sink records the
DEBUG-level detail (LAPACK driver, BLAS thread limit, memory snapshots,
simplex iteration counts) whatever the console level is.
"""

import sys
from pathlib import Path
from typing import TextIO

from loguru import logger

CONSOLE_FORMAT = "{time:HH:mm:ss} | <level>{level: <8}</level> | {message}"


def setup_logging(
    verbose: bool = False,
    log_file: Path | str | None = None,
    stream: TextIO | None = None,
) -> list[int]:
    """Replace all loguru sinks with the qtlstats console (and file) sinks.

    Args:
        verbose: Console level DEBUG instead of INFO.
        log_file: Optional path for a JSON-serialized DEBUG log. Parent
            directories are created.
        stream: Console stream. None uses sys.stdout with colors.

    Returns:
        Handler ids of the added sinks, console first.
    """
    logger.remove()

    handler_ids = [
        logger.add(
            sys.stdout if stream is None else stream,
            level="DEBUG" if verbose else "INFO",
            format=CONSOLE_FORMAT,
            colorize=stream is None,
        )
    ]

    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler_ids.append(logger.add(path, serialize=True, level="DEBUG"))
        logger.debug(f"Writing DEBUG log to {path}")

    return handler_ids
