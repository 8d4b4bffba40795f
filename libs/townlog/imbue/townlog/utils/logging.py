import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from loguru import logger

from imbue.townlog.primitives import LogLevel


def _dynamic_stderr_sink(message: Any) -> None:
    """Loguru sink that always writes to the current sys.stderr (which pytest and CliRunner may swap)."""
    sys.stderr.write(str(message))
    sys.stderr.flush()


def setup_logging(level: LogLevel = LogLevel.WARNING) -> None:
    """Send loguru diagnostics at or above the given level to stderr.

    Event output is written to stdout by the CLI, so diagnostics never mix
    with records when the output is piped.
    """
    logger.remove()
    logger.add(
        _dynamic_stderr_sink,
        level=str(level),
        format="<level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        colorize=True,
        diagnose=False,
    )


@contextmanager
def log_span(message: str, *args: Any, **context: Any) -> Iterator[None]:
    """Log a debug message on entry and a trace message with the elapsed time on exit.

    Keyword arguments are bound with logger.contextualize for everything logged inside the span.
    """
    with logger.contextualize(**context):
        logger.debug(message, *args)
        start_time = time.monotonic()
        try:
            yield
        except BaseException:
            logger.trace(message + " [failed after {:.5f} sec]", *args, time.monotonic() - start_time)
            raise
        else:
            logger.trace(message + " [done in {:.5f} sec]", *args, time.monotonic() - start_time)
