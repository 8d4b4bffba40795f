import os
import time
from collections.abc import Callable
from pathlib import Path
from typing import BinaryIO

from loguru import logger
from pydantic import Field

from imbue.townlog.config.data_types import DEFAULT_CONFIG
from imbue.townlog.config.data_types import TownLogConfig
from imbue.townlog.errors import LogFileUnavailableError
from imbue.townlog.errors import LogWriteError
from imbue.townlog.frozen_model import MutableModel


class _FollowCursor(MutableModel):
    """Mutable state for the follow loop."""

    offset: int = Field(description="Byte offset up to which the file has been consumed")
    partial_line: bytes = Field(default=b"", description="Trailing bytes of a line whose newline has not arrived yet")


def ensure_log_file(root: Path, config: TownLogConfig = DEFAULT_CONFIG) -> Path:
    """Create the log directory and an empty log file if needed, and return the log path."""
    log_path = config.log_path(root)
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        log_path.touch(exist_ok=True)
    except OSError as e:
        raise LogWriteError(log_path, f"Failed to create town log {log_path}: {e}") from e
    return log_path


def follow_log(
    root: Path,
    # Called with each newly appended line, including its trailing newline
    on_new_line: Callable[[str], None],
    config: TownLogConfig = DEFAULT_CONFIG,
    # Checked between polls; following stops once it returns True
    should_stop: Callable[[], bool] | None = None,
) -> None:
    """Stream lines appended to the town log until stopped, like tail -f.

    Starts at the current end of the file, so only lines written after the
    call are emitted. Blocks until should_stop returns True or an exception
    (typically KeyboardInterrupt) propagates. Raises LogFileUnavailableError
    if the log file disappears or is replaced (e.g. rotated) while following.
    """
    log_path = ensure_log_file(root, config)
    try:
        handle = log_path.open("rb")
    except OSError as e:
        raise LogFileUnavailableError(log_path, f"Failed to open town log {log_path}: {e}") from e

    logger.debug("Following town log {}", log_path)
    with handle:
        handle.seek(0, os.SEEK_END)
        cursor = _FollowCursor(offset=handle.tell())
        while True:
            emitted_count = _emit_new_lines(handle, log_path, cursor, on_new_line)
            if should_stop is not None and should_stop():
                logger.debug("Stopped following town log {}", log_path)
                return
            if emitted_count == 0:
                time.sleep(config.follow_poll_interval_seconds)


def _emit_new_lines(
    handle: BinaryIO,
    log_path: Path,
    cursor: _FollowCursor,
    on_new_line: Callable[[str], None],
) -> int:
    """Read whatever was appended since the last call and emit the complete lines. Returns the number emitted."""
    try:
        path_stat = log_path.stat()
    except OSError as e:
        raise LogFileUnavailableError(log_path, f"Town log {log_path} is no longer available: {e}") from e

    handle_stat = os.fstat(handle.fileno())
    if (path_stat.st_dev, path_stat.st_ino) != (handle_stat.st_dev, handle_stat.st_ino):
        raise LogFileUnavailableError(log_path, f"Town log {log_path} was replaced by another file (rotated?)")

    current_size = path_stat.st_size

    if current_size < cursor.offset:
        # Truncated externally, start again from the top
        logger.debug("Town log {} was truncated, following from the start", log_path)
        handle.seek(0)
        cursor.offset = 0
        cursor.partial_line = b""

    if current_size == cursor.offset:
        return 0

    chunk = handle.read(current_size - cursor.offset)
    cursor.offset += len(chunk)
    complete_lines = (cursor.partial_line + chunk).split(b"\n")
    cursor.partial_line = complete_lines.pop()
    for raw_line in complete_lines:
        on_new_line(raw_line.decode("utf-8", errors="replace") + "\n")
    return len(complete_lines)
