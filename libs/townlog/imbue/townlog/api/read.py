import stat
from pathlib import Path

from loguru import logger

from imbue.townlog.config.data_types import DEFAULT_CONFIG
from imbue.townlog.config.data_types import TownLogConfig
from imbue.townlog.errors import EventParseError
from imbue.townlog.errors import LogReadError
from imbue.townlog.events.data_types import TownEvent
from imbue.townlog.events.data_types import parse_log_line
from imbue.townlog.utils.logging import log_span
from imbue.townlog.utils.pure import pure


def log_file_exists(root: Path, config: TownLogConfig = DEFAULT_CONFIG) -> bool:
    """Return True if any event has ever been written (or follow has created the file).

    Only a missing path counts as absent. Raises LogReadError if the path
    exists but is not a regular file, or cannot be inspected at all.
    """
    log_path = config.log_path(root)
    try:
        mode = log_path.stat().st_mode
    except FileNotFoundError:
        return False
    except OSError as e:
        raise LogReadError(log_path, f"Failed to inspect town log {log_path}: {e}") from e
    if not stat.S_ISREG(mode):
        raise LogReadError(log_path, f"Town log {log_path} exists but is not a regular file")
    return True


def read_events(root: Path, config: TownLogConfig = DEFAULT_CONFIG) -> list[TownEvent]:
    """Read every event in the town log, in file (append) order.

    A missing log file yields an empty list. A log file that exists but
    cannot be read raises LogReadError. Lines that are not valid records
    are skipped with a warning; they never hide the lines around them.
    """
    log_path = config.log_path(root)
    with log_span("Reading town log {}", log_path):
        try:
            content = log_path.read_bytes()
        except FileNotFoundError:
            logger.trace("No town log at {}", log_path)
            return []
        except OSError as e:
            raise LogReadError(log_path, f"Failed to read town log {log_path}: {e}") from e

        events, skipped_line_numbers = parse_log_content(content)

    if skipped_line_numbers:
        logger.warning(
            "Skipped {} unparseable line(s) in {} (line numbers: {})",
            len(skipped_line_numbers),
            log_path,
            ", ".join(str(n) for n in skipped_line_numbers[:10]),
        )
    return events


@pure
def parse_log_content(content: bytes) -> tuple[list[TownEvent], list[int]]:
    """Parse raw log bytes into events.

    Returns (events, skipped_line_numbers). Line numbers are 1-based. Blank
    lines are neither returned nor counted as skipped.
    """
    events: list[TownEvent] = []
    skipped_line_numbers: list[int] = []
    for line_number, raw_line in enumerate(content.split(b"\n"), start=1):
        if not raw_line.strip():
            continue
        try:
            events.append(parse_log_line(raw_line.decode("utf-8")))
        except (UnicodeDecodeError, EventParseError):
            skipped_line_numbers.append(line_number)
    return events, skipped_line_numbers
