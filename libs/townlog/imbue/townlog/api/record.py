"""Appending lifecycle events to the town log.

Many agent processes append to the same file at once. Every record is
written with a single os.write() on a descriptor opened with O_APPEND, so a
record never interleaves with another process's record as long as the
filesystem honours append atomicity for writes of that size. Records above
the configured atomic write limit, and every record when the config selects
AppendStrategy.ADVISORY_LOCK, are written while holding an exclusive flock
on the log file instead.

record_event and the log_* wrappers raise LogWriteError on failure.
record_event_best_effort is for callers that only annotate some other
action (e.g. noting that an agent woke) and must not fail because of it.
"""

import fcntl
import os
from datetime import datetime
from datetime import timezone
from pathlib import Path
from typing import Final

from loguru import logger
from pydantic import ValidationError

from imbue.townlog.api.workspace import find_town_root_from_cwd
from imbue.townlog.config.data_types import DEFAULT_CONFIG
from imbue.townlog.config.data_types import TownLogConfig
from imbue.townlog.config.loader import load_config
from imbue.townlog.errors import BaseTownLogError
from imbue.townlog.errors import LogWriteError
from imbue.townlog.errors import UserInputError
from imbue.townlog.events.data_types import TownEvent
from imbue.townlog.primitives import AppendStrategy
from imbue.townlog.primitives import EventKind

_LOG_FILE_MODE: Final[int] = 0o644


def record_event(
    root: Path,
    event_type: str,
    agent: str,
    context: str | None,
    config: TownLogConfig = DEFAULT_CONFIG,
) -> TownEvent:
    """Append one event to the town log and return it.

    The timestamp is taken here, at append time. The log directory and file
    are created if they do not exist yet. Raises UserInputError for an empty
    type or agent, or one with leading or trailing whitespace; both are stored
    exactly as given.
    """
    try:
        event = TownEvent(
            timestamp=datetime.now(timezone.utc),
            type=event_type,
            agent=agent,
            context=context,
        )
    except ValidationError as e:
        raise UserInputError(f"Invalid event (type={event_type!r}, agent={agent!r}): {e}") from e

    payload = event.to_log_line().encode("utf-8")
    log_path = config.log_path(root)
    is_locked = (
        config.append_strategy == AppendStrategy.ADVISORY_LOCK or len(payload) > config.atomic_write_limit_bytes
    )

    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        _append_payload(log_path, payload, is_locked)
    except OSError as e:
        raise LogWriteError(log_path, f"Failed to append {event.type} event to {log_path}: {e}") from e

    logger.trace("Appended {} event for {} to {} (locked={})", event.type, event.agent, log_path, is_locked)
    return event


def _append_payload(log_path: Path, payload: bytes, is_locked: bool) -> None:
    """Write payload to the end of log_path with exactly one write call."""
    fd = os.open(log_path, os.O_WRONLY | os.O_APPEND | os.O_CREAT, _LOG_FILE_MODE)
    try:
        if is_locked:
            fcntl.flock(fd, fcntl.LOCK_EX)
            try:
                written = os.write(fd, payload)
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
        else:
            written = os.write(fd, payload)
    finally:
        os.close(fd)

    if written != len(payload):
        raise OSError(f"short write ({written} of {len(payload)} bytes)")


def record_event_best_effort(
    event_type: str,
    agent: str,
    context: str | None,
    root: Path | None = None,
    config: TownLogConfig | None = None,
) -> TownEvent | None:
    """Append an event, swallowing every townlog error.

    For incidental logging from code whose primary action must not fail
    because the log could not be written. When root is None the town root is
    discovered from the current directory; outside a town nothing is
    recorded. Returns the event, or None if nothing was recorded.
    """
    try:
        if root is None:
            root = find_town_root_from_cwd(config or DEFAULT_CONFIG)
            if root is None:
                logger.trace("Not in a town, not recording {} event for {}", event_type, agent)
                return None
        effective_config = config if config is not None else load_config(root)
        return record_event(root, event_type, agent, context, effective_config)
    except BaseTownLogError as e:
        logger.debug("Failed to record {} event for {}: {}", event_type, agent, e)
        return None


# Convenience wrappers for the known kinds. All of them raise like record_event.


def log_spawn(root: Path, agent: str, issue_id: str, config: TownLogConfig = DEFAULT_CONFIG) -> TownEvent:
    return record_event(root, EventKind.SPAWN, agent, issue_id, config)


def log_wake(root: Path, agent: str, context: str, config: TownLogConfig = DEFAULT_CONFIG) -> TownEvent:
    return record_event(root, EventKind.WAKE, agent, context, config)


def log_nudge(root: Path, agent: str, message: str, config: TownLogConfig = DEFAULT_CONFIG) -> TownEvent:
    return record_event(root, EventKind.NUDGE, agent, message.strip(), config)


def log_handoff(root: Path, agent: str, context: str, config: TownLogConfig = DEFAULT_CONFIG) -> TownEvent:
    return record_event(root, EventKind.HANDOFF, agent, context, config)


def log_done(root: Path, agent: str, issue_id: str, config: TownLogConfig = DEFAULT_CONFIG) -> TownEvent:
    return record_event(root, EventKind.DONE, agent, issue_id, config)


def log_crash(root: Path, agent: str, reason: str, config: TownLogConfig = DEFAULT_CONFIG) -> TownEvent:
    return record_event(root, EventKind.CRASH, agent, reason, config)


def log_kill(root: Path, agent: str, reason: str, config: TownLogConfig = DEFAULT_CONFIG) -> TownEvent:
    return record_event(root, EventKind.KILL, agent, reason, config)
