import re
from datetime import datetime
from datetime import timedelta
from typing import Final

from imbue.townlog.errors import UserInputError
from imbue.townlog.utils.pure import pure

# One number-plus-unit component of a duration, e.g. "1.5h" or "500ms"
_COMPONENT_PATTERN: Final[re.Pattern[str]] = re.compile(r"(\d+(?:\.\d+)?|\.\d+)(ms|d|h|m|s)", re.IGNORECASE)

_UNIT_SECONDS: Final[dict[str, float]] = {
    "ms": 0.001,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
    "d": 86400.0,
}


@pure
def parse_duration(duration_str: str) -> timedelta:
    """Parse a relative window such as '30m', '1h', '1h30m', '1.5h', '7d' or '500ms'.

    Every component needs a unit. The total must be greater than zero.
    """
    stripped = duration_str.strip().replace(" ", "")
    if not stripped:
        raise UserInputError(f"Invalid duration: '{duration_str}' (empty string)")

    total_seconds = 0.0
    position = 0
    for match in _COMPONENT_PATTERN.finditer(stripped):
        if match.start() != position:
            break
        total_seconds += float(match.group(1)) * _UNIT_SECONDS[match.group(2).lower()]
        position = match.end()

    if position != len(stripped):
        raise UserInputError(
            f"Invalid duration: '{duration_str}'. Expected format like '90s', '30m', '1h', '1h30m', '1.5h', '7d'."
        )
    if total_seconds <= 0.0:
        raise UserInputError(f"Invalid duration: '{duration_str}'. Duration must be greater than zero.")

    return timedelta(seconds=total_seconds)


@pure
def since_from_window(duration_str: str, now: datetime) -> datetime:
    """Return the inclusive lower time bound for events within the window ending at now."""
    return now - parse_duration(duration_str)
