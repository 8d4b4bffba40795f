"""Event records stored in the town log, and the query type used to filter them.

On disk every event is one JSON object on its own line (JSON Lines), e.g.:

    {"timestamp":"2026-10-19T12:00:00Z","type":"spawn","agent":"gastown/crew/max","context":"issue-42"}

A missing "context" key means no context was recorded; an empty string is a
distinct, valid value and is always written out.
"""

from datetime import datetime
from datetime import timezone

from pydantic import ConfigDict
from pydantic import Field
from pydantic import ValidationError
from pydantic import field_validator

from imbue.townlog.errors import EventParseError
from imbue.townlog.frozen_model import FrozenModel
from imbue.townlog.primitives import AgentPath
from imbue.townlog.primitives import EventKind
from imbue.townlog.primitives import EventTypeName
from imbue.townlog.utils.pure import pure


@pure
def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TownEvent(FrozenModel):
    """One immutable lifecycle record for an agent."""

    # Records written by newer versions may carry extra keys; ignore them rather than dropping the line
    model_config = ConfigDict(frozen=True, extra="ignore")

    timestamp: datetime = Field(description="When the event was appended (UTC)")
    type: EventTypeName = Field(description="Event kind; unknown kinds are kept verbatim")
    agent: AgentPath = Field(description="Hierarchical identifier of the subject agent")
    context: str | None = Field(default=None, description="Optional free-text annotation")

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @property
    def kind(self) -> EventKind | None:
        """The known kind of this event, or None if the type is not one this version knows about."""
        try:
            return EventKind(self.type)
        except ValueError:
            return None

    def to_log_line(self) -> str:
        """Serialize to a single newline-terminated JSON line."""
        return self.model_dump_json(exclude_none=True) + "\n"


def parse_log_line(line: str) -> TownEvent:
    """Parse one line of the town log into an event.

    Raises EventParseError if the line is not a complete, valid record.
    """
    stripped = line.strip()
    if not stripped:
        raise EventParseError("Empty log line")
    try:
        return TownEvent.model_validate_json(stripped)
    except ValidationError as e:
        raise EventParseError(f"Invalid event record: {e.error_count()} validation error(s)") from e


class EventFilter(FrozenModel):
    """Conjunctive constraints for selecting events. Unset fields impose no restriction."""

    event_type: str | None = Field(default=None, description="Keep only events with exactly this type")
    agent_prefix: str | None = Field(default=None, description="Keep only events whose agent starts with this")
    since: datetime | None = Field(default=None, description="Keep only events at or after this time")

    @field_validator("since")
    @classmethod
    def _normalize_since(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        return _as_utc(value)
