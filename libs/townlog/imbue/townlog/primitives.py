from enum import StrEnum
from enum import auto
from typing import Any
from typing import Self

from pydantic import GetCoreSchemaHandler
from pydantic_core import CoreSchema
from pydantic_core import core_schema


class UpperCaseStrEnum(StrEnum):
    """A StrEnum whose auto() values are the upper-cased member names."""

    @staticmethod
    def _generate_next_value_(
        name: str,
        start: int,
        count: int,
        last_values: list[str],
    ) -> str:
        return name.upper()


class EventKind(StrEnum):
    """The lifecycle event kinds known to this version of townlog.

    The values are the lower-case strings written to the log. Records with
    any other type string are still valid; see TownEvent.kind.
    """

    SPAWN = auto()
    WAKE = auto()
    NUDGE = auto()
    HANDOFF = auto()
    DONE = auto()
    CRASH = auto()
    KILL = auto()


class AppendStrategy(UpperCaseStrEnum):
    """How the writer protects a record from concurrent appenders."""

    # One O_APPEND write per record, relying on the filesystem for atomicity
    ATOMIC_APPEND = auto()
    # An exclusive flock on the log file around every write
    ADVISORY_LOCK = auto()


class OutputFormat(UpperCaseStrEnum):
    """Output format for the log command."""

    HUMAN = auto()
    JSONL = auto()


class LogLevel(UpperCaseStrEnum):
    """Diagnostic log verbosity level."""

    TRACE = auto()
    DEBUG = auto()
    INFO = auto()
    WARNING = auto()
    ERROR = auto()


class NonEmptyStr(str):
    """A string that cannot be empty, whitespace-only, or padded with whitespace.

    Values are stored exactly as given, so padding is rejected rather than stripped.
    """

    def __new__(cls, value: str) -> Self:
        if not value or not value.strip():
            raise ValueError(f"{cls.__name__} cannot be empty")
        if value != value.strip():
            raise ValueError(f"{cls.__name__} cannot have leading or trailing whitespace: {value!r}")
        return super().__new__(cls, value)

    @classmethod
    def __get_pydantic_core_schema__(
        cls,
        source_type: Any,
        handler: GetCoreSchemaHandler,
    ) -> CoreSchema:
        return core_schema.no_info_after_validator_function(
            cls,
            core_schema.str_schema(min_length=1),
            serialization=core_schema.to_string_ser_schema(),
        )


class EventTypeName(NonEmptyStr):
    """The raw type string of an event, e.g. 'spawn' or a future kind like 'pause'."""


class AgentPath(NonEmptyStr):
    """Hierarchical agent identifier, e.g. 'gastown/crew/max'."""
