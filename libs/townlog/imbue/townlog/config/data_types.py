from pathlib import Path
from typing import Final

from pydantic import Field
from pydantic import PositiveFloat
from pydantic import PositiveInt
from pydantic import field_validator

from imbue.townlog.frozen_model import FrozenModel
from imbue.townlog.primitives import AppendStrategy

CONFIG_FILENAME: Final[str] = ".townlog.toml"
CONFIG_TABLE_NAME: Final[str] = "townlog"

# PIPE_BUF on Linux and macOS; appends no larger than this are not interleaved on local disks
DEFAULT_ATOMIC_WRITE_LIMIT_BYTES: Final[int] = 4096


class TownLogConfig(FrozenModel):
    """Settings for reading, writing and following the town log."""

    log_relative_path: Path = Field(
        default=Path("logs") / "town.log",
        description="Location of the log file, relative to the town root",
    )
    append_strategy: AppendStrategy = Field(
        default=AppendStrategy.ATOMIC_APPEND,
        description="Use ADVISORY_LOCK on filesystems without atomic O_APPEND (e.g. NFS)",
    )
    atomic_write_limit_bytes: PositiveInt = Field(
        default=DEFAULT_ATOMIC_WRITE_LIMIT_BYTES,
        description="Records larger than this are written under the advisory lock even in ATOMIC_APPEND mode",
    )
    follow_poll_interval_seconds: PositiveFloat = Field(
        default=0.25,
        description="How often follow checks for new lines when idle",
    )
    default_tail_count: PositiveInt = Field(
        default=20,
        description="Number of events shown by the log command when --tail is not given",
    )
    workspace_marker: Path = Field(
        default=Path("mayor") / "town.json",
        description="Relative path whose presence identifies a town root",
    )

    @field_validator("append_strategy", mode="before")
    @classmethod
    def _accept_any_case_strategy(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    def log_path(self, root: Path) -> Path:
        """Absolute path of the town log for the given town root."""
        return root / self.log_relative_path


DEFAULT_CONFIG: Final[TownLogConfig] = TownLogConfig()
