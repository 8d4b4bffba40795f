from pathlib import Path

from click import ClickException


class BaseTownLogError(Exception):
    """Base exception for all townlog errors."""


class TownLogError(ClickException, BaseTownLogError):
    """Base exception for all user-facing townlog errors.

    Subclasses can provide a user_help_text attribute with additional context
    to help the user resolve the error. The CLI displays it after the message.
    """

    user_help_text: str | None = None

    def format_message(self) -> str:
        if self.user_help_text:
            return str(self) + "  [" + self.user_help_text + "]"
        return str(self)


class UserInputError(TownLogError):
    """Raised when user input is invalid."""

    user_help_text = "Check the command syntax with 'townlog <command> --help'."


class ConfigParseError(TownLogError):
    """Raised when a config file or config environment variable cannot be parsed."""


class WorkspaceNotFoundError(TownLogError):
    """Raised when no town root can be found from the starting directory."""

    user_help_text = "Run from inside a town, pass --root, or set TOWNLOG_ROOT."

    def __init__(self, start_dir: Path, marker: str, detail: str | None = None) -> None:
        self.start_dir = start_dir
        self.marker = marker
        message = f"Not in a town workspace: no {marker} found above {start_dir}"
        super().__init__(message if detail is None else f"{message} ({detail})")


class LogIOError(TownLogError):
    """Base class for I/O failures on the town log file."""

    def __init__(self, log_path: Path, message: str) -> None:
        self.log_path = log_path
        super().__init__(message)


class LogWriteError(LogIOError):
    """Raised when a record cannot be appended to the town log."""


class LogReadError(LogIOError):
    """Raised when the town log exists but cannot be read."""


class LogFileUnavailableError(LogIOError):
    """Raised when the followed log file disappears or can no longer be read."""


class EventParseError(BaseTownLogError, ValueError):
    """Raised when a single log line is not a valid event record."""
