from collections.abc import Callable
from pathlib import Path
from typing import Any
from typing import TypeVar

import click
from click_option_group import optgroup

from imbue.townlog.api.workspace import find_town_root_from_cwd
from imbue.townlog.config.data_types import TownLogConfig
from imbue.townlog.config.loader import load_config
from imbue.townlog.errors import WorkspaceNotFoundError
from imbue.townlog.frozen_model import FrozenModel
from imbue.townlog.primitives import LogLevel
from imbue.townlog.utils.logging import setup_logging

TCommand = TypeVar("TCommand", bound=Callable[..., Any])
TOptions = TypeVar("TOptions", bound="CommonCliOptions")


class CommonCliOptions(FrozenModel):
    """Options shared by every townlog command."""

    root: Path | None
    log_level: LogLevel


class CommandContext(FrozenModel):
    """Everything a command needs once its options are parsed and the town is located."""

    root: Path
    config: TownLogConfig


def add_common_options(command: TCommand) -> TCommand:
    """Add the shared --root and --log-level options to a command."""
    command = optgroup.option(
        "--log-level",
        type=click.Choice([level.value for level in LogLevel], case_sensitive=False),
        default=LogLevel.WARNING.value,
        show_default=True,
        help="Diagnostic log level (diagnostics go to stderr)",
    )(command)
    command = optgroup.option(
        "--root",
        type=click.Path(file_okay=False, path_type=Path),
        envvar="TOWNLOG_ROOT",
        default=None,
        help="Town root directory [default: discovered from the current directory]",
    )(command)
    command = optgroup.group("Common")(command)
    return command


def setup_command_context(
    command_class: type[TOptions],
    params: dict[str, Any],
) -> tuple[CommandContext, TOptions]:
    """Parse click params into the command's options model, set up logging, and locate the town.

    Raises WorkspaceNotFoundError if no --root was given and no town can be found.
    """
    opts = command_class.model_validate({**params, "log_level": str(params["log_level"]).upper()})
    setup_logging(opts.log_level)

    if opts.root is not None:
        root = opts.root.expanduser()
    else:
        discovery_config = load_config(None)
        discovered_root = find_town_root_from_cwd(discovery_config)
        if discovered_root is None:
            raise WorkspaceNotFoundError(Path.cwd(), str(discovery_config.workspace_marker))
        root = discovered_root

    return CommandContext(root=root, config=load_config(root)), opts
