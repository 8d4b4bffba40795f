import sys
from datetime import datetime
from datetime import timezone
from typing import Any
from typing import assert_never

import click
from click_option_group import optgroup
from loguru import logger

from imbue.townlog.api.filter import filter_events
from imbue.townlog.api.filter import tail_events
from imbue.townlog.api.follow import follow_log
from imbue.townlog.api.read import log_file_exists
from imbue.townlog.api.read import read_events
from imbue.townlog.cli.common_opts import CommonCliOptions
from imbue.townlog.cli.common_opts import add_common_options
from imbue.townlog.cli.common_opts import setup_command_context
from imbue.townlog.cli.render import format_event_line
from imbue.townlog.events.data_types import EventFilter
from imbue.townlog.events.data_types import TownEvent
from imbue.townlog.primitives import EventKind
from imbue.townlog.primitives import OutputFormat
from imbue.townlog.utils.duration import since_from_window


class LogCliOptions(CommonCliOptions):
    """Options passed from the CLI to the log command."""

    tail: int | None
    type: str | None
    agent: str | None
    since: str | None
    follow: bool
    output_format: OutputFormat


def _write_and_flush_stdout(content: str) -> None:
    """Write content to stdout and flush immediately so piped readers see each line."""
    sys.stdout.write(content)
    sys.stdout.flush()


def _write_status_line(message: str) -> None:
    click.echo(click.style("○", dim=True) + " " + message)


@click.command(name="log")
@optgroup.group("Filtering")
@optgroup.option(
    "-n",
    "--tail",
    type=int,
    default=None,
    help="Number of events to show, 0 for all [default: 20, configurable]",
)
@optgroup.option(
    "-t",
    "--type",
    default=None,
    help="Filter by event type ({})".format(",".join(kind.value for kind in EventKind)),
)
@optgroup.option(
    "-a",
    "--agent",
    default=None,
    help="Filter by agent prefix (e.g., gastown/, gastown/crew/max)",
)
@optgroup.option(
    "--since",
    default=None,
    help="Show events since duration (e.g., 1h, 30m, 24h)",
)
@optgroup.group("Display")
@optgroup.option(
    "-f",
    "--follow/--no-follow",
    default=False,
    show_default=True,
    help="Follow the raw log as it grows (like tail -f); Ctrl+C to stop",
)
@optgroup.option(
    "--format",
    "output_format",
    type=click.Choice([output_format.value for output_format in OutputFormat], case_sensitive=False),
    default=OutputFormat.HUMAN.value,
    show_default=True,
    help="Output format: styled lines, or one JSON record per line",
)
@add_common_options
def log(**kwargs: Any) -> None:
    """View the town activity log.

    \b
    Events logged include:
      spawn   - new agent created
      wake    - agent resumed
      nudge   - message injected into agent
      handoff - agent handed off to fresh session
      done    - agent finished work
      crash   - agent exited unexpectedly
      kill    - agent killed intentionally

    \b
    Examples:
      townlog log                     # Show last 20 events
      townlog log -n 50               # Show last 50 events
      townlog log --type spawn        # Show only spawn events
      townlog log --agent gastown/    # Show events for gastown rig
      townlog log --since 1h          # Show events from last hour
      townlog log -f                  # Follow log (like tail -f)
    """
    kwargs["output_format"] = str(kwargs["output_format"]).upper()
    cmd_ctx, opts = setup_command_context(LogCliOptions, kwargs)

    if opts.follow:
        _write_status_line(f"Following {cmd_ctx.config.log_path(cmd_ctx.root)} (Ctrl+C to stop)\n")
        try:
            follow_log(cmd_ctx.root, _write_and_flush_stdout, cmd_ctx.config)
        except KeyboardInterrupt:
            # Clean exit on Ctrl+C
            _write_and_flush_stdout("\n")
        return

    # Build the filter first so a bad --since fails before any reading
    event_filter = build_event_filter(opts, now=datetime.now(timezone.utc))

    if not log_file_exists(cmd_ctx.root, cmd_ctx.config):
        _write_status_line("No log file yet (no events recorded)")
        return

    events = read_events(cmd_ctx.root, cmd_ctx.config)
    if not events:
        _write_status_line("No events in log")
        return

    tail_count = opts.tail if opts.tail is not None else cmd_ctx.config.default_tail_count
    selected = tail_events(filter_events(events, event_filter), tail_count)
    logger.debug("Selected {} of {} events", len(selected), len(events))

    if not selected:
        _write_status_line("No events match filter")
        return

    _emit_events(selected, opts.output_format)


def build_event_filter(opts: LogCliOptions, now: datetime) -> EventFilter:
    """Translate the command's filtering options into an EventFilter.

    Raises UserInputError for an unparseable --since window.
    """
    return EventFilter(
        event_type=opts.type or None,
        agent_prefix=opts.agent or None,
        since=since_from_window(opts.since, now) if opts.since else None,
    )


def _emit_events(events: list[TownEvent], output_format: OutputFormat) -> None:
    match output_format:
        case OutputFormat.HUMAN:
            for event in events:
                click.echo(format_event_line(event))
        case OutputFormat.JSONL:
            for event in events:
                _write_and_flush_stdout(event.to_log_line())
        case _ as unreachable:
            assert_never(unreachable)
