from typing import Any

import click

from imbue.townlog.api.record import record_event
from imbue.townlog.cli.common_opts import CommonCliOptions
from imbue.townlog.cli.common_opts import add_common_options
from imbue.townlog.cli.common_opts import setup_command_context
from imbue.townlog.cli.render import format_event_line


class RecordCliOptions(CommonCliOptions):
    """Options passed from the CLI to the record command."""

    event_type: str
    agent: str
    context: str | None
    quiet: bool


@click.command(name="record")
@click.argument("event_type", metavar="TYPE")
@click.argument("agent")
@click.argument("context", required=False, default=None)
@click.option("-q", "--quiet", is_flag=True, default=False, help="Do not echo the recorded event")
@add_common_options
def record(**kwargs: Any) -> None:
    """Append one event to the town log.

    TYPE is usually one of spawn, wake, nudge, handoff, done, crash or kill,
    but any other type is recorded as given. CONTEXT is optional free text
    such as an issue id or a reason.

    Write failures are reported and exit non-zero.
    """
    cmd_ctx, opts = setup_command_context(RecordCliOptions, kwargs)
    event = record_event(cmd_ctx.root, opts.event_type, opts.agent, opts.context, cmd_ctx.config)
    if not opts.quiet:
        click.echo(format_event_line(event))
