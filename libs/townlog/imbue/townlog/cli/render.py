from collections.abc import Callable
from typing import Final

import click

from imbue.townlog.events.data_types import TownEvent
from imbue.townlog.primitives import EventKind
from imbue.townlog.utils.pure import pure

_NUDGE_CONTEXT_MAX_LENGTH: Final[int] = 40

_TIMESTAMP_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

# Style applied to the [type] tag of each known kind
_KIND_STYLES: Final[dict[EventKind, Callable[[str], str]]] = {
    EventKind.SPAWN: lambda text: click.style(text, fg="green"),
    EventKind.WAKE: lambda text: click.style(text, bold=True),
    EventKind.NUDGE: lambda text: click.style(text, dim=True),
    EventKind.HANDOFF: lambda text: click.style(text, bold=True),
    EventKind.DONE: lambda text: click.style(text, fg="green"),
    EventKind.CRASH: lambda text: click.style(text, fg="red", bold=True),
    EventKind.KILL: lambda text: click.style(text, fg="yellow"),
}


@pure
def truncate_text(text: str, max_length: int) -> str:
    """Shorten text to max_length characters, ending in '...' when cut."""
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


@pure
def format_event_detail(event: TownEvent) -> str:
    """Describe what happened in a short phrase, e.g. 'spawned for issue-42'."""
    context = event.context or ""
    match event.kind:
        case EventKind.SPAWN:
            return f"spawned for {context}" if context else "spawned"
        case EventKind.WAKE:
            return f"resumed ({context})" if context else "resumed"
        case EventKind.NUDGE:
            if context:
                return 'nudged with "{}"'.format(truncate_text(context, _NUDGE_CONTEXT_MAX_LENGTH))
            return "nudged"
        case EventKind.HANDOFF:
            return f"handed off ({context})" if context else "handed off"
        case EventKind.DONE:
            return f"completed {context}" if context else "completed work"
        case EventKind.CRASH:
            return f"exited unexpectedly ({context})" if context else "exited unexpectedly"
        case EventKind.KILL:
            return f"killed ({context})" if context else "killed"
        case None:
            return f"{event.type} ({context})" if context else str(event.type)


def format_event_line(event: TownEvent) -> str:
    """Render an event as one styled line: timestamp, [type], agent and detail.

    Timestamps are shown in the local timezone.
    """
    timestamp = click.style(event.timestamp.astimezone().strftime(_TIMESTAMP_FORMAT), dim=True)
    tag = f"[{event.type}]"
    kind = event.kind
    if kind is not None:
        tag = _KIND_STYLES[kind](tag)
    return f"{timestamp} {tag} {event.agent} {format_event_detail(event)}"
