from collections.abc import Sequence

from imbue.townlog.events.data_types import EventFilter
from imbue.townlog.events.data_types import TownEvent
from imbue.townlog.utils.pure import pure


@pure
def event_matches(event: TownEvent, event_filter: EventFilter) -> bool:
    """Return True if the event satisfies every constraint set on the filter."""
    if event_filter.event_type is not None and event.type != event_filter.event_type:
        return False
    if event_filter.agent_prefix and not event.agent.startswith(event_filter.agent_prefix):
        return False
    if event_filter.since is not None and event.timestamp < event_filter.since:
        return False
    return True


@pure
def filter_events(events: Sequence[TownEvent], event_filter: EventFilter) -> list[TownEvent]:
    """Select the events matching the filter, preserving their order."""
    return [event for event in events if event_matches(event, event_filter)]


@pure
def tail_events(events: Sequence[TownEvent], count: int | None) -> list[TownEvent]:
    """Return the last count events in their original order.

    A count of None or <= 0 means no limit.
    """
    if count is None or count <= 0 or count >= len(events):
        return list(events)
    return list(events[-count:])
