"""Filterable, cursor-paginated read access over the retained event history."""

from bisect import bisect_left
from datetime import datetime

from tokenestate.engines.event_log import EventLog, history_key
from tokenestate.models.enums import EventKind
from tokenestate.models.events import Event, EventCursor, EventPage

DEFAULT_PAGE_SIZE = 50


class EventQueryService:
    """Answers "recent activity" queries by asset, kind, and time window."""

    def __init__(self, log: EventLog):
        self.log = log

    def get_events(
        self,
        asset_id: str | None = None,
        kind: EventKind | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        before: EventCursor | str | None = None,
    ) -> EventPage:
        """Return the most recent ``limit`` matching events, newest first.

        Ordering is (occurred_at desc, sequence desc, id desc). ``before`` is
        the ``next_cursor`` of a previous page; only events strictly older
        than it are returned.
        """
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")

        history = self.log.snapshot(asset_id)
        end = len(history)
        if before is not None:
            cursor = EventCursor.decode(before) if isinstance(before, str) else before
            end = bisect_left(history, cursor.key, key=history_key)

        selected: list[Event] = []
        has_more = False
        for index in range(end - 1, -1, -1):
            event = history[index]
            if kind is not None and event.kind != kind:
                continue
            if len(selected) == limit:
                has_more = True
                break
            selected.append(event)

        next_cursor = EventCursor.from_event(selected[-1]).encode() if has_more else None
        return EventPage(events=selected, next_cursor=next_cursor)

    def recent(self, asset_id: str, limit: int = 10) -> list[Event]:
        return self.get_events(asset_id=asset_id, limit=limit).events

    def events_for_wallet(
        self,
        wallet: str,
        asset_id: str | None = None,
        until: datetime | None = None,
    ) -> list[Event]:
        """Chronological history touching ``wallet``, up to and including ``until``."""
        return [
            event
            for event in self.log.snapshot(asset_id)
            if event.touches(wallet) and (until is None or event.occurred_at <= until)
        ]
