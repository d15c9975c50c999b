"""Ledger event, rejection record, and event pagination models."""

import base64
import json
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from tokenestate.models.enums import EventKind


class Event(BaseModel):
    """A normalized, immutable ledger fact for one tokenized asset."""

    model_config = ConfigDict(frozen=True)

    id: str
    kind: EventKind
    asset_id: str
    from_address: str | None = None
    to_address: str | None = None
    token_amount: Decimal | None = Field(default=None, ge=0)
    cash_amount: Decimal | None = Field(default=None, ge=0)
    occurred_at: datetime
    observed_at: datetime
    sequence: int | None = None
    source: str = "flat"

    @property
    def unit_price(self) -> Decimal | None:
        """Cash paid per token, when the event carries both amounts."""
        if self.cash_amount is None or not self.token_amount:
            return None
        return self.cash_amount / self.token_amount

    @property
    def sort_key(self) -> tuple[datetime, int, str]:
        """Chronological key used by the retained history."""
        return (self.occurred_at, self.sequence if self.sequence is not None else -1, self.id)

    def touches(self, wallet: str) -> bool:
        return wallet in (self.from_address, self.to_address)


class RejectedEvent(BaseModel):
    event: Event
    reason: str
    error_type: str
    rejected_at: datetime


class EventCursor(BaseModel):
    """Position in the (occurred_at desc, sequence desc, id desc) ordering.

    A page continues strictly *after* the cursor in that ordering, so appends
    of newer events never shift an in-progress pagination.
    """

    occurred_at: datetime
    sequence: int
    event_id: str

    @classmethod
    def from_event(cls, event: Event) -> "EventCursor":
        occurred_at, sequence, event_id = event.sort_key
        return cls(occurred_at=occurred_at, sequence=sequence, event_id=event_id)

    @property
    def key(self) -> tuple[datetime, int, str]:
        return (self.occurred_at, self.sequence, self.event_id)

    def encode(self) -> str:
        payload = json.dumps(
            [self.occurred_at.isoformat(), self.sequence, self.event_id]
        ).encode()
        return base64.urlsafe_b64encode(payload).decode()

    @classmethod
    def decode(cls, token: str) -> "EventCursor":
        """Parse an ``encode()`` token. Raises ValueError for anything else."""
        try:
            occurred_at, sequence, event_id = json.loads(base64.urlsafe_b64decode(token.encode()))
        except TypeError as e:
            raise ValueError(f"malformed cursor {token!r}") from e
        return cls(
            occurred_at=datetime.fromisoformat(occurred_at),
            sequence=sequence,
            event_id=event_id,
        )


class EventPage(BaseModel):
    events: list[Event] = Field(default_factory=list)
    next_cursor: str | None = None
