"""Shared test fixtures for tokenestate."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from tokenestate.db.store import InMemoryPropertyStore
from tokenestate.models.enums import EventKind
from tokenestate.models.events import Event
from tokenestate.models.state import PropertyRecord
from tokenestate.service import PortfolioService

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _dec(value) -> Decimal | None:
    return Decimal(str(value)) if value is not None else None


@pytest.fixture
def t0() -> datetime:
    return T0


@pytest.fixture
def make_event():
    """Factory for Events; ``day`` offsets ``occurred_at`` from 2024-01-01 12:00 UTC."""

    def _make(
        event_id: str,
        kind: str,
        asset_id: str = "asset-1",
        from_address: str | None = None,
        to_address: str | None = None,
        tokens=None,
        cash=None,
        day: float = 0,
        sequence: int | None = None,
    ) -> Event:
        when = T0 + timedelta(days=day)
        return Event(
            id=event_id,
            kind=EventKind(kind),
            asset_id=asset_id,
            from_address=from_address,
            to_address=to_address,
            token_amount=_dec(tokens),
            cash_amount=_dec(cash),
            occurred_at=when,
            observed_at=when,
            sequence=sequence,
        )

    return _make


@pytest.fixture
def sample_properties() -> list[PropertyRecord]:
    return [
        PropertyRecord(
            id="p1",
            title="Maple Street Duplex",
            location="Austin, TX",
            property_type="residential",
            total_value=Decimal("500000"),
            current_token_price=Decimal("12"),
        ),
        PropertyRecord(
            id="p2",
            title="Harbor Office Suites",
            location="Miami, FL",
            property_type="commercial",
            total_value=Decimal("1200000"),
            current_token_price=Decimal("20"),
        ),
    ]


@pytest.fixture
def property_store(sample_properties) -> InMemoryPropertyStore:
    return InMemoryPropertyStore(sample_properties)


@pytest.fixture
def funded_service(make_event, property_store) -> PortfolioService:
    """Two listed assets with primary sales to wallets ALICE and BOB.

    p1: 1000 tokens minted; ALICE buys 300 @ $10, BOB buys 200 @ $10.
    p2: 500 tokens minted; ALICE buys 50 @ $20, receives a $15 dividend.
    """
    service = PortfolioService(store=property_store)
    service.projector.ingest(
        [
            make_event("m1", "MINT", "p1", tokens=1000, day=0, sequence=1),
            make_event("t1", "TRANSFER", "p1", to_address="ALICE", tokens=300, cash=3000, day=1, sequence=2),
            make_event("t2", "TRANSFER", "p1", to_address="BOB", tokens=200, cash=2000, day=2, sequence=3),
            make_event("m2", "MINT", "p2", tokens=500, day=0, sequence=1),
            make_event("t3", "TRANSFER", "p2", to_address="ALICE", tokens=50, cash=1000, day=3, sequence=2),
            make_event("d1", "DIVIDEND", "p2", to_address="ALICE", cash=15, day=40, sequence=3),
        ]
    )
    return service
