"""Ledger builder: construct tax lots from a wallet's acquisition events."""

import logging
from collections.abc import Callable
from decimal import Decimal

from tokenestate.models.enums import EventKind
from tokenestate.models.events import Event
from tokenestate.models.portfolio import TaxLot

logger = logging.getLogger(__name__)

PriceLookup = Callable[[str], Decimal | None]


def is_acquisition(event: Event, wallet: str) -> bool:
    """Mint-to-wallet or inbound transfer that is not a self-transfer."""
    if event.to_address != wallet or event.from_address == wallet:
        return False
    return event.kind in (EventKind.MINT, EventKind.TRANSFER) and bool(event.token_amount)


def is_disposal(event: Event, wallet: str) -> bool:
    """Outbound transfer or burn that is not a self-transfer."""
    if event.from_address != wallet or event.to_address == wallet:
        return False
    return event.kind in (EventKind.TRANSFER, EventKind.BURN) and bool(event.token_amount)


class LedgerBuilder:
    """Builds acquisition lots for one wallet from ledger events.

    Args:
        price_lookup: Fallback unit price per asset for acquisitions that
            carry no cash amount (typically the property's current token
            price). Lots with no price at all get a zero basis and are
            flagged ``basis_missing``.
    """

    def __init__(self, price_lookup: PriceLookup | None = None):
        self.price_lookup = price_lookup

    def build_lot(self, event: Event, wallet: str) -> TaxLot:
        unit_cost = event.unit_price
        basis_missing = False
        if unit_cost is None and self.price_lookup is not None:
            unit_cost = self.price_lookup(event.asset_id)
        if unit_cost is None:
            logger.warning(
                "No price for acquisition %s of asset %s; using zero basis", event.id, event.asset_id
            )
            unit_cost = Decimal("0")
            basis_missing = True

        return TaxLot(
            id=f"{event.id}:{wallet}",
            asset_id=event.asset_id,
            wallet=wallet,
            tokens_acquired=event.token_amount,
            tokens_remaining=event.token_amount,
            unit_cost_basis=unit_cost,
            acquired_at=event.occurred_at,
            source_event_id=event.id,
            basis_missing=basis_missing,
        )

    def build_lots(self, events: list[Event], wallet: str) -> list[TaxLot]:
        """Convert every acquisition of ``wallet`` into a full, unconsumed lot."""
        return [self.build_lot(event, wallet) for event in events if is_acquisition(event, wallet)]
