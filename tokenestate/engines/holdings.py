"""Holdings builder: join a wallet's projected balances with lots and reference data."""

import logging
from decimal import Decimal

from tokenestate.db.store import PropertyStore
from tokenestate.engines.event_query import EventQueryService
from tokenestate.engines.ownership import OwnershipIndex
from tokenestate.engines.tax_lots import TaxLotEngine
from tokenestate.exceptions import PropertyNotFoundError
from tokenestate.models.enums import EventKind
from tokenestate.models.portfolio import Holding, HoldingsResult

logger = logging.getLogger(__name__)


def reference_price(store: PropertyStore, asset_id: str) -> Decimal | None:
    """Current token price from reference data, or None when unknown or unset."""
    try:
        price = store.get_property(asset_id).current_token_price
    except PropertyNotFoundError:
        return None
    return price or None


class HoldingsBuilder:
    """Builds the investment positions of one wallet.

    A position exists for every asset where the wallet's projected balance
    is positive. Missing reference data never fails the query: the position
    is valued at cost and flagged ``degraded``.
    """

    def __init__(
        self,
        ownership: OwnershipIndex,
        query: EventQueryService,
        tax_lots: TaxLotEngine,
        store: PropertyStore,
    ):
        self.ownership = ownership
        self.query = query
        self.tax_lots = tax_lots
        self.store = store

    def build(self, wallet: str) -> HoldingsResult:
        positions = self.ownership.wallet_positions(wallet)
        result = HoldingsResult(wallet_address=wallet)
        if not positions:
            return result

        history = self.query.events_for_wallet(wallet)
        replay = self.tax_lots.replay(wallet, history)
        last_dividends: dict[str, Decimal] = {}
        for event in history:
            if event.kind == EventKind.DIVIDEND and event.to_address == wallet:
                last_dividends[event.asset_id] = event.cash_amount

        for asset_id, tokens in positions.items():
            cost_basis = replay.cost_basis(asset_id)
            state = self.ownership.projector.get_state(asset_id)
            degraded = bool(state and state.degraded) or any(
                lot.basis_missing for lot in replay.open_lots(asset_id)
            )

            try:
                record = self.store.get_property(asset_id)
            except PropertyNotFoundError:
                logger.warning("No reference data for asset %s; valuing wallet %s at cost", asset_id, wallet)
                result.missing_assets.append(asset_id)
                holding = Holding(
                    asset_id=asset_id,
                    wallet_address=wallet,
                    tokens_owned=tokens,
                    cost_basis=cost_basis,
                    current_value=cost_basis,
                    unrealized_gain_loss=Decimal("0"),
                    last_dividend_amount=last_dividends.get(asset_id, Decimal("0")),
                    degraded=True,
                )
            else:
                current_value = tokens * record.current_token_price
                unrealized = current_value - cost_basis
                holding = Holding(
                    asset_id=asset_id,
                    wallet_address=wallet,
                    tokens_owned=tokens,
                    cost_basis=cost_basis,
                    current_value=current_value,
                    unrealized_gain_loss=unrealized,
                    gain_loss_percent=unrealized / cost_basis * 100 if cost_basis else Decimal("0"),
                    last_dividend_amount=last_dividends.get(asset_id, Decimal("0")),
                    current_token_price=record.current_token_price,
                    property_title=record.title,
                    location=record.location,
                    property_type=record.property_type,
                    degraded=degraded,
                )
            result.holdings.append(holding)

        result.holdings.sort(key=lambda h: (-h.current_value, h.asset_id))
        result.missing_assets.sort()
        return result
