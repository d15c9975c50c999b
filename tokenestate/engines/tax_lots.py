"""Tax lot engine: FIFO realised gain/loss and yearly tax summaries.

Lots are an accounting construct rebuilt deterministically from the event
history on every query. Each disposal consumes the wallet's open lots for the
asset oldest-first; the holding period of each consumed slice decides whether
its gain is short- or long-term under the configured ``TaxPolicy``.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from tokenestate.config import TaxPolicy
from tokenestate.engines.event_query import EventQueryService
from tokenestate.engines.lot_matcher import LotMatcher
from tokenestate.models.enums import EventKind, HoldingPeriod, TaxTransactionType
from tokenestate.models.events import Event
from tokenestate.models.portfolio import LotAllocation, TaxLot, TaxReport, TaxTransaction
from tokenestate.normalization.ledger import LedgerBuilder, PriceLookup, is_acquisition, is_disposal

logger = logging.getLogger(__name__)


@dataclass
class LotReplay:
    """Result of replaying one wallet's history through FIFO matching."""

    lots: list[TaxLot] = field(default_factory=list)
    disposals: list[TaxTransaction] = field(default_factory=list)

    def open_lots(self, asset_id: str | None = None) -> list[TaxLot]:
        return [
            lot
            for lot in self.lots
            if lot.tokens_remaining > 0 and (asset_id is None or lot.asset_id == asset_id)
        ]

    def cost_basis(self, asset_id: str | None = None) -> Decimal:
        return sum((lot.remaining_cost_basis for lot in self.open_lots(asset_id)), Decimal("0"))


class TaxLotEngine:
    """Classifies disposals and dividends for one wallet into a tax summary."""

    def __init__(
        self,
        query: EventQueryService,
        policy: TaxPolicy | None = None,
        price_lookup: PriceLookup | None = None,
    ):
        self.query = query
        self.policy = policy or TaxPolicy()
        self.builder = LedgerBuilder(price_lookup)
        self.matcher = LotMatcher()

    # --- Replay ---

    def replay(self, wallet: str, events: list[Event]) -> LotReplay:
        """Run ``events`` (chronological) through FIFO lot matching for ``wallet``."""
        result = LotReplay()
        threshold = self.policy.threshold_days
        for event in events:
            if is_acquisition(event, wallet):
                result.lots.append(self.builder.build_lot(event, wallet))
            elif is_disposal(event, wallet):
                asset_lots = [lot for lot in result.lots if lot.asset_id == event.asset_id]
                result.disposals.append(self._dispose(event, asset_lots, threshold))
        return result

    def replay_wallet(
        self, wallet: str, asset_id: str | None = None, until: datetime | None = None
    ) -> LotReplay:
        return self.replay(wallet, self.query.events_for_wallet(wallet, asset_id=asset_id, until=until))

    def open_lots(
        self, wallet: str, asset_id: str | None = None, as_of: datetime | None = None
    ) -> list[TaxLot]:
        """Lots with tokens remaining after every disposal up to ``as_of``."""
        return self.replay_wallet(wallet, asset_id=asset_id, until=as_of).open_lots(asset_id)

    def _dispose(self, event: Event, lots: list[TaxLot], threshold_days: int) -> TaxTransaction:
        tokens = event.token_amount
        degraded = False
        unit_price = event.unit_price
        if unit_price is None:
            logger.warning("Disposal %s of asset %s has no cash amount; using zero proceeds", event.id, event.asset_id)
            unit_price = Decimal("0")
            degraded = True

        allocations, unmatched = self.matcher.match(lots, tokens)
        self.matcher.consume(allocations)

        records: list[LotAllocation] = []
        short_term = Decimal("0")
        long_term = Decimal("0")
        cost_basis = Decimal("0")
        for lot, allocated in allocations:
            held_days = (event.occurred_at.date() - lot.acquired_at.date()).days
            period = HoldingPeriod.LONG_TERM if held_days > threshold_days else HoldingPeriod.SHORT_TERM
            gain = (unit_price - lot.unit_cost_basis) * allocated
            cost_basis += lot.unit_cost_basis * allocated
            if period == HoldingPeriod.LONG_TERM:
                long_term += gain
            else:
                short_term += gain
            if lot.basis_missing:
                degraded = True
            records.append(
                LotAllocation(
                    lot_id=lot.id,
                    tokens=allocated,
                    unit_cost_basis=lot.unit_cost_basis,
                    acquired_at=lot.acquired_at,
                    holding_period=period,
                    gain_loss=gain,
                )
            )

        if unmatched > 0:
            logger.warning(
                "Disposal %s of asset %s exceeds open lots by %s tokens; using zero basis",
                event.id,
                event.asset_id,
                unmatched,
            )
            short_term += unit_price * unmatched
            degraded = True

        proceeds = unit_price * tokens
        return TaxTransaction(
            event_id=event.id,
            type=TaxTransactionType.DISPOSAL,
            asset_id=event.asset_id,
            occurred_at=event.occurred_at,
            amount=proceeds,
            token_amount=tokens,
            cost_basis=cost_basis,
            gain_loss=short_term + long_term,
            short_term_gain=short_term,
            long_term_gain=long_term,
            allocations=records,
            degraded=degraded,
        )

    # --- Reports ---

    def report(self, wallet: str, year: int) -> TaxReport:
        """Tax summary of ``wallet`` for calendar ``year`` (UTC)."""
        history = self.query.events_for_wallet(wallet)
        replay = self.replay(wallet, history)

        report = TaxReport(wallet_address=wallet, year=year, jurisdiction=self.policy.jurisdiction.upper())
        transactions: list[TaxTransaction] = [
            tx for tx in replay.disposals if tx.occurred_at.year == year
        ]

        for event in history:
            if event.occurred_at.year != year:
                continue
            if event.kind == EventKind.DIVIDEND and event.to_address == wallet:
                transactions.append(
                    TaxTransaction(
                        event_id=event.id,
                        type=TaxTransactionType.DIVIDEND,
                        asset_id=event.asset_id,
                        occurred_at=event.occurred_at,
                        amount=event.cash_amount,
                    )
                )
                report.total_dividends += event.cash_amount
            elif event.kind == EventKind.FEE and event.from_address == wallet:
                report.total_fees += event.cash_amount

        for tx in transactions:
            report.short_term_gains += tx.short_term_gain
            report.long_term_gains += tx.long_term_gain

        transactions.sort(key=lambda tx: (tx.occurred_at, tx.event_id))
        report.transactions = transactions
        return report
