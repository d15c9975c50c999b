"""Lot matching engine: FIFO allocation of disposals to open tax lots."""

from decimal import Decimal

from tokenestate.models.portfolio import TaxLot


class LotMatcher:
    """Matches a disposal quantity to a wallet's open lots for one asset."""

    def match(
        self,
        lots: list[TaxLot],
        tokens: Decimal,
    ) -> tuple[list[tuple[TaxLot, Decimal]], Decimal]:
        """Match a disposal to lots, oldest first.

        Args:
            lots: Lots for the same wallet and asset.
            tokens: Quantity disposed of.

        Returns:
            ``(allocations, unmatched)`` where allocations are
            ``(lot, tokens_from_lot)`` pairs and ``unmatched`` is the quantity
            no open lot could cover.
        """
        sorted_lots = sorted(
            [lot for lot in lots if lot.tokens_remaining > 0],
            key=lambda lot_item: (lot_item.acquired_at, lot_item.id),
        )
        remaining = tokens
        allocations: list[tuple[TaxLot, Decimal]] = []

        for lot in sorted_lots:
            if remaining <= 0:
                break
            allocated = min(lot.tokens_remaining, remaining)
            allocations.append((lot, allocated))
            remaining -= allocated

        return allocations, max(remaining, Decimal("0"))

    @staticmethod
    def consume(allocations: list[tuple[TaxLot, Decimal]]) -> None:
        """Reduce each matched lot by its allocated quantity."""
        for lot, allocated in allocations:
            lot.tokens_remaining -= allocated
