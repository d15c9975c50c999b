"""Ownership index: who owns what, as of the latest projected state."""

from decimal import Decimal

from tokenestate.engines.policy import CONCENTRATION_OWNER_SHARE, TOP_OWNER_COUNT
from tokenestate.engines.projector import StateProjector
from tokenestate.models.state import AssetState, OwnershipEntry, OwnershipSummary

HUNDRED = Decimal("100")


class OwnershipIndex:
    """Read-only view over the projector's holder ledgers."""

    def __init__(self, projector: StateProjector):
        self.projector = projector

    def get_ownership(self, asset_id: str) -> list[OwnershipEntry]:
        """Holders sorted by tokens owned (desc), then wallet address (asc).

        Returns an empty list for an unknown asset.
        """
        state = self.projector.get_state(asset_id)
        if state is None:
            return []
        return _entries(state)

    def get_summary(self, asset_id: str) -> OwnershipSummary | None:
        state = self.projector.get_state(asset_id)
        if state is None:
            return None
        entries = _entries(state)
        if not entries:
            return OwnershipSummary(
                total_owners=0,
                top_owners=[],
                average_ownership=Decimal("0"),
                median_ownership=Decimal("0"),
                concentration_ratio=Decimal("0"),
            )

        percentages = [entry.ownership_percentage for entry in entries]
        count = len(entries)
        ascending = sorted(percentages)
        mid = count // 2
        if count % 2:
            median = ascending[mid]
        else:
            median = (ascending[mid - 1] + ascending[mid]) / 2

        top_n = max(1, int(count * CONCENTRATION_OWNER_SHARE))
        return OwnershipSummary(
            total_owners=count,
            top_owners=entries[:TOP_OWNER_COUNT],
            average_ownership=sum(percentages, Decimal("0")) / count,
            median_ownership=median,
            concentration_ratio=sum(percentages[:top_n], Decimal("0")),
        )

    def wallet_positions(self, wallet: str) -> dict[str, Decimal]:
        """Token balance of ``wallet`` in every asset where it is positive."""
        positions: dict[str, Decimal] = {}
        for state in self.projector.states():
            balance = state.holder_balances.get(wallet)
            if balance:
                positions[state.asset_id] = balance
        return positions


def _entries(state: AssetState) -> list[OwnershipEntry]:
    holders = sorted(state.holder_balances.items(), key=lambda item: (-item[1], item[0]))
    return [
        OwnershipEntry(
            wallet=wallet,
            tokens_owned=tokens,
            ownership_percentage=(
                tokens / state.total_supply * HUNDRED if state.total_supply else Decimal("0")
            ),
        )
        for wallet, tokens in holders
    ]
