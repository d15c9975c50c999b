"""Per-asset projected state, ownership views, and reference property data."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from tokenestate.models.events import Event


class AssetState(BaseModel):
    """Projected supply and holder ledger for one asset.

    Published instances are never mutated: the projector builds a new state
    for every change and swaps it in, so readers always see a whole snapshot.
    """

    model_config = ConfigDict(frozen=True)

    asset_id: str
    total_supply: Decimal = Decimal("0")
    available_supply: Decimal = Decimal("0")
    holder_balances: dict[str, Decimal] = Field(default_factory=dict)
    transaction_count: int = 0
    last_applied_sequence: int | None = None
    last_updated: datetime | None = None
    degraded: bool = False
    halted: bool = False

    @property
    def held_supply(self) -> Decimal:
        return sum(self.holder_balances.values(), Decimal("0"))

    @property
    def holder_count(self) -> int:
        return len(self.holder_balances)

    def is_consistent(self) -> bool:
        """True when supply adds up and no balance is zero or negative."""
        if self.available_supply < 0:
            return False
        if any(balance <= 0 for balance in self.holder_balances.values()):
            return False
        return self.held_supply + self.available_supply == self.total_supply


class OwnershipEntry(BaseModel):
    wallet: str
    tokens_owned: Decimal
    ownership_percentage: Decimal


class OwnershipSummary(BaseModel):
    total_owners: int
    top_owners: list[OwnershipEntry]
    average_ownership: Decimal
    median_ownership: Decimal
    concentration_ratio: Decimal


class AssetOverview(BaseModel):
    """Live per-asset view consumed by dashboards and monitors."""

    asset_id: str
    total_supply: Decimal
    available_supply: Decimal
    funding_percentage: Decimal
    holder_count: int
    transaction_count: int
    last_updated: datetime | None = None
    degraded: bool = False
    halted: bool = False
    recent_events: list[Event] = Field(default_factory=list)


class PropertyRecord(BaseModel):
    """Reference data for a tokenized property, owned by the external store."""

    id: str
    title: str
    location: str = "Unknown"
    property_type: str = "residential"
    total_value: Decimal = Decimal("0")
    current_token_price: Decimal = Decimal("0")
