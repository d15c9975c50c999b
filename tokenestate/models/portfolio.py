"""Portfolio, tax lot, and analytics output models."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from tokenestate.models.enums import BucketDimension, HoldingPeriod, TaxTransactionType


class TaxLot(BaseModel):
    id: str
    asset_id: str
    wallet: str
    tokens_acquired: Decimal = Field(ge=0)
    tokens_remaining: Decimal = Field(ge=0)
    unit_cost_basis: Decimal
    acquired_at: datetime
    source_event_id: str
    basis_missing: bool = False

    @property
    def remaining_cost_basis(self) -> Decimal:
        return self.tokens_remaining * self.unit_cost_basis


class LotAllocation(BaseModel):
    lot_id: str
    tokens: Decimal
    unit_cost_basis: Decimal
    acquired_at: datetime
    holding_period: HoldingPeriod
    gain_loss: Decimal


class Holding(BaseModel):
    asset_id: str
    wallet_address: str
    tokens_owned: Decimal
    cost_basis: Decimal
    current_value: Decimal
    unrealized_gain_loss: Decimal
    gain_loss_percent: Decimal = Decimal("0")
    last_dividend_amount: Decimal = Decimal("0")
    current_token_price: Decimal | None = None
    property_title: str | None = None
    location: str = "Unknown"
    property_type: str = "unknown"
    degraded: bool = False


class HoldingsResult(BaseModel):
    wallet_address: str
    holdings: list[Holding] = Field(default_factory=list)
    missing_assets: list[str] = Field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.missing_assets) or any(h.degraded for h in self.holdings)


class DiversificationBucket(BaseModel):
    dimension: BucketDimension
    label: str
    value: Decimal
    count: int
    percentage: Decimal


class DiversificationReport(BaseModel):
    wallet_address: str
    by_property_type: list[DiversificationBucket] = Field(default_factory=list)
    by_location: list[DiversificationBucket] = Field(default_factory=list)
    by_size_range: list[DiversificationBucket] = Field(default_factory=list)
    property_type_score: Decimal = Decimal("0")
    location_score: Decimal = Decimal("0")
    score: int = 0
    degraded: bool = False


class PerformancePoint(BaseModel):
    date: date
    total_value: Decimal
    total_invested: Decimal
    gain_loss: Decimal
    gain_loss_percent: Decimal
    dividends: Decimal = Decimal("0")


class RiskMetrics(BaseModel):
    volatility: Decimal
    sharpe_ratio: Decimal
    max_drawdown: Decimal


class PortfolioSummary(BaseModel):
    wallet_address: str
    total_value: Decimal
    total_invested: Decimal
    total_gain_loss: Decimal
    total_gain_loss_percent: Decimal
    total_properties: int
    total_tokens: Decimal
    diversification_score: int
    degraded: bool = False


class TaxTransaction(BaseModel):
    event_id: str
    type: TaxTransactionType
    asset_id: str
    occurred_at: datetime
    amount: Decimal
    token_amount: Decimal | None = None
    cost_basis: Decimal | None = None
    gain_loss: Decimal | None = None
    short_term_gain: Decimal = Decimal("0")
    long_term_gain: Decimal = Decimal("0")
    allocations: list[LotAllocation] = Field(default_factory=list)
    degraded: bool = False


class TaxReport(BaseModel):
    wallet_address: str
    year: int
    jurisdiction: str
    total_dividends: Decimal = Decimal("0")
    short_term_gains: Decimal = Decimal("0")
    long_term_gains: Decimal = Decimal("0")
    total_fees: Decimal = Decimal("0")
    transactions: list[TaxTransaction] = Field(default_factory=list)

    @property
    def total_gain_loss(self) -> Decimal:
        return self.short_term_gains + self.long_term_gains

    @property
    def degraded(self) -> bool:
        return any(tx.degraded for tx in self.transactions)
