"""Data models for tokenestate."""

from tokenestate.models.enums import (
    BucketDimension,
    EventKind,
    HoldingPeriod,
    PerformanceRange,
    TaxTransactionType,
)
from tokenestate.models.events import Event, EventCursor, EventPage, RejectedEvent
from tokenestate.models.portfolio import (
    DiversificationBucket,
    DiversificationReport,
    Holding,
    HoldingsResult,
    LotAllocation,
    PerformancePoint,
    PortfolioSummary,
    RiskMetrics,
    TaxLot,
    TaxReport,
    TaxTransaction,
)
from tokenestate.models.state import (
    AssetOverview,
    AssetState,
    OwnershipEntry,
    OwnershipSummary,
    PropertyRecord,
)

__all__ = [
    "AssetOverview",
    "AssetState",
    "BucketDimension",
    "DiversificationBucket",
    "DiversificationReport",
    "Event",
    "EventCursor",
    "EventKind",
    "EventPage",
    "Holding",
    "HoldingPeriod",
    "HoldingsResult",
    "LotAllocation",
    "OwnershipEntry",
    "OwnershipSummary",
    "PerformancePoint",
    "PerformanceRange",
    "PortfolioSummary",
    "PropertyRecord",
    "RejectedEvent",
    "RiskMetrics",
    "TaxLot",
    "TaxReport",
    "TaxTransaction",
    "TaxTransactionType",
]
