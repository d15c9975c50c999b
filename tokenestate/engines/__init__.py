"""Projection and portfolio analytics engines."""

from tokenestate.engines.analytics import PortfolioAnalytics
from tokenestate.engines.event_log import EventLog
from tokenestate.engines.event_query import EventQueryService
from tokenestate.engines.holdings import HoldingsBuilder
from tokenestate.engines.lot_matcher import LotMatcher
from tokenestate.engines.ownership import OwnershipIndex
from tokenestate.engines.projector import StateProjector
from tokenestate.engines.tax_lots import TaxLotEngine

__all__ = [
    "EventLog",
    "EventQueryService",
    "HoldingsBuilder",
    "LotMatcher",
    "OwnershipIndex",
    "PortfolioAnalytics",
    "StateProjector",
    "TaxLotEngine",
]
