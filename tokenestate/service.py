"""Portfolio service: the read API consumed by the CLI and reports.

Wires the projector, event history and analytics engines together around
one ``PropertyStore``. Every query is side-effect free; unknown assets and
wallets yield ``None`` or empty results rather than errors.
"""

import logging
from datetime import date

from tokenestate.config import AppConfig
from tokenestate.db.store import InMemoryPropertyStore, PropertyStore
from tokenestate.engines.analytics import (
    PortfolioAnalytics,
    diversification,
    funding_percentage,
    risk_metrics,
    summarize,
)
from tokenestate.engines.event_log import EventLog
from tokenestate.engines.event_query import DEFAULT_PAGE_SIZE, EventQueryService
from tokenestate.engines.holdings import HoldingsBuilder, reference_price
from tokenestate.engines.ownership import OwnershipIndex
from tokenestate.engines.projector import StateProjector
from tokenestate.engines.tax_lots import TaxLotEngine
from tokenestate.models.enums import EventKind, PerformanceRange
from tokenestate.models.events import EventCursor, EventPage
from tokenestate.models.portfolio import (
    DiversificationReport,
    HoldingsResult,
    PerformancePoint,
    PortfolioSummary,
    RiskMetrics,
    TaxReport,
)
from tokenestate.models.state import AssetOverview, AssetState, OwnershipEntry, OwnershipSummary

logger = logging.getLogger(__name__)


class PortfolioService:
    """Query API over one projector instance.

    Usage::

        service = PortfolioService(store=InMemoryPropertyStore(properties))
        service.projector.ingest(events)
        holdings = service.get_portfolio_holdings("WALLET")
    """

    def __init__(
        self,
        store: PropertyStore | None = None,
        config: AppConfig | None = None,
        projector: StateProjector | None = None,
    ):
        self.config = config or AppConfig()
        self.store = store or InMemoryPropertyStore()
        self.projector = projector or StateProjector(self.config.projector, EventLog())
        self.query = EventQueryService(self.projector.event_log)
        self.ownership = OwnershipIndex(self.projector)
        self.tax_lots = self.tax_engine()
        self.holdings = HoldingsBuilder(self.ownership, self.query, self.tax_lots, self.store)
        self.analytics = PortfolioAnalytics(
            self.query, self.tax_lots, self.store, self.config.analytics
        )

    def tax_engine(self, jurisdiction: str | None = None) -> TaxLotEngine:
        """Lot engine for the configured policy, optionally for another jurisdiction."""
        policy = self.config.tax
        if jurisdiction is not None and jurisdiction.upper() != policy.jurisdiction.upper():
            policy = policy.model_copy(update={"jurisdiction": jurisdiction.upper(), "long_term_days": None})
        return TaxLotEngine(
            self.query, policy, price_lookup=lambda asset_id: reference_price(self.store, asset_id)
        )

    # --- Assets ---

    def get_asset_state(self, asset_id: str) -> AssetState | None:
        return self.projector.get_state(asset_id)

    def get_asset_overview(self, asset_id: str, recent: int = 10) -> AssetOverview | None:
        state = self.projector.get_state(asset_id)
        if state is None:
            return None
        return AssetOverview(
            asset_id=asset_id,
            total_supply=state.total_supply,
            available_supply=state.available_supply,
            funding_percentage=funding_percentage(state),
            holder_count=state.holder_count,
            transaction_count=state.transaction_count,
            last_updated=state.last_updated,
            degraded=state.degraded,
            halted=state.halted,
            recent_events=self.query.recent(asset_id, limit=recent),
        )

    def get_ownership(self, asset_id: str) -> list[OwnershipEntry]:
        return self.ownership.get_ownership(asset_id)

    def get_ownership_summary(self, asset_id: str) -> OwnershipSummary | None:
        return self.ownership.get_summary(asset_id)

    def get_recent_events(
        self,
        asset_id: str | None = None,
        kind: EventKind | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        before: EventCursor | str | None = None,
    ) -> EventPage:
        return self.query.get_events(asset_id=asset_id, kind=kind, limit=limit, before=before)

    # --- Wallets ---

    def get_portfolio_holdings(self, wallet: str) -> HoldingsResult:
        return self.holdings.build(wallet)

    def get_portfolio_summary(self, wallet: str) -> PortfolioSummary:
        return summarize(self.holdings.build(wallet))

    def get_diversification(self, wallet: str) -> DiversificationReport:
        return diversification(self.holdings.build(wallet))

    def get_portfolio_performance(
        self,
        wallet: str,
        period: PerformanceRange | str | None = None,
        today: date | None = None,
        deadline: float | None = None,
    ) -> list[PerformancePoint]:
        return self.analytics.performance_for_range(wallet, period, today=today, deadline=deadline)

    def get_risk_metrics(
        self,
        wallet: str,
        period: PerformanceRange | str | None = None,
        today: date | None = None,
    ) -> RiskMetrics:
        return risk_metrics(self.get_portfolio_performance(wallet, period, today=today))

    def get_tax_report(self, wallet: str, year: int, jurisdiction: str | None = None) -> TaxReport:
        engine = self.tax_lots if jurisdiction is None else self.tax_engine(jurisdiction)
        return engine.report(wallet, year)
