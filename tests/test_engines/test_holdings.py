"""Tests for wallet holdings valuation."""

from decimal import Decimal

from tokenestate.db.store import InMemoryPropertyStore
from tokenestate.service import PortfolioService


class TestHoldings:
    def test_valued_at_current_token_price(self, funded_service):
        result = funded_service.get_portfolio_holdings("ALICE")
        assert [h.asset_id for h in result.holdings] == ["p1", "p2"]

        maple = result.holdings[0]
        assert maple.tokens_owned == Decimal("300")
        assert maple.cost_basis == Decimal("3000")
        assert maple.current_value == Decimal("3600")
        assert maple.unrealized_gain_loss == Decimal("600")
        assert maple.gain_loss_percent == Decimal("20")
        assert maple.property_title == "Maple Street Duplex"
        assert not maple.degraded

    def test_last_dividend(self, funded_service):
        harbor = funded_service.get_portfolio_holdings("ALICE").holdings[1]
        assert harbor.last_dividend_amount == Decimal("15")
        assert harbor.unrealized_gain_loss == Decimal("0")

    def test_unknown_wallet_is_empty(self, funded_service):
        result = funded_service.get_portfolio_holdings("NOBODY")
        assert result.holdings == []
        assert not result.degraded

    def test_sold_out_position_is_dropped(self, funded_service, make_event):
        funded_service.projector.apply(
            make_event("s1", "TRANSFER", "p2", from_address="ALICE", to_address="BOB", tokens=50, cash=1000, day=50, sequence=4)
        )
        assert [h.asset_id for h in funded_service.get_portfolio_holdings("ALICE").holdings] == ["p1"]


class TestMissingReferenceData:
    def test_missing_property_valued_at_cost(self, make_event, sample_properties):
        service = PortfolioService(store=InMemoryPropertyStore(sample_properties[:1]))
        service.projector.ingest(
            [
                make_event("m1", "MINT", "p1", tokens=100, sequence=1),
                make_event("t1", "TRANSFER", "p1", to_address="ALICE", tokens=10, cash=100, day=1, sequence=2),
                make_event("m2", "MINT", "p2", tokens=100, sequence=1),
                make_event("t2", "TRANSFER", "p2", to_address="ALICE", tokens=10, cash=150, day=1, sequence=2),
            ]
        )
        result = service.get_portfolio_holdings("ALICE")
        assert result.missing_assets == ["p2"]
        assert result.degraded

        missing = next(h for h in result.holdings if h.asset_id == "p2")
        assert missing.current_value == Decimal("150")
        assert missing.unrealized_gain_loss == Decimal("0")
        assert missing.degraded
        assert missing.property_title is None

    def test_degraded_asset_flags_result(self, make_event, sample_properties):
        service = PortfolioService(store=InMemoryPropertyStore(sample_properties))
        service.projector.ingest(
            [
                make_event("m1", "MINT", "p1", tokens=100, sequence=1),
                make_event("t1", "TRANSFER", "p1", to_address="ALICE", tokens=10, cash=100, day=1, sequence=3),
            ]
        )
        service.projector.flush_expired(force=True)
        result = service.get_portfolio_holdings("ALICE")
        assert result.missing_assets == []
        assert result.holdings[0].degraded
        assert result.degraded
