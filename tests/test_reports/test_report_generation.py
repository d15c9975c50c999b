"""Tests for plain-text report generation."""

from decimal import Decimal

from tokenestate.engines.analytics import diversification, summarize
from tokenestate.reports.portfolio_summary import PortfolioSummaryGenerator
from tokenestate.reports.tax_report import TaxReportGenerator, money


class TestMoney:
    def test_formats(self):
        assert money(Decimal("1234.5")) == "$1,234.50"
        assert money(Decimal("-40")) == "-$40.00"
        assert money(None) == "-"


class TestTaxReportGenerator:
    def test_renders_totals_and_transactions(self, funded_service, make_event):
        funded_service.projector.apply(
            make_event("s1", "TRANSFER", "p1", from_address="ALICE", to_address="BOB", tokens=100, cash=1500, day=60, sequence=4)
        )
        report = funded_service.get_tax_report("ALICE", 2024)
        text = TaxReportGenerator().render(report)

        assert "TAX REPORT 2024" in text
        assert "Jurisdiction: US" in text
        assert "Dividends (ordinary income): $15.00" in text
        assert "Short-term gains:" in text
        assert "$500.00" in text
        assert "lot t1:ALICE: 100 @ $10.00" in text
        assert "DATA INCOMPLETE" not in text

    def test_marks_degraded_transactions(self, funded_service, make_event):
        funded_service.projector.apply(
            make_event("g1", "TRANSFER", "p1", from_address="ALICE", to_address="BOB", tokens=10, day=60, sequence=4)
        )
        text = TaxReportGenerator().render(funded_service.get_tax_report("ALICE", 2024))
        assert "DATA INCOMPLETE" in text
        assert "[data incomplete]" in text

    def test_empty_year(self, funded_service):
        text = TaxReportGenerator().render(funded_service.get_tax_report("ALICE", 2030))
        assert "(none)" in text


class TestPortfolioSummaryGenerator:
    def test_renders_holdings_and_buckets(self, funded_service):
        result = funded_service.get_portfolio_holdings("ALICE")
        text = PortfolioSummaryGenerator().render(summarize(result), result, diversification(result))

        assert "Wallet: ALICE" in text
        assert "$4,600.00" in text
        assert "Maple Street Duplex" in text
        assert "34/100" in text
        assert "Austin" in text
        assert "[data incomplete]" not in text

    def test_empty_wallet(self, funded_service):
        result = funded_service.get_portfolio_holdings("NOBODY")
        text = PortfolioSummaryGenerator().render(summarize(result), result, diversification(result))
        assert "(none)" in text
        assert "0/100" in text
