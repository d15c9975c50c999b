"""Report generation for tokenestate."""

from tokenestate.reports.portfolio_summary import PortfolioSummaryGenerator
from tokenestate.reports.tax_report import TaxReportGenerator

__all__ = ["PortfolioSummaryGenerator", "TaxReportGenerator"]
