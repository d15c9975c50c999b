"""Portfolio summary report generator."""

from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from tokenestate.models.portfolio import DiversificationReport, HoldingsResult, PortfolioSummary
from tokenestate.reports.tax_report import money

TEMPLATE_DIR = Path(__file__).parent / "templates"


class PortfolioSummaryGenerator:
    """Generates a plain-text summary of a wallet's holdings and diversification."""

    def __init__(self) -> None:
        self.env = Environment(loader=FileSystemLoader(str(TEMPLATE_DIR)), trim_blocks=True, lstrip_blocks=True)
        self.env.filters["money"] = money

    def render(
        self,
        summary: PortfolioSummary,
        holdings: HoldingsResult,
        diversification: DiversificationReport,
    ) -> str:
        template = self.env.get_template("portfolio_summary.txt")
        return template.render(summary=summary, holdings=holdings, div=diversification)
