"""Yearly tax report generator."""

from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from tokenestate.models.portfolio import TaxReport

TEMPLATE_DIR = Path(__file__).parent / "templates"


class TaxReportGenerator:
    """Generates a plain-text tax report for one wallet and year."""

    def __init__(self) -> None:
        self.env = Environment(loader=FileSystemLoader(str(TEMPLATE_DIR)), trim_blocks=True, lstrip_blocks=True)
        self.env.filters["money"] = money

    def render(self, report: TaxReport) -> str:
        """Render the tax report. Degraded transactions are marked inline."""
        template = self.env.get_template("tax_report.txt")
        return template.render(report=report)


def money(value) -> str:
    """Format a Decimal amount as ``$1,234.56`` (negative as ``-$1,234.56``)."""
    if value is None:
        return "-"
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"
