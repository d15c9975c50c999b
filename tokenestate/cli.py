"""Typer CLI interface for tokenestate."""

import logging
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from tokenestate.models.enums import EventKind, PerformanceRange

DEFAULT_DB = Path.home() / ".tokenestate" / "ledger.db"

app = typer.Typer(
    name="tokenestate",
    help="Ownership projections and portfolio analytics for tokenized real estate.",
    no_args_is_help=True,
)


@dataclass
class CliState:
    db: Path
    config: Path | None


@app.callback()
def main(
    ctx: typer.Context,
    db: Path = typer.Option(DEFAULT_DB, "--db", help="Path to the SQLite ledger database"),
    config: Path | None = typer.Option(None, "--config", "-c", help="JSON configuration file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Ownership projections and portfolio analytics for tokenized real estate."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        force=True,
    )
    ctx.obj = CliState(db=db, config=config)


# --- Helpers ---


def _console() -> Console:
    console = Console()
    if not console.is_terminal:
        console = Console(width=200)
    return console


def _fmt_money(value: Decimal | None) -> str:
    if value is None:
        return "-"
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def _fmt_pct(value: Decimal) -> str:
    return f"{value:.2f}%"


def _fmt_tokens(value: Decimal | None) -> str:
    if value is None:
        return "-"
    return f"{value.normalize():f}"


def _open(ctx: typer.Context, must_exist: bool = True):
    """Open the database and rebuild projections from its event inbox.

    Returns ``(service, pipeline, conn)``.
    """
    from tokenestate.config import load_config
    from tokenestate.db.repository import LedgerRepository
    from tokenestate.db.schema import create_schema
    from tokenestate.ingestion.pipeline import IngestPipeline
    from tokenestate.service import PortfolioService

    state: CliState = ctx.obj
    if must_exist and not state.db.exists():
        typer.echo("Error: No database found. Ingest events first with `tokenestate ingest`.", err=True)
        raise typer.Exit(1)

    try:
        app_config = load_config(state.config)
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1)

    state.db.parent.mkdir(parents=True, exist_ok=True)
    conn = create_schema(state.db)
    repo = LedgerRepository(conn)
    service = PortfolioService(store=repo, config=app_config)
    pipeline = IngestPipeline(service.projector, repo)
    pipeline.restore()
    return service, pipeline, conn


# --- Ingestion ---


@app.command()
def ingest(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="JSON or JSON-lines file of raw ledger records"),
    reserve: list[str] = typer.Option(
        [],
        "--reserve",
        "-r",
        help="Issuer reserve address (indexer transfers from/to it hit the available supply)",
    ),
) -> None:
    """Normalize, persist and apply ledger records from a file."""
    from tokenestate.ingestion.json_source import JsonFileSource
    from tokenestate.normalization.events import EventNormalizer

    if not file.exists():
        typer.echo(f"Error: File not found: {file}", err=True)
        raise typer.Exit(1)

    service, pipeline, conn = _open(ctx, must_exist=False)
    pipeline.normalizer = EventNormalizer(reserve_addresses=reserve)
    try:
        result = pipeline.run(JsonFileSource(file))
    except ValueError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1)
    finally:
        conn.close()

    norm = result.normalization
    proj = result.projection
    typer.echo(f"Ingested {file.name}:")
    typer.echo(f"  Records received:   {result.received}")
    typer.echo(f"  Events normalized:  {len(norm.events)}")
    typer.echo(f"  Malformed:          {norm.malformed}")
    typer.echo(f"  Unsupported:        {norm.unsupported}")
    typer.echo(f"  Applied:            {proj.applied}")
    typer.echo(f"  Already seen:       {proj.duplicates}")
    typer.echo(f"  Buffered:           {proj.buffered}")
    typer.echo(f"  Rejected:           {proj.rejected + proj.errors}")
    for message in proj.messages:
        typer.echo(f"  ! {message}", err=True)


@app.command(name="import-properties")
def import_properties(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="JSON array of property reference records"),
) -> None:
    """Import property reference data (title, location, type, token price)."""
    from tokenestate.db.repository import LedgerRepository
    from tokenestate.db.schema import create_schema
    from tokenestate.ingestion.json_source import load_properties

    try:
        records = load_properties(file)
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1)

    state: CliState = ctx.obj
    state.db.parent.mkdir(parents=True, exist_ok=True)
    conn = create_schema(state.db)
    repo = LedgerRepository(conn)
    for record in records:
        repo.save_property(record)
    conn.close()
    typer.echo(f"Imported {len(records)} propert{'y' if len(records) == 1 else 'ies'}.")


# --- Asset queries ---


@app.command()
def state(
    ctx: typer.Context,
    asset_id: str = typer.Argument(..., help="Asset identifier"),
    recent: int = typer.Option(5, "--recent", help="Number of recent events to show"),
) -> None:
    """Show the live state of one asset."""
    service, _, conn = _open(ctx)
    overview = service.get_asset_overview(asset_id, recent=recent)
    conn.close()
    if overview is None:
        typer.echo(f"Error: Unknown asset {asset_id}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Asset {overview.asset_id}")
    typer.echo(f"  Total supply:      {_fmt_tokens(overview.total_supply)}")
    typer.echo(f"  Available supply:  {_fmt_tokens(overview.available_supply)}")
    typer.echo(f"  Funded:            {_fmt_pct(overview.funding_percentage)}")
    typer.echo(f"  Holders:           {overview.holder_count}")
    typer.echo(f"  Transactions:      {overview.transaction_count}")
    if overview.last_updated:
        typer.echo(f"  Last updated:      {overview.last_updated.isoformat()}")
    if overview.halted:
        typer.echo("  Status:            HALTED (invariant violation)")
    elif overview.degraded:
        typer.echo("  Status:            DEGRADED (best-effort ordering)")
    if overview.recent_events:
        typer.echo("  Recent activity:")
        for event in overview.recent_events:
            typer.echo(
                f"    {event.occurred_at:%Y-%m-%d %H:%M}  {event.kind.value:<8} "
                f"{_fmt_tokens(event.token_amount)} {event.from_address or '-'} -> {event.to_address or '-'}"
            )


@app.command()
def ownership(
    ctx: typer.Context,
    asset_id: str = typer.Argument(..., help="Asset identifier"),
    summary: bool = typer.Option(False, "--summary", help="Show concentration statistics"),
) -> None:
    """List the holders of one asset, largest first."""
    service, _, conn = _open(ctx)
    entries = service.get_ownership(asset_id)
    stats = service.get_ownership_summary(asset_id) if summary else None
    conn.close()

    if not entries:
        typer.echo(f"No holders for asset {asset_id}.")
        return

    table = Table(title=f"Ownership of {asset_id}")
    table.add_column("Wallet")
    table.add_column("Tokens", justify="right")
    table.add_column("Share", justify="right")
    for entry in entries:
        table.add_row(entry.wallet, _fmt_tokens(entry.tokens_owned), _fmt_pct(entry.ownership_percentage))
    _console().print(table)

    if stats is not None:
        typer.echo(f"Owners: {stats.total_owners}")
        typer.echo(f"Average ownership: {_fmt_pct(stats.average_ownership)}")
        typer.echo(f"Median ownership: {_fmt_pct(stats.median_ownership)}")
        typer.echo(f"Top 10% of owners hold: {_fmt_pct(stats.concentration_ratio)}")


@app.command()
def events(
    ctx: typer.Context,
    asset: str | None = typer.Option(None, "--asset", "-a", help="Filter by asset"),
    kind: EventKind | None = typer.Option(None, "--kind", "-k", help="Filter by event kind"),
    limit: int = typer.Option(20, "--limit", "-n", help="Page size"),
    before: str | None = typer.Option(None, "--before", help="Cursor from a previous page"),
) -> None:
    """Show recent events, newest first."""
    if limit <= 0:
        typer.echo("Error: --limit must be positive", err=True)
        raise typer.Exit(1)

    service, _, conn = _open(ctx)
    try:
        page = service.get_recent_events(asset_id=asset, kind=kind, limit=limit, before=before)
    except ValueError as exc:
        typer.echo(f"Error: invalid cursor: {exc}", err=True)
        raise typer.Exit(1)
    finally:
        conn.close()

    if not page.events:
        typer.echo("No events.")
        return

    table = Table(title="Events")
    for column in ("Occurred", "Seq", "Kind", "Asset", "From", "To", "Tokens", "Cash", "Id"):
        table.add_column(column)
    for event in page.events:
        table.add_row(
            f"{event.occurred_at:%Y-%m-%d %H:%M}",
            str(event.sequence) if event.sequence is not None else "-",
            event.kind.value,
            event.asset_id,
            event.from_address or "-",
            event.to_address or "-",
            _fmt_tokens(event.token_amount),
            _fmt_money(event.cash_amount),
            event.id,
        )
    _console().print(table)
    if page.next_cursor:
        typer.echo(f"Next page: --before {page.next_cursor}")


@app.command()
def rejected(
    ctx: typer.Context,
    asset: str | None = typer.Option(None, "--asset", "-a", help="Filter by asset"),
) -> None:
    """List events the projector rejected."""
    service, _, conn = _open(ctx)
    rejections = service.projector.rejected_events(asset)
    conn.close()

    if not rejections:
        typer.echo("No rejected events.")
        return
    for item in rejections:
        typer.echo(f"{item.event.asset_id}  {item.event.id}  {item.error_type}: {item.reason}")


# --- Wallet queries ---


@app.command()
def holdings(
    ctx: typer.Context,
    wallet: str = typer.Argument(..., help="Wallet address"),
) -> None:
    """Show a wallet's holdings with cost basis and current value."""
    service, _, conn = _open(ctx)
    result = service.get_portfolio_holdings(wallet)
    conn.close()

    if not result.holdings:
        typer.echo(f"No holdings for wallet {wallet}.")
        return

    table = Table(title=f"Holdings of {wallet}")
    for column in ("Asset", "Property", "Tokens", "Cost basis", "Value", "Gain/loss", "Last dividend", ""):
        table.add_column(column)
    for h in result.holdings:
        table.add_row(
            h.asset_id,
            h.property_title or "-",
            _fmt_tokens(h.tokens_owned),
            _fmt_money(h.cost_basis),
            _fmt_money(h.current_value),
            f"{_fmt_money(h.unrealized_gain_loss)} ({_fmt_pct(h.gain_loss_percent)})",
            _fmt_money(h.last_dividend_amount),
            "data incomplete" if h.degraded else "",
        )
    _console().print(table)
    if result.missing_assets:
        typer.echo(f"Warning: no reference data for {', '.join(result.missing_assets)}", err=True)


@app.command()
def performance(
    ctx: typer.Context,
    wallet: str = typer.Argument(..., help="Wallet address"),
    range_: PerformanceRange | None = typer.Option(None, "--range", help="3M, 6M, 1Y or ALL"),
    timeout: float | None = typer.Option(None, "--timeout", help="Give up after this many seconds"),
) -> None:
    """Show a wallet's portfolio value over time."""
    import time

    from tokenestate.engines.analytics import risk_metrics
    from tokenestate.exceptions import ReplayTimeoutError

    service, _, conn = _open(ctx)
    deadline = time.monotonic() + timeout if timeout else None
    timed_out = False
    try:
        points = service.get_portfolio_performance(wallet, range_, deadline=deadline)
    except ReplayTimeoutError as exc:
        points = exc.partial
        timed_out = True
    finally:
        conn.close()

    if not points:
        typer.echo(f"No history for wallet {wallet}.")
        if timed_out:
            raise typer.Exit(1)
        return

    table = Table(title=f"Performance of {wallet}")
    for column in ("Date", "Value", "Invested", "Gain/loss", "%", "Dividends"):
        table.add_column(column)
    for p in points:
        table.add_row(
            p.date.isoformat(),
            _fmt_money(p.total_value),
            _fmt_money(p.total_invested),
            _fmt_money(p.gain_loss),
            _fmt_pct(p.gain_loss_percent),
            _fmt_money(p.dividends),
        )
    _console().print(table)

    metrics = risk_metrics(points)
    typer.echo(
        f"Volatility {metrics.volatility}  Sharpe {metrics.sharpe_ratio}  "
        f"Max drawdown {_fmt_pct(metrics.max_drawdown)}"
    )
    if timed_out:
        typer.echo("Warning: replay timed out; series is partial.", err=True)
        raise typer.Exit(1)


@app.command()
def diversification(
    ctx: typer.Context,
    wallet: str = typer.Argument(..., help="Wallet address"),
) -> None:
    """Show a wallet's diversification buckets and score."""
    service, _, conn = _open(ctx)
    report = service.get_diversification(wallet)
    conn.close()

    if report.degraded:
        typer.echo("Warning: data incomplete; some holdings lack reference data.", err=True)
    for title, buckets in (
        ("Property type", report.by_property_type),
        ("Location", report.by_location),
        ("Size", report.by_size_range),
    ):
        table = Table(title=title)
        table.add_column("Bucket")
        table.add_column("Value", justify="right")
        table.add_column("Count", justify="right")
        table.add_column("Share", justify="right")
        for bucket in buckets:
            table.add_row(bucket.label, _fmt_money(bucket.value), str(bucket.count), _fmt_pct(bucket.percentage))
        _console().print(table)
    typer.echo(f"Diversification score: {report.score}/100")


@app.command()
def summary(
    ctx: typer.Context,
    wallet: str = typer.Argument(..., help="Wallet address"),
) -> None:
    """Print a text summary of a wallet's portfolio."""
    from tokenestate.engines.analytics import diversification as diversify
    from tokenestate.engines.analytics import summarize
    from tokenestate.reports.portfolio_summary import PortfolioSummaryGenerator

    service, _, conn = _open(ctx)
    result = service.get_portfolio_holdings(wallet)
    conn.close()
    typer.echo(PortfolioSummaryGenerator().render(summarize(result), result, diversify(result)))


@app.command(name="tax-report")
def tax_report(
    ctx: typer.Context,
    wallet: str = typer.Argument(..., help="Wallet address"),
    year: int = typer.Argument(..., help="Tax year"),
    jurisdiction: str | None = typer.Option(None, "--jurisdiction", "-j", help="Jurisdiction code, e.g. US"),
) -> None:
    """Print a wallet's realized gains, dividends and fees for a tax year."""
    from tokenestate.reports.tax_report import TaxReportGenerator

    service, _, conn = _open(ctx)
    try:
        report = service.get_tax_report(wallet, year, jurisdiction)
    except ValueError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1)
    finally:
        conn.close()
    typer.echo(TaxReportGenerator().render(report))


if __name__ == "__main__":
    app()
