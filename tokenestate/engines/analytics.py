"""Performance and diversification analytics.

Every derived figure shown to users (funding percentage, HHI, diversification
score, risk metrics) is computed here, once. Dashboards, reports and the CLI
all call these functions rather than re-deriving them.

Performance points are replayed from an immutable snapshot of the retained
event history: the point for a date only sees events that occurred on or
before the end of that day, so a series is reproducible regardless of when it
is requested.
"""

import logging
import time
from bisect import bisect_right
from collections import defaultdict
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import date, datetime, timedelta, timezone
from datetime import time as dt_time
from decimal import ROUND_HALF_UP, Decimal

from tokenestate.config import AnalyticsConfig
from tokenestate.db.store import PropertyStore
from tokenestate.engines.event_query import EventQueryService
from tokenestate.engines.holdings import reference_price
from tokenestate.engines.policy import RANGE_MONTHS, RANGE_STEP_DAYS, SIZE_RANGES
from tokenestate.engines.tax_lots import TaxLotEngine
from tokenestate.exceptions import ReplayTimeoutError
from tokenestate.models.enums import BucketDimension, EventKind, PerformanceRange
from tokenestate.models.events import Event
from tokenestate.models.portfolio import (
    DiversificationBucket,
    DiversificationReport,
    Holding,
    HoldingsResult,
    PerformancePoint,
    PortfolioSummary,
    RiskMetrics,
)
from tokenestate.models.state import AssetState

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENTS = Decimal("0.01")


# ---------------------------------------------------------------------------
# Centralised formulas
# ---------------------------------------------------------------------------

def funding_percentage(state: AssetState) -> Decimal:
    """Share of total supply no longer available for primary sale, in percent."""
    if not state.total_supply:
        return ZERO
    return (state.total_supply - state.available_supply) / state.total_supply * HUNDRED


def hhi(percentages: Sequence[Decimal]) -> Decimal:
    """Herfindahl-Hirschman Index of a percentage distribution (0 to 10000)."""
    return sum((pct * pct for pct in percentages), ZERO)


def concentration_sub_score(percentages: Sequence[Decimal]) -> Decimal:
    """``max(0, 100 - HHI/100)``; 0 for an empty distribution."""
    if not percentages:
        return ZERO
    return max(ZERO, HUNDRED - hhi(percentages) / HUNDRED)


def diversification_score(type_score: Decimal, location_score: Decimal) -> int:
    """Mean of the type and location sub-scores, rounded half up into [0, 100]."""
    mean = ((type_score + location_score) / 2).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(min(HUNDRED, max(ZERO, mean)))


def location_label(location: str) -> str:
    """City part of a location ("Austin, TX" -> "Austin")."""
    city = location.split(",", 1)[0].strip()
    return city or "Unknown"


def size_label(value: Decimal) -> str:
    for label, low, high in SIZE_RANGES:
        if value >= low and (high is None or value < high):
            return label
    return SIZE_RANGES[0][0]


# ---------------------------------------------------------------------------
# Diversification
# ---------------------------------------------------------------------------

def _buckets(
    dimension: BucketDimension,
    holdings: Sequence[Holding],
    label_for: Callable[[Holding], str],
) -> list[DiversificationBucket]:
    values: dict[str, Decimal] = defaultdict(Decimal)
    counts: dict[str, int] = defaultdict(int)
    for holding in holdings:
        label = label_for(holding)
        values[label] += holding.current_value
        counts[label] += 1

    total_value = sum(values.values(), ZERO)
    total_count = len(holdings)
    buckets = []
    for label in values:
        # All-zero valuations fall back to an even split by position count.
        if total_value:
            percentage = values[label] / total_value * HUNDRED
        else:
            percentage = Decimal(counts[label]) / total_count * HUNDRED
        buckets.append(
            DiversificationBucket(
                dimension=dimension,
                label=label,
                value=values[label],
                count=counts[label],
                percentage=percentage,
            )
        )
    buckets.sort(key=lambda b: (-b.percentage, b.label))
    return buckets


def diversification(result: HoldingsResult) -> DiversificationReport:
    """Bucket current holdings and score their concentration."""
    holdings = result.holdings
    by_type = _buckets(BucketDimension.PROPERTY_TYPE, holdings, lambda h: h.property_type)
    by_location = _buckets(BucketDimension.LOCATION, holdings, lambda h: location_label(h.location))
    by_size = _buckets(BucketDimension.SIZE_RANGE, holdings, lambda h: size_label(h.current_value))

    type_score = concentration_sub_score([b.percentage for b in by_type])
    location_score = concentration_sub_score([b.percentage for b in by_location])
    return DiversificationReport(
        wallet_address=result.wallet_address,
        by_property_type=by_type,
        by_location=by_location,
        by_size_range=by_size,
        property_type_score=type_score,
        location_score=location_score,
        score=diversification_score(type_score, location_score) if holdings else 0,
        degraded=result.degraded,
    )


def summarize(result: HoldingsResult) -> PortfolioSummary:
    """Portfolio-wide totals plus the diversification score."""
    holdings = result.holdings
    total_value = sum((h.current_value for h in holdings), ZERO)
    total_invested = sum((h.cost_basis for h in holdings), ZERO)
    gain = total_value - total_invested
    report = diversification(result)
    return PortfolioSummary(
        wallet_address=result.wallet_address,
        total_value=total_value,
        total_invested=total_invested,
        total_gain_loss=gain,
        total_gain_loss_percent=gain / total_invested * HUNDRED if total_invested else ZERO,
        total_properties=len(holdings),
        total_tokens=sum((h.tokens_owned for h in holdings), ZERO),
        diversification_score=report.score,
        degraded=report.degraded,
    )


# ---------------------------------------------------------------------------
# Risk
# ---------------------------------------------------------------------------

def risk_metrics(points: Sequence[PerformancePoint]) -> RiskMetrics:
    """Volatility, Sharpe-like ratio and max drawdown of a performance series.

    Volatility is the population standard deviation of ``gain_loss_percent``;
    the ratio is mean return over volatility; drawdown is the largest
    peak-to-trough fall of ``total_value`` in percent.
    """
    if not points:
        return RiskMetrics(volatility=ZERO, sharpe_ratio=ZERO, max_drawdown=ZERO)

    returns = [p.gain_loss_percent for p in points]
    mean = sum(returns, ZERO) / len(returns)
    variance = sum(((r - mean) ** 2 for r in returns), ZERO) / len(returns)
    volatility = variance.sqrt()
    sharpe = mean / volatility if volatility else ZERO

    peak = ZERO
    max_drawdown = ZERO
    for point in points:
        peak = max(peak, point.total_value)
        if peak:
            max_drawdown = max(max_drawdown, (peak - point.total_value) / peak * HUNDRED)

    return RiskMetrics(
        volatility=volatility.quantize(CENTS, rounding=ROUND_HALF_UP),
        sharpe_ratio=sharpe.quantize(CENTS, rounding=ROUND_HALF_UP),
        max_drawdown=max_drawdown.quantize(CENTS, rounding=ROUND_HALF_UP),
    )


# ---------------------------------------------------------------------------
# Performance
# ---------------------------------------------------------------------------

def _months_before(day: date, months: int) -> date:
    month_index = day.year * 12 + day.month - 1 - months
    year, month = divmod(month_index, 12)
    month += 1
    for candidate in (day.day, 30, 29, 28):
        try:
            return date(year, month, candidate)
        except ValueError:
            continue
    return date(year, month, 28)


def resolve_range(
    period: PerformanceRange | str,
    today: date,
    first_event_date: date | None = None,
) -> tuple[date, date, int]:
    """Resolve a named range to ``(start, end, step_days)``.

    The start never precedes the wallet's first event.
    """
    period = PerformanceRange(period)
    months = RANGE_MONTHS[period.value]
    if months is None:
        start = first_event_date or today
    else:
        start = _months_before(today, months)
        if first_event_date is not None and first_event_date > start:
            start = first_event_date
    start = min(start, today)
    return start, today, RANGE_STEP_DAYS[period.value]


def checkpoints(start: date, end: date, step_days: int = 1) -> list[date]:
    """Dates from ``start`` to ``end`` every ``step_days``, always ending on ``end``."""
    if start > end:
        raise ValueError(f"start {start} is after end {end}")
    if step_days < 1:
        raise ValueError(f"step_days must be positive, got {step_days}")
    dates = []
    current = start
    while current < end:
        dates.append(current)
        current += timedelta(days=step_days)
    dates.append(end)
    return dates


def _end_of_day(day: date) -> datetime:
    return datetime.combine(day, dt_time.max, tzinfo=timezone.utc)


def _occurred_at(event: Event) -> datetime:
    return event.occurred_at


class PortfolioAnalytics:
    """Replays a wallet's history to value its portfolio at past dates.

    Args:
        query: Read access to the retained history.
        tax_lots: Lot engine used to compute the invested amount per date.
        store: Reference data, for the fallback token price.
        config: Worker count and default timeout.
        clock: Monotonic clock used for deadlines.
    """

    def __init__(
        self,
        query: EventQueryService,
        tax_lots: TaxLotEngine,
        store: PropertyStore,
        config: AnalyticsConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.query = query
        self.tax_lots = tax_lots
        self.store = store
        self.config = config or AnalyticsConfig()
        self.clock = clock

    def first_event_date(self, wallet: str) -> date | None:
        history = self.query.events_for_wallet(wallet)
        return history[0].occurred_at.date() if history else None

    def performance(
        self,
        wallet: str,
        start: date,
        end: date,
        step_days: int = 1,
        deadline: float | None = None,
    ) -> list[PerformancePoint]:
        """One point per checkpoint between ``start`` and ``end`` inclusive.

        ``deadline`` is an absolute ``time.monotonic()`` value; without one the
        configured ``timeout`` (seconds from now) applies, if any.

        Raises:
            ReplayTimeoutError: the deadline passed; ``partial`` holds the
                points computed so far, oldest first.
        """
        dates = checkpoints(start, end, step_days)
        if deadline is None and self.config.timeout is not None:
            deadline = self.clock() + self.config.timeout

        snapshot = self.query.log.snapshot()
        prices = {}
        for asset_id in {e.asset_id for e in snapshot if e.touches(wallet)}:
            prices[asset_id] = reference_price(self.store, asset_id)

        points: list[PerformancePoint] = []
        pool = ThreadPoolExecutor(max_workers=self.config.workers)
        try:
            futures = [
                pool.submit(self._point, wallet, snapshot, prices, day) for day in dates
            ]
            for future in futures:
                if deadline is None:
                    points.append(future.result())
                    continue
                remaining = deadline - self.clock()
                if remaining <= 0:
                    raise ReplayTimeoutError("performance", points)
                try:
                    points.append(future.result(timeout=remaining))
                except FutureTimeoutError:
                    raise ReplayTimeoutError("performance", points) from None
        except ReplayTimeoutError:
            logger.warning(
                "Performance replay for %s timed out after %d of %d checkpoint(s)",
                wallet,
                len(points),
                len(dates),
            )
            raise
        finally:
            pool.shutdown(wait=False, cancel_futures=True)
        return points

    def performance_for_range(
        self,
        wallet: str,
        period: PerformanceRange | str | None = None,
        today: date | None = None,
        deadline: float | None = None,
    ) -> list[PerformancePoint]:
        """Performance over a named range; empty for a wallet with no history."""
        first = self.first_event_date(wallet)
        if first is None:
            return []
        today = today or datetime.now(timezone.utc).date()
        start, end, step = resolve_range(period or self.config.default_range, today, first)
        return self.performance(wallet, start, end, step_days=step, deadline=deadline)

    def _point(
        self,
        wallet: str,
        snapshot: Sequence[Event],
        reference_prices: dict[str, Decimal | None],
        day: date,
    ) -> PerformancePoint:
        cutoff = bisect_right(snapshot, _end_of_day(day), key=_occurred_at)
        prefix = snapshot[:cutoff]

        last_trade: dict[str, Decimal] = {}
        balances: dict[str, Decimal] = defaultdict(Decimal)
        wallet_events: list[Event] = []
        dividends = ZERO
        for event in prefix:
            if event.kind in (EventKind.TRANSFER, EventKind.MINT) and event.unit_price is not None:
                last_trade[event.asset_id] = event.unit_price
            if not event.touches(wallet):
                continue
            wallet_events.append(event)
            if event.kind == EventKind.DIVIDEND and event.to_address == wallet:
                dividends += event.cash_amount
            elif event.token_amount and event.from_address != event.to_address:
                if event.to_address == wallet and event.kind in (EventKind.MINT, EventKind.TRANSFER):
                    balances[event.asset_id] += event.token_amount
                elif event.from_address == wallet and event.kind in (EventKind.TRANSFER, EventKind.BURN):
                    balances[event.asset_id] -= event.token_amount

        replay = self.tax_lots.replay(wallet, wallet_events)
        total_value = ZERO
        for asset_id, tokens in balances.items():
            if tokens <= 0:
                continue
            price = last_trade.get(asset_id) or reference_prices.get(asset_id)
            if price is None:
                lots = replay.open_lots(asset_id)
                lot_tokens = sum((lot.tokens_remaining for lot in lots), ZERO)
                price = replay.cost_basis(asset_id) / lot_tokens if lot_tokens else ZERO
            total_value += tokens * price

        invested = replay.cost_basis()
        gain = total_value - invested
        return PerformancePoint(
            date=day,
            total_value=total_value,
            total_invested=invested,
            gain_loss=gain,
            gain_loss_percent=gain / invested * HUNDRED if invested else ZERO,
            dividends=dividends,
        )
